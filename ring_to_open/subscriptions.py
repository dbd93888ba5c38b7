from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set

from .errors import SubscriptionError
from .models import DeviceHandle, SubscriptionState

_LOGGER = logging.getLogger(__name__)

DoorbellCallback = Callable[[DeviceHandle], Awaitable[Any]]


def _safe_str(x) -> str:
    try:
        return str(x)
    except Exception:
        return ""


class DeviceSubscriptionManager:
    """
    Owns the doorbell subscription of every door unit.

    ``control`` is the device-control capability and must provide
    ``subscribe(id)``, ``unsubscribe(id)`` and ``register_doorbell_hook(id, cb)``.
    Each device gets exactly one hook, registered after its first successful
    subscribe; notifications for devices that are not SUBSCRIBED are dropped.
    """

    def __init__(self, control: Any) -> None:
        self._control = control
        self._devices: Dict[str, DeviceHandle] = {}
        self._on_doorbell: Optional[DoorbellCallback] = None
        self._hooked: Set[str] = set()
        self._locks: Dict[str, asyncio.Lock] = {}
        self._tasks: Set[asyncio.Task] = set()
        self.errors: Dict[str, SubscriptionError] = {}

    @property
    def devices(self) -> Dict[str, DeviceHandle]:
        return dict(self._devices)

    def subscribed(self) -> List[DeviceHandle]:
        return [d for d in self._devices.values() if d.state is SubscriptionState.SUBSCRIBED]

    # -------------------- lifecycle --------------------
    async def start(self, devices: Iterable[DeviceHandle], on_doorbell: DoorbellCallback) -> None:
        self._on_doorbell = on_doorbell

        for device in devices:
            known = self._devices.setdefault(device.id, device)
            if known.state is not SubscriptionState.UNSUBSCRIBED:
                _LOGGER.debug("%s already %s, not subscribing again", known.name, known.state.value)
                continue
            await self._subscribe(known)

    async def _subscribe(self, device: DeviceHandle) -> None:
        device.state = SubscriptionState.SUBSCRIBING
        try:
            ok = await self._control.subscribe(device.id)
            if not ok:
                raise SubscriptionError(device.id, "subscribe rejected")
        except Exception as err:
            device.state = SubscriptionState.UNSUBSCRIBED
            error = err if isinstance(err, SubscriptionError) else SubscriptionError(device.id, _safe_str(err))
            self.errors[device.id] = error
            _LOGGER.warning("Failed to subscribe to ding events for %s: %s", device.name, _safe_str(err))
            return

        device.state = SubscriptionState.SUBSCRIBED
        self.errors.pop(device.id, None)
        if device.id not in self._hooked:
            self._control.register_doorbell_hook(device.id, partial(self.dispatch, device.id))
            self._hooked.add(device.id)
        _LOGGER.info("Subscribed to ding events for %s", device.name)

    async def stop(self) -> None:
        try:
            for device in list(self._devices.values()):
                if device.state is not SubscriptionState.SUBSCRIBED:
                    continue
                device.state = SubscriptionState.UNSUBSCRIBING
                try:
                    await self._control.unsubscribe(device.id)
                    _LOGGER.info("Unsubscribed from ding events for %s", device.name)
                except Exception as err:
                    _LOGGER.warning("Failed to unsubscribe from ding events for %s: %s", device.name, _safe_str(err))
                finally:
                    device.state = SubscriptionState.UNSUBSCRIBED
        finally:
            # Also reached when a shutdown timeout cancels us part way through
            self._abandon()

    def _abandon(self) -> None:
        skipped = [d for d in self._devices.values() if d.state is not SubscriptionState.UNSUBSCRIBED]
        for device in skipped:
            device.state = SubscriptionState.UNSUBSCRIBED
        if skipped:
            _LOGGER.warning("Gave up unsubscribing %s", ", ".join(d.name for d in skipped))

        pending = [t for t in self._tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            _LOGGER.debug("Abandoned %d in-flight doorbell handler(s)", len(pending))

    # -------------------- dispatch --------------------
    def dispatch(self, device_id: str) -> Optional[asyncio.Task]:
        """Route a doorbell notification; returns the handler task or None if dropped."""

        device = self._devices.get(device_id)
        if device is None or device.state is not SubscriptionState.SUBSCRIBED:
            _LOGGER.debug("Dropping doorbell notification for %s (not subscribed)", device_id)
            return None
        if self._on_doorbell is None:
            return None

        _LOGGER.debug("Ding event received for %s", device.name)
        task = asyncio.get_running_loop().create_task(self._run_handler(device))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_handler(self, device: DeviceHandle) -> Any:
        # FIFO lock keeps presses on one device in arrival order
        lock = self._locks.setdefault(device.id, asyncio.Lock())
        async with lock:
            if device.state is not SubscriptionState.SUBSCRIBED or self._on_doorbell is None:
                _LOGGER.debug("Dropping queued doorbell notification for %s", device.name)
                return None
            try:
                return await self._on_doorbell(device)
            except Exception:
                _LOGGER.exception("Doorbell handler failed for %s", device.name)
                return None

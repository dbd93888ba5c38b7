from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .actuation import ActuationController
from .api import RingClient
from .const import DEFAULT_SHUTDOWN_TIMEOUT
from .credentials import CredentialStore
from .errors import DiscoveryError, LifecycleError
from .history import ActuationHistory
from .models import ActuationEvent, DeviceHandle, RingToOpenConfig, ServiceState
from .subscriptions import DeviceSubscriptionManager
from .window import describe_window

_LOGGER = logging.getLogger(__name__)


def _safe_str(x) -> str:
    try:
        return str(x)
    except Exception:
        return ""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


class RingToOpen:
    """Wires the Ring client, subscriptions, actuation and credential persistence.

    The lifecycle is one-way: UNSTARTED -> STARTING -> RUNNING -> STOPPED.
    A start that fails falls back to UNSTARTED and may be retried.
    """

    def __init__(
        self,
        config: RingToOpenConfig,
        *,
        client: Optional[Any] = None,
        credential_store: Optional[CredentialStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
        shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT,
    ) -> None:
        self.config = config
        self._owns_client = client is None
        self.client = client if client is not None else RingClient(config.refresh_token)
        self.credentials = credential_store or CredentialStore(config.env_path, config.refresh_token)
        self.history = ActuationHistory()
        self.controller = ActuationController(
            config.window,
            self._unlock_device,
            clock=clock,
            history=self.history,
        )
        self.manager = DeviceSubscriptionManager(self.client)
        self.shutdown_timeout = shutdown_timeout

        self.state = ServiceState.UNSTARTED
        self.devices: List[DeviceHandle] = []
        self._remove_rotation_hook: Optional[Callable[[], None]] = None

        self.health: Dict[str, Any] = {
            "state": self.state.value,
            "window": describe_window(config.window),
            "auto_open": config.window.enabled,
            "devices": 0,
            "subscribed": 0,
            "started_at": None,
            "stopped_at": None,
            "last_error": None,
            "events": self.history.counts(),
        }

    # -------------------- lifecycle --------------------
    def _set_state(self, state: ServiceState) -> None:
        self.state = state
        self.health["state"] = state.value

    async def async_start(self) -> None:
        if self.state is ServiceState.STARTING:
            raise LifecycleError("service is already starting")
        if self.state is ServiceState.RUNNING:
            raise LifecycleError("service is already running")
        if self.state is ServiceState.STOPPED:
            raise LifecycleError("service cannot be restarted after stop")

        # Claimed before the first await so a concurrent start is rejected
        self._set_state(ServiceState.STARTING)
        _LOGGER.info(
            "Starting ring-to-open, auto-open %s, hours %s",
            "enabled" if self.config.window.enabled else "disabled",
            describe_window(self.config.window),
        )
        try:
            self.credentials.recover()
            self._hook_rotation()

            devices = await self._discover()
            await self.manager.start(devices, self._on_doorbell)
        except BaseException:
            self._set_state(ServiceState.UNSTARTED)
            raise

        subscribed = self.manager.subscribed()
        self.health["subscribed"] = len(subscribed)
        if not subscribed:
            _LOGGER.warning("No device is subscribed to doorbell events")

        poll = getattr(self.client, "start_polling", None)
        if callable(poll):
            poll(self.config.poll_interval)

        self.health["started_at"] = _now_iso()
        self._set_state(ServiceState.RUNNING)
        _LOGGER.info("Listening for doorbell presses on %d device(s)", len(subscribed))

    async def async_stop(self) -> None:
        if self.state is not ServiceState.RUNNING:
            _LOGGER.debug("Stop requested while %s, nothing to do", self.state.value)
            return

        _LOGGER.info("Shutting down")
        try:
            await asyncio.wait_for(self.manager.stop(), timeout=self.shutdown_timeout)
        except asyncio.TimeoutError:
            _LOGGER.warning("Unsubscribe did not finish within %.1fs", self.shutdown_timeout)

        stop_polling = getattr(self.client, "stop_polling", None)
        if callable(stop_polling):
            await stop_polling()

        await self.async_close()
        self.health["subscribed"] = len(self.manager.subscribed())
        self.health["stopped_at"] = _now_iso()
        self.health["events"] = self.history.counts()
        self._set_state(ServiceState.STOPPED)
        _LOGGER.info("Stopped: %s", self.summary())

    def summary(self) -> str:
        """One-line account of the run for the shutdown log."""

        counts = self.history.counts()
        text = (
            f"{self.health['devices']} device(s) watched, "
            f"{counts['actuated']} opened, {counts['skipped']} skipped, {counts['failed']} failed"
        )
        latest = self.recent_events(1)
        if latest:
            text += f", last press {latest[0]['timestamp']} on {latest[0]['device_name']} ({latest[0]['outcome']})"
        return text

    async def async_close(self) -> None:
        """Release the rotation hook and any client this service created."""

        if self._remove_rotation_hook is not None:
            self._remove_rotation_hook()
            self._remove_rotation_hook = None
        if self._owns_client:
            await self.client.close()

    # -------------------- wiring --------------------
    def _hook_rotation(self) -> None:
        # Must be in place before the first request triggers an OAuth refresh
        if self._remove_rotation_hook is None:
            self._remove_rotation_hook = self.client.register_rotation_hook(self.credentials.on_rotation)

    async def _discover(self) -> List[DeviceHandle]:
        try:
            devices = list(await self.client.discover_devices())
        except DiscoveryError as err:
            self.health["last_error"] = _safe_str(err)
            raise
        except Exception as err:
            self.health["last_error"] = _safe_str(err)
            raise DiscoveryError(f"Device discovery failed: {_safe_str(err)}") from err

        for device in devices:
            _LOGGER.info("Found %s", device.describe())

        wanted = self.config.door_device_id
        if wanted:
            devices = [d for d in devices if d.id == wanted]
            if not devices:
                raise DiscoveryError(f"Configured door device {wanted} was not found")

        if not devices:
            raise DiscoveryError("No intercom devices found on this account")

        self.devices = devices
        self.health["devices"] = len(devices)
        return devices

    async def _on_doorbell(self, device: DeviceHandle) -> ActuationEvent:
        return await self.controller.handle_doorbell(device)

    async def _unlock_device(self, device: DeviceHandle) -> Any:
        return await self.client.unlock(device.id)

    # -------------------- manual --------------------
    async def async_test_unlock(self, name: Optional[str] = None) -> Dict[str, bool]:
        """Unlock every discovered device (or only *name*) regardless of the window."""

        self._hook_rotation()
        devices = self.devices or await self._discover()
        if name:
            wanted = name.strip().lower()
            devices = [d for d in devices if d.name.lower() == wanted or d.id == name]
            if not devices:
                raise DiscoveryError(f"No device named {name!r}")

        results: Dict[str, bool] = {}
        for device in devices:
            _LOGGER.info("Test unlock of %s", device.name)
            try:
                response = await self.client.unlock(device.id)
                ok = response is not False
            except Exception as err:
                _LOGGER.warning("Test unlock of %s failed: %s", device.name, _safe_str(err))
                ok = False
            results[device.name] = ok
        return results

    def recent_events(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return [event.as_dict() for event in self.history.snapshot(limit)]

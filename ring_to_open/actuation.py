from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from .errors import ActuationError
from .history import ActuationHistory
from .models import AccessWindow, ActionOutcome, ActuationEvent, DeviceHandle
from .window import describe_window, is_within_window

_LOGGER = logging.getLogger(__name__)

UnlockCallable = Callable[[DeviceHandle], Awaitable[Any]]


def _safe_str(x) -> str:
    try:
        return str(x)
    except Exception:
        return ""


class ActuationController:
    """
    Decides what a doorbell press does.

    Every press is evaluated on its own: there is no debouncing, so rapid
    presses inside the window each produce an unlock attempt.
    """

    def __init__(
        self,
        window: AccessWindow,
        unlock: UnlockCallable,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        history: Optional[ActuationHistory] = None,
    ) -> None:
        self.window = window
        self._unlock = unlock
        self._clock = clock or datetime.now
        self.history = history

    async def handle_doorbell(self, device: DeviceHandle) -> ActuationEvent:
        now = self._clock()
        _LOGGER.info("Doorbell pressed on %s at %s", device.name, now.isoformat(timespec="seconds"))

        permitted = is_within_window(self.window, now)
        if not permitted:
            if not self.window.enabled:
                _LOGGER.info("Auto-open is disabled, door will not open")
            else:
                _LOGGER.info(
                    "Outside auto-open hours (%s), door will not open",
                    describe_window(self.window),
                )
            return self._finish(device, now, False, ActionOutcome.SKIPPED)

        _LOGGER.info("Within auto-open hours (%s), unlocking %s", describe_window(self.window), device.name)
        try:
            result = await self._unlock(device)
            if result is False:
                raise ActuationError(f"unlock rejected for {device.id}")
        except Exception as err:
            _LOGGER.warning("Failed to unlock %s: %s", device.name, _safe_str(err))
            return self._finish(device, now, True, ActionOutcome.FAILED, _safe_str(err) or type(err).__name__)

        _LOGGER.debug("Unlock response for %s: %s", device.name, result)
        return self._finish(device, now, True, ActionOutcome.ACTUATED)

    def _finish(
        self,
        device: DeviceHandle,
        now: datetime,
        permitted: bool,
        outcome: ActionOutcome,
        error: Optional[str] = None,
    ) -> ActuationEvent:
        event = ActuationEvent(
            device_id=device.id,
            device_name=device.name,
            timestamp=now,
            window_decision=permitted,
            outcome=outcome,
            error=error,
        )
        if outcome is ActionOutcome.ACTUATED:
            _LOGGER.info("Door opened via %s", device.name)
        if self.history is not None:
            self.history.record(event)
        return event

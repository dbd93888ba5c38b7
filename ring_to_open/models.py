from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional


class SubscriptionState(Enum):
    """Where a device sits in its doorbell subscription lifecycle."""

    UNSUBSCRIBED = "unsubscribed"
    SUBSCRIBING = "subscribing"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBING = "unsubscribing"


class ActionOutcome(Enum):
    ACTUATED = "actuated"
    SKIPPED = "skipped"
    FAILED = "failed"


class ServiceState(Enum):
    """Process-wide lifecycle: UNSTARTED -> STARTING -> RUNNING -> STOPPED.

    A failed start falls back from STARTING to UNSTARTED.
    """

    UNSTARTED = "unstarted"
    STARTING = "starting"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(frozen=True)
class AccessWindow:
    """Time-of-day range during which a doorbell press may open the door.

    A close time earlier than the open time spans midnight (e.g. 22:00 - 08:00).
    """

    open_time: time
    close_time: time
    enabled: bool = True


@dataclass
class DeviceHandle:
    """One physical door unit discovered from the control service."""

    id: str
    name: str
    state: SubscriptionState = SubscriptionState.UNSUBSCRIBED
    online: bool = True
    battery_level: Optional[int] = None
    kind: str = ""

    def describe(self) -> str:
        battery = f"{self.battery_level}%" if self.battery_level is not None else "Unknown"
        status = "Online" if self.online else "Offline"
        return f"{self.name} ({self.kind or 'device'}), id='{self.id}', {status}, battery {battery}"


@dataclass(frozen=True)
class ActuationEvent:
    """Outcome of a single doorbell press. Not persisted."""

    device_id: str
    device_name: str
    timestamp: datetime
    window_decision: bool
    outcome: ActionOutcome
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "device_id": self.device_id,
            "device_name": self.device_name,
            "timestamp": self.timestamp.isoformat(),
            "window_decision": self.window_decision,
            "outcome": self.outcome.value,
            "error": self.error,
        }


@dataclass(frozen=True)
class RingToOpenConfig:
    refresh_token: str
    window: AccessWindow
    door_device_id: Optional[str] = None
    debug: bool = False
    poll_interval: float = 5.0
    env_path: Path = field(default_factory=lambda: Path(".env"))

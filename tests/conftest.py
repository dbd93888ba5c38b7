from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, List

import pytest

from ring_to_open.models import DeviceHandle


class FakeControl:  # pragma: no cover - simple stub for tests
    """In-memory stand-in for the Ring device-control capabilities."""

    def __init__(self, devices: List[DeviceHandle] | None = None) -> None:
        self.devices = list(devices or [])
        self.calls: List[tuple] = []
        self.hooks: Dict[str, List[Callable[[], Any]]] = {}
        self.rotation_hooks: List[Callable[..., Any]] = []
        self.fail_subscribe: set = set()
        self.fail_unlock = False
        self.unlocked: List[str] = []
        self.polling = None
        self.closed = False

    async def discover_devices(self) -> List[DeviceHandle]:
        self.calls.append(("discover",))
        return [DeviceHandle(id=d.id, name=d.name, kind=d.kind) for d in self.devices]

    async def subscribe(self, device_id: str) -> bool:
        self.calls.append(("subscribe", device_id))
        if device_id in self.fail_subscribe:
            raise RuntimeError("subscribe refused")
        return True

    async def unsubscribe(self, device_id: str) -> bool:
        self.calls.append(("unsubscribe", device_id))
        return True

    async def unlock(self, device_id: str) -> Any:
        self.calls.append(("unlock", device_id))
        if self.fail_unlock:
            raise RuntimeError("device unreachable")
        self.unlocked.append(device_id)
        return {"result": {"code": 0}}

    def register_doorbell_hook(self, device_id: str, callback: Callable[[], Any]):
        self.hooks.setdefault(device_id, []).append(callback)
        return lambda: self.hooks[device_id].remove(callback)

    def register_rotation_hook(self, callback):
        self.rotation_hooks.append(callback)
        return lambda: self.rotation_hooks.remove(callback)

    def start_polling(self, interval: float) -> None:
        self.polling = interval

    async def stop_polling(self) -> None:
        self.polling = None

    async def close(self) -> None:
        self.closed = True

    def ring(self, device_id: str) -> list:
        """Simulate a doorbell press; returns whatever the hooks returned."""

        return [hook() for hook in list(self.hooks.get(device_id, []))]


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def front_door() -> DeviceHandle:
    return DeviceHandle(id="101", name="Front Door", kind="intercom_handset_audio")


@pytest.fixture
def make_control():
    return FakeControl


@pytest.fixture
def control(front_door) -> FakeControl:
    return FakeControl([front_door])


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 7, 1, 9, 0))

from __future__ import annotations

from datetime import datetime, timedelta

from ring_to_open.history import ActuationHistory
from ring_to_open.models import ActionOutcome, ActuationEvent


BASE = datetime(2024, 7, 1, 9, 0)


def _event(minutes: int, device_id: str = "101", outcome: ActionOutcome = ActionOutcome.ACTUATED):
    return ActuationEvent(
        device_id=device_id,
        device_name=f"Door {device_id}",
        timestamp=BASE + timedelta(minutes=minutes),
        window_decision=outcome is not ActionOutcome.SKIPPED,
        outcome=outcome,
    )


def test_history_keeps_newest_first_and_respects_limit():
    history = ActuationHistory(limit=3)
    history.ingest([_event(i) for i in range(5)])

    minutes = [int((e.timestamp - BASE).total_seconds() // 60) for e in history.snapshot()]
    assert minutes == [4, 3, 2]


def test_out_of_order_events_are_sorted():
    history = ActuationHistory(limit=10)
    history.record(_event(5))
    history.record(_event(1))
    history.record(_event(3))

    assert [e.timestamp.minute for e in history.snapshot()] == [5, 3, 1]


def test_snapshot_limit_and_latest_per_device():
    history = ActuationHistory()
    history.ingest([_event(1, "101"), _event(2, "202"), _event(3, "101", ActionOutcome.FAILED)])

    assert len(history.snapshot(limit=2)) == 2
    assert history.latest("202").device_id == "202"
    assert history.latest().outcome is ActionOutcome.FAILED
    assert history.latest("999") is None


def test_zero_limit_keeps_nothing():
    history = ActuationHistory(limit=0)
    history.record(_event(1))
    assert history.snapshot() == []


def test_event_as_dict_is_serialisable():
    data = _event(0, outcome=ActionOutcome.SKIPPED).as_dict()
    assert data == {
        "device_id": "101",
        "device_name": "Door 101",
        "timestamp": "2024-07-01T09:00:00",
        "window_decision": False,
        "outcome": "skipped",
        "error": None,
    }

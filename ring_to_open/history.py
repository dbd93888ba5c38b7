from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from .const import DEFAULT_ACTUATION_HISTORY_LIMIT
from .models import ActionOutcome, ActuationEvent


class ActuationHistory:
    """In-memory store for actuation events across all devices."""

    def __init__(self, limit: int = DEFAULT_ACTUATION_HISTORY_LIMIT) -> None:
        self._events: List[ActuationEvent] = []  # newest first
        self._limit = self._normalize_limit(limit)

    @property
    def limit(self) -> int:
        return self._limit

    def clear(self) -> None:
        """Remove all stored events."""

        self._events.clear()

    def record(self, event: ActuationEvent) -> None:
        self.ingest([event])

    def ingest(self, events: Iterable[ActuationEvent]) -> None:
        """Merge *events* into the history, keeping only the newest ``limit`` items."""

        if self._limit <= 0:
            self.clear()
            return

        for event in events:
            if not isinstance(event, ActuationEvent):
                continue
            self._events.insert(0, event)

        self._events.sort(key=lambda e: e.timestamp.timestamp(), reverse=True)
        self.prune(self._limit)

    def prune(self, limit: int) -> None:
        """Trim stored events so at most *limit* remain."""

        limit = self._normalize_limit(limit)
        if limit <= 0:
            self.clear()
            return
        del self._events[limit:]

    def snapshot(self, limit: Optional[int] = None) -> List[ActuationEvent]:
        """Return the newest events, optionally limited to *limit* entries."""

        if limit is None:
            return list(self._events)
        return self._events[: self._normalize_limit(limit)]

    def latest(self, device_id: Optional[str] = None) -> Optional[ActuationEvent]:
        for event in self._events:
            if device_id is None or event.device_id == device_id:
                return event
        return None

    def counts(self) -> Dict[str, int]:
        totals = {outcome.value: 0 for outcome in ActionOutcome}
        for event in self._events:
            totals[event.outcome.value] += 1
        return totals

    def __len__(self) -> int:  # pragma: no cover - convenience only
        return len(self._events)

    @staticmethod
    def _normalize_limit(limit: Any) -> int:
        try:
            value = int(limit) if limit is not None else 0
        except (TypeError, ValueError):
            return 0
        return max(0, value)


__all__ = ["ActuationHistory"]

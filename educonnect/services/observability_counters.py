from __future__ import annotations

from collections import deque
from datetime import datetime, timedelta
import threading

from educonnect.core.time_provider import default_time_provider


TRACKED_EVENTS = ('login_failure', 'rate_limit_block', 'appointment_transition_rejected')
RETENTION = timedelta(hours=25)


class EventWindow:
    """Timestamps of recent security and workflow events, kept per event name."""

    def __init__(self, names: tuple[str, ...], retention: timedelta):
        self._names = frozenset(names)
        self._retention = retention
        self._lock = threading.Lock()
        self._buckets: dict[str, deque[datetime]] = {name: deque() for name in names}

    def _bucket(self, name: str) -> deque[datetime]:
        event = str(name or '').strip().lower()
        if event not in self._names:
            raise ValueError(f'Unknown observability event: {name!r}')
        return self._buckets[event]

    def _expire(self, bucket: deque[datetime], now: datetime) -> None:
        horizon = now - self._retention
        while bucket and bucket[0] < horizon:
            bucket.popleft()

    def record(self, name: str, at: datetime) -> None:
        bucket = self._bucket(name)
        with self._lock:
            bucket.append(at)
            self._expire(bucket, at)

    def count(self, name: str, since: datetime) -> int:
        bucket = self._bucket(name)
        with self._lock:
            return sum(1 for stamp in bucket if stamp >= since)

    def reset(self) -> None:
        with self._lock:
            for bucket in self._buckets.values():
                bucket.clear()


_window = EventWindow(TRACKED_EVENTS, RETENTION)


def record_observability_event(name: str, *, at: datetime | None = None) -> None:
    _window.record(name, at or default_time_provider.local_naive_now())


def count_observability_events(name: str, *, window_hours: int = 24, now: datetime | None = None) -> int:
    current = now or default_time_provider.local_naive_now()
    return _window.count(name, current - timedelta(hours=max(1, int(window_hours or 24))))


def observability_snapshot(*, window_hours: int = 24) -> dict[str, int]:
    return {name: count_observability_events(name, window_hours=window_hours) for name in TRACKED_EVENTS}


def clear_observability_events() -> None:
    _window.reset()

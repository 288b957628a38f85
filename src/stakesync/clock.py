"""Timestamp labels and ids used to stamp every mutation."""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timedelta, timezone

_ONE_MS = timedelta(milliseconds=1)


def format_iso(value: datetime) -> str:
    """Format as ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_datetime(value: str | None) -> datetime | None:
    """Parse an ISO-8601 string into an aware datetime, or None."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_iso(value: str | None) -> float:
    """Epoch milliseconds for an ISO string; missing or bad values give 0."""
    parsed = parse_datetime(value)
    if parsed is None:
        return 0.0
    return parsed.timestamp() * 1000


def new_id() -> str:
    return str(uuid.uuid4())


class Clock:
    """Produces strictly increasing ISO-8601 labels."""

    def __init__(self) -> None:
        self._last: datetime | None = None
        self._lock = threading.Lock()

    def _wall(self) -> datetime:
        return datetime.now(tz=timezone.utc)

    def now(self) -> str:
        with self._lock:
            current = self._truncate(self._wall())
            if self._last is not None and current <= self._last:
                current = self._last + _ONE_MS
            self._last = current
            return format_iso(current)

    @staticmethod
    def _truncate(value: datetime) -> datetime:
        return value.replace(microsecond=(value.microsecond // 1000) * 1000)


class FixedClock(Clock):
    """Clock that starts at a given instant and only advances by bumping."""

    def __init__(self, start: datetime) -> None:
        super().__init__()
        self._start = start

    def _wall(self) -> datetime:
        return self._start


_default_clock = Clock()


def default_clock() -> Clock:
    return _default_clock


def now_iso(clock: Clock | None = None) -> str:
    return (clock or _default_clock).now()

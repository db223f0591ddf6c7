"""Half-open time intervals and the overlap predicate."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone

from scheduling.errors import InvalidInterval


def _require_aware(value: datetime, label: str) -> datetime:
    if not isinstance(value, datetime):
        raise InvalidInterval(f"{label} must be a datetime")
    if value.tzinfo is None or value.utcoffset() is None:
        raise InvalidInterval(f"{label} must be timezone-aware")
    try:
        return value.astimezone(timezone.utc)
    except OverflowError:
        raise InvalidInterval(f"{label} is out of range")


@dataclass(frozen=True)
class TimeInterval:
    """[start, end) in UTC. Construction rejects empty or inverted ranges."""

    start: datetime
    end: datetime

    def __post_init__(self):
        start = _require_aware(self.start, "start")
        end = _require_aware(self.end, "end")
        if end <= start:
            raise InvalidInterval("end must be after start")
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    def overlaps(self, other: TimeInterval) -> bool:
        return overlaps(self, other)

    def contains(self, other: TimeInterval) -> bool:
        return self.start <= other.start and other.end <= self.end

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    # touching boundaries (a.end == b.start) are not a conflict
    return a.start < b.end and b.start < a.end


def day_window(interval: TimeInterval) -> TimeInterval:
    """Widen an interval to the whole UTC days it touches."""
    start = datetime.combine(interval.start.date(), time.min, tzinfo=timezone.utc)
    end = datetime.combine(interval.end.date(), time.min, tzinfo=timezone.utc)
    if end < interval.end:
        try:
            end += timedelta(days=1)
        except OverflowError:
            # no whole day left after the last representable date
            return interval
    return TimeInterval(start, end)

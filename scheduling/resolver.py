"""Advisory conflict checks for a shared, time-boxed resource."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Hashable, List, Optional

from scheduling.intervals import TimeInterval, day_window, overlaps
from scheduling.records import BlockEntry, ReservationEntry
from scheduling.store import IntervalStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverlapVerdict:
    conflicting_reservations: List[ReservationEntry] = field(default_factory=list)
    conflicting_blocks: List[BlockEntry] = field(default_factory=list)

    @property
    def has_conflict(self) -> bool:
        return bool(self.conflicting_reservations or self.conflicting_blocks)

    def to_dict(self):
        return {
            "has_conflict": self.has_conflict,
            "conflicting_reservations": [r.to_dict() for r in self.conflicting_reservations],
            "conflicting_blocks": [b.to_dict() for b in self.conflicting_blocks],
        }


def collect_conflicts(interval, reservations, blocks, exclude_id=None) -> OverlapVerdict:
    """Match every candidate against the interval, keeping the candidates' order."""
    return OverlapVerdict(
        conflicting_reservations=[
            r for r in reservations
            if r.status.occupies_time
            and (exclude_id is None or r.id != exclude_id)
            and overlaps(interval, r.interval)
        ],
        conflicting_blocks=[b for b in blocks if overlaps(interval, b.interval)],
    )


class ConflictResolver:
    """
    Answers "can this interval be booked on this resource" without writing.

    The answer is advisory: the store's insert/reschedule re-validates under
    the resource lock before anything is committed.
    """

    def __init__(self, store: IntervalStore, widen_to_days: bool = True):
        self.store = store
        self.widen_to_days = widen_to_days

    def _window(self, interval: TimeInterval) -> TimeInterval:
        # may widen, never narrow
        return day_window(interval) if self.widen_to_days else interval

    def check_overlaps(
        self,
        resource_id: Hashable,
        start: datetime,
        end: datetime,
        exclude_id: Optional[Hashable] = None,
    ) -> OverlapVerdict:
        interval = TimeInterval(start, end)
        window = self._window(interval)

        reservations = self.store.list_reservations(resource_id, window, exclude_id=exclude_id)
        blocks = self.store.list_blocks(resource_id, window)

        verdict = collect_conflicts(interval, reservations, blocks, exclude_id=exclude_id)
        if verdict.has_conflict:
            logger.debug(
                "Conflict on resource %s for %s-%s: %d reservation(s), %d block(s)",
                resource_id, interval.start, interval.end,
                len(verdict.conflicting_reservations), len(verdict.conflicting_blocks),
            )
        return verdict

    def reservations_affected_by(self, resource_id, start, end) -> List[ReservationEntry]:
        """Non-cancelled reservations a block over [start, end) would cover."""
        interval = TimeInterval(start, end)
        reservations = self.store.list_reservations(resource_id, self._window(interval))
        return [r for r in reservations if r.status.occupies_time and overlaps(interval, r.interval)]

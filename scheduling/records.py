"""Immutable views of stored reservations and blocks, as the resolver sees them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable, Optional

from scheduling.intervals import TimeInterval
from scheduling.status import ReservationStatus
from utils.timefmt import isoformat_utc


@dataclass(frozen=True)
class ReservationEntry:
    id: Hashable
    resource_id: Hashable
    requester_id: Hashable
    requester_name: Optional[str]
    interval: TimeInterval
    purpose: str
    status: ReservationStatus = ReservationStatus.CONFIRMED
    notes: Optional[str] = None

    @property
    def start_time(self):
        return self.interval.start

    @property
    def end_time(self):
        return self.interval.end

    def to_dict(self):
        return {
            "id": self.id,
            "requester_name": self.requester_name,
            "start_time": isoformat_utc(self.start_time),
            "end_time": isoformat_utc(self.end_time),
            "purpose": self.purpose,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class BlockEntry:
    id: Hashable
    resource_id: Hashable
    reason: str
    interval: TimeInterval

    @property
    def start_time(self):
        return self.interval.start

    @property
    def end_time(self):
        return self.interval.end

    def to_dict(self):
        return {
            "id": self.id,
            "reason": self.reason,
            "start_time": isoformat_utc(self.start_time),
            "end_time": isoformat_utc(self.end_time),
        }

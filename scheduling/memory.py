"""Dict-backed interval store for tests and tooling."""

from __future__ import annotations

import itertools
import threading
from dataclasses import replace

from scheduling.errors import ResourceNotFound, WriteConflict
from scheduling.intervals import overlaps
from scheduling.records import BlockEntry, ReservationEntry
from scheduling.resolver import collect_conflicts
from scheduling.status import ReservationStatus, ensure_transition


class InMemoryIntervalStore:
    """
    Holds reservations and blocks keyed by id.

    ``insert_reservation`` and ``reschedule_reservation`` re-check overlap and
    write under one lock, which plays the role a database transaction plays
    for the SQL store.
    """

    def __init__(self, resource_ids=None):
        self._resources = set(resource_ids or ())
        self._reservations: dict = {}
        self._blocks: dict = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self.reads = 0

    def add_resource(self, resource_id):
        self._resources.add(resource_id)

    def add_reservation(self, entry: ReservationEntry) -> ReservationEntry:
        """Store an entry as-is, bypassing conflict checks (seeding)."""
        self._resources.add(entry.resource_id)
        self._reservations[entry.id] = entry
        return entry

    def add_block(self, entry: BlockEntry) -> BlockEntry:
        self._resources.add(entry.resource_id)
        self._blocks[entry.id] = entry
        return entry

    def remove_block(self, block_id):
        self._blocks.pop(block_id, None)

    def get_reservation(self, reservation_id):
        return self._reservations.get(reservation_id)

    def list_reservations(self, resource_id, window, exclude_id=None):
        self.reads += 1
        rows = [
            r for r in self._reservations.values()
            if r.resource_id == resource_id
            and r.status.occupies_time
            and r.id != exclude_id
            and overlaps(window, r.interval)
        ]
        return sorted(rows, key=lambda r: (r.start_time, str(r.id)))

    def list_blocks(self, resource_id, window):
        self.reads += 1
        rows = [
            b for b in self._blocks.values()
            if b.resource_id == resource_id and overlaps(window, b.interval)
        ]
        return sorted(rows, key=lambda b: (b.start_time, str(b.id)))

    def _verdict(self, resource_id, interval, exclude_id=None):
        return collect_conflicts(
            interval,
            self.list_reservations(resource_id, interval, exclude_id=exclude_id),
            self.list_blocks(resource_id, interval),
            exclude_id=exclude_id,
        )

    def insert_reservation(
        self,
        resource_id,
        requester_id,
        interval,
        purpose,
        requester_name=None,
        status=ReservationStatus.CONFIRMED,
        notes=None,
    ) -> ReservationEntry:
        with self._lock:
            if resource_id not in self._resources:
                raise ResourceNotFound(resource_id)
            verdict = self._verdict(resource_id, interval)
            if verdict.has_conflict:
                raise WriteConflict(verdict=verdict)
            entry = ReservationEntry(
                id=next(self._ids),
                resource_id=resource_id,
                requester_id=requester_id,
                requester_name=requester_name,
                interval=interval,
                purpose=purpose,
                status=status,
                notes=notes,
            )
            self._reservations[entry.id] = entry
            return entry

    def reschedule_reservation(self, reservation_id, interval) -> ReservationEntry:
        with self._lock:
            current = self._reservations[reservation_id]
            verdict = self._verdict(current.resource_id, interval, exclude_id=reservation_id)
            if verdict.has_conflict:
                raise WriteConflict(verdict=verdict)
            updated = replace(current, interval=interval)
            self._reservations[reservation_id] = updated
            return updated

    def set_status(self, reservation_id, status: ReservationStatus) -> ReservationEntry:
        with self._lock:
            current = self._reservations[reservation_id]
            ensure_transition(current.status, status)
            updated = replace(current, status=status)
            self._reservations[reservation_id] = updated
            return updated

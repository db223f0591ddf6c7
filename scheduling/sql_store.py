"""SQLAlchemy-backed interval store and the authoritative booking write path."""

from __future__ import annotations

import logging

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import joinedload

from models.block import Block
from models.reservation import Reservation
from models.resource import Resource
from scheduling.errors import ResourceNotFound, WriteConflict
from scheduling.resolver import collect_conflicts
from scheduling.status import ReservationStatus
from utils.timefmt import to_storage

logger = logging.getLogger(__name__)

# lock_not_available, serialization_failure, deadlock_detected
LOCK_SQLSTATES = {"55P03", "40001", "40P01"}


def is_lock_contention(exc: OperationalError) -> bool:
    """True when the database refused a write because another writer held the lock."""
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate in LOCK_SQLSTATES:
        return True
    message = str(orig if orig is not None else exc).lower()
    return "locked" in message or "busy" in message


class SqlAlchemyIntervalStore:
    def __init__(self, session):
        self.session = session

    # ---------- reads ----------
    def reservation_query(self, resource_id, window, exclude_id=None):
        q = (
            self.session.query(Reservation)
            .options(joinedload(Reservation.user))
            .filter(
                Reservation.resource_id == resource_id,
                Reservation.status != ReservationStatus.CANCELLED,
                Reservation.start_time < to_storage(window.end),
                Reservation.end_time > to_storage(window.start),
            )
        )
        if exclude_id is not None:
            q = q.filter(Reservation.id != exclude_id)
        return q.order_by(Reservation.start_time.asc(), Reservation.id.asc())

    def block_query(self, resource_id, window):
        return (
            self.session.query(Block)
            .filter(
                Block.resource_id == resource_id,
                Block.start_time < to_storage(window.end),
                Block.end_time > to_storage(window.start),
            )
            .order_by(Block.start_time.asc(), Block.id.asc())
        )

    def list_reservations(self, resource_id, window, exclude_id=None):
        return [r.to_entry() for r in self.reservation_query(resource_id, window, exclude_id).all()]

    def list_blocks(self, resource_id, window):
        return [b.to_entry() for b in self.block_query(resource_id, window).all()]

    # ---------- authoritative writes ----------
    def _lock_resource(self, resource_id):
        # UPDATE takes the row lock (PostgreSQL) / the write lock (SQLite) until commit,
        # so concurrent writers on one resource run their re-check one at a time.
        result = self.session.execute(
            sa.update(Resource)
            .where(Resource.id == resource_id)
            .values(booking_version=Resource.booking_version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ResourceNotFound(resource_id)

    def _collisions(self, resource_id, interval, exclude_id=None):
        return collect_conflicts(
            interval,
            self.list_reservations(resource_id, interval, exclude_id=exclude_id),
            self.list_blocks(resource_id, interval),
            exclude_id=exclude_id,
        )

    def _serialized(self, resource_id, write):
        try:
            self._lock_resource(resource_id)
            result = write()
            self.session.commit()
            return result
        except WriteConflict:
            self.session.rollback()
            raise
        except ResourceNotFound:
            self.session.rollback()
            raise
        except IntegrityError as exc:
            self.session.rollback()
            logger.info("Booking write on resource %s rejected by database: %s", resource_id, exc)
            raise WriteConflict() from exc
        except OperationalError as exc:
            self.session.rollback()
            if not is_lock_contention(exc):
                raise
            logger.info("Booking write on resource %s timed out waiting for the lock: %s", resource_id, exc)
            raise WriteConflict() from exc

    def insert_reservation(self, reservation: Reservation) -> Reservation:
        """
        Re-validate overlap under the resource lock and commit the new row.
        Raises WriteConflict when the slot was taken since the advisory check.
        """
        interval = reservation.interval

        def write():
            verdict = self._collisions(reservation.resource_id, interval)
            if verdict.has_conflict:
                logger.info(
                    "Reservation on resource %s lost the race for %s-%s",
                    reservation.resource_id, interval.start, interval.end,
                )
                raise WriteConflict(verdict=verdict)
            self.session.add(reservation)
            return reservation

        return self._serialized(reservation.resource_id, write)

    def reschedule_reservation(self, reservation: Reservation, interval, resource_id=None) -> Reservation:
        """Move an existing reservation; it never collides with itself."""
        target = resource_id if resource_id is not None else reservation.resource_id

        def write():
            verdict = self._collisions(target, interval, exclude_id=reservation.id)
            if verdict.has_conflict:
                raise WriteConflict(verdict=verdict)
            reservation.resource_id = target
            reservation.start_time = to_storage(interval.start)
            reservation.end_time = to_storage(interval.end)
            return reservation

        return self._serialized(target, write)

    def save_block(self, block: Block) -> Block:
        """Insert or update a block, serialized with reservation writes on its resource."""
        def write():
            self.session.add(block)
            return block

        return self._serialized(block.resource_id, write)

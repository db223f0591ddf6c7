"""The SQL-backed store: window reads and the locked write path."""

import threading
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from models import db
from models.block import Block
from models.reservation import Reservation
from models.resource import Resource
from scheduling.errors import ResourceNotFound, WriteConflict
from scheduling.intervals import TimeInterval
from scheduling.resolver import ConflictResolver
from scheduling.sql_store import SqlAlchemyIntervalStore, is_lock_contention
from scheduling.status import ReservationStatus
from utils.timefmt import to_storage


def at(day, hour, minute=0):
    return datetime(2025, 1, day, hour, minute, tzinfo=timezone.utc)


def new_reservation(resource_id, user_id, start, end, purpose="TRAINING"):
    return Reservation(
        resource_id=resource_id,
        user_id=user_id,
        start_time=to_storage(start),
        end_time=to_storage(end),
        purpose=purpose,
    )


@pytest.fixture()
def store(app_ctx):
    return SqlAlchemyIntervalStore(db.session)


def whole_day():
    return TimeInterval(at(6, 0), at(7, 0))


def test_insert_then_list(store, hall_id, member):
    store.insert_reservation(new_reservation(hall_id, member, at(6, 9), at(6, 10)))
    entries = store.list_reservations(hall_id, whole_day())
    assert len(entries) == 1
    assert entries[0].requester_name == "Anna de Vries"
    assert entries[0].interval == TimeInterval(at(6, 9), at(6, 10))
    assert entries[0].status is ReservationStatus.CONFIRMED


def test_list_orders_by_start_and_skips_cancelled(store, hall_id, member):
    late = store.insert_reservation(new_reservation(hall_id, member, at(6, 14), at(6, 15)))
    early = store.insert_reservation(new_reservation(hall_id, member, at(6, 8), at(6, 9)))
    gone = store.insert_reservation(new_reservation(hall_id, member, at(6, 11), at(6, 12)))
    gone.cancel(member, "ziek")
    db.session.commit()

    ids = [e.id for e in store.list_reservations(hall_id, whole_day())]
    assert ids == [early.id, late.id]


def test_list_honours_exclude_id(store, hall_id, member):
    kept = store.insert_reservation(new_reservation(hall_id, member, at(6, 9), at(6, 10)))
    other = store.insert_reservation(new_reservation(hall_id, member, at(6, 10), at(6, 11)))
    ids = [e.id for e in store.list_reservations(hall_id, whole_day(), exclude_id=kept.id)]
    assert ids == [other.id]


def test_losing_writer_gets_write_conflict(store, hall_id, member, other_member):
    store.insert_reservation(new_reservation(hall_id, member, at(6, 9), at(6, 10)))

    with pytest.raises(WriteConflict) as exc:
        store.insert_reservation(new_reservation(hall_id, other_member, at(6, 9, 30), at(6, 10, 30)))

    assert exc.value.verdict.has_conflict
    assert Reservation.query.count() == 1
    assert Reservation.query.filter_by(user_id=other_member).count() == 0


def test_touching_insert_is_accepted(store, hall_id, member, other_member):
    store.insert_reservation(new_reservation(hall_id, member, at(6, 9), at(6, 10)))
    store.insert_reservation(new_reservation(hall_id, other_member, at(6, 10), at(6, 11)))
    assert Reservation.query.count() == 2


def test_cancelled_slot_can_be_rebooked(store, hall_id, member, other_member):
    first = store.insert_reservation(new_reservation(hall_id, member, at(6, 9), at(6, 10)))
    first.cancel(member)
    db.session.commit()

    store.insert_reservation(new_reservation(hall_id, other_member, at(6, 9), at(6, 10)))
    assert len(store.list_reservations(hall_id, whole_day())) == 1


def test_reschedule_does_not_collide_with_itself(store, hall_id, member):
    reservation = store.insert_reservation(new_reservation(hall_id, member, at(6, 9), at(6, 10)))
    store.reschedule_reservation(reservation, TimeInterval(at(6, 9, 30), at(6, 10, 30)))

    db.session.expire_all()
    moved = db.session.get(Reservation, reservation.id)
    assert moved.interval == TimeInterval(at(6, 9, 30), at(6, 10, 30))


def test_reschedule_into_other_booking_rolls_back(store, hall_id, member, other_member):
    mine = store.insert_reservation(new_reservation(hall_id, member, at(6, 9), at(6, 10)))
    store.insert_reservation(new_reservation(hall_id, other_member, at(6, 11), at(6, 12)))

    with pytest.raises(WriteConflict):
        store.reschedule_reservation(mine, TimeInterval(at(6, 10, 30), at(6, 11, 30)))

    db.session.expire_all()
    assert db.session.get(Reservation, mine.id).interval == TimeInterval(at(6, 9), at(6, 10))


def test_unknown_resource_raises(store, member):
    with pytest.raises(ResourceNotFound):
        store.insert_reservation(new_reservation(9999, member, at(6, 9), at(6, 10)))


def test_block_collides_with_new_reservation(store, hall_id, member, admin):
    store.save_block(Block(
        resource_id=hall_id,
        reason="Hoefsmid",
        start_time=to_storage(at(6, 12)),
        end_time=to_storage(at(6, 14)),
        created_by=admin,
    ))

    with pytest.raises(WriteConflict) as exc:
        store.insert_reservation(new_reservation(hall_id, member, at(6, 13), at(6, 15)))
    assert [b.reason for b in exc.value.verdict.conflicting_blocks] == ["Hoefsmid"]


def test_every_write_bumps_the_resource_version(store, hall_id, member):
    before = db.session.get(Resource, hall_id).booking_version
    store.insert_reservation(new_reservation(hall_id, member, at(6, 9), at(6, 10)))
    db.session.expire_all()
    assert db.session.get(Resource, hall_id).booking_version == before + 1


def test_resolver_over_sql_store(store, hall_id, member):
    store.insert_reservation(new_reservation(hall_id, member, at(5, 22), at(6, 1)))
    resolver = ConflictResolver(store)
    verdict = resolver.check_overlaps(hall_id, at(6, 0, 30), at(6, 2))
    assert len(verdict.conflicting_reservations) == 1
    assert not resolver.check_overlaps(hall_id, at(6, 1), at(6, 2)).has_conflict


def _failing_write(message):
    def write():
        raise OperationalError("UPDATE reservations", {}, Exception(message))
    return write


def test_lock_timeout_becomes_write_conflict(store, hall_id):
    with pytest.raises(WriteConflict):
        store._serialized(hall_id, _failing_write("database is locked"))


def test_other_operational_errors_propagate(store, hall_id):
    with pytest.raises(OperationalError):
        store._serialized(hall_id, _failing_write("no such table: reservations"))
    # the failed transaction was rolled back; the session is usable again
    assert Reservation.query.count() == 0


def test_postgres_lock_sqlstate_is_contention():
    class PgError(Exception):
        pgcode = "55P03"

    assert is_lock_contention(OperationalError("SELECT 1", {}, PgError("canceling statement due to lock timeout")))
    assert not is_lock_contention(OperationalError("SELECT 1", {}, Exception("server closed the connection")))


def test_concurrent_writers_on_separate_sessions(app, hall_id, member):
    writers = 6
    barrier = threading.Barrier(writers)
    results = []
    guard = threading.Lock()

    def attempt():
        with app.app_context():
            store = SqlAlchemyIntervalStore(db.session)
            barrier.wait()
            try:
                store.insert_reservation(new_reservation(hall_id, member, at(6, 9), at(6, 10)))
                outcome = "ok"
            except WriteConflict:
                outcome = "conflict"
            except Exception as exc:  # surfaced in the assertion below
                outcome = repr(exc)
        with guard:
            results.append(outcome)

    threads = [threading.Thread(target=attempt) for _ in range(writers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert sorted(results) == ["conflict"] * (writers - 1) + ["ok"]
    with app.app_context():
        assert Reservation.query.count() == 1

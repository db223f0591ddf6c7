from datetime import timedelta

from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.reservation import Reservation
from scheduling.resolver import ConflictResolver
from scheduling.sql_store import SqlAlchemyIntervalStore
from scheduling.status import Purpose, ReservationStatus
from security.rbac import may_manage
from utils.audit import log_event
from utils.auth_context import login_required
from utils.payload import BadPayload, read_interval, read_optional_int, read_flag
from utils.resources import find_resource, get_bookable_resource
from utils.timefmt import isoformat_utc, to_storage

reservations_bp = Blueprint("reservations", __name__, url_prefix="/reservations")


def interval_store():
    return SqlAlchemyIntervalStore(db.session)


def conflict_resolver():
    return ConflictResolver(
        interval_store(),
        widen_to_days=current_app.config.get("CONFLICT_WINDOW_WHOLE_DAYS", True),
    )


def _read_purpose(value):
    try:
        return Purpose((value or "").strip().upper()).value
    except ValueError:
        raise BadPayload("purpose must be one of TRAINING, LESSON, OTHER")


def _read_notes(value):
    notes = (value or "").strip() or None
    limit = current_app.config.get("RESERVATION_NOTES_MAX_LENGTH", 500)
    if notes and len(notes) > limit:
        raise BadPayload(f"notes may be at most {limit} characters")
    return notes


def _conflict_response(verdict):
    return jsonify(
        error="Time slot is not available",
        code="CONFLICT",
        **verdict.to_dict(),
    ), 409


def _initial_status():
    status = ReservationStatus(current_app.config.get("RESERVATION_INITIAL_STATUS", "CONFIRMED"))
    if not status.occupies_time:
        return ReservationStatus.CONFIRMED
    return status


# ---------- MEMBERS: advisory overlap check (calendar drag, confirm dialog) ----------
@reservations_bp.get("/check-overlaps")
@login_required
def check_overlaps():
    resource_key = request.args.get("resource_id")
    start = request.args.get("start")
    end = request.args.get("end")
    if not resource_key or not start or not end:
        return jsonify(error="resource_id, start and end are required"), 400

    interval = read_interval(start, end, "start", "end")
    exclude_id = read_optional_int(request.args.get("exclude_id"), "exclude_id")

    # Unknown resources have nothing stored against them; booking them is rejected separately
    resource = find_resource(resource_key)
    verdict = conflict_resolver().check_overlaps(
        resource.id if resource else None,
        interval.start,
        interval.end,
        exclude_id=exclude_id,
    )
    return jsonify(verdict.to_dict()), 200


# ---------- MEMBERS: calendar data ----------
@reservations_bp.get("/calendar")
@login_required
def calendar():
    resource_key = request.args.get("resource_id")
    start = request.args.get("start")
    end = request.args.get("end")
    if not resource_key or not start or not end:
        return jsonify(error="resource_id, start and end are required"), 400

    window = read_interval(start, end, "start", "end")
    max_days = current_app.config.get("CALENDAR_MAX_RANGE_DAYS", 62)
    if window.duration > timedelta(days=max_days):
        return jsonify(error=f"Calendar range may span at most {max_days} days"), 400

    resource = find_resource(resource_key)
    if resource is None:
        return jsonify(error="Resource not found"), 404

    store = interval_store()
    reservations = store.reservation_query(resource.id, window).all()
    blocks = store.block_query(resource.id, window).all()

    # small community: everyone sees who booked, notes stay with the owner
    return jsonify(
        reservations=[
            {
                "id": r.id,
                "start_time": isoformat_utc(r.start_time),
                "end_time": isoformat_utc(r.end_time),
                "purpose": r.purpose,
                "status": r.status.value,
                "is_own": r.user_id == g.user.id,
                "requester_name": r.user.name if r.user else None,
                "notes": r.notes if r.user_id == g.user.id else None,
            }
            for r in reservations
        ],
        blocks=[b.to_entry().to_dict() for b in blocks],
    ), 200


# ---------- MEMBERS: my reservations ----------
@reservations_bp.get("/me")
@login_required
def my_reservations():
    include_history = read_flag(request.args.get("history"))
    q = Reservation.query.filter_by(user_id=g.user.id)
    if not include_history:
        q = q.filter(Reservation.status != ReservationStatus.CANCELLED)

    rows = q.order_by(Reservation.start_time.desc()).all()
    return jsonify(reservations=[r.to_dict(include_resource=True) for r in rows]), 200


# ---------- MEMBERS: book the hall (DOUBLE-BOOKING SAFE) ----------
@reservations_bp.post("")
@login_required
def create_reservation():
    data = request.get_json(silent=True) or {}
    resource_key = data.get("resource_id")
    if not resource_key:
        return jsonify(error="resource_id is required"), 400

    interval = read_interval(data.get("start_time"), data.get("end_time"))
    purpose = _read_purpose(data.get("purpose"))
    notes = _read_notes(data.get("notes"))

    resource = get_bookable_resource(resource_key)

    verdict = conflict_resolver().check_overlaps(resource.id, interval.start, interval.end)
    if verdict.has_conflict:
        return _conflict_response(verdict)

    reservation = Reservation(
        resource_id=resource.id,
        user_id=g.user.id,
        start_time=to_storage(interval.start),
        end_time=to_storage(interval.end),
        purpose=purpose,
        notes=notes,
        status=_initial_status(),
    )
    # Re-checked under the resource lock; WriteConflict becomes a retryable 409
    interval_store().insert_reservation(reservation)

    log_event(
        "CREATE",
        user_id=g.user.id,
        entity_type="Reservation",
        entity_id=reservation.id,
        changes={
            "resource_id": resource.id,
            "start_time": isoformat_utc(interval.start),
            "end_time": isoformat_utc(interval.end),
            "purpose": purpose,
            "status": reservation.status.value,
        },
    )
    return jsonify(reservation=reservation.to_dict(include_resource=True)), 201


@reservations_bp.get("/<int:reservation_id>")
@login_required
def get_reservation(reservation_id: int):
    reservation = db.session.get(Reservation, reservation_id)
    if not reservation:
        return jsonify(error="Reservation not found"), 404
    if not may_manage(reservation.user_id):
        return jsonify(error="Not allowed to view this reservation"), 403
    return jsonify(reservation=reservation.to_dict(include_resource=True)), 200


# ---------- MEMBERS: edit / reschedule ----------
@reservations_bp.patch("/<int:reservation_id>")
@login_required
def update_reservation(reservation_id: int):
    data = request.get_json(silent=True) or {}

    reservation = db.session.get(Reservation, reservation_id)
    if not reservation:
        return jsonify(error="Reservation not found"), 404
    if not may_manage(reservation.user_id):
        return jsonify(error="Not allowed to edit this reservation"), 403
    if not reservation.status.occupies_time:
        return jsonify(error="Cancelled reservations cannot be changed", code="RESERVATION_CANCELLED"), 409

    purpose = _read_purpose(data["purpose"]) if "purpose" in data else reservation.purpose
    notes = _read_notes(data["notes"]) if "notes" in data else reservation.notes

    current = reservation.interval
    moves = any(k in data for k in ("start_time", "end_time", "resource_id"))
    before = {
        "resource_id": reservation.resource_id,
        "start_time": isoformat_utc(current.start),
        "end_time": isoformat_utc(current.end),
        "purpose": reservation.purpose,
        "notes": reservation.notes,
    }

    if moves:
        interval = read_interval(
            data.get("start_time") or isoformat_utc(current.start),
            data.get("end_time") or isoformat_utc(current.end),
        )
        resource = get_bookable_resource(data.get("resource_id") or reservation.resource_id)

        verdict = conflict_resolver().check_overlaps(
            resource.id, interval.start, interval.end, exclude_id=reservation.id
        )
        if verdict.has_conflict:
            return _conflict_response(verdict)

        reservation.purpose = purpose
        reservation.notes = notes
        interval_store().reschedule_reservation(reservation, interval, resource_id=resource.id)
    else:
        reservation.purpose = purpose
        reservation.notes = notes
        db.session.commit()

    after = reservation.interval
    log_event(
        "UPDATE",
        user_id=g.user.id,
        entity_type="Reservation",
        entity_id=reservation.id,
        changes={
            "before": before,
            "after": {
                "resource_id": reservation.resource_id,
                "start_time": isoformat_utc(after.start),
                "end_time": isoformat_utc(after.end),
                "purpose": reservation.purpose,
                "notes": reservation.notes,
            },
        },
    )
    return jsonify(reservation=reservation.to_dict(include_resource=True)), 200


def cancel_and_log(reservation, reason):
    previous = reservation.status
    # InvalidTransition for already-cancelled reservations surfaces as a 409
    reservation.cancel(g.user.id, reason)
    db.session.commit()

    log_event(
        "CANCEL",
        user_id=g.user.id,
        entity_type="Reservation",
        entity_id=reservation.id,
        changes={
            "from_status": previous.value,
            "cancelled_at": isoformat_utc(reservation.cancelled_at),
            "cancel_reason": reason,
        },
    )
    current_app.logger.info("Reservation %s cancelled by user %s", reservation.id, g.user.id)
    return reservation


# ---------- MEMBERS: cancel (owner or admin) ----------
@reservations_bp.post("/<int:reservation_id>/cancel")
@login_required
def cancel_reservation(reservation_id: int):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip() or None
    return _cancel(reservation_id, reason)


@reservations_bp.delete("/<int:reservation_id>")
@login_required
def cancel_reservation_alias(reservation_id: int):
    reason = (request.args.get("reason") or "").strip() or None
    return _cancel(reservation_id, reason)


def _cancel(reservation_id, reason):
    reservation = db.session.get(Reservation, reservation_id)
    if not reservation:
        return jsonify(error="Reservation not found"), 404
    if not may_manage(reservation.user_id):
        return jsonify(error="Not allowed to cancel this reservation"), 403

    if reason is None:
        own = reservation.user_id == g.user.id
        reason = current_app.config.get("USER_CANCEL_REASON" if own else "ADMIN_CANCEL_REASON")

    cancel_and_log(reservation, reason)
    return jsonify(reservation=reservation.to_dict(include_resource=True)), 200

from datetime import datetime, timedelta, timezone
from flask import Blueprint, jsonify, g, request, current_app
from security.rbac import require_roles
from utils.audit import log_event
from models import db
from models.user import User, Role
from models.reservation import Reservation
from scheduling.status import ReservationStatus
from utils.payload import read_optional_int, read_flag
from utils.timefmt import isoformat_utc, to_storage, storage_now
from routes.reservations import cancel_and_log

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _user_dict(u):
    return {
        "id": u.id,
        "email": u.email,
        "name": u.name,
        "phone": u.phone,
        "roles": u.role_names,
        "is_active": u.is_active,
        "created_at": isoformat_utc(u.created_at),
    }


# ---------- ADMIN: all reservations ----------
@admin_bp.get("/reservations")
@require_roles("ADMIN")
def list_reservations():
    status = (request.args.get("status") or "").strip().upper()
    resource_id = read_optional_int(request.args.get("resource_id"), "resource_id")
    date_str = request.args.get("date")  # YYYY-MM-DD, UTC day

    q = Reservation.query
    if status:
        try:
            q = q.filter(Reservation.status == ReservationStatus(status))
        except ValueError:
            return jsonify(error="status must be PENDING, CONFIRMED or CANCELLED"), 400
    if resource_id is not None:
        q = q.filter(Reservation.resource_id == resource_id)

    if date_str:
        try:
            day = datetime.strptime(date_str, "%Y-%m-%d").replace(tzinfo=timezone.utc)
            next_day = day + timedelta(days=1)
        except (ValueError, OverflowError):
            return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400
        start = to_storage(day)
        end = to_storage(next_day)
        q = q.filter(Reservation.start_time < end, Reservation.end_time > start)

    rows = q.order_by(Reservation.start_time.asc()).limit(200).all()
    return jsonify(reservations=[r.to_dict(include_resource=True) for r in rows]), 200


@admin_bp.post("/reservations/<int:reservation_id>/confirm")
@require_roles("ADMIN")
def confirm_reservation(reservation_id: int):
    reservation = db.session.get(Reservation, reservation_id)
    if not reservation:
        return jsonify(error="Reservation not found"), 404

    previous = reservation.status
    reservation.confirm()
    db.session.commit()

    log_event(
        "UPDATE",
        user_id=g.user.id,
        entity_type="Reservation",
        entity_id=reservation.id,
        changes={"status": {"from": previous.value, "to": reservation.status.value}},
    )
    return jsonify(reservation=reservation.to_dict(include_resource=True)), 200


@admin_bp.post("/reservations/<int:reservation_id>/cancel")
@require_roles("ADMIN")
def admin_cancel_reservation(reservation_id: int):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip() or current_app.config.get("ADMIN_CANCEL_REASON")

    reservation = db.session.get(Reservation, reservation_id)
    if not reservation:
        return jsonify(error="Reservation not found"), 404

    cancel_and_log(reservation, reason)
    return jsonify(reservation=reservation.to_dict(include_resource=True)), 200


def _release_future_reservations(user, reason):
    """Cancel the upcoming reservations of a member who is being deactivated.

    Changes are left for the caller's commit so the user update and the
    cancellations land together. Returns (reservation, previous_status) pairs.
    """
    rows = (
        Reservation.query
        .filter(
            Reservation.user_id == user.id,
            Reservation.status != ReservationStatus.CANCELLED,
            Reservation.start_time >= storage_now(),
        )
        .order_by(Reservation.start_time.asc())
        .all()
    )
    released = []
    for reservation in rows:
        previous = reservation.status
        reservation.cancel(g.user.id, reason)
        released.append((reservation, previous))
    return released


# ---------- ADMIN: members ----------
@admin_bp.get("/users")
@require_roles("ADMIN")
def list_users():
    role_filter = (request.args.get("role") or "").strip().upper()
    q = User.query
    if role_filter:
        q = q.join(User.roles).filter(Role.name == role_filter)

    users = q.order_by(User.created_at.desc()).limit(200).all()
    return jsonify(users=[_user_dict(u) for u in users]), 200


@admin_bp.patch("/users/<int:user_id>")
@require_roles("ADMIN")
def update_user(user_id: int):
    data = request.get_json(silent=True) or {}
    user = db.session.get(User, user_id)
    if not user:
        return jsonify(error="User not found"), 404

    before = {"is_active": user.is_active, "roles": user.role_names}
    released = []

    if "is_active" in data:
        active = read_flag(data["is_active"])
        if user.id == g.user.id and not active:
            return jsonify(error="Cannot deactivate yourself"), 403
        if user.is_active and not active:
            reason = (data.get("reason") or "").strip() or current_app.config.get("DEACTIVATION_CANCEL_REASON")
            released = _release_future_reservations(user, reason)
        user.is_active = active

    if "is_admin" in data:
        make_admin = read_flag(data["is_admin"])
        admin_role = Role.query.filter_by(name="ADMIN").first()
        if admin_role is None:
            admin_role = Role(name="ADMIN")
            db.session.add(admin_role)
        if make_admin and admin_role not in user.roles:
            user.roles.append(admin_role)
        elif not make_admin and admin_role in user.roles:
            if user.id == g.user.id:
                return jsonify(error="Cannot remove your own ADMIN role"), 403
            admin_count = User.query.join(User.roles).filter(Role.name == "ADMIN").count()
            if admin_count <= 1:
                return jsonify(error="Cannot remove the last ADMIN"), 403
            user.roles.remove(admin_role)

    db.session.commit()

    for reservation, previous in released:
        log_event(
            "CANCEL",
            user_id=g.user.id,
            entity_type="Reservation",
            entity_id=reservation.id,
            changes={
                "from_status": previous.value,
                "cancelled_at": isoformat_utc(reservation.cancelled_at),
                "cancel_reason": reservation.cancel_reason,
                "owner_deactivated": user.id,
            },
        )

    log_event(
        "UPDATE",
        user_id=g.user.id,
        entity_type="User",
        entity_id=user.id,
        changes={
            "before": before,
            "after": {"is_active": user.is_active, "roles": user.role_names},
            "cancelled_reservations": len(released),
        },
    )
    if released:
        current_app.logger.info(
            "Deactivated user %s; cancelled %d future reservation(s)", user.id, len(released)
        )
    return jsonify(
        user=_user_dict(user),
        cancelled_reservations=[r.to_dict(include_resource=True) for r, _ in released],
    ), 200

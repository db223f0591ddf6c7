from flask import Blueprint, request, jsonify, g

from models import db
from models.event import Event, EventVisibility, visible_levels
from scheduling.errors import ResourceNotFound
from security.rbac import require_roles
from utils.audit import log_event
from utils.payload import BadPayload, read_instant, read_interval, read_flag
from utils.resources import find_resource
from utils.timefmt import isoformat_utc, to_storage, storage_now

events_bp = Blueprint("events", __name__, url_prefix="/events")


def _read_visibility(value, default):
    if value in (None, ""):
        return default
    try:
        return EventVisibility(str(value).strip().upper())
    except ValueError:
        raise BadPayload("visibility must be one of PUBLIC, MEMBERS, ADMIN")


def _read_resources(keys):
    if keys is None:
        return []
    if not isinstance(keys, list):
        raise BadPayload("resource_ids must be a list")
    resources = []
    for key in keys:
        resource = find_resource(key)
        if resource is None:
            raise ResourceNotFound(key)
        if resource not in resources:
            resources.append(resource)
    return resources


def _snapshot(event):
    return {
        "title": event.title,
        "visibility": event.visibility.value,
        "start_time": isoformat_utc(event.start_time),
        "end_time": isoformat_utc(event.end_time),
        "resource_ids": [r.id for r in event.resources],
    }


def _listing(levels):
    """Events at the given visibility levels, filtered by the request's query string."""
    start = request.args.get("start")
    end = request.args.get("end")
    include_expired = read_flag(request.args.get("include_expired"))

    q = Event.query.filter(Event.visibility.in_(levels))

    # events overlapping [start, end); either bound may be omitted
    if start and end:
        window = read_interval(start, end, "start", "end")
        q = q.filter(Event.end_time > to_storage(window.start), Event.start_time < to_storage(window.end))
    elif start:
        q = q.filter(Event.end_time > to_storage(read_instant(start, "start")))
    elif end:
        q = q.filter(Event.start_time < to_storage(read_instant(end, "end")))

    if not include_expired:
        q = q.filter(Event.end_time >= storage_now())
    return q


# ---------- PUBLIC: open calendar (no account needed) ----------
@events_bp.get("/public")
def public_events():
    rows = _listing([EventVisibility.PUBLIC]).order_by(Event.start_time.asc(), Event.id.asc()).all()
    return jsonify(events=[e.to_dict() for e in rows]), 200


# ---------- EVERYONE: events visible to the caller ----------
@events_bp.get("")
def list_events():
    user = getattr(g, "user", None)
    levels = [EventVisibility.PUBLIC] if read_flag(request.args.get("public")) else visible_levels(user)

    q = _listing(levels)
    resource_key = request.args.get("resource_id")
    if resource_key:
        resource = find_resource(resource_key)
        if resource is None:
            return jsonify(events=[]), 200
        q = q.filter(Event.resources.any(id=resource.id))

    rows = q.order_by(Event.start_time.asc(), Event.id.asc()).all()
    return jsonify(events=[e.to_dict() for e in rows]), 200


@events_bp.get("/<int:event_id>")
def get_event(event_id: int):
    event = db.session.get(Event, event_id)
    # hidden events look the same as missing ones
    if not event or event.visibility not in visible_levels(getattr(g, "user", None)):
        return jsonify(error="Event not found"), 404
    return jsonify(event=event.to_dict()), 200


# ---------- ADMIN: manage the club calendar ----------
@events_bp.post("")
@require_roles("ADMIN")
def create_event():
    data = request.get_json(silent=True) or {}
    title = (data.get("title") or "").strip()
    if not title:
        return jsonify(error="title is required"), 400
    if len(title) > 200:
        return jsonify(error="title may be at most 200 characters"), 400

    interval = read_interval(data.get("start_time"), data.get("end_time"))
    event = Event(
        title=title,
        description=(data.get("description") or "").strip() or None,
        start_time=to_storage(interval.start),
        end_time=to_storage(interval.end),
        visibility=_read_visibility(data.get("visibility"), EventVisibility.MEMBERS),
        created_by=g.user.id,
    )
    event.resources = _read_resources(data.get("resource_ids"))
    db.session.add(event)
    db.session.commit()

    log_event("CREATE", user_id=g.user.id, entity_type="Event", entity_id=event.id, changes=_snapshot(event))
    return jsonify(event=event.to_dict()), 201


@events_bp.patch("/<int:event_id>")
@require_roles("ADMIN")
def update_event(event_id: int):
    data = request.get_json(silent=True) or {}
    event = db.session.get(Event, event_id)
    if not event:
        return jsonify(error="Event not found"), 404

    before = _snapshot(event)
    current = event.start_time, event.end_time

    interval = read_interval(
        data.get("start_time") or isoformat_utc(current[0]),
        data.get("end_time") or isoformat_utc(current[1]),
    )
    if "title" in data:
        title = (data.get("title") or "").strip()
        if not title:
            return jsonify(error="title cannot be empty"), 400
        event.title = title
    if "description" in data:
        event.description = (data.get("description") or "").strip() or None
    if "visibility" in data:
        event.visibility = _read_visibility(data["visibility"], event.visibility)
    if "resource_ids" in data:
        event.resources = _read_resources(data["resource_ids"])
    event.start_time = to_storage(interval.start)
    event.end_time = to_storage(interval.end)
    db.session.commit()

    log_event(
        "UPDATE",
        user_id=g.user.id,
        entity_type="Event",
        entity_id=event.id,
        changes={"before": before, "after": _snapshot(event)},
    )
    return jsonify(event=event.to_dict()), 200


@events_bp.delete("/<int:event_id>")
@require_roles("ADMIN")
def delete_event(event_id: int):
    event = db.session.get(Event, event_id)
    if not event:
        return jsonify(error="Event not found"), 404

    snapshot = _snapshot(event)
    db.session.delete(event)
    db.session.commit()

    log_event("DELETE", user_id=g.user.id, entity_type="Event", entity_id=event_id, changes=snapshot)
    return jsonify(deleted_id=event_id), 200

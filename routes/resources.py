import re

from flask import Blueprint, request, jsonify, g
from sqlalchemy.exc import IntegrityError

from models import db
from models.resource import Resource
from security.rbac import require_roles
from utils.audit import log_event
from utils.auth_context import login_required
from utils.payload import read_flag

resources_bp = Blueprint("resources", __name__, url_prefix="/resources")

SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


@resources_bp.get("")
@login_required
def list_resources():
    q = Resource.query
    if read_flag(request.args.get("active_only")):
        q = q.filter(Resource.is_active.is_(True))
    rows = q.order_by(Resource.name.asc()).all()
    return jsonify(resources=[r.to_dict() for r in rows]), 200


# ---------- ADMIN: manage bookable resources ----------
@resources_bp.post("")
@require_roles("ADMIN")
def create_resource():
    data = request.get_json(silent=True) or {}
    slug = (data.get("slug") or "").strip().lower()
    name = (data.get("name") or "").strip()
    description = (data.get("description") or "").strip() or None

    if not slug or not name:
        return jsonify(error="slug and name are required"), 400
    if not SLUG_RE.match(slug):
        return jsonify(error="slug may only contain lowercase letters, digits and dashes"), 400

    resource = Resource(slug=slug, name=name, description=description, is_active=True)
    db.session.add(resource)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Resource slug already exists"), 409

    log_event("CREATE", user_id=g.user.id, entity_type="Resource", entity_id=resource.id,
              changes={"slug": slug, "name": name})
    return jsonify(resource=resource.to_dict()), 201


@resources_bp.patch("/<int:resource_id>")
@require_roles("ADMIN")
def update_resource(resource_id: int):
    data = request.get_json(silent=True) or {}
    resource = db.session.get(Resource, resource_id)
    if not resource:
        return jsonify(error="Resource not found"), 404

    before = {"name": resource.name, "description": resource.description, "is_active": resource.is_active}

    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            return jsonify(error="name cannot be empty"), 400
        resource.name = name
    if "description" in data:
        resource.description = (data.get("description") or "").strip() or None
    if "is_active" in data:
        # existing reservations stay; an inactive resource only refuses new bookings
        resource.is_active = read_flag(data["is_active"])
    db.session.commit()

    log_event("UPDATE", user_id=g.user.id, entity_type="Resource", entity_id=resource.id,
              changes={
                  "before": before,
                  "after": {"name": resource.name, "description": resource.description,
                            "is_active": resource.is_active},
              })
    return jsonify(resource=resource.to_dict()), 200

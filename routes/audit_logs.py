from flask import Blueprint, current_app, jsonify, request

from models.audit_log import AuditLog
from security.rbac import require_roles
from utils.audit import audit_row_to_dict

audit_bp = Blueprint("audit", __name__, url_prefix="/admin")

ENTITY_TYPES = {"Reservation", "Block", "Event", "Resource", "User"}


@audit_bp.get("/audit-logs")
@require_roles("ADMIN")
def list_audit_logs():
    default_limit = current_app.config.get("AUDIT_LOG_DEFAULT_LIMIT", 50)
    max_limit = current_app.config.get("AUDIT_LOG_MAX_LIMIT", 500)
    limit = request.args.get("limit", type=int) or default_limit
    limit = max(1, min(limit, max_limit))
    offset = max(0, request.args.get("offset", type=int) or 0)

    entity_type = request.args.get("entity_type")
    entity_id = request.args.get("entity_id")
    action = request.args.get("action")
    user_id = request.args.get("user_id", type=int)

    q = AuditLog.query
    if entity_type:
        q = q.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        q = q.filter(AuditLog.entity_id == entity_id)
    if action:
        q = q.filter(AuditLog.action == action.upper())
    if user_id is not None:
        q = q.filter(AuditLog.user_id == user_id)

    total = q.count()
    rows = (
        q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )

    return jsonify(
        logs=[audit_row_to_dict(r) for r in rows],
        total=total,
        has_more=offset + len(rows) < total,
    ), 200


@audit_bp.get("/audit-logs/<entity_type>/<entity_id>")
@require_roles("ADMIN")
def entity_history(entity_type: str, entity_id: str):
    if entity_type not in ENTITY_TYPES:
        return jsonify(error="Unknown entity type"), 400

    rows = (
        AuditLog.query
        .filter_by(entity_type=entity_type, entity_id=entity_id)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .all()
    )
    return jsonify(history=[audit_row_to_dict(r) for r in rows]), 200

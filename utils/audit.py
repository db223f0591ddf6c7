import json
import logging

from flask import has_request_context, request
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.audit_log import AuditLog
from utils.timefmt import isoformat_utc

logger = logging.getLogger(__name__)

AUDIT_ACTIONS = {"CREATE", "UPDATE", "CANCEL", "DELETE"}


def log_event(action: str, user_id=None, entity_type=None, entity_id=None, changes=None):
    """
    Record who did what to which entity. Fire-and-forget: a failure is
    logged and rolled back, never raised into the booking flow.
    """
    ip = None
    user_agent = None
    if has_request_context():
        ip = request.headers.get("X-Forwarded-For", request.remote_addr)
        user_agent = request.headers.get("User-Agent", "")

    try:
        row = AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            ip=ip,
            user_agent=user_agent[:255] if user_agent else None,
            changes_json=json.dumps(changes, default=str) if changes else None,
        )
        db.session.add(row)
        db.session.commit()
        return row
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Audit log write failed for %s %s %s", action, entity_type, entity_id)
        return None


def audit_row_to_dict(row):
    return {
        "id": row.id,
        "created_at": isoformat_utc(row.created_at),
        "user_id": row.user_id,
        "action": row.action,
        "entity_type": row.entity_type,
        "entity_id": row.entity_id,
        "ip": row.ip,
        "user_agent": row.user_agent,
        "changes": json.loads(row.changes_json) if row.changes_json else None,
    }

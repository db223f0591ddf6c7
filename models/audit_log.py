from models.db import db
from utils.timefmt import storage_now

class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True, index=True)  # actor; nullable for system events
    action = db.Column(db.String(20), nullable=False)  # CREATE, UPDATE, CANCEL, DELETE
    entity_type = db.Column(db.String(40), nullable=False)   # Reservation, Block, Event, Resource, User
    entity_id = db.Column(db.String(80), nullable=False)

    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    changes_json = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=storage_now, nullable=False, index=True)

    __table_args__ = (
        db.Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )

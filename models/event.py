from enum import Enum

from models.db import db
from utils.timefmt import storage_now, isoformat_utc


class EventVisibility(str, Enum):
    PUBLIC = "PUBLIC"     # anyone, also without an account
    MEMBERS = "MEMBERS"   # logged-in members
    ADMIN = "ADMIN"       # staff only


def visible_levels(user):
    """Visibility levels a viewer may see; user is None for anonymous callers."""
    if user is None:
        return [EventVisibility.PUBLIC]
    if user.is_admin:
        return list(EventVisibility)
    return [EventVisibility.PUBLIC, EventVisibility.MEMBERS]


# association table for many-to-many Event <-> Resource
event_resources = db.Table(
    "event_resources",
    db.Column("event_id", db.Integer, db.ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
    db.Column("resource_id", db.Integer, db.ForeignKey("resources.id"), primary_key=True),
)

class Event(db.Model):
    """Club calendar entry (clinic, competition, open day). Does not reserve the hall."""
    __tablename__ = "events"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)

    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime, nullable=False)

    visibility = db.Column(
        db.Enum(EventVisibility, native_enum=False, length=20, name="event_visibility"),
        nullable=False,
        default=EventVisibility.MEMBERS,
    )

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=storage_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=storage_now, onupdate=storage_now, nullable=False)

    resources = db.relationship("Resource", secondary=event_resources, order_by="Resource.name")
    creator = db.relationship("User")

    __table_args__ = (
        db.CheckConstraint("end_time > start_time", name="ck_events_interval"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "start_time": isoformat_utc(self.start_time),
            "end_time": isoformat_utc(self.end_time),
            "visibility": self.visibility.value,
            "resources": [{"id": r.id, "slug": r.slug, "name": r.name} for r in self.resources],
            "created_by": self.created_by,
            "created_by_name": self.creator.name if self.creator else None,
            "created_at": isoformat_utc(self.created_at),
            "updated_at": isoformat_utc(self.updated_at),
        }

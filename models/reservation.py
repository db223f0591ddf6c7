from models.db import db
from scheduling.intervals import TimeInterval
from scheduling.records import ReservationEntry
from scheduling.status import ReservationStatus, ensure_transition
from utils.timefmt import storage_now, from_storage, isoformat_utc

class Reservation(db.Model):
    __tablename__ = "reservations"

    id = db.Column(db.Integer, primary_key=True)

    resource_id = db.Column(db.Integer, db.ForeignKey("resources.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    start_time = db.Column(db.DateTime, nullable=False)
    end_time = db.Column(db.DateTime, nullable=False)

    purpose = db.Column(db.String(20), nullable=False)  # TRAINING, LESSON, OTHER
    notes = db.Column(db.String(500), nullable=True)

    status = db.Column(
        db.Enum(ReservationStatus, native_enum=False, length=20, name="reservation_status"),
        nullable=False,
        default=ReservationStatus.CONFIRMED,
    )

    created_at = db.Column(db.DateTime, default=storage_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=storage_now, onupdate=storage_now, nullable=False)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancelled_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    user = db.relationship("User", foreign_keys=[user_id])
    resource = db.relationship("Resource")

    __table_args__ = (
        db.CheckConstraint("end_time > start_time", name="ck_reservations_interval"),
        db.Index("ix_reservations_resource_window", "resource_id", "start_time", "end_time"),
    )

    @property
    def interval(self):
        return TimeInterval(from_storage(self.start_time), from_storage(self.end_time))

    def confirm(self):
        ensure_transition(self.status, ReservationStatus.CONFIRMED)
        self.status = ReservationStatus.CONFIRMED

    def cancel(self, actor_id, reason=None):
        ensure_transition(self.status, ReservationStatus.CANCELLED)
        self.status = ReservationStatus.CANCELLED
        self.cancelled_at = storage_now()
        self.cancelled_by = actor_id
        self.cancel_reason = reason

    def to_entry(self):
        return ReservationEntry(
            id=self.id,
            resource_id=self.resource_id,
            requester_id=self.user_id,
            requester_name=self.user.name if self.user else None,
            interval=self.interval,
            purpose=self.purpose,
            status=self.status,
            notes=self.notes,
        )

    def to_dict(self, include_resource=False):
        out = {
            "id": self.id,
            "resource_id": self.resource_id,
            "user_id": self.user_id,
            "requester_name": self.user.name if self.user else None,
            "start_time": isoformat_utc(self.start_time),
            "end_time": isoformat_utc(self.end_time),
            "purpose": self.purpose,
            "notes": self.notes,
            "status": self.status.value,
            "created_at": isoformat_utc(self.created_at),
            "updated_at": isoformat_utc(self.updated_at),
            "cancelled_at": isoformat_utc(self.cancelled_at),
            "cancel_reason": self.cancel_reason,
        }
        if include_resource and self.resource is not None:
            out["resource"] = self.resource.to_dict()
        return out

from models.db import db
from scheduling.intervals import TimeInterval
from scheduling.records import BlockEntry
from utils.timefmt import storage_now, from_storage, isoformat_utc

class Block(db.Model):
    __tablename__ = "blocks"

    id = db.Column(db.Integer, primary_key=True)

    resource_id = db.Column(db.Integer, db.ForeignKey("resources.id"), nullable=False, index=True)
    reason = db.Column(db.String(255), nullable=False)  # e.g. maintenance, private event

    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime, nullable=False)

    # stored for the admin UI; conflict checks only see start_time/end_time
    is_recurring = db.Column(db.Boolean, default=False, nullable=False)
    recurrence_rule = db.Column(db.String(255), nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=storage_now, nullable=False)

    resource = db.relationship("Resource")
    creator = db.relationship("User")

    __table_args__ = (
        db.CheckConstraint("end_time > start_time", name="ck_blocks_interval"),
    )

    @property
    def interval(self):
        return TimeInterval(from_storage(self.start_time), from_storage(self.end_time))

    def to_entry(self):
        return BlockEntry(
            id=self.id,
            resource_id=self.resource_id,
            reason=self.reason,
            interval=self.interval,
        )

    def to_dict(self):
        return {
            "id": self.id,
            "resource_id": self.resource_id,
            "reason": self.reason,
            "start_time": isoformat_utc(self.start_time),
            "end_time": isoformat_utc(self.end_time),
            "is_recurring": self.is_recurring,
            "recurrence_rule": self.recurrence_rule,
            "created_by": self.created_by,
            "created_by_name": self.creator.name if self.creator else None,
            "created_at": isoformat_utc(self.created_at),
        }

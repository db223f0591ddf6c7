from models.db import db
from utils.timefmt import storage_now, isoformat_utc

class Resource(db.Model):
    __tablename__ = "resources"

    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(80), unique=True, nullable=False, index=True)  # e.g. rijhal-binnen
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # Bumped by every booking write; the UPDATE doubles as the per-resource write lock
    booking_version = db.Column(db.Integer, default=0, nullable=False)

    created_at = db.Column(db.DateTime, default=storage_now, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "created_at": isoformat_utc(self.created_at),
        }

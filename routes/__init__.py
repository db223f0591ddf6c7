from flask import Blueprint, jsonify

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health():
    return jsonify(status="ok"), 200


from .reservations import reservations_bp  # noqa: E402
from .blocks import blocks_bp  # noqa: E402
from .resources import resources_bp  # noqa: E402
from .admin import admin_bp  # noqa: E402
from .audit_logs import audit_bp  # noqa: E402
from .events import events_bp  # noqa: E402

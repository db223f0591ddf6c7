from functools import wraps
from flask import current_app, g, jsonify, request

from models import db
from models.user import User

def load_current_user():
    # Identity comes from the upstream auth proxy; this service never sees credentials.
    header = current_app.config.get("AUTH_USER_HEADER", "X-User-Id")
    raw = (request.headers.get(header) or "").strip()
    g.user = None
    if not raw.isdigit():
        return
    user = db.session.get(User, int(raw))
    if user is not None and user.is_active:
        g.user = user

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper

from functools import wraps
from flask import g, jsonify

ADMIN_ROLE = "ADMIN"

def current_role_names() -> set:
    user = getattr(g, "user", None)
    if not user:
        return set()
    return {r.name for r in user.roles}

def is_admin() -> bool:
    return ADMIN_ROLE in current_role_names()

def may_manage(owner_user_id) -> bool:
    """Owners manage their own reservations; admins manage everyone's."""
    user = getattr(g, "user", None)
    if user is None:
        return False
    return user.id == owner_user_id or is_admin()

def require_roles(*role_names: str):
    """
    Usage: @require_roles("ADMIN")
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if getattr(g, "user", None) is None:
                return jsonify(error="Authentication required"), 401
            if not current_role_names().intersection(role_names):
                return jsonify(error="Forbidden"), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator

# Overview: Request identity decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .extensions import db
from .models import User


ADMIN_ROLES = {"admin", "super_admin"}


def _load_actor():
    """
    Resolve the caller from gateway headers.

    The auth gateway in front of this service validates tokens and forwards
    X-Actor-Id / X-Actor-Role. Returns (user, error_response).
    """
    raw_id = request.headers.get("X-Actor-Id")
    if not raw_id:
        return None, (jsonify({"error": "Authentication required"}), 401)
    try:
        actor_id = int(raw_id)
    except ValueError:
        return None, (jsonify({"error": "Invalid actor id"}), 401)

    user = db.session.get(User, actor_id)
    if user is None or not user.is_active:
        return None, (jsonify({"error": "Invalid or expired session"}), 401)
    if user.account_status != "active":
        return None, (jsonify({"error": "Account suspended"}), 403)
    return user, None


def optional_actor(f):
    """
    Set g.current_user when identity headers are present, else None.

    Used by routes that serve both guests and signed-in customers.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.current_user = None
        if request.headers.get("X-Actor-Id"):
            user, error = _load_actor()
            if error:
                return error
            g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_actor(f):
    """
    Require a known, active caller.

    SECURITY: Returns 401 if the identity header is missing or names a
    deleted user, 403 if the account is suspended.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user, error = _load_actor()
        if error:
            return error
        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """
    Require an admin caller.

    The stored role is authoritative; X-Actor-Role must agree with it.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user, error = _load_actor()
        if error:
            return error
        claimed_role = request.headers.get("X-Actor-Role")
        if user.role not in ADMIN_ROLES or (claimed_role and claimed_role != user.role):
            return jsonify({"error": "Access denied"}), 403
        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function

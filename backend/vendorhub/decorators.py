# Overview: Request decorators establishing the acting user for API routes.

from functools import wraps
from flask import request, jsonify, g

from .models import USER_ROLES

# "system" is an internal caller (workers, CLI) with no user row
ACTOR_ROLES = USER_ROLES + ("system",)


def require_actor(f):
    """
    Require an authenticated actor, as asserted by the upstream authenticator.

    Sets on Flask g:
    - g.actor_id: int user id (None for the 'system' role)
    - g.actor_role: one of ACTOR_ROLES

    Returns 401 if the identity headers are missing or malformed.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        role = (request.headers.get("X-Actor-Role") or "").strip().lower()
        raw_id = (request.headers.get("X-Actor-Id") or "").strip()

        if role not in ACTOR_ROLES:
            return jsonify({"error": "Authentication required"}), 401

        actor_id = None
        if raw_id:
            if not raw_id.isdigit():
                return jsonify({"error": "Invalid actor id"}), 401
            actor_id = int(raw_id)
        elif role != "system":
            return jsonify({"error": "Authentication required"}), 401

        g.actor_id = actor_id
        g.actor_role = role
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require the actor to hold one of roles. Must be applied after @require_actor.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if g.actor_role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                }), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator

# Overview: Request and permission decorators for API routes.

import logging
from functools import wraps
from flask import request, jsonify, g

from .services import session_service
from .services.auth_service import Actor
from .permissions import has_permission

logger = logging.getLogger(__name__)


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'actor')


def require_auth(f):
    """
    Require a valid bearer token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.actor: Actor (id, role, display name) passed to the engines

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid or expired token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "UNAUTHENTICATED", "message": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]

        user = session_service.validate_session(token)
        if not user:
            return jsonify({"error": "UNAUTHENTICATED", "message": "Invalid or expired token"}), 401

        g.current_user = user
        g.actor = Actor.from_user(user)
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Require a specific permission for the signed-in user's role."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "UNAUTHENTICATED", "message": "Authentication required"}), 401

            if not has_permission(g.actor.role, permission_code):
                logger.warning(
                    "Permission denied: user %s (%s) lacks %s for %s %s",
                    g.actor.id, g.actor.role, permission_code, request.method, request.path,
                )
                return jsonify({
                    "error": "PERMISSION_DENIED",
                    "message": f"Requires permission {permission_code}",
                    "details": {"required_permission": permission_code},
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def can(permission_code: str) -> bool:
    """Inline permission check for routes that shape output by role."""
    return _is_authenticated() and has_permission(g.actor.role, permission_code)

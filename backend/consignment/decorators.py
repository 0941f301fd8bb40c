# Overview: Request decorators for API routes (authentication and admin gate).

from functools import wraps
from flask import request, jsonify, g

from .services import session_service
from .errors import UnauthenticatedError, ForbiddenError


def _unauthenticated(message: str):
    return jsonify(UnauthenticatedError(message).to_dict()), 401


def require_auth(f):
    """
    Require a valid bearer token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.caller: The Caller (role + partner identity) used by the access policy

    Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account (or its partner) deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return _unauthenticated("Authentication required")

        token = auth_header.split(" ", 1)[1]

        context = session_service.validate_session(token)
        if not context:
            return _unauthenticated("Invalid or expired token")

        g.current_user = context.user
        g.caller = context.caller
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require the authenticated caller to be ADMIN. Use after @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not hasattr(g, "caller"):
            return _unauthenticated("Authentication required")
        if not g.caller.is_admin:
            return jsonify(ForbiddenError("Access denied. Administrators only.").to_dict()), 403
        return f(*args, **kwargs)
    return decorated_function

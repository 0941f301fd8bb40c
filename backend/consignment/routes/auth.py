# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import auth_service, session_service
from ..errors import ConsignmentError, UnauthenticatedError, ValidationError, UNEXPECTED_ERROR_BODY
from ..access import Role
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            raise ValidationError("email and password required")

        user = auth_service.authenticate(email, password)
        if not user:
            raise UnauthenticatedError("Invalid credentials")

        _session, token = session_service.create_session(user.id)

        return jsonify({"token": token, "user": user.to_dict()}), 200

    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.token)
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@auth_bp.post("/setup-admin")
def setup_admin_route():
    """
    Create the first ADMIN account. Disabled once any admin exists.
    """
    try:
        if auth_service.admin_exists():
            raise ValidationError("Admin already exists")

        data = request.get_json(silent=True) or {}
        user = auth_service.create_user(
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
            role=Role.ADMIN,
        )
        current_app.logger.info("Initial admin %s created", user.email)
        return jsonify({"user": user.to_dict()}), 201

    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create admin")
        return jsonify(UNEXPECTED_ERROR_BODY), 500

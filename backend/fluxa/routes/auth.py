# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/fluxa/routes/auth.py
"""
User account and session routes.

Login returns an opaque bearer token; protected routes expect it in the
Authorization header ("Bearer <token>").
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.auth_service import PasswordValidationError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/users")


@auth_bp.post("/register")
def register_route():
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")

    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    try:
        user = auth_service.register_user(email, password)
    except (ValidationError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Registration failed")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("Registered user %s", user.id)
    return jsonify({"user": user.to_dict()}), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Returns user info and session token on success.
    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            current_app.logger.warning("Failed login for %s from %s", email, request.remote_addr)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "expires_at": session.to_dict()["expires_at"],
        }), 200

    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token, reason="User logout")
    return jsonify({"message": "Logged out successfully"}), 200


@auth_bp.get("/profile")
@require_auth
def profile_route():
    return jsonify({"user": g.current_user.to_dict()}), 200

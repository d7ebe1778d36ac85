# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def require_auth(f):
    """
    Require a valid bearer session.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_token: The plaintext token of this request (used by logout)

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, revoked or expired token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        user = session_service.validate_session(token)
        if not user:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function

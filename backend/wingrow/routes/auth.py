# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/wingrow/routes/auth.py
"""
Authentication API routes

- Register with userId/password and a role (organizer by default)
- Login returns an opaque bearer token for the Authorization header
- Logout revokes the presented token
"""

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth
from ..errors import UnauthorizedError, ValidationError
from ..services import auth_service, session_service
from ..time_utils import to_utc_z
from ..validation import require_object


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Create an account.

    Body: {userId, password, role?}   role is "organizer" (default) or "manager"
    """
    data = require_object(request.get_json(silent=True))
    username = data.get("userId") or data.get("username")
    password = data.get("password")

    if not username or not password:
        raise ValidationError("userId and password required")

    user = auth_service.create_user(str(username), str(password), data.get("role") or "organizer")
    current_app.logger.info("Registered %s as %s", user.username, user.role)
    return {"ok": True, "user": user.to_dict()}, 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    data = require_object(request.get_json(silent=True))
    username = data.get("userId") or data.get("username")
    password = data.get("password")

    if not username or not password:
        raise ValidationError("userId and password required")

    user = auth_service.authenticate(str(username), str(password))
    if not user:
        raise UnauthorizedError("Invalid credentials")

    session, token = session_service.create_session(user)

    return {
        "ok": True,
        "token": token,
        "user": user.to_dict(),
        "expiresAt": to_utc_z(session.expires_at),
    }, 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return {"user": g.current_user.to_dict()}, 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    token = request.headers["Authorization"].split(" ", 1)[1].strip()
    session_service.revoke_session(token)
    return {"ok": True}, 200

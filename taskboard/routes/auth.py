"""
Authentication API endpoints.

Handles account creation, login, token refresh, profile management and
logout.  Login and registration return a signed RS256 auth token plus a
longer-lived refresh token; both are tracked server-side so logout can
revoke them.

Endpoints:
    POST /api/auth/register  - Create a new user and open a session
    POST /api/auth/login     - Authenticate by email and password
    POST /api/auth/refresh   - Exchange a refresh token for an auth token
    GET  /api/auth/me        - Current user's profile
    PUT  /api/auth/profile   - Update username and/or email
    PUT  /api/auth/password  - Change password
    POST /api/auth/logout    - Revoke the presented token(s)
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, g, request

from ..auth import require_auth
from ..errors import ValidationError, field_error
from ..rate_limit import rate_limit
from ..services import accounts
from ..validation import (
    validate_login,
    validate_password_change,
    validate_profile_update,
    validate_registration,
)
from . import envelope, json_body

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/register", methods=["POST"])
@rate_limit("auth")
def register() -> tuple[Response, int]:
    """
    Register a new user account.

    Expects JSON with ``username``, ``email`` and ``password``.  Every
    failing field is reported in ``errors``; a taken username or email
    yields 409.
    """
    fields = validate_registration(request.get_json(silent=True))
    session = accounts.register(fields["username"], fields["email"], fields["password"])
    return envelope(session.to_dict(), "User registered successfully", 201)


@auth_bp.route("/login", methods=["POST"])
@rate_limit("auth")
def login() -> tuple[Response, int]:
    """
    Authenticate and return a session.

    Unknown email, wrong password and deactivated account all produce the
    same 401 so the response never reveals which accounts exist.
    """
    email, password = validate_login(request.get_json(silent=True))
    session = accounts.login(email, password)
    return envelope(session.to_dict(), "Login successful")


@auth_bp.route("/refresh", methods=["POST"])
@rate_limit("auth")
def refresh() -> tuple[Response, int]:
    data = json_body()
    refresh_token = data.get("refreshToken")
    if not isinstance(refresh_token, str) or not refresh_token:
        raise ValidationError(errors=[field_error("refreshToken", "Refresh token is required")])
    token = accounts.refresh(refresh_token)
    return envelope({"token": token}, "Token refreshed")


@auth_bp.route("/me", methods=["GET"])
@rate_limit("api")
@require_auth
def me() -> tuple[Response, int]:
    return envelope({"user": g.current_user.to_dict()})


@auth_bp.route("/profile", methods=["PUT"])
@rate_limit("api")
@require_auth
def update_profile() -> tuple[Response, int]:
    """Partially update the caller's username and/or email."""
    changes = validate_profile_update(request.get_json(silent=True))
    user = accounts.update_profile(g.current_user, changes)
    return envelope({"user": user.to_dict()}, "Profile updated successfully")


@auth_bp.route("/password", methods=["PUT"])
@rate_limit("auth")
@require_auth
def change_password() -> tuple[Response, int]:
    """
    Change the caller's password.

    Expects ``currentPassword`` and ``newPassword``.  A wrong current
    password is a 401 and leaves the stored hash untouched.
    """
    current_password, new_password = validate_password_change(request.get_json(silent=True))
    accounts.change_password(g.current_user, current_password, new_password)
    return envelope(message="Password changed successfully")


@auth_bp.route("/logout", methods=["POST"])
@rate_limit("api")
@require_auth
def logout() -> tuple[Response, int]:
    """
    Revoke the bearer token and, when supplied, the ``refreshToken``.

    After this call the same bearer token is rejected with 401.
    """
    data = request.get_json(silent=True)
    refresh_token = data.get("refreshToken") if isinstance(data, dict) else None
    accounts.logout(g.token_claims, refresh_token if isinstance(refresh_token, str) else None)
    logger.info("User logged out: user_id=%s", g.user_id)
    return envelope(message="Logged out successfully")

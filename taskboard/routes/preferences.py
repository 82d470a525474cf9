"""
Per-user preferences.

Endpoints:
    GET /api/preferences  - Read ``{theme, notifications}``
    PUT /api/preferences  - Merge-update preferences
"""

from __future__ import annotations

from flask import Blueprint, Response, g, request

from ..auth import require_auth
from ..rate_limit import rate_limit
from ..services import accounts
from ..validation import validate_preferences
from . import envelope

preferences_bp = Blueprint("preferences", __name__)


@preferences_bp.route("", methods=["GET"])
@rate_limit("api")
@require_auth
def get_preferences() -> tuple[Response, int]:
    return envelope({"preferences": accounts.get_preferences(g.current_user)})


@preferences_bp.route("", methods=["PUT"])
@rate_limit("api")
@require_auth
def update_preferences() -> tuple[Response, int]:
    """
    Merge the request body into stored preferences.

    ``notifications`` is merged flag by flag; a body of
    ``{"notifications": {"push": true}}`` leaves ``email`` and
    ``dueDateReminders`` as they were.
    """
    patch = validate_preferences(request.get_json(silent=True))
    preferences = accounts.update_preferences(g.current_user, patch)
    return envelope({"preferences": preferences}, "Preferences updated successfully")

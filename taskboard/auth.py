"""
Request gating for protected endpoints.

Provides bearer-token extraction and the ``require_auth`` decorator that
every task, profile and preference endpoint is wrapped in.  On success the
authenticated identity is stored on ``flask.g`` so route handlers never
re-parse the token.

Key Concepts Demonstrated:
- Decorator pattern for endpoint authentication (``require_auth``)
- Using ``flask.g`` to store request-scoped user identity
- Collapsing expired and invalid tokens into one unauthenticated outcome
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import wraps

from flask import g, request

from .errors import Unauthorized
from .store import UserStore
from .tokens import TokenError, TokenExpired, verify_token

logger = logging.getLogger(__name__)


def extract_bearer_token() -> str | None:
    """
    Extract the Bearer token from the current request's Authorization header.

    Returns:
        The raw JWT string, or ``None`` if the header is absent, malformed,
        or empty after stripping whitespace.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header[7:].strip()
    return token or None


def require_auth(view_func: Callable):
    """
    Decorator that enforces Bearer-token authentication on API endpoints.

    Verifies the token (signature, ``exp``, stored record and retention),
    then loads the user; inactive or vanished users are rejected just like
    a bad token.  On success ``g.user_id``, ``g.username``,
    ``g.current_user`` and ``g.token_claims`` are populated.

    Raises:
        Unauthorized: Missing header, invalid or expired token, or an
            inactive account.
    """

    @wraps(view_func)
    def wrapper(*args, **kwargs):
        token = extract_bearer_token()
        if token is None:
            raise Unauthorized("Missing or invalid Authorization header")

        try:
            claims = verify_token(token)
        except TokenExpired:
            raise Unauthorized("Token has expired") from None
        except TokenError:
            raise Unauthorized("Invalid token") from None

        user = UserStore().get(claims["user_id"])
        if user is None or not user.is_active:
            logger.warning("Rejected token for unknown or inactive user_id=%s", claims["user_id"])
            raise Unauthorized("User no longer has access")

        g.user_id = user.id
        g.username = user.username
        g.current_user = user
        g.token_claims = claims
        return view_func(*args, **kwargs)

    return wrapper

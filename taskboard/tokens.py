"""
Bearer token issuing and verification.

Tokens are JSON Web Tokens signed with RS256 (RSA-SHA256): only this
application holds the private key, while anything that merely needs to
check a token can do so with the public key.

Token structure (claims):
    - ``user_id``  -- integer primary key of the user.
    - ``username`` / ``email`` -- carried for convenience so clients can
      display identity without a round-trip.
    - ``type``     -- ``auth`` for request authentication, ``refresh`` for
      obtaining new auth tokens.
    - ``jti``      -- unique token id; keys the server-side ``Token`` record.
    - ``iat`` / ``exp`` -- issued-at and expiration (UTC epoch seconds).

A token is usable only while BOTH hold: its ``exp`` claim is in the future
and its stored record exists and is younger than the retention window
(``TOKEN_RETENTION_DAYS``).  Deleting the record (logout) revokes it.

Key Concepts Demonstrated:
- RS256 asymmetric signing with PyJWT
- Canonical JWT claims (iat, exp, jti) and custom claims
- Distinguishing expired from invalid tokens
- Server-side revocation list keyed by ``jti``
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from flask import current_app

from .models import Token, TokenType, User, ensure_utc
from .store import TokenStore

logger = logging.getLogger(__name__)

ALGORITHM = "RS256"
# ``pyjwt.decode`` rejects tokens missing any of these before we look at them.
REQUIRED_TOKEN_CLAIMS = ["user_id", "username", "type", "jti", "iat", "exp"]


class TokenError(Exception):
    """Base class for token verification failures."""


class TokenExpired(TokenError):
    """Well-formed token past its ``exp`` claim or the retention window."""


class TokenInvalid(TokenError):
    """Malformed, tampered, revoked or wrong-type token."""


def _lifetime(token_type: str) -> timedelta:
    if token_type == TokenType.REFRESH.value:
        return timedelta(days=int(current_app.config["REFRESH_TOKEN_EXPIRY_DAYS"]))
    return timedelta(hours=int(current_app.config["JWT_EXPIRY_HOURS"]))


def _retention() -> timedelta:
    return timedelta(days=int(current_app.config.get("TOKEN_RETENTION_DAYS", 7)))


def create_token(
    user_id: int,
    username: str,
    email: str,
    private_key: str,
    expires_in: timedelta,
    token_type: str = TokenType.AUTH.value,
    jti: str | None = None,
) -> str:
    """
    Create an RS256-signed JWT containing the identity claims.

    Args:
        user_id: Primary key of the user.  Must be positive.
        username: Display name of the user.  Must be non-blank.
        email: Email address of the user.
        private_key: RSA private key in PEM format.
        expires_in: Lifetime of the token from *now*.
        token_type: ``"auth"`` or ``"refresh"``.
        jti: Token id; generated when omitted.

    Returns:
        A compact JWS string (``header.payload.signature``).

    Raises:
        ValueError: If *user_id* is not positive or *username* is blank.
    """
    if int(user_id) <= 0:
        raise ValueError("user_id must be a positive integer")
    if not isinstance(username, str) or not username.strip():
        raise ValueError("username must be a non-empty string")

    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "user_id": int(user_id),
        "username": username,
        "email": email,
        "type": token_type,
        "jti": jti or uuid.uuid4().hex,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_in).timestamp()),
    }
    return jwt.encode(payload, private_key, algorithm=ALGORITHM)


def decode_token(token: str, public_key: str, leeway: int = 30) -> dict[str, Any]:
    """
    Verify signature, expiry and required claims of *token*.

    Raises:
        TokenExpired: The token is genuine but its ``exp`` has passed.
        TokenInvalid: Anything else -- bad signature, malformed input,
            missing claims, nonsensical identity values.
    """
    try:
        payload = jwt.decode(
            token,
            public_key,
            algorithms=[ALGORITHM],
            options={"require": REQUIRED_TOKEN_CLAIMS},
            leeway=leeway,
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenExpired("Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise TokenInvalid("Token is invalid") from exc

    if not isinstance(payload.get("user_id"), int) or payload["user_id"] <= 0:
        raise TokenInvalid("Invalid user_id claim")
    if not isinstance(payload.get("username"), str) or not payload["username"].strip():
        raise TokenInvalid("Invalid username claim")
    return payload


def issue_token(user: User, token_type: str = TokenType.AUTH.value) -> str:
    """
    Issue a signed token for *user* and record it server-side.

    The ``Token`` row is what makes later revocation (logout) and the
    retention cutoff possible.
    """
    lifetime = _lifetime(token_type)
    jti = uuid.uuid4().hex
    token = create_token(
        user_id=user.id,
        username=user.username,
        email=user.email,
        private_key=current_app.config["JWT_PRIVATE_KEY"],
        expires_in=lifetime,
        token_type=token_type,
        jti=jti,
    )
    now = datetime.now(timezone.utc)
    TokenStore().insert(
        Token(jti=jti, user_id=user.id, type=token_type, expires=now + lifetime, created_at=now),
        owner=user.id,
    )
    logger.info("Issued %s token for user_id=%s", token_type, user.id)
    return token


def verify_token(token: str, expected_type: str = TokenType.AUTH.value) -> dict[str, Any]:
    """
    Fully verify a presented bearer token.

    Checks the JWT itself (``decode_token``), then the stored record:
    it must exist (not revoked), match the expected type, and be younger
    than the retention window.

    Returns:
        The decoded claims.

    Raises:
        TokenExpired: ``exp`` passed or the record outlived retention.
        TokenInvalid: Malformed, tampered, revoked or wrong-type token.
    """
    claims = decode_token(
        token,
        current_app.config["JWT_PUBLIC_KEY"],
        leeway=int(current_app.config.get("JWT_CLOCK_SKEW_SECONDS", 30)),
    )
    if claims["type"] != expected_type:
        raise TokenInvalid(f"Expected a {expected_type} token")

    record = TokenStore().by_jti(claims["jti"])
    if record is None or record.user_id != claims["user_id"]:
        raise TokenInvalid("Token has been revoked")
    if ensure_utc(record.created_at) + _retention() < datetime.now(timezone.utc):
        raise TokenExpired("Token is past its retention window")
    return claims


def revoke_token(claims: dict[str, Any]) -> bool:
    """Delete the stored record behind *claims*; return whether one existed."""
    removed = TokenStore().delete_where(
        Token.jti == claims["jti"], owner=claims.get("user_id")
    )
    if removed:
        logger.info("Revoked %s token for user_id=%s", claims.get("type"), claims.get("user_id"))
    return bool(removed)


def purge_expired_tokens(now: datetime | None = None) -> int:
    """Remove token records past their ``expires`` or the retention window."""
    now = now or datetime.now(timezone.utc)
    store = TokenStore()
    removed = store.delete_where(
        (Token.expires < now) | (Token.created_at < now - _retention()),
        reason="purge",
    )
    logger.info("Purged %s expired token records", removed)
    return removed

"""
Account service: registration, login, profile and session lifecycle.

Per request the caller is either anonymous or authenticated::

    Anonymous --register|login--> Authenticated --logout--> Anonymous

Login failures are reported as ``InvalidCredentials`` whether the email is
unknown, the password is wrong or the account is deactivated, so the
response never reveals which accounts exist.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any

from ..errors import Conflict, InvalidCredentials, Unauthorized
from ..models import TokenType, User, default_preferences
from ..store import UserStore
from ..tokens import TokenError, issue_token, revoke_token, verify_token

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """A freshly authenticated user together with their tokens."""

    user: User
    token: str
    refresh_token: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "user": self.user.to_dict(),
            "token": self.token,
            "refreshToken": self.refresh_token,
        }


def _start_session(user: User) -> Session:
    return Session(
        user=user,
        token=issue_token(user, TokenType.AUTH.value),
        refresh_token=issue_token(user, TokenType.REFRESH.value),
    )


def _ensure_unique(store: UserStore, *, username: str | None, email: str | None, user_id: int | None = None) -> None:
    if username is not None:
        existing = store.by_username(username)
        if existing is not None and existing.id != user_id:
            raise Conflict("Username already exists")
    if email is not None:
        existing = store.by_email(email)
        if existing is not None and existing.id != user_id:
            raise Conflict("Email already exists")


def register(username: str, email: str, password: str) -> Session:
    """
    Create a user and open a session for them.

    Inputs are expected to be validated already (see
    ``validation.validate_registration``).

    Raises:
        Conflict: Username or email is taken.
    """
    store = UserStore()
    _ensure_unique(store, username=username, email=email)

    user = User(username=username, email=email, preferences=default_preferences())
    user.set_password(password)
    store.insert(user)
    logger.info("Registered user_id=%s", user.id)
    return _start_session(user)


def login(email: str, password: str) -> Session:
    """
    Authenticate by email and password.

    Raises:
        InvalidCredentials: Unknown email, wrong password, or inactive
            account.  No token is issued in any of these cases.
    """
    user = UserStore().by_email(email)
    if user is None or not user.check_password(password) or not user.is_active:
        logger.info("Failed login attempt")
        raise InvalidCredentials()
    logger.info("User logged in: user_id=%s", user.id)
    return _start_session(user)


def refresh(refresh_token: str) -> str:
    """
    Exchange a refresh token for a new auth token.

    Raises:
        Unauthorized: The refresh token is invalid, expired or revoked, or
            its user is gone or inactive.
    """
    try:
        claims = verify_token(refresh_token, expected_type=TokenType.REFRESH.value)
    except TokenError as exc:
        raise Unauthorized("Invalid refresh token") from exc
    user = get_current_user(claims["user_id"])
    return issue_token(user, TokenType.AUTH.value)


def get_current_user(user_id: int) -> User:
    user = UserStore().get(user_id)
    if user is None or not user.is_active:
        raise Unauthorized("User no longer has access")
    return user


def update_profile(user: User, changes: dict[str, str]) -> User:
    """
    Partially update username and/or email.

    Raises:
        Conflict: The new username or email belongs to another user.
    """
    store = UserStore()
    _ensure_unique(
        store,
        username=changes.get("username"),
        email=changes.get("email"),
        user_id=user.id,
    )
    if store.update(user, changes, owner=user.id):
        logger.info("Updated profile for user_id=%s fields=%s", user.id, sorted(changes))
    return user


def change_password(user: User, current_password: str, new_password: str) -> None:
    """
    Replace the user's password.

    Raises:
        InvalidCredentials: *current_password* does not match.
    """
    if not user.check_password(current_password):
        raise InvalidCredentials("Current password is incorrect")
    user.set_password(new_password)
    UserStore().save(user, owner=user.id)
    logger.info("Password changed for user_id=%s", user.id)


def logout(claims: dict[str, Any], refresh_token: str | None = None) -> None:
    """
    Revoke the presented auth token and, optionally, a refresh token.

    A refresh token that does not verify or belongs to someone else is
    ignored; discarding the token client-side is the client's job.
    """
    revoke_token(claims)
    if refresh_token:
        try:
            refresh_claims = verify_token(refresh_token, expected_type=TokenType.REFRESH.value)
        except TokenError:
            return
        if refresh_claims["user_id"] == claims["user_id"]:
            revoke_token(refresh_claims)


def get_preferences(user: User) -> dict[str, Any]:
    return copy.deepcopy(user.preferences or default_preferences())


def update_preferences(user: User, patch: dict[str, Any]) -> dict[str, Any]:
    """
    Merge *patch* into the stored preferences.

    ``theme`` is replaced when given; ``notifications`` is merged key by
    key so flags the client did not mention keep their values.
    """
    preferences = get_preferences(user)
    if "theme" in patch:
        preferences["theme"] = patch["theme"]
    if "notifications" in patch:
        preferences["notifications"] = {
            **preferences.get("notifications", {}),
            **patch["notifications"],
        }
    UserStore().update(user, {"preferences": preferences}, owner=user.id)
    return preferences

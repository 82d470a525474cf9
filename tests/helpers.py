"""Test helper functions shared across the Taskboard test suites."""

from __future__ import annotations

from datetime import timedelta

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from taskboard.tokens import create_token

DEFAULT_PASSWORD = "Secret123"


def _generate_rsa_key_pair() -> tuple[str, str]:
    """Generate an in-memory RSA private/public key pair as PEM strings."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")
    return private_pem, public_pem


# Generated once per test process and handed to the app through TEST_JWT_* vars.
TEST_PRIVATE_KEY, TEST_PUBLIC_KEY = _generate_rsa_key_pair()


def generate_throwaway_key_pair() -> tuple[str, str]:
    """Generate a fresh RSA key pair for forged-signature tests."""
    return _generate_rsa_key_pair()


def forge_token(
    user,
    *,
    private_key: str = TEST_PRIVATE_KEY,
    expires_in: timedelta = timedelta(hours=1),
    token_type: str = "auth",
    jti: str | None = None,
) -> str:
    """Sign a token for *user* without recording it server-side."""
    return create_token(
        user_id=user.id,
        username=user.username,
        email=user.email,
        private_key=private_key,
        expires_in=expires_in,
        token_type=token_type,
        jti=jti,
    )


def auth_headers(token: str) -> dict[str, str]:
    """Build common JSON API headers with bearer token auth."""
    return {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }

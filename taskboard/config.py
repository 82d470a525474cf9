"""
Configuration for the Taskboard application.

Provides environment-aware configuration classes following Flask's
recommended pattern: a shared ``Config`` base class holds defaults, and
environment-specific subclasses (``DevelopmentConfig``, ``TestingConfig``,
``ProductionConfig``) override only what differs.  The ``get_config``
factory resolves the correct class at runtime based on an environment
variable or an explicit argument.

Key Concepts Demonstrated:
- Inheritance-based configuration hierarchy
- Environment variable overrides with sensible defaults
- Separate database for testing to protect development data
- JWT key loading from raw PEM content or key files
- Rate-limit and pagination settings in one place
"""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
DEV_KEYS_DIR = BASE_DIR / "keys"


def _load_key(raw_env_var: str, path_env_var: str, default_path: Path | None = None) -> str:
    """
    Load a PEM key from a raw environment variable, a file-path variable,
    or *default_path* (the key pair written by ``keys/generate.py``).

    The raw PEM variable wins so orchestrators can inject secrets without
    mounting files.
    """
    raw_key = os.environ.get(raw_env_var, "").strip()
    if raw_key:
        return raw_key

    key_path = os.environ.get(path_env_var, "").strip()
    if not key_path and default_path is not None and default_path.exists():
        key_path = str(default_path)
    if key_path:
        try:
            return Path(key_path).read_text(encoding="utf-8")
        except OSError as exc:
            raise RuntimeError(
                f"Unable to read JWT key file at '{key_path}' from {path_env_var}."
            ) from exc

    raise RuntimeError(
        f"Missing JWT key configuration: set {raw_env_var} or {path_env_var}, "
        "or run keys/generate.py."
    )


def _has_key_source(raw_env_var: str, path_env_var: str) -> bool:
    return bool(
        os.environ.get(raw_env_var, "").strip()
        or os.environ.get(path_env_var, "").strip()
    )


def load_jwt_keys(*, testing: bool) -> tuple[str, str]:
    """
    Resolve the RS256 signing/verification key pair.

    In testing mode the ``TEST_JWT_*`` variables take precedence when set.
    Otherwise ``JWT_*`` variables are read, falling back to the local
    development pair under ``keys/``.
    """
    if testing and (
        _has_key_source("TEST_JWT_PRIVATE_KEY", "TEST_JWT_PRIVATE_KEY_PATH")
        or _has_key_source("TEST_JWT_PUBLIC_KEY", "TEST_JWT_PUBLIC_KEY_PATH")
    ):
        return (
            _load_key("TEST_JWT_PRIVATE_KEY", "TEST_JWT_PRIVATE_KEY_PATH"),
            _load_key("TEST_JWT_PUBLIC_KEY", "TEST_JWT_PUBLIC_KEY_PATH"),
        )

    return (
        _load_key("JWT_PRIVATE_KEY", "JWT_PRIVATE_KEY_PATH", DEV_KEYS_DIR / "dev.private.pem"),
        _load_key("JWT_PUBLIC_KEY", "JWT_PUBLIC_KEY_PATH", DEV_KEYS_DIR / "dev.public.pem"),
    )


class Config:
    """
    Base configuration shared by all environments.

    Subclasses should override only the values that need to change.
    Every setting can also be controlled via an environment variable so
    that container orchestrators can inject secrets at deploy time.
    """

    SECRET_KEY: str = os.environ.get(
        "SECRET_KEY", "taskboard-dev-secret-change-in-production"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False
    SQLALCHEMY_DATABASE_URI: str = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'instance' / 'taskboard.db'}",
    )

    # Lifetime of bearer tokens handed out on register/login
    JWT_EXPIRY_HOURS: int = int(os.environ.get("JWT_EXPIRY_HOURS", "24"))
    REFRESH_TOKEN_EXPIRY_DAYS: int = int(os.environ.get("REFRESH_TOKEN_EXPIRY_DAYS", "7"))
    # Stored token records stop authorising anything after this many days,
    # whatever their ``exp`` claim says.
    TOKEN_RETENTION_DAYS: int = int(os.environ.get("TOKEN_RETENTION_DAYS", "7"))
    # Seconds of tolerance for clock differences between issuer and verifier
    JWT_CLOCK_SKEW_SECONDS: int = int(os.environ.get("JWT_CLOCK_SKEW_SECONDS", "30"))

    RATELIMIT_ENABLED: bool = os.environ.get("RATELIMIT_ENABLED", "true").lower() == "true"
    AUTH_RATE_LIMIT: int = int(os.environ.get("AUTH_RATE_LIMIT", "5"))
    AUTH_RATE_WINDOW_SECONDS: int = int(os.environ.get("AUTH_RATE_WINDOW_SECONDS", "900"))
    API_RATE_LIMIT: int = int(os.environ.get("API_RATE_LIMIT", "100"))
    API_RATE_WINDOW_SECONDS: int = int(os.environ.get("API_RATE_WINDOW_SECONDS", "900"))

    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100


class DevelopmentConfig(Config):
    """
    Configuration for local development.

    Enables debug mode for auto-reload and rich tracebacks while keeping
    ``TESTING`` off so that Flask error handlers behave normally.
    """

    DEBUG: bool = True
    TESTING: bool = False


class TestingConfig(Config):
    """
    Configuration for the automated test suite.

    Uses a **separate** SQLite database (``test_taskboard.db``) so that
    test runs never corrupt development data.  Rate limits are raised so
    ordinary tests never trip them; the rate-limit tests lower them
    explicitly.
    """

    DEBUG: bool = True
    TESTING: bool = True
    # ``check_same_thread=False`` is required because SQLite normally
    # forbids sharing a connection across threads, but Flask's test client
    # may operate from a different thread than the one that opened the DB.
    SQLALCHEMY_DATABASE_URI: str = os.environ.get(
        "TEST_DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'instance' / 'test_taskboard.db'}?check_same_thread=False",
    )
    SQLALCHEMY_ENGINE_OPTIONS: dict = {"pool_pre_ping": True}
    JWT_EXPIRY_HOURS: int = int(os.environ.get("TEST_JWT_EXPIRY_HOURS", "1"))
    AUTH_RATE_LIMIT: int = 1000
    API_RATE_LIMIT: int = 10000


class ProductionConfig(Config):
    """
    Configuration for production deployments.

    Disables debug mode and testing flags.  All secrets **must** be
    supplied through environment variables -- the hard-coded defaults in
    the base ``Config`` class are intentionally insecure to ensure they
    are never accidentally used in production.
    """

    DEBUG: bool = False
    TESTING: bool = False


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}


def get_config(env: str | None = None) -> type[Config]:
    """
    Resolve a configuration class by environment name.

    Args:
        env: One of ``"development"``, ``"testing"``, or
            ``"production"``.  When ``None``, the ``FLASK_ENV``
            environment variable is consulted, falling back to
            ``"development"`` if unset.

    Returns:
        The configuration class (not an instance) corresponding to the
        requested environment.  Falls back to ``DevelopmentConfig`` for
        unrecognised names.
    """
    if env is None:
        env = os.environ.get("FLASK_ENV", "development")
    return config.get(env, config["default"])

"""
Taskboard Flask application factory.

Provides the ``create_app`` factory function used to build and configure
the Flask application that serves the Taskboard REST API.  The factory
pattern allows different configurations (development, testing,
production) to be injected at runtime, which is essential for isolated
test suites and container-based deployments.

The application registers four blueprints under ``/api``:
  * **health_bp** -- liveness probe.
  * **auth_bp** -- registration, login, profile and session lifecycle.
  * **preferences_bp** -- per-user theme and notification settings.
  * **tasks_bp** -- task CRUD, listing, statistics, archive and bulk update.

Key Concepts Demonstrated:
- Application factory pattern (create_app)
- Flask extension initialisation (SQLAlchemy)
- Blueprint-based route registration
- Centralised JSON error handling
- Flask CLI commands for maintenance jobs
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import click
from flask import Flask
from flask_sqlalchemy import SQLAlchemy

from .config import get_config, load_jwt_keys

# Shared SQLAlchemy instance -- initialised with a concrete app inside create_app()
db = SQLAlchemy()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _ensure_sqlite_db_parent_exists(database_uri: str) -> None:
    """Create parent directories for file-based SQLite URIs when missing."""
    sqlite_prefix = "sqlite:///"
    if not database_uri.startswith(sqlite_prefix):
        return

    sqlite_path = database_uri[len(sqlite_prefix) :].split("?", 1)[0]
    if sqlite_path == ":memory:":
        return

    Path(sqlite_path).parent.mkdir(parents=True, exist_ok=True)


def _register_commands(app: Flask) -> None:
    @app.cli.command("purge-tokens")
    def purge_tokens_command() -> None:
        """Delete token records past their expiry or retention window."""
        from .tokens import purge_expired_tokens

        removed = purge_expired_tokens()
        click.echo(f"Purged {removed} expired token(s)")


def create_app(config_name: str | None = None) -> Flask:
    """
    Create and configure the Taskboard Flask application.

    Wires together configuration, JWT keys, extensions, blueprints, error
    handlers, the rate limiter and the database schema in a deterministic
    order so that every consumer (WSGI server, test harness, CLI) gets an
    identical application instance for a given configuration name.

    Args:
        config_name: The configuration environment to load (e.g.
            ``"development"``, ``"testing"``, ``"production"``).  When
            ``None``, the value is resolved from the ``FLASK_ENV``
            environment variable, defaulting to ``"development"``.

    Returns:
        A fully configured :class:`~flask.Flask` application instance
        with all extensions initialised and database tables created.
    """
    app = Flask(__name__, instance_relative_config=True)
    config_class = get_config(config_name)
    app.config.from_object(config_class)
    private_key, public_key = load_jwt_keys(testing=bool(app.config.get("TESTING")))
    app.config["JWT_PRIVATE_KEY"] = private_key
    app.config["JWT_PUBLIC_KEY"] = public_key

    logger.info("Creating taskboard app with config: %s", config_class.__name__)

    os.makedirs(app.instance_path, exist_ok=True)
    _ensure_sqlite_db_parent_exists(app.config.get("SQLALCHEMY_DATABASE_URI", ""))

    db.init_app(app)

    # Import inside the factory to avoid circular imports -- these modules
    # reference ``db`` from this package, which must exist first.
    from .errors import register_error_handlers
    from .rate_limit import RateLimiter
    from .routes.auth import auth_bp
    from .routes.health import health_bp
    from .routes.preferences import preferences_bp
    from .routes.tasks import tasks_bp

    app.extensions["rate_limiter"] = RateLimiter()
    register_error_handlers(app)

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(preferences_bp, url_prefix="/api/preferences")
    app.register_blueprint(tasks_bp, url_prefix="/api/tasks")

    _register_commands(app)

    with app.app_context():
        db.create_all()
        logger.info("Taskboard database tables created")

    return app

"""
Error taxonomy and JSON error envelopes.

Every failure the API reports is an ``ApiError`` subclass carrying its own
HTTP status code.  Services raise them; the handlers registered by
``register_error_handlers`` turn them (and werkzeug's own HTTP exceptions)
into the ``{"success": false, "message": ..., "errors": [...]}`` envelope,
so route handlers never build error responses by hand.
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Flask, Response, jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base class for errors that map onto an HTTP error response."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        errors: list[dict[str, str]] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(ApiError):
    """Malformed input; ``errors`` enumerates every failing field."""

    status_code = 400
    default_message = "Validation failed"


class Unauthorized(ApiError):
    status_code = 401
    default_message = "Not authorized to access this route"


class InvalidCredentials(ApiError):
    """Login or password-change mismatch.  Deliberately vague."""

    status_code = 401
    default_message = "Invalid credentials"


class NotFound(ApiError):
    status_code = 404
    default_message = "Resource not found"


class Conflict(ApiError):
    status_code = 409
    default_message = "Resource already exists"


class RateLimited(ApiError):
    status_code = 429
    default_message = "Too many requests, please try again later"

    def __init__(self, retry_after: int, message: str | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class InternalError(ApiError):
    status_code = 500
    default_message = "Internal server error"


def field_error(field: str, message: str) -> dict[str, str]:
    """Build one entry of a ``ValidationError.errors`` list."""
    return {"field": field, "message": message}


def register_error_handlers(app: Flask) -> None:
    """
    Attach JSON error handlers to *app*.

    Three layers are covered: the ``ApiError`` taxonomy raised by services,
    werkzeug ``HTTPException`` (unknown routes, wrong methods, bad JSON
    bodies), and any other exception, which is logged and reported as a
    generic 500 without leaking internal detail.
    """

    @app.errorhandler(ApiError)
    def handle_api_error(error: ApiError) -> tuple[Response, int]:
        response = jsonify(error.to_dict())
        if isinstance(error, RateLimited):
            response.headers["Retry-After"] = str(error.retry_after)
        return response, error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException) -> tuple[Response, int]:
        status_code = error.code or 500
        messages = {
            400: "Bad request",
            404: "Resource not found",
            405: "Method not allowed",
            415: "Request body must be JSON",
        }
        message = messages.get(status_code, error.name)
        return jsonify({"success": False, "message": message}), status_code

    @app.errorhandler(Exception)
    def handle_unexpected(error: Exception) -> tuple[Response, int]:
        logger.exception("Unhandled error: %s", error)
        return jsonify(InternalError().to_dict()), 500

"""Liveness probe."""

from __future__ import annotations

import os

from flask import Blueprint, Response, jsonify

health_bp = Blueprint("health", __name__)


@health_bp.route("/health", methods=["GET"])
def health_check() -> tuple[Response, int]:
    """
    Health-check endpoint for load balancers and orchestrators.

    Public (no authentication) and never touches the database.
    """
    return jsonify(
        {
            "status": "healthy",
            "service": "taskboard",
            "environment": os.getenv("ENVIRONMENT", "unknown"),
            "version": os.getenv("APP_VERSION", "unknown"),
        }
    ), 200

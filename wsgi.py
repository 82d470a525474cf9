"""WSGI entry point for the Taskboard API (``gunicorn wsgi:app``)."""

import os

from taskboard import create_app

app = create_app(os.getenv("FLASK_ENV", "production"))

"""
Fixed-window request rate limiting.

Two scopes are configured: ``auth`` (register, login, refresh) and ``api``
(every task and preference endpoint), each with its own ceiling and window
read from the app config at request time.  Exceeding a ceiling raises
``RateLimited`` (HTTP 429 with ``Retry-After``); requests are never
silently dropped.

The limiter keeps its buckets in process memory, so each worker process
counts independently.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from functools import wraps
from threading import Lock

from flask import current_app, request

from .errors import RateLimited

logger = logging.getLogger(__name__)


@dataclass
class _Bucket:
    reset_at: float
    count: int


class RateLimiter:
    """In-memory fixed-window counter keyed by an arbitrary string."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = Lock()
        self._buckets: dict[str, _Bucket] = {}

    def hit(self, key: str, *, limit: int, window_seconds: int) -> tuple[bool, int]:
        """
        Count one request against *key*.

        Returns:
            ``(allowed, retry_after_seconds)``; ``retry_after_seconds`` is 0
            when the request is allowed.
        """
        now = self._clock()
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or now >= bucket.reset_at:
                self._buckets[key] = _Bucket(reset_at=now + window_seconds, count=1)
                return True, 0
            if bucket.count >= limit:
                return False, max(1, int(bucket.reset_at - now))
            bucket.count += 1
            return True, 0

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()


def rate_limit(scope: str):
    """
    Decorator applying the ``scope`` ceiling (``auth`` or ``api``) to a view.

    Config keys used: ``{SCOPE}_RATE_LIMIT`` and
    ``{SCOPE}_RATE_WINDOW_SECONDS``; ``RATELIMIT_ENABLED`` turns the check
    off entirely.
    """
    prefix = scope.upper()

    def decorator(view_func: Callable):
        @wraps(view_func)
        def wrapper(*args, **kwargs):
            if current_app.config.get("RATELIMIT_ENABLED", True):
                limiter: RateLimiter = current_app.extensions["rate_limiter"]
                key = f"{scope}:{request.remote_addr or 'unknown'}"
                allowed, retry_after = limiter.hit(
                    key,
                    limit=int(current_app.config[f"{prefix}_RATE_LIMIT"]),
                    window_seconds=int(current_app.config[f"{prefix}_RATE_WINDOW_SECONDS"]),
                )
                if not allowed:
                    logger.warning("Rate limit exceeded for %s", key)
                    raise RateLimited(retry_after)
            return view_func(*args, **kwargs)

        return wrapper

    return decorator

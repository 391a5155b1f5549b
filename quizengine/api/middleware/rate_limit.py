"""
Per-IP rate limiting.

Two fixed-window scopes:
- oracle: requests that call the language model (register, ask, answer, conclude)
- api: everything else under the API prefix
"""

import re
import time
from typing import Callable, Dict, Optional, Tuple

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware

from quizengine.config import get_settings
from quizengine.logging_config import get_logger

logger = get_logger(__name__)

WINDOW_SECONDS = 60

_ORACLE_PATHS = re.compile(r"^/(users|sessions/[^/]+/(questions|answers|conclude))/?$")


def get_client_ip(request: Request, trust_forwarded_for: bool = False) -> str:
    """
    Get client IP from the connection, or from X-Forwarded-For when the app
    runs behind a trusted proxy. Clients can set that header freely otherwise.
    """
    if trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def is_oracle_request(method: str, path: str, prefix: str) -> bool:
    if method != "POST" or not path.startswith(prefix):
        return False
    return bool(_ORACLE_PATHS.match(path[len(prefix):]))


class InMemoryRateLimitStore:
    """Fixed-window in-memory store. Key -> (count, window_start_ts)."""

    def __init__(self):
        self._data: Dict[str, Tuple[int, float]] = {}

    def check_and_incr(self, scope: str, identifier: str, limit: int, window_seconds: int) -> bool:
        """Returns True if under limit (and increments). False if over limit (no increment)."""
        key = f"{scope}:{identifier}"
        now = time.monotonic()
        entry = self._data.get(key)
        if entry is None or now - entry[1] >= window_seconds:
            self._data[key] = (1, now)
            return True
        count, start = entry
        if count >= limit:
            return False
        self._data[key] = (count + 1, start)
        return True

    def cleanup_old(self, max_age_seconds: int = 3600):
        """Remove entries older than max_age_seconds to avoid unbounded growth."""
        now = time.monotonic()
        for key in [k for k, (_, start) in self._data.items() if now - start > max_age_seconds]:
            self._data.pop(key, None)

    def clear(self):
        self._data.clear()


_store: Optional[InMemoryRateLimitStore] = None


def get_store() -> InMemoryRateLimitStore:
    global _store
    if _store is None:
        _store = InMemoryRateLimitStore()
    return _store


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests over the per-minute limit for their scope with 429."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        settings = get_settings()
        if not settings.rate_limit_enabled:
            return await call_next(request)

        path = request.url.path or ""
        if not path.startswith(settings.api_v1_prefix):
            return await call_next(request)

        store = get_store()
        store.cleanup_old(max_age_seconds=WINDOW_SECONDS * 10)

        ip = get_client_ip(request, settings.rate_limit_trust_forwarded_for)
        if is_oracle_request(request.method, path, settings.api_v1_prefix):
            scope, limit = "oracle", settings.rate_limit_oracle_per_minute
        else:
            scope, limit = "api", settings.rate_limit_api_per_minute

        if not store.check_and_incr(scope, ip, limit, WINDOW_SECONDS):
            logger.warning("Rate limit exceeded", extra={"scope": scope, "client_ip": ip, "path": path})
            return Response(
                content='{"detail":"Too many requests. Please try again later."}',
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                media_type="application/json",
            )
        return await call_next(request)

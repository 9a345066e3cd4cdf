"""Simple in-memory rate limiter for the chat endpoint.

Limits requests per client IP using a sliding window of timestamps. Only the
configured paths are limited, so health probes, points and redeem calls never
count against a client.
"""

import logging
import time
from collections import defaultdict
from typing import Callable, Iterable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL = 300     # clean stale entries every 5 minutes
DEFAULT_PATHS = ("/api/chat",)


def client_ip(request: Request, trust_forwarded: bool = False) -> str:
    """Peer address, or the hop our own proxy appended to X-Forwarded-For.

    Earlier X-Forwarded-For entries come from the caller and can be forged, so
    only the right-most one is used, and only when a trusted proxy is in front.
    """
    if trust_forwarded:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            hops = [h.strip() for h in forwarded.split(",") if h.strip()]
            if hops:
                return hops[-1]
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        max_requests: int = 30,
        window_seconds: int = 60,
        paths: Optional[Iterable[str]] = None,
        trust_forwarded: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.paths = set(DEFAULT_PATHS if paths is None else paths)
        self.trust_forwarded = trust_forwarded
        self._clock = clock
        self._request_log: dict[str, list[float]] = defaultdict(list)
        self._last_cleanup = 0.0

    def _cleanup_stale(self, now: float) -> None:
        """Remove IPs idle for more than 2x the window to prevent memory leak."""
        if now - self._last_cleanup < CLEANUP_INTERVAL:
            return
        self._last_cleanup = now
        cutoff = now - self.window_seconds * 2
        stale = [ip for ip, ts in self._request_log.items() if not ts or ts[-1] < cutoff]
        for ip in stale:
            del self._request_log[ip]

    def is_rate_limited(self, ip: str) -> bool:
        now = self._clock()
        self._cleanup_stale(now)
        cutoff = now - self.window_seconds
        recent = [t for t in self._request_log[ip] if t > cutoff]
        self._request_log[ip] = recent

        if len(recent) >= self.max_requests:
            return True
        recent.append(now)
        return False

    async def dispatch(self, request: Request, call_next):
        path = request.url.path.rstrip("/") or "/"
        if path in self.paths:
            ip = client_ip(request, self.trust_forwarded)
            if self.is_rate_limited(ip):
                logger.warning("[RateLimit] Blocked %s %s from %s", request.method, path, ip)
                return JSONResponse(
                    {
                        "error": "Too many requests",
                        "message": "Too many requests. Please try again later.",
                        "code": "RATE_LIMITED",
                        "retryable": True,
                        "retryAfter": self.window_seconds,
                    },
                    status_code=429,
                    headers={"Retry-After": str(self.window_seconds)},
                )
        return await call_next(request)

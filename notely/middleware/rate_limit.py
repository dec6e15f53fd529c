"""Sliding-window rate limiter middleware for FastAPI."""
import time
from collections import deque

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from notely.config import settings


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Per-IP sliding-window rate limiter.
    Allows RATE_LIMIT_REQUESTS requests per RATE_LIMIT_WINDOW_S seconds.
    The client is the socket peer; X-Forwarded-For is honoured only with TRUST_PROXY.
    """

    def __init__(self, app):
        super().__init__(app)
        # ip → deque of request timestamps
        self._windows: dict[str, deque] = {}
        self._last_prune = 0.0

    def _get_ip(self, request: Request) -> str:
        if settings.trust_proxy:
            forwarded = request.headers.get("X-Forwarded-For")
            if forwarded:
                return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    def _prune(self, now: float) -> None:
        """Drop clients with no hits inside the current window."""
        window = settings.rate_limit_window_s
        idle = [ip for ip, dq in self._windows.items() if not dq or now - dq[-1] > window]
        for ip in idle:
            del self._windows[ip]
        self._last_prune = now

    def allow(self, ip: str, now: float) -> bool:
        """Record a hit for ``ip`` at ``now`` unless the window is already full."""
        window = settings.rate_limit_window_s
        if now - self._last_prune > window:
            self._prune(now)

        dq = self._windows.setdefault(ip, deque())

        # Evict timestamps outside the window
        while dq and now - dq[0] > window:
            dq.popleft()

        if len(dq) >= settings.rate_limit_requests:
            return False

        dq.append(now)
        return True

    async def dispatch(self, request: Request, call_next) -> Response:
        if not self.allow(self._get_ip(request), time.monotonic()):
            return JSONResponse(
                {"detail": "Too many requests from this IP, please try again later."},
                status_code=429,
                headers={"Retry-After": str(settings.rate_limit_window_s)},
            )
        return await call_next(request)

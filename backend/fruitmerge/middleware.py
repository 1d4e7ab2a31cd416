"""
Middleware for request rate limiting and security headers.
"""
import logging
import time
from collections import defaultdict, deque
from typing import Callable, Iterable

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Sliding-window rate limiting per client IP.

    Paths in ``exempt_paths`` are never limited: the Telegram webhook must
    always be acknowledged or the update is redelivered.
    """

    def __init__(self, app, requests_per_window: int = 600, window_seconds: int = 60,
                 exempt_paths: Iterable[str] = ()):
        super().__init__(app)
        self.requests_per_window = requests_per_window
        self.window_seconds = window_seconds
        self.exempt_paths = set(exempt_paths)
        self.requests: dict[str, deque] = defaultdict(deque)  # IP -> request timestamps
        self.last_cleanup = time.time()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        current_time = time.time()
        if current_time - self.last_cleanup > self.window_seconds:
            self._cleanup(current_time)
            self.last_cleanup = current_time

        timestamps = self.requests[client_ip]
        self._expire(timestamps, current_time)
        if len(timestamps) >= self.requests_per_window:
            logger.warning(f"Rate limit exceeded for IP: {client_ip}")
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"error": "Rate limit exceeded", "message": "Too many requests. Please try again later."},
                headers={
                    "Retry-After": str(self.window_seconds),
                    "X-RateLimit-Limit": str(self.requests_per_window),
                    "X-RateLimit-Remaining": "0",
                },
            )
        timestamps.append(current_time)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.requests_per_window)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self.requests_per_window - len(timestamps)))
        return response

    def _expire(self, timestamps: deque, current_time: float):
        cutoff = current_time - self.window_seconds
        while timestamps and timestamps[0] <= cutoff:
            timestamps.popleft()

    def _cleanup(self, current_time: float):
        for ip in list(self.requests.keys()):
            self._expire(self.requests[ip], current_time)
            if not self.requests[ip]:
                del self.requests[ip]


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers to every response.

    Frame embedding is left alone because the game runs inside Telegram's
    web-app iframe.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.url.path.startswith("/api/admin"):
            response.headers["Cache-Control"] = "no-store"
        return response

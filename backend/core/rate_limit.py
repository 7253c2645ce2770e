# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Admission control for the JSON API.

* ``FixedWindowRateLimiter`` – per-key counters that reset when their window
  elapses (100 requests / hour / IP by default).
* ``RateLimitMiddleware``    – applies the limiter to ``/api`` paths and
  rejects oversized request bodies before they are read.

Clients are keyed by peer address; ``X-Forwarded-For`` counts only when the
peer is listed in ``trusted_proxies``.  Ended windows are swept at most once
per window length.

The body cap is a header-only check on ``Content-Length``.  A chunked body
without that header is not measured here; bound it at the server in front
(uvicorn / the reverse proxy).

Exceptions raised inside a Starlette middleware never reach the app's
exception handlers, so rejections are rendered here with the shared
error envelope.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Sequence

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi.responses import Response

from core.errors import PayloadTooLargeError, TooManyRequestsError, error_response
from core.security import get_client_ip


@dataclass
class _Window:
    started: float
    count: int


@dataclass(frozen=True)
class RateLimitState:
    allowed: bool
    remaining: int
    reset_in: float  # seconds until the current window ends


class FixedWindowRateLimiter:
    def __init__(self, limit: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self._limit = max(1, int(limit))
        self._window = max(0.1, float(window_seconds))
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def tracked_keys(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float) -> None:
        # at most once per window: drop every window that has ended
        if now - self._last_sweep < self._window:
            return
        self._last_sweep = now
        expired = [k for k, w in self._windows.items() if now - w.started >= self._window]
        for key in expired:
            del self._windows[key]

    def hit(self, key: str) -> RateLimitState:
        """Count one request for *key* and report whether it is admitted."""
        now = self._clock()
        with self._lock:
            self._sweep(now)
            window = self._windows.get(key)
            if window is None or now - window.started >= self._window:
                window = _Window(started=now, count=0)
                self._windows[key] = window

            reset_in = self._window - (now - window.started)
            if window.count >= self._limit:
                return RateLimitState(allowed=False, remaining=0, reset_in=reset_in)

            window.count += 1
            return RateLimitState(
                allowed=True,
                remaining=self._limit - window.count,
                reset_in=reset_in,
            )

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP fixed-window limit and body-size cap on ``/api`` paths."""

    def __init__(
        self,
        app,
        limiter: FixedWindowRateLimiter,
        max_body_bytes: int,
        enabled: bool = True,
        trusted_proxies: Sequence[str] = (),
    ):
        super().__init__(app)
        self.trusted_proxies = frozenset(trusted_proxies)
        self.limiter = limiter
        self.max_body_bytes = max_body_bytes
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next) -> Response:
        if not request.url.path.startswith("/api"):
            return await call_next(request)

        length = request.headers.get("content-length")
        if length and length.isdigit() and int(length) > self.max_body_bytes:
            return error_response(
                request,
                PayloadTooLargeError(f"Request body exceeds {self.max_body_bytes} bytes"),
            )

        if not self.enabled:
            return await call_next(request)

        state = self.limiter.hit(get_client_ip(request, self.trusted_proxies))
        if not state.allowed:
            response = error_response(
                request,
                TooManyRequestsError("Too many request from your IP, please try again in an hour."),
            )
            response.headers["Retry-After"] = str(int(state.reset_in) + 1)
        else:
            response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(self.limiter.limit)
        response.headers["X-RateLimit-Remaining"] = str(state.remaining)
        return response

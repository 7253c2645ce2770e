# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
FastAPI application factory and process entry point.

Responsibilities
----------------
* Build the app from an explicit ``Settings`` object (no ambient config).
* Wire the shared services onto ``app.state``: DB engine / session factory,
  token issuer, mailer.
* Register middleware: CORS, security headers, gzip, rate limiting,
  request logging.
* Mount the feature routers (auth, users, admin, cities).
* Install the global error normalizer.
* Expose a /health endpoint for container liveness checks.

Running
-------
    python backend/main.py
    # or, from backend/:
    uvicorn main:create_app --factory

Production note
---------------
CORS allow_origins comes from ``Settings.cors_origins``.  Set it to the exact
frontend origin before deploying.
"""

import time
from typing import Optional

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import Response

from auth.router import router as auth_router
from users.router import router as users_router
from admin.router import router as admin_router
from cities.router import router as cities_router
from core.config import Settings
from core.errors import register_error_handlers
from core.logger import configure_logging, install_excepthook, logger
from core.mailer import Mailer
from core.rate_limit import FixedWindowRateLimiter, RateLimitMiddleware
from core.security import TokenIssuer, get_client_ip
from database import build_engine, build_session_factory


# ---------------------------------------------------------------------------
# Request-logging middleware
# ---------------------------------------------------------------------------
# Logs every inbound request: method, path, client IP, status, latency.
# Request bodies (passwords, tokens) are NOT echoed – only the URL and
# metadata are recorded.


class _RequestLogMiddleware(BaseHTTPMiddleware):
    """Log method, path, client IP, response status and latency (ms)."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        logger.info(
            "%s %s | client=%s status=%d latency=%.1fms",
            request.method,
            request.url.path,
            get_client_ip(request, request.app.state.settings.trusted_proxies),
            response.status_code,
            elapsed_ms,
        )
        return response


# ---------------------------------------------------------------------------
# Security headers
# ---------------------------------------------------------------------------


_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "same-origin",
}


class _SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        for name, value in _SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application.  *settings* is constructed from the environment
    when omitted (``uvicorn --factory``).
    """
    settings = settings or Settings()

    app = FastAPI(title="CityLog", version="1.0.0")

    engine = build_engine(settings.database_url)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.token_issuer = TokenIssuer.from_settings(settings)
    app.state.mailer = Mailer(settings)
    app.state.rate_limiter = FixedWindowRateLimiter(
        settings.rate_limit_max, settings.rate_limit_window_seconds
    )

    # Middleware: the last one added is the outermost.
    app.add_middleware(
        RateLimitMiddleware,
        limiter=app.state.rate_limiter,
        max_body_bytes=settings.max_body_bytes,
        enabled=settings.rate_limit_enabled,
        trusted_proxies=settings.trusted_proxies,
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(_SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Authorization", "Content-Type"],
    )
    app.add_middleware(_RequestLogMiddleware)

    # -- Routers -----------------------------------------------------------
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(admin_router)
    app.include_router(cities_router)

    register_error_handlers(app)

    # -- Lifecycle / health ------------------------------------------------

    @app.on_event("startup")
    async def _on_startup():
        mode = "production" if settings.is_production else "development"
        logger.info("CityLog service starting up (%s environment)", mode)

    @app.on_event("shutdown")
    async def _on_shutdown():
        logger.info("CityLog service shutting down")
        engine.dispose()

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


# ---------------------------------------------------------------------------
# Process entry point
# ---------------------------------------------------------------------------


def run() -> None:
    import uvicorn

    settings = Settings()
    configure_logging(settings.logging_conf)
    install_excepthook()

    app = create_app(settings)
    logger.info("App is running at http://%s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()

"""
Main FastAPI application for the sitelease API.
Serves the donation webhook, usage and deployment dashboards, publish
bookkeeping, fingerprint sessions, health and metrics.
"""
import logging
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from sitelease.api.routes import deployments, health, publish, sessions, usage, webhooks
from sitelease.core.config import Settings
from sitelease.core.errors import QuotaExceeded, SiteleaseError
from sitelease.core.logging import configure_logging, request_id_var
from sitelease.db.session import build_engine, build_session_factory, init_db
from sitelease.utils.metrics import request_duration_seconds, router as metrics_router

logger = logging.getLogger("sitelease.http")


def _error_response(request: Request, exc: SiteleaseError) -> JSONResponse:
    body = {"ok": False, "error": exc.message}
    if isinstance(exc, QuotaExceeded):
        body["limit"] = exc.limit
    return JSONResponse(body, status_code=exc.status_code, headers={"Cache-Control": "no-store"})


def create_app(
    settings: Settings | None = None,
    session_factory: sessionmaker | None = None,
) -> FastAPI:
    if settings is None:
        from sitelease.core.config import settings as default_settings

        settings = default_settings

    if session_factory is None:
        engine = build_engine(settings)
        session_factory = build_session_factory(engine)
    else:
        engine = session_factory.kw.get("bind")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings)
        if settings.db_auto_create and engine is not None:
            init_db(engine)
        yield

    app = FastAPI(
        title="Sitelease API",
        description="Usage quota and expiry lifecycle for fingerprint-owned hosted pages",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session_factory = session_factory

    # CORS
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    if not origins:
        origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get(settings.request_id_header) or str(uuid4())
        token = request_id_var.set(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        elapsed = time.perf_counter() - started
        response.headers[settings.request_id_header] = request_id
        route = request.scope.get("route")
        path = getattr(route, "path", request.url.path)
        request_duration_seconds.labels(path=path).observe(elapsed)
        logger.info(
            "http_request",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "latency_ms": round(elapsed * 1000, 2),
            },
        )
        return response

    @app.exception_handler(SiteleaseError)
    async def sitelease_error_handler(request: Request, exc: SiteleaseError) -> JSONResponse:
        return _error_response(request, exc)

    # Routers
    app.include_router(health.router, tags=["health"])
    app.include_router(webhooks.router)
    app.include_router(usage.router)
    app.include_router(deployments.router)
    app.include_router(publish.router)
    app.include_router(sessions.router)
    app.include_router(metrics_router)

    return app

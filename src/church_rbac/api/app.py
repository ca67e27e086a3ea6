"""
church_rbac.api.app

FastAPI app factory for the church access control service.

Responsibilities:
- Build the FastAPI application and register routers/middleware.
- Map the access control error taxonomy onto HTTP responses.
- Initialize and dispose shared infrastructure (DB engine/session factory).
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.status import HTTP_400_BAD_REQUEST

from church_rbac import __version__
from church_rbac.api.routers.access import router as access_router
from church_rbac.api.routers.admin_roles import router as admin_roles_router
from church_rbac.api.routers.auth_session import router as auth_session_router
from church_rbac.api.routers.dev_auth import router as dev_auth_router
from church_rbac.api.routers.health import router as health_router
from church_rbac.db.init_db import init_db
from church_rbac.db.session import create_engine, create_sessionmaker
from church_rbac.observability.logging import configure_logging, get_logger
from church_rbac.observability.middleware import RequestContextMiddleware
from church_rbac.rbac.errors import AccessControlError, BackingStoreUnavailable, InsufficientRole
from church_rbac.settings import Settings

log = get_logger(__name__)


def _field_from_loc(loc: tuple[object, ...]) -> str | None:
    # ("body", "targetEmail") -> "targetEmail"; ("query", "requiredLevel") -> "requiredLevel"
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
    return ".".join(parts) or None


async def _access_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, AccessControlError)
    if isinstance(exc, BackingStoreUnavailable):
        log.error("request_failed", error_code=exc.code, error=exc.message)
    elif isinstance(exc, InsufficientRole):
        # Internal reason (level vs. scope) is logged, never returned.
        log.info("request_denied", error_code=exc.code, reason=exc.message)
    else:
        log.info("request_rejected", error_code=exc.code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def _validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    errors = exc.errors()
    first = errors[0] if errors else {}
    error: dict[str, object] = {
        "code": "validation_error",
        "message": str(first.get("msg", "Invalid request")),
    }
    field = _field_from_loc(tuple(first.get("loc", ())))
    if field is not None:
        error["field"] = field
    return JSONResponse(status_code=HTTP_400_BAD_REQUEST, content={"success": False, "error": error})


def create_app(*, settings: Settings) -> FastAPI:
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        if settings.env in ("dev", "test"):
            # Dev/test convenience: create tables automatically. Prod uses Alembic migrations.
            await init_db(engine)
        try:
            yield
        finally:
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="Church Access Control",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(RequestContextMiddleware)
    app.add_exception_handler(AccessControlError, _access_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    app.include_router(health_router, tags=["health"])
    app.include_router(dev_auth_router)
    app.include_router(auth_session_router)
    app.include_router(access_router)
    app.include_router(admin_roles_router)

    return app


# --- Module Notes -----------------------------------------------------------
# Handlers never turn an error into a success: every AccessControlError keeps its own
# status code, and BackingStoreUnavailable stays a 503 rather than a 403.

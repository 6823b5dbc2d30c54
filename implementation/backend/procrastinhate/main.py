"""FastAPI application entry point.

Application wiring: lifespan, middleware stack, router mounting, exception handlers.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from procrastinhate.config import get_settings
from procrastinhate.database import DatabasePool
from procrastinhate.exceptions import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
)
from procrastinhate.routers import admins, health, projects, tasks, users
from procrastinhate.routers.websocket import router as ws_router
from procrastinhate.services.connection_registry import ConnectionRegistry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Open the database pool and the connection registry; clean up on shutdown."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # -- Database Pool --
    db_path = settings.database_url.replace("sqlite:///", "")
    db_pool = DatabasePool(db_path, pool_size=5)
    await db_pool.initialize()

    application.state.db_pool = db_pool
    application.state.db = db_pool.get_write_connection()
    application.state.connection_registry = ConnectionRegistry()
    logger.info("Procrast-in-hate started with database %s", db_path)

    yield

    # -- Shutdown --
    await db_pool.close()
    application.state.db_pool = None


# ---------------------------------------------------------------------------
# Custom Middleware
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status_code, duration_ms for every request."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.monotonic()
        response = await call_next(request)
        duration_ms = (time.monotonic() - start_time) * 1000

        logger.info(
            "%s %s %d %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Catch unhandled exceptions and return a standard JSON 500 response."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            logger.error(
                "Unhandled exception on %s %s: %s",
                request.method,
                request.url.path,
                exc,
                exc_info=True,
            )
            return JSONResponse(
                status_code=500,
                content={"error": "Internal server error", "details": str(exc)},
            )


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(title="Procrast-in-hate", lifespan=lifespan)

# -- Middleware stack (applied in reverse order of add_middleware calls) --
# Order: CORS -> RequestLogging -> ErrorHandling

settings = get_settings()

# 1. CORS (outermost)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)

# 2. Request logging
app.add_middleware(RequestLoggingMiddleware)

# 3. Error handling (innermost)
app.add_middleware(ErrorHandlingMiddleware)


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"error": exc.message})


@app.exception_handler(InvalidRequestError)
async def invalid_request_handler(request: Request, exc: InvalidRequestError):
    return JSONResponse(status_code=400, content={"error": exc.message})


@app.exception_handler(AuthenticationError)
async def authentication_handler(request: Request, exc: AuthenticationError):
    return JSONResponse(status_code=401, content={"error": exc.message})


@app.exception_handler(ForbiddenError)
async def forbidden_handler(request: Request, exc: ForbiddenError):
    return JSONResponse(status_code=403, content={"error": exc.message})


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Normalize HTTPException responses to use the standard error format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
    )


@app.exception_handler(RequestValidationError)
async def validation_handler(request: Request, exc: RequestValidationError):
    """Body validation failures are client errors (400), not 422."""
    errors = exc.errors()
    if any(error.get("type") == "missing" for error in errors):
        message = "Please provide all the fields"
    else:
        message = "Invalid request body"
    return JSONResponse(status_code=400, content={"error": message, "details": str(errors)})


# -- Routers --
RESOURCE_ROUTERS = {
    "users": users.router,
    "tasks": tasks.router,
    "projects": projects.router,
    "admins": admins.router,
    "health": health.router,
}

for _name, _router in RESOURCE_ROUTERS.items():
    app.include_router(_router, prefix=f"/{_name}", tags=[_name])
app.include_router(ws_router)


@app.get("/")
async def index():
    """Welcome message plus the REST route table, grouped by resource."""
    routes: dict[str, list[dict]] = {}
    for name, router in RESOURCE_ROUTERS.items():
        table = routes.setdefault(name, [])
        for route in router.routes:
            if not isinstance(route, APIRoute):
                continue
            for method in sorted(route.methods):
                table.append({"url": f"/{name}{route.path}", "method": method.lower()})
    return {"message": "Welcome to Procrast-in-hate", "routes": routes}

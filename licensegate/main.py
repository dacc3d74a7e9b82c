"""
FastAPI application for the terminal: lifespan, middleware and routers.
"""

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from licensegate.api.admin_routes import router as admin_router
from licensegate.api.routes import router
from licensegate.api.security_routes import router as security_router
from licensegate.config import settings
from licensegate.db.migration_runner import run_migrations
from licensegate.db.session import close_engines, create_schema, get_engine
from licensegate.observability import get_logger, log_context, metrics, setup_logging, setup_tracing
from licensegate.observability.metrics import get_metrics_handler
from licensegate.observability.tracing import instrument_app, instrument_engine

# Setup logging before anything else
setup_logging()
logger = get_logger(__name__)
render_metrics = get_metrics_handler()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.

    Brings the schema up to date on startup and disposes the engine on shutdown.
    """
    logger.info(
        "application_starting",
        service=settings.api_title,
        version=settings.api_version,
        database="sqlite" if settings.is_sqlite else "postgresql",
        revocation_scope=settings.revocation_scope,
        tracing_enabled=settings.tracing_enabled,
        metrics_enabled=settings.metrics_enabled,
    )

    if settings.run_migrations_on_startup:
        await asyncio.to_thread(run_migrations)
    elif settings.is_sqlite:
        # Fresh terminal: create the local store without Alembic
        await create_schema()

    instrument_engine(get_engine())

    yield

    logger.info("application_shutting_down")
    await close_engines()
    logger.info("database_engines_closed")


app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description=settings.api_description,
    lifespan=lifespan,
)


def _public_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    # Drop "input": request bodies carry PINs
    return [
        {key: error[key] for key in ("type", "loc", "msg") if key in error}
        | ({"ctx": {k: str(v) for k, v in error["ctx"].items()}} if "ctx" in error else {})
        for error in exc.errors()
    ]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Reject malformed bodies with 422 without echoing the submitted values."""
    errors = _public_errors(exc)
    logger.warning("validation_error", path=request.url.path, method=request.method, errors=errors)
    return JSONResponse(status_code=422, content={"detail": errors})


setup_tracing()
instrument_app(app)

# Front-ends run on tablets on the same LAN
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Tag each request with an ID, time it, and count it by status."""
    request_id = request.headers.get("X-Request-ID") or uuid4().hex[:12]
    path, method = request.url.path, request.method
    in_progress = metrics.http_requests_in_progress.labels(endpoint=path, method=method)
    status_code = 500
    started = time.perf_counter()

    with log_context(request_id=request_id):
        in_progress.inc()
        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            metrics.record_error(type(e).__name__, "http_request")
            logger.exception("request_failed", method=method, path=path)
            raise
        finally:
            in_progress.dec()
            elapsed = time.perf_counter() - started
            metrics.record_http_request(path, method, status_code, elapsed)

        logger.info(
            "request_completed",
            method=method,
            path=path,
            status_code=status_code,
            duration_seconds=round(elapsed, 4),
        )
        response.headers["X-Request-ID"] = request_id
        return response


app.include_router(router)  # Activation, setup, login, status
app.include_router(security_router)  # Admin PIN re-verification, rotation, revocation
app.include_router(admin_router)  # Ledger, device and audit views


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.api_title,
        "version": settings.api_version,
        "status": "running",
    }


@app.get("/metrics")
async def metrics_endpoint() -> Response:
    """Prometheus text exposition; 404 when METRICS_ENABLED is off."""
    if not settings.metrics_enabled:
        return PlainTextResponse("", status_code=404)
    return PlainTextResponse(render_metrics())


def main() -> None:
    """Run the terminal API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "licensegate.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

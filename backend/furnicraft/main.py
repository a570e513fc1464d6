import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from furnicraft import __version__
from furnicraft.api.routes import designs, flowise, health
from furnicraft.config import settings
from furnicraft.errors import FurniCraftError
from furnicraft.logging import configure_logging
from furnicraft.models.contracts import ErrorResponse
from furnicraft.services import build_services

configure_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build services unless a test already installed its own."""
    owned = getattr(app.state, "services", None) is None
    if owned:
        app.state.services = build_services(settings)
    logger.info(
        "api_started",
        environment=settings.environment,
        analysis_backend=settings.analysis_backend,
        use_database=settings.use_database,
    )
    try:
        yield
    finally:
        if owned:
            await app.state.services.close()
            app.state.services = None
        logger.info("api_stopped")


app = FastAPI(
    title="FurniCraft API",
    version=__version__,
    docs_url="/docs",
    redoc_url=None,
    lifespan=lifespan,
)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", request.headers.get("X-Request-ID", ""))


def _error_response(request: Request, status: int, body: ErrorResponse) -> JSONResponse:
    response = JSONResponse(status_code=status, content=body.model_dump())
    response.headers["X-Request-ID"] = _request_id(request)
    return response


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Attach a request ID to every request and its log entries."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(FurniCraftError)
async def furnicraft_exception_handler(request: Request, exc: FurniCraftError) -> JSONResponse:
    """Map domain errors onto their HTTP status and the ErrorResponse shape."""
    if exc.status_code >= 500:
        logger.warning("request_failed", path=request.url.path, error=exc.code)
    detail = None
    upstream_status = getattr(exc, "upstream_status", None)
    if upstream_status is not None:
        detail = f"upstream status {upstream_status}"
    return _error_response(
        request,
        exc.status_code,
        ErrorResponse(error=exc.code, message=exc.message, retryable=exc.retryable, detail=detail),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Return ErrorResponse JSON instead of FastAPI's {"detail": [...]} shape."""
    messages = []
    for err in exc.errors():
        loc = " → ".join(str(part) for part in err["loc"])
        messages.append(f"{loc}: {err['msg']}")
    return _error_response(
        request,
        422,
        ErrorResponse(error="validation_error", message="; ".join(messages), retryable=False),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Consistent JSON for unhandled exceptions instead of a bare HTML 500."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return _error_response(
        request,
        500,
        ErrorResponse(
            error="internal_error", message="An unexpected error occurred", retryable=True
        ),
    )


app.include_router(health.router)
app.include_router(flowise.router)
app.include_router(designs.router, prefix="/api/v1")

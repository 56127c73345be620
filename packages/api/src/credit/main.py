# This project was developed with assistance from AI tools.
"""FastAPI application entry point."""

import asyncio
import contextlib
import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .routes import dashboard, financing, health, title_transfers
from .schemas.error import ErrorResponse
from .services.errors import (
    AlreadyExistsError,
    AlreadyTerminalError,
    ConcurrentModificationError,
    CreditError,
    FinancingIncompleteError,
    InvalidStateError,
    NotFoundError,
    NotScheduledError,
    OutOfOrderError,
    StageDataError,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Application startup/shutdown lifecycle."""
    from .services.notifications import init_notification_dispatcher
    from .services.reconciliation import run_sweep_forever

    init_notification_dispatcher()

    sweep_task = None
    if settings.SWEEP_ENABLED:
        sweep_task = asyncio.create_task(
            run_sweep_forever(settings.SWEEP_INTERVAL_SECONDS),
            name="overdue-sweep",
        )
    else:
        logger.info("Overdue sweep loop disabled (SWEEP_ENABLED=false)")
    yield
    if sweep_task is not None:
        sweep_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweep_task


app = FastAPI(
    title="Credit Desk API",
    description="Bank financing and title transfer progression for confirmed reservations",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_HOSTS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-User-Id"],
)

_HTTP_STATUS_TITLES: dict[int, str] = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    409: "Conflict",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
}

# Most specific class first; subclasses inherit their parent's status.
_CREDIT_ERROR_STATUS: dict[type[CreditError], int] = {
    NotFoundError: 404,
    StageDataError: 422,
    AlreadyExistsError: 409,
    AlreadyTerminalError: 409,
    OutOfOrderError: 409,
    NotScheduledError: 409,
    FinancingIncompleteError: 409,
    InvalidStateError: 409,
    ConcurrentModificationError: 409,
}


def _request_id(request: Request) -> str:
    return request.headers.get("x-request-id", str(uuid.uuid4()))


def _problem(
    request: Request,
    status_code: int,
    detail: str,
    error_type: str = "about:blank",
    errors: list[dict] | None = None,
) -> JSONResponse:
    body = ErrorResponse(
        type=error_type,
        title=_HTTP_STATUS_TITLES.get(status_code, "Error"),
        status=status_code,
        detail=detail,
        instance=request.url.path,
        request_id=_request_id(request),
        errors=errors,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _status_for(exc: CreditError) -> int:
    for klass in type(exc).__mro__:
        if klass in _CREDIT_ERROR_STATUS:
            return _CREDIT_ERROR_STATUS[klass]
    return 400


@app.exception_handler(CreditError)
async def credit_error_handler(request: Request, exc: CreditError):
    """Refused transitions become problems typed by the error class."""
    status_code = _status_for(exc)
    logger.info("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return _problem(request, status_code, exc.message, error_type=type(exc).__name__)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Convert HTTPException to RFC 7807 Problem Details."""
    return _problem(request, exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request body/query validation failures, with per-field errors."""
    errors = [
        {"loc": [str(part) for part in err["loc"]], "msg": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]
    return _problem(request, 422, "Request validation failed.", errors=errors)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all for unhandled exceptions -- log and return 500."""
    request_id = _request_id(request)
    logger.exception("Unhandled exception on %s (request_id=%s)", request.url.path, request_id)
    body = ErrorResponse(
        title=_HTTP_STATUS_TITLES[500],
        status=500,
        detail="An unexpected error occurred.",
        instance=request.url.path,
        request_id=request_id,
    )
    return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))


# Include routers
app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(financing.router, prefix="/api/credit", tags=["financing"])
app.include_router(title_transfers.router, prefix="/api/credit", tags=["title-transfers"])
app.include_router(dashboard.router, prefix="/api/credit", tags=["dashboard"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint"""
    return {"message": f"Welcome to {settings.APP_NAME}"}

"""Translate domain and framework exceptions into structured error responses."""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog
from .correlation import get_correlation_id
from ..security.rate_limiter import RateLimitExceeded
from ..services.intake import EventNotFoundError

log = structlog.get_logger()


def error_response(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    headers: dict[str, str] | None = None,
    **extra,
) -> JSONResponse:
    """Build the standard error envelope."""
    content = {
        "error": error,
        "message": message,
        "status_code": status_code,
        "correlation_id": get_correlation_id(request),
        "path": str(request.url.path),
    }
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return error_response(
        request,
        429,
        "TooManyRequests",
        "Too many requests",
        headers={"Retry-After": str(exc.retry_after_seconds)},
        retryAfterSeconds=exc.retry_after_seconds,
    )


async def not_found_handler(request: Request, exc: EventNotFoundError) -> JSONResponse:
    log.info("webhook.not_found", id=exc.event_id)
    return error_response(request, 404, "NotFound", "Webhook not found")


async def validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {
            "loc": [str(part) for part in err.get("loc", ())],
            "msg": err.get("msg", ""),
            "type": err.get("type", ""),
        }
        for err in exc.errors()
    ]
    log.warning("request.invalid", path=request.url.path, errors=len(details))
    return error_response(
        request, 400, "ValidationError", "Request validation failed", details=details
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    log.warning(
        "http.exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
    )
    return error_response(
        request,
        exc.status_code,
        exc.__class__.__name__,
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.error(
        "unhandled.exception",
        error=str(exc),
        error_type=exc.__class__.__name__,
        path=request.url.path,
        exc_info=exc,
    )
    return error_response(request, 500, "InternalServerError", "An unexpected error occurred")


def register_exception_handlers(app: FastAPI):
    """Attach all error translators to ``app``."""
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(EventNotFoundError, not_found_handler)
    app.add_exception_handler(RequestValidationError, validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

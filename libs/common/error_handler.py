"""Global exception handlers giving every service the same error envelope.

    {"success": false, "message": "...", "code": "..."}

Internal failures (database, unexpected exceptions) are logged with full
context and reported to the client with a generic message only.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from libs.common.errors import ApiError, UpstreamError, UpstreamTimeoutError
from libs.common.logging import get_logger

logger = get_logger(__name__)


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    content = {"success": False, "message": exc.message, "code": exc.code}
    if exc.field:
        content["field"] = exc.field
    return JSONResponse(status_code=exc.status_code, content=content)


async def _http_exception_handler(
    request: Request, exc: HTTPException
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail, "code": "HTTP_ERROR"},
        headers=getattr(exc, "headers", None),
    )


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())[1:]),
            "message": err.get("msg"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "message": "Invalid request",
            "code": "VALIDATION_ERROR",
            "errors": errors,
        },
    )


async def _upstream_error_handler(
    request: Request, exc: UpstreamError
) -> JSONResponse:
    logger.error(
        "Payment gateway call failed: %s",
        exc.message,
        extra={"extra_fields": {"upstream_status": exc.status_code}},
    )
    if isinstance(exc, UpstreamTimeoutError):
        return JSONResponse(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            content={
                "success": False,
                "message": "Payment gateway timed out",
                "code": "GATEWAY_TIMEOUT",
            },
        )
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={
            "success": False,
            "message": "Payment gateway error",
            "code": "GATEWAY_ERROR",
        },
    )


async def _database_error_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    logger.exception("Database error while handling %s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "message": "An internal error occurred",
            "code": "INTERNAL_ERROR",
        },
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error while handling %s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "message": "An internal error occurred",
            "code": "INTERNAL_ERROR",
        },
    )


def add_exception_handlers(app: FastAPI) -> None:
    """Register the shared exception handlers on an app."""
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(HTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(UpstreamError, _upstream_error_handler)
    app.add_exception_handler(SQLAlchemyError, _database_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

"""Error types shared by the storefront services."""

from typing import Optional

from fastapi import HTTPException, status


class ApiError(HTTPException):
    """HTTPException with a machine-readable code and optional offending field."""

    def __init__(
        self,
        status_code: int,
        message: str,
        code: str,
        field: Optional[str] = None,
    ):
        super().__init__(status_code=status_code, detail=message)
        self.message = message
        self.code = code
        self.field = field


def bad_request(message: str, code: str, field: Optional[str] = None) -> ApiError:
    return ApiError(status.HTTP_400_BAD_REQUEST, message, code, field)


def not_found(message: str, code: str = "NOT_FOUND") -> ApiError:
    return ApiError(status.HTTP_404_NOT_FOUND, message, code)


def conflict(message: str, code: str) -> ApiError:
    return ApiError(status.HTTP_409_CONFLICT, message, code)


class UpstreamError(Exception):
    """Base exception for failed calls to a third-party API."""

    def __init__(
        self, message: str, status_code: int = None, response_data: dict = None
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


class UpstreamTimeoutError(UpstreamError):
    """The third-party API did not answer within the configured timeout."""

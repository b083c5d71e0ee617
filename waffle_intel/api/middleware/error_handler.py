"""Error handling middleware and exception handlers."""

from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import RequestResponseEndpoint
from starlette.responses import Response

from waffle_intel.application.services.ingestion import IngestionError
from waffle_intel.commons.telemetry.logger import get_logger
from waffle_intel.domain.exceptions import (
    AuthenticationRequiredError,
    DomainException,
    ForbiddenError,
    InvalidRequestError,
    InvalidSearchQueryError,
    InvalidTokenError,
    NotGroupMemberError,
    SearchTaskNotFoundError,
    ThrottledError,
)

logger = get_logger(__name__)


class APIError(Exception):
    """Base API error with code and details."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize API error.

        Args:
            code: Error code for clients.
            message: Human-readable error message.
            status_code: HTTP status code.
            details: Additional error details.
        """
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


def _build_error_response(
    request: Request,
    code: str,
    message: str,
    status_code: int,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build standardized error response.

    Args:
        request: HTTP request.
        code: Error code.
        message: Error message.
        status_code: HTTP status code.
        details: Additional details.
        headers: Extra response headers.

    Returns:
        JSON error response.
    """
    request_id = getattr(request.state, "request_id", "unknown")

    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "details": details or {},
                "request_id": request_id,
            }
        },
        headers=headers,
    )


def _handle_exception(  # noqa: PLR0911
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle exception and return appropriate error response.

    Args:
        request: HTTP request.
        exc: Exception to handle.

    Returns:
        JSON error response.
    """
    if isinstance(exc, APIError):
        logger.warning(
            f"API error: {exc.code}",
            extra={
                "error_code": exc.code,
                "error_message": exc.message,
                "details": exc.details,
            },
        )
        return _build_error_response(
            request=request,
            code=exc.code,
            message=exc.message,
            status_code=exc.status_code,
            details=exc.details,
        )

    if isinstance(exc, AuthenticationRequiredError):
        logger.info(f"Unauthenticated request: {exc.reason}")
        return _build_error_response(
            request=request,
            code="UNAUTHORIZED",
            message=exc.reason,
            status_code=status.HTTP_401_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )

    if isinstance(exc, InvalidTokenError):
        logger.info(f"Rejected bearer token: {exc.reason}")
        return _build_error_response(
            request=request,
            code="INVALID_TOKEN",
            message="Invalid or expired token",
            status_code=status.HTTP_403_FORBIDDEN,
        )

    if isinstance(exc, InvalidSearchQueryError):
        logger.warning(f"Invalid search query: {exc.reason}")
        return _build_error_response(
            request=request,
            code="INVALID_QUERY",
            message=str(exc),
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"field": exc.field},
        )

    if isinstance(exc, InvalidRequestError):
        logger.warning(f"Invalid request: {exc}")
        return _build_error_response(
            request=request,
            code="INVALID_REQUEST",
            message=str(exc),
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"field": exc.field} if exc.field else None,
        )

    if isinstance(exc, NotGroupMemberError):
        logger.warning(f"Group access denied: {exc}")
        return _build_error_response(
            request=request,
            code="NOT_GROUP_MEMBER",
            message="You are not a member of this group",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"group_id": exc.group_id},
        )

    if isinstance(exc, ForbiddenError):
        logger.warning(f"Forbidden: {exc}")
        return _build_error_response(
            request=request,
            code="FORBIDDEN",
            message=str(exc),
            status_code=status.HTTP_403_FORBIDDEN,
        )

    if isinstance(exc, SearchTaskNotFoundError):
        logger.info(f"Search task not found: {exc.search_id}")
        return _build_error_response(
            request=request,
            code="SEARCH_NOT_FOUND",
            message="Search not found or already expired",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"search_id": exc.search_id},
        )

    if isinstance(exc, ThrottledError):
        retry_after = max(1, int(exc.retry_after_seconds))
        logger.info(f"Request throttled for {retry_after}s")
        return _build_error_response(
            request=request,
            code="TOO_MANY_REQUESTS",
            message=str(exc),
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            headers={"Retry-After": str(retry_after)},
        )

    if isinstance(exc, IngestionError):
        logger.error(f"Ingestion error at step {exc.step.value}: {exc}")
        return _build_error_response(
            request=request,
            code="INGESTION_ERROR",
            message="Failed to process video",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"step": exc.step.value},
        )

    if isinstance(exc, DomainException):
        logger.error(f"Domain error: {exc}")
        return _build_error_response(
            request=request,
            code="PROCESSING_ERROR",
            message="The request could not be completed",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    # Catch-all for unexpected errors
    logger.exception(f"Unexpected error: {exc}")
    return _build_error_response(
        request=request,
        code="INTERNAL_ERROR",
        message="An unexpected error occurred",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


async def error_handler_middleware(
    request: Request,
    call_next: RequestResponseEndpoint,
) -> Response:
    """Middleware to catch and format all exceptions.

    Args:
        request: HTTP request.
        call_next: Next handler in chain.

    Returns:
        HTTP response.
    """
    try:
        return await call_next(request)
    except Exception as exc:
        return _handle_exception(request, exc)

"""
Custom exceptions and error handlers for the web application.

Every handler answers with the same body:
    {"success": false, "error": "...", "type": "..."}
"""

import logging
from typing import Optional
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ServiceException(Exception):
    """Base exception for service layer errors."""
    status_code = 500

    def __init__(self, message: str, extra: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class NotFoundException(ServiceException):
    """Raised when a document is not found."""
    status_code = 404


class ValidationException(ServiceException):
    """Raised when input fails a business rule."""
    status_code = 400


class AuthorizationException(ServiceException):
    """Raised when a session or token is missing, invalid or expired."""
    status_code = 401


class ForbiddenException(ServiceException):
    """Raised when the caller may not perform the action."""
    status_code = 403


class GoneException(ServiceException):
    """Raised when a resource exists but is no longer available."""
    status_code = 410


class ExternalServiceException(ServiceException):
    """Raised when email, calendar or LLM providers fail."""
    status_code = 502


class RateLimitException(ServiceException):
    """Raised when a caller exceeds its rate limit."""
    status_code = 429

    def __init__(self, retry_after: int):
        super().__init__("Too many requests", {"retryAfter": retry_after})
        self.retry_after = retry_after


async def service_exception_handler(
    request: Request,
    exc: ServiceException
) -> JSONResponse:
    """
    Handle service layer exceptions.

    Args:
        request: The FastAPI request.
        exc: The service exception.

    Returns:
        JSONResponse with error details.
    """
    if exc.status_code >= 500:
        logger.error(f"Service error in {request.url.path}: {exc}", exc_info=True)
    else:
        logger.info(f"{exc.__class__.__name__} in {request.url.path}: {exc}")

    headers = None
    if isinstance(exc, RateLimitException):
        headers = {"Retry-After": str(exc.retry_after)}

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.message,
            "type": exc.__class__.__name__,
            **exc.extra
        },
        headers=headers
    )


async def http_exception_handler(
    request: Request,
    exc: HTTPException
) -> JSONResponse:
    """
    Handle FastAPI HTTP exceptions with consistent format.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail,
            "type": "HTTPException"
        },
        headers=getattr(exc, "headers", None)
    )


async def general_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle unexpected exceptions.
    """
    logger.exception(f"Unexpected error in {request.url.path}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "type": "InternalError"
        }
    )

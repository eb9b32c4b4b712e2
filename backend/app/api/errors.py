"""
Translation of service errors into HTTP responses.
"""
from fastapi import HTTPException, status
from app.core.exceptions import (
    AuthError, MindFlowError, NotFoundError, RateLimitError, UpstreamTimeoutError
)
from app.core.utils import format_error


def to_http_exception(exc: MindFlowError) -> HTTPException:
    """Map an insight/search error to a status code and error body."""
    headers = None
    if isinstance(exc, RateLimitError):
        status_code = status.HTTP_429_TOO_MANY_REQUESTS
        if exc.retry_after:
            headers = {"Retry-After": str(exc.retry_after)}
    elif isinstance(exc, AuthError):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(exc, UpstreamTimeoutError):
        status_code = status.HTTP_504_GATEWAY_TIMEOUT
    elif isinstance(exc, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    else:
        # UpstreamError, ValidationError
        status_code = status.HTTP_502_BAD_GATEWAY

    return HTTPException(
        status_code=status_code,
        detail=format_error(exc.message, code=exc.code, retryable=exc.retryable),
        headers=headers
    )

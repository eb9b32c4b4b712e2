"""
Error taxonomy for the AI insight and search pipeline.

Services raise these; routes translate them into HTTP responses.
Sentiment analysis and usage tracking absorb them locally instead.
"""


class MindFlowError(Exception):
    """Base exception for all insight/search errors.

    Attributes:
        code: Stable machine-readable error code for API clients.
        retryable: Whether the client may retry the same request later.
    """

    code = "INTERNAL_ERROR"
    retryable = False

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__.strip().splitlines()[0])
        self.message = str(self)


class AuthError(MindFlowError):
    """Language model credentials are missing or were rejected."""

    code = "AI_UNAVAILABLE"


class RateLimitError(MindFlowError):
    """Usage quota exceeded, try again later."""

    code = "RATE_LIMITED"
    retryable = True

    def __init__(self, message: str = None, retry_after: int = None):
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamError(MindFlowError):
    """The language model provider failed to answer."""

    code = "UPSTREAM_ERROR"
    retryable = True


class UpstreamTimeoutError(UpstreamError):
    """The request timed out."""

    code = "TIMEOUT"


class ValidationError(MindFlowError):
    """The language model returned a malformed or out-of-range response."""

    code = "INVALID_AI_RESPONSE"
    retryable = True


class NotFoundError(MindFlowError):
    """The requested resource does not exist."""

    code = "NOT_FOUND"

"""Custom exceptions for the Overwatch core."""


class OverwatchException(Exception):
    """Base class for Overwatch exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500

    def __init__(self, message: str = "Overwatch error"):
        self.message = message
        super().__init__(message)


class PrcApiError(OverwatchException):
    """Base class for failures talking to the PRC private server API.

    Maps to HTTP 502 Bad Gateway when surfaced by the internal API.
    """
    status_code = 502

    def __init__(self, message: str = "PRC API error"):
        super().__init__(message)


class UpstreamError(PrcApiError):
    """Raised for any non-2xx upstream response without a dedicated type."""

    def __init__(self, status: int, reason: str | None = None):
        self.status = status
        message = f"PRC API Error: {status}"
        if reason:
            message += f" {reason}"
        super().__init__(message)


class UpstreamTimeoutError(PrcApiError):
    """Raised when a single physical attempt exceeds the request timeout.

    Maps to HTTP 504 Gateway Timeout.
    """
    status_code = 504

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout
        message = "PRC API Timeout"
        if timeout is not None:
            message += f" after {timeout:g}s"
        super().__init__(message)


class RateLimitedError(PrcApiError):
    """Raised when the API keeps answering 429 after the retry budget is spent.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429

    def __init__(self, retry_after: float | None = None, attempts: int | None = None):
        self.retry_after = retry_after
        self.attempts = attempts
        message = "Rate Limited"
        if attempts is not None:
            message += f" after {attempts} attempts"
        super().__init__(message)


class InvalidCredentialError(PrcApiError):
    """Raised when the API rejects the server key (HTTP 403). Never retried."""

    def __init__(self, detail: str = "Invalid API Key"):
        self.detail = detail
        super().__init__(detail)


class UnauthorizedError(OverwatchException):
    """Raised when the internal API secret is missing or wrong.

    Maps to HTTP 401 Unauthorized.
    """
    status_code = 401

    def __init__(self, detail: str = "Unauthorized"):
        self.detail = detail
        super().__init__(detail)

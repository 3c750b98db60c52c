"""Custom exception classes and user-facing error messages."""

from enum import Enum


class ErrorKind(Enum):
    """Structured classification of a failed LLM request."""

    DAILY_QUOTA = "daily_quota"  # Per-day cap hit, permanent until tomorrow
    RATE_LIMIT = "rate_limit"  # Transient quota / traffic signal
    VALIDATION = "validation"  # Missing required fields, empty response
    PARSE = "parse"  # Malformed JSON in a schema-constrained response
    TRANSPORT = "transport"  # Network failure reaching the service or relay
    TIMEOUT = "timeout"
    AUTH = "auth"  # Invalid or unauthorised credentials
    INVALID_INPUT = "invalid_input"  # Request rejected as malformed / not a job
    UPSTREAM = "upstream"  # Service or relay reported an error
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"

    @property
    def is_retryable(self) -> bool:
        """Only transient quota errors are expected to clear within seconds."""
        return self is ErrorKind.RATE_LIMIT


ERROR_MESSAGES: dict[str, str] = {
    # API key errors
    "INVALID_API_KEY": "Invalid API key. Please check your settings and try again.",
    "API_KEY_PERMISSION_DENIED": (
        "API key doesn't have permission. Check your Google Cloud console."
    ),
    # Quota errors
    "DAILY_QUOTA_EXCEEDED": (
        "You've reached your daily API limit. Try again tomorrow, "
        "or upgrade to JobFit Pro for unlimited access."
    ),
    "RATE_LIMIT_EXCEEDED": (
        "Too many requests. The AI is busy right now - "
        "please wait a moment and try again."
    ),
    # Network errors
    "NETWORK_ERROR": "Connection issue. Check your internet and try again.",
    "TIMEOUT_ERROR": (
        "Request took too long. The server might be slow - try again in a moment."
    ),
    # Content errors
    "NOT_A_JOB": "This content doesn't look like a valid job description.",
    "CANCELLED": "The request was cancelled.",
    # Generic errors
    "RETRIES_EXHAUSTED": "Request failed after multiple attempts. Please try again later.",
    "UNKNOWN_ERROR": "Something went wrong. Please try again.",
    "SERVER_ERROR": "Server error. Our team has been notified. Please try again later.",
}


class JobFitError(Exception):
    """Base exception for JobFit orchestration errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class LLMInvocationError(JobFitError):
    """A single LLM invocation failed, normalised by the gateway."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.kind = kind


class ResponseValidationError(JobFitError):
    """The service answered, but the answer is empty or misses required fields."""

    kind = ErrorKind.VALIDATION


class ResponseParseError(JobFitError):
    """A schema-constrained response did not contain valid JSON."""

    kind = ErrorKind.PARSE


class DailyQuotaExceededError(JobFitError):
    """Per-day cap reached; never retried."""

    kind = ErrorKind.DAILY_QUOTA

    def __init__(self, details: dict | None = None):
        super().__init__(ERROR_MESSAGES["DAILY_QUOTA_EXCEEDED"], details)


class RateLimitExceededError(JobFitError):
    """Transient rate limiting persisted through every attempt."""

    kind = ErrorKind.RATE_LIMIT

    def __init__(self, details: dict | None = None):
        super().__init__(ERROR_MESSAGES["RATE_LIMIT_EXCEEDED"], details)


class RequestCancelledError(JobFitError):
    """The caller cancelled the request through its cancellation token."""

    kind = ErrorKind.CANCELLED

    def __init__(self, message: str = ERROR_MESSAGES["CANCELLED"], details: dict | None = None):
        super().__init__(message, details)


class RetriesExhaustedError(JobFitError):
    """Retry loop finished without a result or a classified failure."""

    def __init__(self, details: dict | None = None):
        super().__init__(ERROR_MESSAGES["RETRIES_EXHAUSTED"], details)


class LLMRequestError(JobFitError):
    """Terminal, already translated failure of an orchestrated request."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.kind = kind


_KIND_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.DAILY_QUOTA: "DAILY_QUOTA_EXCEEDED",
    ErrorKind.RATE_LIMIT: "RATE_LIMIT_EXCEEDED",
    ErrorKind.TRANSPORT: "NETWORK_ERROR",
    ErrorKind.TIMEOUT: "TIMEOUT_ERROR",
    ErrorKind.AUTH: "INVALID_API_KEY",
    ErrorKind.CANCELLED: "CANCELLED",
}


def get_user_friendly_error(error: Exception | str) -> str:
    """Convert a technical error into a message suitable for direct display.

    Structured kinds are used when the error carries one; plain strings and
    foreign exceptions fall back to message inspection.

    Args:
        error: Exception or raw error message

    Returns:
        User-facing message
    """
    if isinstance(error, (ResponseValidationError, ResponseParseError)):
        # Already descriptive
        return error.message

    kind = getattr(error, "kind", None)
    if isinstance(kind, ErrorKind) and kind in _KIND_MESSAGES:
        return ERROR_MESSAGES[_KIND_MESSAGES[kind]]
    if kind is ErrorKind.INVALID_INPUT and "not_a_job" in str(error):
        return ERROR_MESSAGES["NOT_A_JOB"]

    message = error if isinstance(error, str) else str(error)

    if "DAILY_QUOTA_EXCEEDED" in message or "PerDay" in message:
        return ERROR_MESSAGES["DAILY_QUOTA_EXCEEDED"]
    if "RATE_LIMIT_EXCEEDED" in message or "429" in message or "quota" in message:
        return ERROR_MESSAGES["RATE_LIMIT_EXCEEDED"]
    if "network" in message or "fetch" in message:
        return ERROR_MESSAGES["NETWORK_ERROR"]
    if "timeout" in message:
        return ERROR_MESSAGES["TIMEOUT_ERROR"]
    if "403" in message or "permission" in message:
        return ERROR_MESSAGES["API_KEY_PERMISSION_DENIED"]
    if "400" in message or "invalid" in message:
        return ERROR_MESSAGES["INVALID_API_KEY"]
    if "not_a_job" in message:
        return ERROR_MESSAGES["NOT_A_JOB"]

    # Short messages may already be friendly; anything technical-looking is not
    if not message or len(message) > 100 or "Error:" in message or "Traceback" in message:
        return ERROR_MESSAGES["UNKNOWN_ERROR"]
    return message


def get_retry_message(attempt: int, max_attempts: int, delay_seconds: float) -> str:
    """Format the progress message shown while waiting to retry."""
    return (
        f"Too busy right now. Retrying ({attempt}/{max_attempts}) "
        f"in {delay_seconds:g}s..."
    )

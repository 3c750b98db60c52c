"""Tests for user-facing error translation.

Run with: pytest backend/tests/test_errors.py -v
"""

import pytest

from jobfit.utils.errors import (
    ERROR_MESSAGES,
    DailyQuotaExceededError,
    ErrorKind,
    LLMInvocationError,
    ResponseValidationError,
    get_retry_message,
    get_user_friendly_error,
)


class TestGetUserFriendlyError:
    """Test get_user_friendly_error."""

    @pytest.mark.parametrize(
        "kind,key",
        [
            (ErrorKind.DAILY_QUOTA, "DAILY_QUOTA_EXCEEDED"),
            (ErrorKind.RATE_LIMIT, "RATE_LIMIT_EXCEEDED"),
            (ErrorKind.TRANSPORT, "NETWORK_ERROR"),
            (ErrorKind.TIMEOUT, "TIMEOUT_ERROR"),
            (ErrorKind.AUTH, "INVALID_API_KEY"),
            (ErrorKind.CANCELLED, "CANCELLED"),
        ],
    )
    def test_structured_kinds(self, kind, key):
        """Test that a structured kind picks its message regardless of text."""
        error = LLMInvocationError("Proxy Error: something odd", kind=kind)
        assert get_user_friendly_error(error) == ERROR_MESSAGES[key]

    @pytest.mark.parametrize(
        "message,key",
        [
            ("GenerateRequestsPerDay exceeded", "DAILY_QUOTA_EXCEEDED"),
            ("429 Too Many Requests", "RATE_LIMIT_EXCEEDED"),
            ("network unreachable", "NETWORK_ERROR"),
            ("failed to fetch", "NETWORK_ERROR"),
            ("read timeout", "TIMEOUT_ERROR"),
            ("403 Forbidden", "API_KEY_PERMISSION_DENIED"),
            ("400 Bad Request", "INVALID_API_KEY"),
            ("not_a_job", "NOT_A_JOB"),
        ],
    )
    def test_message_inspection(self, message, key):
        """Test fallback classification of plain messages."""
        assert get_user_friendly_error(message) == ERROR_MESSAGES[key]

    def test_not_a_job_kind(self):
        """Test the relay's not-a-job rejection."""
        error = LLMInvocationError("AI Error: not_a_job", kind=ErrorKind.INVALID_INPUT)
        assert get_user_friendly_error(error) == ERROR_MESSAGES["NOT_A_JOB"]

    def test_validation_message_kept(self):
        """Test that descriptive validation errors are shown as-is."""
        error = ResponseValidationError("AI response is missing the summary")
        assert get_user_friendly_error(error) == "AI response is missing the summary"

    def test_short_friendly_message_kept(self):
        assert get_user_friendly_error("Please sign in again.") == "Please sign in again."

    def test_technical_message_hidden(self):
        """Test that stack-trace-like text becomes the generic message."""
        assert get_user_friendly_error("KeyError: 'choices'") == ERROR_MESSAGES["UNKNOWN_ERROR"]
        assert get_user_friendly_error("x" * 150) == ERROR_MESSAGES["UNKNOWN_ERROR"]
        assert get_user_friendly_error("") == ERROR_MESSAGES["UNKNOWN_ERROR"]

    def test_daily_quota_error_message(self):
        error = DailyQuotaExceededError()
        assert error.kind is ErrorKind.DAILY_QUOTA
        assert str(error) == ERROR_MESSAGES["DAILY_QUOTA_EXCEEDED"]


class TestErrorKind:
    """Test retryability."""

    def test_only_rate_limit_is_retryable(self):
        retryable = [kind for kind in ErrorKind if kind.is_retryable]
        assert retryable == [ErrorKind.RATE_LIMIT]


def test_retry_message_format():
    """Test the progress message shown during backoff."""
    assert get_retry_message(1, 3, 2.0) == "Too busy right now. Retrying (1/3) in 2s..."
    assert get_retry_message(2, 4, 1.5) == "Too busy right now. Retrying (2/4) in 1.5s..."

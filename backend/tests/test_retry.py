"""Tests for the retry executor: backoff, classification and telemetry.

Run with: pytest backend/tests/test_retry.py -v
"""

import asyncio

import pytest

from jobfit.llm.cancellation import CancellationToken
from jobfit.llm.retry import RetryExecutor, RetryPolicy, classify_exception, is_retryable_error
from jobfit.llm.types import EventType, InvocationContext
from jobfit.utils.errors import (
    ERROR_MESSAGES,
    DailyQuotaExceededError,
    ErrorKind,
    LLMInvocationError,
    LLMRequestError,
    RateLimitExceededError,
    RequestCancelledError,
    ResponseValidationError,
)


def make_context(event_type: EventType = EventType.ANALYSIS) -> InvocationContext:
    return InvocationContext(
        event_type=event_type,
        prompt="Compare jane.doe@example.com's resume",
        model="gemini-1.5-pro",
        metadata={"source": "test"},
    )


class ScriptedCall:
    """Async callable raising the scripted errors, then returning ``result``."""

    def __init__(self, errors=(), result="ok", tokens=None):
        self.errors = list(errors)
        self.result = result
        self.tokens = tokens
        self.calls = 0

    async def __call__(self, metadata):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        if self.tokens is not None:
            metadata.set("token_usage", {"total_tokens": self.tokens})
        return self.result


def rate_limited() -> LLMInvocationError:
    return LLMInvocationError("429 Too Many Requests", kind=ErrorKind.RATE_LIMIT)


# ============================================
# Classification
# ============================================


class TestClassifyException:
    """Test error classification."""

    def test_structured_kind_wins(self):
        """Test that an explicit kind is used over the message."""
        error = LLMInvocationError("429 but actually auth", kind=ErrorKind.AUTH)
        assert classify_exception(error) is ErrorKind.AUTH

    def test_per_day_message_is_daily_quota(self):
        """Test the per-day signal in a plain exception."""
        error = RuntimeError("Quota exceeded for GenerateRequestsPerDayPerProject")
        assert classify_exception(error) is ErrorKind.DAILY_QUOTA

    @pytest.mark.parametrize(
        "message",
        ["429 Too Many Requests", "Quota exceeded", "quota hit", "High traffic right now"],
    )
    def test_rate_limit_messages(self, message):
        """Test transient quota substrings."""
        assert classify_exception(RuntimeError(message)) is ErrorKind.RATE_LIMIT
        assert is_retryable_error(RuntimeError(message))

    def test_other_errors_are_not_retryable(self):
        """Test that an unrecognised failure is not retried."""
        assert classify_exception(ValueError("bad input")) is ErrorKind.UNKNOWN
        assert not is_retryable_error(ValueError("bad input"))

    def test_timeout_and_connection(self):
        """Test built-in timeout and connection errors."""
        assert classify_exception(asyncio.TimeoutError()) is ErrorKind.TIMEOUT
        assert classify_exception(ConnectionResetError("reset")) is ErrorKind.TRANSPORT


# ============================================
# Retry behaviour
# ============================================


class TestRetryExecutor:
    """Test RetryExecutor.execute."""

    @pytest.mark.asyncio
    async def test_success_first_try(self, executor, telemetry, sink, sleep):
        """Test a call that succeeds immediately logs one success record."""
        call = ScriptedCall(result={"ok": True})

        result = await executor.execute(call, make_context())
        await telemetry.drain()

        assert result == {"ok": True}
        assert call.calls == 1
        assert sleep.delays == []
        assert len(sink.rows) == 1
        row = sink.rows[0]
        assert row["status"] == "success"
        assert row["event_type"] == "analysis"
        assert row["model_name"] == "gemini-1.5-pro"
        assert row["response_text"] == '{"ok": true}'
        assert row["metadata"]["source"] == "test"

    @pytest.mark.asyncio
    async def test_retries_rate_limit_with_doubling_delay(self, executor, telemetry, sink, sleep):
        """Test two rate limits then success: delays 2s and 4s, one success record."""
        call = ScriptedCall(errors=[rate_limited(), rate_limited()], result="done")
        progress = []

        result = await executor.execute(
            call,
            make_context(),
            on_progress=lambda message, attempt, total: progress.append((message, attempt, total)),
        )
        await telemetry.drain()

        assert result == "done"
        assert call.calls == 3
        assert sleep.delays == [2.0, 4.0]
        assert progress == [
            ("Too busy right now. Retrying (1/3) in 2s...", 1, 3),
            ("Too busy right now. Retrying (2/3) in 4s...", 2, 3),
        ]
        assert [row["status"] for row in sink.rows] == ["success"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_attempts", [1, 2, 4])
    async def test_exhausted_rate_limit(self, telemetry, sink, sleep, max_attempts):
        """Test N attempts, delays initial*2^(k-2), and one error record."""
        executor = RetryExecutor(
            telemetry, RetryPolicy(max_attempts=max_attempts, initial_delay=1.5), sleep=sleep
        )
        call = ScriptedCall(errors=[rate_limited() for _ in range(max_attempts)])

        with pytest.raises(RateLimitExceededError) as exc_info:
            await executor.execute(call, make_context())
        await telemetry.drain()

        assert call.calls == max_attempts
        assert sleep.delays == [1.5 * 2 ** (k - 2) for k in range(2, max_attempts + 1)]
        assert exc_info.value.message == ERROR_MESSAGES["RATE_LIMIT_EXCEEDED"]
        assert len(sink.rows) == 1
        assert sink.rows[0]["status"] == "error"
        assert sink.rows[0]["metadata"]["attempt"] == max_attempts
        assert sink.rows[0]["metadata"]["error_kind"] == "rate_limit"

    @pytest.mark.asyncio
    async def test_daily_quota_fails_immediately(self, executor, telemetry, sink, sleep):
        """Test a per-day quota error: one attempt, no sleep, fixed message."""
        call = ScriptedCall(
            errors=[LLMInvocationError("Quota PerDay exhausted", kind=ErrorKind.DAILY_QUOTA)]
        )

        with pytest.raises(DailyQuotaExceededError) as exc_info:
            await executor.execute(call, make_context())
        await telemetry.drain()

        assert call.calls == 1
        assert sleep.delays == []
        assert "Try again tomorrow" in str(exc_info.value)
        assert [row["status"] for row in sink.rows] == ["error"]

    @pytest.mark.asyncio
    async def test_daily_quota_from_plain_message(self, executor, sleep):
        """Test an unstructured error carrying the per-day signal."""
        call = ScriptedCall(errors=[RuntimeError("429 GenerateRequestsPerDay limit")])

        with pytest.raises(DailyQuotaExceededError):
            await executor.execute(call, make_context())

        assert call.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_other_error_not_retried_and_translated(self, executor, telemetry, sink, sleep):
        """Test that a transport failure is surfaced once with a friendly message."""
        call = ScriptedCall(
            errors=[LLMInvocationError("Proxy Error: connection reset", kind=ErrorKind.TRANSPORT)]
        )

        with pytest.raises(LLMRequestError) as exc_info:
            await executor.execute(call, make_context())
        await telemetry.drain()

        assert call.calls == 1
        assert sleep.delays == []
        assert exc_info.value.message == ERROR_MESSAGES["NETWORK_ERROR"]
        assert exc_info.value.kind is ErrorKind.TRANSPORT
        assert len(sink.rows) == 1
        assert sink.rows[0]["error_message"] == "Proxy Error: connection reset"

    @pytest.mark.asyncio
    async def test_validation_error_keeps_message(self, executor):
        """Test that descriptive validation errors pass through untranslated."""
        call = ScriptedCall(errors=[ResponseValidationError("AI response is missing the summary")])

        with pytest.raises(ResponseValidationError, match="missing the summary"):
            await executor.execute(call, make_context())

        assert call.calls == 1

    @pytest.mark.asyncio
    async def test_execution_metadata_merged_into_success(self, executor, telemetry, sink):
        """Test that values written by fn reach the success record."""
        call = ScriptedCall(result="ok", tokens=120)

        await executor.execute(call, make_context())
        await telemetry.drain()

        assert sink.rows[0]["metadata"]["token_usage"] == {"total_tokens": 120}
        assert sink.rows[0]["metadata"]["source"] == "test"

    @pytest.mark.asyncio
    async def test_prompt_is_redacted_in_record(self, executor, telemetry, sink):
        """Test that the executor's telemetry goes through redaction."""
        await executor.execute(ScriptedCall(), make_context())
        await telemetry.drain()

        assert sink.rows[0]["prompt_text"] == "Compare [EMAIL_REDACTED]'s resume"


# ============================================
# Cancellation
# ============================================


class TestCancellation:
    """Test cancellation tokens threaded through the executor."""

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, executor, telemetry, sink):
        """Test that a pre-cancelled token prevents the call entirely."""
        token = CancellationToken()
        token.cancel("user navigated away")
        call = ScriptedCall()

        with pytest.raises(RequestCancelledError):
            await executor.execute(call, make_context(), cancel_token=token)
        await telemetry.drain()

        assert call.calls == 0
        assert [row["status"] for row in sink.rows] == ["error"]

    @pytest.mark.asyncio
    async def test_cancel_during_call(self, executor, telemetry, sink):
        """Test that cancelling aborts an in-flight call."""
        token = CancellationToken()
        started = asyncio.Event()

        async def hang(metadata):
            started.set()
            await asyncio.sleep(3600)

        task = asyncio.create_task(executor.execute(hang, make_context(), cancel_token=token))
        await started.wait()
        token.cancel()

        with pytest.raises(RequestCancelledError):
            await task
        await telemetry.drain()
        assert len(sink.rows) == 1

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self, telemetry, sink):
        """Test that cancelling interrupts the backoff wait."""
        token = CancellationToken()
        executor = RetryExecutor(telemetry, RetryPolicy(max_attempts=3, initial_delay=60.0))
        call = ScriptedCall(errors=[rate_limited(), rate_limited()])

        def cancel_on_retry(message, attempt, total):
            token.cancel("stop")

        with pytest.raises(RequestCancelledError):
            await asyncio.wait_for(
                executor.execute(
                    call, make_context(), on_progress=cancel_on_retry, cancel_token=token
                ),
                timeout=5,
            )
        await telemetry.drain()

        assert call.calls == 1
        assert len(sink.rows) == 1
        assert sink.rows[0]["metadata"]["error_kind"] == "cancelled"

"""Retry executor with exponential backoff and quota classification.

Every orchestrated LLM call runs through ``RetryExecutor.execute``, which
owns attempt counting, backoff, error classification, progress notification
and telemetry emission for that call.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from pydantic import BaseModel
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from jobfit.services.telemetry import TelemetryEvent, TelemetryLogger
from jobfit.utils.errors import (
    DailyQuotaExceededError,
    ErrorKind,
    JobFitError,
    LLMRequestError,
    RateLimitExceededError,
    RequestCancelledError,
    RetriesExhaustedError,
    get_retry_message,
    get_user_friendly_error,
)

from .cancellation import CancellationToken
from .types import ExecutionMetadata, InvocationContext

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[str, int, int], None]

_UNSET = object()

DAILY_QUOTA_INDICATORS = ("PerDay", "per day", "daily_limit_reached")
RATE_LIMIT_INDICATORS = (
    "429",
    "Quota",
    "quota",
    "High traffic",
    "RESOURCE_EXHAUSTED",
    "rate limit",
    "Rate limit",
)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration for one call site."""

    max_attempts: int = 3
    initial_delay: float = 2.0
    backoff_multiplier: float = 2.0

    def delay_before(self, attempt: int) -> float:
        """Delay slept before ``attempt`` (2-indexed; attempt 1 never waits)."""
        return self.initial_delay * self.backoff_multiplier ** (attempt - 2)


def classify_exception(exception: BaseException) -> ErrorKind:
    """Classify an exception into an ErrorKind.

    Structured kinds set by the gateway win; anything else is classified from
    its message so that arbitrary wrapped functions behave the same way.

    Args:
        exception: Exception to classify

    Returns:
        The error kind
    """
    kind = getattr(exception, "kind", None)
    if isinstance(kind, ErrorKind):
        return kind

    if isinstance(exception, asyncio.CancelledError):
        return ErrorKind.CANCELLED
    if isinstance(exception, (asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.TIMEOUT

    message = str(exception)
    if any(indicator in message for indicator in DAILY_QUOTA_INDICATORS):
        return ErrorKind.DAILY_QUOTA
    if any(indicator in message for indicator in RATE_LIMIT_INDICATORS):
        return ErrorKind.RATE_LIMIT
    if isinstance(exception, ConnectionError):
        return ErrorKind.TRANSPORT
    return ErrorKind.UNKNOWN


def is_retryable_error(exception: BaseException) -> bool:
    return classify_exception(exception).is_retryable


def _serialize_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    if isinstance(result, BaseModel):
        return result.model_dump_json(by_alias=True)
    if isinstance(result, list) and all(isinstance(item, BaseModel) for item in result):
        return json.dumps([item.model_dump(mode="json", by_alias=True) for item in result])
    try:
        return json.dumps(result, default=str)
    except (TypeError, ValueError):
        return repr(result)


class RetryExecutor:
    """Runs one LLM invocation with retries, backoff and telemetry."""

    def __init__(
        self,
        telemetry: TelemetryLogger,
        default_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the executor.

        Args:
            telemetry: Logger receiving exactly one record per execute() call
            default_policy: Policy used when a call site passes none
            sleep: Coroutine used for backoff waits (injectable for tests)
        """
        self.telemetry = telemetry
        self.default_policy = default_policy or RetryPolicy()
        self._sleep = sleep

    async def execute(
        self,
        fn: Callable[[ExecutionMetadata], Awaitable[T]],
        context: InvocationContext,
        policy: Optional[RetryPolicy] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> T:
        """Execute ``fn`` with retry logic.

        Only transient quota/traffic errors are retried. A per-day quota
        signal fails immediately; every other error is treated as
        deterministic and fails after one attempt.

        Args:
            fn: Async function receiving a fresh ExecutionMetadata per attempt
            context: Observability context for the telemetry record
            policy: Retry policy (defaults to the executor's policy)
            on_progress: Called with (message, attempt, max_attempts) before
                each backoff sleep
            cancel_token: Optional token that aborts the attempt or the wait

        Returns:
            The result of ``fn``, already logged as a success

        Raises:
            DailyQuotaExceededError: Per-day quota reached
            RateLimitExceededError: Rate limited on every attempt
            RequestCancelledError: Cancelled through ``cancel_token``
            JobFitError: Any other failure, translated for display
        """
        policy = policy or self.default_policy
        start_time = time.monotonic()
        attempt_number = 0
        result: Any = _UNSET
        metadata = ExecutionMetadata()

        retrying = AsyncRetrying(
            stop=stop_after_attempt(policy.max_attempts),
            wait=wait_exponential(
                multiplier=policy.initial_delay,
                exp_base=policy.backoff_multiplier,
            ),
            retry=retry_if_exception(is_retryable_error),
            before_sleep=self._before_sleep(context, policy, on_progress),
            sleep=self._sleeper(cancel_token),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    attempt_number = attempt.retry_state.attempt_number
                    metadata = ExecutionMetadata()
                    if cancel_token is not None:
                        result = await cancel_token.run(fn(metadata))
                    else:
                        result = await fn(metadata)
        except (Exception, asyncio.CancelledError) as e:
            latency_ms = self._elapsed_ms(start_time)
            kind = classify_exception(e)
            self._log_error(context, e, kind, attempt_number, latency_ms)
            if isinstance(e, asyncio.CancelledError):
                raise
            terminal = self._terminal_error(e, kind, attempt_number)
            if terminal is e:
                raise
            raise terminal from e

        if result is _UNSET:
            latency_ms = self._elapsed_ms(start_time)
            error = RetriesExhaustedError(details={"attempts": attempt_number})
            self._log_error(context, error, ErrorKind.UNKNOWN, attempt_number, latency_ms)
            raise error

        latency_ms = self._elapsed_ms(start_time)
        logger.info(
            f"[RETRY] {context.event_type.value} succeeded | model={context.model} | "
            f"attempt={attempt_number}/{policy.max_attempts} | latency_ms={latency_ms}"
        )
        self.telemetry.record(
            TelemetryEvent(
                event_type=context.event_type.value,
                model_name=context.model,
                prompt_text=context.prompt,
                response_text=_serialize_result(result),
                latency_ms=latency_ms,
                status="success",
                metadata={**context.metadata, **metadata.as_dict()},
                job_id=context.job_id,
            )
        )
        return result

    def _before_sleep(
        self,
        context: InvocationContext,
        policy: RetryPolicy,
        on_progress: Optional[ProgressCallback],
    ) -> Callable[[RetryCallState], None]:
        def announce(retry_state: RetryCallState) -> None:
            attempt = retry_state.attempt_number
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            error = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                f"[RETRY] {context.event_type.value} rate limited | "
                f"attempt={attempt}/{policy.max_attempts} | retry_in={delay:g}s | error={error}"
            )
            if on_progress is not None:
                on_progress(get_retry_message(attempt, policy.max_attempts, delay), attempt, policy.max_attempts)

        return announce

    def _sleeper(
        self, cancel_token: Optional[CancellationToken]
    ) -> Callable[[float], Awaitable[None]]:
        if cancel_token is None:
            return self._sleep

        async def sleep(seconds: float) -> None:
            await cancel_token.sleep(seconds, self._sleep)

        return sleep

    def _log_error(
        self,
        context: InvocationContext,
        error: BaseException,
        kind: ErrorKind,
        attempt_number: int,
        latency_ms: int,
    ) -> None:
        logger.error(
            f"[RETRY] {context.event_type.value} failed | model={context.model} | "
            f"kind={kind.value} | attempt={attempt_number} | error={error}"
        )
        self.telemetry.record(
            TelemetryEvent(
                event_type=context.event_type.value,
                model_name=context.model,
                prompt_text=context.prompt,
                latency_ms=latency_ms,
                status="error",
                error_message=str(error) or type(error).__name__,
                metadata={
                    **context.metadata,
                    "attempt": attempt_number,
                    "error_kind": kind.value,
                },
                job_id=context.job_id,
            )
        )

    @staticmethod
    def _terminal_error(error: BaseException, kind: ErrorKind, attempts: int) -> JobFitError:
        """Translate the final failure into the error raised to the caller."""
        details = {"attempts": attempts, "cause": str(error)}
        if kind is ErrorKind.DAILY_QUOTA:
            return DailyQuotaExceededError(details=details)
        if kind is ErrorKind.RATE_LIMIT:
            return RateLimitExceededError(details=details)
        if kind is ErrorKind.CANCELLED:
            if isinstance(error, RequestCancelledError):
                return error
            return RequestCancelledError(details=details)
        if kind in (ErrorKind.VALIDATION, ErrorKind.PARSE) and isinstance(error, JobFitError):
            return error
        return LLMRequestError(get_user_friendly_error(error), kind=kind, details=details)

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return int((time.monotonic() - start_time) * 1000)

"""Fire-and-forget telemetry for orchestrated LLM calls.

Every RetryExecutor call produces exactly one TelemetryEvent. Recording never
blocks or fails the caller: rows are written from background tasks and sink
failures are logged locally.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from jobfit.services.usage_counter import UsageCounterStore, today_iso

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_PATTERN = re.compile(r"(\+?\d{1,2}\s?)?(\(?\d{3}\)?[\s.-]?)?\d{3}[\s.-]?\d{4}")

EMAIL_PLACEHOLDER = "[EMAIL_REDACTED]"
PHONE_PLACEHOLDER = "[PHONE_REDACTED]"

# Events that count against the daily analysis allowance
ANALYSIS_EVENT_TYPES = frozenset({"job_extraction", "analysis"})


def redact_text(text: Optional[str]) -> Optional[str]:
    """Replace email addresses and phone numbers with fixed placeholders."""
    if not text:
        return text
    text = EMAIL_PATTERN.sub(EMAIL_PLACEHOLDER, text)
    return PHONE_PATTERN.sub(PHONE_PLACEHOLDER, text)


@dataclass
class TelemetryEvent:
    """One logged LLM call outcome."""

    event_type: str
    model_name: str
    prompt_text: str
    latency_ms: int
    status: str  # "success" | "error"
    response_text: Optional[str] = None
    error_message: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    job_id: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status == "success"

    @property
    def total_tokens(self) -> int:
        usage = self.metadata.get("token_usage") or {}
        return int(usage.get("total_tokens") or 0)

    def to_row(self, user_id: Optional[str]) -> dict[str, Any]:
        """Build the redacted row persisted by a sink."""
        return {
            "user_id": user_id,
            "job_id": self.job_id,
            "event_type": self.event_type,
            "model_name": self.model_name,
            "prompt_text": redact_text(self.prompt_text),
            "response_text": redact_text(self.response_text),
            "latency_ms": self.latency_ms,
            "status": self.status,
            "error_message": self.error_message,
            "metadata": self.metadata,
        }


class TelemetrySink(Protocol):
    """Destination for telemetry rows and token usage."""

    async def resolve_user_id(self) -> Optional[str]: ...

    async def write(self, row: dict[str, Any]) -> None: ...

    async def track_usage(self, user_id: str, tokens: int) -> None: ...


class SupabaseTelemetrySink:
    """Writes telemetry rows to a Supabase table and reports token usage via RPC."""

    def __init__(
        self,
        client: Any = None,
        table: str = "logs",
        usage_rpc: str = "track_usage",
    ):
        self._client = client
        self.table = table
        self.usage_rpc = usage_rpc

    async def _get_client(self) -> Any:
        if self._client is None:
            from jobfit.services.supabase import get_supabase_client

            self._client = await get_supabase_client()
        return self._client

    async def resolve_user_id(self) -> Optional[str]:
        client = await self._get_client()
        session = await client.auth.get_session()
        if session is None or session.user is None:
            return None
        return session.user.id

    async def write(self, row: dict[str, Any]) -> None:
        client = await self._get_client()
        await client.table(self.table).insert(row).execute()

    async def track_usage(self, user_id: str, tokens: int) -> None:
        client = await self._get_client()
        await client.rpc(
            self.usage_rpc,
            {"p_user_id": user_id, "p_tokens": tokens},
        ).execute()


class LoggingTelemetrySink:
    """Local-only sink used when no telemetry backend is configured."""

    def __init__(self, sink_logger: Optional[logging.Logger] = None):
        self._logger = sink_logger or logger

    async def resolve_user_id(self) -> Optional[str]:
        return None

    async def write(self, row: dict[str, Any]) -> None:
        self._logger.info(
            f"[TELEMETRY] {row['event_type']} | status={row['status']} | "
            f"model={row['model_name']} | latency_ms={row['latency_ms']}"
            + (f" | error={row['error_message']}" if row.get("error_message") else "")
        )

    async def track_usage(self, user_id: str, tokens: int) -> None:
        self._logger.debug(f"[TELEMETRY] usage | user={user_id} | tokens={tokens}")


class TelemetryLogger:
    """Records one event per orchestrated call without blocking the caller."""

    def __init__(
        self,
        sink: TelemetrySink,
        usage_counter: Optional[UsageCounterStore] = None,
    ):
        """Initialize the telemetry logger.

        Args:
            sink: Destination for rows and token usage
            usage_counter: Local daily counter of successful analyses
        """
        self.sink = sink
        self.usage_counter = usage_counter
        self._pending: set[asyncio.Task] = set()

    def record(self, event: TelemetryEvent) -> None:
        """Schedule the write of ``event`` and return immediately. Never raises."""
        try:
            self._spawn(self._write(event, today_iso()))
        except Exception as e:
            logger.warning(f"[TELEMETRY] Failed to schedule event {event.event_type}: {e}")

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every outstanding background write (shutdown and tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @staticmethod
    def _counts_as_analysis(event: TelemetryEvent) -> bool:
        return event.is_success and event.event_type in ANALYSIS_EVENT_TYPES

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, event: TelemetryEvent, day: str) -> None:
        if self.usage_counter is not None and self._counts_as_analysis(event):
            try:
                self.usage_counter.increment(day)
            except Exception as e:
                logger.warning(f"[TELEMETRY] Failed to update usage counter: {e}")

        try:
            user_id = await self.sink.resolve_user_id()
        except Exception as e:
            logger.warning(f"[TELEMETRY] Could not resolve user for {event.event_type}: {e}")
            user_id = None

        try:
            await self.sink.write(event.to_row(user_id))
        except Exception as e:
            logger.error(f"[TELEMETRY] Failed to write {event.event_type} row: {e}")

        if user_id and self._counts_as_analysis(event) and event.total_tokens > 0:
            self._spawn(self._track_usage(user_id, event.total_tokens))

    async def _track_usage(self, user_id: str, tokens: int) -> None:
        try:
            await self.sink.track_usage(user_id, tokens)
        except Exception as e:
            logger.debug(f"[TELEMETRY] Usage tracking failed | tokens={tokens} | error={e}")

"""Shared fakes for orchestration tests.

Nothing here touches the network: the relay, the telemetry sink and the
backoff sleep are all replaced by in-memory recorders.
"""

import json
from typing import Any, Optional

import pytest

from jobfit.llm.config import GatewayConfig
from jobfit.llm.gateway import ModelGateway
from jobfit.llm.retry import RetryExecutor, RetryPolicy
from jobfit.models.llm_outputs import CoverLetterRequest
from jobfit.models.resume import ExperienceBlock, ResumeProfile
from jobfit.services.job_ai import JobAIService
from jobfit.services.telemetry import TelemetryLogger
from jobfit.services.usage_counter import InMemoryUsageCounterStore


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeSink:
    """Telemetry sink keeping rows and usage calls in memory."""

    def __init__(
        self,
        user_id: Optional[str] = "user-1",
        fail_write: bool = False,
        fail_usage: bool = False,
    ):
        self.user_id = user_id
        self.fail_write = fail_write
        self.fail_usage = fail_usage
        self.rows: list[dict[str, Any]] = []
        self.usage_calls: list[tuple[str, int]] = []

    async def resolve_user_id(self) -> Optional[str]:
        return self.user_id

    async def write(self, row: dict[str, Any]) -> None:
        if self.fail_write:
            raise RuntimeError("insert failed")
        self.rows.append(row)

    async def track_usage(self, user_id: str, tokens: int) -> None:
        if self.fail_usage:
            raise RuntimeError("rpc failed")
        self.usage_calls.append((user_id, tokens))


class FakeRelayClient:
    """Relay client replaying scripted responses in order.

    Each scripted item is either a response body (dict), a string (wrapped as
    ``{"text": ...}``) or an exception to raise.
    """

    def __init__(self, responses: Optional[list[Any]] = None):
        self.responses = list(responses or [])
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def queue(self, *responses: Any) -> None:
        self.responses.extend(responses)

    async def invoke(self, function_name: str, body: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((function_name, body))
        if not self.responses:
            raise AssertionError("FakeRelayClient ran out of scripted responses")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, str):
            return {"text": item, "usage": {"promptTokenCount": 10, "candidatesTokenCount": 5, "totalTokenCount": 15}}
        return item

    def prompts(self) -> list[str]:
        return [body["payload"]["contents"][0]["parts"][-1]["text"] for _, body in self.calls]


def as_json(data: Any) -> str:
    return json.dumps(data)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def usage_counter() -> InMemoryUsageCounterStore:
    return InMemoryUsageCounterStore()


@pytest.fixture
def telemetry(sink, usage_counter) -> TelemetryLogger:
    return TelemetryLogger(sink, usage_counter)


@pytest.fixture
def executor(telemetry, sleep) -> RetryExecutor:
    return RetryExecutor(telemetry, RetryPolicy(max_attempts=3, initial_delay=2.0), sleep=sleep)


@pytest.fixture
def relay() -> FakeRelayClient:
    return FakeRelayClient()


@pytest.fixture
def gateway(relay) -> ModelGateway:
    return ModelGateway(GatewayConfig(), credential_provider=lambda: None, relay_client=relay)


@pytest.fixture
def service(gateway, executor) -> JobAIService:
    return JobAIService(gateway, executor)


@pytest.fixture
def profile() -> ResumeProfile:
    return ResumeProfile(
        id="profile-eng",
        name="Engineering",
        blocks=[
            ExperienceBlock(
                id="blk-1",
                title="Backend Engineer",
                organization="Acme",
                date_range="2021-2024",
                bullets=["Built payment APIs in Python", "Cut p95 latency by 40%"],
            ),
            ExperienceBlock(
                id="blk-hidden",
                title="Barista",
                organization="Cafe",
                date_range="2018",
                bullets=["Made coffee"],
                is_visible=False,
            ),
        ],
    )


@pytest.fixture
def cover_letter_request(profile) -> CoverLetterRequest:
    return CoverLetterRequest(
        job_description="Senior Python engineer at Globex building billing systems.",
        resume=profile,
        tailoring_instructions=["Lead with the payments work"],
        job_id="job-42",
    )

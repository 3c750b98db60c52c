"""Request, response and observability types shared by the LLM subsystem."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from .config import GeminiModel


@dataclass(frozen=True)
class TextPart:
    text: str

    def to_payload(self) -> dict[str, Any]:
        return {"text": self.text}


@dataclass(frozen=True)
class InlineDataPart:
    """Inline binary content (base64-encoded), e.g. an image or a PDF page."""

    mime_type: str
    data: str

    def to_payload(self) -> dict[str, Any]:
        return {"inlineData": {"mimeType": self.mime_type, "data": self.data}}

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


ContentPart = Union[TextPart, InlineDataPart]


@dataclass(frozen=True)
class Content:
    """One conversation turn: a role and its ordered parts."""

    role: str
    parts: tuple[ContentPart, ...]

    def to_payload(self) -> dict[str, Any]:
        return {"role": self.role, "parts": [part.to_payload() for part in self.parts]}


JSON_MIME_TYPE = "application/json"


@dataclass(frozen=True)
class GenerationConfig:
    """Generation parameters; unset fields are left to the service defaults."""

    temperature: Optional[float] = None
    max_output_tokens: Optional[int] = None
    response_mime_type: Optional[str] = None
    response_schema: Optional[dict[str, Any]] = None

    @property
    def strict_json(self) -> bool:
        return self.response_schema is not None or self.response_mime_type == JSON_MIME_TYPE

    def to_payload(self) -> dict[str, Any]:
        """Serialise to the service's camelCase generationConfig object."""
        payload: dict[str, Any] = {}
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.max_output_tokens is not None:
            payload["maxOutputTokens"] = self.max_output_tokens
        if self.response_mime_type is not None:
            payload["responseMimeType"] = self.response_mime_type
        if self.response_schema is not None:
            payload["responseSchema"] = self.response_schema
        return payload

    @classmethod
    def json(
        cls,
        schema: Optional[dict[str, Any]] = None,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
    ) -> "GenerationConfig":
        """Config for a schema-constrained JSON response."""
        return cls(
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            response_mime_type=JSON_MIME_TYPE,
            response_schema=schema,
        )


@dataclass(frozen=True)
class InvocationRequest:
    """A single, immutable LLM call."""

    model: GeminiModel
    contents: tuple[Content, ...]
    generation_config: GenerationConfig = field(default_factory=GenerationConfig)

    @classmethod
    def from_text(
        cls,
        model: GeminiModel,
        text: str,
        generation_config: Optional[GenerationConfig] = None,
        inline_data: tuple[InlineDataPart, ...] = (),
    ) -> "InvocationRequest":
        parts: tuple[ContentPart, ...] = (*inline_data, TextPart(text))
        return cls(
            model=model,
            contents=(Content(role="user", parts=parts),),
            generation_config=generation_config or GenerationConfig(),
        )

    @property
    def prompt_text(self) -> str:
        """Concatenated text parts, used for logging."""
        return "\n".join(
            part.text
            for content in self.contents
            for part in content.parts
            if isinstance(part, TextPart)
        )

    def to_payload(self) -> dict[str, Any]:
        return {"contents": [content.to_payload() for content in self.contents]}


@dataclass(frozen=True)
class UsageMetadata:
    prompt_token_count: int = 0
    candidates_token_count: int = 0
    total_token_count: int = 0

    @classmethod
    def from_payload(cls, payload: Optional[dict[str, Any]]) -> Optional["UsageMetadata"]:
        if not payload:
            return None
        return cls(
            prompt_token_count=int(payload.get("promptTokenCount") or 0),
            candidates_token_count=int(payload.get("candidatesTokenCount") or 0),
            total_token_count=int(payload.get("totalTokenCount") or 0),
        )


@dataclass(frozen=True)
class GenerationResponse:
    """Uniform response shape returned by every invoker."""

    text: str
    usage_metadata: Optional[UsageMetadata] = None


class EventType(Enum):
    """Telemetry event tags, one per kind of orchestrated call."""

    JOB_EXTRACTION = "job_extraction"
    ANALYSIS = "analysis"
    COVER_LETTER = "cover_letter"
    CRITIQUE = "critique"
    TAILORED_SUMMARY = "tailored_summary"
    TAILOR_BLOCK = "tailor_block"


@dataclass(frozen=True)
class InvocationContext:
    """Observability data carried alongside a request; never affects the call."""

    event_type: EventType
    prompt: str
    model: str
    metadata: dict[str, Any] = field(default_factory=dict)
    job_id: Optional[str] = None


@dataclass
class ExecutionMetadata:
    """Scratch record a wrapped call fills in with facts known only afterwards.

    The retry executor folds these values into the success telemetry record,
    so token usage is logged atomically with the call's outcome.
    """

    values: dict[str, Any] = field(default_factory=dict)

    def set(self, key: str, value: Any) -> None:
        self.values[key] = value

    def record_usage(self, usage: Optional[UsageMetadata]) -> None:
        if usage is None:
            return
        self.values["token_usage"] = {
            "prompt_tokens": usage.prompt_token_count,
            "candidates_tokens": usage.candidates_token_count,
            "total_tokens": usage.total_token_count,
        }

    def as_dict(self) -> dict[str, Any]:
        return dict(self.values)

"""LLM subsystem for Gemini access.

This module provides:
- Closed model/task enumerations and task-based routing
- A gateway choosing between a direct (own API key) and a relay invoker
- A retry executor with quota-aware exponential backoff and telemetry
- Helpers for parsing schema-constrained JSON responses
- Cover-letter variants and random variant selection

Example usage:
    from jobfit.llm import (
        EventType,
        GatewayConfig,
        InvocationContext,
        InvocationRequest,
        ModelGateway,
        RetryExecutor,
        TaskType,
    )

    gateway = ModelGateway(GatewayConfig(), credential_provider=lambda: user_key)
    model = gateway.model_for(TaskType.EXTRACTION)
    request = InvocationRequest.from_text(model, "Extract key info from ...")

    async def call(metadata):
        invoker = await gateway.resolve(model)
        response = await invoker.generate_content(request)
        metadata.record_usage(response.usage_metadata)
        return response.text

    text = await executor.execute(
        call,
        InvocationContext(EventType.JOB_EXTRACTION, request.prompt_text, model.value),
    )
"""

from .cancellation import CancellationToken
from .config import (
    DEFAULT_ROUTING_TABLE,
    MODEL_CONFIGS,
    GatewayConfig,
    GeminiModel,
    ModelConfig,
    TaskType,
)
from .gateway import (
    DirectInvoker,
    Invoker,
    ModelGateway,
    RelayInvoker,
    create_gateway_from_settings,
)
from .retry import RetryExecutor, RetryPolicy, classify_exception, is_retryable_error
from .structured import (
    clean_json_output,
    parse_json_response,
    parse_model,
    strip_block_ids,
    validate_model,
)
from .types import (
    Content,
    EventType,
    ExecutionMetadata,
    GenerationConfig,
    GenerationResponse,
    InlineDataPart,
    InvocationContext,
    InvocationRequest,
    TextPart,
    UsageMetadata,
)
from .variants import ALL_VARIANTS, CoverLetterVariant, select_variant

__all__ = [
    # Config
    "GatewayConfig",
    "GeminiModel",
    "ModelConfig",
    "TaskType",
    "MODEL_CONFIGS",
    "DEFAULT_ROUTING_TABLE",
    # Gateway
    "ModelGateway",
    "Invoker",
    "DirectInvoker",
    "RelayInvoker",
    "create_gateway_from_settings",
    # Retry
    "RetryExecutor",
    "RetryPolicy",
    "CancellationToken",
    "classify_exception",
    "is_retryable_error",
    # Types
    "Content",
    "TextPart",
    "InlineDataPart",
    "GenerationConfig",
    "InvocationRequest",
    "GenerationResponse",
    "UsageMetadata",
    "EventType",
    "InvocationContext",
    "ExecutionMetadata",
    # Structured output
    "clean_json_output",
    "parse_json_response",
    "parse_model",
    "strip_block_ids",
    "validate_model",
    # Variants
    "CoverLetterVariant",
    "ALL_VARIANTS",
    "select_variant",
]

"""Model gateway: resolves a Gemini model to a callable invoker.

Two interchangeable invokers share one interface:

- ``DirectInvoker`` calls Gemini through LiteLLM with the user's own API key.
- ``RelayInvoker`` forwards the request to the backend relay (a Supabase edge
  function) which holds shared, metered credentials.

Credentials are read from the injected provider on every resolution, so a
key added or removed mid-session takes effect on the next call. All errors
leave the gateway as ``LLMInvocationError`` with a structured ``ErrorKind``.
The gateway never retries and never writes telemetry.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol, Union

import httpx
import litellm
from supabase import FunctionsError, FunctionsRelayError

from jobfit.utils.errors import ErrorKind, LLMInvocationError

from .config import MODEL_CONFIGS, GatewayConfig, GeminiModel, TaskType
from .retry import classify_exception
from .types import (
    GenerationConfig,
    GenerationResponse,
    InvocationRequest,
    TextPart,
    UsageMetadata,
)

logger = logging.getLogger(__name__)

CredentialProvider = Callable[[], Union[Optional[str], Awaitable[Optional[str]]]]

# Relay 429 reasons
RELAY_REASON_KINDS: dict[str, ErrorKind] = {
    "daily_limit_reached": ErrorKind.DAILY_QUOTA,
    "free_limit_reached": ErrorKind.DAILY_QUOTA,
    "rate_limit": ErrorKind.RATE_LIMIT,
    "not_a_job": ErrorKind.INVALID_INPUT,
}


class Invoker(Protocol):
    """Anything that can run one InvocationRequest."""

    model: GeminiModel

    async def generate_content(self, request: InvocationRequest) -> GenerationResponse: ...


class RelayClient(Protocol):
    async def invoke(self, function_name: str, body: dict[str, Any]) -> dict[str, Any]: ...


def _classify_message(message: str, default: ErrorKind) -> ErrorKind:
    kind = classify_exception(Exception(message))
    return default if kind is ErrorKind.UNKNOWN else kind


def normalize_litellm_error(error: Exception) -> LLMInvocationError:
    """Map a LiteLLM / transport exception to a structured invocation error."""
    if isinstance(error, LLMInvocationError):
        return error

    message = str(error)
    if isinstance(error, litellm.RateLimitError):
        kind = ErrorKind.DAILY_QUOTA if "PerDay" in message else ErrorKind.RATE_LIMIT
    elif isinstance(error, (litellm.AuthenticationError, litellm.PermissionDeniedError)):
        kind = ErrorKind.AUTH
    elif isinstance(error, (litellm.Timeout, httpx.TimeoutException, asyncio.TimeoutError)):
        kind = ErrorKind.TIMEOUT
    elif isinstance(error, (litellm.APIConnectionError, httpx.TransportError, ConnectionError)):
        kind = ErrorKind.TRANSPORT
    elif isinstance(error, litellm.BadRequestError):
        kind = ErrorKind.INVALID_INPUT
    elif isinstance(error, (litellm.ServiceUnavailableError, litellm.InternalServerError)):
        kind = ErrorKind.UPSTREAM
    else:
        kind = _classify_message(message, ErrorKind.UPSTREAM)

    return LLMInvocationError(message, kind=kind, details={"source": "direct"})


def normalize_relay_transport_error(error: Exception) -> LLMInvocationError:
    """Map an exception raised while calling the relay.

    A non-2xx answer from the edge function is an application error, not a
    transport failure: its ``{"error", "reason"}`` body is decoded and mapped
    like a body returned with a 2xx status.
    """
    if isinstance(error, LLMInvocationError):
        return error

    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
        return LLMInvocationError(
            f"Proxy Error: {error}", kind=ErrorKind.TIMEOUT, details={"source": "relay"}
        )

    status = getattr(error, "status", None)
    body = _relay_error_body(error)
    if body is not None and body.get("error"):
        return normalize_relay_error_body(body, status=status)

    if isinstance(error, FunctionsRelayError):
        kind = ErrorKind.UPSTREAM
    elif isinstance(error, FunctionsError) or isinstance(status, int):
        kind = _kind_for_status(status, str(error))
    else:
        return LLMInvocationError(
            f"Proxy Error: {error}",
            kind=_classify_message(str(error), ErrorKind.TRANSPORT),
            details={"source": "relay"},
        )
    return LLMInvocationError(
        f"AI Error: {error}", kind=kind, details={"source": "relay", "status": status}
    )


def normalize_relay_error_body(
    body: dict[str, Any], status: Optional[int] = None
) -> LLMInvocationError:
    """Map an ``{"error": ...}`` body returned by the relay."""
    error = body.get("error")
    reason = body.get("reason")
    message = f"AI Error: {error}"
    if reason in RELAY_REASON_KINDS:
        kind = RELAY_REASON_KINDS[reason]
    elif error in RELAY_REASON_KINDS:
        kind = RELAY_REASON_KINDS[error]
    elif "Limit reached" in str(error):
        kind = ErrorKind.RATE_LIMIT
    elif status is not None:
        kind = _kind_for_status(status, str(error))
    else:
        kind = _classify_message(str(error), ErrorKind.UPSTREAM)
    if reason:
        message = f"{message} ({reason})"
    details: dict[str, Any] = {"source": "relay", "reason": reason}
    if status is not None:
        details["status"] = status
    return LLMInvocationError(message, kind=kind, details=details)


def _kind_for_status(status: Optional[int], message: str) -> ErrorKind:
    if status == 429:
        return ErrorKind.DAILY_QUOTA if "PerDay" in message else ErrorKind.RATE_LIMIT
    if status in (401, 403):
        return ErrorKind.AUTH
    if status == 400:
        return ErrorKind.INVALID_INPUT
    if status is not None and status >= 500:
        return ErrorKind.UPSTREAM
    return _classify_message(message, ErrorKind.UPSTREAM)


def _relay_error_body(error: BaseException) -> Optional[dict[str, Any]]:
    """Decode the JSON body of a failed relay response, if one is attached.

    ``FunctionsHttpError`` keeps the response on its cause, the
    ``httpx.HTTPStatusError`` it was raised from.
    """
    for source in (error, error.__cause__):
        response = getattr(source, "response", None)
        if isinstance(response, httpx.Response):
            try:
                data = response.json()
            except ValueError:
                return None
            return data if isinstance(data, dict) else None
    return None


def _effective_config(
    request: InvocationRequest, default: Optional[GenerationConfig]
) -> GenerationConfig:
    """The request's own config wins; an empty one falls back to the bound default."""
    if default is not None and request.generation_config == GenerationConfig():
        return default
    return request.generation_config


class DirectInvoker:
    """Calls Gemini directly through LiteLLM using the caller's API key."""

    def __init__(
        self,
        model: GeminiModel,
        api_key: str,
        timeout_seconds: float = 120.0,
        generation_config: Optional[GenerationConfig] = None,
    ):
        self.model = model
        self._api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.generation_config = generation_config
        self._model_config = MODEL_CONFIGS[model]

    @staticmethod
    def _build_messages(request: InvocationRequest) -> list[dict[str, Any]]:
        messages = []
        for content in request.contents:
            role = "assistant" if content.role == "model" else content.role
            parts: list[dict[str, Any]] = []
            for part in content.parts:
                if isinstance(part, TextPart):
                    parts.append({"type": "text", "text": part.text})
                else:
                    parts.append({"type": "image_url", "image_url": {"url": part.data_uri}})
            if len(parts) == 1 and parts[0]["type"] == "text":
                messages.append({"role": role, "content": parts[0]["text"]})
            else:
                messages.append({"role": role, "content": parts})
        return messages

    @staticmethod
    def _completion_kwargs(config: GenerationConfig) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if config.temperature is not None:
            kwargs["temperature"] = config.temperature
        if config.max_output_tokens is not None:
            kwargs["max_tokens"] = config.max_output_tokens
        if config.strict_json:
            response_format: dict[str, Any] = {"type": "json_object"}
            if config.response_schema is not None:
                response_format["response_schema"] = config.response_schema
            kwargs["response_format"] = response_format
        return kwargs

    async def generate_content(self, request: InvocationRequest) -> GenerationResponse:
        try:
            response = await asyncio.wait_for(
                litellm.acompletion(
                    model=self._model_config.litellm_model,
                    messages=self._build_messages(request),
                    api_key=self._api_key,
                    timeout=self.timeout_seconds,
                    **self._completion_kwargs(_effective_config(request, self.generation_config)),
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise LLMInvocationError(
                f"Request timed out after {self.timeout_seconds:g}s",
                kind=ErrorKind.TIMEOUT,
                details={"source": "direct"},
            ) from e
        except Exception as e:
            raise normalize_litellm_error(e) from e

        text = response.choices[0].message.content or ""
        usage = getattr(response, "usage", None)
        usage_metadata = None
        if usage:
            usage_metadata = UsageMetadata(
                prompt_token_count=usage.prompt_tokens or 0,
                candidates_token_count=usage.completion_tokens or 0,
                total_token_count=usage.total_tokens or 0,
            )

        logger.info(
            f"[LLM] Direct call | model={self.model.value} | "
            f"total_tokens={usage_metadata.total_token_count if usage_metadata else 0}"
        )
        return GenerationResponse(text=text, usage_metadata=usage_metadata)


class RelayInvoker:
    """Forwards requests to the backend relay, which applies shared credentials."""

    def __init__(
        self,
        model: GeminiModel,
        client: RelayClient,
        function_name: str = "gemini-proxy",
        task: TaskType = TaskType.ANALYSIS,
        timeout_seconds: float = 120.0,
        generation_config: Optional[GenerationConfig] = None,
    ):
        self.model = model
        self.client = client
        self.function_name = function_name
        self.task = task
        self.timeout_seconds = timeout_seconds
        self.generation_config = generation_config

    def build_body(self, request: InvocationRequest) -> dict[str, Any]:
        return {
            "payload": request.to_payload(),
            "modelName": self.model.value,
            "task": self.task.value,
            "generationConfig": _effective_config(request, self.generation_config).to_payload(),
        }

    async def generate_content(self, request: InvocationRequest) -> GenerationResponse:
        try:
            data = await asyncio.wait_for(
                self.client.invoke(self.function_name, self.build_body(request)),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise LLMInvocationError(
                f"Proxy Error: request timed out after {self.timeout_seconds:g}s",
                kind=ErrorKind.TIMEOUT,
                details={"source": "relay"},
            ) from e
        except Exception as e:
            raise normalize_relay_transport_error(e) from e

        if data.get("error"):
            raise normalize_relay_error_body(data)

        usage_metadata = UsageMetadata.from_payload(data.get("usage"))
        logger.info(
            f"[LLM] Relay call | model={self.model.value} | task={self.task.value} | "
            f"total_tokens={usage_metadata.total_token_count if usage_metadata else 0}"
        )
        return GenerationResponse(text=data.get("text") or "", usage_metadata=usage_metadata)


class ModelGateway:
    """Chooses between the direct and relay paths on each resolution."""

    def __init__(
        self,
        config: GatewayConfig,
        credential_provider: CredentialProvider,
        relay_client: Optional[RelayClient] = None,
    ):
        """Initialize the gateway.

        Args:
            config: Gateway configuration
            credential_provider: Returns the user's API key (or None); may be
                sync or async and is consulted on every resolve()
            relay_client: Client for the relay edge function
        """
        self.config = config
        self.credential_provider = credential_provider
        self.relay_client = relay_client

        litellm.suppress_debug_info = True

    def model_for(self, task: TaskType) -> GeminiModel:
        return self.config.model_for(task).model

    async def _get_api_key(self) -> Optional[str]:
        key = self.credential_provider()
        if inspect.isawaitable(key):
            key = await key
        return key or None

    async def resolve(
        self,
        model: GeminiModel,
        generation_config: Optional[GenerationConfig] = None,
        task: Optional[TaskType] = None,
    ) -> Invoker:
        """Resolve ``model`` to an invoker for the current credentials.

        Args:
            model: Gemini model to call
            generation_config: Default config for requests that carry none
            task: Task tag forwarded to the relay (inferred from routing if omitted)

        Returns:
            DirectInvoker when an API key is present, RelayInvoker otherwise
        """
        api_key = await self._get_api_key()
        if api_key:
            logger.debug(f"[LLM] Resolved direct invoker | model={model.value}")
            return DirectInvoker(
                model,
                api_key,
                timeout_seconds=self.config.timeout_seconds,
                generation_config=generation_config,
            )

        if self.relay_client is None:
            raise LLMInvocationError(
                "No API key configured and no relay available",
                kind=ErrorKind.AUTH,
            )
        logger.debug(f"[LLM] Resolved relay invoker | model={model.value}")
        return RelayInvoker(
            model,
            self.relay_client,
            function_name=self.config.relay_function_name,
            task=task or self._task_for(model),
            timeout_seconds=self.config.timeout_seconds,
            generation_config=generation_config,
        )

    def _task_for(self, model: GeminiModel) -> TaskType:
        for task, routed in self.config.get_routing_table().items():
            if routed is model:
                return task
        return TaskType.ANALYSIS


def create_gateway_from_settings(
    credential_provider: Optional[CredentialProvider] = None,
) -> ModelGateway:
    """Create a ModelGateway from application settings.

    Without an explicit provider the configured ``GEMINI_API_KEY`` (if any)
    is used; with no key and Supabase configured every call goes through
    the relay.
    """
    from jobfit.config import get_settings
    from jobfit.services.supabase import SupabaseRelayClient

    settings = get_settings()
    config = GatewayConfig(
        relay_function_name=settings.relay_function_name,
        timeout_seconds=settings.llm_request_timeout_seconds,
    )
    if credential_provider is None:
        def credential_provider() -> Optional[str]:
            return settings.gemini_api_key

    relay_client = SupabaseRelayClient() if settings.supabase_configured else None
    return ModelGateway(config, credential_provider, relay_client=relay_client)

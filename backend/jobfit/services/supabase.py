"""Supabase client wrapper shared by the relay invoker and the telemetry sink."""

import asyncio
import json
import logging
from typing import Any

from supabase import AsyncClient, acreate_client
from supabase.lib.client_options import AsyncClientOptions

from jobfit.config import get_settings

logger = logging.getLogger(__name__)

# Shared client, created on first use
_supabase_client: AsyncClient | None = None
_client_lock = asyncio.Lock()

# The relay waits on the model, so edge functions get the full LLM budget
FUNCTION_CLIENT_TIMEOUT = 120
POSTGREST_CLIENT_TIMEOUT = 30


async def _create_supabase_client() -> AsyncClient:
    """Create a new async Supabase client with custom timeout settings."""
    settings = get_settings()
    if not settings.supabase_configured:
        raise RuntimeError("Supabase is not configured (SUPABASE_URL / SUPABASE_ANON_KEY)")
    options = AsyncClientOptions(
        postgrest_client_timeout=POSTGREST_CLIENT_TIMEOUT,
        function_client_timeout=FUNCTION_CLIENT_TIMEOUT,
    )
    return await acreate_client(
        settings.supabase_url,
        settings.supabase_anon_key,
        options=options,
    )


async def get_supabase_client() -> AsyncClient:
    """Get Supabase client instance, creating new one if needed."""
    global _supabase_client
    async with _client_lock:
        if _supabase_client is None:
            _supabase_client = await _create_supabase_client()
    return _supabase_client


def decode_function_response(raw: Any) -> dict[str, Any]:
    """Normalise an edge-function response body into a dict.

    Depending on the client version and the response content type the body
    arrives as a parsed dict, raw bytes or a string.
    """
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        if not raw.strip():
            return {}
        data = json.loads(raw)
        if isinstance(data, dict):
            return data
        raise ValueError(f"Unexpected relay response type: {type(data).__name__}")
    raise ValueError(f"Unexpected relay response type: {type(raw).__name__}")


class SupabaseRelayClient:
    """Invokes the backend relay edge function on behalf of the current session."""

    def __init__(self, client: AsyncClient | None = None):
        self._client = client

    async def _get_client(self) -> AsyncClient:
        if self._client is None:
            self._client = await get_supabase_client()
        return self._client

    async def invoke(self, function_name: str, body: dict[str, Any]) -> dict[str, Any]:
        """Invoke an edge function and return its decoded JSON body.

        Raises whatever the underlying client raises for transport or HTTP
        failures; callers normalise those errors.
        """
        client = await self._get_client()
        raw = await client.functions.invoke(
            function_name,
            invoke_options={"body": body, "responseType": "json"},
        )
        return decode_function_response(raw)

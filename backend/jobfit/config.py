"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"
    log_dir: str | None = None

    # Supabase (relay, telemetry sink, usage RPC)
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    relay_function_name: str = "gemini-proxy"
    telemetry_table: str = "logs"
    usage_rpc: str = "track_usage"

    # Bring-your-own-key; when unset every call goes through the relay
    gemini_api_key: str | None = None

    # Retry / timeout
    llm_max_attempts: int = 3
    llm_initial_retry_delay: float = 2.0
    llm_request_timeout_seconds: float = 120.0

    # Pipeline limits
    max_job_description_length: int = 15000
    quality_threshold: int = 75
    quality_max_attempts: int = 3

    # Local daily usage counter (in-memory when unset)
    usage_counter_path: str | None = None

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

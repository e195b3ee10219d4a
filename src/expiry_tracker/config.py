"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

STORE_BACKENDS = {"memory", "supabase"}


class Settings(BaseSettings):
    """Server settings loaded from environment variables."""

    openai_api_key: str
    openai_model: str = "gpt-5.2"
    openai_reasoning_effort: str | None = "low"
    openai_store: bool = False
    admin_token: str
    store_backend: str = "memory"
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    supabase_bucket: str = "session-images"
    session_ttl_seconds: int = 3600
    sweep_interval_seconds: int = 300
    deep_link_base: str = "expiryapp://camera"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


class ClientSettings(BaseSettings):
    """Primary-device settings for talking to the handoff server."""

    server_url: str = "http://localhost:8000"
    poll_interval_seconds: float = 1.0
    poll_max_attempts: int = 60
    batch_size_limit: int = 10
    request_timeout_seconds: float = 30.0

    model_config = SettingsConfigDict(
        env_prefix="CLIENT_",
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_store_backend(raw: str | None) -> str:
    """Normalize the configured store backend name."""
    if raw is None:
        return "memory"
    cleaned = raw.strip().lower()
    if cleaned == "":
        return "memory"
    if cleaned not in STORE_BACKENDS:
        raise ValueError(f"Unknown store backend: {raw}")
    return cleaned

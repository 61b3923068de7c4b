"""Application configuration from environment (DREAMSLOT_ prefix)."""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from dreamslot.logic.models import EngineConfig


class Settings(BaseSettings):
    """Server settings. Engine tuning is nested: DREAMSLOT_ENGINE__<FIELD>."""

    model_config = SettingsConfigDict(
        env_prefix="DREAMSLOT_",
        env_nested_delimiter="__",
    )

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    log_level: str = "INFO"
    redis_url: str = "redis://localhost:6379/0"

    # Protocol
    protocol_version: str = "1.0"

    # Outcome engine tuning
    engine: EngineConfig = Field(default_factory=EngineConfig)

    # Progress persistence (Redis TTL); 0 keeps progress forever
    progress_ttl_seconds: int = 0

    # Spin guard: lock auto-expires if the client never completes the round
    lock_ttl_seconds: int = 30

    # Idempotency cache for POST /pull
    idempotency_ttl_seconds: int = 3600

    # Flavor text (Gemini generateContent)
    flavor_api_key: str = ""
    flavor_model: str = "gemini-3-flash-preview"
    flavor_api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    flavor_timeout_seconds: float = 8.0
    flavor_temperature: float = 0.7


settings = Settings()

"""Runtime settings loaded from the environment."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import AWS_REGION, Provider, QuotaStoreBackend


class RelaySettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CHAT_RELAY_", extra="ignore", env_parse_none_str="none"
    )

    log_level: str = "info"
    host: str = "0.0.0.0"
    port: int = 8000

    primary_provider: Provider = "bedrock"
    # "none" runs the single-provider relay without fallback.
    secondary_provider: Provider | None = "openai"
    quota_enabled: bool = True
    quota_store: QuotaStoreBackend = "memory"
    redis_url: str = "redis://127.0.0.1:6379/0"
    redis_key_prefix: str = "chat-relay"

    provider_timeout_seconds: float = Field(default=60.0, gt=0)
    stream_idle_timeout_seconds: float = Field(default=60.0, gt=0)
    # SDK-level retries delay the rate-limit signal that drives fallback.
    provider_max_retries: int = Field(default=0, ge=0)

    aws_region: str = AWS_REGION
    openai_api_key: str | None = None
    langsmith_api_key: str | None = None


settings = RelaySettings()

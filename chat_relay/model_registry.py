"""Provider profile registry."""

from dataclasses import dataclass

from .constants import BEDROCK_MODEL_ID, OPENAI_MODEL, Provider


@dataclass(frozen=True)
class ProviderProfile:
    provider: Provider
    model: str
    max_requests: int
    supports_system_cache: bool = False


PROVIDER_PROFILES: dict[str, ProviderProfile] = {
    # --- Bedrock (Claude, Anthropic Messages schema) ---
    "bedrock": ProviderProfile(
        provider="bedrock",
        model=BEDROCK_MODEL_ID,
        max_requests=100,
        supports_system_cache=True,
    ),
    # --- OpenAI (Chat Completions schema) ---
    "openai": ProviderProfile(
        provider="openai",
        model=OPENAI_MODEL,
        max_requests=50,
    ),
}


def max_requests_by_provider() -> dict[str, int]:
    return {name: profile.max_requests for name, profile in PROVIDER_PROFILES.items()}

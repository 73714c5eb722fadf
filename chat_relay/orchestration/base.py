"""Orchestration interfaces and shared provider dispatch."""

import asyncio
import logging
from collections.abc import Mapping
from typing import Protocol

from chat_relay.errors import ProviderTimeoutError
from chat_relay.message_mappers import build_payload
from chat_relay.model_registry import ProviderProfile
from chat_relay.providers.base import ChatProvider, ProviderResponse
from chat_relay.schemas import ChatRequest

logger = logging.getLogger(__name__)


class RelayOrchestrator(Protocol):
    async def run(self, request: ChatRequest) -> ProviderResponse:
        """Select a provider for the request and return its tagged response."""


async def dispatch_to_provider(
    provider_name: str,
    request: ChatRequest,
    providers: Mapping[str, ChatProvider],
    profiles: Mapping[str, ProviderProfile],
    timeout_seconds: float | None,
) -> ProviderResponse:
    """Transform ``request`` for one provider's schema and invoke it."""
    provider = providers.get(provider_name)
    profile = profiles.get(provider_name)
    if provider is None or profile is None:
        raise RuntimeError(f"Unsupported provider: {provider_name}")

    payload = build_payload(request, profile)
    try:
        return await asyncio.wait_for(
            provider.invoke(payload, stream=request.stream), timeout=timeout_seconds
        )
    except asyncio.TimeoutError as exc:
        logger.warning(
            "Provider call timed out",
            extra={"provider": provider_name, "timeout_seconds": timeout_seconds},
        )
        raise ProviderTimeoutError(
            f"Provider {provider_name} did not respond within {timeout_seconds} seconds"
        ) from exc

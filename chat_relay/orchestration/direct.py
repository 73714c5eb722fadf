"""Direct single-provider dispatch without quota tracking or fallback."""

from collections.abc import Mapping

from chat_relay.model_registry import ProviderProfile
from chat_relay.orchestration.base import RelayOrchestrator, dispatch_to_provider
from chat_relay.providers.base import ChatProvider, ProviderResponse
from chat_relay.schemas import ChatRequest


class DirectRelayOrchestrator(RelayOrchestrator):
    def __init__(
        self,
        provider: str,
        providers: Mapping[str, ChatProvider],
        profiles: Mapping[str, ProviderProfile],
        timeout_seconds: float | None = None,
    ) -> None:
        self._provider = provider
        self._providers = providers
        self._profiles = profiles
        self._timeout_seconds = timeout_seconds

    async def run(self, request: ChatRequest) -> ProviderResponse:
        return await dispatch_to_provider(
            self._provider, request, self._providers, self._profiles, self._timeout_seconds
        )

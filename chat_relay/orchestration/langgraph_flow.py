"""LangGraph-based primary/secondary fallback orchestration with message quotas."""

import logging
from collections.abc import Mapping
from typing import Literal, NotRequired, TypedDict, cast

from langgraph.graph import END, START, StateGraph

from chat_relay.errors import MessageQuotaExceeded, ProviderRateLimitError, ValidationError
from chat_relay.model_registry import ProviderProfile
from chat_relay.providers.base import ChatProvider, ProviderResponse
from chat_relay.schemas import ChatRequest
from chat_relay.services.quota_tracker import QuotaTracker

from .base import RelayOrchestrator, dispatch_to_provider

logger = logging.getLogger(__name__)

PrimaryOutcome = Literal["served", "quota_exceeded", "rate_limited"]


class RelayGraphState(TypedDict):
    request: ChatRequest
    primary_outcome: NotRequired[PrimaryOutcome]
    response: NotRequired[ProviderResponse]


class FallbackRelayOrchestrator(RelayOrchestrator):
    """Serve from the primary provider, falling back to the secondary one.

    Fallback happens when the primary's local quota is exhausted or the primary
    reports a rate limit. Any other primary failure is returned to the caller.
    Without a quota tracker every identity is unlimited and none is required.
    """

    def __init__(
        self,
        providers: Mapping[str, ChatProvider],
        profiles: Mapping[str, ProviderProfile],
        primary: str,
        secondary: str | None = None,
        quota_tracker: QuotaTracker | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._providers = providers
        self._profiles = profiles
        self._primary = primary
        self._secondary = secondary
        self._quota_tracker = quota_tracker
        self._timeout_seconds = timeout_seconds

        graph = StateGraph(RelayGraphState)
        graph.add_node("primary", self._call_primary)
        graph.add_edge(START, "primary")
        if secondary is None:
            graph.add_edge("primary", END)
        else:
            graph.add_node("secondary", self._call_secondary)
            graph.add_conditional_edges(
                "primary", self._after_primary, {"secondary": "secondary", END: END}
            )
            graph.add_edge("secondary", END)
        self._graph = graph.compile()

    async def _consume(self, provider: str, request: ChatRequest) -> bool:
        if self._quota_tracker is None:
            return True
        return await self._quota_tracker.check_and_consume(provider, cast(str, request.identity))

    async def _call_primary(self, state: RelayGraphState) -> dict[str, object]:
        request = state["request"]
        if not await self._consume(self._primary, request):
            if self._secondary is None:
                raise MessageQuotaExceeded(f"Message quota exceeded for provider {self._primary}")
            logger.info(
                "Primary quota exhausted; falling back",
                extra={"primary": self._primary, "secondary": self._secondary},
            )
            return {"primary_outcome": "quota_exceeded"}

        try:
            response = await dispatch_to_provider(
                self._primary, request, self._providers, self._profiles, self._timeout_seconds
            )
        except ProviderRateLimitError as exc:
            if self._secondary is None:
                raise
            logger.warning(
                "Primary provider rate limited; falling back",
                extra={
                    "primary": self._primary,
                    "secondary": self._secondary,
                    "reason": exc.message,
                },
            )
            return {"primary_outcome": "rate_limited"}
        return {"primary_outcome": "served", "response": response}

    def _after_primary(self, state: RelayGraphState) -> str:
        if state.get("primary_outcome") == "served":
            return END
        return "secondary"

    async def _call_secondary(self, state: RelayGraphState) -> dict[str, ProviderResponse]:
        request = state["request"]
        secondary = cast(str, self._secondary)
        if not await self._consume(secondary, request):
            raise MessageQuotaExceeded("Message quota exceeded for all providers")
        response = await dispatch_to_provider(
            secondary, request, self._providers, self._profiles, self._timeout_seconds
        )
        return {"response": response}

    async def run(self, request: ChatRequest) -> ProviderResponse:
        if self._quota_tracker is not None and not request.identity:
            raise ValidationError("Email is required")

        initial_state: RelayGraphState = {"request": request}
        result = cast("RelayGraphState", await self._graph.ainvoke(initial_state))
        response = result.get("response")
        if response is None:
            raise RuntimeError("LangGraph execution did not return a provider response")
        return response

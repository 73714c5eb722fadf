"""Application service for relayed chat requests."""

import logging

from chat_relay.orchestration.base import RelayOrchestrator
from chat_relay.providers.base import ProviderResponse
from chat_relay.schemas import ChatRequest

logger = logging.getLogger(__name__)


class RelayService:
    def __init__(self, orchestrator: RelayOrchestrator) -> None:
        self._orchestrator = orchestrator

    async def handle_chat(self, request: ChatRequest) -> ProviderResponse:
        message_count = len(request.messages)
        logger.info(
            "Relay request received",
            extra={
                "message_count": message_count,
                "cacheable_count": sum(message.cacheable for message in request.messages),
                "has_identity": request.identity is not None,
                "stream": request.stream,
            },
        )

        response = await self._orchestrator.run(request)
        logger.info(
            "Relay request routed",
            extra={"provider": response.provider, "stream": response.is_stream},
        )
        return response

"""Bedrock provider implementation for relayed chat requests."""

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator, Callable, Iterator
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError
from langchain_core.runnables import Runnable

from chat_relay.constants import BEDROCK_RATE_LIMIT_ERROR_CODES
from chat_relay.errors import ProviderRateLimitError, RelayError, UpstreamError

from .base import ProviderResponse

logger = logging.getLogger(__name__)

PROVIDER_NAME = "bedrock"


def translate_bedrock_error(exc: ClientError | BotoCoreError) -> RelayError:
    if isinstance(exc, BotoCoreError):
        return UpstreamError(str(exc), status_code=502, error_type=type(exc).__name__)

    error = exc.response.get("Error", {})
    code = error.get("Code") or type(exc).__name__
    message = error.get("Message") or str(exc)
    if code.lower() in BEDROCK_RATE_LIMIT_ERROR_CODES:
        return ProviderRateLimitError(message, provider=PROVIDER_NAME)
    status_code = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 500
    return UpstreamError(message, status_code=status_code, error_type=code)


async def _next_event(events: Iterator[dict[str, Any]]) -> dict[str, Any] | None:
    try:
        return await asyncio.to_thread(next, events, None)
    except (ClientError, BotoCoreError) as exc:
        raise translate_bedrock_error(exc) from exc


async def _iterate_events(
    event_stream: Any, events: Iterator[dict[str, Any]], first_event: dict[str, Any] | None
) -> AsyncIterator[dict[str, Any]]:
    """Drain a Bedrock event stream without blocking the event loop."""
    event = first_event
    try:
        while event is not None:
            chunk = event.get("chunk")
            if chunk:
                yield json.loads(chunk["bytes"])
            event = await _next_event(events)
    finally:
        event_stream.close()


async def _open_event_stream(event_stream: Any) -> AsyncIterator[dict[str, Any]]:
    """Read the first event up front so an early throttle surfaces from ``invoke``."""
    events = iter(event_stream)
    try:
        first_event = await _next_event(events)
    except BaseException:
        event_stream.close()
        raise
    return _iterate_events(event_stream, events, first_event)


class BedrockChatProvider:
    def __init__(
        self,
        get_bedrock_runnable: Callable[[], Runnable[dict[str, Any], Any]],
    ) -> None:
        self._get_bedrock_runnable = get_bedrock_runnable

    async def invoke(self, payload: dict[str, Any], stream: bool) -> ProviderResponse:
        params = {**payload, "stream": stream}
        model_id = payload["model_id"]
        message_count = len(payload["body"].get("messages", []))

        start = time.time()
        try:
            response = await self._get_bedrock_runnable().ainvoke(
                params,
                config={
                    "run_name": "chat_relay_request",
                    "tags": ["chat-relay", PROVIDER_NAME, model_id],
                    "metadata": {"message_count": message_count, "stream": stream},
                },
            )
        except (ClientError, BotoCoreError) as exc:
            raise translate_bedrock_error(exc) from exc
        duration_ms = int((time.time() - start) * 1000)

        if stream:
            chunks = await _open_event_stream(response)
            logger.info(
                "Chat stream opened",
                extra={"bedrock_duration_ms": duration_ms, "model": model_id},
            )
            return ProviderResponse(provider=PROVIDER_NAME, chunks=chunks)

        usage = response.get("usage") or {}
        logger.info(
            "Chat response generated",
            extra={
                "bedrock_duration_ms": duration_ms,
                "model": model_id,
                "usage_prompt_tokens": usage.get("input_tokens"),
                "usage_completion_tokens": usage.get("output_tokens"),
                "usage_cache_read_tokens": usage.get("cache_read_input_tokens"),
                "response_id": response.get("id"),
            },
        )
        return ProviderResponse(provider=PROVIDER_NAME, body=response)

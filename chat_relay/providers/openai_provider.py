"""OpenAI provider implementation for relayed chat requests."""

import logging
import time
from collections.abc import AsyncIterator, Callable
from typing import Any

import openai
from langchain_core.runnables import Runnable

from chat_relay.errors import ProviderRateLimitError, RelayError, UpstreamError

from .base import ProviderResponse

logger = logging.getLogger(__name__)

PROVIDER_NAME = "openai"


def translate_openai_error(exc: openai.OpenAIError) -> RelayError:
    if isinstance(exc, openai.RateLimitError):
        return ProviderRateLimitError(exc.message, provider=PROVIDER_NAME)
    if isinstance(exc, openai.APIStatusError):
        return UpstreamError(
            exc.message, status_code=exc.status_code, error_type=type(exc).__name__
        )
    if isinstance(exc, openai.APITimeoutError):
        return UpstreamError(str(exc), status_code=504, error_type=type(exc).__name__)
    if isinstance(exc, openai.APIConnectionError):
        return UpstreamError(str(exc), status_code=502, error_type=type(exc).__name__)
    return UpstreamError(str(exc) or "OpenAI request failed", error_type=type(exc).__name__)


async def _iterate_chunks(stream: Any) -> AsyncIterator[dict[str, Any]]:
    try:
        async for chunk in stream:
            yield chunk.model_dump(exclude_unset=True)
    except openai.OpenAIError as exc:
        raise translate_openai_error(exc) from exc
    finally:
        await stream.close()


class OpenAIChatProvider:
    def __init__(
        self,
        get_openai_chat_runnable: Callable[[], Runnable[dict[str, Any], Any]],
    ) -> None:
        self._get_openai_chat_runnable = get_openai_chat_runnable

    async def invoke(self, payload: dict[str, Any], stream: bool) -> ProviderResponse:
        request_params = {**payload, "stream": stream}
        message_count = len(payload.get("messages", []))

        start = time.time()
        try:
            response = await self._get_openai_chat_runnable().ainvoke(
                request_params,
                config={
                    "run_name": "chat_relay_request",
                    "tags": ["chat-relay", PROVIDER_NAME, payload.get("model", "")],
                    "metadata": {"message_count": message_count, "stream": stream},
                },
            )
        except openai.OpenAIError as exc:
            raise translate_openai_error(exc) from exc
        duration_ms = int((time.time() - start) * 1000)

        if stream:
            logger.info(
                "Chat stream opened",
                extra={"openai_duration_ms": duration_ms, "model": payload.get("model")},
            )
            return ProviderResponse(provider=PROVIDER_NAME, chunks=_iterate_chunks(response))

        usage = response.usage
        logger.info(
            "Chat response generated",
            extra={
                "openai_duration_ms": duration_ms,
                "model": response.model,
                "usage_prompt_tokens": usage.prompt_tokens if usage else None,
                "usage_completion_tokens": usage.completion_tokens if usage else None,
                "response_id": response.id,
            },
        )
        return ProviderResponse(provider=PROVIDER_NAME, body=response.model_dump())

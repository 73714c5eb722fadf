"""Server-sent event passthrough for streamed provider responses."""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from chat_relay.errors import ProviderTimeoutError, RelayError
from chat_relay.schemas import ErrorResponse

logger = logging.getLogger(__name__)

_STREAM_END = object()


def encode_event(payload: dict[str, Any]) -> bytes:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


def encode_error_event(message: str, error_type: str) -> bytes:
    body = ErrorResponse.build(message, error_type).model_dump()
    return f"event: error\ndata: {json.dumps(body, ensure_ascii=False)}\n\n".encode("utf-8")


async def _next_chunk(chunks: AsyncIterator[dict[str, Any]]) -> Any:
    return await anext(chunks, _STREAM_END)


async def stream_events(
    chunks: AsyncIterator[dict[str, Any]],
    *,
    provider: str,
    idle_timeout_seconds: float | None = None,
) -> AsyncIterator[bytes]:
    """Forward provider chunks as SSE frames, in order and one frame per chunk.

    Headers are already sent once the first frame goes out, so failures become a
    single terminal ``error`` event. Cancellation (client disconnect) closes the
    provider stream through ``aclose``.
    """
    frame_count = 0
    try:
        while True:
            try:
                chunk = await asyncio.wait_for(_next_chunk(chunks), timeout=idle_timeout_seconds)
            except asyncio.TimeoutError as exc:
                raise ProviderTimeoutError(
                    f"Provider {provider} stream was idle for {idle_timeout_seconds} seconds"
                ) from exc
            if chunk is _STREAM_END:
                break
            frame_count += 1
            yield encode_event(chunk)
    except RelayError as exc:
        logger.warning(
            "Provider stream failed",
            extra={"provider": provider, "frame_count": frame_count, "error_type": exc.error_type},
        )
        yield encode_error_event(exc.message, exc.error_type)
    except Exception as exc:
        logger.exception(
            "Provider stream failed unexpectedly",
            extra={"provider": provider, "frame_count": frame_count},
        )
        yield encode_error_event(str(exc) or "Internal server error", "UnknownError")
    finally:
        aclose = getattr(chunks, "aclose", None)
        if aclose is not None:
            await aclose()
        logger.info("Provider stream closed", extra={"provider": provider, "frame_count": frame_count})

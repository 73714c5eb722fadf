"""Chat relay API using FastAPI + Mangum for AWS Lambda."""

import asyncio
import logging
from collections.abc import Awaitable
from functools import lru_cache
from typing import TypeVar

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response, StreamingResponse
from mangum import Mangum
from starlette.background import BackgroundTask

from chat_relay.constants import CORS_HEADERS, DISCONNECT_POLL_SECONDS, PROVIDER_HEADER
from chat_relay.errors import ClientDisconnected, RelayError
from chat_relay.infra.runtime import (
    ensure_langsmith_configured,
    flush_langsmith_traces,
    get_bedrock_runnable,
    get_openai_chat_runnable,
    get_quota_store,
)
from chat_relay.model_registry import PROVIDER_PROFILES, max_requests_by_provider
from chat_relay.orchestration.base import RelayOrchestrator
from chat_relay.orchestration.direct import DirectRelayOrchestrator
from chat_relay.orchestration.langgraph_flow import FallbackRelayOrchestrator
from chat_relay.providers.base import ChatProvider
from chat_relay.providers.bedrock_provider import BedrockChatProvider
from chat_relay.providers.openai_provider import OpenAIChatProvider
from chat_relay.schemas import ChatRequest, ErrorResponse
from chat_relay.services.quota_tracker import QuotaTracker
from chat_relay.services.relay_service import RelayService
from chat_relay.settings import settings
from chat_relay.streaming import stream_events

logger = logging.getLogger(__name__)

T = TypeVar("T")


def configure_logging() -> None:
    level = settings.log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    logging.getLogger("chat_relay").setLevel(level)
    logger.setLevel(level)


configure_logging()

app = FastAPI(title="chat-relay")


def error_response(message: str, error_type: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse.build(message, error_type).model_dump(),
    )


@app.middleware("http")
async def cors_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request body"
    logger.warning("Rejected invalid relay request", extra={"validation_message": message})
    return error_response(message, "ValidationError", 400)


@lru_cache(maxsize=1)
def get_relay_service() -> RelayService:
    providers: dict[str, ChatProvider] = {
        "bedrock": BedrockChatProvider(get_bedrock_runnable=get_bedrock_runnable),
        "openai": OpenAIChatProvider(get_openai_chat_runnable=get_openai_chat_runnable),
    }

    orchestrator: RelayOrchestrator
    if not settings.quota_enabled and settings.secondary_provider is None:
        orchestrator = DirectRelayOrchestrator(
            provider=settings.primary_provider,
            providers=providers,
            profiles=PROVIDER_PROFILES,
            timeout_seconds=settings.provider_timeout_seconds,
        )
    else:
        quota_tracker = None
        if settings.quota_enabled:
            quota_tracker = QuotaTracker(get_quota_store(), max_requests_by_provider())
        orchestrator = FallbackRelayOrchestrator(
            providers=providers,
            profiles=PROVIDER_PROFILES,
            primary=settings.primary_provider,
            secondary=settings.secondary_provider,
            quota_tracker=quota_tracker,
            timeout_seconds=settings.provider_timeout_seconds,
        )
    logger.info(
        "Relay service configured",
        extra={
            "orchestrator": type(orchestrator).__name__,
            "primary_provider": settings.primary_provider,
            "secondary_provider": settings.secondary_provider,
            "quota_enabled": settings.quota_enabled,
        },
    )
    return RelayService(orchestrator=orchestrator)


async def run_until_disconnected(request: Request, awaitable: Awaitable[T]) -> T:
    """Await ``awaitable`` but cancel it as soon as the client goes away."""
    task = asyncio.ensure_future(awaitable)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                raise ClientDisconnected("Client disconnected before the provider responded")
    finally:
        if not task.done():
            task.cancel()


@app.options("/")
async def preflight() -> Response:
    return Response(status_code=200)


@app.post("/")
async def relay(request: Request, chat_request: ChatRequest) -> Response:
    """Relay a chat-completion request to the selected provider."""
    ensure_langsmith_configured()
    try:
        result = await run_until_disconnected(request, get_relay_service().handle_chat(chat_request))
    except ClientDisconnected as exc:
        logger.info("Relay request abandoned by client")
        flush_langsmith_traces()
        return error_response(exc.message, exc.error_type, exc.status_code)
    except RelayError as exc:
        logger.warning(
            "Relay request failed",
            extra={"error_type": exc.error_type, "status_code": exc.status_code},
        )
        flush_langsmith_traces()
        return error_response(exc.message, exc.error_type, exc.status_code)
    except Exception as exc:
        logger.exception("Relay request failed unexpectedly")
        flush_langsmith_traces()
        status_code = getattr(exc, "status_code", None)
        return error_response(
            str(exc) or "Internal server error",
            "UnknownError",
            status_code if isinstance(status_code, int) else 500,
        )

    if result.chunks is not None:
        return StreamingResponse(
            stream_events(
                result.chunks,
                provider=result.provider,
                idle_timeout_seconds=settings.stream_idle_timeout_seconds,
            ),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",
                PROVIDER_HEADER: result.provider,
            },
            background=BackgroundTask(flush_langsmith_traces),
        )

    flush_langsmith_traces()
    return JSONResponse(content=result.tagged_body(), headers={PROVIDER_HEADER: result.provider})


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


handler = Mangum(app)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)

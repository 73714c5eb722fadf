"""Conversion helpers between relay messages and provider-specific payloads."""

from collections.abc import Callable, Sequence
from typing import Any

from .constants import BEDROCK_ANTHROPIC_VERSION, EPHEMERAL_CACHE_CONTROL
from .model_registry import ProviderProfile
from .schemas import ChatMessage, ChatRequest

PayloadBuilder = Callable[[ChatRequest, ProviderProfile], dict[str, Any]]


def cache_prefix_flags(messages: Sequence[ChatMessage]) -> list[bool]:
    """Return which messages get an ephemeral cache annotation.

    Only a leading run of cacheable messages is annotated. The first message
    that is not cacheable ends the prefix for the rest of the conversation.
    """
    flags: list[bool] = []
    caching_still_active = True
    for message in messages:
        if message.cacheable and caching_still_active:
            flags.append(True)
        else:
            caching_still_active = False
            flags.append(False)
    return flags


def _anthropic_text_block(text: str, cached: bool) -> dict[str, Any]:
    block: dict[str, Any] = {"type": "text", "text": text}
    if cached:
        block["cache_control"] = dict(EPHEMERAL_CACHE_CONTROL)
    return block


def build_bedrock_payload(request: ChatRequest, profile: ProviderProfile) -> dict[str, Any]:
    """Build an Anthropic Messages body for Claude on Bedrock."""
    system_blocks: list[dict[str, Any]] = []
    if request.system:
        system_blocks.append(
            _anthropic_text_block(request.system, cached=profile.supports_system_cache)
        )

    messages: list[dict[str, Any]] = []
    for message, cached in zip(request.messages, cache_prefix_flags(request.messages)):
        # The Messages API only accepts a top-level system prompt.
        if message.role == "system":
            system_blocks.append(_anthropic_text_block(message.content, cached))
            continue
        if cached:
            content: str | list[dict[str, Any]] = [
                _anthropic_text_block(message.content, cached=True)
            ]
        else:
            content = message.content
        messages.append({"role": message.role, "content": content})

    body: dict[str, Any] = {
        "anthropic_version": BEDROCK_ANTHROPIC_VERSION,
        "max_tokens": request.max_tokens,
        "temperature": request.temperature,
        "messages": messages,
    }
    if system_blocks:
        body["system"] = system_blocks
    return {"model_id": profile.model, "body": body}


def build_openai_payload(request: ChatRequest, profile: ProviderProfile) -> dict[str, Any]:
    """Build a Chat Completions body; cache annotations are not supported and dropped."""
    messages: list[dict[str, Any]] = []
    if request.system:
        messages.append({"role": "system", "content": request.system})
    messages.extend(
        {"role": message.role, "content": message.content} for message in request.messages
    )
    return {
        "model": profile.model,
        "messages": messages,
        "max_tokens": request.max_tokens,
        "temperature": request.temperature,
    }


PAYLOAD_BUILDERS: dict[str, PayloadBuilder] = {
    "bedrock": build_bedrock_payload,
    "openai": build_openai_payload,
}


def build_payload(request: ChatRequest, profile: ProviderProfile) -> dict[str, Any]:
    builder = PAYLOAD_BUILDERS.get(profile.provider)
    if builder is None:
        raise RuntimeError(f"Unsupported provider: {profile.provider}")
    return builder(request, profile)

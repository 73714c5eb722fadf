"""Provider interfaces and shared response model."""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Protocol

from chat_relay.constants import Provider


@dataclass(frozen=True)
class ProviderResponse:
    """A provider result tagged with the backend that produced it.

    Exactly one of ``body`` (raw completion) or ``chunks`` (opened stream) is set.
    """

    provider: Provider
    body: dict[str, Any] | None = None
    chunks: AsyncIterator[dict[str, Any]] | None = None

    @property
    def is_stream(self) -> bool:
        return self.chunks is not None

    def tagged_body(self) -> dict[str, Any]:
        return {**(self.body or {}), "provider": self.provider}


class ChatProvider(Protocol):
    async def invoke(self, payload: dict[str, Any], stream: bool) -> ProviderResponse:
        """Invoke a provider with an already-transformed payload.

        With ``stream=True`` the upstream stream must be open when this returns,
        so rate-limit signals surface here rather than mid-stream.
        """
        ...

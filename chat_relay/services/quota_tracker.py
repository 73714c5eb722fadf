"""Per-identity, per-provider message quota bookkeeping."""

import logging
from collections.abc import Mapping

from chat_relay.constants import QUOTA_CAS_MAX_ATTEMPTS
from chat_relay.errors import QuotaStoreConflict
from chat_relay.storage.kv import QuotaKey, QuotaStore

logger = logging.getLogger(__name__)


class QuotaTracker:
    """Counts accepted requests per ``(provider, identity)`` against a static maximum.

    Counters live for the lifetime of the store: there is no window or expiry.
    Each accepted call is one compare-and-set on the store, so concurrent
    callers for the same key can never push the counter past the maximum.
    """

    def __init__(
        self,
        store: QuotaStore,
        max_requests: Mapping[str, int],
        max_attempts: int = QUOTA_CAS_MAX_ATTEMPTS,
    ) -> None:
        self._store = store
        self._max_requests = max_requests
        self._max_attempts = max_attempts

    async def check_and_consume(self, provider: str, identity: str) -> bool:
        key = QuotaKey(provider=provider, identity=identity)
        limit = self._max_requests[provider]

        for attempt in range(1, self._max_attempts + 1):
            current = await self._store.get(key)
            if current is not None and current >= limit:
                logger.info(
                    "Message quota exhausted",
                    extra={"provider": provider, "used": current, "limit": limit},
                )
                return False

            next_value = 1 if current is None else current + 1
            if await self._store.atomic_set(key, next_value, expected=current):
                logger.debug(
                    "Message quota consumed",
                    extra={"provider": provider, "used": next_value, "limit": limit},
                )
                return True

            logger.debug(
                "Quota update lost a race; retrying",
                extra={"provider": provider, "attempt": attempt},
            )

        raise QuotaStoreConflict(
            f"Could not update message quota for provider {provider}; try again later"
        )

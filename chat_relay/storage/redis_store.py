"""Redis-backed quota store."""

import logging

import redis.asyncio as redis
from redis.exceptions import WatchError

from .kv import QuotaKey, QuotaStore

logger = logging.getLogger(__name__)


def _to_int(value: bytes | str | None) -> int | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    return int(value)


class RedisQuotaStore(QuotaStore):
    def __init__(self, client: redis.Redis, key_prefix: str = "chat-relay") -> None:
        self.client = client
        self.key_prefix = key_prefix.strip() or "chat-relay"

    @classmethod
    def from_url(cls, redis_url: str, key_prefix: str = "chat-relay") -> "RedisQuotaStore":
        return cls(redis.Redis.from_url(redis_url, decode_responses=False), key_prefix)

    def _quota_key(self, key: QuotaKey) -> str:
        return f"{self.key_prefix}:quota:{key.provider}:{key.identity}"

    async def get(self, key: QuotaKey) -> int | None:
        return _to_int(await self.client.get(self._quota_key(key)))

    async def atomic_set(self, key: QuotaKey, value: int, expected: int | None) -> bool:
        redis_key = self._quota_key(key)
        async with self.client.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(redis_key)
                current = _to_int(await pipe.get(redis_key))
                if current != expected:
                    return False
                pipe.multi()
                pipe.set(redis_key, value)
                await pipe.execute()
                return True
            except WatchError:
                logger.debug("Quota key changed during transaction", extra={"key": redis_key})
                return False

import unittest
from unittest.mock import AsyncMock, MagicMock

from redis.exceptions import WatchError

from chat_relay.storage.kv import QuotaKey
from chat_relay.storage.redis_store import RedisQuotaStore


def _mock_client(stored: bytes | None) -> tuple[MagicMock, MagicMock]:
    pipe = MagicMock()
    pipe.__aenter__ = AsyncMock(return_value=pipe)
    pipe.__aexit__ = AsyncMock(return_value=False)
    pipe.watch = AsyncMock()
    pipe.get = AsyncMock(return_value=stored)
    pipe.execute = AsyncMock(return_value=[True])

    client = MagicMock()
    client.pipeline.return_value = pipe
    client.get = AsyncMock(return_value=stored)
    return client, pipe


class RedisQuotaStoreTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.key = QuotaKey(provider="bedrock", identity="a@example.com")

    async def test_get_reads_prefixed_key(self) -> None:
        client, _ = _mock_client(b"7")
        store = RedisQuotaStore(client, key_prefix="relay")

        self.assertEqual(await store.get(self.key), 7)
        client.get.assert_awaited_once_with("relay:quota:bedrock:a@example.com")

    async def test_get_missing_key_returns_none(self) -> None:
        client, _ = _mock_client(None)

        self.assertIsNone(await RedisQuotaStore(client).get(self.key))

    async def test_atomic_set_writes_inside_transaction_when_value_matches(self) -> None:
        client, pipe = _mock_client(b"2")
        store = RedisQuotaStore(client, key_prefix="relay")

        self.assertTrue(await store.atomic_set(self.key, 3, expected=2))

        pipe.watch.assert_awaited_once_with("relay:quota:bedrock:a@example.com")
        pipe.multi.assert_called_once_with()
        pipe.set.assert_called_once_with("relay:quota:bedrock:a@example.com", 3)
        pipe.execute.assert_awaited_once()

    async def test_atomic_set_skips_write_when_value_changed(self) -> None:
        client, pipe = _mock_client(b"3")

        self.assertFalse(await RedisQuotaStore(client).atomic_set(self.key, 3, expected=2))
        pipe.set.assert_not_called()
        pipe.execute.assert_not_awaited()

    async def test_atomic_set_reports_conflict_on_watch_error(self) -> None:
        client, pipe = _mock_client(None)
        pipe.execute.side_effect = WatchError("changed")

        self.assertFalse(await RedisQuotaStore(client).atomic_set(self.key, 1, expected=None))


if __name__ == "__main__":
    unittest.main()

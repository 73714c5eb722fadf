"""Process-local quota store."""

import threading

from .kv import QuotaKey, QuotaStore


class InMemoryQuotaStore(QuotaStore):
    def __init__(self) -> None:
        self._counters: dict[QuotaKey, int] = {}
        self._lock = threading.Lock()

    async def get(self, key: QuotaKey) -> int | None:
        with self._lock:
            return self._counters.get(key)

    async def atomic_set(self, key: QuotaKey, value: int, expected: int | None) -> bool:
        with self._lock:
            if self._counters.get(key) != expected:
                return False
            self._counters[key] = value
            return True

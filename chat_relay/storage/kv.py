"""Key-value abstraction for per-identity quota counters."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class QuotaKey:
    provider: str
    identity: str


class QuotaStore(ABC):
    @abstractmethod
    async def get(self, key: QuotaKey) -> int | None:
        """Return the current counter, or None when the key was never written."""

    @abstractmethod
    async def atomic_set(self, key: QuotaKey, value: int, expected: int | None) -> bool:
        """Write ``value`` only if the stored counter still equals ``expected``.

        ``expected=None`` means the key must still be absent. Returns False when
        another writer got there first, leaving the stored value untouched.
        """

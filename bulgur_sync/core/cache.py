"""LRU store backing the folder listing cache."""

from collections import OrderedDict
from collections.abc import Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

from bulgur_sync.exceptions import BError
from bulgur_sync.models.storage import FolderResults

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True, slots=True)
class CacheKey:
    """
    Identity of a cached response.

    Credentials are part of the key so a token change never serves a listing
    fetched with another token.
    """

    method: str
    path: str
    access_token: str | None
    site: str | None


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """
    Last known result for a key.

    Attributes:
        result: Entries on success, or the error the fetch produced.
        sequence: Sequence number of the fetch that produced ``result``.
        stale: Set by invalidation; a stale entry is refetched on next read.
    """

    result: FolderResults | BError
    sequence: int
    stale: bool = False

    @property
    def is_error(self) -> bool:
        return isinstance(self.result, BError)


class LRUCache(Generic[K, V]):
    """
    Simple LRU cache implementation.

    Safe for a single event loop: no method awaits.
    """

    def __init__(self, max_size: int = 1000) -> None:
        """
        Args:
            max_size: Maximum number of items to cache.
        """
        self._max_size = max_size
        self._cache: OrderedDict[K, V] = OrderedDict()

    def get(self, key: K) -> V | None:
        """
        Get item from cache, moving it to end (most recently used).

        Returns:
            Cached item or None.
        """
        if key not in self._cache:
            return None

        self._cache.move_to_end(key)
        return self._cache[key]

    def put(self, key: K, value: V) -> None:
        if key in self._cache:
            self._cache.move_to_end(key)
        elif len(self._cache) >= self._max_size:
            self._cache.popitem(last=False)

        self._cache[key] = value

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: K) -> bool:
        return key in self._cache

    def keys(self) -> list[K]:
        return list(self._cache.keys())

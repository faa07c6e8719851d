"""Normalized payload cache keyed by entity id."""

import threading
from collections import OrderedDict
from typing import Generic, Optional, Protocol, TypeVar

import structlog

from ..config.defaults import DEFAULT_CACHE_MAX_SIZE

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class PayloadCache(Protocol[T]):
    """Interface the puppet core consumes; eviction belongs to the implementation."""

    def get(self, entity_id: str) -> Optional[T]: ...

    def set(self, entity_id: str, payload: T) -> None: ...

    def has(self, entity_id: str) -> bool: ...

    def delete(self, entity_id: str) -> None: ...


class MemoryPayloadCache(Generic[T]):
    """Thread-safe in-memory LRU cache; last writer wins per id."""

    def __init__(self, name: str, max_size: int = DEFAULT_CACHE_MAX_SIZE):
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")

        self.name = name
        self.max_size = max_size
        self.logger = logger.bind(cache=name)
        self._entries: OrderedDict[str, T] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, entity_id: str) -> Optional[T]:
        with self._lock:
            if entity_id not in self._entries:
                self._misses += 1
                return None
            self._entries.move_to_end(entity_id)
            self._hits += 1
            return self._entries[entity_id]

    def set(self, entity_id: str, payload: T) -> None:
        with self._lock:
            self._entries[entity_id] = payload
            self._entries.move_to_end(entity_id)
            while len(self._entries) > self.max_size:
                evicted_id, _ = self._entries.popitem(last=False)
                self._evictions += 1
                self.logger.debug("Evicted payload", entity_id=evicted_id)

    def has(self, entity_id: str) -> bool:
        with self._lock:
            return entity_id in self._entries

    def delete(self, entity_id: str) -> None:
        with self._lock:
            self._entries.pop(entity_id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> dict[str, int]:
        """Get cache statistics."""
        with self._lock:
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

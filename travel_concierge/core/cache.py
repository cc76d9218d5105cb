"""Capacity-bounded TTL caches used in front of retrieval and synthesis.

Three independent instances live in a ``CacheRegistry`` so that slow-changing
embeddings never share an eviction budget with fast-changing responses. All
instances are injected, so tests can swap in a fake clock or a zero-capacity
cache to force misses.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Tuple, TypeVar

from langchain_core.embeddings import Embeddings

from travel_concierge.core.config import CacheSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")
Clock = Callable[[], float]

KEY_SEPARATOR = ":"


def create_cache_key(*parts: Any) -> str:
    """Build a deterministic key from lowercased parts with whitespace collapsed."""

    return KEY_SEPARATOR.join(" ".join(str(part).lower().split()) for part in parts if part is not None)


class TTLCache:
    """Thread-safe TTL cache with insertion-order eviction.

    Eviction drops the oldest inserted entry once ``max_size`` is reached
    (approximate LRU; reads do not refresh position). Expired entries are
    removed lazily on lookup and eagerly by ``sweep``.
    """

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl: float = 300.0,
        *,
        clock: Clock = time.monotonic,
        name: str = "cache",
    ) -> None:
        if max_size < 0:
            raise ValueError("max_size must be >= 0")
        self.max_size = max_size
        self.default_ttl = default_ttl
        self.name = name
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[Any, float]]" = OrderedDict()
        self._lock = threading.Lock()
        self._sweeper: Optional[asyncio.Task[None]] = None

    def _expired(self, expires_at: float) -> bool:
        return self._clock() >= expires_at

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            value, expires_at = entry
            if self._expired(expires_at):
                del self._entries[key]
                return default
            return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        if self.max_size == 0:
            return
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            if key in self._entries:
                # overwriting re-inserts at the tail
                del self._entries[key]
            elif len(self._entries) >= self.max_size:
                self._entries.popitem(last=False)
            self._entries[key] = (value, self._clock() + ttl)

    def has(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if self._expired(entry[1]):
                del self._entries[key]
                return False
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def sweep(self) -> int:
        """Remove every expired entry and return how many were dropped."""

        with self._lock:
            now = self._clock()
            expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.info(f"Cache {self.name}: removed {len(expired)} expired entries")
        return len(expired)

    def start_sweeper(self, interval: float) -> asyncio.Task[None]:
        """Start a background task that sweeps every ``interval`` seconds."""

        if self._sweeper is not None and not self._sweeper.done():
            return self._sweeper

        async def _run() -> None:
            while True:
                await asyncio.sleep(interval)
                self.sweep()

        self._sweeper = asyncio.get_running_loop().create_task(_run(), name=f"{self.name}-sweeper")
        return self._sweeper

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None


async def with_cache(
    cache: TTLCache,
    key: str,
    fetcher: Callable[[], Awaitable[T]],
    ttl: Optional[float] = None,
) -> T:
    """Return the cached value for ``key`` or fetch, store and return it."""

    missing = object()
    cached = cache.get(key, missing)
    if cached is not missing:
        logger.debug(f"Cache hit ({cache.name}): {key}")
        return cached
    logger.debug(f"Cache miss ({cache.name}): {key}")
    result = await fetcher()
    cache.set(key, result, ttl)
    return result


@dataclass(slots=True)
class CacheRegistry:
    """The three named caches shared by one orchestrator instance."""

    embeddings: TTLCache
    retrieval: TTLCache
    responses: TTLCache

    @classmethod
    def from_settings(cls, settings: CacheSettings, *, clock: Clock = time.monotonic) -> "CacheRegistry":
        return cls(
            embeddings=TTLCache(
                settings.embeddings_max_size, settings.embeddings_ttl_s, clock=clock, name="embeddings"
            ),
            retrieval=TTLCache(
                settings.retrieval_max_size, settings.retrieval_ttl_s, clock=clock, name="retrieval"
            ),
            responses=TTLCache(
                settings.responses_max_size, settings.responses_ttl_s, clock=clock, name="responses"
            ),
        )

    @classmethod
    def disabled(cls) -> "CacheRegistry":
        """Zero-capacity caches: every lookup misses."""

        return cls(
            embeddings=TTLCache(0, name="embeddings"),
            retrieval=TTLCache(0, name="retrieval"),
            responses=TTLCache(0, name="responses"),
        )

    def all(self) -> List[TTLCache]:
        return [self.embeddings, self.retrieval, self.responses]

    def start_sweepers(self, interval: float) -> None:
        for cache in self.all():
            cache.start_sweeper(interval)

    async def stop_sweepers(self) -> None:
        for cache in self.all():
            await cache.stop_sweeper()


class CachedEmbeddings(Embeddings):
    """Wrap any LangChain embeddings with the embeddings cache."""

    def __init__(self, underlying: Embeddings, cache: TTLCache, *, namespace: str = "default") -> None:
        self.underlying = underlying
        self.cache = cache
        self.namespace = namespace

    def _key(self, text: str) -> str:
        return create_cache_key("embedding", self.namespace, text)

    def embed_query(self, text: str) -> List[float]:
        key = self._key(text)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        vector = self.underlying.embed_query(text)
        self.cache.set(key, vector)
        return vector

    async def aembed_query(self, text: str) -> List[float]:
        key = self._key(text)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        vector = await self.underlying.aembed_query(text)
        self.cache.set(key, vector)
        return vector

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        return [self.embed_query(text) for text in texts]

    async def aembed_documents(self, texts: List[str]) -> List[List[float]]:
        return [await self.aembed_query(text) for text in texts]

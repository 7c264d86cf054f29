# brainstorm_bot/completion/cache.py
"""
Response Cache - TTL cache for completion results.

Keys have three parts: the operation name, a digest of the prompt (the
"scope") and a digest of the remaining arguments. Repeating an identical
``analyze_text`` or ``generate_response`` call inside the TTL window never
reaches the completion service, and ``find_similar`` only looks at entries
written for the same prompt.

Expired entries are not removed on read; a sweep runs every
``sweep_interval`` writes to keep memory bounded.
"""

from __future__ import annotations

import hashlib
import logging
import time
from collections import OrderedDict
from typing import Callable, Optional

from ..models import CachedResponse, CacheStatistics, CompletionResponse

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "|"


class ResponseCache:
    """
    Completion results with a fixed time-to-live.

    Writes for the same key are last-writer-wins.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        sweep_interval: int = 50,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.ttl_seconds = ttl_seconds
        self.sweep_interval = sweep_interval
        self._clock = clock or time.time
        self._cache: OrderedDict[str, CachedResponse] = OrderedDict()
        self._writes = 0
        self._stats = {
            "hits": 0,
            "misses": 0,
            "swept": 0,
        }

    @staticmethod
    def digest(*parts: str) -> str:
        return hashlib.sha256(KEY_SEPARATOR.join(parts).encode()).hexdigest()[:16]

    @classmethod
    def make_key(cls, operation: str, scope: str, *params: str) -> str:
        """Create a cache key from the operation name, its prompt and its other arguments."""
        return f"{operation}:{cls.digest(scope)}:{cls.digest(*params)}"

    def get(self, key: str) -> Optional[CompletionResponse]:
        """Return the cached response if present and not expired."""
        entry = self._cache.get(key)
        if entry is None or not entry.is_valid(self._clock()):
            self._stats["misses"] += 1
            return None

        self._stats["hits"] += 1
        logger.debug("Cache hit for %s", key)
        return entry.response

    def put(self, key: str, response: CompletionResponse) -> None:
        now = self._clock()
        self._cache[key] = CachedResponse(
            response=response,
            timestamp=now,
            expiration_time=now + self.ttl_seconds,
        )
        self._cache.move_to_end(key)
        self._writes += 1
        if self.sweep_interval > 0 and self._writes % self.sweep_interval == 0:
            self.sweep()

    def find_similar(self, operation: str, scope_digest: str) -> Optional[CompletionResponse]:
        """
        Return the newest non-expired entry stored for ``operation`` under the
        same prompt, whatever its other arguments were.

        ``scope_digest`` is ``ResponseCache.digest(prompt)``.
        """
        now = self._clock()
        prefix = f"{operation}:{scope_digest}:"
        for key in reversed(self._cache):
            entry = self._cache[key]
            if key.startswith(prefix) and entry.is_valid(now):
                return entry.response
        return None

    def sweep(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._cache.items() if not entry.is_valid(now)]
        for key in expired:
            del self._cache[key]
        self._stats["swept"] += len(expired)
        if expired:
            logger.debug("Swept %d expired cache entries", len(expired))
        return len(expired)

    def clear(self) -> None:
        self._cache.clear()

    @property
    def size(self) -> int:
        return len(self._cache)

    @property
    def hit_rate(self) -> float:
        total = self._stats["hits"] + self._stats["misses"]
        if total == 0:
            return 0.0
        return self._stats["hits"] / total

    def get_stats(self) -> CacheStatistics:
        now = self._clock()
        valid = sum(1 for entry in self._cache.values() if entry.is_valid(now))
        size_bytes = sum(
            len(key.encode()) + len(entry.model_dump_json().encode()) for key, entry in self._cache.items()
        )
        return CacheStatistics(
            total_entries=len(self._cache),
            valid_entries=valid,
            expired_entries=len(self._cache) - valid,
            total_size_bytes=size_bytes,
            hits=self._stats["hits"],
            misses=self._stats["misses"],
            hit_rate=self.hit_rate,
        )

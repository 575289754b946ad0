"""Fingerprint-keyed result cache for the diagnostic pipeline."""

from __future__ import annotations

import hashlib
import logging
import time
from collections import OrderedDict
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from threading import Lock

from faultline.analysis.schemas import Diagnostic, SourceFragment
from faultline.constants import (
    CACHE_EVICTION_TARGET,
    DEFAULT_CACHE_MAX_ENTRIES,
    DEFAULT_CACHE_TTL_SECONDS,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Fingerprint:
    """Cache identity of a fragment: content digest, length, and scope.

    Both hash and length must match for a hit. ``scope`` keeps two
    files with identical text apart when their whole-file context
    differs.
    """

    content_hash: str
    length: int
    scope: str = ""

    @classmethod
    def of(
        cls,
        fragment: SourceFragment,
        whole_file_text: str | None = None,
    ) -> Fingerprint:
        digest = hashlib.sha256(fragment.text.encode("utf-8"))
        scope = fragment.language
        if whole_file_text is not None and whole_file_text != fragment.text:
            context = hashlib.sha256(whole_file_text.encode("utf-8"))
            scope = f"{scope}:{fragment.origin.start_offset}:{context.hexdigest()[:16]}"
        return cls(
            content_hash=digest.hexdigest(),
            length=len(fragment.text),
            scope=scope,
        )

    @property
    def key(self) -> str:
        return f"{self.scope}:{self.length}:{self.content_hash}"


@dataclass(frozen=True)
class CacheEntry:
    fingerprint: Fingerprint
    diagnostics: tuple[Diagnostic, ...]
    created_at: float
    duration_ms: float


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time counters for the cache."""

    size: int
    hits: int
    misses: int
    evictions: int
    max_entries: int
    ttl_seconds: float


class AnalysisCache:
    """TTL cache of pipeline results, safe to share across threads.

    Entries expire ``ttl_seconds`` after insertion; expiry is checked
    on read. When an insert pushes the size past ``max_entries``,
    expired entries go first, then the oldest, until the size is below
    80% of the cap.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        max_entries: int = DEFAULT_CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[Fingerprint, CacheEntry] = OrderedDict()
        self._lock = Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, fingerprint: Fingerprint) -> list[Diagnostic] | None:
        """Return cached diagnostics, or None on a miss or expiry."""
        with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is None:
                self._misses += 1
                return None
            if self._clock() - entry.created_at > self._ttl:
                del self._entries[fingerprint]
                self._misses += 1
                return None
            self._hits += 1
            return list(entry.diagnostics)

    def put(
        self,
        fingerprint: Fingerprint,
        diagnostics: Sequence[Diagnostic],
        duration_ms: float = 0.0,
    ) -> None:
        with self._lock:
            # Re-inserting moves the key to the newest position.
            self._entries.pop(fingerprint, None)
            self._entries[fingerprint] = CacheEntry(
                fingerprint=fingerprint,
                diagnostics=tuple(diagnostics),
                created_at=self._clock(),
                duration_ms=duration_ms,
            )
            if len(self._entries) > self._max_entries:
                self._evict()

    def _evict(self) -> None:
        """Drop expired entries, then oldest, to below the target size.

        Caller holds the lock.
        """
        before = len(self._entries)
        now = self._clock()
        expired = [
            fp
            for fp, entry in self._entries.items()
            if now - entry.created_at > self._ttl
        ]
        for fp in expired:
            del self._entries[fp]

        # The entry just inserted always survives.
        target = self._max_entries * CACHE_EVICTION_TARGET
        while len(self._entries) > 1 and len(self._entries) >= target:
            self._entries.popitem(last=False)

        removed = before - len(self._entries)
        self._evictions += removed
        logger.debug(
            "event=cache_evicted expired=%d removed=%d size=%d",
            len(expired),
            removed,
            len(self._entries),
        )

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                max_entries=self._max_entries,
                ttl_seconds=self._ttl,
            )

# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Session-scoped decision cache keyed by normalized detail URL.

Decisions are stored as strings in a session store ("1" = has visual
content, "0" = none) under ``<prefix><url>``.  The store lives as long as
the browser tab's session: it survives navigation within the tab and is
discarded with it.  There is no TTL and no eviction.

Storage failures never fail a scan: an unreadable store is a miss (the
detail page is fetched again) and an unwritable store just loses the
decision.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)

DEFAULT_CACHE_PREFIX = "cardsift_has_img:"

_TRUE = "1"
_FALSE = "0"


class SessionStore(Protocol):
    """String key-value store bounded to one browsing session."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...


class InMemorySessionStore:
    """Process-lifetime store, used when no page-backed storage exists."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def __len__(self) -> int:
        return len(self._data)


@dataclass
class CacheStats:
    """Counters for cache behaviour, reported in logs and the CLI summary."""

    hits: int = 0
    misses: int = 0
    writes: int = 0
    storage_errors: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


class DecisionCache:
    """Three-valued url -> decision lookup over a SessionStore."""

    def __init__(self, store: SessionStore, *, prefix: str = DEFAULT_CACHE_PREFIX) -> None:
        self._store = store
        self._prefix = prefix
        self._stats = CacheStats()

    async def get(self, url: str) -> bool | None:
        """Return the cached decision for *url*, or None when unknown."""
        try:
            raw = await self._store.get(self._prefix + url)
        except Exception:
            self._stats.storage_errors += 1
            self._stats.misses += 1
            logger.debug("Session store read failed, treating as miss: %s", url, exc_info=True)
            return None
        if raw is None:
            self._stats.misses += 1
            return None
        self._stats.hits += 1
        return raw == _TRUE

    async def set(self, url: str, has_visual_content: bool) -> None:
        """Record a decision, overwriting any earlier one."""
        try:
            await self._store.set(self._prefix + url, _TRUE if has_visual_content else _FALSE)
        except Exception:
            self._stats.storage_errors += 1
            logger.debug("Session store write failed, decision dropped: %s", url, exc_info=True)
            return
        self._stats.writes += 1

    @property
    def stats(self) -> CacheStats:
        return self._stats

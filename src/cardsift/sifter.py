# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""FeedSifter: wires cache, queue, controller and rescan trigger to a host.

Lifecycle::

    sifter = FeedSifter.for_page(page, SiftConfig())
    await sifter.start()      # initial scan + mutation observer
    ...                       # page keeps rendering cards
    await sifter.aclose()     # cancel rescans and fetch jobs

Dependency graph (acyclic): sifter -> controller -> {decision_cache,
fetch_queue, content_classifier, urls}; sifter -> browser_host only in
``for_page``.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass

from .config import SiftConfig
from .controller import CardHost, HtmlFetcherLike, ScanController, ScanStats
from .decision_cache import CacheStats, DecisionCache, SessionStore
from .fetch_queue import FetchQueue, QueueStats
from .rescan import RescanTrigger

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SiftStats:
    """Immutable snapshot of all pipeline counters."""

    scan: ScanStats
    cache: CacheStats
    queue: QueueStats
    processed_cards: int
    rescans: int

    def as_dict(self) -> dict:
        return {
            "scan": dataclasses.asdict(self.scan),
            "cache": dataclasses.asdict(self.cache),
            "queue": dataclasses.asdict(self.queue),
            "processed_cards": self.processed_cards,
            "rescans": self.rescans,
        }


class FeedSifter:
    """One sifting pipeline over one host. Assumes it is the only instance on the page."""

    def __init__(
        self,
        host: CardHost,
        *,
        store: SessionStore,
        fetcher: HtmlFetcherLike,
        config: SiftConfig | None = None,
        owns_fetcher: bool = False,
    ) -> None:
        self._config = config or SiftConfig()
        self._host = host
        self._fetcher = fetcher
        self._owns_fetcher = owns_fetcher
        self.cache = DecisionCache(store, prefix=self._config.cache_prefix)
        self.queue = FetchQueue(self._config.max_concurrent_fetches)
        self.controller = ScanController(
            host,
            cache=self.cache,
            queue=self.queue,
            fetcher=fetcher,
            config=self._config,
        )
        self.trigger = RescanTrigger(self.controller.scan)
        self._started = False

    @classmethod
    def for_page(cls, page, config: SiftConfig | None = None, *, client=None) -> FeedSifter:
        """Build a sifter over a live Playwright page.

        Decisions go to the page's sessionStorage; detail fetches carry the
        browser context's cookies.
        """
        from .browser_host import PageCardHost, PageSessionStorage
        from .fetcher import HtmlFetcher

        config = config or SiftConfig()
        host = PageCardHost(page, config)
        fetcher = HtmlFetcher(client, cookie_source=host.cookie_header, user_agent=config.user_agent)
        return cls(host, store=PageSessionStorage(page), fetcher=fetcher, config=config, owns_fetcher=True)

    async def start(self) -> None:
        """Scan what is rendered now, then rescan on every mutation batch."""
        if self._started:
            raise RuntimeError("FeedSifter already started")
        self._started = True
        await self.controller.scan()
        await self.trigger.attach(self._host)

    async def settle(self) -> None:
        """Wait until no rescan and no fetch job is pending."""
        while True:
            await self.trigger.drain()
            await self.queue.join()
            if not self.trigger.pending and not self.queue.active and not self.queue.pending:
                return

    async def aclose(self) -> None:
        await self.trigger.aclose()
        await self.queue.aclose()
        if self._owns_fetcher:
            await self._fetcher.aclose()
        logger.debug("FeedSifter closed: %s", self.stats.as_dict())

    @property
    def stats(self) -> SiftStats:
        return SiftStats(
            scan=dataclasses.replace(self.controller.stats),
            cache=dataclasses.replace(self.cache.stats),
            queue=dataclasses.replace(self.queue.stats),
            processed_cards=self.controller.processed_count,
            rescans=self.trigger.notifications,
        )

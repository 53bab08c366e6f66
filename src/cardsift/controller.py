# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Scan loop: per-card decision with idempotent bookkeeping.

Per card, in order:

    already processed            -> return
    no detail link               -> mark processed
    not a detail page URL        -> mark processed
    cache says False             -> mark processed, hide
    cache says True              -> mark processed
    cache miss                   -> mark processed, queue fetch + classify

A card is marked processed before the first ``await`` touching it, so
overlapping scans (a mutation batch arriving mid-scan) never queue the
same card twice.  ``scan()`` never waits for fetch jobs.

Fetch jobs fail open: on any failure the card stays visible and nothing
is cached, so the URL is fetched again in a later processed-set context
(a new document).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial
from typing import Protocol

import structlog

from . import Card
from .config import SiftConfig
from .content_classifier import has_visual_content
from .decision_cache import DecisionCache
from .errors import FetchError
from .fetch_queue import FetchQueue
from .urls import is_detail_page, normalize_url

logger = logging.getLogger(__name__)


class CardHost(Protocol):
    """The rendered page, as seen by the controller."""

    @property
    def origin(self) -> str: ...

    async def list_cards(self) -> list[Card]: ...

    async def hide_card(self, card: Card) -> None: ...

    async def observe(self, callback: Callable[[], None]) -> None: ...


class HtmlFetcherLike(Protocol):
    async def fetch_html(self, url: str) -> str: ...


@dataclass
class ScanStats:
    """Counters for scan outcomes."""

    scans: int = 0
    cards_seen: int = 0
    skipped_no_link: int = 0
    skipped_not_detail: int = 0
    cached_hidden: int = 0
    cached_visible: int = 0
    fetches_queued: int = 0
    fetches_failed: int = 0
    classified_visual: int = 0
    classified_empty: int = 0
    hidden: int = 0
    hide_errors: int = 0


class ScanController:
    """Resolve, look up, and hide-or-queue every card the host renders."""

    def __init__(
        self,
        host: CardHost,
        *,
        cache: DecisionCache,
        queue: FetchQueue,
        fetcher: HtmlFetcherLike,
        config: SiftConfig | None = None,
    ) -> None:
        self._host = host
        self._cache = cache
        self._queue = queue
        self._fetcher = fetcher
        self._config = config or SiftConfig()
        self._processed: set[str] = set()
        self._stats = ScanStats()

    async def scan(self) -> int:
        """Process every currently rendered card. Returns the number of new cards."""
        self._stats.scans += 1
        try:
            cards = await self._host.list_cards()
        except Exception:
            logger.warning("Card enumeration failed; skipping this scan", exc_info=True)
            return 0

        new = 0
        for card in cards:
            if await self.process(card):
                new += 1
        if new:
            logger.debug("Scan #%d: %d new of %d cards", self._stats.scans, new, len(cards))
        return new

    async def process(self, card: Card) -> bool:
        """Apply the per-card decision. False when *card* was already processed."""
        if card.card_id in self._processed:
            return False
        self._processed.add(card.card_id)
        self._stats.cards_seen += 1

        if not card.href:
            self._stats.skipped_no_link += 1
            return True

        url = normalize_url(card.href, self._host.origin)
        if url is None or not is_detail_page(url):
            self._stats.skipped_not_detail += 1
            return True

        cached = await self._cache.get(url)
        if cached is False:
            self._stats.cached_hidden += 1
            await self._hide(card)
        elif cached is True:
            self._stats.cached_visible += 1
        else:
            self._stats.fetches_queued += 1
            self._queue.submit(partial(self._inspect, card, url))
        return True

    async def _inspect(self, card: Card, url: str) -> None:
        """Queue job: fetch the detail page, classify, cache, maybe hide."""
        with structlog.contextvars.bound_contextvars(detail_url=url):
            timeout = self._config.fetch_timeout
            try:
                # the timer cancels the in-flight request
                html = await asyncio.wait_for(self._fetcher.fetch_html(url), timeout=timeout)
            except TimeoutError:
                self._stats.fetches_failed += 1
                logger.debug("Detail fetch timed out after %gs, card stays visible", timeout)
                return
            except FetchError as e:
                self._stats.fetches_failed += 1
                logger.debug("Detail fetch failed, card stays visible: %s", e)
                return
            except Exception:
                self._stats.fetches_failed += 1
                logger.warning("Detail fetch raised unexpectedly, card stays visible", exc_info=True)
                return

            # lxml parse off the event loop
            visual = await asyncio.to_thread(has_visual_content, html, self._config.content_container_class)
            await self._cache.set(url, visual)
            if visual:
                self._stats.classified_visual += 1
            else:
                self._stats.classified_empty += 1
                await self._hide(card)

    async def _hide(self, card: Card) -> None:
        try:
            await self._host.hide_card(card)
        except Exception:
            self._stats.hide_errors += 1
            logger.warning("Hiding card %s failed", card.card_id, exc_info=True)
            return
        self._stats.hidden += 1
        logger.debug("Hid card %s", card)

    def is_processed(self, card: Card) -> bool:
        return card.card_id in self._processed

    @property
    def processed_count(self) -> int:
        return len(self._processed)

    @property
    def stats(self) -> ScanStats:
        return self._stats

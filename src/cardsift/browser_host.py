# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Playwright-backed page adapter: cards, hiding, mutations, sessionStorage.

All DOM work happens in small JS snippets evaluated in the page.  Cards
are identified by an in-page registry that hands out string handles
``"<document token>-<n>"`` and keeps elements only through WeakMap /
WeakRef, so cards removed by the page can be collected.  A new document
gets a new token, which gives the controller a fresh processed-set
context after navigation.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from playwright.async_api import Page

from . import Card
from .config import SiftConfig
from .urls import origin_of

logger = logging.getLogger(__name__)

_BINDING_NAME = "__cardsiftOnMutation"

# ---------------------------------------------------------------------------
# JS snippets
# ---------------------------------------------------------------------------

_REGISTRY_JS = """
  const reg = window.__cardsift || (window.__cardsift = {
    token: Math.random().toString(36).slice(2, 10),
    ids: new WeakMap(),
    refs: new Map(),
    next: 1
  });
"""

_LIST_CARDS_JS = (
    """([cardSel, linkSel]) => {"""
    + _REGISTRY_JS
    + """
  for (const [id, ref] of reg.refs) {
    if (ref.deref() === undefined) reg.refs.delete(id);
  }
  const out = [];
  for (const el of document.querySelectorAll(cardSel)) {
    let id = reg.ids.get(el);
    if (id === undefined) {
      id = reg.token + '-' + reg.next++;
      reg.ids.set(el, id);
      reg.refs.set(id, new WeakRef(el));
    }
    const link = el.querySelector(linkSel);
    out.push({id: id, href: link && link.href ? link.href : null});
  }
  return out;
}"""
)

_HIDE_CARD_JS = """(id) => {
  const reg = window.__cardsift;
  const ref = reg && reg.refs.get(id);
  const el = ref && ref.deref();
  if (!el || !el.style) return false;
  el.style.setProperty('display', 'none', 'important');
  return true;
}"""

# Installs one observer per document; also fires once so a fresh document
# gets its initial scan.
_OBSERVER_JS = (
    """() => {
  if (window !== window.top || window.__cardsiftObserver) return false;
  const notify = () => {
    if (typeof window.%(binding)s === 'function') window.%(binding)s();
  };
  const start = () => {
    if (window.__cardsiftObserver || !document.body) return;
    window.__cardsiftObserver = new MutationObserver(notify);
    window.__cardsiftObserver.observe(document.body, {childList: true, subtree: true});
    notify();
  };
  if (document.body) start();
  else document.addEventListener('DOMContentLoaded', start, {once: true});
  return true;
}"""
    % {"binding": _BINDING_NAME}
)

_STORAGE_GET_JS = "(key) => window.sessionStorage.getItem(key)"
_STORAGE_SET_JS = "([key, value]) => { window.sessionStorage.setItem(key, value); }"


# ---------------------------------------------------------------------------
# Card host
# ---------------------------------------------------------------------------


class PageCardHost:
    """Expose a Playwright page's feed cards to the ScanController."""

    def __init__(self, page: Page, config: SiftConfig | None = None) -> None:
        self._page = page
        self._config = config or SiftConfig()
        self._observing = False

    @property
    def page(self) -> Page:
        return self._page

    @property
    def origin(self) -> str:
        return origin_of(self._page.url)

    async def list_cards(self) -> list[Card]:
        raw = await self._page.evaluate(
            _LIST_CARDS_JS,
            [self._config.card_selector, self._config.link_selector],
        )
        if not isinstance(raw, list):
            return []
        cards: list[Card] = []
        for item in raw:
            if not isinstance(item, dict) or not item.get("id"):
                continue
            href = item.get("href")
            cards.append(Card(card_id=str(item["id"]), href=href if isinstance(href, str) else None))
        return cards

    async def hide_card(self, card: Card) -> None:
        hidden = await self._page.evaluate(_HIDE_CARD_JS, card.card_id)
        if not hidden:
            logger.debug("Card %s no longer in the page", card.card_id)

    async def observe(self, callback: Callable[[], None]) -> None:
        """Call *callback* once per mutation batch, in this and every later document."""
        if self._observing:
            raise RuntimeError("PageCardHost is already observing")
        self._observing = True
        await self._page.expose_function(_BINDING_NAME, callback)
        await self._page.add_init_script(f"({_OBSERVER_JS})()")
        await self._page.evaluate(_OBSERVER_JS)
        logger.info("Mutation observer installed on %s", self._page.url)

    async def cookie_header(self, url: str) -> str:
        """``Cookie`` header value for *url* from the page's browser context."""
        cookies = await self._page.context.cookies(url)
        return "; ".join(f"{c['name']}={c['value']}" for c in cookies)


# ---------------------------------------------------------------------------
# Session store
# ---------------------------------------------------------------------------


class PageSessionStorage:
    """SessionStore over the page's ``window.sessionStorage``.

    Lives as long as the tab's session and survives navigation within
    the tab.  Failures (opaque origins, storage disabled, page closed)
    propagate; DecisionCache turns them into misses.
    """

    def __init__(self, page: Page) -> None:
        self._page = page

    async def get(self, key: str) -> str | None:
        value = await self._page.evaluate(_STORAGE_GET_JS, key)
        return value if isinstance(value, str) else None

    async def set(self, key: str, value: str) -> None:
        await self._page.evaluate(_STORAGE_SET_JS, [key, value])

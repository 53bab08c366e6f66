# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Detail page fetcher over httpx.

One GET per call with ``Accept: text/html`` and the browser's cookies
for the URL, so the detail page is rendered as the signed-in reader
would see it.  With a ``timeout`` the whole call (cookie lookup
included) runs under ``asyncio.wait_for``: when it fires the in-flight
request is cancelled and FetchTimeoutError is raised.  Every other
failure is a FetchError.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from types import TracebackType

import httpx

from .config import DEFAULT_USER_AGENT
from .errors import FetchError, FetchTimeoutError

logger = logging.getLogger(__name__)

CookieSource = Callable[[str], Awaitable[str]]


class HtmlFetcher:
    """GET detail pages as text.

    Use as an async context manager to close an owned client::

        async with HtmlFetcher() as fetcher:
            html = await fetcher.fetch_html(url, timeout=10.0)
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        cookie_source: CookieSource | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._owns_client = client is None
        # No httpx deadline; callers bound each request with asyncio.wait_for
        self._client = client or httpx.AsyncClient(follow_redirects=True, timeout=None)
        self._cookie_source = cookie_source
        self._user_agent = user_agent

    async def __aenter__(self) -> HtmlFetcher:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch_html(self, url: str, *, timeout: float | None = None) -> str:
        """Return the body of *url*; raise FetchError / FetchTimeoutError."""
        if timeout is None:
            return await self._get(url)
        try:
            return await asyncio.wait_for(self._get(url), timeout=timeout)
        except TimeoutError as e:
            raise FetchTimeoutError(f"Timed out after {timeout:g}s", url=url) from e

    async def _get(self, url: str) -> str:
        headers = {"Accept": "text/html", "User-Agent": self._user_agent}
        if self._cookie_source is not None:
            try:
                cookie = await self._cookie_source(url)
            except Exception as e:
                raise FetchError(f"Cookie lookup failed: {e}", url=url) from e
            if cookie:
                headers["Cookie"] = cookie

        try:
            resp = await self._client.get(url, headers=headers, follow_redirects=True)
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(f"{type(e).__name__}: {e}", url=url) from e
        except httpx.HTTPError as e:
            raise FetchError(f"{type(e).__name__}: {e}", url=url) from e

        if not resp.is_success:
            raise FetchError(f"HTTP {resp.status_code}", url=url, status=resp.status_code)
        logger.debug("Fetched %s (%d bytes)", url, len(resp.content))
        return resp.text

# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Chromium tab for live feed sifting.

A session is one browser, one context and one page.  The page is the
"tab": its sessionStorage holds the decision cache and its context's
cookies go out with every detail fetch.  Pass ``storage_state`` (a file
written by Playwright's ``context.storage_state(path=...)``) to sift a
feed as a signed-in reader.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from .config import DEFAULT_USER_AGENT
from .errors import BrowserError

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "ja-JP"

_INSTALL_TIMEOUT = 300.0  # seconds
_install_tried = False


@dataclass
class BrowserConfig:
    """How the feed tab is launched."""

    headless: bool = True
    locale: str = DEFAULT_LOCALE
    viewport: tuple[int, int] = (1280, 800)
    user_agent: str = DEFAULT_USER_AGENT
    navigation_timeout: float = 30.0  # seconds
    wait_until: str = "domcontentloaded"
    storage_state: Path | None = None


def chromium_launch_args(config: BrowserConfig) -> list[str]:
    """Chromium flags for an unattended feed tab."""
    args = [
        f"--lang={config.locale}",
        "--disable-blink-features=AutomationControlled",
        "--disable-dev-shm-usage",
        "--disable-notifications",
        "--mute-audio",
        "--no-first-run",
    ]
    if config.headless:
        args.append("--hide-scrollbars")
    return args


async def _install_chromium() -> bool:
    """``playwright install chromium``, attempted at most once per process."""
    global _install_tried  # noqa: PLW0603
    if _install_tried:
        return False
    _install_tried = True

    logger.info("Installing Chromium (first launch)")
    try:
        proc = await asyncio.create_subprocess_exec(
            sys.executable, "-m", "playwright", "install", "chromium",
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        _, err = await asyncio.wait_for(proc.communicate(), timeout=_INSTALL_TIMEOUT)
    except TimeoutError:
        logger.warning("Chromium install gave up after %gs", _INSTALL_TIMEOUT)
        return False
    except OSError:
        logger.warning("Could not run the Playwright installer", exc_info=True)
        return False

    if proc.returncode:
        logger.warning("Chromium install exited with %d: %s", proc.returncode, err.decode(errors="replace")[-500:])
        return False
    return True


def _missing_executable(exc: Exception) -> bool:
    return "executable doesn't exist" in str(exc).lower()


class BrowserSession:
    """The feed tab.

    Use as an async context manager::

        async with BrowserSession(BrowserConfig(headless=False)) as session:
            await session.navigate("https://qiita.com/")
            sifter = FeedSifter.for_page(session.page)
    """

    def __init__(self, config: BrowserConfig | None = None) -> None:
        self.config = config or BrowserConfig()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("BrowserSession not started; use 'async with' or start()")
        return self._page

    @property
    def context(self) -> BrowserContext:
        if self._context is None:
            raise RuntimeError("BrowserSession not started; use 'async with' or start()")
        return self._context

    async def _launch(self) -> Browser:
        chromium = self._playwright.chromium
        options = {"headless": self.config.headless, "args": chromium_launch_args(self.config)}
        try:
            return await chromium.launch(**options)
        except Exception as exc:
            if not _missing_executable(exc):
                raise BrowserError(f"Chromium launch failed: {exc}") from exc
            if not await _install_chromium():
                raise BrowserError("Chromium is missing; run 'playwright install chromium'") from exc
        try:
            return await chromium.launch(**options)
        except Exception as exc:
            raise BrowserError(f"Chromium launch failed after install: {exc}") from exc

    async def start(self) -> None:
        """Launch Chromium and open the tab."""
        state = self.config.storage_state
        if state is not None and not Path(state).is_file():
            raise BrowserError(f"storage state file not found: {state}")

        self._playwright = await async_playwright().start()
        self._browser = await self._launch()
        width, height = self.config.viewport
        self._context = await self._browser.new_context(
            viewport={"width": width, "height": height},
            locale=self.config.locale,
            user_agent=self.config.user_agent,
            storage_state=str(state) if state is not None else None,
            accept_downloads=False,
        )
        self._context.set_default_timeout(self.config.navigation_timeout * 1000)
        self._page = await self._context.new_page()
        logger.info(
            "Feed tab ready (headless=%s, signed_in=%s)",
            self.config.headless,
            state is not None,
        )

    async def navigate(self, url: str) -> int | None:
        """Load *url* in the tab. Returns the HTTP status when there is a response."""
        try:
            response = await self.page.goto(
                url,
                wait_until=self.config.wait_until,
                timeout=self.config.navigation_timeout * 1000,
            )
        except Exception as exc:
            raise BrowserError(f"Navigation to {url} failed: {exc}") from exc
        if response is None:
            return None
        logger.debug("Loaded %s (HTTP %d)", url, response.status)
        return response.status

    async def stop(self) -> None:
        """Tear down whatever ``start()`` got to."""
        context, browser, playwright = self._context, self._browser, self._playwright
        self._page = self._context = self._browser = self._playwright = None
        for resource in (context, browser):
            if resource is not None:
                try:
                    await resource.close()
                except Exception:
                    logger.debug("Ignoring close failure", exc_info=True)
        if playwright is not None:
            await playwright.stop()
            logger.info("Feed tab closed")

    async def __aenter__(self) -> BrowserSession:
        try:
            await self.start()
        except BaseException:
            await self.stop()
            raise
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()

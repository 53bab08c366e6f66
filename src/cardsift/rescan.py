# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Re-run the scan whenever the page's content subtree changes.

One rescan per mutation batch, no debouncing: the controller's
processed-set makes a redundant scan a linear walk over the current
cards with no network traffic.  ``notify()`` is synchronous so it can
be handed to a page binding or any other callback-style notifier.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class RescanTrigger:
    """Schedule ``scan()`` as a fire-and-forget task per notification."""

    def __init__(self, scan: Callable[[], Awaitable[object]]) -> None:
        self._scan = scan
        self._tasks: set[asyncio.Task] = set()
        self._notifications = 0
        self._closed = False

    async def attach(self, host) -> None:
        """Subscribe to *host*'s change notifications."""
        await host.observe(self.notify)

    def notify(self, *_args) -> None:
        """Handle one batch of structural changes."""
        if self._closed:
            return
        self._notifications += 1
        task = asyncio.get_running_loop().create_task(self._run_scan())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_scan(self) -> None:
        try:
            await self._scan()
        except Exception:
            logger.warning("Rescan failed", exc_info=True)

    async def drain(self) -> None:
        """Wait for every scheduled rescan, including ones scheduled meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        self._closed = True
        pending = list(self._tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    @property
    def notifications(self) -> int:
        return self._notifications

    @property
    def pending(self) -> int:
        return len(self._tasks)

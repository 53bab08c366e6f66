# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""FIFO job queue with a fixed cap on concurrently running jobs.

Standalone leaf module, stdlib only (asyncio, collections, logging).

Jobs are zero-argument coroutine functions.  ``submit()`` appends to the
backlog and dispatches; a job's ``done_callback`` frees its slot and
dispatches again, which is the only other place new jobs start.  Jobs
start in submission order and finish in any order.  The queue never
retries or reorders, and it does not look at job results beyond logging
an exception a job failed to handle itself.

A job that never finishes holds its slot forever, so every job must
bound its own runtime.

NOTE: single event loop only.  Not thread-safe.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[None]]

DEFAULT_MAX_CONCURRENT = 3


@dataclass
class QueueStats:
    """Counters for queue behaviour."""

    submitted: int = 0
    started: int = 0
    completed: int = 0  # finished, failed ones included
    failed: int = 0  # raised out of the job
    cancelled: int = 0
    dropped: int = 0  # still in the backlog at aclose()
    peak_active: int = 0


class FetchQueue:
    """Admit jobs in FIFO order while fewer than ``max_concurrent`` run."""

    def __init__(self, max_concurrent: int = DEFAULT_MAX_CONCURRENT) -> None:
        if max_concurrent <= 0:
            raise ValueError(f"max_concurrent must be > 0, got {max_concurrent}")
        self._max_concurrent = max_concurrent
        self._backlog: deque[Job] = deque()
        self._running: set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()
        self._closed = False
        self._stats = QueueStats()

    # -- Submission / dispatch --

    def submit(self, job: Job) -> None:
        """Append *job* to the backlog and start it if a slot is free."""
        if self._closed:
            raise RuntimeError("FetchQueue is closed")
        self._backlog.append(job)
        self._stats.submitted += 1
        self._idle.clear()
        self._pump()

    def _pump(self) -> None:
        loop = asyncio.get_running_loop()
        while len(self._running) < self._max_concurrent and self._backlog:
            job = self._backlog.popleft()
            task = loop.create_task(self._run(job))
            self._running.add(task)
            self._stats.started += 1
            self._stats.peak_active = max(self._stats.peak_active, len(self._running))
            task.add_done_callback(self._on_done)

    async def _run(self, job: Job) -> None:
        try:
            await job()
        except Exception:
            self._stats.failed += 1
            logger.warning("Queued job raised", exc_info=True)

    def _on_done(self, task: asyncio.Task) -> None:
        self._running.discard(task)
        if task.cancelled():
            self._stats.cancelled += 1
        else:
            self._stats.completed += 1
        if not self._closed:
            self._pump()
        if not self._running and not self._backlog:
            self._idle.set()

    # -- Lifecycle --

    async def join(self) -> None:
        """Wait until the backlog is empty and no job is running."""
        await self._idle.wait()

    async def aclose(self) -> None:
        """Drop the backlog and cancel running jobs."""
        self._closed = True
        self._stats.dropped += len(self._backlog)
        self._backlog.clear()
        running = list(self._running)
        for task in running:
            task.cancel()
        if running:
            await asyncio.gather(*running, return_exceptions=True)
        self._idle.set()

    # -- Introspection --

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def active(self) -> int:
        return len(self._running)

    @property
    def pending(self) -> int:
        return len(self._backlog)

    @property
    def stats(self) -> QueueStats:
        return self._stats

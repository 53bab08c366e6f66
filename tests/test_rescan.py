# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for cardsift.rescan: one scan per mutation batch, errors contained."""

from __future__ import annotations

import asyncio

import pytest

from cardsift.rescan import RescanTrigger
from tests._fakes import FakeHost


class _CountingScan:
    def __init__(self, *, fail: bool = False, delay: float = 0.0) -> None:
        self.calls = 0
        self.fail = fail
        self.delay = delay

    async def __call__(self) -> int:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("scan blew up")
        return 0


@pytest.mark.asyncio
async def test_each_notification_schedules_one_scan():
    scan = _CountingScan()
    trigger = RescanTrigger(scan)
    for _ in range(3):
        trigger.notify()
    assert trigger.pending == 3
    await trigger.drain()
    assert scan.calls == 3
    assert trigger.notifications == 3
    assert trigger.pending == 0


@pytest.mark.asyncio
async def test_attach_subscribes_to_host():
    scan = _CountingScan()
    host = FakeHost()
    trigger = RescanTrigger(scan)
    await trigger.attach(host)
    host.render()
    host.render()
    await trigger.drain()
    assert scan.calls == 2


@pytest.mark.asyncio
async def test_binding_arguments_ignored():
    scan = _CountingScan()
    trigger = RescanTrigger(scan)
    trigger.notify({"frame": None}, "extra")
    await trigger.drain()
    assert scan.calls == 1


@pytest.mark.asyncio
async def test_failed_scan_does_not_stop_later_rescans():
    scan = _CountingScan(fail=True)
    trigger = RescanTrigger(scan)
    trigger.notify()
    await trigger.drain()
    trigger.notify()
    await trigger.drain()
    assert scan.calls == 2


@pytest.mark.asyncio
async def test_aclose_cancels_pending_and_ignores_later_notifications():
    scan = _CountingScan(delay=10.0)
    trigger = RescanTrigger(scan)
    trigger.notify()
    await asyncio.sleep(0)
    await trigger.aclose()
    assert trigger.pending == 0
    trigger.notify()
    assert trigger.pending == 0
    assert trigger.notifications == 1

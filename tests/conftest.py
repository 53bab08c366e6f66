# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import cardsift  # noqa: F401
except ImportError:
    raise ImportError("cardsift is not installed. Run: pip install -e '.[dev]'") from None

import pytest
import structlog

from tests._fakes import FakeFetcher, FakeHost


@pytest.fixture(autouse=True)
def _clear_contextvars():
    """Fetch jobs bind detail_url; keep it from leaking between tests."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()

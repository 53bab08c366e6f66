# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""CardSift exception hierarchy.

All CardSift-specific errors inherit from CardSiftError. None of them
escape the sifting pipeline itself: the fetch job, cache access and
rescan task catch them and fall back to leaving content visible.
"""

from __future__ import annotations


class CardSiftError(Exception):
    """Base exception for all CardSift errors."""


class FetchError(CardSiftError):
    """Detail page fetch failed (transport error or non-success status)."""

    def __init__(self, message: str, *, url: str = "", status: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class FetchTimeoutError(FetchError):
    """Detail page fetch was cancelled by its timeout."""


class BrowserError(CardSiftError):
    """Browser session launch or navigation failure."""

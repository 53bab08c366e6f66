# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""CardSift: hide feed cards whose detail page carries no visual content.

Each card in a rendered feed links to a detail page. CardSift fetches that
page once per session, decides whether its body contains an image, and
hides the card when it does not:
- urls: link normalization and detail-page recognition
- decision_cache: session-scoped url -> decision store
- content_classifier: fail-open image detection over raw HTML
- fetch_queue: FIFO queue with a fixed concurrency cap
- controller / rescan: idempotent scan loop re-run on page mutations
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Card:
    """Snapshot of one rendered feed card."""

    card_id: str  # stable in-page handle, "<document token>-<n>"
    href: str | None = None  # absolute href of the detail link, if any

    def __str__(self) -> str:
        return f"[{self.card_id}] {self.href or '(no link)'}"

# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Decide whether a detail page's body carries visual content.

Pure function over HTML text with no network or storage access.  Only images
inside the body container count; header avatars, sidebars and ads are
ignored.  Anything ambiguous is fail-open (True): an empty document,
unparsable markup, or a page without the container at all.
"""

from __future__ import annotations

import logging

import lxml.html
from lxml import etree

logger = logging.getLogger(__name__)

DEFAULT_CONTAINER_CLASS = "it-MdContent"

# Class-token match, equivalent to the CSS selector ".<class>"
_CONTAINER_XPATH = etree.XPath(
    "//*[contains(concat(' ', normalize-space(@class), ' '), concat(' ', $cls, ' '))]",
)
_IMAGE_XPATH = etree.XPath(".//img")


def _parse(html: str) -> lxml.html.HtmlElement | None:
    """Parse with a recovering parser. None when nothing usable comes out."""
    if not html or not html.strip():
        return None
    try:
        parser = lxml.html.HTMLParser(recover=True, encoding="utf-8")
        return lxml.html.document_fromstring(html.encode("utf-8", errors="replace"), parser=parser)
    except (etree.LxmlError, ValueError):
        logger.debug("HTML parse failed, treating container as absent", exc_info=True)
        return None


def find_content_container(html: str, container_class: str = DEFAULT_CONTAINER_CLASS):
    """Return the first element carrying *container_class*, or None."""
    doc = _parse(html)
    if doc is None:
        return None
    matches = _CONTAINER_XPATH(doc, cls=container_class)
    return matches[0] if matches else None


def count_images(container) -> int:
    """Number of ``<img>`` elements anywhere under *container*."""
    return len(_IMAGE_XPATH(container))


def has_visual_content(html: str, container_class: str = DEFAULT_CONTAINER_CLASS) -> bool:
    """True iff the body container holds an ``<img>``, or the container is missing."""
    container = find_content_container(html, container_class)
    return container is None or count_images(container) > 0

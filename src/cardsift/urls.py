# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Detail link normalization and classification.

Pure functions, no I/O. The normalized form is the sole identity used
for caching decisions, so two hrefs pointing at the same detail page
(relative vs absolute, with #comments, with ?utm_source=..., with
``..`` segments, Unicode vs punycode host) must collapse to one key.
"""

from __future__ import annotations

import re
from urllib.parse import SplitResult, quote, urljoin, urlsplit, urlunsplit

# /<owner>/items/<id> and nothing deeper
_DETAIL_PATH_RE = re.compile(r"^/[^/]+/items/[^/]+$")

_DEFAULT_PORTS = {"http": 80, "https": 443}

# Characters left as-is in paths; everything else is percent-encoded (UTF-8)
_PATH_SAFE = "/:@!$&'()*+,;=[]%"


def _split(raw: str, origin: str) -> SplitResult | None:
    try:
        parts = urlsplit(urljoin(origin, raw.strip()))
        parts.port  # noqa: B018  raises ValueError for out-of-range or non-numeric ports
    except ValueError:
        return None
    if not parts.scheme or not parts.hostname:
        return None
    return parts


def _host_port(parts: SplitResult) -> str | None:
    """``host[:port]`` with an ASCII (IDNA) host and no default port."""
    host = parts.hostname
    if ":" in host:
        host = f"[{host}]"
    elif not host.isascii():
        try:
            host = host.encode("idna").decode("ascii")
        except UnicodeError:
            return None
    scheme = parts.scheme.lower()
    if parts.port is not None and _DEFAULT_PORTS.get(scheme) != parts.port:
        return f"{host}:{parts.port}"
    return host


def _remove_dot_segments(path: str) -> str:
    segments = path.split("/")
    out: list[str] = []
    last = len(segments) - 1
    for i, segment in enumerate(segments):
        if segment in (".", ".."):
            if segment == ".." and len(out) > 1:
                out.pop()
            if i == last:
                out.append("")
            continue
        out.append(segment)
    return "/".join(out) or "/"


def normalize_url(raw: str, origin: str = "") -> str | None:
    """Resolve *raw* against *origin* and strip query + fragment.

    Lowercases scheme and host, IDNA-encodes non-ASCII hosts, drops the
    default port, removes ``.``/``..`` path segments, percent-encodes
    spaces and non-ASCII in the path and keeps path case.  Returns None
    when the result is not a hierarchical URL with a host (``mailto:``,
    ``javascript:``, malformed ports, brackets or host names).
    """
    if not isinstance(raw, str):
        return None
    parts = _split(raw, origin)
    if parts is None:
        return None
    host_port = _host_port(parts)
    if host_port is None:
        return None

    userinfo, _, _ = parts.netloc.rpartition("@")
    netloc = f"{userinfo}@{host_port}" if userinfo else host_port
    path = quote(_remove_dot_segments(parts.path or "/"), safe=_PATH_SAFE, errors="replace")
    return urlunsplit((parts.scheme.lower(), netloc, path, "", ""))


def is_detail_page(url: str) -> bool:
    """True when *url*'s path has the ``/<owner>/items/<id>`` shape."""
    try:
        path = urlsplit(url).path
    except (TypeError, ValueError):
        return False
    return bool(_DETAIL_PATH_RE.match(path))


def origin_of(url: str) -> str:
    """Return ``scheme://host[:port]`` of *url* (never credentials), or "" when it has none."""
    parts = _split(url, "") if isinstance(url, str) else None
    host_port = _host_port(parts) if parts is not None else None
    if host_port is None:
        return ""
    return f"{parts.scheme.lower()}://{host_port}"

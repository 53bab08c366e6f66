# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Pipeline configuration with ``CARDSIFT_*`` environment overrides."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from contextlib import suppress
from dataclasses import dataclass

from .content_classifier import DEFAULT_CONTAINER_CLASS
from .decision_cache import DEFAULT_CACHE_PREFIX

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


@dataclass(frozen=True, slots=True)
class SiftConfig:
    """Immutable configuration for one sifting pipeline."""

    card_selector: str = "article"
    link_selector: str = "a[href*='/items/']"
    content_container_class: str = DEFAULT_CONTAINER_CLASS
    max_concurrent_fetches: int = 3
    fetch_timeout: float = 10.0  # seconds, per detail page
    cache_prefix: str = DEFAULT_CACHE_PREFIX
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self) -> None:
        if self.max_concurrent_fetches <= 0:
            raise ValueError(f"max_concurrent_fetches must be > 0, got {self.max_concurrent_fetches}")
        if self.fetch_timeout <= 0:
            raise ValueError(f"fetch_timeout must be > 0, got {self.fetch_timeout}")
        if not self.card_selector.strip():
            raise ValueError("card_selector must not be empty")
        if not self.link_selector.strip():
            raise ValueError("link_selector must not be empty")
        if not self.content_container_class.strip():
            raise ValueError("content_container_class must not be empty")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> SiftConfig:
        """Build a config from defaults, ``CARDSIFT_*`` variables, then *overrides*.

        Unparsable numeric values are ignored and the default is kept.
        """
        env = os.environ if environ is None else environ
        values: dict = {}

        for field_name, var in (
            ("card_selector", "CARDSIFT_CARD_SELECTOR"),
            ("link_selector", "CARDSIFT_LINK_SELECTOR"),
            ("content_container_class", "CARDSIFT_CONTAINER_CLASS"),
            ("cache_prefix", "CARDSIFT_CACHE_PREFIX"),
            ("user_agent", "CARDSIFT_USER_AGENT"),
        ):
            value = env.get(var, "").strip()
            if value:
                values[field_name] = value

        env_concurrent = env.get("CARDSIFT_MAX_CONCURRENT", "").strip()
        if env_concurrent:
            with suppress(ValueError):
                values["max_concurrent_fetches"] = int(env_concurrent)

        env_timeout = env.get("CARDSIFT_FETCH_TIMEOUT", "").strip()
        if env_timeout:
            with suppress(ValueError):
                values["fetch_timeout"] = float(env_timeout)

        values.update(overrides)
        return cls(**values)

    def replace(self, **changes) -> SiftConfig:
        return dataclasses.replace(self, **changes)

# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""CardSift CLI: watch, classify commands.

Usage:
    python -m cardsift.cli watch URL [--headed] [--storage-state FILE] [--duration SECONDS]
    python -m cardsift.cli classify SOURCE [--container-class CLASS] [--timeout SECONDS]

Selectors, concurrency and timeouts also read ``CARDSIFT_*`` environment
variables (see ``SiftConfig.from_env``).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from .config import SiftConfig
from .errors import CardSiftError


def _print_summary(stats) -> None:
    scan = stats.scan
    print(
        f"cards={stats.processed_cards} hidden={scan.hidden} "
        f"fetched={scan.fetches_queued} failed={scan.fetches_failed} "
        f"cache_hits={stats.cache.hits} rescans={stats.rescans}",
        file=sys.stderr,
    )


async def _watch(
    url: str,
    *,
    headless: bool,
    duration: float | None,
    config: SiftConfig,
    storage_state: Path | None = None,
):
    from .browser_session import BrowserConfig, BrowserSession
    from .sifter import FeedSifter

    browser_config = BrowserConfig(headless=headless, user_agent=config.user_agent, storage_state=storage_state)
    async with BrowserSession(browser_config) as session:
        await session.navigate(url)
        sifter = FeedSifter.for_page(session.page, config)
        try:
            await sifter.start()
            if duration is None:
                await asyncio.Event().wait()  # until Ctrl-C
            else:
                await asyncio.sleep(duration)
        finally:
            stats = sifter.stats
            await sifter.aclose()
            _print_summary(stats)
    return stats


def cmd_watch(args: argparse.Namespace) -> None:
    """Open a feed in Chromium and hide image-less cards as they render."""
    config = SiftConfig.from_env()
    if args.duration is not None and args.duration <= 0:
        print("Error: --duration must be > 0.", file=sys.stderr)
        sys.exit(2)
    stats = asyncio.run(
        _watch(
            args.url,
            headless=not args.headed,
            duration=args.duration,
            config=config,
            storage_state=args.storage_state,
        )
    )
    if args.stats_json:
        print(json.dumps(stats.as_dict(), indent=2))


async def _fetch(url: str, *, timeout: float, user_agent: str) -> str:
    from .fetcher import HtmlFetcher

    async with HtmlFetcher(user_agent=user_agent) as fetcher:
        return await fetcher.fetch_html(url, timeout=timeout)


def cmd_classify(args: argparse.Namespace) -> None:
    """Classify one detail page (URL or local file)."""
    from .content_classifier import count_images, find_content_container

    overrides = {}
    if args.container_class:
        overrides["content_container_class"] = args.container_class
    if args.timeout is not None:
        overrides["fetch_timeout"] = args.timeout
    config = SiftConfig.from_env(**overrides)

    if args.source.startswith(("http://", "https://")):
        html = asyncio.run(_fetch(args.source, timeout=config.fetch_timeout, user_agent=config.user_agent))
    else:
        path = Path(args.source)
        if not path.is_file():
            print(f"Error: no such file: {path}", file=sys.stderr)
            sys.exit(1)
        html = path.read_text(encoding="utf-8", errors="replace")

    container = find_content_container(html, config.content_container_class)
    if container is None:
        print("has-visual-content")
        print(f"container .{config.content_container_class}: absent (fail-open)")
        return
    images = count_images(container)
    print("has-visual-content" if images else "no-visual-content")
    print(f"container .{config.content_container_class}: {images} image(s)")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Hide feed cards whose detail page has no images",
        prog="cardsift",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines on stderr")
    subparsers = parser.add_subparsers(dest="command", required=True)

    _watch_epilog = """\
examples:
  %(prog)s https://qiita.com/                      Headless, until Ctrl-C
  %(prog)s https://qiita.com/ --headed             Visible browser window
  %(prog)s https://qiita.com/ --storage-state state.json  Signed-in session
  %(prog)s https://qiita.com/ --duration 60 --stats-json
"""
    p_watch = subparsers.add_parser(
        "watch",
        help="Open a feed and hide image-less cards live",
        epilog=_watch_epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p_watch.add_argument("url", metavar="URL", help="Feed page to open")
    p_watch.add_argument("--headed", action="store_true", help="Show the browser window")
    p_watch.add_argument(
        "--storage-state",
        type=Path,
        metavar="FILE",
        help="Playwright storage state (cookies) to browse as a signed-in reader",
    )
    p_watch.add_argument("--duration", type=float, metavar="SECONDS", help="Stop after SECONDS (default: Ctrl-C)")
    p_watch.add_argument("--stats-json", action="store_true", help="Print final counters as JSON on stdout")

    p_classify = subparsers.add_parser("classify", help="Classify one detail page")
    p_classify.add_argument("source", metavar="SOURCE", help="http(s) URL or local HTML file")
    p_classify.add_argument("--container-class", type=str, metavar="CLASS", help="Body container class")
    p_classify.add_argument("--timeout", type=float, metavar="SECONDS", help="Fetch timeout")

    commands = {"watch": cmd_watch, "classify": cmd_classify}

    args = parser.parse_args(argv)

    from .logging_config import configure

    configure(json_output=args.json_logs, level="DEBUG" if args.verbose else "INFO")

    try:
        commands[args.command](args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
    except SystemExit:
        raise
    except Exception as e:
        kind = "" if isinstance(e, CardSiftError) else f"{type(e).__name__}: "
        print(f"Error: {kind}{e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc(file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

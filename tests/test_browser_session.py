"""Tests for browser session configuration and lifecycle.

Playwright is mocked throughout; no running browser is needed.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from cardsift.browser_session import (
    DEFAULT_LOCALE,
    BrowserConfig,
    BrowserSession,
    chromium_launch_args,
)
from cardsift.config import DEFAULT_USER_AGENT
from cardsift.errors import BrowserError

# ── BrowserConfig Defaults ─────────────────────────────────────────


class TestBrowserConfig:
    def test_defaults(self):
        cfg = BrowserConfig()
        assert cfg.headless is True
        assert cfg.locale == DEFAULT_LOCALE == "ja-JP"
        assert cfg.viewport == (1280, 800)
        assert cfg.navigation_timeout == 30.0
        assert cfg.storage_state is None
        assert cfg.wait_until == "domcontentloaded"
        assert cfg.user_agent == DEFAULT_USER_AGENT

    def test_user_agent_looks_like_chrome(self):
        assert "Chrome" in DEFAULT_USER_AGENT
        assert "Mozilla" in DEFAULT_USER_AGENT


class TestLaunchArgs:
    def test_locale_flag_follows_config(self):
        args = chromium_launch_args(BrowserConfig(locale="en-US"))
        assert "--lang=en-US" in args

    def test_automation_flag_disabled(self):
        assert "--disable-blink-features=AutomationControlled" in chromium_launch_args(BrowserConfig())

    def test_scrollbars_hidden_only_when_headless(self):
        assert "--hide-scrollbars" in chromium_launch_args(BrowserConfig(headless=True))
        assert "--hide-scrollbars" not in chromium_launch_args(BrowserConfig(headless=False))


# ── Property Guards ────────────────────────────────────────────────


class TestPropertyGuards:
    def test_page_raises_before_start(self):
        with pytest.raises(RuntimeError, match="not started"):
            _ = BrowserSession().page

    def test_context_raises_before_start(self):
        with pytest.raises(RuntimeError, match="not started"):
            _ = BrowserSession().context

    def test_default_config(self):
        assert isinstance(BrowserSession().config, BrowserConfig)


# ── Lifecycle (mocked Playwright) ──────────────────────────────────


def _mock_playwright(*, launch_side_effect=None):
    page = AsyncMock()
    context = AsyncMock()
    context.new_page = AsyncMock(return_value=page)
    context.set_default_timeout = MagicMock()

    browser = AsyncMock()
    browser.new_context = AsyncMock(return_value=context)

    pw = AsyncMock()
    pw.chromium.launch = AsyncMock(return_value=browser, side_effect=launch_side_effect)

    pw_cm = AsyncMock()
    pw_cm.start = AsyncMock(return_value=pw)
    return pw_cm, pw, browser, context, page


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_creates_page_with_config(self):
        pw_cm, pw, browser, context, page = _mock_playwright()
        cfg = BrowserConfig(headless=False, locale="en-US", navigation_timeout=5.0)
        with patch("cardsift.browser_session.async_playwright", return_value=pw_cm):
            async with BrowserSession(cfg) as session:
                assert session.page is page
                assert session.context is context

        launch_kwargs = pw.chromium.launch.call_args.kwargs
        assert launch_kwargs["headless"] is False
        assert "--lang=en-US" in launch_kwargs["args"]
        ctx_kwargs = browser.new_context.call_args.kwargs
        assert ctx_kwargs["locale"] == "en-US"
        assert ctx_kwargs["viewport"] == {"width": 1280, "height": 800}
        assert ctx_kwargs["storage_state"] is None
        context.set_default_timeout.assert_called_once_with(5000.0)

    @pytest.mark.asyncio
    async def test_exit_closes_everything(self):
        pw_cm, pw, browser, context, _ = _mock_playwright()
        with patch("cardsift.browser_session.async_playwright", return_value=pw_cm):
            session = BrowserSession()
            async with session:
                pass
        context.close.assert_awaited_once()
        browser.close.assert_awaited_once()
        pw.stop.assert_awaited_once()
        with pytest.raises(RuntimeError, match="not started"):
            _ = session.page

    @pytest.mark.asyncio
    async def test_close_failure_does_not_block_stop(self):
        pw_cm, pw, browser, context, _ = _mock_playwright()
        context.close.side_effect = RuntimeError("already gone")
        with patch("cardsift.browser_session.async_playwright", return_value=pw_cm):
            async with BrowserSession():
                pass
        browser.close.assert_awaited_once()
        pw.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_launch_failure_is_browser_error(self):
        pw_cm, pw, *_ = _mock_playwright(launch_side_effect=RuntimeError("sandbox crashed"))
        with patch("cardsift.browser_session.async_playwright", return_value=pw_cm):
            with pytest.raises(BrowserError, match="Chromium launch failed"):
                async with BrowserSession():
                    pass
        pw.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_executable_without_install_is_browser_error(self):
        pw_cm, *_ = _mock_playwright(launch_side_effect=RuntimeError("Executable doesn't exist at /ms-playwright"))
        with (
            patch("cardsift.browser_session.async_playwright", return_value=pw_cm),
            patch("cardsift.browser_session._install_chromium", AsyncMock(return_value=False)),
        ):
            with pytest.raises(BrowserError, match="playwright install chromium"):
                await BrowserSession().start()

    @pytest.mark.asyncio
    async def test_missing_executable_retries_after_install(self):
        pw_cm, pw, browser, *_ = _mock_playwright()
        pw.chromium.launch.side_effect = [RuntimeError("Executable doesn't exist"), browser]
        with (
            patch("cardsift.browser_session.async_playwright", return_value=pw_cm),
            patch("cardsift.browser_session._install_chromium", AsyncMock(return_value=True)),
        ):
            session = BrowserSession()
            await session.start()
        assert pw.chromium.launch.await_count == 2
        assert session.page is not None


class TestNavigate:
    @pytest.mark.asyncio
    async def test_returns_status(self):
        pw_cm, _, _, _, page = _mock_playwright()
        page.goto = AsyncMock(return_value=MagicMock(status=200))
        with patch("cardsift.browser_session.async_playwright", return_value=pw_cm):
            async with BrowserSession() as session:
                assert await session.navigate("https://qiita.com/") == 200
        page.goto.assert_awaited_once_with("https://qiita.com/", wait_until="domcontentloaded", timeout=30000.0)

    @pytest.mark.asyncio
    async def test_no_response_is_none(self):
        pw_cm, _, _, _, page = _mock_playwright()
        page.goto = AsyncMock(return_value=None)
        with patch("cardsift.browser_session.async_playwright", return_value=pw_cm):
            async with BrowserSession() as session:
                assert await session.navigate("https://qiita.com/#top") is None

    @pytest.mark.asyncio
    async def test_failure_is_browser_error(self):
        pw_cm, _, _, _, page = _mock_playwright()
        page.goto = AsyncMock(side_effect=TimeoutError("Timeout 30000ms exceeded"))
        with patch("cardsift.browser_session.async_playwright", return_value=pw_cm):
            async with BrowserSession() as session:
                with pytest.raises(BrowserError, match="Navigation to https://qiita.com/ failed"):
                    await session.navigate("https://qiita.com/")


class TestStorageState:
    @pytest.mark.asyncio
    async def test_missing_file_fails_before_launch(self, tmp_path):
        pw_cm, *_ = _mock_playwright()
        cfg = BrowserConfig(storage_state=tmp_path / "state.json")
        with patch("cardsift.browser_session.async_playwright", return_value=pw_cm):
            with pytest.raises(BrowserError, match="storage state file not found"):
                await BrowserSession(cfg).start()
        pw_cm.start.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_file_is_loaded_into_context(self, tmp_path):
        state = tmp_path / "state.json"
        state.write_text('{"cookies": [], "origins": []}', encoding="utf-8")
        pw_cm, _, browser, *_ = _mock_playwright()
        with patch("cardsift.browser_session.async_playwright", return_value=pw_cm):
            async with BrowserSession(BrowserConfig(storage_state=state)):
                pass
        assert browser.new_context.call_args.kwargs["storage_state"] == str(state)

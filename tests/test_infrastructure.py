"""
Unit tests for the script surface and narrators.

The Playwright page is replaced by an AsyncMock and the pyttsx3 engine by
a MagicMock; no browser is launched and nothing is spoken.
"""

import asyncio
import threading

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from webtasks.core.exceptions import ExecutionFailure
from webtasks.infrastructure.speech import Pyttsx3Narrator, SilentNarrator
from webtasks.infrastructure.surface import PlaywrightSurface, normalize_target_url


# ============================================================================
# TEST: URL Normalization (surface.py)
# ============================================================================

class TestNormalizeTargetUrl:
    """Test user-entered navigation targets."""

    @pytest.mark.parametrize("raw,expected", [
        ("example.com", "https://example.com"),
        ("  https://x.test/a ", "https://x.test/a"),
        ("http://localhost:3000", "http://localhost:3000"),
        ("about:blank", "about:blank"),
    ])
    def test_accepted(self, raw, expected):
        assert normalize_target_url(raw) == expected

    @pytest.mark.parametrize("raw", ["", "   ", "javascript:alert(1)", "JavaScript:void(0)", "data:text/html,x", "file:///etc/passwd"])
    def test_refused(self, raw):
        assert normalize_target_url(raw) is None


# ============================================================================
# TEST: Playwright Surface (surface.py)
# ============================================================================

@pytest.fixture
def surface(mock_settings):
    surface = PlaywrightSurface(mock_settings)
    surface.page = AsyncMock()
    return surface


class TestPlaywrightSurface:
    """Test evaluation and navigation against a mocked page."""

    @pytest.mark.asyncio
    async def test_string_result_passed_through(self, surface):
        surface.page.evaluate.return_value = "clicked"
        assert await surface.evaluate_script("1") == "clicked"

    @pytest.mark.asyncio
    async def test_non_string_result_serialized(self, surface):
        surface.page.evaluate.return_value = {"ok": True}
        assert await surface.evaluate_script("1") == '{"ok": true}'

    @pytest.mark.asyncio
    async def test_evaluation_error(self, surface):
        surface.page.evaluate.side_effect = PlaywrightError("SyntaxError: Unexpected token")

        with pytest.raises(ExecutionFailure) as exc_info:
            await surface.evaluate_script("document.querySelector('[')")

        assert "SyntaxError" in exc_info.value.message
        assert exc_info.value.context["script"] == "document.querySelector('[')"

    @pytest.mark.asyncio
    async def test_evaluate_without_page(self, mock_settings):
        with pytest.raises(ExecutionFailure):
            await PlaywrightSurface(mock_settings).evaluate_script("1")

    @pytest.mark.asyncio
    async def test_load_url_normalizes(self, surface):
        result = await surface.load_url("x.test/shop")

        assert result.success
        surface.page.goto.assert_awaited_once_with("https://x.test/shop", wait_until="domcontentloaded")

    @pytest.mark.asyncio
    async def test_load_url_refuses_blocked_scheme(self, surface):
        result = await surface.load_url("javascript:alert(1)")

        assert not result.success
        assert result.error == "InvalidURL"
        surface.page.goto.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_load_url_retries_timeout(self, surface):
        surface.page.goto.side_effect = [PlaywrightTimeoutError("slow"), None]

        result = await surface.load_url("https://x.test")

        assert result.success
        assert surface.page.goto.await_count == 2

    @pytest.mark.asyncio
    async def test_load_url_other_error_not_retried(self, surface):
        surface.page.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")

        result = await surface.load_url("https://nowhere.test")

        assert not result.success
        assert surface.page.goto.await_count == 1


# ============================================================================
# TEST: Narrators (speech.py)
# ============================================================================

@pytest.fixture
def engine():
    """pyttsx3 engine double whose runAndWait blocks until stop()."""
    engine = MagicMock()
    stopped = threading.Event()
    engine.runAndWait.side_effect = lambda: stopped.wait(timeout=5)
    engine.stop.side_effect = stopped.set
    with patch("webtasks.infrastructure.speech.pyttsx3.init", return_value=engine) as init:
        engine.init = init
        yield engine


class TestNarrators:
    """Test completion signals of the bundled narrators."""

    @pytest.mark.asyncio
    async def test_pyttsx3_speaks_with_rate(self, engine):
        narrator = Pyttsx3Narrator(words_per_minute=180)
        engine.runAndWait.side_effect = None

        await asyncio.wait_for(narrator.speak("  Two items in the cart. "), timeout=2)

        engine.init.assert_called_once_with()
        engine.setProperty.assert_called_once_with("rate", 180)
        engine.say.assert_called_once_with("Two items in the cart.")
        engine.runAndWait.assert_called_once_with()
        narrator.close()

    @pytest.mark.asyncio
    async def test_pyttsx3_engine_reused(self, engine):
        narrator = Pyttsx3Narrator()
        engine.runAndWait.side_effect = None

        await narrator.speak("one")
        await narrator.speak("two")

        engine.init.assert_called_once_with()
        engine.setProperty.assert_not_called()
        assert [c.args[0] for c in engine.say.call_args_list] == ["one", "two"]
        narrator.close()

    @pytest.mark.asyncio
    async def test_pyttsx3_stop_ends_narration(self, engine):
        narrator = Pyttsx3Narrator()
        task = asyncio.create_task(narrator.speak("a long answer"))
        while not engine.runAndWait.called:
            await asyncio.sleep(0.01)

        await narrator.stop()

        await asyncio.wait_for(task, timeout=2)
        engine.stop.assert_called()
        narrator.close()

    @pytest.mark.asyncio
    async def test_pyttsx3_blank_text_not_spoken(self, engine):
        narrator = Pyttsx3Narrator()

        await narrator.speak("   ")

        engine.init.assert_not_called()
        narrator.close()

    @pytest.mark.asyncio
    async def test_pyttsx3_engine_failure_propagates(self):
        narrator = Pyttsx3Narrator()
        with patch("webtasks.infrastructure.speech.pyttsx3.init", side_effect=RuntimeError("no driver")):
            with pytest.raises(RuntimeError):
                await narrator.speak("hello")
        narrator.close()

    @pytest.mark.asyncio
    async def test_stop_when_idle(self, engine):
        await Pyttsx3Narrator().stop()
        await SilentNarrator().stop()
        engine.stop.assert_not_called()

    @pytest.mark.asyncio
    async def test_silent_completes_immediately(self):
        await asyncio.wait_for(SilentNarrator().speak("anything"), timeout=0.1)

"""
Script execution surface backed by Playwright.

The surface is the hosted page's script engine as seen by this package:
``evaluate_script`` runs one self-contained expression and returns its
string result (or None), ``load_url`` navigates. Callers own the surface and
pass it into each operation; every operation treats a missing surface as a
silent no-op.

PlaywrightSurface:
- Context manager for guaranteed browser cleanup
- Optional persistent profile (cookies, saved logins)
- Navigation retried with exponential backoff on timeouts
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Optional, Any

from playwright.async_api import (
    async_playwright,
    Page,
    BrowserContext,
    Browser,
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError
)
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type
)

from ..config import Settings
from ..core.exceptions import BrowserError, ExecutionFailure
from ..core.models import ActionResult

logger = logging.getLogger(__name__)

BLOCKED_SCHEMES = ("javascript:", "data:", "file:")


def normalize_target_url(url: str) -> Optional[str]:
    """
    Clean up a user-entered navigation target.

    Returns None for empty targets and blocked schemes; prefixes
    ``https://`` when no scheme is given.
    """
    url = (url or "").strip()
    if not url:
        return None
    lowered = url.lower()
    if lowered.startswith(BLOCKED_SCHEMES):
        return None
    if "://" not in lowered and not lowered.startswith("about:"):
        url = f"https://{url}"
    return url


class ScriptSurface(ABC):
    """Capability interface of the hosted page's script engine."""

    @abstractmethod
    async def evaluate_script(self, source: str) -> Optional[str]:
        """
        Evaluate a script expression in the page.

        Raises:
            ExecutionFailure: If the evaluation throws
        """

    @abstractmethod
    async def load_url(self, url: str) -> ActionResult:
        """Navigate the page to ``url``."""


class PlaywrightSurface(ScriptSurface):
    """
    Chromium page driven through the Playwright async API.

    Evaluations are serialized through a lock: the page runs one
    evaluation at a time.
    """

    def __init__(self, settings: Settings):
        """
        Args:
            settings: Validated application settings
        """
        self.settings = settings
        self.playwright = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> 'PlaywrightSurface':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await asyncio.shield(self.close())
        return False  # Don't suppress exceptions

    async def start(self) -> None:
        """
        Launch the browser and open a page.

        Raises:
            BrowserError: If browser fails to launch
        """
        try:
            self.playwright = await async_playwright().start()

            if self.settings.user_data_dir:
                # Persistent context keeps cookies and saved logins across runs
                self.context = await self.playwright.chromium.launch_persistent_context(
                    user_data_dir=str(self.settings.user_data_dir),
                    headless=self.settings.headless,
                    args=["--disable-dev-shm-usage"],
                )
                self.page = self.context.pages[0] if self.context.pages else await self.context.new_page()
            else:
                self.browser = await self.playwright.chromium.launch(
                    headless=self.settings.headless,
                )
                self.context = await self.browser.new_context()
                self.page = await self.context.new_page()

            self.page.set_default_timeout(self.settings.action_timeout)
            self.page.set_default_navigation_timeout(self.settings.page_load_timeout)

        except PlaywrightError as e:
            raise BrowserError(
                f"Failed to launch browser: {e}",
                context={"headless": self.settings.headless}
            ) from e

    async def close(self) -> None:
        """Shut the browser down; errors are logged, never raised."""
        try:
            if self.context:
                await self.context.close()
            if self.browser:
                await self.browser.close()
            if self.playwright:
                await self.playwright.stop()
        except PlaywrightError as e:
            logger.warning(f"Warning during browser cleanup: {e}")
        finally:
            self.page = None
            self.context = None
            self.browser = None
            self.playwright = None

    async def evaluate_script(self, source: str) -> Optional[str]:
        if self.page is None:
            raise ExecutionFailure("Page is not open", script=source)
        async with self._lock:
            try:
                result: Any = await self.page.evaluate(source)
            except PlaywrightError as e:
                raise ExecutionFailure(f"Script evaluation failed: {e}", script=source) from e
        if result is None or isinstance(result, str):
            return result
        return json.dumps(result)

    async def load_url(self, url: str) -> ActionResult:
        """
        Navigate to a user-entered target.

        Args:
            url: Target URL; ``https://`` is assumed when no scheme is given

        Returns:
            ActionResult with success status
        """
        target = normalize_target_url(url)
        if target is None:
            return ActionResult(
                success=False,
                message=f"Refusing to navigate to '{url}'",
                error="InvalidURL"
            )
        if self.page is None:
            return ActionResult(success=False, message="Page is not open", error="NoPage")

        try:
            await self._goto(target)
        except PlaywrightTimeoutError:
            return ActionResult(
                success=False,
                message="Navigation timeout after 3 attempts",
                error="NavigationTimeout"
            )
        except PlaywrightError as e:
            return ActionResult(
                success=False,
                message=f"Navigation failed: {e}",
                error=str(e)
            )
        return ActionResult(success=True, message=f"Navigated to {target}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(PlaywrightTimeoutError),
        reraise=True
    )
    async def _goto(self, url: str) -> None:
        await self.page.goto(url, wait_until="domcontentloaded")

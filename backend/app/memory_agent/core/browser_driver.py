"""
Browser Driver

Playwright-backed automation boundary. Owns the browser session and
performs one element or page action per call.

Each action call returns a short human-readable message on success and
raises on failure; callers treat any raised error as a step failure.
"""

import base64
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..errors import NoActiveSessionError, ValidationError
from ..models import LocatorStrategy

# Configure logging
logger = logging.getLogger(__name__)

SUPPORTED_BROWSERS = ("chromium", "firefox", "webkit")


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


class PlaywrightDriver:
    """
    Executes browser actions with Playwright.

    Features:
    - Browser session lifecycle (start / close)
    - Locator strategies: id, css, xpath, name, tag, class
    - Per-call timeouts in milliseconds
    """

    DEFAULT_TIMEOUT = 10000
    DEFAULT_NAVIGATION_TIMEOUT = 30000

    def __init__(
        self,
        page=None,
        timeout: int = DEFAULT_TIMEOUT,
        navigation_timeout: int = DEFAULT_NAVIGATION_TIMEOUT
    ):
        """
        Initialize browser driver.

        Args:
            page: Optional Playwright page to drive directly
            timeout: Default element wait in milliseconds
            navigation_timeout: Default navigation timeout in milliseconds
        """
        self.page = page
        self.timeout = timeout
        self.navigation_timeout = navigation_timeout

        self._playwright = None
        self.browser = None
        self.context = None
        self.session_id: Optional[str] = "attached" if page is not None else None

    # ==================== Session Lifecycle ====================

    @property
    def is_active(self) -> bool:
        return self.page is not None

    async def start(
        self,
        browser_type: str = "chromium",
        headless: bool = True,
        arguments: Optional[List[str]] = None
    ) -> str:
        """
        Launch a browser and open a page.

        Returns:
            Session identifier
        """
        if browser_type not in SUPPORTED_BROWSERS:
            raise ValidationError(f"Unsupported browser: {browser_type}", {"allowed": list(SUPPORTED_BROWSERS)})

        if self.is_active:
            await self.close()

        from playwright.async_api import async_playwright

        self._playwright = await async_playwright().start()
        launcher = getattr(self._playwright, browser_type)
        self.browser = await launcher.launch(headless=headless, args=arguments or [])
        self.context = await self.browser.new_context()
        self.page = await self.context.new_page()

        self.session_id = f"{browser_type}_{int(datetime.utcnow().timestamp() * 1000)}"
        logger.info(f"Browser started with session_id: {self.session_id}")
        return self.session_id

    async def close(self) -> Optional[str]:
        """Close the browser session. Returns the closed session id."""
        session_id = self.session_id
        try:
            if self.context:
                await self.context.close()
            if self.browser:
                await self.browser.close()
            if self._playwright:
                await self._playwright.stop()
        finally:
            self.page = None
            self.context = None
            self.browser = None
            self._playwright = None
            self.session_id = None

        logger.info(f"Browser session {session_id} closed")
        return session_id

    # ==================== Page Actions ====================

    async def navigate(self, url: str) -> str:
        page = self._require_page()
        await page.goto(url, timeout=self.navigation_timeout)
        return f"Navigated to {url}"

    async def current_url(self) -> str:
        return self._require_page().url

    async def press_key(self, key: str) -> str:
        await self._require_page().keyboard.press(key)
        return f"Key '{key}' pressed"

    async def take_screenshot(self, output_path: Optional[str] = None) -> str:
        """
        Capture the current page.

        Returns:
            Saved path if output_path is given, otherwise base64 PNG data
        """
        data = await self._require_page().screenshot()
        if output_path:
            Path(output_path).parent.mkdir(parents=True, exist_ok=True)
            Path(output_path).write_bytes(data)
            return output_path
        return base64.b64encode(data).decode("ascii")

    # ==================== Element Actions ====================

    async def find_element(self, by: str, value: str, timeout: Optional[int] = None) -> str:
        await self._locate(by, value, timeout)
        return "Element found"

    async def click(self, by: str, value: str, timeout: Optional[int] = None) -> str:
        locator = await self._locate(by, value, timeout)
        await locator.click(timeout=self._timeout(timeout))
        return "Element clicked"

    async def type_text(self, by: str, value: str, text: str, timeout: Optional[int] = None) -> str:
        locator = await self._locate(by, value, timeout)
        await locator.clear(timeout=self._timeout(timeout))
        await locator.fill(text, timeout=self._timeout(timeout))
        return f'Text "{text}" entered'

    async def get_text(self, by: str, value: str, timeout: Optional[int] = None) -> str:
        locator = await self._locate(by, value, timeout)
        text = await locator.text_content(timeout=self._timeout(timeout))
        return text or ""

    async def hover(self, by: str, value: str, timeout: Optional[int] = None) -> str:
        locator = await self._locate(by, value, timeout)
        await locator.hover(timeout=self._timeout(timeout))
        return "Hovered over element"

    async def double_click(self, by: str, value: str, timeout: Optional[int] = None) -> str:
        locator = await self._locate(by, value, timeout)
        await locator.dblclick(timeout=self._timeout(timeout))
        return "Double clicked"

    async def right_click(self, by: str, value: str, timeout: Optional[int] = None) -> str:
        locator = await self._locate(by, value, timeout)
        await locator.click(button="right", timeout=self._timeout(timeout))
        return "Right clicked"

    async def drag_and_drop(
        self,
        by: str,
        value: str,
        target_by: str,
        target_value: str,
        timeout: Optional[int] = None
    ) -> str:
        source = await self._locate(by, value, timeout)
        target = await self._locate(target_by, target_value, timeout)
        await source.drag_to(target, timeout=self._timeout(timeout))
        return "Drag and drop completed"

    async def upload_file(self, by: str, value: str, file_path: str, timeout: Optional[int] = None) -> str:
        locator = await self._locate(by, value, timeout)
        await locator.set_input_files(file_path, timeout=self._timeout(timeout))
        return "File upload initiated"

    # ==================== Internal Methods ====================

    def _require_page(self):
        if self.page is None:
            raise NoActiveSessionError("No active browser session")
        return self.page

    def _timeout(self, timeout: Optional[int]) -> int:
        return timeout or self.timeout

    def _get_locator(self, by: str, value: str):
        """Get a Playwright locator for a locator strategy"""
        page = self._require_page()
        try:
            strategy = LocatorStrategy(str(by).lower())
        except ValueError:
            raise ValidationError(f"Unsupported locator strategy: {by}") from None

        if strategy == LocatorStrategy.ID:
            return page.locator(f'[id="{_quote(value)}"]')
        elif strategy == LocatorStrategy.XPATH:
            return page.locator(f"xpath={value}")
        elif strategy == LocatorStrategy.NAME:
            return page.locator(f'[name="{_quote(value)}"]')
        elif strategy == LocatorStrategy.CLASS:
            return page.locator(f".{value}")
        else:
            # css and tag are both plain CSS selectors
            return page.locator(value)

    async def _locate(self, by: str, value: str, timeout: Optional[int]):
        """Resolve a locator and wait for the element to be attached"""
        locator = self._get_locator(by, value).first
        await locator.wait_for(state="attached", timeout=self._timeout(timeout))
        return locator

"""
Pytest configuration and shared fixtures for the memory agent tests.
"""

import pytest
import sys
from pathlib import Path
from unittest.mock import Mock, AsyncMock
from typing import Any, Dict, List, Optional

# Add backend app to path
sys.path.insert(0, str(Path(__file__).parent.parent / "app"))

from memory_agent.config import MemoryConfig
from memory_agent.knowledge.memory_store import MemoryStore


# ==================== Mock Page Fixture ====================

@pytest.fixture
def mock_page():
    """Create a mock Playwright page object."""
    page = AsyncMock()

    # Basic properties
    page.url = "https://example.com/test"

    # Navigation
    page.goto = AsyncMock(return_value=None)

    # Locators
    mock_locator = AsyncMock()
    mock_locator.first = mock_locator
    mock_locator.click = AsyncMock()
    mock_locator.fill = AsyncMock()
    mock_locator.clear = AsyncMock()
    mock_locator.hover = AsyncMock()
    mock_locator.dblclick = AsyncMock()
    mock_locator.wait_for = AsyncMock()
    mock_locator.text_content = AsyncMock(return_value="Test Content")
    mock_locator.set_input_files = AsyncMock()
    mock_locator.drag_to = AsyncMock()

    page.locator = Mock(return_value=mock_locator)

    # Keyboard
    page.keyboard = AsyncMock()
    page.keyboard.press = AsyncMock()

    # Screenshot
    page.screenshot = AsyncMock(return_value=b"fake_screenshot_data")

    return page


# ==================== Mock Browser Fixture ====================

@pytest.fixture
def mock_browser(mock_page):
    """Create a mock Playwright browser object."""
    browser = AsyncMock()
    context = AsyncMock()

    context.new_page = AsyncMock(return_value=mock_page)
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    return browser


# ==================== Fake Driver Fixture ====================

class FakeDriver:
    """
    In-memory automation driver.

    Records every call as (method, args). A call fails when its method
    name is in fail_on, or when it is the n-th call listed in fail_at.
    on_call hooks run after a call is recorded.
    """

    def __init__(self, url: str = "https://example.com/login"):
        self.url = url
        self.calls: List[tuple] = []
        self.fail_on: Dict[str, Exception] = {}
        self.fail_at: Dict[int, Exception] = {}
        self.on_call: List[Any] = []
        self.session_id: Optional[str] = "fake_session"
        self.is_active = True

    async def _call(self, method: str, *args) -> None:
        self.calls.append((method, args))
        for hook in self.on_call:
            hook(method, args)
        index = len(self.calls)
        if index in self.fail_at:
            raise self.fail_at[index]
        if method in self.fail_on:
            raise self.fail_on[method]

    async def navigate(self, url):
        await self._call("navigate", url)
        self.url = url
        return f"Navigated to {url}"

    async def current_url(self):
        return self.url

    async def click(self, by, value, timeout=None):
        await self._call("click", by, value, timeout)
        return "Element clicked"

    async def type_text(self, by, value, text, timeout=None):
        await self._call("type_text", by, value, text, timeout)
        return f'Text "{text}" entered'

    async def find_element(self, by, value, timeout=None):
        await self._call("find_element", by, value, timeout)
        return "Element found"

    async def get_text(self, by, value, timeout=None):
        await self._call("get_text", by, value, timeout)
        return "Hello"

    async def hover(self, by, value, timeout=None):
        await self._call("hover", by, value, timeout)
        return "Hovered over element"

    async def double_click(self, by, value, timeout=None):
        await self._call("double_click", by, value, timeout)
        return "Double clicked"

    async def right_click(self, by, value, timeout=None):
        await self._call("right_click", by, value, timeout)
        return "Right clicked"

    async def press_key(self, key):
        await self._call("press_key", key)
        return f"Key '{key}' pressed"

    async def drag_and_drop(self, by, value, target_by, target_value, timeout=None):
        await self._call("drag_and_drop", by, value, target_by, target_value, timeout)
        return "Drag and drop completed"

    async def upload_file(self, by, value, file_path, timeout=None):
        await self._call("upload_file", by, value, file_path, timeout)
        return "File upload initiated"

    async def take_screenshot(self, output_path=None):
        await self._call("take_screenshot", output_path)
        return output_path or "ZmFrZQ=="

    async def start(self, browser_type="chromium", headless=True, arguments=None):
        self.is_active = True
        self.session_id = f"{browser_type}_1"
        return self.session_id

    async def close(self):
        session_id = self.session_id
        self.is_active = False
        self.session_id = None
        return session_id


@pytest.fixture
def fake_driver():
    """Create a fake automation driver."""
    return FakeDriver()


# ==================== Store Fixtures ====================

@pytest.fixture
def memory_store(tmp_path):
    """Create a memory store backed by a temporary SQLite file."""
    return MemoryStore(str(tmp_path / "memory" / "memory.db"))


@pytest.fixture
def memory_config(tmp_path):
    """Configuration pointing at a temporary database."""
    return MemoryConfig(db_path=str(tmp_path / "memory" / "memory.db"))


# ==================== Sample Data ====================

@pytest.fixture
def login_actions() -> List[Dict[str, Any]]:
    """Three-step login sequence with a {{u}} placeholder."""
    return [
        {"tool_name": "navigate", "parameters": {"url": "https://x.test"}},
        {"tool_name": "send_keys", "parameters": {"by": "name", "value": "user", "text": "{{u}}"}},
        {"tool_name": "click_element", "parameters": {"by": "id", "value": "go"}},
    ]

"""
Browser Memory Agent

Coordinator that owns the memory store, the browser driver, the
sequence recorder and the sequence executor. All browser actions go
through here so that ad-hoc actions are logged to history and mirrored
into an active recording.
"""

import logging
from typing import Any, Dict, List, Optional

from ..config import MemoryConfig
from ..errors import MemoryAgentError, NotFoundError
from ..knowledge.memory_store import MemoryStore
from ..models import ElementMapping
from ..recorder.sequence_recorder import SequenceRecorder
from .action_dispatch import ToolName, execute_action, resolve_action
from .browser_driver import PlaywrightDriver
from .sequence_executor import CancellationToken, SequenceExecutor, SequenceRunResult

# Configure logging
logger = logging.getLogger(__name__)


class BrowserMemoryAgent:
    """
    Single owner of the process-wide state.

    - One browser session (driver)
    - At most one recording session (recorder)
    - At most one running sequence (executor)
    """

    def __init__(
        self,
        store: Optional[MemoryStore] = None,
        driver=None,
        config: Optional[MemoryConfig] = None
    ):
        """
        Initialize the memory agent.

        Args:
            store: Memory store; created from config.db_path if omitted
            driver: Automation driver; a PlaywrightDriver if omitted
            config: Settings, read from the environment if omitted
        """
        self.config = config or MemoryConfig.from_env()
        self.store = store or MemoryStore(self.config.db_path)
        self.driver = driver or PlaywrightDriver(
            timeout=self.config.action_timeout_ms,
            navigation_timeout=self.config.navigation_timeout_ms,
        )
        self.recorder = SequenceRecorder(self.store)
        self.executor = SequenceExecutor(self.store, self.driver)

    # ==================== Browser Session ====================

    async def start_browser(
        self,
        browser_type: Optional[str] = None,
        headless: Optional[bool] = None,
        arguments: Optional[List[str]] = None
    ) -> str:
        return await self.driver.start(
            browser_type=browser_type or self.config.browser_type,
            headless=self.config.headless if headless is None else headless,
            arguments=arguments,
        )

    async def close_browser(self) -> Optional[str]:
        return await self.driver.close()

    async def take_screenshot(self, output_path: Optional[str] = None) -> str:
        return await self.driver.take_screenshot(output_path)

    # ==================== Actions ====================

    async def perform(self, tool_name: str, parameters: Optional[Dict[str, Any]] = None) -> str:
        """
        Perform one ad-hoc action.

        On success the action is captured by an active recording. Success
        and failure are both appended to history with no sequence name.
        """
        params = dict(parameters or {})
        resolve_action(tool_name)

        try:
            message = await execute_action(self.driver, tool_name, params)
        except MemoryAgentError as e:
            self.store.log_execution(None, tool_name, params, False, e.message)
            raise

        self.recorder.record(tool_name, params)
        self.store.log_execution(None, tool_name, params, True)
        return message

    async def navigate(self, url: str) -> str:
        return await self.perform(ToolName.NAVIGATE.value, {"url": url})

    async def click_element(self, by: str, value: str, timeout: Optional[int] = None) -> str:
        return await self.perform(ToolName.CLICK_ELEMENT.value, _locator_params(by, value, timeout))

    async def send_keys(self, by: str, value: str, text: str, timeout: Optional[int] = None) -> str:
        params = _locator_params(by, value, timeout)
        params["text"] = text
        return await self.perform(ToolName.SEND_KEYS.value, params)

    async def press_key(self, key: str) -> str:
        return await self.perform(ToolName.PRESS_KEY.value, {"key": key})

    # ==================== Saved Elements ====================

    async def get_elements(self, url: Optional[str] = None) -> List[ElementMapping]:
        """Element mappings for a URL, defaulting to the current page"""
        target_url = url or await self.driver.current_url()
        return self.store.get_element_mappings_for_site(target_url)

    async def find_saved_element(self, element_name: str) -> ElementMapping:
        current_url = await self.driver.current_url()
        for mapping in self.store.get_element_mappings_for_site(current_url):
            if mapping.element_name == element_name:
                return mapping
        raise NotFoundError(
            f"Element '{element_name}' not found for current site.",
            {"element_name": element_name, "url": current_url},
        )

    async def click_saved_element(self, element_name: str, timeout: Optional[int] = None) -> str:
        mapping = await self.find_saved_element(element_name)
        await self.click_element(mapping.locator_by.value, mapping.locator_value, timeout)
        return f"Clicked element '{element_name}'"

    async def type_in_saved_element(self, element_name: str, text: str, timeout: Optional[int] = None) -> str:
        mapping = await self.find_saved_element(element_name)
        await self.send_keys(mapping.locator_by.value, mapping.locator_value, text, timeout)
        return f'Typed "{text}" into element \'{element_name}\''

    # ==================== Sequences ====================

    async def run_sequence(
        self,
        name: str,
        variables: Optional[Dict[str, Any]] = None,
        token: Optional[CancellationToken] = None
    ) -> SequenceRunResult:
        return await self.executor.run(name, variables, token)

    def interrupt_sequence(self) -> str:
        return self.executor.interrupt()

    # ==================== Status ====================

    def memory_status(self) -> Dict[str, Any]:
        recording = self.recorder.status()
        return {
            "saved_sequences": self.store.count_sequences(),
            "recording": recording.sequence_name,
            "recorded_actions": len(recording.actions),
            "running": self.executor.running_sequence,
            "browser_session": getattr(self.driver, "session_id", None),
        }


def _locator_params(by: str, value: str, timeout: Optional[int]) -> Dict[str, Any]:
    params: Dict[str, Any] = {"by": by, "value": value}
    if timeout is not None:
        params["timeout"] = timeout
    return params

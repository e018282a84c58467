"""
Memory Tools

Agent-facing operations. Each call returns a ToolResult with a
human-readable message plus structured data; errors from the core are
reported in the result instead of being raised.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .core.agent import BrowserMemoryAgent
from .core.sequence_executor import RunStatus
from .core.variables import find_placeholders
from .errors import MemoryAgentError, NotFoundError

# Configure logging
logger = logging.getLogger(__name__)


@dataclass
class ToolResult:
    """Outcome of a tool call"""
    success: bool
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[MemoryAgentError] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {"success": self.success, "message": self.message, "data": self.data}
        if self.error is not None:
            result["error"] = type(self.error).__name__
        return result


def _failure(prefix: str, error: Exception) -> ToolResult:
    if isinstance(error, MemoryAgentError):
        return ToolResult(False, error.message if not prefix else f"{prefix}: {error.message}",
                          {"context": error.context}, error)
    logger.exception(f"{prefix or 'Tool call'} failed unexpectedly")
    wrapped = MemoryAgentError(str(error) or type(error).__name__, {"cause": type(error).__name__})
    return ToolResult(False, f"{prefix}: {wrapped.message}" if prefix else wrapped.message,
                      {"context": wrapped.context}, wrapped)


class MemoryTools:
    """Tool surface over a BrowserMemoryAgent"""

    def __init__(self, agent: BrowserMemoryAgent):
        self.agent = agent

    async def _guard(self, prefix: str, call: Callable[[], Awaitable[ToolResult]]) -> ToolResult:
        try:
            return await call()
        except Exception as e:
            return _failure(prefix, e)

    # ==================== Browser ====================

    async def start_browser(self, browser: Optional[str] = None, headless: Optional[bool] = None,
                            arguments: Optional[List[str]] = None) -> ToolResult:
        async def call():
            session_id = await self.agent.start_browser(browser, headless, arguments)
            return ToolResult(True, f"Browser started with session_id: {session_id}", {"session_id": session_id})
        return await self._guard("Error starting browser", call)

    async def close_session(self) -> ToolResult:
        async def call():
            session_id = await self.agent.close_browser()
            return ToolResult(True, f"Browser session {session_id} closed", {"session_id": session_id})
        return await self._guard("Error closing session", call)

    async def take_screenshot(self, output_path: Optional[str] = None) -> ToolResult:
        async def call():
            result = await self.agent.take_screenshot(output_path)
            if output_path:
                return ToolResult(True, f"Screenshot saved to {output_path}", {"path": result})
            return ToolResult(True, "Screenshot captured as base64", {"base64": result})
        return await self._guard("Error taking screenshot", call)

    async def perform_action(self, tool_name: str, parameters: Optional[Dict[str, Any]] = None) -> ToolResult:
        async def call():
            message = await self.agent.perform(tool_name, parameters)
            return ToolResult(True, message, {"tool_name": tool_name})
        return await self._guard(f"Error performing {tool_name}", call)

    async def click_saved_element(self, element_name: str, timeout: Optional[int] = None) -> ToolResult:
        async def call():
            return ToolResult(True, await self.agent.click_saved_element(element_name, timeout))
        return await self._guard("Error clicking element", call)

    async def type_in_saved_element(self, element_name: str, text: str,
                                    timeout: Optional[int] = None) -> ToolResult:
        async def call():
            return ToolResult(True, await self.agent.type_in_saved_element(element_name, text, timeout))
        return await self._guard("Error typing in element", call)

    # ==================== Recording ====================

    def start_recording(self, sequence_name: str, description: str = "",
                        trigger_pattern: str = "") -> ToolResult:
        try:
            self.agent.recorder.start(sequence_name, description, trigger_pattern)
        except Exception as e:
            return _failure("", e)
        return ToolResult(
            True,
            f"Started recording sequence '{sequence_name}'. All browser actions will be recorded. "
            f"Call stop_recording when done.",
            {"sequence_name": sequence_name},
        )

    def stop_recording(self) -> ToolResult:
        status = self.agent.recorder.status()
        try:
            count = self.agent.recorder.stop()
        except Exception as e:
            return _failure("" if not status.is_recording else "Error stopping recording", e)
        return ToolResult(
            True,
            f"Recording stopped. Sequence '{status.sequence_name}' saved with {count} actions.",
            {"sequence_name": status.sequence_name, "action_count": count},
        )

    def cancel_recording(self) -> ToolResult:
        try:
            name = self.agent.recorder.cancel()
        except Exception as e:
            return _failure("", e)
        return ToolResult(True, f"Recording of '{name}' cancelled. No sequence was saved.",
                          {"sequence_name": name})

    def get_recording_status(self) -> ToolResult:
        status = self.agent.recorder.status()
        if not status.is_recording:
            return ToolResult(True, "Not currently recording.", status.to_dict())

        action_list = "\n".join(
            f"  {a.step_order}. {a.tool_name}: {json.dumps(a.parameters)}" for a in status.actions
        )
        return ToolResult(
            True,
            f"Recording: {status.sequence_name}\n"
            f"Description: {status.description or 'No description'}\n"
            f"Trigger: {status.trigger_pattern or 'No trigger pattern'}\n"
            f"Recorded actions ({len(status.actions)}):\n{action_list or '  (none yet)'}",
            status.to_dict(),
        )

    # ==================== Sequences ====================

    def save_sequence(self, name: str, description: str, actions: List[Dict[str, Any]],
                      trigger_pattern: str = "") -> ToolResult:
        try:
            sequence = self.agent.store.save_sequence(name, description, trigger_pattern, actions)
        except Exception as e:
            return _failure("Error saving sequence", e)
        return ToolResult(True, f"Sequence '{name}' saved with {len(sequence.actions)} actions.",
                          sequence.to_dict())

    def list_sequences(self) -> ToolResult:
        try:
            sequences = self.agent.store.list_sequences()
        except Exception as e:
            return _failure("Error listing sequences", e)

        data = {"sequences": [s.to_dict() for s in sequences]}
        if not sequences:
            return ToolResult(True, "No saved sequences found. Use start_recording or save_sequence to create one.", data)

        listing = "\n\n".join(
            f"• {s.name} ({s.action_count} actions)\n"
            f"  Description: {s.description or 'No description'}\n"
            f"  Trigger: {s.trigger_pattern or 'No trigger pattern'}"
            for s in sequences
        )
        return ToolResult(True, f"Saved sequences:\n\n{listing}", data)

    def get_sequence(self, name: str) -> ToolResult:
        try:
            sequence = self.agent.store.get_sequence(name)
        except Exception as e:
            return _failure("Error getting sequence", e)
        if not sequence:
            return _failure("", NotFoundError(f"Sequence '{name}' not found.", {"sequence_name": name}))

        variables: List[str] = []
        for action in sequence.actions:
            variables.extend(v for v in find_placeholders(action.parameters) if v not in variables)

        action_list = "\n".join(
            f"  {a.step_order}. {a.tool_name}: {json.dumps(a.parameters)}" for a in sequence.actions
        )
        data = sequence.to_dict()
        data["variables"] = variables
        return ToolResult(
            True,
            f"Sequence: {sequence.name}\n"
            f"Description: {sequence.description or 'No description'}\n"
            f"Trigger: {sequence.trigger_pattern or 'No trigger pattern'}\n"
            f"Actions:\n{action_list}",
            data,
        )

    def search_sequences(self, query: str) -> ToolResult:
        try:
            sequences = self.agent.store.search_sequences(query)
        except Exception as e:
            return _failure("Error searching sequences", e)

        data = {"sequences": [s.to_dict() for s in sequences]}
        if not sequences:
            return ToolResult(True, f"No sequences found matching '{query}'.", data)
        listing = "\n".join(f"• {s.name}: {s.description or 'No description'}" for s in sequences)
        return ToolResult(True, f"Found {len(sequences)} sequence(s):\n{listing}", data)

    def delete_sequence(self, name: str) -> ToolResult:
        try:
            deleted = self.agent.store.delete_sequence(name)
        except Exception as e:
            return _failure("Error deleting sequence", e)
        if not deleted:
            return _failure("", NotFoundError(f"Sequence '{name}' not found.", {"sequence_name": name}))
        return ToolResult(True, f"Sequence '{name}' deleted.", {"sequence_name": name})

    async def run_sequence(self, name: str, variables: Optional[Dict[str, Any]] = None) -> ToolResult:
        async def call():
            result = await self.agent.run_sequence(name, variables or {})
            lines = "\n".join(
                f"{'✓' if r.success else '✗'} {r.tool_name}: {r.message}" for r in result.results
            )
            if result.status == RunStatus.COMPLETED:
                message = f"Sequence '{name}' completed successfully ({result.completed_steps} steps).\nResults:\n{lines}"
            elif result.status == RunStatus.INTERRUPTED:
                message = (f"Sequence '{name}' interrupted after {result.completed_steps}/{result.total_steps} steps.\n"
                           f"Completed actions:\n{lines}")
            else:
                message = f"Sequence '{name}' failed at step {result.failed_step}.\nResults:\n{lines}"
            return ToolResult(result.status == RunStatus.COMPLETED, message, result.to_dict())
        return await self._guard("", call)

    def interrupt_sequence(self) -> ToolResult:
        try:
            name = self.agent.interrupt_sequence()
        except Exception as e:
            return _failure("", e)
        return ToolResult(
            True,
            f"Interrupt requested for sequence '{name}'. It will stop after the current action completes.",
            {"sequence_name": name},
        )

    # ==================== Elements & History ====================

    def save_element(self, site_pattern: str, element_name: str, by: str, value: str,
                     description: str = "") -> ToolResult:
        try:
            mapping = self.agent.store.save_element_mapping(site_pattern, element_name, by, value, description)
        except Exception as e:
            return _failure("Error saving element", e)
        return ToolResult(True, f"Element '{element_name}' saved for site pattern '{site_pattern}'.",
                          mapping.to_dict())

    def get_element(self, site_pattern: str, element_name: str) -> ToolResult:
        try:
            mapping = self.agent.store.get_element_mapping(site_pattern, element_name)
        except Exception as e:
            return _failure("Error getting element", e)
        if not mapping:
            return _failure("", NotFoundError(
                f"Element '{element_name}' not found for site pattern '{site_pattern}'.",
                {"site_pattern": site_pattern, "element_name": element_name},
            ))
        return ToolResult(
            True,
            f'{mapping.element_name}: {mapping.locator_by.value}="{mapping.locator_value}"',
            mapping.to_dict(),
        )

    async def get_elements(self, url: Optional[str] = None) -> ToolResult:
        async def call():
            target_url = url or await self.agent.driver.current_url()
            elements = await self.agent.get_elements(target_url)
            data = {"url": target_url, "elements": [e.to_dict() for e in elements]}
            if not elements:
                return ToolResult(True, f"No saved elements found for URL: {target_url}", data)
            listing = "\n".join(
                f'• {e.element_name}: {e.locator_by.value}="{e.locator_value}"'
                + (f" ({e.description})" if e.description else "")
                for e in elements
            )
            return ToolResult(True, f"Saved elements for {target_url}:\n{listing}", data)
        return await self._guard("Error getting elements", call)

    def get_execution_history(self, limit: Optional[int] = None) -> ToolResult:
        try:
            history = self.agent.store.get_execution_history(
                self.agent.config.history_limit if limit is None else limit
            )
        except Exception as e:
            return _failure("Error getting history", e)

        data = {"entries": [h.to_dict() for h in history]}
        if not history:
            return ToolResult(True, "No execution history found.", data)

        listing = "\n".join(
            f"{'✓' if h.success else '✗'} "
            f"{f'[{h.sequence_name}] ' if h.sequence_name else ''}"
            f"{h.tool_name}"
            f"{f' - {h.error_message}' if h.error_message else ''} ({h.executed_at})"
            for h in history
        )
        return ToolResult(True, f"Execution history (last {len(history)} entries):\n{listing}", data)

    # ==================== Resources ====================

    def sequences_list(self) -> Dict[str, Any]:
        """Read-only listing of saved sequences (the sequences-list resource)"""
        return {
            "sequences": [
                {
                    "name": s.name,
                    "description": s.description,
                    "trigger_pattern": s.trigger_pattern,
                    "action_count": s.action_count,
                }
                for s in self.agent.store.list_sequences()
            ]
        }

    def memory_status(self) -> ToolResult:
        try:
            status = self.agent.memory_status()
        except Exception as e:
            return _failure("Error getting memory status", e)

        recording = (f"Recording: {status['recording']} ({status['recorded_actions']} actions)"
                     if status["recording"] else "Not recording")
        running = f"Running: {status['running']}" if status["running"] else "No sequence running"
        return ToolResult(
            True,
            f"Memory Status:\n- Saved sequences: {status['saved_sequences']}\n- {recording}\n- {running}",
            status,
        )

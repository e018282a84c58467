"""
Action Dispatch

Closed set of replayable actions. Each tool name maps to one entry in
ACTION_TABLE that lists its required parameters and the driver call
that performs it. Anything outside the table is an UnknownActionError.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Tuple

from ..errors import MemoryAgentError, StepFailure, UnknownActionError, ValidationError

# Configure logging
logger = logging.getLogger(__name__)


class ToolName(str, Enum):
    """Actions that can be recorded and replayed"""
    NAVIGATE = "navigate"
    CLICK_ELEMENT = "click_element"
    SEND_KEYS = "send_keys"
    FIND_ELEMENT = "find_element"
    GET_ELEMENT_TEXT = "get_element_text"
    HOVER = "hover"
    DOUBLE_CLICK = "double_click"
    RIGHT_CLICK = "right_click"
    PRESS_KEY = "press_key"
    DRAG_AND_DROP = "drag_and_drop"
    UPLOAD_FILE = "upload_file"


Handler = Callable[[Any, Dict[str, Any]], Awaitable[str]]


@dataclass(frozen=True)
class ActionSpec:
    """One dispatchable action"""
    tool: ToolName
    required: Tuple[str, ...]
    handler: Handler


async def _navigate(driver, p: Dict[str, Any]) -> str:
    return await driver.navigate(p["url"])


async def _click(driver, p: Dict[str, Any]) -> str:
    return await driver.click(p["by"], p["value"], p.get("timeout"))


async def _send_keys(driver, p: Dict[str, Any]) -> str:
    return await driver.type_text(p["by"], p["value"], str(p["text"]), p.get("timeout"))


async def _find(driver, p: Dict[str, Any]) -> str:
    return await driver.find_element(p["by"], p["value"], p.get("timeout"))


async def _get_text(driver, p: Dict[str, Any]) -> str:
    text = await driver.get_text(p["by"], p["value"], p.get("timeout"))
    return f"Text: {text}"


async def _hover(driver, p: Dict[str, Any]) -> str:
    return await driver.hover(p["by"], p["value"], p.get("timeout"))


async def _double_click(driver, p: Dict[str, Any]) -> str:
    return await driver.double_click(p["by"], p["value"], p.get("timeout"))


async def _right_click(driver, p: Dict[str, Any]) -> str:
    return await driver.right_click(p["by"], p["value"], p.get("timeout"))


async def _press_key(driver, p: Dict[str, Any]) -> str:
    return await driver.press_key(p["key"])


async def _drag_and_drop(driver, p: Dict[str, Any]) -> str:
    return await driver.drag_and_drop(
        p["by"], p["value"], p["target_by"], p["target_value"], p.get("timeout")
    )


async def _upload_file(driver, p: Dict[str, Any]) -> str:
    return await driver.upload_file(p["by"], p["value"], p["file_path"], p.get("timeout"))


LOCATOR_PARAMS = ("by", "value")

ACTION_TABLE: Dict[ToolName, ActionSpec] = {
    spec.tool: spec for spec in [
        ActionSpec(ToolName.NAVIGATE, ("url",), _navigate),
        ActionSpec(ToolName.CLICK_ELEMENT, LOCATOR_PARAMS, _click),
        ActionSpec(ToolName.SEND_KEYS, LOCATOR_PARAMS + ("text",), _send_keys),
        ActionSpec(ToolName.FIND_ELEMENT, LOCATOR_PARAMS, _find),
        ActionSpec(ToolName.GET_ELEMENT_TEXT, LOCATOR_PARAMS, _get_text),
        ActionSpec(ToolName.HOVER, LOCATOR_PARAMS, _hover),
        ActionSpec(ToolName.DOUBLE_CLICK, LOCATOR_PARAMS, _double_click),
        ActionSpec(ToolName.RIGHT_CLICK, LOCATOR_PARAMS, _right_click),
        ActionSpec(ToolName.PRESS_KEY, ("key",), _press_key),
        ActionSpec(ToolName.DRAG_AND_DROP, LOCATOR_PARAMS + ("target_by", "target_value"), _drag_and_drop),
        ActionSpec(ToolName.UPLOAD_FILE, LOCATOR_PARAMS + ("file_path",), _upload_file),
    ]
}


def resolve_action(tool_name: str) -> ActionSpec:
    """Look up the dispatch entry for a tool name"""
    try:
        return ACTION_TABLE[ToolName(tool_name)]
    except ValueError:
        raise UnknownActionError(
            f"Unknown action: {tool_name}",
            {"tool_name": tool_name, "supported": [t.value for t in ToolName]},
        ) from None


async def execute_action(driver, tool_name: str, parameters: Dict[str, Any]) -> str:
    """
    Perform one action against the driver.

    Args:
        driver: Automation driver (see PlaywrightDriver)
        tool_name: Name from ToolName
        parameters: Action parameters

    Returns:
        Driver's result message

    Raises:
        UnknownActionError: Tool name not in ACTION_TABLE
        ValidationError: Required parameter missing
        StepFailure: The driver call raised
    """
    spec = resolve_action(tool_name)

    missing = [k for k in spec.required if parameters.get(k) is None]
    if missing:
        raise ValidationError(
            f"Missing parameters for {tool_name}: {', '.join(missing)}",
            {"tool_name": tool_name, "missing": missing},
        )

    logger.debug(f"Dispatching {tool_name} with {parameters}")
    try:
        return await spec.handler(driver, parameters)
    except MemoryAgentError:
        raise
    except Exception as e:
        raise StepFailure(tool_name, e) from e

"""
Core Agent Module

Browser driver, action dispatch, variable substitution, the sequence
executor and the coordinator that ties them together.
"""

from .agent import BrowserMemoryAgent
from .browser_driver import PlaywrightDriver
from .action_dispatch import ToolName, ACTION_TABLE, execute_action, resolve_action
from .variables import substitute_variables, find_placeholders
from .sequence_executor import (
    SequenceExecutor,
    CancellationToken,
    RunStatus,
    SequenceRunResult,
    StepResult
)

__all__ = [
    "BrowserMemoryAgent",
    "PlaywrightDriver",
    "ToolName",
    "ACTION_TABLE",
    "execute_action",
    "resolve_action",
    "substitute_variables",
    "find_placeholders",
    "SequenceExecutor",
    "CancellationToken",
    "RunStatus",
    "SequenceRunResult",
    "StepResult"
]

"""
Browser Sequence Memory Agent

Persistent memory for a browser automation agent:
- Records named sequences of browser actions as they are performed
- Replays sequences with {{variable}} substitution and cooperative interrupt
- Remembers element locators per site pattern
- Keeps an execution history of every action
"""

from .config import MemoryConfig
from .errors import (
    MemoryAgentError,
    ValidationError,
    NotFoundError,
    AlreadyRecordingError,
    NotRecordingError,
    AlreadyRunningError,
    NotRunningError,
    UnknownActionError,
    NoActiveSessionError,
    StepFailure
)
from .models import (
    LocatorStrategy,
    SequenceAction,
    ActionSequence,
    SequenceSummary,
    ElementMapping,
    ExecutionHistoryEntry
)
from .knowledge.memory_store import MemoryStore
from .recorder.sequence_recorder import SequenceRecorder
from .core.agent import BrowserMemoryAgent
from .core.browser_driver import PlaywrightDriver
from .core.sequence_executor import SequenceExecutor, CancellationToken, RunStatus
from .tools import MemoryTools, ToolResult

__all__ = [
    # Config & errors
    "MemoryConfig",
    "MemoryAgentError",
    "ValidationError",
    "NotFoundError",
    "AlreadyRecordingError",
    "NotRecordingError",
    "AlreadyRunningError",
    "NotRunningError",
    "UnknownActionError",
    "NoActiveSessionError",
    "StepFailure",
    # Models
    "LocatorStrategy",
    "SequenceAction",
    "ActionSequence",
    "SequenceSummary",
    "ElementMapping",
    "ExecutionHistoryEntry",
    # Components
    "MemoryStore",
    "SequenceRecorder",
    "BrowserMemoryAgent",
    "PlaywrightDriver",
    "SequenceExecutor",
    "CancellationToken",
    "RunStatus",
    # Tool surface
    "MemoryTools",
    "ToolResult"
]

__version__ = "1.0.0"

"""
Memory Agent Errors

Error taxonomy shared by the store, recorder and executor.
Every error carries a human-readable message plus a context dict
so the tool surface can report structured outcomes.
"""

from typing import Any, Dict, Optional


class MemoryAgentError(Exception):
    """Base class for all memory agent errors"""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "context": self.context,
        }


class ValidationError(MemoryAgentError):
    """A required field is missing or malformed"""


class NotFoundError(MemoryAgentError):
    """Unknown sequence or element mapping"""


class AlreadyRecordingError(MemoryAgentError):
    """A recording session is already active"""


class NotRecordingError(MemoryAgentError):
    """No recording session is active"""


class AlreadyRunningError(MemoryAgentError):
    """Another sequence run is in progress"""


class NotRunningError(MemoryAgentError):
    """No sequence run is in progress"""


class UnknownActionError(MemoryAgentError):
    """Tool name is not in the dispatch table"""


class NoActiveSessionError(MemoryAgentError):
    """Automation call made without an open browser session"""


class StepFailure(MemoryAgentError):
    """
    A driver call failed while performing an action.

    The original driver exception is chained as __cause__.
    """

    def __init__(self, tool_name: str, cause: BaseException):
        message = str(cause) or type(cause).__name__
        super().__init__(message, {"tool_name": tool_name, "cause": type(cause).__name__})
        self.tool_name = tool_name

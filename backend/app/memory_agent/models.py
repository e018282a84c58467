"""
Memory Models

Data structures persisted by the memory store: action sequences,
element mappings and execution history entries.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional


class LocatorStrategy(str, Enum):
    """Supported element locator strategies"""
    ID = "id"
    CSS = "css"
    XPATH = "xpath"
    NAME = "name"
    TAG = "tag"
    CLASS = "class"


@dataclass
class SequenceAction:
    """A single step of a sequence"""
    tool_name: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    step_order: int = 0  # 1-based once persisted

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ActionSequence:
    """A named, ordered list of actions that can be replayed"""
    name: str
    description: str = ""
    trigger_pattern: str = ""
    actions: List[SequenceAction] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "trigger_pattern": self.trigger_pattern,
            "actions": [a.to_dict() for a in self.actions],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class SequenceSummary:
    """Listing row for a sequence"""
    name: str
    description: str
    trigger_pattern: str
    action_count: int
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ElementMapping:
    """Friendly element name bound to a locator for a site pattern"""
    site_pattern: str
    element_name: str
    locator_by: LocatorStrategy
    locator_value: str
    description: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["locator_by"] = self.locator_by.value
        return data


@dataclass
class ExecutionHistoryEntry:
    """Immutable record of one action outcome"""
    id: int
    sequence_name: Optional[str]
    tool_name: str
    parameters: Dict[str, Any]
    success: bool
    error_message: Optional[str]
    executed_at: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

"""
Sequence Recorder

Captures browser actions while a recording session is active and
commits them to the memory store as a named sequence.

This is the "teaching mode" component - the agent performs a workflow
once, and the recorder turns it into something replayable.
"""

import copy
import hashlib
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors import AlreadyRecordingError, NotRecordingError, ValidationError
from ..models import SequenceAction

# Configure logging
logger = logging.getLogger(__name__)


class RecordingState(str, Enum):
    """Recorder states"""
    IDLE = "idle"
    RECORDING = "recording"


@dataclass
class RecordingSession:
    """An in-progress recording, not persisted until stop()"""
    session_id: str
    sequence_name: str
    description: str
    trigger_pattern: str
    started_at: str
    actions: List[SequenceAction] = field(default_factory=list)


@dataclass
class RecordingStatus:
    """Read-only view of the recorder"""
    state: RecordingState
    sequence_name: Optional[str] = None
    description: str = ""
    trigger_pattern: str = ""
    started_at: Optional[str] = None
    actions: List[SequenceAction] = field(default_factory=list)

    @property
    def is_recording(self) -> bool:
        return self.state == RecordingState.RECORDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "sequence_name": self.sequence_name,
            "description": self.description,
            "trigger_pattern": self.trigger_pattern,
            "started_at": self.started_at,
            "actions": [a.to_dict() for a in self.actions],
        }


class SequenceRecorder:
    """
    Idle -> Recording -> Idle state machine.

    At most one session is active. Actions are captured as deep copies
    so later mutation of the caller's parameters doesn't leak in.
    """

    def __init__(self, store):
        """
        Initialize sequence recorder.

        Args:
            store: MemoryStore that receives committed sequences
        """
        self.store = store
        self._current_session: Optional[RecordingSession] = None
        self._lock = threading.Lock()

    # ==================== Session Management ====================

    @property
    def state(self) -> RecordingState:
        return RecordingState.RECORDING if self._current_session else RecordingState.IDLE

    def is_recording(self) -> bool:
        """Check if currently recording"""
        return self._current_session is not None

    def start(self, name: str, description: str = "", trigger_pattern: str = "") -> RecordingSession:
        """
        Start recording a new sequence.

        Raises:
            AlreadyRecordingError: If a session is already active
            ValidationError: If the sequence name is blank
        """
        if not name or not name.strip():
            raise ValidationError("Sequence name is required")

        with self._lock:
            if self._current_session:
                raise AlreadyRecordingError(
                    f"Already recording sequence '{self._current_session.sequence_name}'. "
                    f"Stop it first with stop_recording.",
                    {"sequence_name": self._current_session.sequence_name},
                )

            session_id = f"rec_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}_{hashlib.md5(name.encode()).hexdigest()[:6]}"
            self._current_session = RecordingSession(
                session_id=session_id,
                sequence_name=name,
                description=description or "",
                trigger_pattern=trigger_pattern or "",
                started_at=datetime.utcnow().isoformat(),
            )

        logger.info(f"Started recording sequence '{name}' ({session_id})")
        return self._current_session

    def record(self, tool_name: str, parameters: Optional[Dict[str, Any]] = None) -> Optional[SequenceAction]:
        """
        Capture one action. Does nothing when idle.

        Returns:
            The captured action or None if not recording
        """
        with self._lock:
            session = self._current_session
            if not session:
                return None

            action = SequenceAction(
                tool_name=tool_name,
                parameters=copy.deepcopy(parameters or {}),
                step_order=len(session.actions) + 1,
            )
            session.actions.append(action)

        logger.debug(f"Recorded action {action.step_order}: {tool_name}")
        return action

    def stop(self) -> int:
        """
        Commit the captured actions as a sequence and return to idle.

        If the store rejects the sequence the session stays active so it
        can be retried or cancelled.

        Returns:
            Number of actions saved

        Raises:
            NotRecordingError: If no session is active
        """
        with self._lock:
            session = self._current_session
            if not session:
                raise NotRecordingError("Not currently recording.")

            if not session.actions:
                logger.warning(f"Saving sequence '{session.sequence_name}' with no actions")

            self.store.save_sequence(
                session.sequence_name,
                session.description,
                session.trigger_pattern,
                session.actions,
            )
            self._current_session = None

        logger.info(f"Completed recording sequence '{session.sequence_name}' ({len(session.actions)} actions)")
        return len(session.actions)

    def cancel(self) -> str:
        """
        Discard the current session without saving.

        Returns:
            Name of the discarded sequence
        """
        with self._lock:
            session = self._current_session
            if not session:
                raise NotRecordingError("Not currently recording.")
            self._current_session = None

        logger.info(f"Cancelled recording sequence '{session.sequence_name}'")
        return session.sequence_name

    def status(self) -> RecordingStatus:
        """Current state and a copy of the captured actions"""
        with self._lock:
            session = self._current_session
            if not session:
                return RecordingStatus(state=RecordingState.IDLE)

            return RecordingStatus(
                state=RecordingState.RECORDING,
                sequence_name=session.sequence_name,
                description=session.description,
                trigger_pattern=session.trigger_pattern,
                started_at=session.started_at,
                actions=copy.deepcopy(session.actions),
            )

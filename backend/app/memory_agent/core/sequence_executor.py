"""
Sequence Executor

Replays a stored sequence step by step against the browser driver.

Run protocol:
1. Only one run at a time (AlreadyRunningError otherwise)
2. Before each step, check the run's cancellation token; if set,
   stop with status INTERRUPTED
3. Substitute variables, dispatch, log the outcome to history
4. The first failing step ends the run with status FAILED

Interruption is cooperative. A step that has been dispatched always
finishes (or fails) before the token is looked at again.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors import AlreadyRunningError, MemoryAgentError, NotFoundError, NotRunningError
from .action_dispatch import execute_action
from .variables import find_placeholders, substitute_variables

# Configure logging
logger = logging.getLogger(__name__)

INTERRUPTED_TOOL_NAME = "INTERRUPTED"


class CancellationToken:
    """Cooperative cancellation flag for one run"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    def reset(self):
        self._event.clear()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class RunStatus(str, Enum):
    """Final status of a sequence run"""
    COMPLETED = "completed"
    INTERRUPTED = "interrupted"
    FAILED = "failed"


@dataclass
class RunMarker:
    """The sequence currently executing"""
    sequence_name: str
    token: CancellationToken
    started_at: str


@dataclass
class StepResult:
    """Outcome of one executed step"""
    step: int
    tool_name: str
    parameters: Dict[str, Any]
    success: bool
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "tool_name": self.tool_name,
            "parameters": self.parameters,
            "success": self.success,
            "message": self.message,
        }


@dataclass
class SequenceRunResult:
    """Outcome of a whole run"""
    sequence_name: str
    status: RunStatus
    completed_steps: int
    total_steps: int
    results: List[StepResult] = field(default_factory=list)
    failed_step: Optional[int] = None
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence_name": self.sequence_name,
            "status": self.status.value,
            "completed_steps": self.completed_steps,
            "total_steps": self.total_steps,
            "results": [r.to_dict() for r in self.results],
            "failed_step": self.failed_step,
            "error_message": self.error_message,
        }


class SequenceExecutor:
    """
    Runs stored sequences against an automation driver.

    Holds the single run marker; interrupt() sets the marker's token.
    """

    def __init__(self, store, driver):
        """
        Initialize sequence executor.

        Args:
            store: MemoryStore to read sequences from and log history to
            driver: Automation driver used for each step
        """
        self.store = store
        self.driver = driver
        self._running: Optional[RunMarker] = None
        self._lock = threading.Lock()

    @property
    def running_sequence(self) -> Optional[str]:
        marker = self._running
        return marker.sequence_name if marker else None

    def is_running(self) -> bool:
        return self._running is not None

    def _acquire(self, name: str, token: CancellationToken) -> RunMarker:
        with self._lock:
            if self._running:
                raise AlreadyRunningError(
                    f"Sequence '{self._running.sequence_name}' is already running.",
                    {"running": self._running.sequence_name},
                )
            token.reset()
            self._running = RunMarker(
                sequence_name=name,
                token=token,
                started_at=datetime.utcnow().isoformat(),
            )
            return self._running

    def _release(self, marker: RunMarker):
        with self._lock:
            if self._running is marker:
                self._running = None

    async def run(
        self,
        name: str,
        variables: Optional[Dict[str, Any]] = None,
        token: Optional[CancellationToken] = None
    ) -> SequenceRunResult:
        """
        Execute a stored sequence.

        Args:
            name: Sequence name
            variables: Values for {{placeholder}} substitution
            token: Cancellation token for this run; a fresh one is
                created if omitted. Any earlier cancel on it is cleared.

        Returns:
            SequenceRunResult with status completed, interrupted or failed

        Raises:
            NotFoundError: No such sequence
            AlreadyRunningError: Another run is in progress
        """
        sequence = self.store.get_sequence(name)
        if not sequence:
            raise NotFoundError(f"Sequence '{name}' not found.", {"sequence_name": name})

        marker = self._acquire(name, token or CancellationToken())
        total = len(sequence.actions)
        results: List[StepResult] = []
        completed = 0

        logger.info(f"Running sequence '{name}' ({total} steps)")
        try:
            for action in sequence.actions:
                if marker.token.cancelled:
                    marker.token.reset()
                    self.store.log_execution(
                        name, INTERRUPTED_TOOL_NAME, {"completed_steps": completed},
                        False, "User interrupted sequence"
                    )
                    logger.info(f"Sequence '{name}' interrupted after {completed}/{total} steps")
                    return SequenceRunResult(
                        sequence_name=name,
                        status=RunStatus.INTERRUPTED,
                        completed_steps=completed,
                        total_steps=total,
                        results=results,
                    )

                step = completed + 1
                params = substitute_variables(action.parameters, variables)
                unresolved = find_placeholders(params)
                if unresolved:
                    logger.debug(f"Step {step} has unresolved placeholders: {unresolved}")

                try:
                    message = await execute_action(self.driver, action.tool_name, params)
                except MemoryAgentError as e:
                    self.store.log_execution(name, action.tool_name, params, False, e.message)
                    results.append(StepResult(step, action.tool_name, params, False, e.message))
                    logger.warning(f"Sequence '{name}' failed at step {step} ({action.tool_name}): {e.message}")
                    return SequenceRunResult(
                        sequence_name=name,
                        status=RunStatus.FAILED,
                        completed_steps=completed,
                        total_steps=total,
                        results=results,
                        failed_step=step,
                        error_message=e.message,
                    )

                self.store.log_execution(name, action.tool_name, params, True)
                results.append(StepResult(step, action.tool_name, params, True, message))
                completed += 1

            logger.info(f"Sequence '{name}' completed successfully ({completed} steps)")
            return SequenceRunResult(
                sequence_name=name,
                status=RunStatus.COMPLETED,
                completed_steps=completed,
                total_steps=total,
                results=results,
            )
        finally:
            self._release(marker)

    def interrupt(self) -> str:
        """
        Request the running sequence to stop after its current step.

        Returns immediately without waiting for the run to stop.

        Returns:
            Name of the running sequence

        Raises:
            NotRunningError: Nothing is running
        """
        with self._lock:
            marker = self._running
            if not marker:
                raise NotRunningError("No sequence is currently running.")
            marker.token.cancel()

        logger.info(f"Interrupt requested for sequence '{marker.sequence_name}'")
        return marker.sequence_name

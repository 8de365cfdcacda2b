"""
Workflow coordinator: owns workflow identity, the per-workflow message log, the
state machine and the bounded history of finished workflows.

State only moves forward:
    created → analyzing → selecting → dispatched → completed
with failed reachable from any non-terminal state. The message kind drives each
transition. A degraded workflow (analysis or execution failed but the pipeline
carried on) still runs to its end and then finalizes as failed instead of completed.
"""

import logging
import threading
import uuid
from collections import deque
from datetime import datetime
from typing import Any

from agentrag.core import config
from agentrag.core.errors import InvalidTransitionError, ValidationError, WorkflowConflictError
from agentrag.schemas.workflow import (
    AgentId,
    AgentMessage,
    AnalysisResponse,
    ErrorBody,
    ExecutionOutcome,
    SelectionResponse,
    WorkflowRecord,
    WorkflowState,
    make_message,
)
from agentrag.services.memory_store import Clock, utc_now

logger = logging.getLogger(__name__)

STATE_ORDER: tuple[WorkflowState, ...] = (
    WorkflowState.CREATED,
    WorkflowState.ANALYZING,
    WorkflowState.SELECTING,
    WorkflowState.DISPATCHED,
    WorkflowState.COMPLETED,
)

# Message kind -> state it moves the workflow into (None: no transition)
_KIND_TARGETS: dict[str, WorkflowState | None] = {
    "analysis_request": WorkflowState.ANALYZING,
    "analysis_response": WorkflowState.SELECTING,
    "selection_request": None,
    "selection_response": WorkflowState.DISPATCHED,
    "execution_request": None,
}


def aggregate_confidence(analysis: float | None, selection: float | None) -> float:
    """0.6 * analysis + 0.4 * selection - 0.05, never below 0.1. A missing part counts as 0."""
    return round(max(0.1, 0.6 * (analysis or 0.0) + 0.4 * (selection or 0.0) - 0.05), 4)


def check_transition(current: WorkflowState, target: WorkflowState) -> None:
    """Raise InvalidTransitionError unless target is the next state, or failed from a non-terminal state."""
    if current in (WorkflowState.COMPLETED, WorkflowState.FAILED):
        raise InvalidTransitionError(f"Workflow already {current.value}; cannot move to {target.value}")
    if target == WorkflowState.FAILED:
        return
    if STATE_ORDER.index(target) != STATE_ORDER.index(current) + 1:
        raise InvalidTransitionError(f"Cannot move from {current.value} to {target.value}")


class WorkflowCoordinator:
    def __init__(
        self,
        history_capacity: int = config.WORKFLOW_HISTORY_CAPACITY,
        active_soft_limit: int = config.WORKFLOW_ACTIVE_SOFT_LIMIT,
        clock: Clock | None = None,
    ):
        if history_capacity <= 0 or active_soft_limit <= 0:
            raise ValueError("history_capacity and active_soft_limit must be positive")
        self.history_capacity = history_capacity
        self.active_soft_limit = active_soft_limit
        self._clock: Clock = clock or utc_now
        self._active: dict[str, WorkflowRecord] = {}
        self._history: deque[WorkflowRecord] = deque(maxlen=history_capacity)
        self._lock = threading.Lock()

    def start_workflow(self, workflow_id: str | None = None) -> str:
        """
        Register a new workflow and return its id (generated when not supplied).
        Past the active soft limit, the oldest active workflow is abandoned into history.
        Raises WorkflowConflictError if the id is already active.
        """
        if workflow_id is not None and not workflow_id.strip():
            raise ValidationError("workflow_id must not be blank")
        wid = workflow_id or f"wf-{uuid.uuid4().hex}"
        with self._lock:
            if wid in self._active:
                raise WorkflowConflictError(f"Workflow {wid!r} is already active")
            while len(self._active) >= self.active_soft_limit:
                oldest = next(iter(self._active.values()))
                logger.warning("[coordinator:start] active limit %d reached; abandoning %s", self.active_soft_limit, oldest.workflow_id)
                self._abandon_locked(oldest, "abandoned: active workflow limit reached")
            self._active[wid] = WorkflowRecord(workflow_id=wid, created_at=self._clock())
        logger.info("[coordinator:start] workflow=%s active=%d", wid, len(self._active))
        return wid

    def record_message(self, workflow_id: str, message: AgentMessage) -> WorkflowState:
        """
        Append a message to the workflow's log and apply the transition it implies.
        Returns the workflow's state afterwards. Messages for a workflow that already
        finished (e.g. abandoned while its pipeline was still running) are dropped.
        """
        with self._lock:
            record = self._active.get(workflow_id)
            if record is None:
                finished = self._find_history_locked(workflow_id)
                if finished is None:
                    raise ValidationError(f"Unknown workflow: {workflow_id!r}")
                logger.warning(
                    "[coordinator:record] workflow=%s already %s; dropping %s message",
                    workflow_id, finished.state.value, message.data.kind,
                )
                return finished.state

            body = message.data
            if isinstance(body, ErrorBody):
                record.messages.append(message)
                logger.info(
                    "[coordinator:record] workflow=%s error kind=%s fatal=%s msg=%s",
                    workflow_id, body.error_kind, body.fatal, body.message,
                )
                if body.fatal:
                    self._transition_locked(record, WorkflowState.FAILED)
                    self._finalize_locked(record)
                elif body.degrades_result:
                    record.degraded = True
                return record.state

            if isinstance(body, ExecutionOutcome):
                target = WorkflowState.COMPLETED if body.success and not record.degraded else WorkflowState.FAILED
                if record.state != WorkflowState.DISPATCHED:
                    raise InvalidTransitionError(f"Execution outcome received in state {record.state.value}")
            else:
                target = _KIND_TARGETS[body.kind]
            if target is not None and target != record.state:
                check_transition(record.state, target)
            record.messages.append(message)
            if target is not None and target != record.state:
                self._transition_locked(record, target)
            if record.is_terminal:
                self._finalize_locked(record)
            return record.state

    def fail_workflow(self, workflow_id: str, reason: str, error_kind: str = "aborted") -> WorkflowState:
        body = ErrorBody(error_kind=error_kind, message=reason, fatal=True)
        return self.record_message(workflow_id, make_message(AgentId.COORDINATOR, AgentId.COORDINATOR, body))

    def get_workflow_messages(self, workflow_id: str) -> list[AgentMessage]:
        record = self.get_workflow(workflow_id)
        return list(record.messages) if record else []

    def get_active_workflows(self) -> set[str]:
        with self._lock:
            return set(self._active)

    def get_workflow_history(self) -> list[WorkflowRecord]:
        """Finished workflows, oldest first."""
        with self._lock:
            return [r.model_copy(deep=True) for r in self._history]

    def get_workflow(self, workflow_id: str) -> WorkflowRecord | None:
        with self._lock:
            record = self._active.get(workflow_id) or self._find_history_locked(workflow_id)
            return record.model_copy(deep=True) if record else None

    def is_active(self, workflow_id: str) -> bool:
        with self._lock:
            return workflow_id in self._active

    def counts(self) -> tuple[int, int]:
        with self._lock:
            return len(self._active), len(self._history)

    def get_config(self) -> dict[str, Any]:
        return {
            "history_capacity": self.history_capacity,
            "active_soft_limit": self.active_soft_limit,
            "states": [s.value for s in STATE_ORDER] + [WorkflowState.FAILED.value],
        }

    # --- internals (callers hold self._lock) ---

    def _now(self) -> datetime:
        return self._clock()

    def _find_history_locked(self, workflow_id: str) -> WorkflowRecord | None:
        for record in reversed(self._history):
            if record.workflow_id == workflow_id:
                return record
        return None

    def _transition_locked(self, record: WorkflowRecord, target: WorkflowState) -> None:
        check_transition(record.state, target)
        logger.info("[coordinator:transition] workflow=%s %s -> %s", record.workflow_id, record.state.value, target.value)
        record.state = target
        record.state_history.append(target)

    def _abandon_locked(self, record: WorkflowRecord, reason: str) -> None:
        body = ErrorBody(error_kind="abandoned", message=reason, fatal=True)
        record.messages.append(make_message(AgentId.COORDINATOR, AgentId.COORDINATOR, body))
        self._transition_locked(record, WorkflowState.FAILED)
        self._finalize_locked(record)

    def _finalize_locked(self, record: WorkflowRecord) -> None:
        now = self._now()
        analysis = selection = None
        for message in record.messages:
            if isinstance(message.data, AnalysisResponse):
                analysis = message.data.profile.confidence
            elif isinstance(message.data, SelectionResponse):
                selection = message.data.selection.confidence
        record.confidence = aggregate_confidence(analysis, selection)
        record.completed_at = now
        record.total_latency_ms = round(max(0.0, (now - record.created_at).total_seconds() * 1000), 2)
        self._active.pop(record.workflow_id, None)
        self._history.append(record)
        logger.info(
            "[coordinator:finalize] workflow=%s state=%s confidence=%.3f latency_ms=%.0f messages=%d",
            record.workflow_id, record.state.value, record.confidence, record.total_latency_ms, len(record.messages),
        )

"""Run tracker accumulating executor callbacks into a queryable run state."""
from __future__ import annotations

import copy
import enum
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .errors import StateTransitionError

LOGGER = logging.getLogger("workflow.tracker")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class SimulationStatus(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class NodeStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILURE = "failure"


class LogLevel(str, enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class NodeState:
    """Per-step execution history within one run."""

    step_id: str
    status: NodeStatus = NodeStatus.PENDING
    attempt: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_transition_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stepId": self.step_id,
            "status": self.status.value,
            "attempt": self.attempt,
            "startedAt": _iso(self.started_at),
            "completedAt": _iso(self.completed_at),
            "lastTransitionId": self.last_transition_id,
        }


@dataclass
class LogEntry:
    id: str
    timestamp: datetime
    level: LogLevel
    message: str
    step_id: Optional[str] = None
    transition_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": _iso(self.timestamp),
            "level": self.level.value,
            "message": self.message,
            "stepId": self.step_id,
            "transitionId": self.transition_id,
            "details": self.details,
        }


@dataclass
class SimulationResult:
    """Summary attached to a run once it completes."""

    success: bool
    completed_steps: List[str] = field(default_factory=list)
    failed_steps: List[str] = field(default_factory=list)
    iterations: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "completedSteps": list(self.completed_steps),
            "failedSteps": list(self.failed_steps),
            "iterations": self.iterations,
        }


@dataclass
class SimulationSnapshot:
    id: str
    timestamp: datetime
    active_steps: List[str]
    completed_steps: List[str]
    failed_steps: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": _iso(self.timestamp),
            "activeSteps": list(self.active_steps),
            "completedSteps": list(self.completed_steps),
            "failedSteps": list(self.failed_steps),
        }


@dataclass
class SimulationState:
    """Queryable state of the current (or last) run."""

    workflow_id: Optional[str] = None
    status: SimulationStatus = SimulationStatus.IDLE
    current_step_id: Optional[str] = None
    active_step_ids: List[str] = field(default_factory=list)
    completed_step_ids: List[str] = field(default_factory=list)
    failed_step_ids: List[str] = field(default_factory=list)
    node_state: Dict[str, NodeState] = field(default_factory=dict)
    log: List[LogEntry] = field(default_factory=list)
    snapshots: List[SimulationSnapshot] = field(default_factory=list)
    result: Optional[SimulationResult] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (SimulationStatus.COMPLETED, SimulationStatus.ERROR)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflowId": self.workflow_id,
            "status": self.status.value,
            "currentStepId": self.current_step_id,
            "activeStepIds": list(self.active_step_ids),
            "completedStepIds": list(self.completed_step_ids),
            "failedStepIds": list(self.failed_step_ids),
            "nodeState": {k: v.to_dict() for k, v in self.node_state.items()},
            "log": [entry.to_dict() for entry in self.log],
            "snapshots": [s.to_dict() for s in self.snapshots],
            "result": self.result.to_dict() if self.result else None,
            "error": self.error,
            "startedAt": _iso(self.started_at),
            "finishedAt": _iso(self.finished_at),
        }


class RunTracker:
    """State machine for one simulation at a time.

    ``idle -> running -> completed | error``, with ``reset_simulation`` going
    back to ``idle`` from anywhere. Each mutator takes the internal lock, so
    the state is never observed half-updated. Callers are still expected to
    forward executor callbacks one at a time.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._state = SimulationState()

    @property
    def state(self) -> SimulationState:
        with self._lock:
            return copy.deepcopy(self._state)

    @property
    def status(self) -> SimulationStatus:
        with self._lock:
            return self._state.status

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return self._state.to_dict()

    def start_simulation(self, workflow_id: str, started_at: Optional[datetime] = None) -> None:
        with self._lock:
            self._state = SimulationState(
                workflow_id=workflow_id,
                status=SimulationStatus.RUNNING,
                started_at=started_at or utcnow(),
            )
        LOGGER.info("Simulation started for workflow %s", workflow_id)

    def step_started(self, step_id: str) -> None:
        with self._lock:
            self._require_running("step_started")
            state = self._state
            state.current_step_id = step_id
            node = self._ensure_node_state(step_id)
            node.status = NodeStatus.PROCESSING
            node.started_at = utcnow()
            node.attempt += 1
            if step_id not in state.active_step_ids:
                state.active_step_ids.append(step_id)

    def step_completed(self, step_id: str, transition_id: Optional[str] = None) -> None:
        with self._lock:
            self._require_running("step_completed")
            self._finish_step(step_id, NodeStatus.SUCCESS, transition_id, self._state.completed_step_ids)

    def step_failed(
        self,
        step_id: str,
        error: Optional[str] = None,
        transition_id: Optional[str] = None,
    ) -> None:
        with self._lock:
            self._require_running("step_failed")
            self._finish_step(step_id, NodeStatus.FAILURE, transition_id, self._state.failed_step_ids)
            if error is not None:
                self._state.error = error

    def append_log(
        self,
        level: LogLevel,
        message: str,
        step_id: Optional[str] = None,
        transition_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        timestamp: Optional[datetime] = None,
    ) -> LogEntry:
        entry = LogEntry(
            id=uuid.uuid4().hex,
            timestamp=timestamp or utcnow(),
            level=LogLevel(level),
            message=message,
            step_id=step_id,
            transition_id=transition_id,
            details=details,
        )
        with self._lock:
            self._require_mutable("append_log")
            self._state.log.append(entry)
        return entry

    def clear_log(self) -> None:
        with self._lock:
            self._require_mutable("clear_log")
            self._state.log = []

    def take_snapshot(self) -> SimulationSnapshot:
        with self._lock:
            self._require_mutable("take_snapshot")
            state = self._state
            snapshot = SimulationSnapshot(
                id=uuid.uuid4().hex,
                timestamp=utcnow(),
                active_steps=list(state.active_step_ids),
                completed_steps=list(state.completed_step_ids),
                failed_steps=list(state.failed_step_ids),
            )
            state.snapshots.append(snapshot)
            return snapshot

    def complete_simulation(
        self, result: SimulationResult, finished_at: Optional[datetime] = None
    ) -> None:
        with self._lock:
            self._require_running("complete_simulation", SimulationStatus.COMPLETED)
            self._finish_run(SimulationStatus.COMPLETED, finished_at)
            self._state.result = result
        LOGGER.info("Simulation of %s completed (success=%s)", self._state.workflow_id, result.success)

    def fail_simulation(self, message: str, finished_at: Optional[datetime] = None) -> None:
        with self._lock:
            self._require_running("fail_simulation", SimulationStatus.ERROR)
            self._finish_run(SimulationStatus.ERROR, finished_at)
            self._state.error = message
        LOGGER.warning("Simulation of %s failed: %s", self._state.workflow_id, message)

    def reset_simulation(self) -> None:
        with self._lock:
            self._state = SimulationState()

    def _ensure_node_state(self, step_id: str) -> NodeState:
        node = self._state.node_state.get(step_id)
        if node is None:
            node = NodeState(step_id=step_id)
            self._state.node_state[step_id] = node
        return node

    def _finish_step(
        self,
        step_id: str,
        status: NodeStatus,
        transition_id: Optional[str],
        bucket: List[str],
    ) -> None:
        node = self._ensure_node_state(step_id)
        node.status = status
        node.completed_at = utcnow()
        if transition_id is not None:
            node.last_transition_id = transition_id
        if step_id not in bucket:
            bucket.append(step_id)
        self._state.active_step_ids = [i for i in self._state.active_step_ids if i != step_id]

    def _finish_run(self, status: SimulationStatus, finished_at: Optional[datetime]) -> None:
        state = self._state
        state.status = status
        state.finished_at = finished_at or utcnow()
        state.current_step_id = None
        state.active_step_ids = []

    def _require_running(self, operation: str, target: SimulationStatus = SimulationStatus.RUNNING) -> None:
        if self._state.status != SimulationStatus.RUNNING:
            raise StateTransitionError(self._state.status.value, target.value, f"{operation} needs a running simulation")

    def _require_mutable(self, operation: str) -> None:
        if self._state.is_terminal:
            raise StateTransitionError(
                self._state.status.value, self._state.status.value, f"{operation} on a finished simulation"
            )

"""Custom exceptions for the workflow simulator."""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .models import Step


class WorkflowError(Exception):
    """Base class for workflow related errors."""


class WorkflowValidationError(WorkflowError):
    """Raised when a workflow definition or snapshot fails validation."""


class SimulationError(WorkflowError):
    """Base class for errors raised while simulating a workflow."""


class StructuralError(SimulationError):
    """Raised before any step runs when the graph itself cannot be walked."""


class CircuitDetectedError(StructuralError):
    """Raised when a transition id appears twice under the same source step."""

    def __init__(self, transition_id: str, source_step_id: str) -> None:
        self.transition_id = transition_id
        self.source_step_id = source_step_id
        super().__init__("Circuit was detected")


class StartStepUndefinedError(StructuralError):
    """Raised when the requested start step does not exist."""

    def __init__(self, step_id: str) -> None:
        self.step_id = step_id
        super().__init__("Start step undefined")


class BranchError(SimulationError):
    """Aborts a single branch; reported as a step failure on ``step``."""

    def __init__(self, message: str, step: "Step") -> None:
        self.step = step
        super().__init__(message)

    @property
    def step_id(self) -> str:
        return self.step.id


class TargetStepUndefinedError(BranchError):
    def __init__(self, target_step_id: str, step: "Step") -> None:
        self.target_step_id = target_step_id
        super().__init__(f"Target step is undefined {target_step_id}", step)


class MaxStepsExceededError(BranchError):
    def __init__(self, max_steps: int, step: "Step") -> None:
        self.max_steps = max_steps
        super().__init__("Max steps exceeded", step)


class DeadBranchError(BranchError):
    def __init__(self, step: "Step") -> None:
        super().__init__("Branch don't have end step", step)


class SimulationAlreadyRunningError(SimulationError):
    """Raised when a run is requested while another one is in progress."""


class StateTransitionError(WorkflowError):
    """Raised when the run tracker is asked for an illegal status change."""

    def __init__(self, current_state: str, target_state: str, message: str = None) -> None:
        self.current_state = current_state
        self.target_state = target_state
        msg = f"Invalid state transition from '{current_state}' to '{target_state}'"
        if message:
            msg += f": {message}"
        super().__init__(msg)

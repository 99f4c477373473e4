"""Drives one simulation run and mirrors it into a run tracker."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .config import SimulatorSettings
from .errors import SimulationAlreadyRunningError
from .executor import (
    ExecuteFn,
    GraphExecutor,
    SimulationCallbacks,
    SimulationTrace,
    random_execute,
)
from .models import Outcome, Step, Transition, Workflow
from .tracker import LogLevel, RunTracker, SimulationResult, SimulationStatus

LOGGER = logging.getLogger("workflow.simulator")


def summarize(tracker: RunTracker, trace: SimulationTrace) -> SimulationResult:
    """A run is successful only when no branch reported a failure."""
    state = tracker.state
    return SimulationResult(
        success=trace.succeeded,
        completed_steps=list(state.completed_step_ids),
        failed_steps=list(state.failed_step_ids),
        iterations=trace.processed,
    )


class SimulationRunner:
    """Boundary between the editor and the executor.

    Rejects overlapping runs, forwards every executor callback into the
    tracker with a matching log line, and settles the run as completed or
    failed.
    """

    def __init__(
        self,
        tracker: Optional[RunTracker] = None,
        executor: Optional[GraphExecutor] = None,
        execute_fn: Optional[ExecuteFn] = None,
        max_steps: Optional[int] = None,
    ) -> None:
        self.tracker = tracker or RunTracker()
        self.executor = executor or GraphExecutor()
        self.execute_fn = execute_fn
        self.max_steps = max_steps

    @classmethod
    def from_settings(cls, settings: SimulatorSettings) -> "SimulationRunner":
        executor = GraphExecutor(
            execute_fn=random_execute(settings.random_step_type, settings.failure_probability),
            max_steps=settings.max_steps,
        )
        return cls(executor=executor)

    @property
    def is_running(self) -> bool:
        return self.tracker.status == SimulationStatus.RUNNING

    async def run(
        self, workflow: Workflow, start_step_id: str, max_steps: Optional[int] = None
    ) -> SimulationResult:
        if self.is_running:
            raise SimulationAlreadyRunningError(
                f"A simulation of {self.tracker.state.workflow_id} is already running"
            )

        tracker = self.tracker
        tracker.start_simulation(workflow.id)
        try:
            trace = await self.executor.execute(
                workflow,
                start_step_id,
                callbacks=self._callbacks(start_step_id),
                execute_fn=self.execute_fn,
                max_steps=self.max_steps if max_steps is None else max_steps,
            )
        except asyncio.CancelledError as exc:
            self._abort(workflow, "Simulation cancelled", exc)
            raise
        except Exception as exc:
            LOGGER.error("Simulation of %s aborted: %s", workflow.id, exc, exc_info=True)
            self._abort(workflow, str(exc), exc)
            raise

        tracker.take_snapshot()
        result = summarize(tracker, trace)
        tracker.complete_simulation(result)
        return result

    def reset(self) -> None:
        self.tracker.reset_simulation()

    def _abort(self, workflow: Workflow, message: str, exc: BaseException) -> None:
        self.executor.events.log_run_failed(workflow.id, message, exc)
        self.tracker.append_log(LogLevel.ERROR, message, details={"type": type(exc).__name__})
        self.tracker.fail_simulation(message)

    def _callbacks(self, start_step_id: str) -> SimulationCallbacks:
        tracker = self.tracker

        def on_start(workflow: Workflow, step: Step) -> None:
            tracker.append_log(
                LogLevel.INFO, "Simulation started", details={"startStepId": start_step_id}
            )

        def on_step_start(step: Step, processed: int) -> None:
            tracker.step_started(step.id)
            tracker.append_log(
                LogLevel.INFO,
                f"Step {step.name or step.id} started",
                step_id=step.id,
                details={"processed": processed},
            )

        def on_step_complete(step: Step, outcome: Outcome) -> None:
            tracker.step_completed(step.id)
            level = LogLevel.SUCCESS if outcome == Outcome.SUCCESS else LogLevel.ERROR
            tracker.append_log(
                level, "Step finished", step_id=step.id, details={"outcome": outcome.value}
            )

        def on_step_failure(step_id: str, message: str) -> None:
            tracker.step_failed(step_id, error=message)
            tracker.append_log(LogLevel.ERROR, message, step_id=step_id)

        def on_transition(step: Step, transition: Transition, fired: bool) -> None:
            tracker.append_log(
                LogLevel.INFO,
                "Transition evaluated",
                step_id=step.id,
                transition_id=transition.id,
                details={
                    "target": transition.target_step_id,
                    "condition": transition.condition.value,
                    "fired": fired,
                },
            )

        return SimulationCallbacks(
            on_start=on_start,
            on_step_start=on_step_start,
            on_step_complete=on_step_complete,
            on_step_failure=on_step_failure,
            on_transition=on_transition,
        )

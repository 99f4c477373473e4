"""Asynchronous graph executor that test-runs a workflow step by step."""
from __future__ import annotations

import asyncio
import enum
import inspect
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Union

from .errors import (
    BranchError,
    CircuitDetectedError,
    DeadBranchError,
    MaxStepsExceededError,
    StartStepUndefinedError,
    TargetStepUndefinedError,
)
from .models import Outcome, Step, StepType, Transition, Workflow
from .monitoring import EventLogger, SimulationMetrics, StepTimer

LOGGER = logging.getLogger("workflow.simulator")

DEFAULT_MAX_STEPS = 10000

ExecuteResult = Union[Outcome, str]
ExecuteFn = Callable[[Step], Union[ExecuteResult, Awaitable[ExecuteResult]]]


def random_execute(
    step_type: StepType = StepType.EMAIL,
    failure_probability: float = 0.5,
    rng: Optional[random.Random] = None,
) -> ExecuteFn:
    """Build a stand-in execute function.

    Steps of ``step_type`` fail with ``failure_probability``; every other step
    succeeds.
    """
    source = rng or random.Random()

    def execute(step: Step) -> Outcome:
        if step.type == step_type and source.random() < failure_probability:
            return Outcome.FAILURE
        return Outcome.SUCCESS

    return execute


default_execute = random_execute()


class SimulationEventType(str, enum.Enum):
    RUN_STARTED = "run_started"
    STEP_STARTED = "step_started"
    STEP_COMPLETED = "step_completed"
    STEP_FAILED = "step_failed"
    TRANSITION_EVALUATED = "transition_evaluated"


@dataclass
class SimulationEvent:
    """One entry of a run trace."""

    type: SimulationEventType
    step_id: Optional[str] = None
    transition_id: Optional[str] = None
    target_step_id: Optional[str] = None
    outcome: Optional[Outcome] = None
    fired: Optional[bool] = None
    processed: Optional[int] = None
    message: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class StepFailure:
    step_id: str
    message: str


@dataclass
class SimulationCallbacks:
    """Observers notified synchronously as the run progresses."""

    on_start: Optional[Callable[[Workflow, Step], None]] = None
    on_step_start: Optional[Callable[[Step, int], None]] = None
    on_step_complete: Optional[Callable[[Step, Outcome], None]] = None
    on_step_failure: Optional[Callable[[str, str], None]] = None
    on_transition: Optional[Callable[[Step, Transition, bool], None]] = None


@dataclass
class SimulationTrace:
    """Everything observed during a single run."""

    workflow_id: str
    start_step_id: str
    events: List[SimulationEvent] = field(default_factory=list)
    visited: List[str] = field(default_factory=list)
    failures: List[StepFailure] = field(default_factory=list)
    processed: int = 0

    @property
    def succeeded(self) -> bool:
        return not self.failures

    def of_type(self, event_type: SimulationEventType) -> List[SimulationEvent]:
        return [e for e in self.events if e.type == event_type]

    def start_count(self, step_id: str) -> int:
        return sum(1 for e in self.of_type(SimulationEventType.STEP_STARTED) if e.step_id == step_id)

    def step_order(self) -> List[str]:
        return [e.step_id for e in self.of_type(SimulationEventType.STEP_STARTED)]


def index_transitions(workflow: Workflow) -> Dict[str, Dict[str, Transition]]:
    """Group transitions by source step, keyed by transition id in insertion order."""
    by_source: Dict[str, Dict[str, Transition]] = {}
    for transition in workflow.transitions:
        outgoing = by_source.setdefault(transition.source_step_id, {})
        if transition.id in outgoing:
            raise CircuitDetectedError(transition.id, transition.source_step_id)
        outgoing[transition.id] = transition
    return by_source


class _SimulationRun:
    """Per-run bookkeeping; never shared between runs."""

    def __init__(
        self,
        workflow: Workflow,
        start_step: Step,
        steps: Dict[str, Step],
        transitions: Dict[str, Dict[str, Transition]],
        callbacks: SimulationCallbacks,
        execute_fn: ExecuteFn,
        max_steps: int,
        events: EventLogger,
        metrics: SimulationMetrics,
        timer: StepTimer,
    ) -> None:
        self.workflow = workflow
        self.start_step = start_step
        self.steps = steps
        self.transitions = transitions
        self.callbacks = callbacks
        self.execute_fn = execute_fn
        self.max_steps = max_steps
        self.events = events
        self.metrics = metrics
        self.timer = timer
        self.trace = SimulationTrace(workflow_id=workflow.id, start_step_id=start_step.id)
        self._visited = set()

    async def run(self) -> SimulationTrace:
        self._record(SimulationEvent(SimulationEventType.RUN_STARTED, step_id=self.start_step.id))
        if self.callbacks.on_start:
            self.callbacks.on_start(self.workflow, self.start_step)
        await self.run_branch(self.start_step)
        return self.trace

    async def run_branch(self, step: Step) -> None:
        try:
            await self.process_step(step)
        except BranchError as exc:
            self._report_failure(exc)

    async def process_step(self, step: Step) -> None:
        processed = self.trace.processed
        self._record(
            SimulationEvent(SimulationEventType.STEP_STARTED, step_id=step.id, processed=processed)
        )
        if self.callbacks.on_step_start:
            self.callbacks.on_step_start(step, processed)

        self.trace.processed += 1
        if step.id not in self._visited:
            self._visited.add(step.id)
            self.trace.visited.append(step.id)

        if self.trace.processed > self.max_steps:
            raise MaxStepsExceededError(self.max_steps, step)

        if step.type == StepType.END:
            self._complete(step, Outcome.SUCCESS)
            return

        outcome = await self._execute(step)
        self._complete(step, outcome)

        branches: List[asyncio.Future] = []
        missing: Optional[TargetStepUndefinedError] = None
        for transition in self.transitions.get(step.id, {}).values():
            fired = transition.condition == outcome
            self._record(
                SimulationEvent(
                    SimulationEventType.TRANSITION_EVALUATED,
                    step_id=step.id,
                    transition_id=transition.id,
                    target_step_id=transition.target_step_id,
                    outcome=outcome,
                    fired=fired,
                )
            )
            if self.callbacks.on_transition:
                self.callbacks.on_transition(step, transition, fired)
            if not fired:
                continue
            target = self.steps.get(transition.target_step_id)
            if target is None:
                missing = TargetStepUndefinedError(transition.target_step_id, step)
                break
            branches.append(asyncio.ensure_future(self.run_branch(target)))

        if not branches and missing is None:
            raise DeadBranchError(step)

        await self._join(branches)
        if missing is not None:
            raise missing

    async def _execute(self, step: Step) -> Outcome:
        with self.timer.measure(self.workflow.id, step):
            result = self.execute_fn(step)
            if inspect.isawaitable(result):
                result = await result
        return Outcome(result)

    async def _join(self, branches: List[asyncio.Future]) -> None:
        if not branches:
            return
        try:
            await asyncio.gather(*branches)
        except BaseException:
            for branch in branches:
                branch.cancel()
            # collect every sibling's outcome before re-raising
            await asyncio.gather(*branches, return_exceptions=True)
            raise

    def _complete(self, step: Step, outcome: Outcome) -> None:
        self._record(SimulationEvent(SimulationEventType.STEP_COMPLETED, step_id=step.id, outcome=outcome))
        if self.callbacks.on_step_complete:
            self.callbacks.on_step_complete(step, outcome)

    def _report_failure(self, exc: BranchError) -> None:
        message = str(exc)
        self.trace.failures.append(StepFailure(step_id=exc.step_id, message=message))
        self._record(SimulationEvent(SimulationEventType.STEP_FAILED, step_id=exc.step_id, message=message))
        if self.callbacks.on_step_failure:
            self.callbacks.on_step_failure(exc.step_id, message)

    def _record(self, event: SimulationEvent) -> None:
        self.trace.events.append(event)
        self.metrics.record_event(self.workflow.id, event)
        self.events.log_event(self.workflow.id, event)


class GraphExecutor:
    """Walks a workflow graph from a start step, following outcome transitions.

    The executor keeps no state between runs, so a single instance can serve
    several concurrent runs.
    """

    def __init__(
        self,
        execute_fn: Optional[ExecuteFn] = None,
        max_steps: int = DEFAULT_MAX_STEPS,
        event_logger: Optional[EventLogger] = None,
        metrics: Optional[SimulationMetrics] = None,
        timer: Optional[StepTimer] = None,
    ) -> None:
        self.execute_fn = execute_fn or default_execute
        self.max_steps = max_steps
        self.events = event_logger or EventLogger()
        self.metrics = metrics or SimulationMetrics()
        self.timer = timer or StepTimer()

    async def execute(
        self,
        workflow: Workflow,
        start_step_id: str,
        callbacks: Optional[SimulationCallbacks] = None,
        execute_fn: Optional[ExecuteFn] = None,
        max_steps: Optional[int] = None,
    ) -> SimulationTrace:
        steps = {step.id: step for step in workflow.steps}
        transitions = index_transitions(workflow)
        start_step = steps.get(start_step_id)
        if start_step is None:
            raise StartStepUndefinedError(start_step_id)

        run = _SimulationRun(
            workflow=workflow,
            start_step=start_step,
            steps=steps,
            transitions=transitions,
            callbacks=callbacks or SimulationCallbacks(),
            execute_fn=execute_fn or self.execute_fn,
            max_steps=self.max_steps if max_steps is None else max_steps,
            events=self.events,
            metrics=self.metrics,
            timer=self.timer,
        )
        started = time.time()
        trace = await run.run()
        self.metrics.record_run(trace, time.time() - started)
        LOGGER.debug(
            "Simulation of %s finished after %d steps with %d failures",
            workflow.id,
            trace.processed,
            len(trace.failures),
        )
        return trace


async def simulate_workflow(
    workflow: Workflow,
    start_step_id: str,
    callbacks: Optional[SimulationCallbacks] = None,
    execute: ExecuteFn = default_execute,
    max_steps: int = DEFAULT_MAX_STEPS,
) -> SimulationTrace:
    """Run ``workflow`` once with a throwaway executor."""
    return await GraphExecutor(execute_fn=execute, max_steps=max_steps).execute(
        workflow, start_step_id, callbacks
    )

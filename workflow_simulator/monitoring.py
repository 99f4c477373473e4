"""Run statistics and structured logging fed by simulation events."""
from __future__ import annotations

import logging
import time
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional

from .models import Step

if TYPE_CHECKING:  # pragma: no cover
    from .executor import SimulationEvent, SimulationTrace


@dataclass
class RunStats:
    """Totals over every finished run of one workflow."""

    runs: int = 0
    events: Counter = field(default_factory=Counter)
    outcomes: Counter = field(default_factory=Counter)
    transitions_fired: int = 0
    step_failures: int = 0
    durations: List[float] = field(default_factory=list)


class SimulationMetrics:
    """In-memory counters keyed by workflow id."""

    def __init__(self) -> None:
        self._stats: Dict[str, RunStats] = {}

    def stats(self, workflow_id: str) -> RunStats:
        return self._stats.get(workflow_id) or RunStats()

    def record_event(self, workflow_id: str, event: "SimulationEvent") -> None:
        stats = self._stats.setdefault(workflow_id, RunStats())
        stats.events[event.type.value] += 1
        if event.type == "step_completed" and event.outcome is not None:
            stats.outcomes[event.outcome.value] += 1
        elif event.type == "step_failed":
            stats.step_failures += 1
        elif event.type == "transition_evaluated" and event.fired:
            stats.transitions_fired += 1

    def record_run(self, trace: "SimulationTrace", duration: float) -> None:
        stats = self._stats.setdefault(trace.workflow_id, RunStats())
        stats.runs += 1
        stats.durations.append(duration)


class StepTimer:
    """Times the pluggable action of each step as debug records."""

    def __init__(self) -> None:
        self.logger = logging.getLogger("workflow.simulator.steps")

    @contextmanager
    def measure(self, workflow_id: str, step: Step) -> Iterator[None]:
        started = time.perf_counter()
        try:
            yield
        finally:
            self.logger.debug(
                "Action of step %s took %.4fs",
                step.id,
                time.perf_counter() - started,
                extra={"workflow_id": workflow_id, "step_id": step.id, "step_type": step.type.value},
            )


class EventLogger:
    """Logs each simulation event with its fields as record attributes."""

    def __init__(self) -> None:
        self.logger = logging.getLogger("workflow.simulator.events")

    def log_event(self, workflow_id: str, event: "SimulationEvent") -> None:
        level = logging.WARNING if event.type == "step_failed" else logging.INFO
        self.logger.log(
            level,
            "%s %s",
            event.type.value,
            event.step_id or "-",
            extra={
                "event": event.type.value,
                "workflow_id": workflow_id,
                "step_id": event.step_id,
                "transition_id": event.transition_id,
                "outcome": event.outcome.value if event.outcome else None,
                "fired": event.fired,
                "processed": event.processed,
                "detail": event.message,
            },
        )

    def log_run_failed(self, workflow_id: str, message: str, error: Optional[BaseException] = None) -> None:
        self.logger.warning(
            "simulation_failed %s: %s",
            workflow_id,
            message,
            extra={
                "event": "simulation_failed",
                "workflow_id": workflow_id,
                "detail": message,
                "error_type": type(error).__name__ if error else None,
            },
        )

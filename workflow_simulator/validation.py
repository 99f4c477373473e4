"""Pre-flight checks over a workflow graph, independent of any run."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

from .models import StepType, Workflow


@dataclass
class ValidationIssue:
    id: str
    type: str  # "error" or "warning"
    message: str
    step_ids: List[str] = field(default_factory=list)
    transition_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "message": self.message,
            "stepIds": list(self.step_ids),
            "transitionIds": list(self.transition_ids),
        }


@dataclass
class ValidationReport:
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)
    cycles: List[List[str]] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def error(self, code: str, message: str, **ids: List[str]) -> None:
        self.errors.append(ValidationIssue(id=code, type="error", message=message, **ids))

    def warning(self, code: str, message: str, **ids: List[str]) -> None:
        self.warnings.append(ValidationIssue(id=code, type="warning", message=message, **ids))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [issue.to_dict() for issue in self.errors],
            "warnings": [issue.to_dict() for issue in self.warnings],
            "cycles": [
                {"id": f"cycle-{index}", "steps": list(cycle)}
                for index, cycle in enumerate(self.cycles, start=1)
            ],
        }


def validate_workflow(workflow: Workflow) -> ValidationReport:
    report = ValidationReport()
    _check_identifiers(workflow, report)
    _check_references(workflow, report)
    _check_shape(workflow, report)
    report.cycles = find_cycles(workflow)
    return report


def _check_identifiers(workflow: Workflow, report: ValidationReport) -> None:
    for step_id, count in Counter(s.id for s in workflow.steps).items():
        if count > 1:
            report.error("duplicate-step", f"Step id {step_id} is used {count} times", step_ids=[step_id])
    for transition_id, count in Counter(t.id for t in workflow.transitions).items():
        if count > 1:
            report.error(
                "duplicate-transition",
                f"Transition id {transition_id} is used {count} times",
                transition_ids=[transition_id],
            )


def _check_references(workflow: Workflow, report: ValidationReport) -> None:
    step_ids = {s.id for s in workflow.steps}
    for transition in workflow.transitions:
        if transition.source_step_id not in step_ids:
            report.error(
                "missing-source",
                f"Transition {transition.id} starts at unknown step {transition.source_step_id}",
                transition_ids=[transition.id],
            )
        if transition.target_step_id not in step_ids:
            report.error(
                "missing-target",
                f"Transition {transition.id} points to unknown step {transition.target_step_id}",
                transition_ids=[transition.id],
            )

    for step in workflow.steps:
        declared = list(step.transitions)
        actual = [t.id for t in workflow.outgoing(step.id)]
        if sorted(declared) != sorted(actual):
            report.warning(
                "transition-list-mismatch",
                f"Step {step.id} lists transitions {declared} but owns {actual}",
                step_ids=[step.id],
            )


def _check_shape(workflow: Workflow, report: ValidationReport) -> None:
    starts = workflow.start_steps()
    if not starts:
        report.error("no-start", "Workflow has no start step")
    if not any(s.type == StepType.END for s in workflow.steps):
        report.error("no-end", "Workflow has no end step")

    for start in starts:
        incoming = workflow.incoming(start.id)
        if incoming:
            report.warning(
                "start-has-incoming",
                f"Start step {start.id} has incoming transitions",
                step_ids=[start.id],
                transition_ids=[t.id for t in incoming],
            )

    for step in workflow.steps:
        if step.type != StepType.END and not workflow.outgoing(step.id):
            report.warning(
                "dead-end",
                f"Step {step.id} is not an end step and has no outgoing transitions",
                step_ids=[step.id],
            )

    reachable = _reachable(workflow, [s.id for s in starts])
    orphans = [s.id for s in workflow.steps if s.id not in reachable]
    if starts and orphans:
        report.warning("orphan-steps", f"Steps not reachable from a start step: {orphans}", step_ids=orphans)


def _reachable(workflow: Workflow, roots: List[str]) -> Set[str]:
    seen: Set[str] = set()
    stack = list(roots)
    while stack:
        step_id = stack.pop()
        if step_id in seen:
            continue
        seen.add(step_id)
        stack.extend(t.target_step_id for t in workflow.outgoing(step_id))
    return seen


def find_cycles(workflow: Workflow) -> List[List[str]]:
    """Return each distinct cycle once, as step ids in traversal order."""
    adjacency: Dict[str, List[str]] = {s.id: [] for s in workflow.steps}
    for transition in workflow.transitions:
        targets = adjacency.setdefault(transition.source_step_id, [])
        if transition.target_step_id not in targets:
            targets.append(transition.target_step_id)

    cycles: List[List[str]] = []
    seen_keys: Set[frozenset] = set()
    state: Dict[str, str] = {}

    def visit(step_id: str, stack: List[str]) -> None:
        mark = state.get(step_id)
        if mark == "temp":
            cycle = stack[stack.index(step_id):]
            key = frozenset(cycle)
            if key not in seen_keys:
                seen_keys.add(key)
                cycles.append(cycle)
            return
        if mark == "perm":
            return
        state[step_id] = "temp"
        for target in adjacency.get(step_id, []):
            visit(target, stack + [step_id])
        state[step_id] = "perm"

    for step_id in adjacency:
        if step_id not in state:
            visit(step_id, [])
    return cycles

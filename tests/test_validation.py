from pathlib import Path

from workflow_simulator.models import Outcome, Step, StepType, Transition
from workflow_simulator.snapshot import load_workflow_file
from workflow_simulator.validation import find_cycles, validate_workflow

EXAMPLE = Path(__file__).resolve().parent.parent / "examples" / "welcome_campaign.json"


def codes(issues):
    return [issue.id for issue in issues]


def test_valid_workflow(sample_workflow):
    report = validate_workflow(sample_workflow)

    assert report.valid
    assert report.errors == []
    assert report.warnings == []
    assert report.cycles == []


def test_example_workflow_is_valid():
    assert validate_workflow(load_workflow_file(EXAMPLE)).valid


def test_duplicate_identifiers(sample_workflow):
    sample_workflow.steps.append(Step(id="email1", type=StepType.SMS))
    sample_workflow.transitions.append(Transition("trans1", "email1", "end", Outcome.FAILURE))

    report = validate_workflow(sample_workflow)

    assert "duplicate-step" in codes(report.errors)
    assert "duplicate-transition" in codes(report.errors)
    assert not report.valid


def test_dangling_transitions(sample_workflow):
    sample_workflow.transitions[0].target_step_id = "nonexistent"
    sample_workflow.transitions.append(Transition("ghost", "nowhere", "end", Outcome.SUCCESS))

    report = validate_workflow(sample_workflow)

    assert codes(report.errors) == ["missing-target", "missing-source"]
    assert report.errors[0].transition_ids == ["trans1"]


def test_missing_start_and_end(sample_workflow):
    sample_workflow.steps[0].type = StepType.CUSTOM
    sample_workflow.steps[2].type = StepType.CUSTOM

    report = validate_workflow(sample_workflow)

    assert "no-start" in codes(report.errors)
    assert "no-end" in codes(report.errors)


def test_structural_warnings(sample_workflow):
    sample_workflow.steps.append(Step(id="orphan", type=StepType.CUSTOM))
    sample_workflow.transitions.append(Transition("back", "email1", "start", Outcome.FAILURE))

    report = validate_workflow(sample_workflow)

    assert report.valid
    assert codes(report.warnings) == [
        "transition-list-mismatch",
        "start-has-incoming",
        "dead-end",
        "orphan-steps",
    ]
    assert report.warnings[-1].step_ids == ["orphan"]


def test_cycles_are_reported_once(sample_workflow):
    sample_workflow.transitions.append(Transition("back", "email1", "start", Outcome.FAILURE))
    sample_workflow.transitions.append(Transition("back2", "email1", "start", Outcome.SUCCESS))

    cycles = find_cycles(sample_workflow)

    assert cycles == [["start", "email1"]]


def test_report_to_dict(sample_workflow):
    sample_workflow.transitions.append(Transition("back", "email1", "start", Outcome.FAILURE))

    payload = validate_workflow(sample_workflow).to_dict()

    assert payload["valid"] is True
    assert payload["cycles"] == [{"id": "cycle-1", "steps": ["start", "email1"]}]
    assert payload["warnings"][0]["stepIds"] == ["email1"]

"""
Pytest configuration and shared fixtures
"""
import pytest

from workflow_simulator.models import Outcome, Position, Step, StepType, Transition, Workflow


def _step(step_id, step_type, transitions=(), x=0):
    return Step(
        id=step_id,
        type=step_type,
        name=step_id.replace("_", " ").title(),
        transitions=list(transitions),
        position=Position(x=x, y=0),
    )


@pytest.fixture
def sample_workflow() -> Workflow:
    """start -> email1 -> end, success transitions only"""
    return Workflow(
        id="wf1",
        name="Test Workflow",
        description="Test",
        steps=[
            _step("start", StepType.START, ["trans1"]),
            _step("email1", StepType.EMAIL, ["trans2"], x=100),
            _step("end", StepType.END, x=200),
        ],
        transitions=[
            Transition("trans1", "start", "email1", Outcome.SUCCESS),
            Transition("trans2", "email1", "end", Outcome.SUCCESS),
        ],
        version="1.0",
        created_at="2023-01-01T00:00:00.000Z",
        updated_at="2023-01-01T00:00:00.000Z",
    )


@pytest.fixture
def failure_path_workflow() -> Workflow:
    """email1 has one success and one failure exit, each to its own end"""
    return Workflow(
        id="wf2",
        name="Workflow with Failure",
        description="Test",
        steps=[
            _step("start", StepType.START, ["trans1"]),
            _step("email1", StepType.EMAIL, ["trans2", "trans3"], x=100),
            _step("success_end", StepType.END, x=200),
            _step("failure_end", StepType.END, x=200),
        ],
        transitions=[
            Transition("trans1", "start", "email1", Outcome.SUCCESS),
            Transition("trans2", "email1", "success_end", Outcome.SUCCESS),
            Transition("trans3", "email1", "failure_end", Outcome.FAILURE),
        ],
    )


@pytest.fixture
def fan_out_workflow() -> Workflow:
    """sms1 fans out into two end steps on failure"""
    return Workflow(
        id="wf-fan-out",
        name="Fan out",
        description="",
        steps=[
            _step("start", StepType.START, ["t1"]),
            _step("sms1", StepType.SMS, ["t2", "t3", "t4"]),
            _step("end_ok", StepType.END),
            _step("end_a", StepType.END),
            _step("end_b", StepType.END),
        ],
        transitions=[
            Transition("t1", "start", "sms1", Outcome.SUCCESS),
            Transition("t2", "sms1", "end_ok", Outcome.SUCCESS),
            Transition("t3", "sms1", "end_a", Outcome.FAILURE),
            Transition("t4", "sms1", "end_b", Outcome.FAILURE),
        ],
    )


@pytest.fixture
def always_success():
    def execute(step):
        return Outcome.SUCCESS

    return execute


@pytest.fixture
def always_failure():
    def execute(step):
        return Outcome.FAILURE

    return execute

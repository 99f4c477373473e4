"""Workflow simulator: test-run marketing automation graphs step by step."""

__version__ = "1.0.0"

from .executor import GraphExecutor, SimulationCallbacks, SimulationTrace, simulate_workflow
from .models import Outcome, Step, StepType, Transition, Workflow
from .runner import SimulationRunner
from .snapshot import export_workflow, import_workflow
from .tracker import RunTracker
from .validation import validate_workflow

__all__ = [
    "GraphExecutor",
    "SimulationCallbacks",
    "SimulationTrace",
    "simulate_workflow",
    "Outcome",
    "Step",
    "StepType",
    "Transition",
    "Workflow",
    "SimulationRunner",
    "export_workflow",
    "import_workflow",
    "RunTracker",
    "validate_workflow",
]

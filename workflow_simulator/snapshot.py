"""Snapshot envelope ``{workflow, lastUpdated}`` import/export."""
from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from .errors import WorkflowValidationError
from .models import Outcome, Position, Step, StepType, Transition, Workflow

SUPPORTED_FORMATS = ("json", "yaml")


class PositionSchema(BaseModel):
    x: Union[int, float]
    y: Union[int, float]


class StepSchema(BaseModel):
    id: str
    type: Literal["start", "sms", "email", "custom", "end"]
    name: str
    position: Optional[PositionSchema] = None
    transitions: List[str]


class TransitionSchema(BaseModel):
    id: str
    sourceStepId: str
    targetStepId: str
    condition: Literal["success", "failure"]


class WorkflowSchema(BaseModel):
    id: str
    name: str = Field(..., min_length=1)
    description: str
    steps: List[StepSchema]
    transitions: List[TransitionSchema]
    version: Optional[str] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class SnapshotSchema(BaseModel):
    workflow: WorkflowSchema
    lastUpdated: str


@dataclass
class WorkflowSnapshot:
    workflow: Workflow
    last_updated: str


def _to_workflow(schema: WorkflowSchema) -> Workflow:
    steps = [
        Step(
            id=s.id,
            type=StepType(s.type),
            name=s.name,
            transitions=list(s.transitions),
            position=Position(x=s.position.x, y=s.position.y) if s.position else None,
        )
        for s in schema.steps
    ]
    transitions = [
        Transition(
            id=t.id,
            source_step_id=t.sourceStepId,
            target_step_id=t.targetStepId,
            condition=Outcome(t.condition),
        )
        for t in schema.transitions
    ]
    return Workflow(
        id=schema.id,
        name=schema.name,
        description=schema.description,
        steps=steps,
        transitions=transitions,
        version=schema.version,
        created_at=schema.createdAt,
        updated_at=schema.updatedAt,
    )


def parse_snapshot(payload: Any) -> WorkflowSnapshot:
    """Validate an already-decoded envelope."""
    try:
        snapshot = SnapshotSchema.model_validate(payload)
    except ValidationError as exc:
        raise WorkflowValidationError(f"Invalid workflow: {exc}") from exc
    return WorkflowSnapshot(workflow=_to_workflow(snapshot.workflow), last_updated=snapshot.lastUpdated)


def parse_workflow(payload: Any) -> Workflow:
    """Accept either an envelope or a bare workflow mapping."""
    if isinstance(payload, dict) and "workflow" in payload:
        return parse_snapshot(payload).workflow
    try:
        schema = WorkflowSchema.model_validate(payload)
    except ValidationError as exc:
        raise WorkflowValidationError(f"Invalid workflow: {exc}") from exc
    return _to_workflow(schema)


def _decode(text: str, fmt: str) -> Any:
    if fmt == "json":
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise WorkflowValidationError(f"Failed to parse JSON: {exc}") from exc
    if fmt == "yaml":
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise WorkflowValidationError(f"Failed to parse YAML: {exc}") from exc
    raise WorkflowValidationError(f"Unsupported snapshot format: {fmt}")


def import_workflow(text: str, fmt: str = "json") -> WorkflowSnapshot:
    return parse_snapshot(_decode(text, fmt))


def export_workflow(
    workflow: Workflow,
    pretty: bool = True,
    fmt: str = "json",
    last_updated: Optional[datetime] = None,
) -> str:
    payload: Dict[str, Any] = {
        "workflow": workflow.to_dict(),
        "lastUpdated": (last_updated or datetime.now(timezone.utc)).isoformat(),
    }
    if fmt == "json":
        return json.dumps(payload, ensure_ascii=False, indent=2 if pretty else None)
    if fmt == "yaml":
        return yaml.safe_dump(payload, allow_unicode=True, sort_keys=False)
    raise WorkflowValidationError(f"Unsupported snapshot format: {fmt}")


def format_for_path(path: Path) -> str:
    suffix = path.suffix.lower().lstrip(".")
    if suffix in ("yaml", "yml"):
        return "yaml"
    if suffix == "json":
        return "json"
    raise WorkflowValidationError(f"Unsupported file format: {suffix}")


def load_workflow_file(path: Union[str, Path]) -> Workflow:
    """Read a workflow or snapshot file, picking the format from its suffix."""
    file_path = Path(path)
    fmt = format_for_path(file_path)
    with open(file_path, "r", encoding="utf-8") as f:
        content = f.read()
    return parse_workflow(_decode(content, fmt))


def clone_workflow(workflow: Workflow) -> Workflow:
    return copy.deepcopy(workflow)

"""Core data models describing a marketing workflow graph."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class StepType(str, enum.Enum):
    """Kinds of steps a workflow can contain."""

    START = "start"
    SMS = "sms"
    EMAIL = "email"
    CUSTOM = "custom"
    END = "end"


class Outcome(str, enum.Enum):
    """Result of executing a step, also used as a transition condition."""

    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class Position:
    """Canvas coordinates of a step, kept only for round trips."""

    x: float = 0
    y: float = 0


@dataclass
class Step:
    """A node in the workflow graph."""

    id: str
    type: StepType
    name: str = ""
    transitions: List[str] = field(default_factory=list)
    position: Optional[Position] = None

    @property
    def is_end(self) -> bool:
        return self.type == StepType.END

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "name": self.name,
        }
        if self.position is not None:
            payload["position"] = {"x": self.position.x, "y": self.position.y}
        payload["transitions"] = list(self.transitions)
        return payload


@dataclass
class Transition:
    """Outcome-conditioned edge between two steps."""

    id: str
    source_step_id: str
    target_step_id: str
    condition: Outcome = Outcome.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sourceStepId": self.source_step_id,
            "targetStepId": self.target_step_id,
            "condition": self.condition.value,
        }


@dataclass
class Workflow:
    """Workflow definition as supplied by the editor."""

    id: str
    name: str
    description: str = ""
    steps: List[Step] = field(default_factory=list)
    transitions: List[Transition] = field(default_factory=list)
    version: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def get_step(self, step_id: str) -> Optional[Step]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def outgoing(self, step_id: str) -> List[Transition]:
        return [t for t in self.transitions if t.source_step_id == step_id]

    def incoming(self, step_id: str) -> List[Transition]:
        return [t for t in self.transitions if t.target_step_id == step_id]

    def start_steps(self) -> List[Step]:
        return [s for s in self.steps if s.type == StepType.START]

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "steps": [s.to_dict() for s in self.steps],
            "transitions": [t.to_dict() for t in self.transitions],
        }
        if self.version is not None:
            payload["version"] = self.version
        if self.created_at is not None:
            payload["createdAt"] = self.created_at
        if self.updated_at is not None:
            payload["updatedAt"] = self.updated_at
        return payload

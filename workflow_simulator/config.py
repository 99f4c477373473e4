"""Simulator settings loaded from a YAML file and the environment."""
from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from .executor import DEFAULT_MAX_STEPS
from .models import StepType

ENV_PREFIX = "WORKFLOW_SIM_"


class SimulatorSettings(BaseModel):
    """Top-level configuration model."""

    max_steps: int = Field(DEFAULT_MAX_STEPS, gt=0)
    random_step_type: StepType = StepType.EMAIL
    failure_probability: float = Field(0.5, ge=0.0, le=1.0)
    log_level: str = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 8000


def load_settings(path: Optional[str] = None) -> SimulatorSettings:
    """Load settings from YAML, then apply ``WORKFLOW_SIM_*`` overrides.

    Args:
        path: Optional path to the config file. Falls back to the
            WORKFLOW_SIM_CONFIG env variable or 'config.yaml' in the current
            directory.
    """
    config_path = path or os.getenv(f"{ENV_PREFIX}CONFIG", "config.yaml")
    data = {}
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

    for name in SimulatorSettings.model_fields:
        value = os.getenv(f"{ENV_PREFIX}{name.upper()}")
        if value is not None:
            data[name] = value
    return SimulatorSettings(**data)

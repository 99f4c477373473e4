"""HTTP API for test-running workflows from the editor."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .errors import SimulationAlreadyRunningError, WorkflowError
from .runner import SimulationRunner
from .snapshot import parse_workflow
from .validation import validate_workflow

LOGGER = logging.getLogger("workflow.api")


class SimulationRequest(BaseModel):
    workflow: Dict[str, Any]
    startStepId: Optional[str] = None
    maxSteps: Optional[int] = Field(None, gt=0)


class ValidationRequest(BaseModel):
    workflow: Dict[str, Any]


def create_app(runner: Optional[SimulationRunner] = None) -> FastAPI:
    runner = runner or SimulationRunner()
    app = FastAPI(title="Workflow Simulator", version="1.0.0")

    def load(payload: Dict[str, Any]):
        try:
            return parse_workflow(payload)
        except WorkflowError as exc:
            raise HTTPException(status_code=422, detail=str(exc))

    @app.post("/simulations")
    async def start_simulation(request: SimulationRequest) -> Dict[str, Any]:
        workflow = load(request.workflow)
        start_step_id = request.startStepId
        if start_step_id is None:
            starts = workflow.start_steps()
            if not starts:
                raise HTTPException(status_code=422, detail="Workflow has no start step")
            start_step_id = starts[0].id

        try:
            result = await runner.run(workflow, start_step_id, max_steps=request.maxSteps)
        except SimulationAlreadyRunningError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        except WorkflowError as exc:
            raise HTTPException(status_code=422, detail=str(exc))
        return {"result": result.to_dict(), "state": runner.tracker.to_dict()}

    @app.get("/simulations/current")
    def get_simulation() -> Dict[str, Any]:
        return runner.tracker.to_dict()

    @app.delete("/simulations/current")
    def reset_simulation() -> Dict[str, Any]:
        if runner.is_running:
            raise HTTPException(status_code=409, detail="Simulation is still running")
        runner.reset()
        return runner.tracker.to_dict()

    @app.post("/workflows/validate")
    def validate(request: ValidationRequest) -> Dict[str, Any]:
        return validate_workflow(load(request.workflow)).to_dict()

    return app

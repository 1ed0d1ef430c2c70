"""Workflow API routes."""

import json
from typing import Any

from pydantic import BaseModel, Field
from fastapi import APIRouter, HTTPException, Query

from ...app import Application
from ...errors import WorkflowDisabledError, WorkflowNotFoundError
from ...storage import dumps


class WorkflowSummary(BaseModel):
    """A registered workflow."""

    id: str
    name: str
    description: str
    enabled: bool
    steps: list[str]


class ExecuteWorkflowRequest(BaseModel):
    """Request model for running a workflow."""

    input: Any = None
    correlation_id: str | None = None
    access_level: str = "system"
    parameters: dict[str, Any] = Field(default_factory=dict)


def create_workflows_router(app: Application) -> APIRouter:
    """Create workflows router."""
    router = APIRouter(prefix="/api/workflows", tags=["workflows"])

    @router.get("", response_model=list[WorkflowSummary])
    async def list_workflows() -> list[dict]:
        """List registered workflows."""
        return [
            {
                "id": w.id,
                "name": w.name,
                "description": w.description,
                "enabled": w.enabled,
                "steps": [step.id for step in w.steps],
            }
            for w in app.broker.get_all_workflows()
        ]

    @router.post("/{workflow_id}/execute")
    async def execute_workflow(workflow_id: str, request: ExecuteWorkflowRequest) -> dict:
        """Run a workflow to completion and return its result."""
        try:
            result = await app.broker.execute_workflow(
                workflow_id,
                request.input,
                access_level=request.access_level,
                correlation_id=request.correlation_id,
                parameters=request.parameters,
            )
        except WorkflowNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except WorkflowDisabledError as e:
            raise HTTPException(status_code=409, detail=str(e))

        return json.loads(dumps(result.to_dict()))

    @router.get("/executions")
    async def get_history(limit: int = Query(100, ge=1, le=1000)) -> list[dict]:
        """Recent workflow executions, newest first."""
        return [json.loads(dumps(r.to_dict())) for r in app.broker.get_workflow_history(limit)]

    @router.get("/executions/{execution_id}")
    async def get_execution(execution_id: str) -> dict:
        """One workflow execution by id."""
        result = app.broker.get_workflow_execution(execution_id)
        if result is None:
            raise HTTPException(status_code=404, detail=f"Execution {execution_id} not found")
        return json.loads(dumps(result.to_dict()))

    return router

"""Agent API routes."""

import json
from typing import Any

from pydantic import BaseModel, Field
from fastapi import APIRouter, HTTPException

from ...app import Application
from ...errors import AgentNotFoundError
from ...storage import dumps


class AgentSummary(BaseModel):
    """Identity and current status of an agent."""

    id: str
    name: str
    capabilities: list[str]
    status: dict[str, Any] | None = None


class ExecuteRequest(BaseModel):
    """Request model for executing an agent operation."""

    operation: str = Field(..., min_length=1)
    data: Any = None
    correlation_id: str | None = None
    access_level: str = "system"
    parameters: dict[str, Any] = Field(default_factory=dict)


class ExecuteResponse(BaseModel):
    """Response model for an agent execution."""

    status: str
    message: str
    data: Any = None
    correlation_id: str | None = None
    metrics: dict[str, Any] = Field(default_factory=dict)


def create_agents_router(app: Application) -> APIRouter:
    """Create agents router."""
    router = APIRouter(prefix="/api/agents", tags=["agents"])

    @router.get("", response_model=list[AgentSummary])
    async def list_agents() -> list[dict]:
        """List registered agents with their status."""
        result = []
        for agent in app.manager.get_all_agents():
            status = app.manager.get_agent_status(agent.id)
            result.append(
                {
                    "id": agent.id,
                    "name": agent.name,
                    "capabilities": sorted(agent.capabilities),
                    "status": status.to_dict() if status else None,
                }
            )
        return result

    @router.get("/{agent_id}/status")
    async def get_agent_status(agent_id: str) -> dict:
        """Get the manager-owned status of one agent."""
        status = app.manager.get_agent_status(agent_id)
        if status is None:
            raise HTTPException(status_code=404, detail=f"Agent {agent_id} not found")
        return status.to_dict()

    @router.post("/{agent_id}/execute", response_model=ExecuteResponse)
    async def execute_agent(agent_id: str, request: ExecuteRequest) -> dict:
        """Run one operation on an agent through the broker."""
        try:
            response = await app.broker.execute_agent(
                agent_id,
                {"operation": request.operation, "data": request.data},
                access_level=request.access_level,
                correlation_id=request.correlation_id,
                parameters=request.parameters,
            )
        except AgentNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        return json.loads(dumps(response.to_dict()))

    return router

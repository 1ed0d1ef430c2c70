"""Control API routes."""

from typing import Any

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException

from ...app import Application


class StatusResponse(BaseModel):
    """Response model for status."""

    status: str


class CheckResponse(BaseModel):
    """Response model for a monitoring pass."""

    status: str
    agents: list[dict[str, Any]]


def create_control_router(app: Application) -> APIRouter:
    """Create control router."""
    router = APIRouter(prefix="/api/control", tags=["control"])

    @router.post("/health-check", response_model=CheckResponse)
    async def run_health_check() -> dict:
        """Run one health-check pass now."""
        try:
            await app.manager.run_health_checks()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return {
            "status": "ok",
            "agents": [s.to_dict() for s in app.manager.get_all_agent_status()],
        }

    @router.post("/performance-check", response_model=CheckResponse)
    async def run_performance_check() -> dict:
        """Run one performance-check pass now."""
        try:
            await app.manager.run_performance_checks()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return {
            "status": "ok",
            "agents": [s.to_dict() for s in app.manager.get_all_agent_status()],
        }

    @router.get("/health")
    async def get_health_report() -> dict:
        """Current health report of every managed agent."""
        return app.manager.get_health_report().to_dict()

    @router.post("/reset", response_model=StatusResponse)
    async def reset_system() -> dict:
        """Reset system data between test runs."""
        try:
            await app.reset()
            return {"status": "ok"}
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    return router

"""FastAPI application setup."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..app import Application
from .routes import agents, control, observability, workflows


def create_fastapi_app(application: Application | None = None) -> FastAPI:
    """Create and configure the FastAPI application around one Application."""
    application = application or Application()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan."""
        await application.start()
        yield
        await application.stop()

    fastapi_app = FastAPI(
        title="Agent Orchestration API",
        description="Operational API for the agent orchestration core",
        version="0.1.0",
        lifespan=lifespan,
    )
    fastapi_app.state.application = application

    # Enable CORS
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:5174"],  # Vite default
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    fastapi_app.include_router(agents.create_agents_router(application))
    fastapi_app.include_router(observability.create_observability_router(application))
    fastapi_app.include_router(control.create_control_router(application))
    fastapi_app.include_router(workflows.create_workflows_router(application))

    return fastapi_app

"""Main entry point for the agent orchestration host."""

import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from orchestration.api import create_fastapi_app
from orchestration.app import Application
from orchestration.config_store import ConfigStore
from orchestration.logging_config import setup_logging


def main():
    """Run the application."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")

    config_store = ConfigStore.from_env()
    setup_logging(config_store.config.logger)

    # Get configuration from environment
    api_host = os.getenv("API_HOST", "localhost")
    api_port = int(os.getenv("API_PORT", "8000"))

    # Create FastAPI app
    app = create_fastapi_app(Application(config_store))

    # Run with uvicorn
    uvicorn.run(
        app,
        host=api_host,
        port=api_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()

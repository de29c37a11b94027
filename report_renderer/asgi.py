"""ASGI entry point for uvicorn with hot reload support.

Usage:
    uvicorn report_renderer.asgi:app --reload --host 0.0.0.0 --port 3000
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from report_renderer.config import RendererConfig
from report_renderer.logging_filters import install_uvicorn_access_log_filters
from report_renderer.main import Application

# Global application instance for lifespan management
_application: Application | None = None


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifespan for ASGI server."""
    global _application

    config = RendererConfig.from_json_file()
    install_uvicorn_access_log_filters()
    _application = Application(config)
    _application.setup()
    _application.register_routes(fastapi_app)

    yield

    await _application.shutdown()
    _application = None


app = FastAPI(
    title="Report Renderer",
    description="Render Lighthouse reports with the engine version that produced them",
    version="1.0.0",
    lifespan=lifespan,
)

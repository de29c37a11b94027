"""Application entry point and bootstrap.

This module initializes all application components, wires dependencies,
and provides the main entry point for running the report server.
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from report_renderer.config import RendererConfig
from report_renderer.logging_filters import install_uvicorn_access_log_filters
from report_renderer.models.domain import HealthResponse
from report_renderer.routers import create_report_router
from report_renderer.services import (
    DocumentCache,
    InstallationCoordinator,
    LayoutResolver,
    NpmInstaller,
    PackageStore,
    RenderPipeline,
    ReportFetcher,
    ReportService,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

# Suppress verbose request logs from the HTTP and AWS clients
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("botocore").setLevel(logging.WARNING)
logging.getLogger("boto3").setLevel(logging.WARNING)


class Application:
    """Main application container.

    Owns the process-wide state (installation registry, document cache) and
    hands the same instances to every request handler.
    """

    def __init__(self, config: RendererConfig) -> None:
        """Initialize the application with configuration.

        Args:
            config: Application configuration.
        """
        self.config = config
        self.fastapi_app: FastAPI | None = None

        # Shared state
        self.package_store: PackageStore | None = None
        self.document_cache: DocumentCache | None = None
        self.coordinator: InstallationCoordinator | None = None

        # Services
        self.fetcher: ReportFetcher | None = None
        self.layout_resolver: LayoutResolver | None = None
        self.render_pipeline: RenderPipeline | None = None
        self.report_service: ReportService | None = None

    def setup(self) -> None:
        """Initialize all application components."""
        logger.info("Setting up application components...")

        if not self.config.app_secret:
            logger.warning("app_secret is not configured; /report/<token> requests will fail")
        if self.config.s3_enabled:
            logger.info("Object storage enabled (region=%s)", self.config.s3_region)

        install_root = self.config.install_root_path
        self.package_store = PackageStore(install_root, self.config.engine_package)
        self.document_cache = DocumentCache()
        self.coordinator = InstallationCoordinator(
            self.package_store,
            NpmInstaller(self.config.npm_executable, install_root),
            start_delay_seconds=self.config.install_start_delay_seconds,
        )
        logger.info(
            "Engine packages under %s (%d versioned aliases installed)",
            self.package_store.modules_dir,
            len(self.package_store.installed_aliases()),
        )

        self.fetcher = ReportFetcher(self.config)
        self.layout_resolver = LayoutResolver(
            self.package_store, node_executable=self.config.node_executable
        )
        self.render_pipeline = RenderPipeline()
        self.report_service = ReportService(
            self.config,
            coordinator=self.coordinator,
            fetcher=self.fetcher,
            cache=self.document_cache,
            resolver=self.layout_resolver,
            pipeline=self.render_pipeline,
        )
        logger.info("Services initialized")

    def register_routes(self, fastapi_app: FastAPI) -> None:
        """Attach the report router and health endpoint to ``fastapi_app``."""
        fastapi_app.include_router(
            create_report_router(
                self.report_service,
                self.coordinator,
                self.document_cache,
                poll_delay_seconds=self.config.poll_delay_seconds,
            )
        )

        @fastapi_app.get("/health")
        async def health_check() -> dict:
            """Health check endpoint."""
            return self.health().to_dict(mode="json")

    def create_fastapi_app(self) -> FastAPI:
        """Create the FastAPI application with all routes registered."""

        @asynccontextmanager
        async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
            yield
            await self.shutdown()

        self.fastapi_app = FastAPI(
            title="Report Renderer",
            description="Render Lighthouse reports with the engine version that produced them",
            version="1.0.0",
            lifespan=lifespan,
        )
        self.register_routes(self.fastapi_app)
        return self.fastapi_app

    def health(self) -> HealthResponse:
        return HealthResponse(
            status="healthy",
            running_installs=self.coordinator.running_versions(),
            cached_documents=len(self.document_cache),
            installed_aliases=self.package_store.installed_aliases(),
        )

    async def shutdown(self) -> None:
        """Gracefully shutdown application components.

        Running installs are not cancelled; npm is left to finish.
        """
        logger.info("Initiating graceful shutdown...")

        if self.coordinator:
            running = self.coordinator.running_versions()
            if running:
                logger.warning("Shutting down with installs still running: %s", running)

        if self.fetcher:
            await self.fetcher.aclose()
            logger.info("HTTP client closed")

        logger.info("Graceful shutdown complete")


def create_app(config: RendererConfig | None = None) -> Application:
    """Create and setup the application.

    Args:
        config: Optional configuration. If not provided, loads from
                config.json/secrets.yml with environment variable overrides.

    Returns:
        Initialized Application instance with its FastAPI app created.
    """
    if config is None:
        config = RendererConfig.from_json_file()

    application = Application(config)
    application.setup()
    application.create_fastapi_app()
    return application


async def main(reload: bool = False) -> None:
    """Main entry point for running the report server.

    Args:
        reload: Enable hot reload during development.
    """
    import uvicorn

    logger.info("Starting report renderer...")

    config = RendererConfig.from_json_file()
    application = create_app(config)

    uvicorn_config = uvicorn.Config(
        application.fastapi_app,
        host=config.api_host,
        port=config.api_port,
        log_level="info",
        reload=reload,
    )

    # Ensure Uvicorn logging is configured, then suppress polling access logs.
    uvicorn_config.load()
    install_uvicorn_access_log_filters()

    server = uvicorn.Server(uvicorn_config)

    logger.info("Report server running on http://%s:%d", config.api_host, config.api_port)
    try:
        await server.serve()
    except Exception as e:
        logger.exception("Application error: %s", e)
        raise


def run() -> None:
    """Console script entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Run the report renderer")
    parser.add_argument("--reload", action="store_true", help="Enable hot reload")
    args = parser.parse_args()

    asyncio.run(main(reload=args.reload))


if __name__ == "__main__":
    run()

"""Report rendering orchestration.

Ties together token decryption, the document cache, the installation
coordinator, layout resolution and the render pipeline. Routers delegate all
business logic here.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from report_renderer.config import RendererConfig
from report_renderer.errors import ResolutionError, ValidationError
from report_renderer.models.domain import RenderOutcome, ReportDocument
from report_renderer.services.document_cache import DocumentCache
from report_renderer.services.installation_service import InstallationCoordinator
from report_renderer.services.layout_resolver import LayoutResolver
from report_renderer.services.render_pipeline import RenderPipeline
from report_renderer.services.report_fetcher import ReportFetcher
from report_renderer.services.token_cipher import decrypt_token

logger = logging.getLogger(__name__)


class ReportService:
    """Loads report documents and renders them with their engine version."""

    def __init__(
        self,
        config: RendererConfig,
        *,
        coordinator: InstallationCoordinator,
        fetcher: ReportFetcher,
        cache: DocumentCache,
        resolver: LayoutResolver,
        pipeline: RenderPipeline,
    ) -> None:
        self._config = config
        self._coordinator = coordinator
        self._fetcher = fetcher
        self._cache = cache
        self._resolver = resolver
        self._pipeline = pipeline

    async def load_local(self) -> ReportDocument:
        """Read the configured local report file.

        Raises:
            OSError: If the file cannot be read.
            ValidationError: If it is not a report.
        """
        path = self._config.local_report_file
        raw = await asyncio.to_thread(path.read_bytes)
        try:
            payload = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValidationError(f"Invalid report: {path.name} is not JSON ({e})") from e
        return ReportDocument.from_payload(payload)

    async def load_remote(self, token: str) -> ReportDocument:
        """Decrypt ``token`` and return its document, fetching on cache miss."""
        url = decrypt_token(token, self._config.app_secret)

        document = self._cache.get(url)
        if document is not None:
            logger.debug("Document cache hit for token %s...", token[:8])
            return document

        document = await self._fetcher.fetch(url)
        self._cache.put(url, document)
        return document

    async def render(self, document: ReportDocument) -> RenderOutcome:
        """Render ``document`` or report that its engine is still installing."""
        status = await self._coordinator.ensure_installed(document.engine_version)
        if not status.ready:
            return RenderOutcome(pending_version=document.engine_version)

        generator = await self._resolver.resolve_entry_point(status.alias)
        html = await self._pipeline.render(document, generator)
        return RenderOutcome(html=html)

    async def active_version(self) -> str | None:
        """Engine version that serves assets: local report, else latest cached."""
        try:
            return (await self.load_local()).engine_version
        except (OSError, ValidationError):
            latest = self._cache.latest()
            return latest.engine_version if latest is not None else None

    async def find_asset(self, filename: str) -> Path:
        """Resolve an asset file for the active engine version.

        Raises:
            ResolutionError: If no version is active or the file is missing.
        """
        version = await self.active_version()
        if version is None:
            raise ResolutionError("No engine version available for asset serving")
        return await self._resolver.find_asset(version, filename)

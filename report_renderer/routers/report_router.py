"""Report API endpoints.

Routers handle HTTP concerns only - no business logic.
Rendering is delegated to ReportService, installation bookkeeping to
InstallationCoordinator.
"""

import html
import logging
from typing import TYPE_CHECKING
from urllib.parse import quote

from fastapi import APIRouter
from fastapi.responses import (
    FileResponse,
    HTMLResponse,
    PlainTextResponse,
    RedirectResponse,
    Response,
)

from report_renderer.errors import FetchError, RendererError, ResolutionError

if TYPE_CHECKING:
    from report_renderer.services.document_cache import DocumentCache
    from report_renderer.services.installation_service import InstallationCoordinator
    from report_renderer.services.report_service import ReportService

logger = logging.getLogger(__name__)

_LOADING_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>Installing Lighthouse v{version}...</title>
  <style>
    body {{
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
      display: flex;
      justify-content: center;
      align-items: center;
      height: 100vh;
      margin: 0;
      background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
      color: white;
    }}
    .loading-container {{
      text-align: center;
      padding: 2rem;
      background: rgba(255, 255, 255, 0.1);
      border-radius: 12px;
    }}
    .spinner {{
      width: 50px;
      height: 50px;
      border: 4px solid rgba(255, 255, 255, 0.3);
      border-top: 4px solid white;
      border-radius: 50%;
      animation: spin 1s linear infinite;
      margin: 0 auto 1rem;
    }}
    @keyframes spin {{ 0% {{ transform: rotate(0deg); }} 100% {{ transform: rotate(360deg); }} }}
    .version {{ font-family: 'Monaco', 'Menlo', monospace; }}
  </style>
  <script>
    setTimeout(() => {{
      const returnTo = new URLSearchParams(window.location.search).get('returnTo');
      const sameSite = returnTo
        && returnTo.startsWith('/')
        && !returnTo.startsWith('//')
        && !returnTo.startsWith('/\\\\');
      window.location.href = sameSite ? returnTo : '/';
    }}, {delay_ms});
  </script>
</head>
<body>
  <div class="loading-container">
    <div class="spinner"></div>
    <h1>Installing Lighthouse</h1>
    <p>Installing version <span class="version">v{version}</span>...</p>
    <p>This may take a few moments</p>
  </div>
</body>
</html>
"""


def render_loading_page(version: str, *, poll_delay_seconds: float = 2.0) -> str:
    """Auto-refreshing page shown while an engine version installs."""
    return _LOADING_PAGE.format(
        version=html.escape(version),
        delay_ms=int(poll_delay_seconds * 1000),
    )


def _loading_redirect(version: str, return_to: str | None = None) -> RedirectResponse:
    url = f"/loading/{quote(version, safe='')}"
    if return_to:
        url += f"?returnTo={quote(return_to, safe='')}"
    return RedirectResponse(url, status_code=302)


def _error_response(prefix: str, error: Exception) -> PlainTextResponse:
    status_code = 502 if isinstance(error, FetchError) else 500
    return PlainTextResponse(f"{prefix}: {error}", status_code=status_code)


def create_report_router(
    report_service: "ReportService",
    coordinator: "InstallationCoordinator",
    cache: "DocumentCache",
    *,
    poll_delay_seconds: float = 2.0,
) -> APIRouter:
    """Create report router with injected services.

    Args:
        report_service: Loads and renders report documents.
        coordinator: Installation registry, cleared by the admin route.
        cache: Document cache, cleared by the admin route.
        poll_delay_seconds: Refresh delay of the loading page.

    Returns:
        APIRouter with report, loading, asset and admin endpoints.
    """
    router = APIRouter(tags=["reports"])

    @router.get("/", response_class=HTMLResponse)
    async def render_local_report() -> Response:
        """Render the local report.json with its engine version."""
        try:
            document = await report_service.load_local()
            outcome = await report_service.render(document)
        except (RendererError, OSError) as e:
            logger.error("Local report failed: %s", e)
            return _error_response("Error reading or rendering report", e)

        if outcome.pending:
            return _loading_redirect(outcome.pending_version)
        return HTMLResponse(outcome.html)

    @router.get("/report/{token}", response_class=HTMLResponse)
    async def render_remote_report(token: str) -> Response:
        """Render the remote report identified by an encrypted token."""
        try:
            document = await report_service.load_remote(token)
            outcome = await report_service.render(document)
        except RendererError as e:
            logger.error("Remote report %s... failed: %s", token[:8], e)
            return _error_response("Error processing report", e)

        if outcome.pending:
            return _loading_redirect(outcome.pending_version, f"/report/{token}")
        return HTMLResponse(outcome.html)

    @router.get("/loading/{version}", response_class=HTMLResponse)
    async def loading(version: str) -> HTMLResponse:
        """Polling page; the browser script re-requests returnTo after a delay."""
        return HTMLResponse(
            render_loading_page(version, poll_delay_seconds=poll_delay_seconds)
        )

    @router.get("/assets/{filename}")
    async def serve_asset(filename: str) -> Response:
        """Serve an engine asset for the active report version."""
        try:
            path = await report_service.find_asset(filename)
        except ResolutionError as e:
            logger.debug("Asset lookup failed: %s", e)
            return PlainTextResponse("Asset not found", status_code=404)
        return FileResponse(path)

    @router.get("/clear-installations", response_class=HTMLResponse)
    async def clear_installations() -> HTMLResponse:
        """Debug route to clear stuck installation tracking."""
        coordinator.clear()
        return HTMLResponse('Cleared all ongoing installations. <a href="/">Go back</a>')

    @router.get("/clear-cache", response_class=HTMLResponse)
    async def clear_cache() -> HTMLResponse:
        """Drop every cached remote document."""
        removed = cache.clear()
        logger.warning("Cleared %d cached document(s)", removed)
        return HTMLResponse(
            f'Cleared {removed} cached report(s). <a href="/">Go back</a>'
        )

    return router

"""Render pipeline: generate report HTML and route assets through the server."""

import logging
import re

from report_renderer.models.domain import ReportDocument
from report_renderer.services.report_generator import ReportGenerator

logger = logging.getLogger(__name__)

ASSET_ROUTE_PREFIX = "/assets/"

_SCRIPT_SRC = re.compile(r'src="([^"]*\.(?:js|css))"')
_STYLESHEET_HREF = re.compile(r'href="([^"]*\.css)"')


def rewrite_asset_references(html: str, prefix: str = ASSET_ROUTE_PREFIX) -> str:
    """Point script and stylesheet references at the asset route.

    Only the filename of each reference is kept, so rewriting an already
    rewritten page leaves it unchanged.
    """

    def _route(attr: str):
        def _replace(match: re.Match) -> str:
            filename = match.group(1).rsplit("/", 1)[-1]
            return f'{attr}="{prefix}{filename}"'

        return _replace

    html = _SCRIPT_SRC.sub(_route("src"), html)
    return _STYLESHEET_HREF.sub(_route("href"), html)


class RenderPipeline:
    """Composes a report document with a resolved generator."""

    def __init__(self, asset_prefix: str = ASSET_ROUTE_PREFIX) -> None:
        self._asset_prefix = asset_prefix

    async def render(self, document: ReportDocument, generator: ReportGenerator) -> str:
        html = await generator.generate_html(document)
        logger.info(
            "Rendered report for engine v%s (%d bytes)", document.engine_version, len(html)
        )
        return rewrite_asset_references(html, self._asset_prefix)

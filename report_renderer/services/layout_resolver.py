"""Locate the report generator and assets inside installed engine packages.

The engine has moved its report generator around across releases. Known
layouts are listed in ``LAYOUTS``; the major version encoded in an alias picks
the layout to try first, then the remaining layouts are probed in order.
Supporting a new layout means appending to ``LAYOUTS``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from report_renderer.errors import ResolutionError
from report_renderer.services.package_store import PackageStore
from report_renderer.services.report_generator import NodeReportGenerator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Layout:
    """One historical arrangement of the engine package."""

    name: str
    entry_point: str
    asset_dir: str
    min_major: int | None = None
    max_major: int | None = None

    def covers(self, major: int) -> bool:
        if self.min_major is not None and major < self.min_major:
            return False
        if self.max_major is not None and major > self.max_major:
            return False
        return True


LAYOUTS: tuple[Layout, ...] = (
    Layout(
        name="modern",
        entry_point="report/generator/report-generator.js",
        asset_dir="report/assets",
        min_major=8,
    ),
    Layout(
        name="legacy",
        entry_point="lighthouse-core/report/report-generator.js",
        asset_dir="lighthouse-core/report/assets",
        min_major=6,
        max_major=7,
    ),
    Layout(
        name="v2",
        entry_point="lighthouse-core/report/v2/report-generator.js",
        asset_dir="lighthouse-core/report/v2/renderer",
        max_major=5,
    ),
)


def _unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


class LayoutResolver:
    """Resolves generator entry points and asset directories for aliases."""

    def __init__(
        self,
        store: PackageStore,
        *,
        node_executable: str = "node",
        layouts: tuple[Layout, ...] = LAYOUTS,
    ) -> None:
        self._store = store
        self._node_executable = node_executable
        self._layouts = layouts

    def candidate_layouts(self, alias: str) -> list[Layout]:
        """Order layouts for ``alias``: the version-table match first."""
        version = self._store.version_of(alias)
        try:
            major = int(version.split(".")[0]) if version else None
        except ValueError:
            major = None

        if major is None:
            return list(self._layouts)

        preferred = [layout for layout in self._layouts if layout.covers(major)]
        rest = [layout for layout in self._layouts if layout not in preferred]
        return preferred + rest

    async def resolve_entry_point(self, alias: str) -> NodeReportGenerator:
        """Find the report generator for ``alias``, else the default package.

        Raises:
            ResolutionError: If no layout matches in either package.
        """
        for candidate in _unique([alias, self._store.default_alias]):
            found = await asyncio.to_thread(self._probe, candidate, "entry_point")
            if found is not None:
                layout, path = found
                if candidate != alias:
                    logger.warning(
                        "No report generator in %s; using %s (%s layout)",
                        alias,
                        candidate,
                        layout.name,
                    )
                return NodeReportGenerator(
                    entry_point=path,
                    alias=candidate,
                    layout=layout.name,
                    node_executable=self._node_executable,
                )
        raise ResolutionError(f"Could not find report generator for {alias}")

    async def resolve_asset_dir(self, alias: str) -> Path:
        """Find the asset directory for ``alias``, else the default package.

        Raises:
            ResolutionError: If no layout matches in either package.
        """
        for candidate in _unique([alias, self._store.default_alias]):
            found = await asyncio.to_thread(self._probe, candidate, "asset_dir")
            if found is not None:
                return found[1]
        raise ResolutionError(f"Could not find asset directory for {alias}")

    async def find_asset(self, version: str, filename: str) -> Path:
        """Find ``filename`` for ``version``: exact, major, then default package.

        Raises:
            ResolutionError: If the filename is unsafe or found nowhere.
        """
        if not filename or "/" in filename or "\\" in filename or ".." in filename:
            raise ResolutionError(f"Invalid asset name: {filename!r}")

        aliases = _unique(
            [
                self._store.exact_alias(version),
                self._store.major_alias(version),
                self._store.default_alias,
            ]
        )
        for alias in aliases:
            path = await asyncio.to_thread(self._probe_asset, alias, filename)
            if path is not None:
                return path
        raise ResolutionError(f"Asset not found: {filename}")

    def _probe(self, alias: str, attr: str) -> tuple[Layout, Path] | None:
        package_dir = self._store.package_dir(alias)
        if not package_dir.is_dir():
            return None
        for layout in self.candidate_layouts(alias):
            path = package_dir / getattr(layout, attr)
            exists = path.is_file() if attr == "entry_point" else path.is_dir()
            if exists:
                return layout, path
        return None

    def _probe_asset(self, alias: str, filename: str) -> Path | None:
        package_dir = self._store.package_dir(alias)
        if not package_dir.is_dir():
            return None
        for layout in self.candidate_layouts(alias):
            path = package_dir / layout.asset_dir / filename
            if path.is_file():
                return path
        return None

"""Installation coordinator for pinned engine versions.

Requests for an engine version that is not installed yet start at most one
background npm install per version and are answered immediately with a
"pending" status; callers poll until the version is ready. Install failures
never reach the caller: the coordinator falls back to the major-version alias
(when already installed) and then to the default package.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from report_renderer.enums import InstallState
from report_renderer.errors import InstallError
from report_renderer.models.domain import InstallStatus
from report_renderer.services.package_store import PackageStore

logger = logging.getLogger(__name__)


class PackageInstaller(Protocol):
    async def install(self, alias: str, spec: str) -> None: ...


@dataclass
class InstallationTask:
    """A running (or just finished) install for one engine version."""

    version: str
    state: InstallState = InstallState.RUNNING
    result: str | None = None
    waiters: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    asyncio_task: asyncio.Task[None] | None = None


class InstallationCoordinator:
    """Deduplicates engine installs and tracks them in a shared registry.

    The registry holds one task per version while its install runs; the task
    is removed as soon as the install ends and its alias is remembered in the
    same critical section, so later polls (including ones whose disk probe
    raced the install) never reinstall the version.
    """

    def __init__(
        self,
        store: PackageStore,
        installer: PackageInstaller,
        *,
        start_delay_seconds: float = 0.0,
    ) -> None:
        self._store = store
        self._installer = installer
        self._start_delay = start_delay_seconds

        self._lock = threading.Lock()
        self._tasks: dict[str, InstallationTask] = {}
        self._resolved: dict[str, str] = {}

    async def ensure_installed(self, version: str) -> InstallStatus:
        """Return the alias for ``version`` or start installing it.

        Non-blocking: when the version is missing this schedules the install
        and returns a pending status.
        """
        exact = self._store.exact_alias(version)
        on_disk = await asyncio.to_thread(self._store.is_installed, exact)

        with self._lock:
            running = self._tasks.get(version)
            if running is not None:
                # node_modules/<alias> appears before npm finishes
                running.waiters += 1
                return InstallStatus(version=version)

            if on_disk:
                return InstallStatus(version=version, alias=exact)

            resolved = self._resolved.get(version)
            if resolved is not None:
                return InstallStatus(version=version, alias=resolved)

            task = InstallationTask(version=version)
            self._tasks[version] = task

        task.asyncio_task = asyncio.create_task(self._run(task))
        logger.info("Started installation of engine v%s", version)
        return InstallStatus(version=version, started=True)

    async def install(self, version: str) -> str:
        """Install ``version`` and return the alias to use.

        Never raises: on failure returns the major alias if it is already
        installed, otherwise the default package.
        """
        alias = self._store.exact_alias(version)
        try:
            await self._installer.install(alias, f"{self._store.engine_package}@{version}")
            logger.info("Successfully installed engine v%s as %s", version, alias)
            return alias
        except Exception:
            logger.exception("Failed to install engine v%s", version)

        major_alias = self._store.major_alias(version)
        if major_alias != alias and await asyncio.to_thread(
            self._store.is_installed, major_alias
        ):
            logger.info("Using major version fallback: %s", major_alias)
            return major_alias

        logger.info("Falling back to default package %s", self._store.default_alias)
        return self._store.default_alias

    async def install_major(self, major: str) -> bool:
        """Install the latest release of a major version under its major alias."""
        alias = self._store.major_alias(major)
        try:
            await self._installer.install(alias, f"{self._store.engine_package}@{major}")
        except InstallError as e:
            logger.error("Failed to install engine v%s.x: %s", major, e)
            return False
        logger.info("Successfully installed engine v%s.x as %s", major, alias)
        return True

    def status(self, version: str) -> InstallationTask | None:
        with self._lock:
            return self._tasks.get(version)

    def running_versions(self) -> list[str]:
        with self._lock:
            return sorted(self._tasks)

    def clear(self) -> int:
        """Forget every tracked install (administrative reset).

        Running npm processes are not cancelled; they finish in the background
        but no longer block new requests for their version.
        """
        with self._lock:
            cleared = len(self._tasks)
            self._tasks.clear()
            self._resolved.clear()
        logger.warning("Cleared %d tracked installation(s)", cleared)
        return cleared

    async def _run(self, task: InstallationTask) -> None:
        try:
            if self._start_delay > 0:
                await asyncio.sleep(self._start_delay)
            alias = await self.install(task.version)
            task.result = alias
            task.state = InstallState.COMPLETED
        finally:
            with self._lock:
                if self._tasks.get(task.version) is task:
                    del self._tasks[task.version]
                    if task.result is not None:
                        self._resolved[task.version] = task.result
            logger.info(
                "Installation of engine v%s finished (alias=%s, waiters=%d)",
                task.version,
                task.result,
                task.waiters,
            )

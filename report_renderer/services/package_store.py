"""On-disk engine packages and the npm install primitive.

Every pinned engine version is installed under its own npm alias so that
many versions can coexist in a single ``node_modules``:

    node_modules/lighthouse            default package
    node_modules/lighthouse-v12        major alias
    node_modules/lighthouse-v10.4.0    exact alias
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

from report_renderer.errors import InstallError

logger = logging.getLogger(__name__)


class PackageStore:
    """Naming and existence checks for installed engine aliases."""

    def __init__(self, install_root: str | Path, engine_package: str = "lighthouse") -> None:
        self.install_root = Path(install_root)
        self.modules_dir = self.install_root / "node_modules"
        self.engine_package = engine_package

    @property
    def alias_prefix(self) -> str:
        return f"{self.engine_package}-v"

    @property
    def default_alias(self) -> str:
        return self.engine_package

    def exact_alias(self, version: str) -> str:
        return f"{self.alias_prefix}{version}"

    def major_alias(self, version: str) -> str:
        return f"{self.alias_prefix}{version.split('.')[0]}"

    def version_of(self, alias: str) -> str | None:
        """Return the version encoded in an alias, or None for the default package."""
        if alias.startswith(self.alias_prefix):
            return alias[len(self.alias_prefix):]
        return None

    def package_dir(self, alias: str) -> Path:
        return self.modules_dir / alias

    def is_installed(self, alias: str) -> bool:
        return self.package_dir(alias).is_dir()

    def installed_aliases(self) -> list[str]:
        """List versioned aliases present in node_modules."""
        if not self.modules_dir.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self.modules_dir.iterdir()
            if entry.is_dir() and entry.name.startswith(self.alias_prefix)
        )


class NpmInstaller:
    """Runs ``npm install <alias>@npm:<spec>`` as an asyncio subprocess."""

    def __init__(self, npm_executable: str, cwd: str | Path) -> None:
        self._npm = npm_executable
        self._cwd = Path(cwd)

    async def install(self, alias: str, spec: str) -> None:
        """Install ``spec`` (e.g. ``lighthouse@10.4.0``) under ``alias``.

        Raises:
            InstallError: If npm is missing or exits non-zero.
        """
        cmd = [self._npm, "install", f"{alias}@npm:{spec}"]
        logger.info("Running: %s", " ".join(cmd))

        env = os.environ.copy()
        env.setdefault("npm_config_fund", "false")
        env.setdefault("npm_config_audit", "false")

        try:
            self._cwd.mkdir(parents=True, exist_ok=True)
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self._cwd),
                env=env,
            )
            _, stderr_bytes = await process.communicate()
        except OSError as e:
            raise InstallError(f"Could not run {self._npm}: {e}") from e

        if process.returncode != 0:
            stderr = stderr_bytes.decode("utf-8", errors="replace")
            raise InstallError(
                f"npm install {alias} exited with {process.returncode}: {stderr[-2000:]}"
            )

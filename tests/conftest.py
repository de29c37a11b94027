"""Pytest configuration and fixtures."""

import os
from collections.abc import Callable
from pathlib import Path

import pytest

from report_renderer.config import RendererConfig
from report_renderer.services.package_store import PackageStore

# Configure pytest-asyncio to auto-detect async tests
pytest_plugins = ("pytest_asyncio",)

TEST_SECRET = "0123456789abcdef-test-secret"


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend."""
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep developer RENDERER_* variables out of the tests."""
    for key in list(os.environ):
        if key.startswith("RENDERER_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def config(tmp_path: Path) -> RendererConfig:
    """Config rooted in a temporary directory."""
    return RendererConfig(
        app_secret=TEST_SECRET,
        install_root=str(tmp_path),
        local_report_path=str(tmp_path / "report.json"),
        install_start_delay_seconds=0,
    )


@pytest.fixture
def store(tmp_path: Path) -> PackageStore:
    return PackageStore(tmp_path, "lighthouse")


@pytest.fixture
def make_package(store: PackageStore) -> Callable[..., Path]:
    """Create a fake installed package with the given relative files."""

    def _make(alias: str, *files: str) -> Path:
        package_dir = store.package_dir(alias)
        package_dir.mkdir(parents=True, exist_ok=True)
        for rel in files:
            path = package_dir / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(f"// {alias}/{rel}\n")
        return package_dir

    return _make


@pytest.fixture
def secret() -> str:
    return TEST_SECRET

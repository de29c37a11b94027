"""Unit tests for InstallationCoordinator.

Tests verify:
- At most one install per version, however many concurrent requests
- Immediate pending status while an install runs
- Fallback to the major alias and then to the default package
- Administrative reset of the registry
"""

import asyncio

import pytest

from report_renderer.enums import InstallState
from report_renderer.errors import InstallError
from report_renderer.services.installation_service import InstallationCoordinator
from report_renderer.services.package_store import PackageStore


class FakeInstaller:
    """Installer double that records calls and creates the alias directory."""

    def __init__(self, store: PackageStore, *, fail: bool = False) -> None:
        self.store = store
        self.fail = fail
        self.calls: list[tuple[str, str]] = []
        self.gate = asyncio.Event()
        self.gate.set()
        self.created = asyncio.Event()

    async def install(self, alias: str, spec: str) -> None:
        self.calls.append((alias, spec))
        if self.fail:
            await self.gate.wait()
            raise InstallError(f"npm ERR! 404 {spec}")
        self.store.package_dir(alias).mkdir(parents=True, exist_ok=True)
        self.created.set()
        await self.gate.wait()


async def _finish(coordinator: InstallationCoordinator, version: str) -> None:
    task = coordinator.status(version)
    assert task is not None
    await task.asyncio_task


class TestEnsureInstalled:
    @pytest.mark.asyncio
    async def test_installed_version_resolves_without_install(self, store, make_package):
        make_package("lighthouse-v10.4.0")
        installer = FakeInstaller(store)
        coordinator = InstallationCoordinator(store, installer)

        status = await coordinator.ensure_installed("10.4.0")

        assert status.alias == "lighthouse-v10.4.0"
        assert status.ready
        assert installer.calls == []

    @pytest.mark.asyncio
    async def test_missing_version_starts_install_and_is_pending(self, store):
        installer = FakeInstaller(store)
        installer.gate.clear()
        coordinator = InstallationCoordinator(store, installer)

        status = await coordinator.ensure_installed("10.4.0")

        assert status.started
        assert not status.ready
        assert coordinator.running_versions() == ["10.4.0"]
        assert coordinator.status("10.4.0").state == InstallState.RUNNING

        installer.gate.set()
        await _finish(coordinator, "10.4.0")
        assert coordinator.running_versions() == []

    @pytest.mark.asyncio
    async def test_concurrent_requests_start_exactly_one_install(self, store):
        installer = FakeInstaller(store)
        installer.gate.clear()
        coordinator = InstallationCoordinator(store, installer)

        statuses = await asyncio.gather(
            *(coordinator.ensure_installed("10.4.0") for _ in range(10))
        )

        assert sum(1 for s in statuses if s.started) == 1
        assert all(not s.ready for s in statuses)
        assert coordinator.status("10.4.0").waiters == 9

        installer.gate.set()
        await _finish(coordinator, "10.4.0")
        assert len(installer.calls) == 1

    @pytest.mark.asyncio
    async def test_pending_while_package_dir_exists_but_npm_runs(self, store):
        installer = FakeInstaller(store)
        installer.gate.clear()
        coordinator = InstallationCoordinator(store, installer)

        await coordinator.ensure_installed("10.4.0")
        await installer.created.wait()
        status = await coordinator.ensure_installed("10.4.0")

        assert not status.ready
        assert not status.started

        installer.gate.set()
        await _finish(coordinator, "10.4.0")

    @pytest.mark.asyncio
    async def test_ready_after_successful_install(self, store):
        installer = FakeInstaller(store)
        coordinator = InstallationCoordinator(store, installer)

        await coordinator.ensure_installed("10.4.0")
        await _finish(coordinator, "10.4.0")
        status = await coordinator.ensure_installed("10.4.0")

        assert status.alias == "lighthouse-v10.4.0"
        assert installer.calls == [("lighthouse-v10.4.0", "lighthouse@10.4.0")]

    @pytest.mark.asyncio
    async def test_failed_install_resolves_to_major_alias(self, store, make_package):
        make_package("lighthouse-v10")
        installer = FakeInstaller(store, fail=True)
        coordinator = InstallationCoordinator(store, installer)

        await coordinator.ensure_installed("10.4.0")
        await _finish(coordinator, "10.4.0")
        status = await coordinator.ensure_installed("10.4.0")

        assert status.alias == "lighthouse-v10"
        assert len(installer.calls) == 1

    @pytest.mark.asyncio
    async def test_failed_install_without_major_uses_default(self, store):
        installer = FakeInstaller(store, fail=True)
        coordinator = InstallationCoordinator(store, installer)

        await coordinator.ensure_installed("10.4.0")
        await _finish(coordinator, "10.4.0")
        status = await coordinator.ensure_installed("10.4.0")

        assert status.alias == "lighthouse"
        assert len(installer.calls) == 1


class TestInstall:
    @pytest.mark.asyncio
    async def test_success_returns_exact_alias(self, store):
        coordinator = InstallationCoordinator(store, FakeInstaller(store))
        assert await coordinator.install("9.6.8") == "lighthouse-v9.6.8"

    @pytest.mark.asyncio
    async def test_failure_never_raises(self, store, make_package):
        make_package("lighthouse-v9")
        coordinator = InstallationCoordinator(store, FakeInstaller(store, fail=True))
        assert await coordinator.install("9.6.8") == "lighthouse-v9"

    @pytest.mark.asyncio
    async def test_major_only_version_skips_major_fallback(self, store, make_package):
        make_package("lighthouse-v9")
        coordinator = InstallationCoordinator(store, FakeInstaller(store, fail=True))
        assert await coordinator.install("9") == "lighthouse"

    @pytest.mark.asyncio
    async def test_install_major(self, store):
        installer = FakeInstaller(store)
        coordinator = InstallationCoordinator(store, installer)

        assert await coordinator.install_major("12") is True
        assert installer.calls == [("lighthouse-v12", "lighthouse@12")]

    @pytest.mark.asyncio
    async def test_install_major_failure(self, store):
        coordinator = InstallationCoordinator(store, FakeInstaller(store, fail=True))
        assert await coordinator.install_major("12") is False


class TestClear:
    @pytest.mark.asyncio
    async def test_clear_forgets_running_installs(self, store):
        installer = FakeInstaller(store)
        installer.gate.clear()
        coordinator = InstallationCoordinator(store, installer)

        await coordinator.ensure_installed("10.4.0")
        first = coordinator.status("10.4.0").asyncio_task
        await installer.created.wait()

        assert coordinator.clear() == 1
        assert coordinator.running_versions() == []

        # the package dir already exists; a fresh request sees it as installed
        status = await coordinator.ensure_installed("10.4.0")
        assert status.alias == "lighthouse-v10.4.0"

        installer.gate.set()
        await first
        assert coordinator.running_versions() == []

    @pytest.mark.asyncio
    async def test_clear_drops_remembered_fallbacks(self, store):
        installer = FakeInstaller(store, fail=True)
        coordinator = InstallationCoordinator(store, installer)

        await coordinator.ensure_installed("10.4.0")
        await _finish(coordinator, "10.4.0")
        coordinator.clear()

        status = await coordinator.ensure_installed("10.4.0")
        assert status.started
        await _finish(coordinator, "10.4.0")
        assert len(installer.calls) == 2


class CrashingInstaller:
    """Installer double failing with an unexpected error type."""

    def __init__(self) -> None:
        self.calls = 0

    async def install(self, alias: str, spec: str) -> None:
        self.calls += 1
        raise RuntimeError("npm exploded")


class TestUnexpectedFailures:
    @pytest.mark.asyncio
    async def test_install_absorbs_unexpected_errors(self, store, make_package):
        make_package("lighthouse-v10")
        coordinator = InstallationCoordinator(store, CrashingInstaller())

        assert await coordinator.install("10.4.0") == "lighthouse-v10"

    @pytest.mark.asyncio
    async def test_crashed_install_is_not_restarted_by_polling(self, store):
        installer = CrashingInstaller()
        coordinator = InstallationCoordinator(store, installer)

        await coordinator.ensure_installed("10.4.0")
        await _finish(coordinator, "10.4.0")
        status = await coordinator.ensure_installed("10.4.0")

        assert status.alias == "lighthouse"
        assert installer.calls == 1


class TestStaleDiskProbe:
    @pytest.mark.asyncio
    async def test_finished_install_is_not_repeated_when_probe_is_stale(
        self, store, monkeypatch
    ):
        installer = FakeInstaller(store)
        coordinator = InstallationCoordinator(store, installer)

        await coordinator.ensure_installed("10.4.0")
        await _finish(coordinator, "10.4.0")
        # a probe taken before the install finished still reports "missing"
        monkeypatch.setattr(store, "is_installed", lambda alias: False)

        status = await coordinator.ensure_installed("10.4.0")

        assert status.alias == "lighthouse-v10.4.0"
        assert not status.started
        assert len(installer.calls) == 1

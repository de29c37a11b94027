"""Manual engine version management.

Usage:
    report-install-versions 12.6.1 10.4.0    # install exact versions
    report-install-versions 12 10            # install major versions
    report-install-versions --common         # install the common major versions
    report-install-versions --list           # list installed versions
"""

import argparse
import asyncio
import logging
import sys

from report_renderer.config import RendererConfig
from report_renderer.errors import ValidationError
from report_renderer.models.domain import validate_version
from report_renderer.services.installation_service import InstallationCoordinator
from report_renderer.services.package_store import NpmInstaller, PackageStore


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Install pinned engine versions next to the default package."
    )
    parser.add_argument("versions", nargs="*", default=[], help="Exact (12.6.1) or major (12)")
    parser.add_argument("--common", action="store_true", help="Install common major versions")
    parser.add_argument("--list", action="store_true", help="List installed versions")
    args = parser.parse_args(argv)
    if sum([bool(args.versions), args.common, args.list]) != 1:
        parser.error("give versions, --common or --list")
    return args


def list_installed(store: PackageStore) -> None:
    print("Installed engine versions:")
    if not store.modules_dir.is_dir():
        print("  No node_modules directory found")
        return

    aliases = store.installed_aliases()
    if not aliases:
        print("  No additional engine versions installed")
    for alias in aliases:
        print(f"  v{store.version_of(alias)} ({alias})")

    marker = "present" if store.is_installed(store.default_alias) else "missing"
    print(f"  default {store.default_alias} package: {marker}")


async def install_versions(coordinator: InstallationCoordinator, versions: list[str]) -> int:
    """Install each version; dotted ones exactly, bare ones as a major alias.

    Returns:
        Number of successful installs.
    """
    installed = 0
    for version in versions:
        if "." in version:
            alias = await coordinator.install(version)
            ok = alias.endswith(f"-v{version}")
        else:
            ok = await coordinator.install_major(version)
        print(f"{'OK' if ok else 'FAILED'}: {version}")
        installed += int(ok)
    return installed


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s - %(message)s")
    args = _parse_args(argv)
    config = RendererConfig.from_json_file()

    store = PackageStore(config.install_root_path, config.engine_package)
    if args.list:
        list_installed(store)
        return 0

    versions = list(config.common_major_versions) if args.common else args.versions
    try:
        versions = [validate_version(v) for v in versions]
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    coordinator = InstallationCoordinator(
        store, NpmInstaller(config.npm_executable, config.install_root_path)
    )
    print(f"Installing versions: {', '.join(versions)}")
    installed = asyncio.run(install_versions(coordinator, versions))
    print(f"Summary: {installed}/{len(versions)} versions installed successfully")
    return 0 if installed == len(versions) else 1


if __name__ == "__main__":
    sys.exit(main())

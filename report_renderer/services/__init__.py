"""Business logic services package."""

from .document_cache import DocumentCache
from .installation_service import InstallationCoordinator, InstallationTask
from .layout_resolver import LAYOUTS, Layout, LayoutResolver
from .package_store import NpmInstaller, PackageStore
from .render_pipeline import RenderPipeline, rewrite_asset_references
from .report_fetcher import ReportFetcher, parse_object_store_location
from .report_generator import NodeReportGenerator, ReportGenerator
from .report_service import ReportService
from .token_cipher import decrypt_token, encrypt_url

__all__ = [
    "DocumentCache",
    "InstallationCoordinator",
    "InstallationTask",
    "LAYOUTS",
    "Layout",
    "LayoutResolver",
    "NodeReportGenerator",
    "NpmInstaller",
    "PackageStore",
    "RenderPipeline",
    "ReportFetcher",
    "ReportGenerator",
    "ReportService",
    "decrypt_token",
    "encrypt_url",
    "parse_object_store_location",
    "rewrite_asset_references",
]

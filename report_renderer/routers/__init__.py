"""HTTP routers package."""

from .report_router import create_report_router, render_loading_page

__all__ = [
    "create_report_router",
    "render_loading_page",
]

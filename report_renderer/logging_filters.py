"""Logging helpers and filters.

This module centralizes small logging tweaks so they can be applied from
multiple entrypoints (e.g. `python -m report_renderer.main` and
`uvicorn report_renderer.asgi:app`).
"""

from __future__ import annotations

import logging
from typing import Any

# Polling and asset traffic would otherwise dominate the access log: every
# loading page re-requests its report every couple of seconds.
QUIET_PATH_PREFIXES = ("/health", "/assets/", "/loading/")


def _is_quiet_path(path: str) -> bool:
    return path.startswith(QUIET_PATH_PREFIXES)


class SuppressPollingAccessLog(logging.Filter):
    """Drop Uvicorn access log records for health, asset and loading routes.

    This prevents noisy lines like:
        INFO: 127.0.0.1:36130 - "GET /assets/standalone.js HTTP/1.1" 200 OK

    while keeping access logs for report renders.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 (filter)
        # Uvicorn's access logger uses %-formatting with args similar to:
        #   (client_addr, method, full_path, http_version, status_code)
        try:
            args: Any = record.args
            if isinstance(args, tuple) and len(args) >= 3:
                return not _is_quiet_path(str(args[2]))

            message = record.getMessage()
            for prefix in QUIET_PATH_PREFIXES:
                if f'"GET {prefix}' in message or f'"HEAD {prefix}' in message:
                    return False
        except Exception:
            # Never break logging.
            return True

        return True


def install_uvicorn_access_log_filters() -> None:
    """Install filters for Uvicorn loggers.

    Safe to call multiple times.
    """

    access_logger = logging.getLogger("uvicorn.access")

    for existing in access_logger.filters:
        if isinstance(existing, SuppressPollingAccessLog):
            return

    access_logger.addFilter(SuppressPollingAccessLog())

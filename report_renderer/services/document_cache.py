"""Process-wide cache of fetched report documents."""

import threading

from report_renderer.models.domain import ReportDocument


class DocumentCache:
    """Memoizes fetched documents keyed by their decrypted URL.

    Entries are never evicted or refreshed; a stale entry is only dropped by
    an explicit ``clear()`` (the administrative route). The most recently
    inserted document also decides which engine version serves assets when
    no local report exists.
    """

    def __init__(self) -> None:
        self._documents: dict[str, ReportDocument] = {}
        self._latest_url: str | None = None
        self._lock = threading.Lock()

    def get(self, url: str) -> ReportDocument | None:
        with self._lock:
            return self._documents.get(url)

    def put(self, url: str, document: ReportDocument) -> None:
        with self._lock:
            self._documents[url] = document
            self._latest_url = url

    def latest(self) -> ReportDocument | None:
        """Return the most recently cached document, if any."""
        with self._lock:
            if self._latest_url is None:
                return None
            return self._documents.get(self._latest_url)

    def clear(self) -> int:
        """Drop every cached document.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            removed = len(self._documents)
            self._documents.clear()
            self._latest_url = None
            return removed

    def __contains__(self, url: object) -> bool:
        with self._lock:
            return url in self._documents

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)

"""StrEnum definitions for type-safe constants."""

from enum import StrEnum


class InstallState(StrEnum):
    """Lifecycle of an engine installation task."""

    RUNNING = "running"
    COMPLETED = "completed"


class LocationKind(StrEnum):
    """Where a remote report document is fetched from."""

    HTTP = "http"
    OBJECT_STORE = "object_store"


class AddressingStyle(StrEnum):
    """S3 request addressing styles understood by botocore."""

    PATH = "path"
    VIRTUAL = "virtual"

"""Pydantic domain models.

These models are passed between the fetcher, the installation coordinator
and the render pipeline. The report payload itself stays an opaque mapping:
only the engine version field is interpreted.
"""

import re
from typing import Any

from pydantic import ConfigDict

from report_renderer.enums import LocationKind
from report_renderer.errors import ValidationError
from report_renderer.models.base import JsonModel

# Document field naming the engine version that produced the report.
ENGINE_VERSION_FIELD = "lighthouseVersion"

# "12", "10.4", "10.4.0", "11.0.0-beta.1", "9.6.8+build"
VERSION_PATTERN = re.compile(r"^\d+(\.\d+){0,2}([-+][0-9A-Za-z.-]+)?$")


def validate_version(value: Any) -> str:
    """Return ``value`` as a version identifier or raise ValidationError.

    The version ends up in npm package specs and node_modules paths, so
    anything that is not a plain semantic version is rejected.
    """
    if not isinstance(value, str) or not VERSION_PATTERN.match(value.strip()):
        raise ValidationError(f"Invalid engine version: {value!r}")
    return value.strip()


class ReportDocument(JsonModel):
    """A fetched or local report, immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    engine_version: str
    payload: dict[str, Any]

    @classmethod
    def from_payload(cls, payload: Any) -> "ReportDocument":
        """Validate a parsed JSON payload and wrap it.

        Raises:
            ValidationError: If the payload is not an object or lacks the
                engine version field.
        """
        if not isinstance(payload, dict):
            raise ValidationError("Invalid report: expected a JSON object")
        raw_version = payload.get(ENGINE_VERSION_FIELD)
        if not raw_version:
            raise ValidationError(f"Invalid report: missing {ENGINE_VERSION_FIELD}")
        return cls(engine_version=validate_version(raw_version), payload=payload)

    @property
    def major_version(self) -> str:
        return self.engine_version.split(".")[0]


class RemoteLocation(JsonModel):
    """Classified remote document location."""

    kind: LocationKind
    url: str
    bucket: str | None = None
    key: str | None = None
    endpoint: str | None = None


class InstallStatus(JsonModel):
    """Answer of the installation coordinator to a single request.

    ``alias`` is set once the engine version can be used; otherwise the
    caller should poll again later.
    """

    version: str
    alias: str | None = None
    started: bool = False

    @property
    def ready(self) -> bool:
        return self.alias is not None


class RenderOutcome(JsonModel):
    """Result of a render request: HTML, or a version still installing."""

    html: str | None = None
    pending_version: str | None = None

    @property
    def pending(self) -> bool:
        return self.pending_version is not None


class HealthResponse(JsonModel):
    """Health endpoint payload."""

    status: str
    running_installs: list[str]
    cached_documents: int
    installed_aliases: list[str]

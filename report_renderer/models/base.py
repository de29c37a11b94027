"""JsonModel base class for typed service boundaries and API payloads."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class JsonModel(BaseModel):
    """Base model with camelCase JSON output and snake_case attributes.

    Report documents themselves use camelCase keys (``lighthouseVersion``),
    so API payloads follow the same convention.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def model_dump_json(self, **kwargs) -> str:
        """Override to ensure camelCase in JSON output."""
        kwargs.setdefault("by_alias", True)
        return super().model_dump_json(**kwargs)

    def to_dict(
        self,
        by_alias: bool | None = None,
        mode: Literal["json", "python"] = "python",
    ) -> dict[str, Any]:
        """Convert to dictionary, dropping unset optional fields."""
        return self.model_dump(
            exclude_none=True,
            by_alias=by_alias or (mode == "json"),
            mode=mode,
        )

"""Configuration with JSON file, secrets.yml, and env variable support."""

import json
import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

ENV_PREFIX = "RENDERER_"


def _find_repo_root(*, start: Path) -> Path:
    """Best-effort repository root discovery.

    Relative paths (install root, local report) are resolved against the repo
    root so the server can be launched from any working directory:
    - first directory containing `pyproject.toml`
    - otherwise fall back to the current working directory
    """

    try:
        start = start.resolve()
        for p in [start, *start.parents]:
            if (p / "pyproject.toml").exists():
                return p
    except OSError:
        pass

    return Path.cwd()


def _flatten_secrets_mapping(secrets: dict) -> dict:
    """Flatten nested secrets into RendererConfig-compatible keys.

        app.secret    -> app_secret
        s3.access_key -> s3_access_key
        s3.enabled    -> s3_enabled
    """
    flat = {}
    for section, values in secrets.items():
        if isinstance(values, dict):
            for key, value in values.items():
                flat[f"{section}_{key}"] = value
        else:
            flat[section] = values
    return flat


def _load_secrets(secrets_path: Path) -> dict:
    """Load and flatten secrets from YAML file."""
    if not secrets_path.exists():
        return {}

    with open(secrets_path, encoding="utf-8") as f:
        secrets = yaml.safe_load(f) or {}

    if not isinstance(secrets, dict):
        logger.warning("Ignoring %s: expected a mapping at top level", secrets_path)
        return {}

    return _flatten_secrets_mapping(secrets)


class RendererConfig(BaseSettings):
    """Configuration with JSON file + secrets.yml + env var support.

    Load order (later overrides earlier):
    1. config.json - base configuration
    2. secrets.yml - token secret and object storage credentials
    3. Environment variables - runtime overrides

    Prefix: RENDERER_ (e.g., RENDERER_APP_SECRET)
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Token cipher; only the first 16 bytes key AES-128-CTR
    app_secret: str | None = Field(default=None)

    # Object storage
    s3_enabled: bool = Field(default=False)
    s3_access_key: str | None = Field(default=None)
    s3_secret_key: str | None = Field(default=None)
    s3_region: str = Field(default="us-east-1")

    # Engine installation
    engine_package: str = Field(default="lighthouse")
    install_root: str = Field(
        default=".",
        description="Directory whose node_modules holds the installed engine versions",
    )
    npm_executable: str = Field(default="npm")
    node_executable: str = Field(default="node")
    install_start_delay_seconds: float = Field(
        default=0.1,
        description="Pause before npm starts so the loading page is served first",
    )
    common_major_versions: list[str] = Field(default=["8", "9", "10", "11", "12"])

    # Remote fetch
    fetch_timeout_seconds: float = Field(default=10.0)
    user_agent: str = Field(default="Lighthouse-Report-Renderer/1.0")

    # Local report rendered at "/"
    local_report_path: str = Field(default="report.json")

    # Loading page
    poll_delay_seconds: float = Field(default=2.0)

    # API settings
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=3000)
    public_base_url: str | None = Field(
        default=None,
        description="Base URL printed by the token tool (defaults to http://localhost:<api_port>)",
    )

    def resolve_path(self, raw: str) -> Path:
        """Resolve a configured path against the repository root."""
        p = Path(raw).expanduser()
        if not p.is_absolute():
            p = _find_repo_root(start=Path(__file__)) / p
        return p.resolve()

    @property
    def install_root_path(self) -> Path:
        return self.resolve_path(self.install_root)

    @property
    def local_report_file(self) -> Path:
        return self.resolve_path(self.local_report_path)

    @property
    def base_url(self) -> str:
        return (self.public_base_url or f"http://localhost:{self.api_port}").rstrip("/")

    @classmethod
    def from_json_file(
        cls,
        config_path: str = "config.json",
        secrets_path: str = "secrets.yml",
    ) -> "RendererConfig":
        """Load config from JSON + secrets.yml with env var overrides.

        Args:
            config_path: Path to JSON config file.
            secrets_path: Path to secrets YAML file.

        Returns:
            Configured RendererConfig instance.
        """
        config_data: dict[str, Any] = {}

        json_path = Path(config_path)
        if json_path.exists():
            with open(json_path, encoding="utf-8") as f:
                config_data = json.load(f)

        # Merge secrets (overrides JSON values)
        config_data.update(_load_secrets(Path(secrets_path)))

        # Drop keys whose env var is set so pydantic-settings can apply it
        for key in [k for k in config_data if f"{ENV_PREFIX}{k.upper()}" in os.environ]:
            del config_data[key]

        return cls(**config_data)

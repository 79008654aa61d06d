"""
Configuration management for mcpkit.

Precedence: env vars > .env file > config.yaml > defaults

Config file: ~/.mcpkit/config.yaml (or $MCPKIT_HOME/config.yaml)
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

# Known config keys that can be set via `mcpkit config set`
CONFIG_KEYS = {
    "registry_base_url", "mirror_url", "page_size", "max_records",
    "request_timeout", "refresh_interval_minutes", "log_level",
}

DEFAULT_REGISTRY_BASE_URL = "https://registry.modelcontextprotocol.io"
DEFAULT_MIRROR_URL = (
    "https://raw.githubusercontent.com/cybertheory/mcpkit/main/mcp-registry.json"
)


def _resolve_home() -> Path:
    """Resolve the mcpkit home directory from env or default, before Settings init."""
    raw = os.environ.get("MCPKIT_HOME", "")
    if raw:
        return Path(raw).expanduser().resolve()
    return Path.home() / ".mcpkit"


def load_yaml_config(home: Path) -> dict[str, Any]:
    """Load config.yaml from the mcpkit home directory."""
    config_file = get_config_path(home)
    if not config_file.exists():
        return {}
    try:
        with open(config_file) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            logger.warning(f"config.yaml is not a dict, ignoring: {config_file}")
            return {}
        return data
    except Exception as e:
        logger.warning(f"Error loading config.yaml: {e}")
        return {}


def save_yaml_config(home: Path, data: dict[str, Any]) -> Path:
    """Write config values to <home>/config.yaml."""
    config_file = get_config_path(home)
    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "w") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    return config_file


def get_config_path(home: Path) -> Path:
    """Get the config.yaml path for a home directory."""
    return home / "config.yaml"


class Settings(BaseSettings):
    """mcpkit configuration. Precedence: env vars > .env > config.yaml > defaults."""

    home: Path = Field(
        default_factory=_resolve_home,
        description="Directory holding the registry cache, agents file and config.yaml",
    )

    # Local state
    registry_cache_path: Optional[Path] = Field(
        default=None,
        description="Registry cache file (defaults to <home>/mcp-registry.json)",
    )
    agents_file: Optional[Path] = Field(
        default=None,
        description="Persisted custom agents file (defaults to <home>/agents.json)",
    )

    # Registry sources
    registry_base_url: str = Field(
        default=DEFAULT_REGISTRY_BASE_URL,
        description="Base URL of the authoritative MCP registry",
    )
    mirror_url: str = Field(
        default=DEFAULT_MIRROR_URL,
        description="Flat JSON mirror used when the registry is unreachable",
    )
    page_size: int = Field(default=100, description="Registry page size")
    max_records: int = Field(
        default=5000,
        description="Stop paginating once this many records were fetched",
    )
    request_timeout: float = Field(default=30.0, description="HTTP timeout in seconds")
    refresh_interval_minutes: int = Field(
        default=30,
        description="Interval between automatic registry refreshes",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )

    model_config = {
        "env_prefix": "MCPKIT_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="before")
    @classmethod
    def _inject_yaml_config(cls, data: Any) -> Any:
        """Inject config.yaml values as fallbacks below env vars and .env."""
        if not isinstance(data, dict):
            data = {}

        home = Path(data["home"]).expanduser() if data.get("home") else _resolve_home()
        yaml_config = load_yaml_config(home)

        for key, value in yaml_config.items():
            if key not in data or data[key] is None:
                env_val = os.environ.get(f"MCPKIT_{key.upper()}")
                if env_val is None:
                    data[key] = value

        return data

    @property
    def cache_path(self) -> Path:
        """Registry cache path, defaulting to <home>/mcp-registry.json."""
        if self.registry_cache_path:
            return self.registry_cache_path
        return self.home / "mcp-registry.json"

    @property
    def agents_path(self) -> Path:
        """Persisted agents path, defaulting to <home>/agents.json."""
        if self.agents_file:
            return self.agents_file
        return self.home / "agents.json"


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global settings
    settings = Settings()
    return settings

"""
Plugin catalog models.

A catalog is the `{"mcps": [...]}` document cached at
~/.mcpkit/mcp-registry.json. Each entry is a PluginRecord: registry data
that is replaced wholesale on every refresh, plus the installation fields
(`installed`, `installed_agents`, `installation_date`) that only the
ledger mutates.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class EnvVarSpec(BaseModel):
    """Declared environment variable for a plugin."""

    required: bool = False
    description: str = ""
    placeholder: str = ""
    help: str = ""
    secret: bool = False

    model_config = ConfigDict(extra="allow")

    @field_validator("description", "placeholder", "help", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class PluginRecord(BaseModel):
    """One catalog entry."""

    id: str = Field(min_length=1)
    name: str = ""
    category: str = "Community"
    description: str = ""
    version: str = "latest"
    npm: Optional[str] = None
    command: Optional[str] = None
    env: dict[str, EnvVarSpec] = Field(default_factory=dict)

    setup_instructions: list[Any] = Field(default_factory=list)
    uninstall_steps: list[Any] = Field(default_factory=list)
    documentation: str = ""
    homepage: str = ""
    repository: Optional[str] = None
    remotes: list[Any] = Field(default_factory=list)
    packages: list[Any] = Field(default_factory=list)
    registry_type: Optional[str] = None
    registry_base_url: Optional[str] = None
    license: Optional[str] = None
    published_at: Optional[str] = None
    updated_at: Optional[str] = None

    installed: bool = False
    installation_date: Optional[str] = None
    installed_agents: list[str] = Field(default_factory=list)

    # Mirror catalogs may carry fields we don't model; keep them on round trip
    model_config = ConfigDict(extra="allow")

    @model_validator(mode="before")
    @classmethod
    def _lift_install_block(cls, data: Any) -> Any:
        """Accept the older catalog shape that nests npm/command/env under `install`."""
        if not isinstance(data, dict):
            return data
        install = data.get("install")
        if isinstance(install, dict):
            data = dict(data)
            for key in ("npm", "command", "env"):
                if data.get(key) in (None, {}) and install.get(key) is not None:
                    data[key] = install[key]
        if data.get("id") is not None and not isinstance(data["id"], str):
            data = {**data, "id": str(data["id"])}
        for key in ("name", "description", "documentation", "homepage"):
            if key in data and data[key] is None:
                data = {**data, key: ""}
        return data

    @model_validator(mode="after")
    def _sync_installed_flags(self) -> "PluginRecord":
        # installed_agents is a set stored as a list
        self.installed_agents = list(dict.fromkeys(self.installed_agents))
        self.installed = bool(self.installed_agents)
        if not self.installed:
            self.installation_date = None
        return self

    @property
    def is_installable(self) -> bool:
        return bool(self.command)


class Catalog(BaseModel):
    """The registry document: `{"mcps": [PluginRecord, ...]}`."""

    mcps: list[PluginRecord] = Field(default_factory=list)

    def find(self, plugin_id: str) -> Optional[PluginRecord]:
        """Look up a record by id."""
        for record in self.mcps:
            if record.id == plugin_id:
                return record
        return None

    def grouped_by_category(self) -> dict[str, list[PluginRecord]]:
        """Group records by category, preserving catalog order."""
        grouped: dict[str, list[PluginRecord]] = {}
        for record in self.mcps:
            grouped.setdefault(record.category, []).append(record)
        return grouped

    def __len__(self) -> int:
        return len(self.mcps)

"""
Result models returned by McpKitService operations.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from mcpkit.lib.typed_errors import MissingEnvVar
from mcpkit.models.agent import AgentDescriptor


class InstallResult(BaseModel):
    """Outcome of a successful install."""

    ok: bool = True
    mcp_config_path: str = Field(alias="mcpConfigPath")
    installed_from: str = "registry"
    npm_package: Optional[str] = None
    version: str = "latest"
    changed: bool = True  # False when an identical entry was already present

    model_config = ConfigDict(populate_by_name=True)


class UninstallResult(BaseModel):
    """Outcome of a successful uninstall."""

    ok: bool = True
    mcp_config_path: str = Field(alias="mcpConfigPath")

    model_config = ConfigDict(populate_by_name=True)


class InstallStatus(BaseModel):
    """Whether a plugin is configured for an agent, with its entry if so."""

    installed: bool
    config: Optional[dict[str, Any]] = None


class RefreshResult(BaseModel):
    """Outcome of a registry refresh."""

    source: str
    count: int
    refreshed_at: str


class EnvValidation(BaseModel):
    """Missing-variable report for a plugin and a set of supplied values."""

    valid: bool
    missing: list[MissingEnvVar] = Field(default_factory=list)


class AddAgentResult(BaseModel):
    """A newly persisted agent."""

    ok: bool = True
    agent: AgentDescriptor

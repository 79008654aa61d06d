"""
Pydantic models for mcpkit.
"""

from mcpkit.models.agent import AgentDescriptor, AgentType
from mcpkit.models.plugin import Catalog, EnvVarSpec, PluginRecord
from mcpkit.models.results import (
    AddAgentResult,
    EnvValidation,
    InstallResult,
    InstallStatus,
    RefreshResult,
    UninstallResult,
)

__all__ = [
    # Catalog
    "Catalog",
    "EnvVarSpec",
    "PluginRecord",
    # Agents
    "AgentDescriptor",
    "AgentType",
    # Results
    "AddAgentResult",
    "EnvValidation",
    "InstallResult",
    "InstallStatus",
    "RefreshResult",
    "UninstallResult",
]

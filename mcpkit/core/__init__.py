"""
Core registry and install logic for mcpkit.
"""

from mcpkit.core.orchestrator import InstallOrchestrator
from mcpkit.core.service import McpKitService

__all__ = ["InstallOrchestrator", "McpKitService"]

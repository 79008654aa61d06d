"""
Agent models.

An agent is a coding tool (editor, assistant, terminal tool) that reads
MCP server definitions from a JSON config file.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

AgentType = Literal["detected", "persisted"]


class AgentDescriptor(BaseModel):
    """A detected or user-added agent."""

    id: str
    name: str
    mcp_config_path: Optional[str] = Field(alias="mcpConfigPath", default=None)
    type: AgentType = "detected"
    category: str = "Custom"
    kind: str = "generic"  # Schema adapter key

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @property
    def has_config(self) -> bool:
        return bool(self.mcp_config_path)

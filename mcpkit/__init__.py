"""
mcpkit: discover coding agents, browse the MCP server registry, and
install servers into agent config files.
"""

__version__ = "0.3.0"

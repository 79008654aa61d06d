"""
Per-agent config schema adapters.

Most agents keep MCP servers in a top-level ``mcpServers`` object. A few
nest it somewhere else (VS Code keeps them under ``mcp.servers``). Adapters
convert a raw agent config to a normalized document that always exposes
``mcpServers`` at the top level, apply entry mutations on that document,
and convert it back to the agent's native layout.

Entry format written for every agent:

    {"command": "npx", "args": ["pkg@1.0.0"], "env": {"KEY": "value"}}
"""

import copy
import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)

SERVERS_KEY = "mcpServers"


def split_command_line(command_line: str) -> tuple[str, list[str]]:
    """Split a command line on whitespace into (command, args).

    No shell quoting is honored. An empty line yields ("", []).
    """
    parts = command_line.split()
    if not parts:
        return "", []
    return parts[0], parts[1:]


def build_entry(command_line: str, env: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """Build the server entry written to an agent config."""
    command, args = split_command_line(command_line)
    return {
        "command": command,
        "args": args,
        "env": {k: str(v) for k, v in (env or {}).items() if v is not None},
    }


class PlatformSchemaAdapter:
    """Default adapter: servers live in a top-level ``mcpServers`` object."""

    kind = "generic"

    def ensure_schema(self, raw: Any) -> dict[str, Any]:
        """Return a copy of *raw* with a ``mcpServers`` mapping at the top level."""
        doc = copy.deepcopy(raw) if isinstance(raw, dict) else {}
        if not isinstance(doc.get(SERVERS_KEY), dict):
            doc[SERVERS_KEY] = {}
        return doc

    def set_entry(
        self,
        normalized: dict[str, Any],
        plugin_id: str,
        command_line: str,
        env: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Create or replace the entry for *plugin_id*."""
        doc = self.ensure_schema(normalized)
        doc[SERVERS_KEY][plugin_id] = build_entry(command_line, env)
        return doc

    def remove_entry(
        self, normalized: dict[str, Any], plugin_id: str
    ) -> tuple[dict[str, Any], bool]:
        """Remove the entry for *plugin_id*. Returns (doc, removed)."""
        doc = self.ensure_schema(normalized)
        if plugin_id not in doc[SERVERS_KEY]:
            return doc, False
        del doc[SERVERS_KEY][plugin_id]
        return doc, True

    def get_entry(self, normalized: dict[str, Any], plugin_id: str) -> Optional[dict[str, Any]]:
        servers = self.ensure_schema(normalized)[SERVERS_KEY]
        entry = servers.get(plugin_id)
        return entry if isinstance(entry, dict) else None

    def to_native(self, normalized: dict[str, Any]) -> dict[str, Any]:
        """Convert a normalized document back to the agent's layout."""
        return self.ensure_schema(normalized)


class TopLevelServersAdapter(PlatformSchemaAdapter):
    """Named alias of the default layout, one instance per agent kind."""

    def __init__(self, kind: str):
        self.kind = kind


class NestedServersAdapter(PlatformSchemaAdapter):
    """Servers nested under a key path, e.g. ``("mcp", "servers")``."""

    def __init__(self, kind: str, path: tuple[str, ...]):
        self.kind = kind
        self.path = path

    def ensure_schema(self, raw: Any) -> dict[str, Any]:
        doc = copy.deepcopy(raw) if isinstance(raw, dict) else {}
        if SERVERS_KEY in doc and isinstance(doc[SERVERS_KEY], dict):
            # Already normalized
            return doc

        node: Any = doc
        for key in self.path:
            node = node.get(key) if isinstance(node, dict) else None
        doc[SERVERS_KEY] = copy.deepcopy(node) if isinstance(node, dict) else {}
        return doc

    def to_native(self, normalized: dict[str, Any]) -> dict[str, Any]:
        doc = self.ensure_schema(normalized)
        servers = doc.pop(SERVERS_KEY)

        node = doc
        for key in self.path[:-1]:
            if not isinstance(node.get(key), dict):
                node[key] = {}
            node = node[key]
        node[self.path[-1]] = servers
        return doc


DEFAULT_ADAPTER = PlatformSchemaAdapter()

_TOP_LEVEL_KINDS = (
    "cursor",
    "windsurf",
    "claude-desktop",
    "continue",
    "aider",
    "cline",
    "neovim",
    "emacs",
    "jetbrains",
)

ADAPTERS: dict[str, PlatformSchemaAdapter] = {
    kind: TopLevelServersAdapter(kind) for kind in _TOP_LEVEL_KINDS
}
ADAPTERS["generic"] = DEFAULT_ADAPTER
ADAPTERS["vscode"] = NestedServersAdapter("vscode", ("mcp", "servers"))


def get_adapter(kind: Optional[str]) -> PlatformSchemaAdapter:
    """Return the adapter for an agent kind, falling back to the default."""
    if kind and kind in ADAPTERS:
        return ADAPTERS[kind]
    if kind:
        logger.debug(f"No schema adapter for '{kind}', using default mcpServers layout")
    return DEFAULT_ADAPTER

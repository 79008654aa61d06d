"""
Default agent detection.

Looks for each known agent's MCP config file in the usual locations; the
first candidate that exists wins. Detection is a plain callable so callers
can swap in their own heuristics.
"""

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from mcpkit.models.agent import AgentDescriptor

logger = logging.getLogger(__name__)

Detector = Callable[[], list[AgentDescriptor]]


@dataclass(frozen=True)
class KnownAgent:
    id: str
    name: str
    category: str
    candidates: Callable[[Path, Path, str], list[Path]]


def _cursor(home: Path, cwd: Path, platform: str) -> list[Path]:
    return [home / ".cursor" / "mcp.json", cwd / ".cursor" / "mcp.json"]


def _windsurf(home: Path, cwd: Path, platform: str) -> list[Path]:
    return [home / ".windsurf" / "mcp.json", cwd / ".windsurf" / "mcp.json"]


def _claude_desktop(home: Path, cwd: Path, platform: str) -> list[Path]:
    if platform == "win32":
        app_data = Path(os.environ.get("APPDATA") or home / "AppData" / "Roaming")
        return [
            app_data / "Anthropic" / "Claude" / "mcp.json",
            app_data / "Claude" / "mcp.json",
            app_data / "Claude" / "config.json",
            app_data / "Claude" / "settings.json",
        ]
    if platform == "darwin":
        support = home / "Library" / "Application Support"
        return [
            support / "Claude" / "mcp.json",
            support / "Anthropic" / "Claude" / "mcp.json",
        ]
    return [
        home / ".claude" / "mcp.json",
        home / ".anthropic" / "claude" / "mcp.json",
        home / ".config" / "claude" / "mcp.json",
    ]


def _continue(home: Path, cwd: Path, platform: str) -> list[Path]:
    return [home / ".continue" / "config.json", home / ".continue" / "mcp.json"]


def _aider(home: Path, cwd: Path, platform: str) -> list[Path]:
    return [home / ".aiderrc", home / ".aider" / "config.json", home / ".aider" / "mcp.json"]


def _cline(home: Path, cwd: Path, platform: str) -> list[Path]:
    base = home / ".cline"
    return [base / "config.json", base / "mcp.json", base / "settings.json"]


def _generic(agent_id: str) -> Callable[[Path, Path, str], list[Path]]:
    def candidates(home: Path, cwd: Path, platform: str) -> list[Path]:
        return [
            home / f".{agent_id}" / "mcp.json",
            home / f".{agent_id}" / "config.json",
            home / f".{agent_id}rc",
        ]

    return candidates


KNOWN_AGENTS: list[KnownAgent] = [
    KnownAgent("cursor", "Cursor", "Code Editors", _cursor),
    KnownAgent("windsurf", "Windsurf", "Code Editors", _windsurf),
    KnownAgent("claude-desktop", "Claude Desktop", "AI Assistants", _claude_desktop),
    KnownAgent("continue", "Continue", "Code Editors", _continue),
    KnownAgent("aider", "Aider", "Terminal Tools", _aider),
    KnownAgent("cline", "Cline", "Code Editors", _cline),
    KnownAgent("neovim", "Neovim", "Code Editors", _generic("neovim")),
    KnownAgent("emacs", "Emacs", "Code Editors", _generic("emacs")),
    KnownAgent("jetbrains", "JetBrains IDEs", "Code Editors", _generic("jetbrains")),
]


def detect_agents(
    home: Optional[Path] = None,
    cwd: Optional[Path] = None,
    platform: Optional[str] = None,
) -> list[AgentDescriptor]:
    """Return a descriptor for each known agent whose config file exists."""
    home = home or Path.home()
    cwd = cwd or Path.cwd()
    platform = platform or sys.platform

    found = []
    for known in KNOWN_AGENTS:
        path = next((p for p in known.candidates(home, cwd, platform) if p.exists()), None)
        if path is None:
            continue
        found.append(
            AgentDescriptor(
                id=known.id,
                name=known.name,
                mcp_config_path=str(path),
                type="detected",
                category=known.category,
                kind=known.id,
            )
        )

    logger.debug(f"Detected agents: {[a.id for a in found]}")
    return found

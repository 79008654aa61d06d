"""
Pytest configuration and fixtures.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import pytest
import pytest_asyncio

# Set test environment before mcpkit.config builds its global settings
os.environ["MCPKIT_HOME"] = tempfile.mkdtemp(prefix="mcpkit-test-")
os.environ["MCPKIT_LOG_LEVEL"] = "WARNING"

REGISTRY_URL = "https://registry.test"
MIRROR_URL = "https://mirror.test/mcp-registry.json"


def official_server(
    name: str,
    identifier: Optional[str] = None,
    version: str = "1.0.0",
    env: Optional[list[dict[str, Any]]] = None,
    status: Optional[str] = None,
    server_id: Optional[str] = None,
) -> dict[str, Any]:
    """Build a server record as the official registry returns it."""
    server: dict[str, Any] = {
        "name": name,
        "description": f"{name} server",
        "version": version,
        "packages": [],
    }
    if identifier:
        server["packages"].append({
            "registry_type": "npm",
            "identifier": identifier,
            "version": version,
            "environment_variables": env or [],
        })
    if status:
        server["status"] = status
    if server_id:
        server["_meta"] = {
            "io.modelcontextprotocol.registry/official": {
                "id": server_id,
                "published_at": "2025-01-01T00:00:00Z",
            }
        }
    return server


def registry_handler(
    pages: list[list[dict[str, Any]]],
    mirror: Optional[dict[str, Any]] = None,
    fail_registry: bool = False,
) -> Callable[[httpx.Request], httpx.Response]:
    """MockTransport handler serving paginated registry pages and a mirror.

    The cursor for page N+1 is the string ``"pN"``.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "mirror.test":
            if mirror is None:
                return httpx.Response(404)
            return httpx.Response(200, json=mirror)

        if fail_registry:
            return httpx.Response(503)

        cursor = request.url.params.get("cursor")
        index = int(cursor[1:]) if cursor else 0
        if index >= len(pages):
            return httpx.Response(404)
        metadata = {"next_cursor": f"p{index + 1}"} if index + 1 < len(pages) else {}
        return httpx.Response(200, json={"servers": pages[index], "metadata": metadata})

    return handler


@pytest.fixture
def make_server():
    """Factory for official registry server records."""
    return official_server


@pytest.fixture
def make_handler():
    """Factory for MockTransport registry handlers."""
    return registry_handler


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """A fresh mcpkit home directory for each test."""
    path = tmp_path / "mcpkit-home"
    path.mkdir()
    return path


@pytest.fixture
def test_settings(home: Path):
    """Create test settings pointing at mock registry URLs."""
    from mcpkit.config import Settings

    return Settings(
        home=home,
        registry_base_url=REGISTRY_URL,
        mirror_url=MIRROR_URL,
        log_level="WARNING",
    )


@pytest.fixture
def agent_config(tmp_path: Path) -> Path:
    """An existing agent config file with one unrelated server."""
    path = tmp_path / "cursor" / "mcp.json"
    path.parent.mkdir()
    path.write_text(json.dumps({
        "mcpServers": {"other": {"command": "node", "args": ["other.js"], "env": {}}},
        "theme": "dark",
    }, indent=2))
    return path


@pytest.fixture
def cursor_agent(agent_config: Path):
    from mcpkit.models.agent import AgentDescriptor

    return AgentDescriptor(
        id="cursor",
        name="Cursor",
        mcp_config_path=str(agent_config),
        type="detected",
        category="Code Editors",
        kind="cursor",
    )


@pytest.fixture
def fs_mcp_server() -> dict[str, Any]:
    """Registry record for the fs-mcp example server."""
    return official_server(
        "fs-mcp",
        identifier="@x/fs",
        version="1.2.0",
        env=[{"name": "ROOT", "is_required": True, "description": "Root directory"}],
    )


@pytest_asyncio.fixture
async def make_service(test_settings, cursor_agent):
    """Factory building a McpKitService over a mock transport."""
    from mcpkit.core.service import McpKitService

    clients: list[httpx.AsyncClient] = []

    def factory(handler, agents=None) -> McpKitService:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        detected = [cursor_agent] if agents is None else agents
        return McpKitService.create(test_settings, client=client, detector=lambda: list(detected))

    yield factory

    for client in clients:
        await client.aclose()

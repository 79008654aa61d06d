"""Tests for agent detection and the persisted agent registry."""

import json
from unittest.mock import patch

import pytest

from mcpkit.core.agents import AgentRegistry
from mcpkit.core.discovery import detect_agents
from mcpkit.lib.typed_errors import InvalidAgentPathError
from mcpkit.models.agent import AgentDescriptor


@pytest.fixture
def fake_home(tmp_path):
    path = tmp_path / "user"
    path.mkdir()
    return path


class TestDetectAgents:
    def test_nothing_installed(self, fake_home, tmp_path):
        assert detect_agents(home=fake_home, cwd=tmp_path, platform="linux") == []

    def test_detects_cursor_global_config(self, fake_home, tmp_path):
        config = fake_home / ".cursor" / "mcp.json"
        config.parent.mkdir()
        config.write_text("{}")

        agents = detect_agents(home=fake_home, cwd=tmp_path, platform="linux")

        assert len(agents) == 1
        agent = agents[0]
        assert agent.id == "cursor"
        assert agent.kind == "cursor"
        assert agent.type == "detected"
        assert agent.category == "Code Editors"
        assert agent.mcp_config_path == str(config)

    def test_project_config_when_no_global(self, fake_home, tmp_path):
        project = tmp_path / "project"
        config = project / ".cursor" / "mcp.json"
        config.parent.mkdir(parents=True)
        config.write_text("{}")

        agents = detect_agents(home=fake_home, cwd=project, platform="linux")

        assert agents[0].mcp_config_path == str(config)

    def test_first_candidate_wins(self, fake_home, tmp_path):
        (fake_home / ".continue").mkdir()
        (fake_home / ".continue" / "config.json").write_text("{}")
        (fake_home / ".continue" / "mcp.json").write_text("{}")

        agents = detect_agents(home=fake_home, cwd=tmp_path, platform="linux")

        assert agents[0].mcp_config_path.endswith("config.json")

    def test_claude_desktop_macos(self, fake_home, tmp_path):
        config = fake_home / "Library" / "Application Support" / "Claude" / "mcp.json"
        config.parent.mkdir(parents=True)
        config.write_text("{}")

        assert detect_agents(home=fake_home, cwd=tmp_path, platform="linux") == []
        agents = detect_agents(home=fake_home, cwd=tmp_path, platform="darwin")
        assert [a.id for a in agents] == ["claude-desktop"]
        assert agents[0].category == "AI Assistants"

    def test_generic_rc_file(self, fake_home, tmp_path):
        (fake_home / ".emacsrc").write_text("{}")
        agents = detect_agents(home=fake_home, cwd=tmp_path, platform="linux")
        assert [a.id for a in agents] == ["emacs"]


class TestAgentRegistry:
    @pytest.fixture
    def detected(self, tmp_path):
        return AgentDescriptor(
            id="cursor", name="Cursor", mcp_config_path=str(tmp_path / "c.json"), kind="cursor"
        )

    @pytest.fixture
    def registry(self, tmp_path, detected):
        return AgentRegistry(tmp_path / "home" / "agents.json", detector=lambda: [detected])

    @pytest.mark.asyncio
    async def test_lists_detected(self, registry):
        agents = await registry.list_agents()
        assert [a.id for a in agents] == ["cursor"]

    @pytest.mark.asyncio
    async def test_add_requires_existing_path(self, registry, tmp_path):
        with pytest.raises(InvalidAgentPathError) as exc_info:
            await registry.add_persisted_agent("Mine", tmp_path / "missing.json")
        assert exc_info.value.config_path.endswith("missing.json")
        assert not (tmp_path / "home" / "agents.json").exists()

    @pytest.mark.asyncio
    async def test_add_requires_name(self, registry, tmp_path):
        config = tmp_path / "mine.json"
        config.write_text("{}")
        with pytest.raises(InvalidAgentPathError):
            await registry.add_persisted_agent("", config)

    @pytest.mark.asyncio
    async def test_add_persists_agent(self, registry, tmp_path):
        config = tmp_path / "mine.json"
        config.write_text("{}")

        with patch("mcpkit.core.agents.time.time", return_value=1700000000.5):
            agent = await registry.add_persisted_agent("Mine", config, kind="vscode")

        assert agent.id == "custom-1700000000500"
        assert agent.type == "persisted"
        assert agent.kind == "vscode"

        data = json.loads((tmp_path / "home" / "agents.json").read_text())
        assert data["custom-1700000000500"]["mcpConfigPath"] == str(config.resolve())
        assert data["custom-1700000000500"]["name"] == "Mine"

        agents = await registry.list_agents()
        assert [a.id for a in agents] == ["cursor", "custom-1700000000500"]
        assert (await registry.get("custom-1700000000500")).kind == "vscode"

    @pytest.mark.asyncio
    async def test_same_millisecond_ids_stay_unique(self, registry, tmp_path):
        config = tmp_path / "mine.json"
        config.write_text("{}")

        with patch("mcpkit.core.agents.time.time", return_value=1700000000.0):
            first = await registry.add_persisted_agent("One", config)
            second = await registry.add_persisted_agent("Two", config)

        assert first.id != second.id

    @pytest.mark.asyncio
    async def test_default_kind_is_generic(self, registry, tmp_path):
        config = tmp_path / "mine.json"
        config.write_text("{}")
        agent = await registry.add_persisted_agent("Mine", config)
        assert agent.kind == "generic"

    @pytest.mark.asyncio
    async def test_remove(self, registry, tmp_path):
        config = tmp_path / "mine.json"
        config.write_text("{}")
        agent = await registry.add_persisted_agent("Mine", config)

        assert await registry.remove_persisted_agent(agent.id) is True
        assert await registry.remove_persisted_agent(agent.id) is False
        assert await registry.get(agent.id) is None

    @pytest.mark.asyncio
    async def test_get_unknown(self, registry):
        assert await registry.get("nope") is None

    @pytest.mark.asyncio
    async def test_skips_corrupt_persisted_entries(self, registry, tmp_path):
        agents_file = tmp_path / "home" / "agents.json"
        agents_file.parent.mkdir()
        agents_file.write_text(json.dumps({
            "custom-1": {"name": "Ok", "mcpConfigPath": "/x.json"},
            "custom-2": "garbage",
            "custom-3": {"mcpConfigPath": "/y.json"},
        }))

        agents = await registry.list_agents()

        assert [a.id for a in agents] == ["cursor", "custom-1"]
        assert agents[1].type == "persisted"

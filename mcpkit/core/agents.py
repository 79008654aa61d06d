"""
Agent registry.

Combines agents found by the detector with agents the user added by hand.
User-added agents are persisted to ``<home>/agents.json`` as a mapping of
agent id to descriptor.
"""

import logging
import time
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from mcpkit.core.discovery import Detector, detect_agents
from mcpkit.core.schema_adapters import ADAPTERS
from mcpkit.lib.config_store import ConfigStore
from mcpkit.lib.typed_errors import InvalidAgentPathError
from mcpkit.models.agent import AgentDescriptor

logger = logging.getLogger(__name__)

PERSISTED_PREFIX = "custom-"


class AgentRegistry:
    """Detected + persisted agents."""

    def __init__(
        self,
        agents_path: Path,
        detector: Optional[Detector] = None,
        store: Optional[ConfigStore] = None,
    ):
        self.agents_path = Path(agents_path)
        self.detector = detector or detect_agents
        self.store = store or ConfigStore()

    async def _load_persisted(self) -> dict[str, AgentDescriptor]:
        data = await self.store.read(self.agents_path)
        agents: dict[str, AgentDescriptor] = {}
        for agent_id, raw in data.items():
            if not isinstance(raw, dict):
                continue
            try:
                agent = AgentDescriptor.model_validate({"id": agent_id, **raw})
            except ValidationError as e:
                logger.warning(f"Skipping invalid persisted agent '{agent_id}': {e.error_count()} errors")
                continue
            agents[agent_id] = agent.model_copy(update={"type": "persisted"})
        return agents

    async def _save_persisted(self, agents: dict[str, AgentDescriptor]) -> None:
        doc = {
            agent_id: agent.model_dump(by_alias=True, mode="json")
            for agent_id, agent in agents.items()
        }
        await self.store.write(self.agents_path, doc, backup=False)

    async def list_agents(self) -> list[AgentDescriptor]:
        """Detected agents followed by persisted ones."""
        detected = list(self.detector())
        persisted = await self._load_persisted()
        return detected + list(persisted.values())

    async def get(self, agent_id: str) -> Optional[AgentDescriptor]:
        for agent in await self.list_agents():
            if agent.id == agent_id:
                return agent
        return None

    async def add_persisted_agent(
        self, name: str, path: str | Path, kind: Optional[str] = None
    ) -> AgentDescriptor:
        """Persist a user-added agent pointing at an existing config file."""
        if not name or not str(path):
            raise InvalidAgentPathError("name and config path are required")

        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise InvalidAgentPathError(
                f"Config path does not exist: {config_path}", config_path=config_path
            )

        if kind and kind not in ADAPTERS:
            logger.warning(f"Unknown agent kind '{kind}', using the default mcpServers layout")

        persisted = await self._load_persisted()
        agent_id = f"{PERSISTED_PREFIX}{int(time.time() * 1000)}"
        while agent_id in persisted:
            agent_id = f"{PERSISTED_PREFIX}{int(agent_id.removeprefix(PERSISTED_PREFIX)) + 1}"

        agent = AgentDescriptor(
            id=agent_id,
            name=name,
            mcp_config_path=str(config_path.resolve()),
            type="persisted",
            category="Custom",
            kind=kind or "generic",
        )
        persisted[agent_id] = agent
        await self._save_persisted(persisted)
        logger.info(f"Added agent '{name}' as {agent_id} ({agent.mcp_config_path})")
        return agent

    async def remove_persisted_agent(self, agent_id: str) -> bool:
        """Forget a user-added agent. Returns False if it wasn't persisted."""
        persisted = await self._load_persisted()
        if agent_id not in persisted:
            return False
        del persisted[agent_id]
        await self._save_persisted(persisted)
        logger.info(f"Removed agent {agent_id}")
        return True

"""
McpKitService: the caller-facing surface of mcpkit.

Every operation returns either its result model or a TypedError; no
exception escapes. Use as an async context manager so the HTTP client is
closed when done:

    async with McpKitService.create() as service:
        result = await service.install("cursor", "fs-mcp", {"ROOT": "/tmp"})
"""

import logging
from pathlib import Path
from typing import Any, Optional, Union

import httpx

from mcpkit.config import Settings, get_settings
from mcpkit.core.agents import AgentRegistry
from mcpkit.core.discovery import Detector
from mcpkit.core.ledger import InstallationLedger
from mcpkit.core.orchestrator import InstallOrchestrator
from mcpkit.core.registry_sources import (
    CacheSource,
    MirrorSource,
    OfficialRegistrySource,
    RegistryChain,
)
from mcpkit.core.registry_store import RegistryStore
from mcpkit.lib.config_store import ConfigStore
from mcpkit.lib.typed_errors import AgentNotFoundError, TypedError, parse_error
from mcpkit.models.agent import AgentDescriptor
from mcpkit.models.plugin import Catalog
from mcpkit.models.results import (
    AddAgentResult,
    EnvValidation,
    InstallResult,
    InstallStatus,
    RefreshResult,
    UninstallResult,
)

logger = logging.getLogger(__name__)


class McpKitService:
    def __init__(
        self,
        registry: RegistryStore,
        agents: AgentRegistry,
        client: Optional[httpx.AsyncClient] = None,
        owns_client: bool = False,
        store: Optional[ConfigStore] = None,
    ):
        self.registry = registry
        self.agents = agents
        self.ledger = InstallationLedger(registry)
        self.orchestrator = InstallOrchestrator(agents, registry, self.ledger, store)
        self.client = client
        self._owns_client = owns_client

    @classmethod
    def create(
        cls,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        detector: Optional[Detector] = None,
    ) -> "McpKitService":
        """Wire the default source chain and stores from settings."""
        settings = settings or get_settings()
        owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(timeout=settings.request_timeout, follow_redirects=True)

        store = ConfigStore()
        chain = RegistryChain(
            [
                OfficialRegistrySource(
                    client,
                    settings.registry_base_url,
                    page_size=settings.page_size,
                    max_records=settings.max_records,
                ),
                MirrorSource(client, settings.mirror_url),
                CacheSource(settings.cache_path, store),
            ]
        )
        registry = RegistryStore(settings.cache_path, chain, store)
        agents = AgentRegistry(settings.agents_path, detector=detector, store=store)
        return cls(registry, agents, client=client, owns_client=owns_client, store=store)

    async def __aenter__(self) -> "McpKitService":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self.client is not None and self._owns_client:
            await self.client.aclose()
            self.client = None

    # Catalog

    async def get_catalog(self) -> Union[Catalog, TypedError]:
        try:
            return await self.registry.get_catalog()
        except Exception as e:
            logger.error(f"Failed to load catalog: {e}")
            return parse_error(e, self.registry.cache_path)

    async def refresh_catalog(self) -> Union[RefreshResult, TypedError]:
        try:
            return await self.registry.refresh()
        except Exception as e:
            logger.error(f"Registry refresh failed: {e}")
            return parse_error(e, self.registry.cache_path)

    # Install state

    async def get_install_status(
        self, agent_id: str, plugin_id: str
    ) -> Union[InstallStatus, TypedError]:
        try:
            return await self.orchestrator.get_install_status(agent_id, plugin_id)
        except Exception as e:
            return parse_error(e)

    async def install(
        self,
        agent_id: str,
        plugin_id: str,
        env_vars: Optional[dict[str, Any]] = None,
    ) -> Union[InstallResult, TypedError]:
        try:
            return await self.orchestrator.install(agent_id, plugin_id, env_vars)
        except Exception as e:
            error = parse_error(e)
            logger.warning(f"Install of {plugin_id} into {agent_id} failed: {error.message}")
            return error

    async def uninstall(self, agent_id: str, plugin_id: str) -> Union[UninstallResult, TypedError]:
        try:
            return await self.orchestrator.uninstall(agent_id, plugin_id)
        except Exception as e:
            error = parse_error(e)
            logger.warning(f"Uninstall of {plugin_id} from {agent_id} failed: {error.message}")
            return error

    async def validate_env(
        self, plugin_id: str, env_vars: Optional[dict[str, Any]] = None
    ) -> Union[EnvValidation, TypedError]:
        try:
            missing = await self.orchestrator.validate_env(plugin_id, env_vars)
        except Exception as e:
            return parse_error(e)
        return EnvValidation(valid=not missing, missing=missing)

    # Agents

    async def list_agents(self) -> Union[list[AgentDescriptor], TypedError]:
        try:
            return await self.agents.list_agents()
        except Exception as e:
            return parse_error(e, self.agents.agents_path)

    async def add_persisted_agent(
        self, name: str, path: Union[str, Path], kind: Optional[str] = None
    ) -> Union[AddAgentResult, TypedError]:
        try:
            agent = await self.agents.add_persisted_agent(name, path, kind)
        except Exception as e:
            return parse_error(e, path)
        return AddAgentResult(agent=agent)

    async def remove_persisted_agent(self, agent_id: str) -> Union[bool, TypedError]:
        try:
            removed = await self.agents.remove_persisted_agent(agent_id)
        except Exception as e:
            return parse_error(e, self.agents.agents_path)
        if not removed:
            return parse_error(AgentNotFoundError(f"No user-added agent '{agent_id}'"))
        return True

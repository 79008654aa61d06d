"""
Install orchestration.

Validates an install or uninstall request, applies the config mutation
through the agent's schema adapter, and records the result in the ledger.
Nothing is written until every check has passed.
"""

import logging
from pathlib import Path
from typing import Any, Optional

from mcpkit.core.agents import AgentRegistry
from mcpkit.core.ledger import InstallationLedger
from mcpkit.core.registry_store import RegistryStore
from mcpkit.core.schema_adapters import get_adapter
from mcpkit.lib.config_store import ConfigStore
from mcpkit.lib.typed_errors import (
    AgentConfigPathMissingError,
    AgentNotFoundError,
    EntryNotFoundError,
    MissingEnvVar,
    MissingEnvVarsError,
    NotInstallableError,
    PluginNotFoundError,
)
from mcpkit.models.agent import AgentDescriptor
from mcpkit.models.plugin import PluginRecord
from mcpkit.models.results import InstallResult, InstallStatus, UninstallResult

logger = logging.getLogger(__name__)


def _is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


def find_missing_env(plugin: PluginRecord, env_vars: Optional[dict[str, Any]]) -> list[MissingEnvVar]:
    """Required variables of *plugin* that are absent or blank in *env_vars*."""
    env_vars = env_vars or {}
    missing = []
    for key, spec in plugin.env.items():
        if spec.required and _is_blank(env_vars.get(key)):
            missing.append(
                MissingEnvVar(
                    key=key,
                    required=True,
                    description=spec.description,
                    placeholder=spec.placeholder,
                    help=spec.help,
                    secret=spec.secret,
                )
            )
    return missing


class InstallOrchestrator:
    def __init__(
        self,
        agents: AgentRegistry,
        registry: RegistryStore,
        ledger: InstallationLedger,
        store: Optional[ConfigStore] = None,
    ):
        self.agents = agents
        self.registry = registry
        self.ledger = ledger
        self.store = store or ConfigStore()

    async def _resolve_agent(self, agent_id: str) -> tuple[AgentDescriptor, Path]:
        agent = await self.agents.get(agent_id)
        if agent is None:
            raise AgentNotFoundError(f"Agent '{agent_id}' not found")
        if not agent.has_config:
            raise AgentConfigPathMissingError(f"Agent '{agent_id}' has no MCP config file")
        return agent, Path(agent.mcp_config_path)

    async def _resolve_plugin(
        self, plugin_id: str, config_path: Optional[Path] = None
    ) -> PluginRecord:
        plugin = await self.registry.find(plugin_id)
        if plugin is None:
            raise PluginNotFoundError(
                f"MCP '{plugin_id}' not found in registry", config_path=config_path
            )
        return plugin

    async def install(
        self,
        agent_id: str,
        plugin_id: str,
        env_vars: Optional[dict[str, Any]] = None,
    ) -> InstallResult:
        """Write *plugin_id*'s server entry into *agent_id*'s config file."""
        agent, config_path = await self._resolve_agent(agent_id)
        plugin = await self._resolve_plugin(plugin_id, config_path)

        if not plugin.is_installable:
            raise NotInstallableError(
                "No installation command available from registry",
                config_path=config_path,
                details=[
                    "This MCP server does not have an npm package or installation "
                    "command defined in the registry"
                ],
            )

        missing = find_missing_env(plugin, env_vars)
        if missing:
            raise MissingEnvVarsError(missing, config_path=config_path)

        adapter = get_adapter(agent.kind)
        raw = await self.store.read(config_path)
        doc = adapter.set_entry(adapter.ensure_schema(raw), plugin.id, plugin.command, env_vars)
        native = adapter.to_native(doc)

        changed = native != raw
        if changed:
            await self.store.write(config_path, native)
            logger.info(f"Installed {plugin.id} into {agent.id} ({config_path})")
        else:
            logger.info(f"{plugin.id} already configured for {agent.id}, leaving {config_path} as is")

        await self.ledger.mark_installed(plugin.id, agent.id)

        return InstallResult(
            mcp_config_path=str(config_path),
            npm_package=plugin.npm,
            version=plugin.version,
            changed=changed,
        )

    async def uninstall(self, agent_id: str, plugin_id: str) -> UninstallResult:
        """Remove *plugin_id*'s entry from *agent_id*'s config file."""
        agent, config_path = await self._resolve_agent(agent_id)

        adapter = get_adapter(agent.kind)
        raw = await self.store.read(config_path)
        doc, removed = adapter.remove_entry(adapter.ensure_schema(raw), plugin_id)
        if not removed:
            raise EntryNotFoundError(
                "MCP not found in configuration", config_path=config_path
            )

        await self.store.write(config_path, adapter.to_native(doc))
        logger.info(f"Uninstalled {plugin_id} from {agent.id} ({config_path})")

        await self.ledger.mark_uninstalled(plugin_id, agent.id)
        return UninstallResult(mcp_config_path=str(config_path))

    async def get_install_status(self, agent_id: str, plugin_id: str) -> InstallStatus:
        """Whether *plugin_id* has an entry in *agent_id*'s config file."""
        agent, config_path = await self._resolve_agent(agent_id)
        adapter = get_adapter(agent.kind)
        entry = adapter.get_entry(adapter.ensure_schema(await self.store.read(config_path)), plugin_id)
        return InstallStatus(installed=entry is not None, config=entry)

    async def validate_env(
        self, plugin_id: str, env_vars: Optional[dict[str, Any]] = None
    ) -> list[MissingEnvVar]:
        """Missing required variables for *plugin_id*, without installing."""
        plugin = await self._resolve_plugin(plugin_id)
        return find_missing_env(plugin, env_vars)

"""
Installation ledger.

Tracks which agents each plugin is installed into. State lives on the
catalog records themselves (``installed``, ``installed_agents``,
``installation_date``) and every change flushes the registry cache.
Updated records replace the cached ones only after the flush succeeds.
"""

import logging
from datetime import datetime, timezone

from mcpkit.core.registry_store import RegistryStore

logger = logging.getLogger(__name__)


class InstallationLedger:
    def __init__(self, registry: RegistryStore):
        self.registry = registry

    async def _ensure_loaded(self) -> None:
        if not self.registry.is_loaded:
            await self.registry.load()

    async def mark_installed(self, plugin_id: str, agent_id: str) -> bool:
        """Record *plugin_id* as installed for *agent_id*. Returns False for unknown plugins."""
        await self._ensure_loaded()
        record = self.registry.catalog.find(plugin_id)
        if record is None:
            logger.warning(f"Ledger: plugin '{plugin_id}' not in registry, not recording install")
            return False

        if agent_id in record.installed_agents:
            return True

        update = {"installed": True, "installed_agents": [*record.installed_agents, agent_id]}
        if not record.installed:
            update["installation_date"] = datetime.now(timezone.utc).isoformat()

        await self.registry.replace_record(record.model_copy(update=update))
        logger.info(f"Ledger: {plugin_id} installed for {agent_id}")
        return True

    async def mark_uninstalled(self, plugin_id: str, agent_id: str) -> bool:
        """Remove *agent_id* from *plugin_id*'s installs. Returns False for unknown plugins."""
        await self._ensure_loaded()
        record = self.registry.catalog.find(plugin_id)
        if record is None:
            logger.warning(f"Ledger: plugin '{plugin_id}' not in registry, not recording uninstall")
            return False

        if agent_id not in record.installed_agents:
            return True

        remaining = [a for a in record.installed_agents if a != agent_id]
        update = {"installed_agents": remaining}
        if not remaining:
            update.update(installed=False, installation_date=None)

        await self.registry.replace_record(record.model_copy(update=update))
        logger.info(f"Ledger: {plugin_id} uninstalled from {agent_id}")
        return True

    def agents_for(self, plugin_id: str) -> list[str]:
        record = self.registry.catalog.find(plugin_id)
        return list(record.installed_agents) if record else []

"""
Registry store.

Owns the registry cache file (``<home>/mcp-registry.json``) and the
in-memory catalog loaded from it. Refreshing replaces registry data from
the source chain while carrying installation state forward, so installs
survive upstream changes to a record.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from mcpkit.core.registry_sources import CacheSource, RegistryChain, parse_records
from mcpkit.lib.config_store import ConfigStore
from mcpkit.lib.typed_errors import ConfigWriteError, RegistryWriteError
from mcpkit.models.plugin import Catalog, PluginRecord
from mcpkit.models.results import RefreshResult

logger = logging.getLogger(__name__)

# Fields owned by the ledger rather than the registry
INSTALL_FIELDS = ("installed", "installed_agents", "installation_date")


def carry_forward(previous: Catalog, fresh: Catalog) -> Catalog:
    """Copy installation state from *previous* onto matching ids in *fresh*."""
    by_id = {record.id: record for record in previous.mcps if record.installed_agents}
    merged = []
    for record in fresh.mcps:
        old = by_id.get(record.id)
        if old is not None:
            record = record.model_copy(
                update={
                    "installed": True,
                    "installed_agents": list(old.installed_agents),
                    "installation_date": old.installation_date,
                }
            )
        else:
            record = record.model_copy(
                update={"installed": False, "installed_agents": [], "installation_date": None}
            )
        merged.append(record)
    return Catalog(mcps=merged)


class RegistryStore:
    """Cached catalog with refresh and persistence."""

    def __init__(
        self,
        cache_path: Path,
        chain: RegistryChain,
        store: Optional[ConfigStore] = None,
    ):
        self.cache_path = Path(cache_path)
        self.chain = chain
        self.store = store or ConfigStore()
        self._catalog: Optional[Catalog] = None
        self.last_source: Optional[str] = None

    @property
    def catalog(self) -> Catalog:
        """The in-memory catalog (empty until loaded)."""
        if self._catalog is None:
            return Catalog()
        return self._catalog

    @property
    def is_loaded(self) -> bool:
        return self._catalog is not None

    async def load(self) -> Catalog:
        """Load the catalog from the cache file without touching the network."""
        data = await self.store.read(self.cache_path)
        items = data.get("mcps")
        self._catalog = Catalog(mcps=parse_records(items if isinstance(items, list) else []))
        logger.debug(f"Loaded {len(self._catalog)} MCPs from cache {self.cache_path}")
        return self._catalog

    async def get_catalog(self) -> Catalog:
        """Return the catalog, loading the cache and refreshing if it is empty."""
        if self._catalog is None:
            await self.load()
        if not self.catalog.mcps:
            await self.refresh()
        return self.catalog

    async def find(self, plugin_id: str) -> Optional[PluginRecord]:
        catalog = await self.get_catalog()
        return catalog.find(plugin_id)

    async def refresh(self) -> RefreshResult:
        """Re-resolve the catalog from the source chain.

        Scheduled and on-demand refreshes both run this. The cache file is
        re-read first so installs recorded by other processes are seen. When
        a remote tier wins, that installation state is carried forward by id
        and the cache file is replaced.
        """
        previous = await self.load()

        fresh, source = await self.chain.resolve()
        if self._is_remote(source):
            merged = carry_forward(previous, fresh)
            await self.flush(merged)
            self._catalog = merged
        elif source != "none":
            self._catalog = fresh
        self.last_source = source

        refreshed_at = datetime.now(timezone.utc).isoformat()
        logger.info(f"Registry refreshed from {source}: {len(self.catalog)} MCPs")
        return RefreshResult(source=source, count=len(self.catalog), refreshed_at=refreshed_at)

    def _is_remote(self, source: str) -> bool:
        for s in self.chain.sources:
            if s.name == source:
                return not isinstance(s, CacheSource)
        return False

    async def replace_record(self, record: PluginRecord) -> None:
        """Swap in an updated record by id, persisting before memory changes."""
        catalog = Catalog(
            mcps=[record if r.id == record.id else r for r in self.catalog.mcps]
        )
        await self.flush(catalog)
        self._catalog = catalog

    async def flush(self, catalog: Optional[Catalog] = None) -> None:
        """Write *catalog* (default: the in-memory one) to the cache file."""
        doc = (catalog if catalog is not None else self.catalog).model_dump(mode="json")
        try:
            await self.store.write(self.cache_path, doc, backup=False)
        except ConfigWriteError as e:
            raise RegistryWriteError(e.message, config_path=self.cache_path) from e
        logger.debug(f"Registry cache written: {self.cache_path}")

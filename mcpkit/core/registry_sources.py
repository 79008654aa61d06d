"""
Registry sources and the fallback chain.

Sources are tried in order until one yields a non-empty catalog:

1. OfficialRegistrySource - the paginated official MCP registry
2. MirrorSource - a flat JSON mirror of the catalog
3. CacheSource - the local registry cache file

When every tier fails the chain resolves to an empty catalog rather than
raising.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from mcpkit.core.registry_transform import record_status, transform
from mcpkit.lib.config_store import ConfigStore
from mcpkit.models.plugin import Catalog, PluginRecord

logger = logging.getLogger(__name__)

SERVERS_PATH = "/v0/servers"


class RegistrySourceError(Exception):
    """A registry source could not produce a usable catalog."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message


def parse_records(items: list[Any]) -> list[PluginRecord]:
    """Validate catalog records, dropping the ones that don't fit the model."""
    records = []
    for item in items:
        try:
            records.append(PluginRecord.model_validate(item))
        except ValidationError as e:
            logger.debug(f"Dropping invalid catalog record: {e.error_count()} errors")
    return records


class RegistrySource:
    """Base class for catalog sources."""

    name = "source"

    async def fetch(self) -> Catalog:
        raise NotImplementedError


class OfficialRegistrySource(RegistrySource):
    """The official MCP registry, fetched page by page."""

    name = "official"

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        page_size: int = 100,
        max_records: int = 5000,
    ):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self.max_records = max_records

    async def _fetch_page(self, cursor: Optional[str]) -> httpx.Response:
        params: dict[str, Any] = {"limit": self.page_size}
        if cursor:
            params["cursor"] = cursor
        return await self.client.get(f"{self.base_url}{SERVERS_PATH}", params=params)

    async def fetch_raw(self) -> list[dict[str, Any]]:
        """Collect raw server records across pages."""
        collected: list[dict[str, Any]] = []
        cursor: Optional[str] = None
        page = 0

        while True:
            try:
                response = await self._fetch_page(cursor)
            except httpx.HTTPError as e:
                if page == 0:
                    raise RegistrySourceError(self.name, f"request failed: {e}") from e
                logger.warning(f"Registry page {page + 1} failed, keeping {len(collected)} records: {e}")
                break

            if response.status_code >= 400:
                if page == 0:
                    raise RegistrySourceError(self.name, f"HTTP {response.status_code}")
                logger.warning(
                    f"Registry page {page + 1} returned HTTP {response.status_code}, "
                    f"keeping {len(collected)} records"
                )
                break

            try:
                data = response.json()
            except json.JSONDecodeError as e:
                if page == 0:
                    raise RegistrySourceError(self.name, f"invalid JSON: {e}") from e
                logger.warning(f"Registry page {page + 1} is not valid JSON, keeping {len(collected)} records")
                break
            if not isinstance(data, dict):
                if page == 0:
                    raise RegistrySourceError(self.name, "response is not a JSON object")
                logger.warning(f"Registry page {page + 1} is not a JSON object, keeping {len(collected)} records")
                break

            items = data.get("servers")
            if not isinstance(items, list) or not items:
                break
            collected.extend(i for i in items if isinstance(i, dict))
            page += 1

            if len(collected) >= self.max_records:
                logger.info(f"Registry record cap reached ({self.max_records}), stopping")
                collected = collected[: self.max_records]
                break

            metadata = data.get("metadata") or {}
            cursor = metadata.get("next_cursor") or metadata.get("nextCursor")
            if not cursor:
                break

        return collected

    async def fetch(self) -> Catalog:
        raw = await self.fetch_raw()
        active = [r for r in raw if record_status(r) == "active"]
        records = [rec for rec in (transform(r) for r in active) if rec is not None]
        if not records:
            raise RegistrySourceError(self.name, "no usable records")
        logger.debug(f"Official registry: {len(raw)} raw, {len(active)} active, {len(records)} usable")
        return Catalog(mcps=records)


class MirrorSource(RegistrySource):
    """A flat ``{"mcps": [...]}`` document hosted somewhere static."""

    name = "mirror"

    def __init__(self, client: httpx.AsyncClient, url: str):
        self.client = client
        self.url = url

    async def fetch(self) -> Catalog:
        try:
            response = await self.client.get(self.url)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, json.JSONDecodeError) as e:
            raise RegistrySourceError(self.name, str(e)) from e

        items = data.get("mcps") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise RegistrySourceError(self.name, "document has no 'mcps' list")
        records = parse_records(items)
        if not records:
            raise RegistrySourceError(self.name, "no usable records")
        return Catalog(mcps=records)


class CacheSource(RegistrySource):
    """The local registry cache file."""

    name = "cache"

    def __init__(self, path: Path, store: Optional[ConfigStore] = None):
        self.path = Path(path)
        self.store = store or ConfigStore()

    async def fetch(self) -> Catalog:
        data = await self.store.read(self.path)
        items = data.get("mcps")
        if not isinstance(items, list):
            raise RegistrySourceError(self.name, f"no cached catalog at {self.path}")
        return Catalog(mcps=parse_records(items))


class RegistryChain:
    """Ordered fallback across registry sources."""

    def __init__(self, sources: list[RegistrySource]):
        self.sources = sources

    async def resolve(self) -> tuple[Catalog, str]:
        """Return (catalog, source name) from the first source that succeeds."""
        for source in self.sources:
            try:
                catalog = await source.fetch()
            except RegistrySourceError as e:
                self._log_failure(source, e)
                continue
            logger.info(f"Loaded {len(catalog)} MCPs from {source.name}")
            return catalog, source.name

        logger.warning("No MCP registry data available, using an empty catalog")
        return Catalog(), "none"

    @staticmethod
    def _log_failure(source: RegistrySource, error: RegistrySourceError) -> None:
        if isinstance(source, OfficialRegistrySource):
            logger.warning(f"Failed to fetch from official registry: {error.message}")
        else:
            logger.debug(f"Registry source '{source.name}' failed: {error.message}")

"""
Transform official MCP registry records into catalog PluginRecords.

The registry has shipped a few shapes over time: flat server objects with
snake_case keys, and newer responses that wrap each server as
``{"server": {...}, "_meta": {...}}`` with camelCase keys. Both are
accepted here. Records that cannot be transformed are dropped (``None``),
never raised.
"""

import logging
from typing import Any, Optional

from mcpkit.models.plugin import PluginRecord

logger = logging.getLogger(__name__)

OFFICIAL_META_KEY = "io.modelcontextprotocol.registry/official"
DEFAULT_CATEGORY = "Community"


def _pick(data: dict[str, Any], *keys: str) -> Any:
    """Return the first truthy value among *keys*."""
    for key in keys:
        value = data.get(key)
        if value:
            return value
    return None


def unwrap(raw: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split a registry record into (server, official_meta)."""
    if isinstance(raw.get("server"), dict):
        server = dict(raw["server"])
        meta = raw.get("_meta") or server.get("_meta") or {}
    else:
        server = raw
        meta = raw.get("_meta") or {}
    official = meta.get(OFFICIAL_META_KEY) if isinstance(meta, dict) else None
    return server, official if isinstance(official, dict) else {}


def record_status(raw: dict[str, Any]) -> str:
    """Lifecycle status of a registry record, ``"active"`` when absent."""
    server, official = unwrap(raw)
    status = raw.get("status") or server.get("status") or official.get("status") or "active"
    return str(status).strip().lower()


def _env_from_packages(packages: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    env: dict[str, dict[str, Any]] = {}
    for pkg in packages:
        variables = _pick(pkg, "environment_variables", "environmentVariables") or []
        for var in variables:
            if not isinstance(var, dict) or not var.get("name"):
                continue
            # Last-seen definition wins across packages
            env[var["name"]] = {
                "required": bool(_pick(var, "is_required", "isRequired")),
                "description": var.get("description") or "",
                "placeholder": var.get("placeholder") or "",
                "help": var.get("help") or "",
                "secret": bool(_pick(var, "is_secret", "isSecret")),
            }
    return env


def _build_command(pkg: Optional[dict[str, Any]], version: str) -> Optional[str]:
    if not pkg or not pkg.get("identifier"):
        return None
    command = f"npx {pkg['identifier']}@{pkg.get('version') or version or 'latest'}"
    transport = pkg.get("transport")
    if isinstance(transport, dict) and transport.get("type") == "sse":
        command += " --transport sse"
    return command


def transform(raw: Any) -> Optional[PluginRecord]:
    """Convert one upstream registry record to a PluginRecord, or None."""
    try:
        if not isinstance(raw, dict):
            return None
        server, official = unwrap(raw)

        record_id = official.get("id") or _pick(server, "id", "uuid", "name")
        if not record_id:
            return None
        record_id = str(record_id)

        version = server.get("version") or "latest"
        packages = [p for p in server.get("packages") or [] if isinstance(p, dict)]
        npm_pkg = next(
            (p for p in packages if _pick(p, "registry_type", "registryType") == "npm"),
            None,
        )

        repository = server.get("repository")
        if isinstance(repository, dict):
            repository = repository.get("url")
        remotes = server.get("remotes")

        return PluginRecord(
            id=record_id,
            name=_pick(server, "name", "display_name", "title") or record_id,
            category=DEFAULT_CATEGORY,
            description=server.get("description") or "",
            version=version,
            npm=npm_pkg.get("identifier") if npm_pkg else None,
            command=_build_command(npm_pkg, version),
            env=_env_from_packages(packages),
            setup_instructions=list(server.get("setup_instructions") or []),
            uninstall_steps=list(server.get("uninstall_steps") or []),
            documentation=server.get("documentation") or "",
            homepage=_pick(server, "homepage", "websiteUrl") or "",
            repository=repository or None,
            remotes=remotes if isinstance(remotes, list) else [],
            packages=packages,
            registry_type=_pick(npm_pkg, "registry_type", "registryType") if npm_pkg else None,
            registry_base_url=(
                _pick(npm_pkg, "registry_base_url", "registryBaseUrl") if npm_pkg else None
            ),
            license=server.get("license") or None,
            published_at=_pick(official, "published_at", "publishedAt"),
            updated_at=_pick(official, "updated_at", "updatedAt"),
        )
    except Exception as e:
        logger.debug(f"Dropping malformed registry record: {e}")
        return None

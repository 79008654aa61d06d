"""
Safe JSON file storage.

Reads tolerate missing or corrupt files (a first-run agent config may not
exist yet), writes keep a timestamped backup of the previous content and
replace the target atomically.
"""

import json
import logging
import os
import shutil
import time
import uuid
from pathlib import Path
from typing import Any

import aiofiles

from mcpkit.lib.typed_errors import ConfigWriteError

logger = logging.getLogger(__name__)


def backup_path_for(path: Path, timestamp_ms: int) -> Path:
    """Return the backup location for *path* at *timestamp_ms*."""
    return path.with_name(f"{path.name}.bak.{timestamp_ms}")


class ConfigStore:
    """Async read/write of JSON documents with backup-on-write."""

    async def read(self, path: Path | str) -> dict[str, Any]:
        """Parse the JSON object at *path*.

        Returns an empty dict when the file is missing, unreadable, not valid
        JSON, or holds something other than an object.
        """
        path = Path(path)
        if not path.exists():
            return {}

        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                content = await f.read()
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in {path}: {e}")
            return {}
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read {path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Expected a JSON object in {path}, got {type(data).__name__}")
            return {}
        return data

    async def write(self, path: Path | str, doc: dict[str, Any], backup: bool = True) -> None:
        """Write *doc* to *path* as pretty-printed JSON.

        The previous file, if any, is copied to ``<path>.bak.<epoch-ms>`` first.
        Backup failures are logged and ignored; write failures raise
        ConfigWriteError.
        """
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigWriteError(
                f"Cannot create directory for {path}: {e}", config_path=path
            ) from e

        if backup and path.exists():
            self._backup(path)

        content = json.dumps(doc, indent=2, ensure_ascii=False) + "\n"
        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.tmp")
        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(content)
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path.exists():
                tmp_path.unlink(missing_ok=True)
            raise ConfigWriteError(f"Failed to write {path}: {e}", config_path=path) from e

        logger.debug(f"Wrote {path}")

    def _backup(self, path: Path) -> None:
        target = backup_path_for(path, int(time.time() * 1000))
        try:
            shutil.copy2(path, target)
            logger.debug(f"Backed up {path} to {target}")
        except OSError as e:
            logger.warning(f"Could not back up {path}: {e}")

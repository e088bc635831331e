"""
Zulu7 — Published Config Store
───────────────────────────────
A published config is a snapshot of dashboard settings and workspaces that
another device can load with /?zulu7=<key>.

Layout: <PUBLISHED_DIR>/<32 hex chars>.json, pretty printed, with three
server-maintained fields next to the dashboard's own:

  timestamp     epoch ms when it was published
  lastAccessed  epoch ms of the most recent load
  isUsed        false until the first load

Anything not loaded for 30 days is deleted by the hourly sweep.
There is no locking: a load racing another load or the sweep on the same
file is last-writer-wins. Fine for one person's dashboard, not beyond that.
"""

import json
import logging
import re
import time
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, Union

from zulu7.cache.ttl_config import PUBLISHED_RETENTION_S
from zulu7.errors import BadRequest, NotFound, Zulu7Error

log = logging.getLogger("zulu7.published")

_VALID_ID = re.compile(r"[a-z0-9]+", re.IGNORECASE)


def now_ms() -> int:
    return int(time.time() * 1000)


class PublishedConfigStore:

    def __init__(
        self,
        directory: Union[str, Path],
        clock: Callable[[], int] = now_ms,
        retention_s: int = PUBLISHED_RETENTION_S,
    ):
        self.directory = Path(directory).resolve()
        self.clock     = clock
        self.retention_ms = retention_s * 1000
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def _write(self, path: Path, config: Dict[str, Any]) -> None:
        path.write_text(json.dumps(config, indent=2), encoding="utf-8")

    def publish(self, config: Dict[str, Any]) -> str:
        if not isinstance(config, dict):
            raise BadRequest("Config must be a JSON object")
        stamp = self.clock()
        config = {**config, "timestamp": stamp, "lastAccessed": stamp, "isUsed": False}

        key = uuid.uuid4().hex
        self._write(self._path(key), config)
        log.info(f"Published config {key}")
        return key

    def load(self, key: str) -> Dict[str, Any]:
        """Read a config and mark it as used. The id is validated before touching disk."""
        if not key or not _VALID_ID.fullmatch(key):
            raise BadRequest("Invalid ID")

        path = self._path(key)
        if not path.exists():
            raise NotFound("Not found")

        try:
            config = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(config, dict):
                raise ValueError("not a JSON object")
        except (OSError, ValueError) as e:
            log.error(f"Unreadable config {key}: {e}")
            raise Zulu7Error("Internal Server Error")
        config["lastAccessed"] = self.clock()
        config["isUsed"] = True
        self._write(path, config)
        return config

    def sweep(self) -> int:
        """Delete configs idle for longer than the retention window. Returns how many went."""
        if not self.directory.exists():
            return 0

        now = self.clock()
        deleted = 0
        for path in self.directory.glob("*.json"):
            try:
                config = json.loads(path.read_text(encoding="utf-8"))
                last_activity = (
                    config.get("lastAccessed")
                    or config.get("timestamp")
                    or path.stat().st_mtime * 1000
                )
                if now - last_activity > self.retention_ms:
                    log.info(f"Deleting expired config: {path.name}")
                    path.unlink()
                    deleted += 1
            except (OSError, ValueError, AttributeError, TypeError) as e:
                log.error(f"Error processing {path.name}: {e}")

        if deleted:
            log.info(f"Cleanup complete. Deleted {deleted} files.")
        return deleted

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Iterator, Optional

from pydantic import ValidationError

from routefinder.domain.models import CacheArtifact, FileCacheEntry
from routefinder.errors import CacheError

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class FileCache:
    """Persisted map of absolute file path -> {last_modified, endpoints}.

    The artifact is a single JSON document:

        {
            "version": "1.0.0",
            "lastUpdate": 1700000000000,
            "fileData": {
                "/repo/src/UserController.java": {
                    "lastModified": 1700000000123456789,
                    "endpoints": [{"fullPath": "/api/users", ...}]
                }
            }
        }

    A version mismatch discards the whole artifact; there is no migration.
    """

    VERSION = "1.0.0"

    def __init__(self, path: Optional[Path]):
        self.path = path
        self.last_update = 0
        self._entries: dict[str, FileCacheEntry] = {}

    # ----------------------------
    # persistence
    # ----------------------------

    def load(self) -> bool:
        """Load the artifact. Returns False (and starts empty) when absent or unusable."""
        self._entries = {}
        if self.path is None or not self.path.exists():
            logger.info("No cache file found at %s, starting with an empty cache", self.path)
            return False
        try:
            artifact = self._read_artifact(self.path)
        except CacheError as exc:
            logger.warning("Discarding endpoint cache: %s", exc)
            return False

        self._entries = dict(artifact.file_data)
        self.last_update = artifact.last_update
        logger.info("Loaded cache with %d files", len(self._entries))
        return True

    def _read_artifact(self, path: Path) -> CacheArtifact:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise CacheError(f"cannot read {path}: {exc}") from exc

        if not isinstance(raw, dict):
            raise CacheError(f"{path} does not hold a cache object")
        version = raw.get("version")
        if version != self.VERSION:
            raise CacheError(f"version mismatch, expected {self.VERSION}, found {version}")
        try:
            return CacheArtifact.model_validate(raw)
        except ValidationError as exc:
            raise CacheError(f"malformed cache artifact: {exc.error_count()} errors") from exc

    def save(self) -> None:
        if self.path is None:
            return
        self.last_update = _now_ms()
        artifact = CacheArtifact(version=self.VERSION, last_update=self.last_update, file_data=dict(self._entries))
        payload = artifact.model_dump_json(by_alias=True)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError:
            logger.exception("Error saving endpoint cache to %s", self.path)
            return
        logger.info("Cache saved with %d files", len(self._entries))

    def delete_artifact(self) -> None:
        if self.path is None:
            return
        try:
            self.path.unlink()
            logger.info("Deleted cache file %s", self.path)
        except FileNotFoundError:
            pass

    # ----------------------------
    # entries
    # ----------------------------

    def get(self, file_path: str) -> Optional[FileCacheEntry]:
        return self._entries.get(file_path)

    def put(self, file_path: str, entry: FileCacheEntry) -> None:
        self._entries[file_path] = entry

    def remove(self, file_path: str) -> bool:
        return self._entries.pop(file_path, None) is not None

    def clear(self) -> None:
        self._entries = {}

    def items(self) -> Iterator[tuple[str, FileCacheEntry]]:
        return iter(list(self._entries.items()))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, file_path: object) -> bool:
        return file_path in self._entries

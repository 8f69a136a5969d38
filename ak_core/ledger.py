"""Durable manifest mapping ``name@version`` to cached artifact path and integrity."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable, Mapping

from .errors import StorageError
from .types import ManifestEntry, manifest_key, split_manifest_key

logger = logging.getLogger(__name__)


class ManifestLedger:
    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.RLock()

    def load(self) -> dict[str, ManifestEntry]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except Exception:
            logger.warning("manifest %s is unreadable; starting from an empty ledger", self.path)
            return {}
        if not isinstance(payload, dict):
            logger.warning("manifest %s is not an object; starting from an empty ledger", self.path)
            return {}
        return _normalize_entries(payload)

    def save(self, entries: Mapping[str, ManifestEntry]) -> Path:
        document = {
            key: {"path": str(entry.path), "integrity": entry.integrity}
            for key, entry in entries.items()
        }
        text = json.dumps(document, ensure_ascii=False, indent=2, sort_keys=True)
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            except OSError as exc:
                raise StorageError(f"cannot write manifest {self.path}: {exc}") from exc
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(text)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, self.path)
            except OSError as exc:
                Path(tmp_name).unlink(missing_ok=True)
                raise StorageError(f"cannot write manifest {self.path}: {exc}") from exc
        return self.path

    def get(self, name: str, version: str) -> ManifestEntry | None:
        return self.load().get(manifest_key(name, version))

    def put(self, entry: ManifestEntry) -> None:
        with self._lock:
            entries = self.load()
            entries[entry.key] = entry
            self.save(entries)

    def remove(self, key: str) -> bool:
        with self._lock:
            entries = self.load()
            if entries.pop(key, None) is None:
                return False
            self.save(entries)
            return True

    def remove_where(self, predicate: Callable[[ManifestEntry], bool]) -> list[str]:
        with self._lock:
            entries = self.load()
            removed = sorted(key for key, entry in entries.items() if predicate(entry))
            if removed:
                self.save({key: entry for key, entry in entries.items() if key not in removed})
            return removed

    def entries(self) -> list[ManifestEntry]:
        return [entry for _, entry in sorted(self.load().items())]


def _normalize_entries(payload: dict[str, Any]) -> dict[str, ManifestEntry]:
    entries: dict[str, ManifestEntry] = {}
    for key, value in payload.items():
        if not isinstance(value, dict):
            continue
        path = str(value.get("path") or "").strip()
        integrity = str(value.get("integrity") or "").strip()
        if not path or not integrity:
            continue
        try:
            split_manifest_key(str(key))
        except ValueError:
            continue
        entries[str(key)] = ManifestEntry(key=str(key), path=Path(path), integrity=integrity)
    return entries

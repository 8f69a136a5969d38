"""npm-style registry metadata client."""

from __future__ import annotations

import logging
import threading
from typing import Any, Protocol
from urllib.parse import quote

from .errors import NotFoundError, RegistryError
from .integrity import integrity_from_shasum, is_valid_integrity
from .security import validate_package_name, validate_version
from .types import LATEST, DistInfo, RegistryMetadata, Resolution

logger = logging.getLogger(__name__)


class JsonTransport(Protocol):
    def get_json(self, url: str) -> Any: ...


class VersionCache:
    """Process-lifetime cache of registry metadata keyed by package name."""

    def __init__(self) -> None:
        self._entries: dict[str, RegistryMetadata] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> RegistryMetadata | None:
        with self._lock:
            return self._entries.get(name)

    def put(self, metadata: RegistryMetadata) -> None:
        with self._lock:
            self._entries[metadata.name] = metadata

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RegistryClient:
    def __init__(self, base_url: str, transport: JsonTransport, cache: VersionCache | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.transport = transport
        self.cache = cache if cache is not None else VersionCache()

    def _url(self, name: str) -> str:
        return f"{self.base_url}/{quote(name, safe='@')}"

    def resolve(self, name: str, version: str = LATEST, force_refresh: bool = False) -> Resolution:
        validate_package_name(name)
        validate_version(version)

        metadata = None if force_refresh else self.cache.get(name)
        if metadata is not None:
            resolution = _select(metadata, version)
            if resolution is not None:
                logger.debug("registry cache hit name=%s version=%s", name, resolution.version)
                return resolution
            logger.debug("version %s missing from cached metadata for %s; refreshing", version, name)

        metadata = self.fetch_metadata(name)
        resolution = _select(metadata, version)
        if resolution is None:
            raise NotFoundError(f"version not found on registry: {name}@{version}")
        return resolution

    def fetch_metadata(self, name: str) -> RegistryMetadata:
        validate_package_name(name)
        try:
            document = self.transport.get_json(self._url(name))
        except NotFoundError as exc:
            raise NotFoundError(f"package not found on registry: {name}") from exc
        metadata = parse_metadata(name, document)
        self.cache.put(metadata)
        return metadata


def parse_metadata(name: str, document: Any) -> RegistryMetadata:
    if not isinstance(document, dict):
        raise RegistryError(f"registry document for {name} is not an object")
    dist_tags = document.get("dist-tags")
    if not isinstance(dist_tags, dict) or not isinstance(dist_tags.get(LATEST), str):
        raise RegistryError(f"registry document for {name} has no dist-tags.latest")
    raw_versions = document.get("versions")
    if not isinstance(raw_versions, dict):
        raise RegistryError(f"registry document for {name} has no versions")

    versions: dict[str, DistInfo] = {}
    malformed: set[str] = set()
    for version, payload in raw_versions.items():
        dist = payload.get("dist") if isinstance(payload, dict) else None
        tarball = str(dist.get("tarball") or "").strip() if isinstance(dist, dict) else ""
        integrity = _dist_integrity(dist) if isinstance(dist, dict) else None
        if tarball and integrity:
            versions[str(version)] = DistInfo(tarball=tarball, integrity=integrity)
        else:
            malformed.add(str(version))
    return RegistryMetadata(
        name=name,
        dist_tags={str(tag): str(value) for tag, value in dist_tags.items()},
        versions=versions,
        malformed_versions=frozenset(malformed),
    )


def _dist_integrity(dist: dict[str, Any]) -> str | None:
    integrity = str(dist.get("integrity") or "").strip()
    if integrity and is_valid_integrity(integrity):
        return integrity
    shasum = str(dist.get("shasum") or "").strip()
    if shasum:
        try:
            return integrity_from_shasum(shasum)
        except ValueError:
            return None
    return None


def _select(metadata: RegistryMetadata, version: str) -> Resolution | None:
    concrete = metadata.dist_tags.get(LATEST) if version == LATEST else version
    if concrete in metadata.malformed_versions:
        raise RegistryError(f"registry entry for {metadata.name}@{concrete} has no usable dist")
    if concrete is None or concrete not in metadata.versions:
        if version == LATEST:
            raise RegistryError(f"dist-tags.latest for {metadata.name} points at unknown version {concrete!r}")
        return None
    dist = metadata.versions[concrete]
    return Resolution(
        name=metadata.name,
        version=concrete,
        tarball_url=dist.tarball,
        integrity=dist.integrity,
    )

"""Package cache datatypes."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

LATEST = "latest"


@dataclass(frozen=True)
class PackageRef:
    name: str
    version: str = LATEST

    @classmethod
    def parse(cls, spec: str) -> "PackageRef":
        """Split ``name[@version]``; scoped names keep their leading ``@``."""
        raw = spec.strip()
        head, sep, tail = raw[1:].rpartition("@") if raw.startswith("@") else raw.rpartition("@")
        if not sep:
            return cls(name=raw, version=LATEST)
        name = f"@{head}" if raw.startswith("@") else head
        return cls(name=name, version=tail or LATEST)

    @property
    def is_latest(self) -> bool:
        return self.version == LATEST

    def __str__(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass(frozen=True)
class DistInfo:
    tarball: str
    integrity: str


@dataclass(frozen=True)
class RegistryMetadata:
    name: str
    dist_tags: Mapping[str, str] = field(default_factory=dict)
    versions: Mapping[str, DistInfo] = field(default_factory=dict)
    malformed_versions: frozenset[str] = frozenset()


@dataclass(frozen=True)
class Resolution:
    name: str
    version: str
    tarball_url: str
    integrity: str

    @property
    def key(self) -> str:
        return manifest_key(self.name, self.version)


@dataclass(frozen=True)
class ManifestEntry:
    key: str
    path: Path
    integrity: str

    @property
    def name(self) -> str:
        return split_manifest_key(self.key)[0]

    @property
    def version(self) -> str:
        return split_manifest_key(self.key)[1]


@dataclass(frozen=True)
class InstallOptions:
    global_install: bool = False
    force: bool = False
    legacy_peer_deps: bool = False


@dataclass(frozen=True)
class CleanReport:
    removed_entries: tuple[str, ...] = ()
    removed_files: tuple[Path, ...] = ()


def manifest_key(name: str, version: str) -> str:
    return f"{name}@{version}"


def split_manifest_key(key: str) -> tuple[str, str]:
    name, sep, version = key.rpartition("@")
    if not sep or not name or name == "@":
        raise ValueError(f"invalid manifest key: {key!r}")
    return name, version

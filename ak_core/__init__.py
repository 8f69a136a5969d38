"""Content-addressed package cache for ak."""

from .cleanup import clean_cache
from .config import AkSettings, load_settings
from .coordinator import FetchCoordinator
from .errors import (
    AkError,
    IntegrityError,
    InvalidInputError,
    NetworkError,
    NotFoundError,
    RegistryError,
    StorageError,
    SubprocessError,
)
from .http import HttpTransport
from .installer import Installer, InstallerConfig
from .ledger import ManifestLedger
from .registry import RegistryClient, VersionCache
from .store import ContentStore
from .types import (
    LATEST,
    CleanReport,
    DistInfo,
    InstallOptions,
    ManifestEntry,
    PackageRef,
    RegistryMetadata,
    Resolution,
    manifest_key,
)

__all__ = [
    "AkError",
    "AkSettings",
    "CleanReport",
    "ContentStore",
    "DistInfo",
    "FetchCoordinator",
    "HttpTransport",
    "InstallOptions",
    "Installer",
    "InstallerConfig",
    "IntegrityError",
    "InvalidInputError",
    "LATEST",
    "ManifestEntry",
    "ManifestLedger",
    "NetworkError",
    "NotFoundError",
    "PackageRef",
    "RegistryClient",
    "RegistryError",
    "RegistryMetadata",
    "Resolution",
    "StorageError",
    "SubprocessError",
    "VersionCache",
    "clean_cache",
    "load_settings",
    "manifest_key",
]

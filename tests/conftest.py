from __future__ import annotations

import copy
import threading
import time
from pathlib import Path
from typing import Any, Iterator
from urllib.parse import unquote

import pytest

from ak_core import ContentStore, FetchCoordinator, ManifestLedger, RegistryClient
from ak_core.errors import NotFoundError
from ak_core.integrity import bytes_integrity

REGISTRY_URL = "https://registry.test"
TARBALL_HOST = "https://tarballs.test"


class FakeRegistry:
    """In-memory registry + tarball host implementing the transport interface."""

    def __init__(self, base_url: str = REGISTRY_URL) -> None:
        self.base_url = base_url
        self.documents: dict[str, dict[str, Any]] = {}
        self.tarballs: dict[str, bytes] = {}
        self.metadata_calls: list[str] = []
        self.tarball_calls: list[str] = []
        self.delay = 0.0
        self.metadata_delay = 0.0
        self._lock = threading.Lock()

    def publish(self, name: str, version: str, data: bytes, *, latest: bool = True) -> str:
        basename = name.rsplit("/", 1)[-1]
        url = f"{TARBALL_HOST}/{name}/-/{basename}-{version}.tgz"
        integrity = bytes_integrity(data)
        document = self.documents.setdefault(name, {"name": name, "dist-tags": {}, "versions": {}})
        document["versions"][version] = {
            "name": name,
            "version": version,
            "dist": {"tarball": url, "integrity": integrity},
        }
        if latest:
            document["dist-tags"]["latest"] = version
        self.tarballs[url] = data
        return integrity

    def tarball_url(self, name: str, version: str) -> str:
        return self.documents[name]["versions"][version]["dist"]["tarball"]

    @property
    def network_calls(self) -> int:
        return len(self.metadata_calls) + len(self.tarball_calls)

    def reset_calls(self) -> None:
        self.metadata_calls.clear()
        self.tarball_calls.clear()

    def get_json(self, url: str) -> Any:
        with self._lock:
            self.metadata_calls.append(url)
        if self.metadata_delay:
            time.sleep(self.metadata_delay)
        name = unquote(url[len(self.base_url) + 1 :])
        if name not in self.documents:
            raise NotFoundError(f"not found: {url}")
        return copy.deepcopy(self.documents[name])

    def stream(self, url: str) -> Iterator[bytes]:
        with self._lock:
            self.tarball_calls.append(url)
        if self.delay:
            time.sleep(self.delay)
        if url not in self.tarballs:
            raise NotFoundError(f"not found: {url}")
        data = self.tarballs[url]
        middle = len(data) // 2
        yield data[:middle]
        yield data[middle:]

    def close(self) -> None:
        pass

    def __enter__(self) -> "FakeRegistry":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def store(tmp_path: Path, registry: FakeRegistry) -> ContentStore:
    return ContentStore(tmp_path / "cache" / "store", registry)


@pytest.fixture
def ledger(tmp_path: Path) -> ManifestLedger:
    return ManifestLedger(tmp_path / "cache" / "manifest.json")


@pytest.fixture
def coordinator(registry: FakeRegistry, store: ContentStore, ledger: ManifestLedger) -> FetchCoordinator:
    return FetchCoordinator(RegistryClient(registry.base_url, registry), store, ledger)

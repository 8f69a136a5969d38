"""Single-flight acquisition of verified package artifacts."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Hashable, Iterable

from .config import AkSettings
from .errors import StorageError
from .http import HttpTransport
from .ledger import ManifestLedger
from .registry import RegistryClient, VersionCache
from .security import validate_ref
from .store import ContentStore
from .types import ManifestEntry, PackageRef, Resolution

logger = logging.getLogger(__name__)


class FetchCoordinator:
    """Resolve, fetch, verify and record artifacts, at most once per concrete key.

    Concurrent ``acquire`` calls that resolve to the same ``name@version``
    share one in-flight task; the task is dropped from the map once it
    settles, so a failed attempt is never handed to later callers. Registry
    metadata requests for the same name are shared the same way.
    """

    def __init__(self, registry: RegistryClient, store: ContentStore, ledger: ManifestLedger) -> None:
        self.registry = registry
        self.store = store
        self.ledger = ledger
        self._inflight: dict[str, asyncio.Task[Path]] = {}
        self._metadata_flights: dict[tuple[str, bool], asyncio.Task[Any]] = {}

    @classmethod
    def from_settings(
        cls,
        settings: AkSettings,
        transport: HttpTransport | None = None,
        *,
        cache: VersionCache | None = None,
    ) -> "FetchCoordinator":
        transport = transport or HttpTransport(timeout_seconds=settings.timeout_seconds)
        registry = RegistryClient(settings.registry_url, transport, cache)
        store = ContentStore(
            settings.store_dir,
            transport,
            max_artifact_size_bytes=settings.max_artifact_size_bytes,
        )
        return cls(registry, store, ManifestLedger(settings.manifest_path))

    @property
    def inflight(self) -> frozenset[str]:
        return frozenset(self._inflight)

    @property
    def resolving(self) -> frozenset[str]:
        return frozenset(name for name, _ in self._metadata_flights)

    async def acquire(self, ref: PackageRef, force_refresh: bool = False) -> Path:
        validate_ref(ref)
        resolution = await self._resolve(ref, force_refresh)
        return await _join(self._inflight, resolution.key, lambda: self._materialize(resolution))

    async def acquire_many(
        self,
        refs: Iterable[PackageRef],
        force_refresh: bool = False,
    ) -> list[Path | BaseException]:
        refs = list(refs)
        return await asyncio.gather(
            *(self.acquire(ref, force_refresh) for ref in refs),
            return_exceptions=True,
        )

    async def _resolve(self, ref: PackageRef, force_refresh: bool) -> Resolution:
        if force_refresh or ref.name not in self.registry.cache:
            await _join(
                self._metadata_flights,
                (ref.name, force_refresh),
                lambda: asyncio.to_thread(self.registry.fetch_metadata, ref.name),
            )
        # metadata is cached now; a literal version missing from it still gets one refresh
        return await asyncio.to_thread(self.registry.resolve, ref.name, ref.version)

    async def _materialize(self, resolution: Resolution) -> Path:
        entry = await asyncio.to_thread(self.ledger.get, resolution.name, resolution.version)
        if entry is not None:
            if await asyncio.to_thread(self._verify_entry, entry, resolution):
                logger.debug("cache hit key=%s path=%s", entry.key, entry.path)
                return entry.path
            logger.warning("cached artifact for %s failed verification; refetching", entry.key)
            await asyncio.to_thread(self._discard, entry)

        path = await asyncio.to_thread(
            self.store.fetch_and_store,
            resolution.name,
            resolution.version,
            resolution.tarball_url,
            resolution.integrity,
        )
        await asyncio.to_thread(
            self.ledger.put,
            ManifestEntry(key=resolution.key, path=path, integrity=resolution.integrity),
        )
        return path

    def _verify_entry(self, entry: ManifestEntry, resolution: Resolution) -> bool:
        if entry.integrity != resolution.integrity or not self.store.owns(entry.path):
            return False
        try:
            return self.store.verify(entry.path, entry.integrity)
        except StorageError as exc:
            logger.debug("cached artifact unreadable key=%s: %s", entry.key, exc)
            return False

    def _discard(self, entry: ManifestEntry) -> None:
        self.ledger.remove(entry.key)
        if self.store.owns(entry.path):
            self.store.evict(entry.path)


def _join(
    flights: dict[Hashable, asyncio.Task[Any]],
    key: Hashable,
    start: Callable[[], Awaitable[Any]],
) -> Awaitable[Any]:
    """Await the in-flight task for ``key``, starting one when none is running."""
    task = flights.get(key)
    if task is None or task.done():
        task = asyncio.ensure_future(start())
        flights[key] = task
        task.add_done_callback(lambda done, key=key: _settle(flights, key, done))
    else:
        logger.debug("joining in-flight task key=%s", key)
    return asyncio.shield(task)


def _settle(flights: dict[Hashable, asyncio.Task[Any]], key: Hashable, task: asyncio.Task[Any]) -> None:
    if flights.get(key) is task:
        del flights[key]
    # Retrieve the outcome so a failure with no remaining waiters is not reported as unhandled.
    if not task.cancelled():
        task.exception()

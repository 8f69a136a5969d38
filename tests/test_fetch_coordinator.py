from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from ak_core import FetchCoordinator, ManifestEntry, PackageRef
from ak_core.errors import IntegrityError, InvalidInputError, NotFoundError


def _acquire(coordinator: FetchCoordinator, spec: str, **kwargs) -> Path:
    return asyncio.run(coordinator.acquire(PackageRef.parse(spec), **kwargs))


def test_acquire_fetches_verifies_and_records(coordinator, registry, ledger) -> None:
    integrity = registry.publish("left-pad", "1.3.0", b"left-pad tarball")

    path = _acquire(coordinator, "left-pad@1.3.0")

    assert path.read_bytes() == b"left-pad tarball"
    assert path.name == "left-pad-1.3.0.tgz"
    entry = ledger.get("left-pad", "1.3.0")
    assert entry == ManifestEntry(key="left-pad@1.3.0", path=path, integrity=integrity)
    assert len(registry.tarball_calls) == 1


def test_concurrent_acquires_share_one_download(coordinator, registry) -> None:
    registry.publish("react", "18.2.0", b"react" * 1000)
    registry.delay = 0.05

    async def _run():
        return await asyncio.gather(*(coordinator.acquire(PackageRef("react", "18.2.0")) for _ in range(8)))

    paths = asyncio.run(_run())

    assert len(registry.tarball_calls) == 1
    assert len(registry.metadata_calls) == 1
    assert len(set(paths)) == 1
    assert coordinator.inflight == frozenset()


def test_cache_hit_makes_no_network_calls(coordinator, registry) -> None:
    registry.publish("lodash", "4.17.21", b"lodash bytes")
    first = _acquire(coordinator, "lodash")
    registry.reset_calls()

    second = _acquire(coordinator, "lodash")

    assert second == first
    assert registry.network_calls == 0


def test_corrupted_artifact_is_refetched(coordinator, registry, ledger) -> None:
    integrity = registry.publish("chalk", "5.3.0", b"original chalk")
    path = _acquire(coordinator, "chalk@5.3.0")
    path.write_bytes(b"tampered")

    healed = _acquire(coordinator, "chalk@5.3.0")

    assert healed == path
    assert healed.read_bytes() == b"original chalk"
    assert len(registry.tarball_calls) == 2
    assert ledger.get("chalk", "5.3.0").integrity == integrity


def test_deleted_artifact_is_refetched(coordinator, registry) -> None:
    registry.publish("axios", "1.6.0", b"axios")
    path = _acquire(coordinator, "axios@1.6.0")
    path.unlink()

    assert _acquire(coordinator, "axios@1.6.0").read_bytes() == b"axios"
    assert len(registry.tarball_calls) == 2


def test_invalid_name_is_rejected_before_any_io(coordinator, registry, store, ledger) -> None:
    with pytest.raises(InvalidInputError):
        asyncio.run(coordinator.acquire(PackageRef(name="../evil", version="1.0.0")))

    assert registry.network_calls == 0
    assert list(store.iter_artifacts()) == []
    assert not ledger.path.exists()


def test_latest_and_concrete_version_collapse_into_one_fetch(coordinator, registry) -> None:
    registry.publish("express", "4.18.0", b"old express", latest=False)
    registry.publish("express", "4.19.2", b"new express")
    registry.delay = 0.05

    async def _run():
        return await asyncio.gather(
            coordinator.acquire(PackageRef("express", "latest")),
            coordinator.acquire(PackageRef("express", "4.19.2")),
        )

    latest, concrete = asyncio.run(_run())

    assert latest == concrete
    assert latest.name == "express-4.19.2.tgz"
    assert registry.tarball_calls == [registry.tarball_url("express", "4.19.2")]


def test_integrity_failure_leaves_no_entry_or_file(coordinator, registry, store, ledger) -> None:
    registry.publish("moment", "2.30.1", b"expected")
    registry.tarballs[registry.tarball_url("moment", "2.30.1")] = b"swapped on the wire"

    with pytest.raises(IntegrityError):
        _acquire(coordinator, "moment@2.30.1")

    assert ledger.load() == {}
    assert list(store.iter_artifacts()) == []
    assert list(store.iter_partials()) == []
    assert coordinator.inflight == frozenset()


def test_waiters_observe_the_same_failure(coordinator, registry) -> None:
    registry.publish("mongoose", "8.0.0", b"expected")
    registry.tarballs[registry.tarball_url("mongoose", "8.0.0")] = b"bad"
    registry.delay = 0.05

    async def _run():
        return await asyncio.gather(
            *(coordinator.acquire(PackageRef("mongoose", "8.0.0")) for _ in range(4)),
            return_exceptions=True,
        )

    results = asyncio.run(_run())

    assert all(isinstance(result, IntegrityError) for result in results)
    assert len(registry.tarball_calls) == 1


def test_failed_attempt_does_not_poison_the_next_one(coordinator, registry) -> None:
    registry.publish("vue", "3.4.0", b"vue")
    url = registry.tarball_url("vue", "3.4.0")
    registry.tarballs[url] = b"corrupt"
    with pytest.raises(IntegrityError):
        _acquire(coordinator, "vue@3.4.0")

    registry.tarballs[url] = b"vue"
    path = _acquire(coordinator, "vue@3.4.0")

    assert path.read_bytes() == b"vue"
    assert len(registry.tarball_calls) == 2


def test_unknown_package_surfaces_not_found(coordinator, registry) -> None:
    with pytest.raises(NotFoundError):
        _acquire(coordinator, "does-not-exist")
    assert registry.tarball_calls == []


def test_entry_outside_store_is_not_trusted(coordinator, registry, ledger, tmp_path) -> None:
    integrity = registry.publish("debug", "4.3.4", b"debug")
    outside = tmp_path / "elsewhere.tgz"
    outside.write_bytes(b"debug")
    ledger.put(ManifestEntry(key="debug@4.3.4", path=outside, integrity=integrity))

    path = _acquire(coordinator, "debug@4.3.4")

    assert path != outside
    assert outside.exists()
    assert ledger.get("debug", "4.3.4").path == path


def test_acquire_many_reports_per_ref_results(coordinator, registry) -> None:
    registry.publish("ms", "2.1.3", b"ms")
    refs = [PackageRef("ms", "2.1.3"), PackageRef("missing-pkg")]

    results = asyncio.run(coordinator.acquire_many(refs))

    assert isinstance(results[0], Path)
    assert isinstance(results[1], NotFoundError)


def test_scoped_packages_are_cached_under_their_scope(coordinator, registry, store) -> None:
    registry.publish("@types/node", "20.11.0", b"types")

    path = _acquire(coordinator, "@types/node@20.11.0")

    assert path == store.root / "@types" / "node" / "node-20.11.0.tgz"


def test_concurrent_acquires_share_one_metadata_request(coordinator, registry) -> None:
    registry.publish("react", "18.2.0", b"react")
    registry.metadata_delay = 0.05

    async def _run():
        return await asyncio.gather(*(coordinator.acquire(PackageRef("react")) for _ in range(8)))

    paths = asyncio.run(_run())

    assert len(set(paths)) == 1
    assert registry.metadata_calls == [f"{registry.base_url}/react"]
    assert len(registry.tarball_calls) == 1
    assert coordinator.resolving == frozenset()


def test_concurrent_force_refresh_shares_one_metadata_request(coordinator, registry) -> None:
    registry.publish("react", "18.2.0", b"old react")
    _acquire(coordinator, "react")
    registry.publish("react", "18.3.1", b"new react")
    registry.reset_calls()
    registry.metadata_delay = 0.05

    async def _run():
        return await asyncio.gather(
            *(coordinator.acquire(PackageRef("react"), force_refresh=True) for _ in range(4))
        )

    paths = asyncio.run(_run())

    assert {path.name for path in paths} == {"react-18.3.1.tgz"}
    assert len(registry.metadata_calls) == 1
    assert len(registry.tarball_calls) == 1


def test_concurrent_lookups_of_unknown_package_share_the_failure(coordinator, registry) -> None:
    registry.metadata_delay = 0.05

    async def _run():
        return await asyncio.gather(
            *(coordinator.acquire(PackageRef("ghost-pkg")) for _ in range(4)),
            return_exceptions=True,
        )

    results = asyncio.run(_run())

    assert all(isinstance(result, NotFoundError) for result in results)
    assert len(registry.metadata_calls) == 1
    assert coordinator.resolving == frozenset()

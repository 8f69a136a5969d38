from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any, Sequence

from ak_core import (
    AkSettings,
    FetchCoordinator,
    HttpTransport,
    Installer,
    InstallerConfig,
    InstallOptions,
    PackageRef,
)
from ak_core.security import validate_ref


def echo(args: Any, message: str) -> None:
    if not getattr(args, "silent", False):
        print(message)


def fail(command: str, exc: BaseException | str) -> int:
    print(f"[ak:{command}] error: {exc}", file=sys.stderr)
    return 1


def parse_refs(specs: Sequence[str]) -> list[PackageRef]:
    """Parse and validate ``name[@version]`` arguments before any I/O happens."""
    return [validate_ref(PackageRef.parse(spec)) for spec in specs]


def install_options(args: Any) -> InstallOptions:
    return InstallOptions(
        global_install=bool(getattr(args, "global_install", False)),
        force=bool(getattr(args, "force", False)),
        legacy_peer_deps=bool(getattr(args, "legacy_peer_deps", False)),
    )


def open_transport(settings: AkSettings) -> HttpTransport:
    return HttpTransport(timeout_seconds=settings.timeout_seconds)


def make_installer(settings: AkSettings) -> Installer:
    return Installer(InstallerConfig.from_settings(settings), cwd=Path.cwd())


def acquire_all(
    command: str,
    args: Any,
    settings: AkSettings,
    refs: Sequence[PackageRef],
    *,
    force_refresh: bool = False,
) -> list[Path] | None:
    """Acquire every ref concurrently; print failures and return ``None`` if any failed."""
    with open_transport(settings) as transport:
        coordinator = FetchCoordinator.from_settings(settings, transport)
        results = asyncio.run(coordinator.acquire_many(refs, force_refresh))

    paths: list[Path] = []
    failed = False
    for ref, result in zip(refs, results):
        if isinstance(result, BaseException):
            failed = True
            print(f"[ak:{command}] error: {ref}: {result}", file=sys.stderr)
            continue
        paths.append(result)
        echo(args, f"[ak:{command}] cached {ref} -> {result}")
    return None if failed else paths

# ak_cli/commands/update.py
from __future__ import annotations

from ak_core import AkError, AkSettings, ManifestLedger, PackageRef

from . import common
from .common import acquire_all, echo, fail, install_options, parse_refs


def _cached_names(settings: AkSettings) -> list[PackageRef]:
    names = dict.fromkeys(entry.name for entry in ManifestLedger(settings.manifest_path).entries())
    return [PackageRef(name=name) for name in names]


def cmd_update(args, settings: AkSettings) -> int:
    try:
        refs = parse_refs(args.packages)
    except AkError as exc:
        return fail("update", exc)
    if not refs:
        # no arguments: move every cached package to its current latest
        refs = _cached_names(settings)
    if not refs:
        return fail("update", "no packages provided and the cache is empty")

    echo(args, f"[ak:update] refreshing {', '.join(str(ref) for ref in refs)}")
    paths = acquire_all("update", args, settings, refs, force_refresh=True)
    if paths is None:
        return 1
    if args.fetch_only:
        return 0

    try:
        common.make_installer(settings).install(paths, install_options(args))
    except AkError as exc:
        return fail("update", exc)
    echo(args, f"[ak:update] ok {', '.join(str(ref) for ref in refs)}")
    return 0

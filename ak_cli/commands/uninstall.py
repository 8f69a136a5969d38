# ak_cli/commands/uninstall.py
from __future__ import annotations

from ak_core import AkError, AkSettings, ContentStore, ManifestLedger, PackageRef

from . import common
from .common import echo, fail, install_options, parse_refs


def _purge_cached(settings: AkSettings, refs: list[PackageRef]) -> list[str]:
    store = ContentStore(settings.store_dir)
    ledger = ManifestLedger(settings.manifest_path)

    def _matches(entry) -> bool:
        return any(
            entry.name == ref.name and (ref.is_latest or entry.version == ref.version)
            for ref in refs
        )

    owned = {entry.key: entry.path for entry in ledger.entries() if store.owns(entry.path)}
    removed = ledger.remove_where(_matches)
    for key in removed:
        if key in owned:
            store.evict(owned[key])
    return removed


def cmd_uninstall(args, settings: AkSettings) -> int:
    try:
        refs = parse_refs(args.packages)
    except AkError as exc:
        return fail("uninstall", exc)
    if not refs:
        return fail("uninstall", "no packages provided")

    names = list(dict.fromkeys(ref.name for ref in refs))
    try:
        common.make_installer(settings).uninstall(names, install_options(args))
    except AkError as exc:
        return fail("uninstall", exc)
    echo(args, f"[ak:uninstall] removed {', '.join(names)}")

    if args.purge:
        try:
            removed = _purge_cached(settings, refs)
        except AkError as exc:
            return fail("uninstall", exc)
        echo(args, f"[ak:uninstall] purged cached={len(removed)}")
    return 0

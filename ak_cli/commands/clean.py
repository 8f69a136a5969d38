# ak_cli/commands/clean.py
from __future__ import annotations

from ak_core import AkError, AkSettings, ContentStore, ManifestLedger, clean_cache

from .common import echo, fail


def cmd_clean(args, settings: AkSettings) -> int:
    try:
        report = clean_cache(
            ContentStore(settings.store_dir),
            ManifestLedger(settings.manifest_path),
            purge=bool(args.all),
        )
    except AkError as exc:
        return fail("clean", exc)

    for key in report.removed_entries:
        echo(args, f"[ak:clean] dropped entry {key}")
    for path in report.removed_files:
        echo(args, f"[ak:clean] deleted {path}")
    echo(args, f"[ak:clean] entries={len(report.removed_entries)} files={len(report.removed_files)}")
    return 0

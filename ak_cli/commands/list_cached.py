# ak_cli/commands/list_cached.py
from __future__ import annotations

import json

from ak_core import AkError, AkSettings, ContentStore, ManifestEntry, ManifestLedger

from .common import fail


def _status(store: ContentStore, entry: ManifestEntry) -> str:
    if not entry.path.is_file():
        return "missing"
    try:
        return "ok" if store.verify(entry.path, entry.integrity) else "corrupt"
    except AkError:
        return "unreadable"


def cmd_list(args, settings: AkSettings) -> int:
    ledger = ManifestLedger(settings.manifest_path)
    try:
        entries = ledger.entries()
        store = ContentStore(settings.store_dir) if args.verify else None
        rows = []
        for entry in entries:
            row = {
                "name": entry.name,
                "version": entry.version,
                "path": str(entry.path),
                "integrity": entry.integrity,
            }
            if store is not None:
                row["status"] = _status(store, entry)
            rows.append(row)
    except AkError as exc:
        return fail("list", exc)

    if args.format == "json":
        print(json.dumps({"manifest": str(ledger.path), "count": len(rows), "packages": rows}, indent=2))
    else:
        if not rows:
            print("[ak:list] cache is empty")
        for row in rows:
            suffix = f"  [{row['status']}]" if "status" in row else ""
            print(f"{row['name']}@{row['version']}  {row['path']}{suffix}")

    if any(row.get("status") not in (None, "ok") for row in rows):
        return 1
    return 0

"""Garbage collection for the content store and manifest ledger."""

from __future__ import annotations

import logging
from pathlib import Path

from .ledger import ManifestLedger
from .store import ContentStore
from .types import CleanReport

logger = logging.getLogger(__name__)


def clean_cache(store: ContentStore, ledger: ManifestLedger, *, purge: bool = False) -> CleanReport:
    """Drop dangling ledger entries, orphaned artifacts and leftover temp files.

    With ``purge`` every entry and every stored artifact is removed.
    """
    removed_entries = ledger.remove_where(
        lambda entry: purge or not entry.path.is_file() or not store.owns(entry.path)
    )
    removed_files: list[Path] = []

    referenced = {entry.path.resolve() for entry in ledger.entries()}
    for path in [*store.iter_artifacts(), *store.iter_partials()]:
        if path.resolve() in referenced:
            continue
        store.evict(path)
        removed_files.append(path)

    _prune_empty_dirs(store.root)
    if removed_entries or removed_files:
        logger.info("cache cleanup removed entries=%d files=%d", len(removed_entries), len(removed_files))
    return CleanReport(removed_entries=tuple(removed_entries), removed_files=tuple(removed_files))


def _prune_empty_dirs(root: Path) -> None:
    for directory in sorted((path for path in root.rglob("*") if path.is_dir()), key=lambda p: len(p.parts), reverse=True):
        try:
            directory.rmdir()
        except OSError:
            continue

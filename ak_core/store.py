from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Generator, Iterable, Iterator, Protocol

from .errors import IntegrityError, StorageError
from .integrity import matches
from .security import safe_output_path, validate_package_name, validate_version

logger = logging.getLogger(__name__)

ARTIFACT_SUFFIX = ".tgz"
PARTIAL_SUFFIX = ".part"


class StreamTransport(Protocol):
    def stream(self, url: str) -> Generator[bytes, None, None]: ...


class ContentStore:
    """Artifacts on disk at a path derived from ``(name, version)``.

    Writes land in a temp file beside the target and are renamed into place,
    so readers never observe a truncated artifact.
    """

    def __init__(
        self,
        root: Path,
        transport: StreamTransport | None = None,
        *,
        max_artifact_size_bytes: int | None = None,
    ) -> None:
        self.root = root.resolve()
        self.transport = transport
        self.max_artifact_size_bytes = max_artifact_size_bytes
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, name: str, version: str) -> Path:
        validate_package_name(name)
        validate_version(version)
        basename = name.rsplit("/", 1)[-1]
        return safe_output_path(self.root, f"{name}/{basename}-{version}{ARTIFACT_SUFFIX}")

    def put(self, name: str, version: str, data: bytes) -> Path:
        target = self.path_for(name, version)
        self._write_atomic(target, [data])
        return target

    def verify(self, path: Path, expected_integrity: str) -> bool:
        try:
            return matches(Path(path), expected_integrity)
        except OSError as exc:
            raise StorageError(f"cannot read artifact {path}: {exc}") from exc

    def evict(self, path: Path) -> None:
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"cannot remove artifact {path}: {exc}") from exc
        logger.debug("evicted %s", path)

    def fetch_and_store(self, name: str, version: str, url: str, expected_integrity: str) -> Path:
        if self.transport is None:
            raise StorageError("content store has no transport configured for downloads")
        target = self.path_for(name, version)
        logger.debug("fetch %s@%s url=%s", name, version, url)

        def _verified(tmp_path: Path) -> None:
            if not self.verify(tmp_path, expected_integrity):
                raise IntegrityError(
                    f"integrity mismatch for {name}@{version}: expected {expected_integrity}"
                )

        # the response stays open until the generator is closed
        with contextlib.closing(self.transport.stream(url)) as chunks:
            self._write_atomic(target, chunks, before_commit=_verified)
        logger.info("stored %s@%s at %s", name, version, target)
        return target

    def owns(self, path: Path) -> bool:
        """True when ``path`` lies inside the store root."""
        try:
            return self.root in Path(path).resolve().parents
        except OSError:
            return False

    def iter_artifacts(self) -> Iterator[Path]:
        return (path for path in sorted(self.root.rglob(f"*{ARTIFACT_SUFFIX}")) if path.is_file())

    def iter_partials(self) -> Iterator[Path]:
        return (path for path in sorted(self.root.rglob(f"*{PARTIAL_SUFFIX}")) if path.is_file())

    def _write_atomic(self, target: Path, chunks: Iterable[bytes], *, before_commit=None) -> None:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=target.parent,
                prefix=f".{target.name}.",
                suffix=PARTIAL_SUFFIX,
            )
        except OSError as exc:
            raise StorageError(f"cannot create temp file for {target}: {exc}") from exc

        tmp_path = Path(tmp_name)
        try:
            written = 0
            with os.fdopen(fd, "wb") as handle:
                for chunk in chunks:
                    written += len(chunk)
                    self._enforce_size_limit(written, target)
                    handle.write(chunk)
                handle.flush()
                os.fsync(handle.fileno())
            if before_commit is not None:
                before_commit(tmp_path)
            os.replace(tmp_path, target)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise StorageError(f"cannot write artifact {target}: {exc}") from exc
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

    def _enforce_size_limit(self, size: int, target: Path) -> None:
        limit = self.max_artifact_size_bytes
        if limit is None:
            return
        if size > limit:
            raise StorageError(f"artifact {target.name} exceeds configured limit {limit} bytes")

"""Subresource-integrity strings: ``<algorithm>-<base64 digest>``."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
from dataclasses import dataclass
from pathlib import Path

# Weakest first; the strongest algorithm present in an integrity string wins.
SUPPORTED_ALGORITHMS = ("sha1", "sha256", "sha384", "sha512")
DEFAULT_ALGORITHM = "sha512"
_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class IntegrityValue:
    algorithm: str
    digest: str

    def __str__(self) -> str:
        return f"{self.algorithm}-{self.digest}"


def parse_integrity(value: str) -> list[IntegrityValue]:
    """Parse every supported hash in ``value``; unknown algorithms are skipped."""
    results: list[IntegrityValue] = []
    for token in (value or "").split():
        algorithm, sep, digest = token.partition("-")
        # Options such as "?foo" may trail the digest.
        digest = digest.split("?", 1)[0]
        algorithm = algorithm.lower()
        if not sep or algorithm not in SUPPORTED_ALGORITHMS or not digest:
            continue
        try:
            raw = base64.b64decode(digest, validate=True)
        except binascii.Error:
            continue
        if len(raw) != hashlib.new(algorithm).digest_size:
            continue
        results.append(IntegrityValue(algorithm=algorithm, digest=digest))
    return results


def strongest(value: str) -> IntegrityValue | None:
    parsed = parse_integrity(value)
    if not parsed:
        return None
    return max(parsed, key=lambda item: SUPPORTED_ALGORITHMS.index(item.algorithm))


def is_valid_integrity(value: str) -> bool:
    return strongest(value) is not None


def file_digest(path: Path, algorithm: str = DEFAULT_ALGORITHM) -> bytes:
    h = hashlib.new(algorithm)
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            h.update(chunk)
    return h.digest()


def bytes_integrity(data: bytes, algorithm: str = DEFAULT_ALGORITHM) -> str:
    digest = hashlib.new(algorithm, data).digest()
    return str(IntegrityValue(algorithm, base64.b64encode(digest).decode("ascii")))


def integrity_from_shasum(shasum: str) -> str:
    """Convert a legacy hex ``dist.shasum`` into ``sha1-<base64>``."""
    try:
        raw = bytes.fromhex(shasum.strip())
    except ValueError as exc:
        raise ValueError(f"invalid shasum: {shasum!r}") from exc
    if len(raw) != hashlib.sha1().digest_size:
        raise ValueError(f"invalid shasum length: {shasum!r}")
    return str(IntegrityValue("sha1", base64.b64encode(raw).decode("ascii")))


def matches(path: Path, expected: str) -> bool:
    """Hash ``path`` with the strongest algorithm in ``expected`` and compare.

    OSError from reading the file propagates to the caller.
    """
    target = strongest(expected)
    if target is None:
        return False
    actual = base64.b64encode(file_digest(path, target.algorithm)).decode("ascii")
    return hmac.compare_digest(actual, target.digest)

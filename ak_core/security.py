"""Input validation and path safety helpers."""

from __future__ import annotations

import re
from pathlib import Path
from urllib.parse import urlsplit

from .errors import InvalidInputError, StorageError
from .types import LATEST, PackageRef

_SENSITIVE_KEYS = ("password", "token", "authorization", "bearer", "_auth")
_NAME_SEGMENT = r"[A-Za-z0-9_-]+"
_NAME_RE = re.compile(rf"^(?:@{_NAME_SEGMENT}/)?{_NAME_SEGMENT}$")
_VERSION_RE = re.compile(
    r"^(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)"
    r"(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)


def validate_package_name(name: str) -> str:
    if not isinstance(name, str) or not _NAME_RE.fullmatch(name):
        raise InvalidInputError(f"invalid package name: {name!r}")
    return name


def validate_version(version: str) -> str:
    if version == LATEST:
        return version
    if not isinstance(version, str) or not _VERSION_RE.fullmatch(version):
        raise InvalidInputError(f"invalid package version: {version!r} (expected x.y.z or 'latest')")
    return version


def validate_ref(ref: PackageRef) -> PackageRef:
    validate_package_name(ref.name)
    validate_version(ref.version)
    return ref


def safe_output_path(base_dir: Path, relative_path: str) -> Path:
    target = (base_dir / relative_path).resolve()
    root = base_dir.resolve()
    if target == root or root not in target.parents:
        raise StorageError(f"path escapes cache directory: {relative_path}")
    return target


def redact_url(value: str) -> str:
    if "://" not in value:
        return value
    parsed = urlsplit(value)
    if parsed.password:
        return value.replace(parsed.netloc, parsed.netloc.replace(parsed.password, "***"))
    return value


def redact_command_for_log(command: list[str]) -> list[str]:
    redacted: list[str] = []
    for item in command:
        lower = item.lower()
        if "=" in item and any(key in lower.split("=", 1)[0] for key in _SENSITIVE_KEYS):
            redacted.append(f"{item.split('=', 1)[0]}=***")
            continue
        redacted.append(redact_url(item))
    return redacted

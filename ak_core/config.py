"""Settings: defaults, then ``[ak]`` in a TOML config file, then ``AK_*`` environment variables."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping

from .errors import InvalidInputError

DEFAULT_REGISTRY_URL = "https://registry.npmjs.org"
DEFAULT_INSTALLER = "npm"
MANIFEST_FILENAME = "manifest.json"

_ENV_KEYS = {
    "cache_dir": "AK_CACHE_DIR",
    "manifest_path": "AK_MANIFEST_PATH",
    "registry_url": "AK_REGISTRY_URL",
    "timeout_seconds": "AK_TIMEOUT_SECONDS",
    "installer": "AK_INSTALLER",
    "global_dir": "AK_GLOBAL_DIR",
    "max_retries": "AK_MAX_RETRIES",
    "backoff_seconds": "AK_BACKOFF_SECONDS",
    "max_artifact_size_bytes": "AK_MAX_ARTIFACT_SIZE_BYTES",
}


def _default_cache_dir() -> Path:
    return Path.home() / ".prebuilt-cache"


def default_config_path() -> Path:
    return Path.home() / ".config" / "ak" / "config.toml"


@dataclass(frozen=True)
class AkSettings:
    cache_dir: Path
    manifest_path: Path
    registry_url: str = DEFAULT_REGISTRY_URL
    timeout_seconds: float = 30.0
    installer: str = DEFAULT_INSTALLER
    global_dir: Path | None = None
    max_retries: int = 2
    backoff_seconds: float = 0.5
    max_artifact_size_bytes: int | None = None

    @property
    def store_dir(self) -> Path:
        return self.cache_dir / "store"

    @classmethod
    def defaults(cls) -> "AkSettings":
        cache_dir = _default_cache_dir()
        return cls(cache_dir=cache_dir, manifest_path=cache_dir / MANIFEST_FILENAME)


def _load_config_file(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        payload = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception:
        return {}
    section = payload.get("ak")
    return section if isinstance(section, dict) else {}


def load_settings(
    environ: Mapping[str, str] | None = None,
    *,
    config_path: Path | None = None,
) -> AkSettings:
    env = os.environ if environ is None else environ
    if config_path is None:
        raw_config = str(env.get("AK_CONFIG") or "").strip()
        config_path = Path(raw_config).expanduser() if raw_config else default_config_path()

    raw: dict[str, Any] = {key: value for key, value in _load_config_file(config_path).items() if key in _ENV_KEYS}
    for field_name, env_name in _ENV_KEYS.items():
        value = str(env.get(env_name) or "").strip()
        if value:
            raw[field_name] = value

    cache_dir = _to_path(raw.get("cache_dir")) or _default_cache_dir()
    settings = AkSettings(
        cache_dir=cache_dir,
        manifest_path=_to_path(raw.get("manifest_path")) or cache_dir / MANIFEST_FILENAME,
    )
    return replace(
        settings,
        registry_url=str(raw.get("registry_url") or DEFAULT_REGISTRY_URL).rstrip("/"),
        timeout_seconds=_to_float("timeout_seconds", raw.get("timeout_seconds"), settings.timeout_seconds),
        installer=str(raw.get("installer") or DEFAULT_INSTALLER),
        global_dir=_to_path(raw.get("global_dir")),
        max_retries=_to_int("max_retries", raw.get("max_retries"), settings.max_retries),
        backoff_seconds=_to_float("backoff_seconds", raw.get("backoff_seconds"), settings.backoff_seconds),
        max_artifact_size_bytes=_to_int("max_artifact_size_bytes", raw.get("max_artifact_size_bytes"), None),
    )


def _to_path(value: Any) -> Path | None:
    text = str(value or "").strip()
    if not text:
        return None
    return Path(text).expanduser()


def _to_float(name: str, value: Any, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"{name} must be a number, got {value!r}") from exc


def _to_int(name: str, value: Any, default: int | None) -> int | None:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"{name} must be an integer, got {value!r}") from exc

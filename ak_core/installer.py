"""External package installer wrapper with retries and timeouts."""

from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from .config import AkSettings
from .errors import InvalidInputError, SubprocessError
from .security import redact_command_for_log
from .types import InstallOptions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallerConfig:
    binary: str = "npm"
    timeout_seconds: float = 30.0
    max_retries: int = 2
    backoff_seconds: float = 0.5
    global_dir: Path | None = None

    @classmethod
    def from_settings(cls, settings: AkSettings) -> "InstallerConfig":
        return cls(
            binary=settings.installer,
            timeout_seconds=settings.timeout_seconds,
            max_retries=settings.max_retries,
            backoff_seconds=settings.backoff_seconds,
            global_dir=settings.global_dir,
        )


class Installer:
    """Runs the installer binary with a structured argument list, never through a shell."""

    def __init__(self, config: InstallerConfig | None = None, *, cwd: Path | None = None) -> None:
        self.config = config or InstallerConfig()
        self.cwd = cwd

    def install(self, targets: Sequence[str | Path], options: InstallOptions | None = None) -> str:
        return self._invoke("install", targets, options or InstallOptions())

    def uninstall(self, names: Sequence[str], options: InstallOptions | None = None) -> str:
        return self._invoke("uninstall", names, options or InstallOptions())

    def build_command(self, verb: str, targets: Sequence[str | Path], options: InstallOptions) -> list[str]:
        if not targets:
            raise InvalidInputError(f"no packages given to {verb}")
        command = [self.config.binary, verb]
        if options.global_install:
            command.append("--global")
            if self.config.global_dir is not None:
                command.extend(["--prefix", str(self.config.global_dir)])
        if options.force:
            command.append("--force")
        if options.legacy_peer_deps:
            command.append("--legacy-peer-deps")
        command.extend(str(target) for target in targets)
        return command

    def _invoke(self, verb: str, targets: Sequence[str | Path], options: InstallOptions) -> str:
        result = self._run(self.build_command(verb, targets, options))
        return result.stdout or ""

    def _run(self, command: list[str]) -> subprocess.CompletedProcess[str]:
        timeout = max(float(self.config.timeout_seconds), 1.0)
        retries = max(int(self.config.max_retries), 1)
        backoff = max(float(self.config.backoff_seconds), 0.0)
        redacted = " ".join(redact_command_for_log(command))

        last_error: Exception | None = None
        for attempt in range(1, retries + 1):
            try:
                logger.debug("installer attempt=%s/%s cmd=%s", attempt, retries, redacted)
                result = subprocess.run(
                    command,
                    check=False,
                    capture_output=True,
                    text=True,
                    timeout=timeout,
                    cwd=str(self.cwd) if self.cwd is not None else None,
                )
                if result.returncode == 0:
                    return result
                if attempt >= retries:
                    raise SubprocessError(
                        _format_failure(redacted, result.returncode, result.stderr),
                        stderr=result.stderr or "",
                        returncode=result.returncode,
                    )
                logger.warning("installer exited with %s (attempt %s/%s)", result.returncode, attempt, retries)
            except FileNotFoundError as exc:
                raise SubprocessError(
                    f"installer '{self.config.binary}' not found. Install it or set AK_INSTALLER."
                ) from exc
            except subprocess.TimeoutExpired as exc:
                last_error = exc
                if attempt >= retries:
                    raise SubprocessError(f"installer timed out after {timeout:.1f}s cmd='{redacted}'") from exc
                logger.warning("installer timed out (attempt %s/%s)", attempt, retries)
            time.sleep(backoff)
        if isinstance(last_error, Exception):
            raise SubprocessError("installer failed after retries") from last_error
        raise SubprocessError("installer failed")


def _format_failure(redacted: str, code: int, stderr: str | None) -> str:
    detail = (stderr or "").strip()
    if detail:
        return f"installer failed (exit={code}) cmd='{redacted}' err='{detail}'"
    return f"installer failed (exit={code}) cmd='{redacted}'"

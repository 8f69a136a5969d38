"""Error kinds raised by the ak package cache."""

from __future__ import annotations


class AkError(RuntimeError):
    """Base class for every failure surfaced by ak."""


class InvalidInputError(AkError, ValueError):
    """Malformed package name, version, or setting."""


class NotFoundError(AkError):
    """Package or version absent from the registry."""


class RegistryError(AkError):
    """Registry answered with a malformed or unexpected document."""


class NetworkError(AkError):
    """Transport failure or timeout talking to the registry or tarball host."""


class IntegrityError(AkError):
    """Downloaded bytes do not match the expected integrity digest."""


class StorageError(AkError):
    """Filesystem failure unrelated to integrity."""


class SubprocessError(AkError):
    """The external installer exited with a failure."""

    def __init__(self, message: str, *, stderr: str = "", returncode: int | None = None) -> None:
        super().__init__(message)
        self.stderr = stderr
        self.returncode = returncode

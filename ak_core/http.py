from __future__ import annotations

import logging
import time
from typing import Any, Generator

import requests

from .errors import NetworkError, NotFoundError, RegistryError
from .security import redact_url

log = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024
USER_AGENT = "ak/1.0 (+package-cache)"


class HttpTransport:
    """requests-based transport shared by the registry client and the content store."""

    def __init__(self, *, timeout_seconds: float = 30.0, session: requests.Session | None = None) -> None:
        self.timeout_seconds = max(float(timeout_seconds), 1.0)
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    def get_json(self, url: str) -> Any:
        log.debug("GET %s", redact_url(url))
        try:
            r = self.session.get(
                url,
                headers={"Accept": "application/json"},
                timeout=self.timeout_seconds,
            )
        except requests.Timeout as exc:
            raise NetworkError(f"request timed out after {self.timeout_seconds:.1f}s: {redact_url(url)}") from exc
        except requests.RequestException as exc:
            raise NetworkError(f"request failed: {redact_url(url)}: {exc}") from exc
        _raise_for_status(r, url)
        try:
            return r.json()
        except ValueError as exc:
            raise RegistryError(f"invalid JSON from {redact_url(url)}") from exc

    def stream(self, url: str) -> Generator[bytes, None, None]:
        """Yield the body of ``url`` in chunks, bounded by a total deadline."""
        log.debug("GET %s (stream)", redact_url(url))
        deadline = time.monotonic() + self.timeout_seconds
        try:
            r = self.session.get(url, stream=True, timeout=self.timeout_seconds)
        except requests.Timeout as exc:
            raise NetworkError(f"download timed out after {self.timeout_seconds:.1f}s: {redact_url(url)}") from exc
        except requests.RequestException as exc:
            raise NetworkError(f"download failed: {redact_url(url)}: {exc}") from exc
        with r:
            _raise_for_status(r, url)
            try:
                for chunk in r.iter_content(chunk_size=_CHUNK_SIZE):
                    if time.monotonic() > deadline:
                        raise NetworkError(
                            f"download exceeded {self.timeout_seconds:.1f}s: {redact_url(url)}"
                        )
                    if chunk:
                        yield chunk
            except requests.RequestException as exc:
                raise NetworkError(f"download interrupted: {redact_url(url)}: {exc}") from exc


def _raise_for_status(r: requests.Response, url: str) -> None:
    if r.status_code == 404:
        raise NotFoundError(f"not found: {redact_url(url)}")
    if r.status_code >= 400:
        raise NetworkError(f"{redact_url(url)} returned HTTP {r.status_code}")

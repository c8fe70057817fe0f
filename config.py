"""Configuration constants for the static file server."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from mime_types import DEFAULT_CONTENT_TYPE, MIME_TYPES
from resolver import ContentRoot

DEFAULT_PORT: int = 8080


def port_from_env(environ: Mapping[str, str] | None = None) -> int:
    """Return the listening port from ``PORT``, falling back to the default."""
    env = os.environ if environ is None else environ
    raw_port = env.get("PORT", "").strip()
    if not raw_port:
        return DEFAULT_PORT
    try:
        port = int(raw_port)
    except ValueError as exc:
        raise ValueError(f"PORT must be an integer, got {raw_port!r}") from exc
    if not 0 <= port <= 65535:
        raise ValueError(f"PORT out of range: {port}")
    return port


HOST: str = "0.0.0.0"
PORT: int = port_from_env()
CONTENT_ROOT: Path = Path(__file__).resolve().parent
LANDING_PATH: str = "/website/"
INDEX_FILE: str = "index.html"
CACHE_CONTROL: str = "no-store, no-cache, must-revalidate"
SERVER_NAME: str = "static-file-server/1.0"

BUFFER_SIZE: int = 1024
READ_CHUNK_SIZE: int = 4096
WRITE_CHUNK_SIZE: int = 65_536
SOCKET_TIMEOUT_SECS: int = 5
LINGER_SECS: float = 0.5
KEEPALIVE_TIMEOUT_SECS: int = 5
MAX_KEEPALIVE_REQUESTS: int = 100
MAX_REQUEST_BYTES: int = 1_048_576
MAX_HEADER_BYTES: int = 16_384
MAX_BODY_BYTES: int = 524_288
MAX_TARGET_LENGTH: int = 8192
WORKER_COUNT: int = 16
REQUEST_QUEUE_SIZE: int = 128


@dataclass(frozen=True, slots=True)
class SiteSettings:
    """Per-process values shared read-only by every request handler."""

    root: ContentRoot
    landing_path: str = LANDING_PATH
    index_file: str = INDEX_FILE
    cache_control: str = CACHE_CONTROL
    mime_types: Mapping[str, str] = field(default_factory=lambda: MIME_TYPES)
    default_content_type: str = DEFAULT_CONTENT_TYPE

    @classmethod
    def for_directory(cls, directory: str | os.PathLike[str] = CONTENT_ROOT) -> SiteSettings:
        return cls(root=ContentRoot.from_path(directory))

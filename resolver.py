"""Confine untrusted URL paths to the content root.

``resolve`` never touches the filesystem. It decodes the request path once,
normalizes it lexically and checks the result is still inside the content
root. Callers get back either a ``ResolvedPath`` or a ``Rejection`` and must
handle both.
"""

from __future__ import annotations

import enum
import os
import posixpath
import re
from dataclasses import dataclass
from urllib.parse import unquote_to_bytes

_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_LEADING_PARENTS = re.compile(r"^(?:\.\.(?:/+|$))+")


class RejectionKind(enum.Enum):
    MALFORMED = "malformed"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True, slots=True)
class Rejection:
    kind: RejectionKind
    reason: str


@dataclass(frozen=True, slots=True)
class ResolvedPath:
    path: str


ResolveResult = ResolvedPath | Rejection


@dataclass(frozen=True, slots=True)
class ContentRoot:
    """Canonical absolute directory that all served paths must stay under."""

    directory: str

    @classmethod
    def from_path(cls, path: str | os.PathLike[str]) -> ContentRoot:
        return cls(directory=os.path.realpath(os.fspath(path)))

    def contains(self, candidate: str) -> bool:
        # Segment-wise: "/srv/site-evil" is not inside "/srv/site".
        if candidate == self.directory:
            return True
        prefix = self.directory
        if not prefix.endswith(os.sep):
            prefix += os.sep
        return candidate.startswith(prefix)


def decode_path(raw_path: str) -> str:
    """Percent-decode ``raw_path`` exactly once.

    Raises ``ValueError`` for a stray ``%`` or for bytes that are not UTF-8.
    """
    if _MALFORMED_ESCAPE.search(raw_path):
        raise ValueError("Malformed percent-escape in path")
    return unquote_to_bytes(raw_path).decode("utf-8")


def resolve(root: ContentRoot, raw_path: str) -> ResolveResult:
    try:
        decoded = decode_path(raw_path)
    except (ValueError, UnicodeDecodeError):
        return Rejection(RejectionKind.MALFORMED, "path is not valid percent-encoded UTF-8")

    if _CONTROL_CHARS.search(decoded):
        return Rejection(RejectionKind.MALFORMED, "path contains control characters")

    normalized = posixpath.normpath(decoded) if decoded else "."
    relative = _LEADING_PARENTS.sub("", normalized.lstrip("/"))
    candidate = os.path.normpath(os.path.join(root.directory, relative or "."))

    if not root.contains(candidate):
        return Rejection(RejectionKind.FORBIDDEN, "path escapes the content root")
    return ResolvedPath(candidate)

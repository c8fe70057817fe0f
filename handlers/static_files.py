"""Static file handler: turn a resolved path into an HTTP response."""

from __future__ import annotations

import enum
import errno
import logging
import os
import stat
from pathlib import Path

from config import SiteSettings
from mime_types import get_content_type
from request import HTTPRequest
from resolver import Rejection, RejectionKind, ResolveResult, decode_path, resolve
from response import HTTPResponse, plain_text

logger = logging.getLogger(__name__)

# ENOTDIR: a path under a regular file. ENAMETOOLONG: a name that cannot exist.
_MISSING_ERRNOS = {errno.ENOENT, errno.ENOTDIR, errno.ENAMETOOLONG}


class Entity(enum.Enum):
    FILE = "file"
    DIRECTORY = "directory"
    MISSING = "missing"
    SPECIAL = "special"
    ERROR = "error"


def classify(path: str) -> Entity:
    """Stat ``path`` and bucket the result.

    The answer is only true at the instant of the call; the file may change
    before it is opened.
    """
    try:
        mode = os.stat(path).st_mode
    except OSError as exc:
        if exc.errno in _MISSING_ERRNOS:
            return Entity.MISSING
        logger.warning("stat failed for %s: %s", path, exc.strerror)
        return Entity.ERROR

    if stat.S_ISDIR(mode):
        return Entity.DIRECTORY
    if stat.S_ISREG(mode):
        return Entity.FILE
    return Entity.SPECIAL


def file_response(site: SiteSettings, path: str) -> HTTPResponse:
    return HTTPResponse(
        status_code=200,
        headers={
            "Content-Type": get_content_type(
                path, site.mime_types, site.default_content_type
            ),
            "Cache-Control": site.cache_control,
        },
        file_path=Path(path),
    )


def _index_response(site: SiteSettings, directory: str) -> HTTPResponse:
    index_path = os.path.join(directory, site.index_file)
    if classify(index_path) is not Entity.FILE or not os.access(index_path, os.R_OK):
        return plain_text(404)
    return file_response(site, index_path)


def dispatch(site: SiteSettings, result: ResolveResult, original_path: str) -> HTTPResponse:
    """Pick the response for a resolver result.

    ``original_path`` is the request path as received, still percent-encoded;
    redirects echo it back so the client sees its own spelling.
    """
    if isinstance(result, Rejection):
        if result.kind is RejectionKind.FORBIDDEN:
            logger.warning("Rejected path %r: %s", original_path, result.reason)
            return plain_text(403)
        return plain_text(400)

    if decode_path(original_path) == "/":
        return HTTPResponse(status_code=302, headers={"Location": site.landing_path})

    entity = classify(result.path)
    if entity is Entity.MISSING or entity is Entity.SPECIAL:
        return plain_text(404)
    if entity is Entity.ERROR:
        return plain_text(500)
    if entity is Entity.DIRECTORY:
        if not original_path.endswith("/"):
            return HTTPResponse(
                status_code=301,
                headers={"Location": _slash_redirect_target(original_path)},
            )
        return _index_response(site, result.path)
    return file_response(site, result.path)


def _slash_redirect_target(original_path: str) -> str:
    # A leading "//" would make the Location a protocol-relative URL to another host.
    return "/" + original_path.lstrip("/") + "/"


def serve_static(site: SiteSettings, request: HTTPRequest) -> HTTPResponse:
    return dispatch(site, resolve(site.root, request.path), request.path)

"""HTTP response model and serializer."""

from dataclasses import dataclass, field
from email.utils import formatdate
from pathlib import Path

from config import SERVER_NAME

REASON_PHRASES: dict[int, str] = {
    200: "OK",
    301: "Moved Permanently",
    302: "Found",
    400: "Bad Request",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    408: "Request Timeout",
    413: "Payload Too Large",
    414: "URI Too Long",
    431: "Request Header Fields Too Large",
    500: "Internal Server Error",
    501: "Not Implemented",
    503: "Service Unavailable",
    505: "HTTP Version Not Supported",
}


@dataclass(slots=True)
class HTTPResponse:
    status_code: int
    reason_phrase: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | str = b""
    file_path: Path | None = None
    content_length_override: int | None = None

    def __post_init__(self) -> None:
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")
        if self.file_path is not None and self.body:
            raise ValueError("Response cannot set both body and file_path")

    @property
    def reason(self) -> str:
        return self.reason_phrase or REASON_PHRASES.get(self.status_code, "Unknown")


def plain_text(status_code: int, headers: dict[str, str] | None = None) -> HTTPResponse:
    """Build a response whose body is just the reason phrase."""
    return HTTPResponse(
        status_code=status_code,
        headers=dict(headers or {}),
        body=REASON_PHRASES.get(status_code, "Error"),
    )


def build_head(response: HTTPResponse, *, content_length: int | None = None) -> bytes:
    """Render the status line and headers.

    ``content_length`` is the size of a file body measured by the caller; body
    responses use ``len(body)`` unless an override is set.
    """
    headers = dict(response.headers)
    headers.setdefault("Date", formatdate(timeval=None, localtime=False, usegmt=True))
    headers.setdefault("Server", SERVER_NAME)
    headers.setdefault("Content-Type", "text/plain; charset=utf-8")

    if response.content_length_override is not None:
        length = response.content_length_override
    elif content_length is not None:
        length = content_length
    else:
        length = len(response.body)
    headers["Content-Length"] = str(length)

    header_lines = [f"HTTP/1.1 {response.status_code} {response.reason}"]
    header_lines.extend(f"{key}: {value}" for key, value in headers.items())
    return "\r\n".join(header_lines).encode("iso-8859-1") + b"\r\n\r\n"

"""Low-level socket read/write utilities."""

from __future__ import annotations

import os
import socket

from config import (
    BUFFER_SIZE,
    MAX_BODY_BYTES,
    MAX_HEADER_BYTES,
    MAX_REQUEST_BYTES,
    READ_CHUNK_SIZE,
    WRITE_CHUNK_SIZE,
)
from response import HTTPResponse, build_head


class HTTPReadError(Exception):
    """Raised when a client request cannot be safely read from the socket."""


class MalformedRequestError(HTTPReadError):
    """Raised when socket bytes do not form a complete HTTP request."""


class HeaderTooLargeError(HTTPReadError):
    """Raised when HTTP headers exceed configured maximum size."""


class PayloadTooLargeError(HTTPReadError):
    """Raised when request body exceeds configured maximum size."""


class SocketTimeoutError(HTTPReadError):
    """Raised when a client times out while sending request bytes."""


class FileTransferError(Exception):
    """Raised when a file body cannot be opened or read.

    ``headers_sent`` tells the caller whether a status line already went out;
    if it did, the only safe reaction is to drop the connection.
    """

    def __init__(self, message: str, *, headers_sent: bool) -> None:
        super().__init__(message)
        self.headers_sent = headers_sent


def _declared_body_length(header_bytes: bytes) -> int:
    lines = header_bytes.decode("iso-8859-1").split("\r\n")
    for line in lines[1:]:
        if ":" not in line:
            continue
        name, value = line.split(":", 1)
        if name.strip().lower() != "content-length":
            continue
        try:
            length = int(value.strip())
        except ValueError as exc:
            raise MalformedRequestError("Invalid Content-Length header") from exc
        if length < 0:
            raise MalformedRequestError("Negative Content-Length header")
        return length
    return 0


def extract_http_request_message(buffer: bytes) -> tuple[bytes, bytes] | None:
    """Split one complete request off the front of ``buffer``.

    Returns ``(request_bytes, leftover)`` or ``None`` when more bytes are needed.
    """
    if len(buffer) > MAX_REQUEST_BYTES:
        raise PayloadTooLargeError("Request exceeded MAX_REQUEST_BYTES")

    header_end_index = buffer.find(b"\r\n\r\n")
    if header_end_index == -1:
        if len(buffer) > MAX_HEADER_BYTES:
            raise HeaderTooLargeError("Headers exceeded MAX_HEADER_BYTES")
        return None
    if header_end_index + 4 > MAX_HEADER_BYTES:
        raise HeaderTooLargeError("Headers exceeded MAX_HEADER_BYTES")

    body_length = _declared_body_length(buffer[:header_end_index])
    if body_length > MAX_BODY_BYTES:
        raise PayloadTooLargeError("Body exceeded MAX_BODY_BYTES")

    request_length = header_end_index + 4 + body_length
    if len(buffer) < request_length:
        return None
    return buffer[:request_length], buffer[request_length:]


def read_http_request_message(
    client_socket: socket.socket,
    initial_buffer: bytes = b"",
) -> tuple[bytes, bytes]:
    """Read one HTTP request and return (request_bytes, leftover_bytes).

    ``(b"", b"")`` means the peer closed the connection between requests.
    """
    buffer = bytearray(initial_buffer)

    while True:
        extracted = extract_http_request_message(bytes(buffer))
        if extracted is not None:
            return extracted

        try:
            chunk = client_socket.recv(max(BUFFER_SIZE, READ_CHUNK_SIZE))
        except socket.timeout as exc:
            if not buffer:
                return b"", b""
            raise SocketTimeoutError("Timed out waiting for request bytes") from exc

        if not chunk:
            if not buffer:
                return b"", b""
            raise MalformedRequestError("Connection closed before request completed")

        buffer.extend(chunk)


def write_http_response_message(
    client_socket: socket.socket,
    response: HTTPResponse,
    *,
    write_chunk_size: int = WRITE_CHUNK_SIZE,
) -> int:
    """Write ``response`` and return the number of bytes sent.

    File bodies are opened before the head is written and streamed in
    ``write_chunk_size`` pieces. Socket errors (peer gone, timeout) propagate
    as ``OSError``; the open file is closed on every path.
    """
    if response.file_path is None:
        payload = build_head(response) + response.body
        client_socket.sendall(payload)
        return len(payload)

    try:
        file_obj = response.file_path.open("rb")
    except OSError as exc:
        raise FileTransferError(f"Cannot open file: {exc.strerror}", headers_sent=False) from exc

    with file_obj:
        try:
            file_size = os.fstat(file_obj.fileno()).st_size
        except OSError as exc:
            raise FileTransferError("Cannot stat open file", headers_sent=False) from exc

        head = build_head(response, content_length=file_size)
        client_socket.sendall(head)
        bytes_sent = len(head)

        remaining = file_size
        while remaining > 0:
            try:
                chunk = file_obj.read(min(write_chunk_size, remaining))
            except OSError as exc:
                raise FileTransferError("Read failed mid-transfer", headers_sent=True) from exc
            if not chunk:
                raise FileTransferError("File shrank during transfer", headers_sent=True)
            client_socket.sendall(chunk)
            remaining -= len(chunk)
            bytes_sent += len(chunk)

    return bytes_sent

"""Unit tests for socket read framing and response writing."""

from __future__ import annotations

import hashlib
import socket
from pathlib import Path

import pytest

from config import MAX_BODY_BYTES, MAX_HEADER_BYTES
from response import HTTPResponse
from socket_handler import (
    FileTransferError,
    HeaderTooLargeError,
    MalformedRequestError,
    PayloadTooLargeError,
    extract_http_request_message,
    read_http_request_message,
    write_http_response_message,
)


class RecordingSocket:
    """Socket stand-in that records writes and can fail after N sends."""

    def __init__(self, fail_after: int | None = None) -> None:
        self.sent: list[bytes] = []
        self._fail_after = fail_after

    def sendall(self, data: bytes) -> None:
        if self._fail_after is not None and len(self.sent) >= self._fail_after:
            raise BrokenPipeError(32, "Broken pipe")
        self.sent.append(bytes(data))


class TrackingOpen:
    """Wraps ``Path.open`` so tests can inspect the handle afterwards."""

    def __init__(self, monkeypatch: pytest.MonkeyPatch) -> None:
        self.handles: list = []
        real_open = Path.open

        def _open(path: Path, *args, **kwargs):
            handle = real_open(path, *args, **kwargs)
            self.handles.append(handle)
            return handle

        monkeypatch.setattr(Path, "open", _open)


class FlakyHandle:
    """File wrapper whose reads fail like a dying disk."""

    def __init__(self, handle) -> None:
        self._handle = handle

    @property
    def closed(self) -> bool:
        return self._handle.closed

    def fileno(self) -> int:
        return self._handle.fileno()

    def read(self, _size: int = -1) -> bytes:
        raise OSError(5, "Input/output error")

    def __enter__(self) -> FlakyHandle:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._handle.close()


def _file_response(file_path: Path) -> HTTPResponse:
    return HTTPResponse(
        status_code=200,
        headers={"Content-Type": "application/octet-stream"},
        file_path=file_path,
    )


def test_extract_returns_none_until_head_complete() -> None:
    assert extract_http_request_message(b"GET / HTTP/1.1\r\nHost: x\r\n") is None


def test_extract_splits_pipelined_requests() -> None:
    first = b"GET /a HTTP/1.1\r\nHost: x\r\n\r\n"
    second = b"GET /b HTTP/1.1\r\nHost: x\r\n\r\n"

    request_bytes, leftover = extract_http_request_message(first + second)

    assert request_bytes == first
    assert leftover == second


def test_extract_waits_for_declared_body() -> None:
    head = b"POST / HTTP/1.1\r\nHost: x\r\nContent-Length: 4\r\n\r\n"

    assert extract_http_request_message(head + b"ab") is None
    assert extract_http_request_message(head + b"abcd") == (head + b"abcd", b"")


def test_extract_rejects_oversized_headers() -> None:
    buffer = b"GET / HTTP/1.1\r\nX-Fill: " + b"a" * MAX_HEADER_BYTES

    with pytest.raises(HeaderTooLargeError):
        extract_http_request_message(buffer)


def test_extract_rejects_oversized_body() -> None:
    head = (
        b"POST / HTTP/1.1\r\nHost: x\r\n"
        + f"Content-Length: {MAX_BODY_BYTES + 1}\r\n".encode("ascii")
        + b"\r\n"
    )

    with pytest.raises(PayloadTooLargeError):
        extract_http_request_message(head)


def test_extract_rejects_invalid_content_length() -> None:
    with pytest.raises(MalformedRequestError):
        extract_http_request_message(b"POST / HTTP/1.1\r\nContent-Length: nope\r\n\r\n")


def test_read_request_across_multiple_segments() -> None:
    client, server = socket.socketpair()
    with client, server:
        client.sendall(b"GET /website/ HTTP/1.1\r\n")
        client.sendall(b"Host: localhost\r\n\r\nGET /next")

        request_bytes, leftover = read_http_request_message(server)

    assert request_bytes == b"GET /website/ HTTP/1.1\r\nHost: localhost\r\n\r\n"
    assert leftover == b"GET /next"


def test_read_returns_empty_when_peer_closes_between_requests() -> None:
    client, server = socket.socketpair()
    with server:
        client.close()
        assert read_http_request_message(server) == (b"", b"")


def test_read_raises_when_peer_closes_mid_request() -> None:
    client, server = socket.socketpair()
    with server:
        client.sendall(b"GET / HTTP/1.1\r\n")
        client.close()
        with pytest.raises(MalformedRequestError):
            read_http_request_message(server)


def test_write_body_response() -> None:
    sock = RecordingSocket()

    bytes_sent = write_http_response_message(sock, HTTPResponse(status_code=404, body="Not Found"))

    payload = b"".join(sock.sent)
    assert bytes_sent == len(payload)
    assert payload.startswith(b"HTTP/1.1 404 Not Found\r\n")
    assert payload.endswith(b"\r\n\r\nNot Found")


@pytest.mark.parametrize("size", [0, 1, 10, 200_003])
def test_write_file_streams_exact_bytes(tmp_path: Path, size: int) -> None:
    content = bytes(index % 251 for index in range(size))
    file_path = tmp_path / "blob.bin"
    file_path.write_bytes(content)
    sock = RecordingSocket()

    write_http_response_message(sock, _file_response(file_path), write_chunk_size=4096)

    head, body = b"".join(sock.sent).split(b"\r\n\r\n", 1)
    assert f"Content-Length: {size}".encode("ascii") in head
    assert hashlib.sha256(body).digest() == hashlib.sha256(content).digest()
    assert all(len(chunk) <= 4096 for chunk in sock.sent[1:])


def test_write_file_that_cannot_be_opened_sends_nothing(tmp_path: Path) -> None:
    sock = RecordingSocket()

    with pytest.raises(FileTransferError) as exc_info:
        write_http_response_message(sock, _file_response(tmp_path / "vanished.txt"))

    assert exc_info.value.headers_sent is False
    assert sock.sent == []


def test_write_file_closes_handle_when_client_disconnects(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    file_path = tmp_path / "large.bin"
    file_path.write_bytes(b"x" * 100_000)
    tracker = TrackingOpen(monkeypatch)
    sock = RecordingSocket(fail_after=2)

    with pytest.raises(BrokenPipeError):
        write_http_response_message(sock, _file_response(file_path), write_chunk_size=1024)

    assert len(sock.sent) == 2
    assert len(tracker.handles) == 1
    assert tracker.handles[0].closed


def test_write_file_read_failure_after_headers(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    file_path = tmp_path / "flaky.bin"
    file_path.write_bytes(b"y" * 10_000)
    handles: list[FlakyHandle] = []
    real_open = Path.open

    def _open(path: Path, *args, **kwargs) -> FlakyHandle:
        handle = FlakyHandle(real_open(path, *args, **kwargs))
        handles.append(handle)
        return handle

    monkeypatch.setattr(Path, "open", _open)
    sock = RecordingSocket()

    with pytest.raises(FileTransferError) as exc_info:
        write_http_response_message(sock, _file_response(file_path))

    assert exc_info.value.headers_sent is True
    assert len(sock.sent) == 1
    assert sock.sent[0].startswith(b"HTTP/1.1 200 OK")
    assert handles[0].closed


def test_write_file_that_shrinks_aborts_transfer(tmp_path: Path) -> None:
    file_path = tmp_path / "shrinking.bin"
    file_path.write_bytes(b"z" * 8192)

    class TruncatingSocket(RecordingSocket):
        def sendall(self, data: bytes) -> None:
            super().sendall(data)
            file_path.write_bytes(b"")

    sock = TruncatingSocket()

    with pytest.raises(FileTransferError) as exc_info:
        write_http_response_message(sock, _file_response(file_path), write_chunk_size=1024)

    assert exc_info.value.headers_sent is True

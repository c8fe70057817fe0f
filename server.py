"""Static file server entry point and connection lifecycle."""

from __future__ import annotations

import argparse
import logging
import os
import socket
import time

from config import (
    BUFFER_SIZE,
    CONTENT_ROOT,
    HOST,
    KEEPALIVE_TIMEOUT_SECS,
    LINGER_SECS,
    MAX_KEEPALIVE_REQUESTS,
    PORT,
    REQUEST_QUEUE_SIZE,
    SOCKET_TIMEOUT_SECS,
    WORKER_COUNT,
    SiteSettings,
)
from handlers.static_files import serve_static
from request import HTTPRequest, HTTPRequestParseError
from response import HTTPResponse, plain_text
from socket_handler import (
    FileTransferError,
    HeaderTooLargeError,
    HTTPReadError,
    MalformedRequestError,
    PayloadTooLargeError,
    SocketTimeoutError,
    read_http_request_message,
    write_http_response_message,
)
from thread_pool import ThreadPool

logger = logging.getLogger(__name__)

READ_METHODS = ("GET", "HEAD")

_READ_ERROR_STATUS: dict[type[HTTPReadError], int] = {
    PayloadTooLargeError: 413,
    HeaderTooLargeError: 431,
    SocketTimeoutError: 408,
    MalformedRequestError: 400,
}


class StaticFileServer:
    def __init__(
        self,
        host: str = HOST,
        port: int = PORT,
        content_root: str | os.PathLike[str] = CONTENT_ROOT,
        worker_count: int = WORKER_COUNT,
        request_queue_size: int = REQUEST_QUEUE_SIZE,
        *,
        keepalive_timeout_secs: int = KEEPALIVE_TIMEOUT_SECS,
    ) -> None:
        self.host = host
        self.port = port
        self.site = SiteSettings.for_directory(content_root)
        self.worker_count = worker_count
        self.request_queue_size = request_queue_size
        self.keepalive_timeout_secs = keepalive_timeout_secs

        self._server_socket: socket.socket | None = None
        self._pool: ThreadPool | None = None
        self._running = False

    def start(self) -> None:
        """Bind, then accept connections until ``stop`` is called."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server_socket:
            self._server_socket = server_socket
            server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server_socket.bind((self.host, self.port))
            server_socket.listen(128)
            server_socket.settimeout(0.2)
            self.port = server_socket.getsockname()[1]
            self._pool = ThreadPool(
                worker_count=self.worker_count,
                queue_size=self.request_queue_size,
                handler=self._handle_client,
            )
            self._pool.start()

            self._running = True
            logger.info("Static server running on port %s", self.port)
            try:
                while self._running:
                    try:
                        client_socket, address = server_socket.accept()
                    except socket.timeout:
                        continue
                    except OSError:
                        break

                    if self._pool is None or not self._pool.submit(client_socket, address):
                        self._send_queue_full_response(client_socket)
            finally:
                if self._pool is not None:
                    self._pool.shutdown()
                    self._pool = None

    def stop(self) -> None:
        self._running = False
        if self._server_socket is not None:
            self._server_socket.close()
            self._server_socket = None
        if self._pool is not None:
            self._pool.shutdown()
            self._pool = None

    def _send_queue_full_response(self, client_socket: socket.socket) -> None:
        logger.warning("Worker queue full, refusing connection")
        with client_socket:
            self._send_error_and_close(client_socket, 503)

    def _handle_client(self, client_socket: socket.socket, address: tuple[str, int]) -> None:
        with client_socket:
            client_socket.settimeout(min(SOCKET_TIMEOUT_SECS, self.keepalive_timeout_secs))
            request_count = 0
            carry = b""
            while request_count < MAX_KEEPALIVE_REQUESTS:
                try:
                    raw_request, carry = read_http_request_message(client_socket, carry)
                except HTTPReadError as exc:
                    status_code = _READ_ERROR_STATUS.get(type(exc), 400)
                    self._send_error_and_close(client_socket, status_code)
                    return
                except OSError:
                    return

                if not raw_request:
                    return

                try:
                    request = HTTPRequest.from_bytes(raw_request)
                except HTTPRequestParseError as exc:
                    self._send_error_and_close(client_socket, exc.status_code)
                    return

                request_count += 1
                response = self._dispatch(request)
                should_close = not request.keep_alive or request_count >= MAX_KEEPALIVE_REQUESTS
                if should_close:
                    response.headers.setdefault("Connection", "close")
                else:
                    response.headers.setdefault("Connection", "keep-alive")
                    response.headers.setdefault(
                        "Keep-Alive",
                        (
                            f"timeout={self.keepalive_timeout_secs}, "
                            f"max={MAX_KEEPALIVE_REQUESTS - request_count}"
                        ),
                    )

                if not self._write_response(client_socket, address, response):
                    return
                if should_close:
                    return

    def _write_response(
        self,
        client_socket: socket.socket,
        address: tuple[str, int],
        response: HTTPResponse,
    ) -> bool:
        """Send ``response``; return whether the connection is still usable."""
        try:
            write_http_response_message(client_socket, response)
        except FileTransferError as exc:
            logger.warning("File transfer to %s failed: %s", address[0], exc)
            if not exc.headers_sent:
                self._send_error_and_close(client_socket, 500)
            return False
        except OSError as exc:
            logger.debug("Client %s went away mid-response: %s", address[0], exc)
            return False
        return True

    def _send_error_and_close(self, client_socket: socket.socket, status_code: int) -> None:
        response = plain_text(status_code, {"Connection": "close"})
        try:
            write_http_response_message(client_socket, response)
        except OSError:
            return
        _discard_unread(client_socket)

    def _dispatch(self, request: HTTPRequest) -> HTTPResponse:
        if request.method not in READ_METHODS:
            return plain_text(405, {"Allow": ", ".join(READ_METHODS)})

        try:
            response = serve_static(self.site, request)
        except Exception:
            logger.exception("Unhandled error while serving %r", request.path)
            response = plain_text(500)

        if request.method == "HEAD":
            return self._as_head_response(response)
        return response

    def _as_head_response(self, get_response: HTTPResponse) -> HTTPResponse:
        if get_response.file_path is None:
            body_size = len(get_response.body)
        else:
            try:
                body_size = get_response.file_path.stat().st_size
            except OSError as exc:
                logger.warning("stat failed for HEAD %s: %s", get_response.file_path, exc.strerror)
                get_response = plain_text(500)
                body_size = len(get_response.body)
        return HTTPResponse(
            status_code=get_response.status_code,
            reason_phrase=get_response.reason_phrase,
            headers=dict(get_response.headers),
            content_length_override=body_size,
        )


def _discard_unread(client_socket: socket.socket, linger_secs: float = LINGER_SECS) -> None:
    """Half-close and drain the peer so an early error reply is not lost to a RST."""
    deadline = time.monotonic() + linger_secs
    try:
        client_socket.shutdown(socket.SHUT_WR)
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            client_socket.settimeout(remaining)
            if not client_socket.recv(BUFFER_SIZE):
                return
    except OSError:
        return


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve static files from the server directory")
    parser.add_argument("--host", default=HOST)
    parser.add_argument("--port", type=int, default=PORT)
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args()


if __name__ == "__main__":
    args = _parse_args()
    logging.basicConfig(level=args.log_level.upper())
    server = StaticFileServer(host=args.host, port=args.port)
    try:
        server.start()
    except KeyboardInterrupt:
        server.stop()

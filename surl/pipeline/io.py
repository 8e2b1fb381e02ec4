"""HTTP Input/Output operations."""

import logging
import socket
import time
import urllib.parse
from email.utils import formatdate
from http import HTTPStatus
from typing import Callable, Optional, Tuple

from surl.bootstrap.config import HEADER_DELIMITER, MAX_BODY_BYTES, MAX_HEADER_BYTES
from surl.domain.correlation_id import CorrelationLoggerAdapter
from surl.domain.http_types import HttpRequest, ResponseHeaders, should_close

IO_LOGGER = CorrelationLoggerAdapter(logging.getLogger("surl.io"), {})

CRLF = b"\r\n"
RECV_SIZE = 4096
IDLE_POLL_SECONDS = 0.5


class RequestEntityTooLarge(Exception):
    """Raised when a request body exceeds configured limits."""


class RequestHeaderFieldsTooLarge(Exception):
    """Raised when the request head exceeds configured limits."""


class ContentLengthExceeded(Exception):
    """Raised when a body write goes past the declared Content-Length."""


def _recv_more(client_socket: socket.socket) -> bytes:
    chunk = client_socket.recv(RECV_SIZE)
    if not chunk:
        raise ConnectionError("Client closed connection mid-request")
    return chunk


def wait_for_request_start(
    client_socket: socket.socket,
    should_stop: Callable[[], bool],
    idle_timeout: float,
) -> bytes:
    """Wait for the first bytes of the next request on an idle connection.

    Returns ``b""`` when the client closes, the idle timeout elapses, or
    ``should_stop`` reports that the server is shutting down.
    """
    deadline = time.monotonic() + idle_timeout
    try:
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return b""
            client_socket.settimeout(min(IDLE_POLL_SECONDS, remaining))
            try:
                return client_socket.recv(RECV_SIZE)
            except socket.timeout:
                if should_stop():
                    return b""
    finally:
        client_socket.settimeout(idle_timeout)


def parse_request_line(request_line: str) -> Tuple[str, str, str]:
    """Split the request line into method, target and protocol version."""
    parts = request_line.split(" ")
    if len(parts) != 3 or not all(parts):
        raise ValueError("Invalid request line")
    method, target, version = parts
    if not version.startswith("HTTP/1."):
        raise ValueError("Unsupported protocol version")
    return method, target, version


def parse_headers(lines: list[str]) -> dict[str, str]:
    """Convert raw header lines into a lowercase-keyed dictionary."""
    parsed: dict[str, str] = {}
    for line in lines:
        name, separator, value = line.partition(":")
        name = name.strip().lower()
        if not separator or not name:
            raise ValueError("Malformed header line")
        value = value.strip()
        if name in parsed:
            parsed[name] = f"{parsed[name]}, {value}"
        else:
            parsed[name] = value
    return parsed


def request_path(target: str) -> str:
    """Return the decoded path component of a request target."""
    return urllib.parse.unquote(urllib.parse.urlsplit(target).path)


def determine_content_length(headers: dict[str, str]) -> int:
    """Validate and return the declared Content-Length for the request."""
    header_value = headers.get("content-length")
    if header_value is None:
        return 0
    try:
        content_length = int(header_value)
    except ValueError as exc:
        raise ValueError("Invalid Content-Length") from exc
    if content_length < 0:
        raise ValueError("Negative Content-Length")
    if content_length > MAX_BODY_BYTES:
        raise RequestEntityTooLarge
    return content_length


def _read_line(client_socket: socket.socket, data: bytes) -> Tuple[bytes, bytes]:
    while CRLF not in data:
        data += _recv_more(client_socket)
    line, data = data.split(CRLF, 1)
    return line, data


def read_chunked_body(
    client_socket: socket.socket, data: bytes
) -> Tuple[bytes, bytes, bytes]:
    """Decode a chunked body; return ``(body, raw_bytes, leftover)``."""
    chunks: list[bytes] = []
    raw = b""
    total = 0
    while True:
        size_line, data = _read_line(client_socket, data)
        raw += size_line + CRLF
        try:
            size = int(size_line.split(b";", 1)[0].strip(), 16)
        except ValueError as exc:
            raise ValueError("Invalid chunk size") from exc
        if size < 0:
            raise ValueError("Invalid chunk size")
        if size == 0:
            while True:
                trailer, data = _read_line(client_socket, data)
                raw += trailer + CRLF
                if not trailer:
                    return b"".join(chunks), raw, data
        total += size
        if total > MAX_BODY_BYTES:
            raise RequestEntityTooLarge
        while len(data) < size + len(CRLF):
            data += _recv_more(client_socket)
        if data[size : size + len(CRLF)] != CRLF:
            raise ValueError("Chunk not terminated by CRLF")
        chunks.append(data[:size])
        raw += data[: size + len(CRLF)]
        data = data[size + len(CRLF) :]


def receive_request(
    client_socket: socket.socket, buffer: bytes
) -> Tuple[Optional[HttpRequest], bytes]:
    """Read bytes from the socket until a complete request is available.

    Returns ``(None, b"")`` when the client closes before sending a
    request head.
    """
    buffer = buffer.lstrip(CRLF)
    while HEADER_DELIMITER not in buffer:
        if len(buffer) > MAX_HEADER_BYTES:
            raise RequestHeaderFieldsTooLarge
        chunk = client_socket.recv(RECV_SIZE)
        if not chunk:
            if buffer:
                raise ConnectionError("Client closed connection mid-request")
            return None, b""
        buffer = (buffer + chunk).lstrip(CRLF)

    header_block, remainder = buffer.split(HEADER_DELIMITER, 1)
    if len(header_block) > MAX_HEADER_BYTES:
        raise RequestHeaderFieldsTooLarge
    header_lines = header_block.decode("iso-8859-1").split("\r\n")
    method, target, version = parse_request_line(header_lines[0])
    headers = parse_headers(header_lines[1:])

    chunked = "chunked" in headers.get("transfer-encoding", "").lower()
    content_length = 0 if chunked else determine_content_length(headers)
    if (
        headers.get("expect", "").lower() == "100-continue"
        and (chunked or content_length)
        and not remainder
    ):
        client_socket.sendall(b"HTTP/1.1 100 Continue\r\n\r\n")

    if chunked:
        body, raw_body, leftover = read_chunked_body(client_socket, remainder)
    else:
        while len(remainder) < content_length:
            remainder += _recv_more(client_socket)
        body = remainder[:content_length]
        raw_body = body
        leftover = remainder[content_length:]

    request = HttpRequest(
        method=method,
        target=target,
        path=request_path(target),
        version=version,
        headers=headers,
        body=body,
        raw_head=header_block + HEADER_DELIMITER,
        raw_body=raw_body,
    )
    IO_LOGGER.debug(
        "Parsed request", extra={"method": method, "route": request.path}
    )
    return request, leftover


def reason_phrase(status: int) -> str:
    """Return the standard reason phrase for ``status`` or an empty string."""
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ""


def body_allowed_for_status(status: int) -> bool:
    """Return False for statuses that must not carry a body."""
    return not (100 <= status < 200 or status in (204, 304))


def _sanitize(value: str) -> str:
    return value.replace("\r", " ").replace("\n", " ")


def declared_length(headers: ResponseHeaders) -> Optional[int]:
    """Return the Content-Length in ``headers``, or None if absent or invalid."""
    value = headers.get("Content-Length")
    if value is None:
        return None
    try:
        length = int(value.strip())
    except ValueError:
        return None
    return length if length >= 0 else None


class ResponseWriter:
    """Streams a response to a socket while observing what was sent.

    Headers accumulate in ``headers`` until the first ``write_header`` (or
    the first ``write``, which implies status 200). The status of that
    first call and the total number of body bytes written are kept in
    ``status`` and ``bytes_written`` for the access log.

    A declared Content-Length caps the body: bytes past it are not sent and
    the connection is closed afterwards, as it is when fewer bytes arrive.
    """

    def __init__(
        self, client_socket: socket.socket, request: Optional[HttpRequest] = None
    ) -> None:
        self.headers = ResponseHeaders()
        self.status: Optional[int] = None
        self.bytes_written = 0
        self.close_connection = request is None or should_close(request)
        self._socket = client_socket
        self._request = request
        self._body_allowed = True
        self.declared_length: Optional[int] = None

    @property
    def headers_sent(self) -> bool:
        """Return True once the status line and headers are on the wire."""
        return self.status is not None

    def write_header(self, status: int) -> None:
        """Send the status line and headers; later calls are ignored."""
        if self.status is not None:
            IO_LOGGER.warning(
                "Superfluous write_header call",
                extra={"event": "superfluous_write_header", "status_code": status},
            )
            return
        self.status = status
        head_only = self._request is not None and self._request.method == "HEAD"
        self._body_allowed = body_allowed_for_status(status) and not head_only

        if not self.headers.has("Date"):
            self.headers.add("Date", formatdate(usegmt=True))

        if self._body_allowed:
            self.declared_length = declared_length(self.headers)
        delimited = self.declared_length is not None or not self._body_allowed
        connection = (self.headers.get("Connection") or "").lower()
        if connection == "close" or not delimited:
            self.close_connection = True
        if self.close_connection and connection != "close":
            self.headers.add("Connection", "close")
        elif (
            not self.close_connection
            and self._request is not None
            and self._request.version == "HTTP/1.0"
            and not connection
        ):
            self.headers.add("Connection", "keep-alive")

        lines = [f"HTTP/1.1 {status} {reason_phrase(status)}".rstrip()]
        lines.extend(
            f"{name}: {_sanitize(value)}" for name, value in self.headers.items()
        )
        header_block = "\r\n".join(lines).encode("iso-8859-1", "replace") + b"\r\n\r\n"
        self._socket.sendall(header_block)
        IO_LOGGER.debug(
            "Sent response head", extra={"status_code": status}
        )

    def write(self, data: bytes) -> int:
        """Send body bytes, writing an implicit 200 head first if needed."""
        if self.status is None:
            self.write_header(200)
        if not data or not self._body_allowed:
            return 0
        if self.declared_length is not None:
            remaining = self.declared_length - self.bytes_written
            if len(data) > remaining:
                self.close_connection = True
                if remaining > 0:
                    self._socket.sendall(data[:remaining])
                    self.bytes_written += remaining
                raise ContentLengthExceeded(
                    f"body exceeds declared Content-Length {self.declared_length}"
                )
        self._socket.sendall(data)
        self.bytes_written += len(data)
        return len(data)

    def finish(self) -> bool:
        """Close after a body shorter than its Content-Length; return True if so."""
        if (
            self.declared_length is not None
            and self.bytes_written < self.declared_length
        ):
            self.close_connection = True
            return True
        return False

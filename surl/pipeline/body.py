"""Response body resolution: literal text, a single file, or a directory tree."""

import logging
import mimetypes
import os
import stat
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from surl.bootstrap.config import BodyKind, ServerConfig
from surl.domain.correlation_id import CorrelationLoggerAdapter
from surl.domain.errors import ForbiddenPath, RequestAborted
from surl.domain.http_types import HttpRequest, RequestOutcome
from surl.domain.sandbox import resolve_sandbox_path
from surl.pipeline.io import (
    ContentLengthExceeded,
    ResponseWriter,
    body_allowed_for_status,
)

BODY_LOGGER = CorrelationLoggerAdapter(logging.getLogger("surl.pipeline.body"), {})

CHUNK_SIZE = 65536
LITERAL_CONTENT_TYPE = "text/plain; charset=utf-8"


def stream_file(file_handle: BinaryIO, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield file contents in fixed-size chunks for streaming responses."""
    while True:
        chunk = file_handle.read(chunk_size)
        if not chunk:
            break
        if BODY_LOGGER.logger.isEnabledFor(logging.DEBUG):
            BODY_LOGGER.debug(
                "File chunk read",
                extra={"event": "file_chunk_read", "bytes_out": len(chunk)},
            )
        yield chunk


def _content_type_for_path(filepath: Path) -> str:
    mime_type, _ = mimetypes.guess_type(filepath.as_posix())
    return mime_type or "application/octet-stream"


def _set_default(writer: ResponseWriter, name: str, value: str) -> None:
    if not writer.headers.has(name):
        writer.headers.add(name, value)


def _abort(
    message: str, event: str, error: Exception, path: Optional[Path] = None
) -> RequestAborted:
    extra = {"event": event, "error_type": type(error).__name__, "error": str(error)}
    if path is not None:
        extra["path"] = path.as_posix()
    BODY_LOGGER.error(message, extra=extra)
    return RequestAborted(message)


def _log_length_mismatch(writer: ResponseWriter, message: str, event: str) -> None:
    BODY_LOGGER.warning(
        message,
        extra={
            "event": event,
            "limit": writer.declared_length,
            "bytes_out": writer.bytes_written,
        },
    )


def write_empty(writer: ResponseWriter, status: int) -> None:
    """Send headers only, declaring a zero length body where one is allowed."""
    if body_allowed_for_status(status):
        _set_default(writer, "Content-Length", "0")
    writer.write_header(status)


def write_literal(writer: ResponseWriter, status: int, text: str) -> None:
    """Send ``text`` verbatim as the body."""
    payload = text.encode("utf-8")
    if body_allowed_for_status(status):
        _set_default(writer, "Content-Type", LITERAL_CONTENT_TYPE)
        _set_default(writer, "Content-Length", str(len(payload)))
    writer.write_header(status)
    try:
        writer.write(payload)
    except ContentLengthExceeded:
        _log_length_mismatch(
            writer,
            "Response body exceeds declared Content-Length",
            "content_length_exceeded",
        )
    except OSError as error:
        raise _abort(
            "Unable to write response body", "body_write_failed", error
        ) from error


def write_file(writer: ResponseWriter, status: int, filepath: Path) -> None:
    """Stream a regular file as the body.

    Content-Length is derived from the file size before the status line
    goes out, unless the configuration already supplied one.
    """
    try:
        file_stat = os.stat(filepath)
    except OSError as error:
        raise _abort("Unable to stat file", "file_stat_failed", error, filepath) from error
    if not stat.S_ISREG(file_stat.st_mode):
        BODY_LOGGER.error(
            "Not a regular file",
            extra={"event": "file_not_regular", "path": filepath.as_posix()},
        )
        raise RequestAborted(f"not a regular file: {filepath}")

    try:
        file_handle = open(filepath, "rb")  # pylint: disable=consider-using-with
    except OSError as error:
        raise _abort("Unable to open file", "file_open_failed", error, filepath) from error

    with file_handle:
        if body_allowed_for_status(status):
            _set_default(writer, "Content-Length", str(file_stat.st_size))
            _set_default(writer, "Content-Type", _content_type_for_path(filepath))
        writer.write_header(status)
        try:
            for chunk in stream_file(file_handle):
                writer.write(chunk)
        except ContentLengthExceeded:
            _log_length_mismatch(
                writer,
                "Response body exceeds declared Content-Length",
                "content_length_exceeded",
            )
        except OSError as error:
            raise _abort(
                "Unable to write response body", "body_write_failed", error, filepath
            ) from error

    if BODY_LOGGER.logger.isEnabledFor(logging.DEBUG):
        BODY_LOGGER.debug(
            "File served",
            extra={
                "event": "file_served",
                "path": filepath.as_posix(),
                "bytes_out": writer.bytes_written,
            },
        )


def resolve_directory_file(directory: str, request: HttpRequest) -> Path:
    """Map the request path into ``directory``, aborting on traversal."""
    try:
        return resolve_sandbox_path(directory, request.path)
    except ForbiddenPath as error:
        BODY_LOGGER.warning(
            "Forbidden path access blocked",
            extra={
                "event": "forbidden_path",
                "route": request.path,
                "method": request.method,
            },
        )
        raise RequestAborted(f"path escapes served directory: {request.path!r}") from error


def write_body(
    writer: ResponseWriter,
    request: HttpRequest,
    config: ServerConfig,
    outcome: RequestOutcome,
) -> None:
    """Write the configured status and body for ``request``."""
    body = config.body
    if body.kind is BodyKind.NONE:
        write_empty(writer, config.status)
    elif body.kind is BodyKind.LITERAL:
        write_literal(writer, config.status, body.value)
    elif body.kind is BodyKind.FILE:
        write_file(writer, config.status, Path(body.value))
    else:
        filepath = resolve_directory_file(body.value, request)
        outcome.served_file = filepath.as_posix()
        write_file(writer, config.status, filepath)

    if writer.finish():
        _log_length_mismatch(
            writer,
            "Response body shorter than declared Content-Length",
            "content_length_short",
        )

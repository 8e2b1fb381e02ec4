"""Worker thread logic for handling individual client connections."""

import logging
import socket
import ssl
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from surl.bootstrap.config import MAX_BODY_BYTES, MAX_HEADER_BYTES
from surl.domain.correlation_id import (
    CorrelationLoggerAdapter,
    clear_correlation_id,
    generate_correlation_id,
    set_correlation_id,
)
from surl.domain.errors import RequestAborted
from surl.domain.http_types import HttpRequest
from surl.domain.response_builders import (
    bad_request_response,
    entity_too_large_response,
    header_fields_too_large_response,
)
from surl.pipeline.handler import handle_request
from surl.pipeline.io import (
    RequestEntityTooLarge,
    RequestHeaderFieldsTooLarge,
    ResponseWriter,
    receive_request,
    wait_for_request_start,
)
from surl.transport.context import WorkerContext

WORKER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("surl.transport.worker"), {})


def _reject(
    client_socket: socket.socket,
    respond: Callable[[ResponseWriter], None],
    message: str,
    event: str,
    client: str,
    **extra,
) -> None:
    WORKER_LOGGER.warning(message, extra={"event": event, "client": client, **extra})
    respond(ResponseWriter(client_socket))


def _read_request_with_validation(
    client_socket: socket.socket, buffer: bytes, client: str
) -> tuple[Optional[HttpRequest], bytes]:
    """Read a request, answering malformed or oversized ones directly.

    A ``None`` request means the connection should be closed.
    """
    try:
        return receive_request(client_socket, buffer)
    except RequestEntityTooLarge:
        _reject(
            client_socket,
            entity_too_large_response,
            "Request body size exceeded limit",
            "body_size_exceeded",
            client,
            limit=MAX_BODY_BYTES,
        )
    except RequestHeaderFieldsTooLarge:
        _reject(
            client_socket,
            header_fields_too_large_response,
            "Request header size exceeded limit",
            "header_size_exceeded",
            client,
            limit=MAX_HEADER_BYTES,
        )
    except ValueError as error:
        _reject(
            client_socket,
            bad_request_response,
            "Malformed request received",
            "malformed_request",
            client,
            error=str(error),
        )
    return None, b""


def _prepare_socket(context: WorkerContext, client_socket: socket.socket) -> None:
    client_socket.settimeout(context.config.socket_timeout)
    if isinstance(client_socket, ssl.SSLSocket):
        client_socket.do_handshake()


@dataclass
class _WorkerResources:
    thread: threading.Thread
    client_socket: socket.socket
    client: str


def _cleanup_worker(context: WorkerContext, resources: _WorkerResources) -> None:
    context.lifecycle.cleanup_worker(resources.thread)

    try:
        resources.client_socket.shutdown(socket.SHUT_WR)
    except OSError:
        pass
    resources.client_socket.close()

    WORKER_LOGGER.debug(
        "Socket closed",
        extra={"event": "socket_closed", "client": resources.client},
    )
    clear_correlation_id()


def _serve_connection(
    client_socket: socket.socket, client: str, context: WorkerContext
) -> None:
    lifecycle = context.lifecycle
    buffer = b""
    while not lifecycle.is_draining():
        set_correlation_id(generate_correlation_id())

        if not buffer:
            buffer = wait_for_request_start(
                client_socket, lifecycle.should_stop, context.config.socket_timeout
            )
            if not buffer:
                break

        WORKER_LOGGER.debug(
            "Request processing started",
            extra={"event": "request_started", "client": client},
        )
        request, buffer = _read_request_with_validation(client_socket, buffer, client)
        if request is None:
            break

        writer = ResponseWriter(client_socket, request)
        try:
            handle_request(request, writer, context, client)
        except RequestAborted:
            break

        WORKER_LOGGER.debug(
            "Request processing complete",
            extra={"event": "request_complete", "client": client},
        )
        clear_correlation_id()
        if writer.close_connection:
            break


def handle_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Process requests on a client socket until the connection is closed."""
    client = f"{client_address[0]}:{client_address[1]}"
    current_thread = threading.current_thread()
    context.lifecycle.register_worker(current_thread, client_socket)
    resources = _WorkerResources(current_thread, client_socket, client)

    try:
        _prepare_socket(context, client_socket)
        _serve_connection(client_socket, client, context)
    except (
        ConnectionError,
        TimeoutError,
        OSError,
        UnicodeDecodeError,
    ) as error:
        WORKER_LOGGER.error(
            "Error handling client connection",
            extra={
                "event": "connection_error",
                "client": client,
                "error_type": type(error).__name__,
                "errno": getattr(error, "errno", None),
            },
        )
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Unexpected error in worker",
            extra={
                "event": "worker_error",
                "client": client,
                "error_type": type(error).__name__,
                "error": str(error),
            },
            exc_info=True,
        )
    finally:
        _cleanup_worker(context, resources)

"""Listening loop and the start/stop sequence around it."""

import logging
import socket
import threading

from surl.bootstrap.config import SERVER_NAME, ServerConfig
from surl.bootstrap.socket_factory import ACCEPT_POLL_SECONDS, create_server_socket
from surl.domain.correlation_id import CorrelationLoggerAdapter
from surl.domain.errors import LifecycleError
from surl.lifecycle.state import LifecycleState, ServerLifecycle
from surl.pipeline.accounting import RequestAccountant, RequestCounter
from surl.transport.context import WorkerContext
from surl.transport.worker import handle_client

ACCEPT_LOGGER = CorrelationLoggerAdapter(logging.getLogger("surl.transport.accept"), {})

LISTENER_FAILED = "listener_failed"
COUNT_REACHED = "count_reached"


def _handle_accepted_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    handler_context: WorkerContext,
) -> None:
    """Spawn a worker thread for a newly accepted client connection."""
    if ACCEPT_LOGGER.logger.isEnabledFor(logging.DEBUG):
        ACCEPT_LOGGER.debug(
            "Client connection accepted",
            extra={
                "event": "client_accepted",
                "client": f"{client_address[0]}:{client_address[1]}",
            },
        )

    thread = threading.Thread(
        target=handle_client,
        args=(client_socket, client_address, handler_context),
        daemon=True,
    )
    thread.start()


def accept_connections(server_socket: socket.socket, context: WorkerContext) -> None:
    """Accept connections until the lifecycle says stop, then close the socket."""
    lifecycle = context.lifecycle
    try:
        while True:
            try:
                client_socket, client_address = server_socket.accept()
            except socket.timeout:
                if lifecycle.should_stop():
                    break
                continue
            except OSError as error:
                if lifecycle.should_stop():
                    break
                ACCEPT_LOGGER.error(
                    "Socket accept failed",
                    extra={"event": "accept_error", "error_type": type(error).__name__},
                )
                continue

            if lifecycle.should_stop():
                client_socket.close()
                break

            _handle_accepted_client(client_socket, client_address[:2], context)
    except Exception as error:  # pylint: disable=broad-except
        ACCEPT_LOGGER.critical(
            "Listener failed",
            extra={
                "event": LISTENER_FAILED,
                "error_type": type(error).__name__,
                "error": str(error),
            },
            exc_info=True,
        )
        lifecycle.shutdown_signal.request_shutdown(LISTENER_FAILED)
    finally:
        server_socket.close()


def _describe_count(count: int) -> str:
    if count == 0:
        return "(run for ever)"
    return f"(run for {count} requests)"


def run_server(config: ServerConfig, lifecycle: ServerLifecycle) -> int:
    """Serve until the shutdown signal fires; return the number of responses.

    The calling thread waits on the shutdown signal while a listener
    thread accepts connections. Raises ``LifecycleError`` when the socket
    cannot be opened, the listener dies, or in-flight requests outlive
    the grace period.
    """
    lifecycle.transition(LifecycleState.STARTING)
    server_socket = create_server_socket(config)

    shutdown_signal = lifecycle.shutdown_signal
    accountant = RequestAccountant(RequestCounter(), config.count, shutdown_signal)
    context = WorkerContext(config=config, accountant=accountant, lifecycle=lifecycle)
    listener = threading.Thread(
        target=accept_connections,
        args=(server_socket, context),
        name="surl-listener",
        daemon=True,
    )

    lifecycle.transition(LifecycleState.LISTENING)
    ACCEPT_LOGGER.info(
        f"Starting {SERVER_NAME} on {config.address} {_describe_count(config.count)}",
        extra={
            "event": "server_listening",
            "host": config.host,
            "port": config.port,
            "tls": config.tls,
            "count": config.count,
            "body_kind": config.body.kind.value,
        },
    )
    listener.start()

    while not shutdown_signal.wait(ACCEPT_POLL_SECONDS):
        pass

    served = accountant.counter.value
    reason = shutdown_signal.reason
    if reason != COUNT_REACHED:
        ACCEPT_LOGGER.info(
            f"Shutting down after {served} responses",
            extra={"event": "shutdown_requested", "reason": reason, "count": served},
        )
    lifecycle.begin_draining()
    listener.join()

    ACCEPT_LOGGER.info(
        "Waiting for active connections to complete",
        extra={
            "event": "shutdown_waiting",
            "grace_seconds": config.shutdown_grace_seconds,
        },
    )
    drained = lifecycle.wait_for_workers(config.shutdown_grace_seconds)
    if not drained:
        lifecycle.force_close()
    lifecycle.transition(LifecycleState.STOPPED)

    if not drained:
        raise LifecycleError(
            f"graceful shutdown exceeded {config.shutdown_grace_seconds}s"
        )
    if reason == LISTENER_FAILED:
        raise LifecycleError("listener stopped unexpectedly")

    ACCEPT_LOGGER.info(
        "Server shutdown complete",
        extra={"event": "server_stopped", "count": accountant.counter.value},
    )
    return accountant.counter.value

"""Socket creation and TLS configuration."""

import logging
import socket
import ssl

from surl.bootstrap.config import ServerConfig
from surl.domain.correlation_id import CorrelationLoggerAdapter
from surl.domain.errors import LifecycleError

SOCKET_LOGGER = CorrelationLoggerAdapter(logging.getLogger("surl.socket"), {})

ACCEPT_POLL_SECONDS = 0.5


def create_tls_context(cert: str, key: str) -> ssl.SSLContext:
    """Load the certificate chain into a server-side TLS context."""
    tls_context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    tls_context.load_cert_chain(cert, key)
    return tls_context


def create_server_socket(config: ServerConfig) -> socket.socket:
    """Bind the listening socket, wrapping it in TLS when configured.

    Accepted TLS sockets do not handshake on accept; the worker thread
    performs the handshake so a slow client cannot stall the accept loop.
    """
    if bool(config.cert) != bool(config.key):
        SOCKET_LOGGER.warning(
            "TLS needs both --cert and --key, serving plaintext",
            extra={"event": "tls_incomplete"},
        )

    tls_context = None
    if config.tls:
        try:
            tls_context = create_tls_context(config.cert, config.key)
        except OSError as error:
            SOCKET_LOGGER.critical(
                "Failed to load TLS certificates",
                extra={"event": "tls_load_failed", "error": str(error)},
            )
            raise LifecycleError(f"unable to load TLS credentials: {error}") from error

    try:
        server_socket = socket.create_server((config.host, config.port))
    except (OSError, OverflowError) as error:
        SOCKET_LOGGER.critical(
            "Failed to bind listening socket",
            extra={
                "event": "bind_failed",
                "host": config.host,
                "port": config.port,
                "error": str(error),
            },
        )
        raise LifecycleError(f"unable to listen on {config.address}: {error}") from error

    server_socket.settimeout(ACCEPT_POLL_SECONDS)
    if tls_context is not None:
        server_socket = tls_context.wrap_socket(
            server_socket, server_side=True, do_handshake_on_connect=False
        )
    return server_socket

"""Configurable HTTP response stub server."""

import logging
import signal
import sys
from typing import Optional

from surl.bootstrap.config import build_config, build_parser, parse_cli_args
from surl.bootstrap.logging_setup import configure_logging
from surl.domain.correlation_id import CorrelationLoggerAdapter
from surl.domain.errors import ConfigError, LifecycleError
from surl.lifecycle.state import ServerLifecycle, ShutdownSignal
from surl.transport.accept_loop import run_server

SERVER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("surl.server"), {})


def install_signal_handlers(shutdown_signal: ShutdownSignal) -> None:
    """Route SIGINT and SIGTERM into the shutdown signal."""

    def shutdown_handler(signum: int, _frame) -> None:
        name = signal.Signals(signum).name
        SERVER_LOGGER.info(
            "Received shutdown signal", extra={"event": "signal_received", "signal": name}
        )
        shutdown_signal.request_shutdown(f"signal:{name}")

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)


def main(argv: Optional[list[str]] = None) -> int:
    """Parse the command line, serve, and return the process exit status."""
    args = parse_cli_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.log_level, args.log_destination, args.log_format == "json")

    try:
        config = build_config(args)
    except ConfigError as error:
        print(f"surl: {error}", file=sys.stderr)
        build_parser().print_usage(sys.stderr)
        return 1

    lifecycle = ServerLifecycle()
    install_signal_handlers(lifecycle.shutdown_signal)

    SERVER_LOGGER.info(
        "Starting stub server",
        extra={
            "event": "server_starting",
            "host": config.host,
            "port": config.port,
            "status_code": config.status,
            "body_kind": config.body.kind.value,
            "count": config.count,
            "tls": config.tls,
            "socket_timeout": config.socket_timeout,
            "log_destination": args.log_destination,
            "log_level": args.log_level,
        },
    )
    try:
        run_server(config, lifecycle)
    except LifecycleError as error:
        SERVER_LOGGER.critical(
            "Fatal server error",
            extra={"event": "server_failed", "error": str(error)},
        )
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

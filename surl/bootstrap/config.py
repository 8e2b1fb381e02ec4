"""Server configuration and CLI argument parsing."""

import argparse
import enum
import os
import sys
from dataclasses import dataclass
from typing import NoReturn, Optional

from surl.domain.address import validate_address
from surl.domain.errors import ConfigError

VERSION = "0.0.1"
SERVER_NAME = f"surl/{VERSION}"

DEFAULT_STATUS = 200
MAX_STATUS = 599
DEFAULT_SOCKET_TIMEOUT = 60
SHUTDOWN_GRACE_SECONDS = 10

MAX_HEADER_BYTES = 1024 * 1024
MAX_BODY_BYTES = 5 * 1024 * 1024
HEADER_DELIMITER = b"\r\n\r\n"


class BodyKind(enum.Enum):
    """Where the response body comes from."""

    NONE = "none"
    LITERAL = "literal"
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class BodySource:
    """Response body source, classified once at startup."""

    kind: BodyKind
    value: str = ""


@dataclass(frozen=True)
class ServerConfig:
    """Immutable stub configuration built from the command line."""

    # pylint: disable=too-many-instance-attributes
    host: str
    port: int
    status: int = DEFAULT_STATUS
    headers: tuple[str, ...] = ()
    body: BodySource = BodySource(BodyKind.NONE)
    count: int = 0
    cert: Optional[str] = None
    key: Optional[str] = None
    credentials: Optional[str] = None
    dump: bool = False
    dump_body: bool = False
    socket_timeout: float = DEFAULT_SOCKET_TIMEOUT
    shutdown_grace_seconds: float = SHUTDOWN_GRACE_SECONDS

    @property
    def tls(self) -> bool:
        """Return True when both TLS files are configured."""
        return bool(self.cert and self.key)

    @property
    def dump_enabled(self) -> bool:
        """Return True when any form of request dumping is requested."""
        return self.dump or self.dump_body

    @property
    def address(self) -> str:
        """Return the listen address in ``host:port`` form."""
        return f"{self.host}:{self.port}"


class _ArgumentParser(argparse.ArgumentParser):
    """Argument parser that exits with status 1 on usage errors."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {value}")
    return number


def _status_code(value: str) -> int:
    number = _non_negative_int(value)
    if number > MAX_STATUS:
        raise argparse.ArgumentTypeError(f"status code out of range: {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Return the command line parser."""
    parser = _ArgumentParser(
        prog="surl",
        usage="%(prog)s [options...] <addr>",
        description="Answer every HTTP request with a configured response.",
    )
    parser.add_argument("addr", help="listen address, [host]:port")
    parser.add_argument(
        "--version", action="version", version=f"surl {VERSION}", help="show version"
    )
    parser.add_argument(
        "--dump", action="store_true", help="dump client request"
    )
    parser.add_argument(
        "--dump-body", action="store_true", help="dump client request body"
    )
    parser.add_argument(
        "-s",
        "--status",
        type=_status_code,
        default=DEFAULT_STATUS,
        help="return status code",
    )
    parser.add_argument(
        "-H",
        "--header",
        action="append",
        default=[],
        dest="headers",
        metavar="HEADER",
        help="HTTP response header 'Name: Value' (repeatable)",
    )
    parser.add_argument(
        "-d",
        "--data",
        default="",
        help="HTTP response body, or @path for a file or directory",
    )
    parser.add_argument(
        "-c",
        "--count",
        type=_non_negative_int,
        default=0,
        help="exit after number of requests (0 keep running)",
    )
    parser.add_argument("--cert", help="TLS certificate file")
    parser.add_argument("--key", help="TLS private key file")
    parser.add_argument(
        "-u", "--user", help="user credentials '<user:password>' for Basic Auth"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default="stdout",
        help="stdout or a file path",
    )
    parser.add_argument(
        "--log-format",
        default="json",
        choices=["json", "text"],
        type=str.lower,
    )
    parser.add_argument(
        "--socket-timeout",
        type=float,
        default=DEFAULT_SOCKET_TIMEOUT,
        help="Idle and read timeout in seconds per connection",
    )
    return parser


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for server configuration."""
    return build_parser().parse_args(argv)


def classify_body(data: str) -> BodySource:
    """Classify the ``--data`` value, checking any referenced path exists."""
    if not data:
        return BodySource(BodyKind.NONE)
    if not data.startswith("@"):
        return BodySource(BodyKind.LITERAL, data)

    path = data[1:]
    if not os.path.exists(path):
        raise ConfigError(f"body file not found: {path!r}")
    if os.path.isdir(path):
        return BodySource(BodyKind.DIRECTORY, os.path.abspath(path))
    if os.path.isfile(path):
        return BodySource(BodyKind.FILE, path)
    raise ConfigError(f"body path is neither a file nor a directory: {path!r}")


def build_config(args: argparse.Namespace) -> ServerConfig:
    """Validate parsed arguments and return the immutable configuration."""
    host, port = validate_address(args.addr)
    if 0 < args.status < 100:
        raise ConfigError(f"status code cannot be sent on the wire: {args.status}")
    status = args.status or DEFAULT_STATUS
    return ServerConfig(
        host=host,
        port=port,
        status=status,
        headers=tuple(args.headers),
        body=classify_body(args.data),
        count=args.count,
        cert=args.cert or None,
        key=args.key or None,
        credentials=args.user or None,
        dump=args.dump,
        dump_body=args.dump_body,
        socket_timeout=args.socket_timeout,
    )

"""Listen address validation."""

import re

from surl.domain.errors import InvalidAddressFormat, InvalidAddressPort

_PORT_PATTERN = re.compile(r"[+-]?[0-9]+")


def validate_address(value: str) -> tuple[str, int]:
    """Split a ``[host]:port`` string into host and integer port.

    The host may be empty, meaning all interfaces. The port is not range
    checked; binding reports out-of-range values.
    """
    host, separator, port = value.partition(":")
    if not separator:
        raise InvalidAddressFormat(f"invalid format ([host]:<port>): {value!r}")
    if not _PORT_PATTERN.fullmatch(port):
        raise InvalidAddressPort(f"invalid port: {port!r}")
    return host, int(port)

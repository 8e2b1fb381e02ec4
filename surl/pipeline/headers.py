"""Configured response header handling."""

import logging
from typing import Iterable

from surl.domain.correlation_id import CorrelationLoggerAdapter
from surl.domain.errors import InvalidHeader
from surl.domain.http_types import ResponseHeaders

HEADER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("surl.pipeline.headers"), {}
)


def split_raw_header(raw_header: str) -> tuple[str, str]:
    """Split ``Name:Value`` on the first colon; the value is kept verbatim."""
    name, separator, value = raw_header.partition(":")
    if not separator:
        raise InvalidHeader(f"invalid http header: {raw_header!r}")
    return name, value


def apply_headers(
    headers: ResponseHeaders, raw_headers: Iterable[str], server_name: str
) -> None:
    """Add every valid configured header, then a default Server header."""
    for raw_header in raw_headers:
        try:
            name, value = split_raw_header(raw_header)
            if not name.strip():
                raise InvalidHeader(f"empty header name: {raw_header!r}")
        except InvalidHeader as error:
            HEADER_LOGGER.warning(
                "Unable to add response header",
                extra={"event": "header_invalid", "header": raw_header, "error": str(error)},
            )
            continue
        headers.add(name.strip(), value.strip())

    if not headers.has("Server"):
        headers.add("Server", server_name)

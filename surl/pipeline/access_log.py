"""Access logging around the authenticated handling of a request."""

import logging
import time
from contextlib import contextmanager
from typing import Iterator

from surl.domain.correlation_id import CorrelationLoggerAdapter
from surl.domain.hexdump import indented_hexdump
from surl.domain.http_types import HttpRequest, RequestOutcome
from surl.pipeline.io import ResponseWriter

ACCESS_LOGGER = CorrelationLoggerAdapter(logging.getLogger("surl.access"), {})


def capture_dump(request: HttpRequest, include_body: bool) -> bytes:
    """Return the raw request bytes to dump, with or without the body."""
    if include_body:
        return request.raw_head + request.raw_body
    return request.raw_head


def format_access_line(
    request: HttpRequest,
    writer: ResponseWriter,
    client: str,
    outcome: RequestOutcome,
    duration_ms: float,
) -> str:
    """Render the access log line, with the request dump block appended."""
    route = request.target
    if outcome.served_file:
        route = f"{route} [{outcome.served_file}]"
    status = writer.status if writer.status is not None else "-"
    line = (
        f'{client} "{request.method} {route} {request.version}" '
        f"{status} {writer.bytes_written} "
        f'"{request.headers.get("referer", "-")}" '
        f'"{request.headers.get("user-agent", "-")}" '
        f"{duration_ms:.3f}ms"
    )
    if outcome.dump is not None:
        line = f"{line}\n{indented_hexdump(outcome.dump)}"
    return line


def log_access(
    request: HttpRequest,
    writer: ResponseWriter,
    client: str,
    outcome: RequestOutcome,
    duration_ms: float,
) -> None:
    """Emit one access record describing what was sent for ``request``."""
    extra = {
        "event": "request_served",
        "client": client,
        "method": request.method,
        "route": request.target,
        "protocol": request.version,
        "status_code": writer.status,
        "bytes_out": writer.bytes_written,
        "referer": request.headers.get("referer", ""),
        "user_agent": request.headers.get("user-agent", ""),
        "duration_ms": round(duration_ms, 3),
    }
    if outcome.served_file:
        extra["served_file"] = outcome.served_file
    ACCESS_LOGGER.info(
        format_access_line(request, writer, client, outcome, duration_ms), extra=extra
    )


@contextmanager
def access_logged(
    request: HttpRequest,
    writer: ResponseWriter,
    client: str,
    dump: bool = False,
    include_body: bool = False,
) -> Iterator[RequestOutcome]:
    """Time the wrapped block and log it, even when the block raises."""
    outcome = RequestOutcome()
    if dump:
        outcome.dump = capture_dump(request, include_body)
    started = time.perf_counter()
    try:
        yield outcome
    finally:
        duration_ms = (time.perf_counter() - started) * 1000
        log_access(request, writer, client, outcome, duration_ms)

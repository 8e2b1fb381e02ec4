"""Plain-text error responses written through a ResponseWriter."""

from http import HTTPStatus

from surl.bootstrap.config import SERVER_NAME

BASIC_AUTH_CHALLENGE = 'Basic realm="Auth Required"'


def error_response(writer, status: int, message: str) -> None:
    """Reply with ``message`` as a plain-text body and the given status."""
    payload = f"{message}\n".encode()
    writer.headers.add("Content-Type", "text/plain; charset=utf-8")
    writer.headers.add("X-Content-Type-Options", "nosniff")
    writer.headers.add("Content-Length", str(len(payload)))
    if not writer.headers.has("Server"):
        writer.headers.add("Server", SERVER_NAME)
    writer.write_header(status)
    writer.write(payload)


def unauthorized_response(writer) -> None:
    """Produce a 401 carrying a Basic authentication challenge."""
    writer.headers.add("WWW-Authenticate", BASIC_AUTH_CHALLENGE)
    error_response(writer, HTTPStatus.UNAUTHORIZED.value, "Unauthorized")


def bad_request_response(writer) -> None:
    """Produce a 400 for a request that could not be parsed."""
    writer.close_connection = True
    error_response(writer, HTTPStatus.BAD_REQUEST.value, "Bad Request")


def entity_too_large_response(writer) -> None:
    """Produce a 413 that always closes the connection."""
    writer.close_connection = True
    error_response(writer, HTTPStatus.REQUEST_ENTITY_TOO_LARGE.value, "Payload Too Large")


def header_fields_too_large_response(writer) -> None:
    """Produce a 431 that always closes the connection."""
    writer.close_connection = True
    error_response(
        writer,
        HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE.value,
        "Request Header Fields Too Large",
    )

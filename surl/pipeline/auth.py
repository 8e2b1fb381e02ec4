"""HTTP Basic authentication gate."""

import base64
import binascii
import logging
from typing import Optional

from surl.domain.correlation_id import CorrelationLoggerAdapter
from surl.domain.http_types import HttpRequest
from surl.domain.response_builders import unauthorized_response

AUTH_LOGGER = CorrelationLoggerAdapter(logging.getLogger("surl.pipeline.auth"), {})


def decode_basic_credentials(authorization: str) -> Optional[bytes]:
    """Return the decoded ``user:pass`` bytes of a Basic header, or None."""
    scheme, _, payload = authorization.partition(" ")
    if scheme.lower() != "basic" or not payload:
        return None
    try:
        return base64.b64decode(payload.strip(), validate=True)
    except (binascii.Error, ValueError):
        return None


def validate_basic_auth(request: HttpRequest, credentials: Optional[str]) -> bool:
    """Return True when no credentials are configured or the request matches.

    The comparison is a plain equality check, not a constant-time one.
    """
    if not credentials:
        return True
    decoded = decode_basic_credentials(request.headers.get("authorization", ""))
    return decoded is not None and decoded == credentials.encode("utf-8")


def enforce_basic_auth(
    request: HttpRequest, writer, credentials: Optional[str], client: str
) -> bool:
    """Reply 401 and return False when the request fails authentication."""
    if validate_basic_auth(request, credentials):
        return True
    AUTH_LOGGER.warning(
        "Basic authentication failed",
        extra={
            "event": "auth_failed",
            "client": client,
            "method": request.method,
            "route": request.path,
        },
    )
    unauthorized_response(writer)
    return False

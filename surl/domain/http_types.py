"""Shared HTTP type definitions to avoid circular imports."""

from dataclasses import dataclass, field
from typing import Iterator, Optional


@dataclass
class HttpRequest:
    """Represents a parsed HTTP request together with its raw bytes."""

    method: str
    target: str
    path: str
    version: str
    headers: dict[str, str]
    body: bytes
    raw_head: bytes = b""
    raw_body: bytes = b""


@dataclass
class RequestOutcome:
    """Side data produced while handling a request, consumed by the access log."""

    served_file: Optional[str] = None
    dump: Optional[bytes] = None


def canonical_header_name(name: str) -> str:
    """Return the canonical MIME form of a header name (``content-type`` -> ``Content-Type``)."""
    return "-".join(part[:1].upper() + part[1:].lower() for part in name.split("-"))


@dataclass
class ResponseHeaders:
    """Ordered multi-valued header collection with case-insensitive lookup."""

    _fields: list[tuple[str, str]] = field(default_factory=list)

    def add(self, name: str, value: str) -> None:
        """Append a header, keeping any existing values with the same name."""
        self._fields.append((canonical_header_name(name), value))

    def get(self, name: str) -> Optional[str]:
        """Return the first value for ``name`` or None."""
        wanted = name.lower()
        for field_name, value in self._fields:
            if field_name.lower() == wanted:
                return value
        return None

    def has(self, name: str) -> bool:
        """Return True when at least one header named ``name`` is present."""
        return self.get(name) is not None

    def items(self) -> Iterator[tuple[str, str]]:
        """Yield ``(name, value)`` pairs in insertion order."""
        return iter(list(self._fields))

    def __len__(self) -> int:
        return len(self._fields)


def should_close(request: HttpRequest) -> bool:
    """Determine whether the client asked for the connection to be closed."""
    connection = request.headers.get("connection", "").lower()
    if request.version == "HTTP/1.0":
        return connection != "keep-alive"
    return connection == "close"

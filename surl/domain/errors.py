"""Exception taxonomy shared across the stub server."""


class SurlError(Exception):
    """Base class for all stub server errors."""


class ConfigError(SurlError):
    """Raised when startup configuration is invalid."""


class InvalidAddressFormat(ConfigError):
    """Raised when a listen address lacks the ``[host]:port`` shape."""


class InvalidAddressPort(ConfigError):
    """Raised when the port part of a listen address is not an integer."""


class RequestError(SurlError):
    """Raised for failures scoped to a single request."""


class InvalidHeader(RequestError):
    """Raised when a configured raw header has no ``Name:Value`` shape."""


class ForbiddenPath(RequestError):
    """Raised when a requested path escapes the configured directory."""


class RequestAborted(RequestError):
    """Raised when a request is abandoned after a logged failure."""


class LifecycleError(SurlError):
    """Raised when the listener cannot start or stop cleanly."""

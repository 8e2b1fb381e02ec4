"""Filesystem sandbox utilities for safe path resolution."""

import os
import posixpath
import re
from pathlib import Path

from surl.domain.errors import ForbiddenPath

_REPEATED_SLASHES = re.compile(r"/{2,}")


def clean_url_path(url_path: str) -> str:
    """Return the shortest rooted equivalent of ``url_path``.

    Repeated slashes collapse, ``.`` segments vanish and ``..`` segments
    consume their parent without ever climbing above the root.
    """
    rooted = _REPEATED_SLASHES.sub("/", "/" + url_path)
    return posixpath.normpath(rooted)


def resolve_sandbox_path(directory: str, url_path: str) -> Path:
    """Map a decoded request path onto ``directory``, refusing escapes."""
    if "\x00" in url_path:
        raise ForbiddenPath(url_path)

    root = os.path.abspath(directory)
    relative_part = clean_url_path(url_path).lstrip("/")
    target = os.path.abspath(os.path.join(root, relative_part))
    if target != root and not target.startswith(root.rstrip(os.sep) + os.sep):
        raise ForbiddenPath(url_path)
    return Path(target)

"""Context object shared across worker threads."""

from dataclasses import dataclass

from surl.bootstrap.config import ServerConfig
from surl.lifecycle.state import ServerLifecycle
from surl.pipeline.accounting import RequestAccountant


@dataclass
class WorkerContext:
    """Dependencies shared across handler threads."""

    config: ServerConfig
    accountant: RequestAccountant
    lifecycle: ServerLifecycle

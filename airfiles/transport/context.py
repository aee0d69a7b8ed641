"""Context object shared across worker threads."""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from airfiles.bootstrap.config import ServerConfiguration
from airfiles.domain.http_types import Handler

if TYPE_CHECKING:
    from airfiles.lifecycle.state import ServerLifecycle


@dataclass(frozen=True)
class WorkerContext:
    """Dependencies shared across handler threads for one server run."""

    handler: Handler
    config: ServerConfiguration
    lifecycle: "ServerLifecycle"

"""Custom runtime bootstrap: resolve a handler, then poll the runtime API for work."""

from .bootstrap import main
from .handler_resolver import resolve
from .runtime_api_client import RuntimeApiClient
from .runtime_loop import RuntimeLoop, RuntimeState

__all__ = ["main", "resolve", "RuntimeApiClient", "RuntimeLoop", "RuntimeState"]

"""Registry of API services started alongside a proxy."""

from __future__ import annotations

from typing import Any, Callable

from trojanfork import log
from trojanfork.config import Context

Handler = Callable[[Context, Any], Any]

_handlers: dict[str, Handler] = {}


def register_handler(name: str, handler: Handler) -> None:
    """Register the API service ``handler`` under ``name``."""
    _handlers[name] = handler


def run_service(ctx: Context, name: str, auth: Any) -> Any:
    """Run the service named ``name``; return None if there is none."""
    handler = _handlers.get(name)
    if handler is None:
        log.debug("api handler not found", name)
        return None
    log.debug("api handler found", name)
    return handler(ctx, auth)
"""Registry of command-line option handlers, run by descending priority."""

from __future__ import annotations

from abc import ABC, abstractmethod

from trojanfork.common import TrojanError


class OptionHandler(ABC):
    """Something the command line can ask to run."""

    @abstractmethod
    def name(self) -> str:
        """Unique name of the handler."""

    @abstractmethod
    def handle(self) -> None:
        """Run the handler; raise if it does not apply."""

    @abstractmethod
    def priority(self) -> int:
        """Higher priorities are tried first."""


_handlers: dict[str, OptionHandler] = {}


def register_handler(handler: OptionHandler) -> None:
    """Register ``handler``, replacing one with the same name."""
    _handlers[handler.name()] = handler


def pop_option_handler() -> OptionHandler:
    """Remove and return the handler with the highest priority."""
    best = None
    for handler in _handlers.values():
        if best is None or best.priority() < handler.priority():
            best = handler
    if best is None:
        raise TrojanError("no option left")
    del _handlers[best.name()]
    return best
"""Handler table for ``builtin`` actions.

Built-in handlers are grouped into classes extending BuiltinHandlerGroup,
then registered with a HandlerTable that maps handler names to plain
callables ``(context, parsed) -> CommandResult``. Handlers never mutate
anything themselves; they describe the mutation as side effects.

Key classes:
    BuiltinHandlerGroup: ABC that handler groups implement.
    HandlerTable: Maps handler names to handler callables.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Dict, Mapping, Optional

import structlog

from ..models import CommandContext, CommandResult, ParsedCommand

if TYPE_CHECKING:
    from .registry import CommandRegistry

logger = structlog.get_logger("slashwire.executor")

BuiltinHandler = Callable[[CommandContext, ParsedCommand], CommandResult]


class BuiltinHandlerGroup(ABC):
    """A group of related built-in handlers.

    Args:
        registry: The command registry, for handlers that describe other
            commands (help).
    """

    def __init__(self, registry: "CommandRegistry"):
        self.registry = registry

    @abstractmethod
    def get_handlers(self) -> Dict[str, BuiltinHandler]:
        """Return {handler_name: handler} mapping."""
        ...


class HandlerTable:
    """Maps handler names to handler callables.

    ``register()`` takes a BuiltinHandlerGroup; ``register_external()``
    takes a plain dict, used by hosts that add their own handlers for
    custom commands with a ``builtin`` action.
    """

    def __init__(self):
        self._handlers: Dict[str, BuiltinHandler] = {}

    def register(self, group: BuiltinHandlerGroup) -> None:
        for name, handler in group.get_handlers().items():
            if name in self._handlers:
                logger.warning(
                    "handler_conflict",
                    handler=name,
                    group=type(group).__name__,
                )
            self._handlers[name] = handler

    def register_external(self, handlers: Mapping[str, BuiltinHandler]) -> None:
        for name, handler in handlers.items():
            if name in self._handlers:
                logger.warning("handler_conflict", handler=name, source="external")
            self._handlers[name] = handler

    def get(self, name: str) -> Optional[BuiltinHandler]:
        return self._handlers.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    @property
    def handler_names(self) -> frozenset:
        return frozenset(self._handlers.keys())

"""Command framework for slashwire.

Provides the CommandRegistry, the built-in catalogue and handler table,
the definition validator and the CommandExecutor that ties them together.
"""

from .base import BuiltinHandler, BuiltinHandlerGroup, HandlerTable
from .builtins import builtin_commands
from .executor import CommandExecutor, error_kind_for
from .handlers import build_handler_table
from .registry import CommandRegistry, CommandSuggestion, load_custom_commands
from .validator import ensure_valid, validate_definition

__all__ = [
    "BuiltinHandler",
    "BuiltinHandlerGroup",
    "HandlerTable",
    "builtin_commands",
    "CommandExecutor",
    "error_kind_for",
    "build_handler_table",
    "CommandRegistry",
    "CommandSuggestion",
    "load_custom_commands",
    "ensure_valid",
    "validate_definition",
]

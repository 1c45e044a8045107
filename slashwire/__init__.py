"""slashwire: a slash-command engine for chat applications.

Parses ``/trigger args`` input against registered command definitions,
checks role and channel permissions, and returns a CommandResult whose
side effects the host application carries out.
"""

__version__ = "1.0.0"

from .commands import CommandExecutor, CommandRegistry, validate_definition
from .models import CommandContext, CommandDefinition, CommandResult

__all__ = [
    "__version__",
    "CommandExecutor",
    "CommandRegistry",
    "validate_definition",
    "CommandContext",
    "CommandDefinition",
    "CommandResult",
]

"""Custom exception hierarchy for slashwire.

Every stage of the command pipeline (resolve, authorize, parse, execute)
raises one of the classes below. The executor converts them into a
failed CommandResult at a single boundary, so callers never see these
exceptions escape ``CommandExecutor.execute()``.

Administrative paths (registration, definition validation, config) raise
them directly to the host application.
"""

from enum import Enum
from typing import Any, List, Optional, Sequence


class ErrorCategory(str, Enum):
    """Classification of errors for retry decisions."""
    TRANSIENT = "transient"          # Worth retrying (timeout, network, 5xx)
    PERMANENT = "permanent"          # Not worth retrying (bad input, denial)
    INFRASTRUCTURE = "infrastructure"  # Config or environment problems


class SlashwireError(Exception):
    """Base exception for all slashwire errors.

    Attributes:
        message: Human-readable error description. This is the text shown
            to the invoking user when the error reaches the executor
            boundary.
        category: Error classification for retry/escalation decisions.
        module: Originating module name (e.g. "commands.executor").
        context: Arbitrary key-value pairs for structured logging.
    """

    def __init__(
        self,
        message: str = "",
        *,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.message = message
        self.category = category
        self.module = module
        self.context = context
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether this error is worth retrying."""
        return self.category == ErrorCategory.TRANSIENT

    def __str__(self) -> str:
        parts = [self.message or self.__class__.__name__]
        if self.module:
            parts.append(f"[module={self.module}]")
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"({ctx})")
        return " ".join(parts)

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        return (
            f"{cls}({self.message!r}, category={self.category.value!r}, "
            f"module={self.module!r})"
        )


# ---------------------------------------------------------------------------
# Invocation pipeline exceptions
# ---------------------------------------------------------------------------

class ResolutionError(SlashwireError):
    """The input could not be resolved to an enabled command.

    Attributes:
        trigger: The trigger the user typed (lowercased), if any.
    """

    def __init__(
        self,
        message: str = "",
        *,
        trigger: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.trigger = trigger
        super().__init__(
            message, category=category, module=module or "commands.registry", **context
        )


class AuthorizationError(SlashwireError):
    """The actor may not run this command here (role, channel, rate limit)."""

    def __init__(
        self,
        message: str = "",
        *,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        super().__init__(
            message, category=category, module=module or "permissions", **context
        )


class CommandParseError(SlashwireError):
    """One or more arguments failed to bind.

    Attributes:
        errors: Every ArgumentError collected by the binder.
        usage: Usage string of the command, shown alongside the errors.
    """

    def __init__(
        self,
        message: str = "",
        *,
        errors: Optional[Sequence[Any]] = None,
        usage: str = "",
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.errors: List[Any] = list(errors or [])
        self.usage = usage
        super().__init__(
            message, category=category, module=module or "parsing.binder", **context
        )


class CommandExecutionError(SlashwireError):
    """A handler or action executor failed."""

    def __init__(
        self,
        message: str = "",
        *,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        super().__init__(
            message, category=category, module=module or "commands.executor", **context
        )


class WebhookError(CommandExecutionError):
    """The inline webhook call failed.

    Attributes:
        status: HTTP status code, when a response was received.
    """

    def __init__(
        self,
        message: str = "",
        *,
        status: Optional[int] = None,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.status = status
        super().__init__(
            message, category=category, module=module or "webhook", **context
        )


class UnsupportedActionError(SlashwireError):
    """The command uses an action type the engine does not run (``custom``)."""

    def __init__(
        self,
        message: str = "",
        *,
        action_type: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.action_type = action_type
        super().__init__(
            message, category=category, module=module or "commands.executor", **context
        )


# ---------------------------------------------------------------------------
# Administrative exceptions
# ---------------------------------------------------------------------------

class RegistrationError(SlashwireError):
    """A definition could not be added to (or updated in) the registry.

    Attributes:
        code: Primary issue code (e.g. "TRIGGER_CONFLICT").
        issues: All blocking ValidationIssues.
    """

    def __init__(
        self,
        message: str = "",
        *,
        code: str = "",
        issues: Optional[Sequence[Any]] = None,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.code = code
        self.issues: List[Any] = list(issues or [])
        super().__init__(
            message, category=category, module=module or "commands.registry", **context
        )


class DefinitionValidationError(SlashwireError):
    """A command definition draft failed administrative validation.

    Attributes:
        report: The ValidationReport that blocked the save.
    """

    def __init__(
        self,
        message: str = "",
        *,
        report: Any = None,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.report = report
        super().__init__(
            message, category=category, module=module or "commands.validator", **context
        )


class ConfigurationError(SlashwireError):
    """Invalid or missing setting, e.g. an unknown console role.

    Attributes:
        setting_name: Dotted settings key, such as ``console.role``.
    """

    def __init__(
        self,
        message: str = "",
        *,
        setting_name: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.INFRASTRUCTURE,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.setting_name = setting_name
        super().__init__(
            message, category=category, module=module or "config", **context
        )

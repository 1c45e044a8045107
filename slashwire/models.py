"""Data model for the slash-command engine.

Definitions (what an administrator saves) are pydantic models so they can
be loaded straight from YAML/JSON drafts. Everything created per
invocation (tokens, parsed arguments, context, results) is a plain
dataclass that lives only for the duration of one ``execute()`` call.

Enums:
    Role, ChannelType, CommandCategory, ArgumentType, ActionType,
    ResponseType, SideEffectType, ParseErrorType, ErrorKind

Definition models:
    ArgumentChoice, ArgumentValidation, ArgumentDefinition,
    CommandPermissions, ChannelConstraints, ResponseConfig,
    MessageAction, StatusAction, NavigateAction, ModalAction, ApiAction,
    WebhookAction, WorkflowAction, BuiltinAction, CustomAction,
    CommandDefinition

Runtime values:
    ArgumentError, ParsedArgument, ParsedCommand, CommandContext,
    CommandResponse, SideEffect, CommandResult, ValidationIssue,
    ValidationReport
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator


class Role(str, Enum):
    """Workspace roles, highest first. See permissions.ROLE_HIERARCHY."""
    OWNER = "owner"
    ADMIN = "admin"
    MODERATOR = "moderator"
    MEMBER = "member"
    GUEST = "guest"


class ChannelType(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    DIRECT = "direct"
    GROUP = "group"


class CommandCategory(str, Enum):
    """Closed set of categories used for grouping in command menus."""
    GENERAL = "general"
    CHANNEL = "channel"
    USER = "user"
    MESSAGE = "message"
    MODERATION = "moderation"
    FUN = "fun"
    UTILITY = "utility"
    INTEGRATION = "integration"
    CUSTOM = "custom"


class ArgumentType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    USER = "user"
    CHANNEL = "channel"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    DURATION = "duration"
    CHOICE = "choice"
    REST = "rest"


class ActionType(str, Enum):
    """What a command does once its arguments are bound.

    CUSTOM is declared so saved definitions round-trip, but the executor
    never runs it.
    """
    MESSAGE = "message"
    STATUS = "status"
    NAVIGATE = "navigate"
    MODAL = "modal"
    API = "api"
    WEBHOOK = "webhook"
    WORKFLOW = "workflow"
    BUILTIN = "builtin"
    CUSTOM = "custom"


class ResponseType(str, Enum):
    MESSAGE = "message"
    EPHEMERAL = "ephemeral"
    NOTIFICATION = "notification"


class SideEffectType(str, Enum):
    """Declarative instructions the host application carries out."""
    UPDATE_STATUS = "update_status"
    NAVIGATE = "navigate"
    OPEN_MODAL = "open_modal"
    API = "api"
    WEBHOOK = "webhook"
    WORKFLOW = "workflow"
    NOTIFICATION = "notification"


class ParseErrorType(str, Enum):
    MISSING_REQUIRED = "missing_required"
    VALIDATION_FAILED = "validation_failed"
    UNKNOWN_FLAG = "unknown_flag"


class ErrorKind(str, Enum):
    """Which pipeline stage produced a failed CommandResult."""
    RESOLUTION = "resolution"
    AUTHORIZATION = "authorization"
    PARSE = "parse"
    EXECUTION = "execution"
    UNSUPPORTED = "unsupported"


# Coerced argument value: string | number | boolean | string[] | None
ArgValue = Union[str, int, float, bool, List[str], None]


# ---------------------------------------------------------------------------
# Definition models
# ---------------------------------------------------------------------------

class ArgumentChoice(BaseModel):
    value: str
    label: Optional[str] = None
    description: Optional[str] = None


class ArgumentValidation(BaseModel):
    """Optional constraints shared by every argument type.

    ``min``/``max`` apply to numbers only; the length and pattern checks
    apply to the raw text of any type.
    """

    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None


class ArgumentDefinition(BaseModel):
    """One declared argument of a command.

    An argument is bound either by ``position`` or by ``flag`` (with an
    optional one-letter ``short_flag``), never both.
    """

    id: str = ""
    name: str
    description: str = ""
    type: ArgumentType = ArgumentType.STRING
    required: bool = False
    position: Optional[int] = None
    flag: Optional[str] = None
    short_flag: Optional[str] = None
    default_value: Any = None
    choices: List[ArgumentChoice] = Field(default_factory=list)
    validation: Optional[ArgumentValidation] = None

    @model_validator(mode="after")
    def _default_id(self) -> "ArgumentDefinition":
        if not self.id:
            self.id = self.name
        return self

    @property
    def is_positional(self) -> bool:
        return self.position is not None and self.flag is None

    @property
    def is_flag(self) -> bool:
        return self.flag is not None


class CommandPermissions(BaseModel):
    min_role: Role = Role.MEMBER
    allowed_roles: Optional[List[Role]] = None
    allowed_users: Optional[List[str]] = None
    denied_users: Optional[List[str]] = None
    allow_guests: bool = False


def _all_channel_types() -> List[ChannelType]:
    return list(ChannelType)


class ChannelConstraints(BaseModel):
    allowed_channel_types: List[ChannelType] = Field(default_factory=_all_channel_types)
    allowed_channels: Optional[List[str]] = None
    blocked_channels: Optional[List[str]] = None
    allow_in_threads: bool = True


class ResponseConfig(BaseModel):
    type: ResponseType = ResponseType.EPHEMERAL
    template: Optional[str] = None
    ephemeral: bool = True
    show_typing: bool = False


class MessageAction(BaseModel):
    type: Literal["message"] = "message"
    message: Optional[str] = None


class StatusAction(BaseModel):
    type: Literal["status"] = "status"
    text: Optional[str] = None
    emoji: Optional[str] = None
    expiry: Optional[str] = None


class NavigateAction(BaseModel):
    type: Literal["navigate"] = "navigate"
    url: Optional[str] = None
    new_tab: bool = False


class ModalAction(BaseModel):
    type: Literal["modal"] = "modal"
    component: Optional[str] = None
    props: Dict[str, Any] = Field(default_factory=dict)


class ApiAction(BaseModel):
    type: Literal["api"] = "api"
    endpoint: Optional[str] = None
    method: str = "POST"
    body: Dict[str, Any] = Field(default_factory=dict)


class WebhookAction(BaseModel):
    """Inline HTTP call made while the command executes.

    ``timeout_ms`` falls back to the configured default and is always
    clamped to 1,000..30,000 ms. ``message_path`` is a dotted path into
    the JSON response used as the result text.
    """

    type: Literal["webhook"] = "webhook"
    url: Optional[str] = None
    method: str = "POST"
    headers: Dict[str, str] = Field(default_factory=dict)
    body_template: Optional[str] = None
    timeout_ms: Optional[int] = None
    retry_count: Optional[int] = None
    message_path: Optional[str] = None


class WorkflowAction(BaseModel):
    type: Literal["workflow"] = "workflow"
    workflow_id: Optional[str] = None
    input_mapping: Dict[str, str] = Field(default_factory=dict)
    wait_for_completion: bool = False


class BuiltinAction(BaseModel):
    type: Literal["builtin"] = "builtin"
    handler: Optional[str] = None


class CustomAction(BaseModel):
    type: Literal["custom"] = "custom"
    script: Optional[str] = None


CommandAction = Annotated[
    Union[
        MessageAction,
        StatusAction,
        NavigateAction,
        ModalAction,
        ApiAction,
        WebhookAction,
        WorkflowAction,
        BuiltinAction,
        CustomAction,
    ],
    Field(discriminator="type"),
]


class CommandDefinition(BaseModel):
    """A saved slash command, built-in or custom.

    ``action`` is the payload variant matching ``action_type``; the
    definition validator reports a mismatch or a missing payload.
    """

    id: str = ""
    trigger: str
    aliases: List[str] = Field(default_factory=list)
    name: str = ""
    description: str = ""
    category: CommandCategory = CommandCategory.CUSTOM
    arguments: List[ArgumentDefinition] = Field(default_factory=list)
    permissions: CommandPermissions = Field(default_factory=CommandPermissions)
    channel_constraints: ChannelConstraints = Field(default_factory=ChannelConstraints)
    response_config: ResponseConfig = Field(default_factory=ResponseConfig)
    action_type: ActionType = ActionType.BUILTIN
    action: Optional[CommandAction] = None
    is_enabled: bool = True
    is_built_in: bool = False
    usage: Optional[str] = None
    help_text: Optional[str] = None
    order: int = 100

    @model_validator(mode="after")
    def _default_id(self) -> "CommandDefinition":
        if not self.id:
            self.id = self.trigger
        if not self.name:
            self.name = self.trigger
        return self

    def positional_arguments(self) -> List[ArgumentDefinition]:
        """Positional arguments sorted by position."""
        return sorted(
            (a for a in self.arguments if a.is_positional),
            key=lambda a: a.position,
        )

    def flag_arguments(self) -> List[ArgumentDefinition]:
        return [a for a in self.arguments if a.is_flag]

    def short_flags(self) -> Dict[str, str]:
        """Map of short flag letter -> canonical flag name."""
        return {
            a.short_flag: a.flag
            for a in self.arguments
            if a.is_flag and a.short_flag
        }

    def get_usage(self) -> str:
        """Explicit usage string, or one derived from the arguments."""
        if self.usage:
            return self.usage
        parts = [f"/{self.trigger}"]
        for arg in self.positional_arguments():
            label = f"{arg.name}..." if arg.type == ArgumentType.REST else arg.name
            parts.append(f"<{label}>" if arg.required else f"[{label}]")
        for arg in self.flag_arguments():
            flag = f"--{arg.flag} <{arg.type.value}>"
            parts.append(flag if arg.required else f"[{flag}]")
        return " ".join(parts)

    def all_triggers(self) -> List[str]:
        """Trigger plus aliases, lowercased, in declaration order."""
        seen: List[str] = []
        for name in [self.trigger, *self.aliases]:
            key = name.strip().lower()
            if key and key not in seen:
                seen.append(key)
        return seen


# ---------------------------------------------------------------------------
# Runtime values
# ---------------------------------------------------------------------------

@dataclass
class ArgumentError:
    """A single binder error, reported against one argument (or flag)."""
    argument: str
    type: ParseErrorType
    message: str


@dataclass
class ParsedArgument:
    """One bound argument.

    For ``rest`` arguments ``value`` is the space-joined text and
    ``values`` keeps the individual tokens.
    """
    definition: ArgumentDefinition
    raw_value: Optional[str]
    value: ArgValue = None
    is_valid: bool = True
    error: Optional[str] = None
    values: List[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.definition.name


@dataclass
class ParsedCommand:
    """Output of the argument binder for one invocation."""
    definition: CommandDefinition
    positional: List[ParsedArgument] = field(default_factory=list)
    flags: Dict[str, ParsedArgument] = field(default_factory=dict)
    remainder: str = ""
    errors: List[ArgumentError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def argument(self, name: str) -> Optional[ParsedArgument]:
        """Look up a bound argument by its declared name."""
        for parsed in self.positional:
            if parsed.name == name:
                return parsed
        for parsed in self.flags.values():
            if parsed.name == name:
                return parsed
        return None

    def get(self, name: str, default: ArgValue = None) -> ArgValue:
        parsed = self.argument(name)
        if parsed is None or parsed.value is None:
            return default
        return parsed.value

    def arguments(self) -> Dict[str, ArgValue]:
        """Argument name -> coerced value for every bound argument."""
        values: Dict[str, ArgValue] = {}
        for parsed in self.positional:
            values[parsed.name] = parsed.value
        for parsed in self.flags.values():
            values[parsed.name] = parsed.value
        return values


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CommandContext:
    """Who is invoking a command, and where. Never persisted."""
    user_id: str
    username: str
    role: Role
    channel_id: str
    channel_name: str = ""
    channel_type: ChannelType = ChannelType.PUBLIC
    thread_id: Optional[str] = None
    display_name: Optional[str] = None
    raw_input: str = ""
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def in_thread(self) -> bool:
        return bool(self.thread_id)

    @property
    def actor_name(self) -> str:
        return self.display_name or self.username

    def to_payload(self) -> Dict[str, Any]:
        """JSON-friendly view used in modal props and webhook bodies."""
        return {
            "user_id": self.user_id,
            "username": self.username,
            "display_name": self.actor_name,
            "role": self.role.value,
            "channel_id": self.channel_id,
            "channel_name": self.channel_name,
            "channel_type": self.channel_type.value,
            "thread_id": self.thread_id,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class CommandResponse:
    type: ResponseType
    content: str
    ephemeral: bool = True
    is_system: bool = False


@dataclass
class SideEffect:
    type: SideEffectType
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "payload": self.payload}


@dataclass
class CommandResult:
    """Outcome of one invocation. Created fresh per call."""
    success: bool
    response: Optional[CommandResponse] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    side_effects: List[SideEffect] = field(default_factory=list)
    data: Any = None
    duration_ms: float = 0.0

    @classmethod
    def failure(cls, error: str, kind: ErrorKind) -> "CommandResult":
        return cls(success=False, error=error, error_kind=kind)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "success": self.success,
            "side_effects": [s.to_dict() for s in self.side_effects],
            "duration_ms": round(self.duration_ms, 3),
        }
        if self.response is not None:
            result["response"] = {
                "type": self.response.type.value,
                "content": self.response.content,
                "ephemeral": self.response.ephemeral,
                "is_system": self.response.is_system,
            }
        if self.error is not None:
            result["error"] = self.error
            result["error_kind"] = self.error_kind.value if self.error_kind else None
        if self.data is not None:
            result["data"] = self.data
        return result


@dataclass
class ValidationIssue:
    code: str
    message: str
    field: Optional[str] = None


@dataclass
class ValidationReport:
    """Result of validating a definition. Errors block saving; warnings don't."""
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def error_codes(self) -> List[str]:
        return [issue.code for issue in self.errors]

    @property
    def warning_codes(self) -> List[str]:
        return [issue.code for issue in self.warnings]

    def error(self, code: str, message: str, field: Optional[str] = None) -> None:
        self.errors.append(ValidationIssue(code, message, field))

    def warn(self, code: str, message: str, field: Optional[str] = None) -> None:
        self.warnings.append(ValidationIssue(code, message, field))

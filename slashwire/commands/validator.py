"""Administrative validation of command definitions.

Runs when a command is created or edited, never per invocation. Every
problem is collected into a ValidationReport; errors block saving,
warnings are shown to the administrator but do not.

Accepts either a raw dict draft (as loaded from YAML or an admin form)
or an already-built CommandDefinition.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Union
from urllib.parse import urlparse

import structlog
from pydantic import ValidationError

from ..exceptions import DefinitionValidationError
from ..models import (
    ActionType,
    ArgumentDefinition,
    ArgumentType,
    CommandDefinition,
    ValidationReport,
)
from ..parsing.types import coerce_default

if TYPE_CHECKING:
    from ..config import Config
    from .registry import CommandRegistry

logger = structlog.get_logger("slashwire.registry")

DEFAULT_RESERVED_TRIGGERS = frozenset({"help", "commands", "admin", "debug", "system"})

TRIGGER_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*$")
ARGUMENT_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
FLAG_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")
SHORT_FLAG_PATTERN = re.compile(r"^[A-Za-z]$")

TRIGGER_LENGTH = (2, 32)
NAME_LENGTH = (2, 50)
DESCRIPTION_LENGTH = (10, 200)
MIN_ARGUMENT_DESCRIPTION = 3
MAX_CHOICES = 25
WEBHOOK_TIMEOUT_RANGE = (1000, 30000)
WEBHOOK_RETRY_RANGE = (0, 3)
HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})

Draft = Union[CommandDefinition, Mapping[str, Any]]


def validate_definition(
    draft: Draft,
    registry: Optional["CommandRegistry"] = None,
    config: Optional["Config"] = None,
) -> ValidationReport:
    """Validate a definition draft.

    Args:
        draft: Dict draft or CommandDefinition.
        registry: When given, trigger/alias conflicts against registered
            commands are checked too. The draft's own id is ignored so an
            edit does not conflict with itself.
        config: Supplies the reserved trigger list.

    Returns:
        ValidationReport with ``is_valid``, ``errors`` and ``warnings``.
    """
    report = ValidationReport()
    definition = _build(draft, report)
    if definition is None:
        return report

    reserved = _reserved_triggers(config)
    _check_identity(definition, report, reserved)
    if registry is not None:
        _check_conflicts(definition, registry, report)
    _check_arguments(definition.arguments, report)
    _check_action(definition, report)

    logger.debug(
        "definition_validated",
        trigger=definition.trigger,
        errors=report.error_codes,
        warnings=report.warning_codes,
    )
    return report


def ensure_valid(
    draft: Draft,
    registry: Optional["CommandRegistry"] = None,
    config: Optional["Config"] = None,
) -> CommandDefinition:
    """Validate and return the built definition, or raise.

    Raises:
        DefinitionValidationError: The report has errors. The report is
            attached as ``exc.report``.
    """
    report = validate_definition(draft, registry=registry, config=config)
    if not report.is_valid:
        trigger = draft.trigger if isinstance(draft, CommandDefinition) else draft.get("trigger")
        raise DefinitionValidationError(
            "Invalid command definition: "
            + "; ".join(issue.message for issue in report.errors),
            report=report,
            trigger=trigger,
        )
    if isinstance(draft, CommandDefinition):
        return draft
    return CommandDefinition.model_validate(dict(draft))


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------

def _build(draft: Draft, report: ValidationReport) -> Optional[CommandDefinition]:
    if isinstance(draft, CommandDefinition):
        return draft
    data: Dict[str, Any] = dict(draft)
    if not str(data.get("trigger") or "").strip():
        report.error("TRIGGER_REQUIRED", "Trigger is required", "trigger")
        return None
    try:
        return CommandDefinition.model_validate(data)
    except ValidationError as e:
        for err in e.errors():
            field = ".".join(str(part) for part in err["loc"])
            report.error("SCHEMA_INVALID", f"{field}: {err['msg']}", field)
        return None


def _reserved_triggers(config: Optional["Config"]) -> frozenset:
    if config is None:
        return DEFAULT_RESERVED_TRIGGERS
    return frozenset(t.lower() for t in config.reserved_triggers)


def _check_identity(
    definition: CommandDefinition,
    report: ValidationReport,
    reserved: frozenset,
) -> None:
    trigger = definition.trigger
    if not trigger:
        report.error("TRIGGER_REQUIRED", "Trigger is required", "trigger")
    else:
        if not TRIGGER_PATTERN.match(trigger):
            report.error(
                "INVALID_TRIGGER_FORMAT",
                "Trigger must start with a lowercase letter and contain only "
                "lowercase letters, numbers, hyphens and underscores",
                "trigger",
            )
        lo, hi = TRIGGER_LENGTH
        if not lo <= len(trigger) <= hi:
            report.error(
                "INVALID_TRIGGER_LENGTH",
                f"Trigger must be between {lo} and {hi} characters",
                "trigger",
            )
        if not definition.is_built_in and trigger.lower() in reserved:
            report.error(
                "RESERVED_TRIGGER", f"/{trigger} is a reserved trigger", "trigger"
            )

    for alias in definition.aliases:
        if not definition.is_built_in and not TRIGGER_PATTERN.match(alias):
            report.error(
                "INVALID_ALIAS_FORMAT",
                f"Alias '{alias}' must follow the trigger format",
                "aliases",
            )
        if alias.lower() == trigger.lower():
            report.warn(
                "ALIAS_SAME_AS_TRIGGER",
                f"Alias '{alias}' duplicates the trigger",
                "aliases",
            )

    lo, hi = NAME_LENGTH
    if not lo <= len(definition.name.strip()) <= hi:
        report.error(
            "INVALID_NAME_LENGTH", f"Name must be between {lo} and {hi} characters", "name"
        )
    lo, hi = DESCRIPTION_LENGTH
    if not lo <= len(definition.description.strip()) <= hi:
        report.error(
            "INVALID_DESCRIPTION_LENGTH",
            f"Description must be between {lo} and {hi} characters",
            "description",
        )


def _check_conflicts(
    definition: CommandDefinition,
    registry: "CommandRegistry",
    report: ValidationReport,
) -> None:
    trigger = definition.trigger.lower()
    owner = registry.custom_owner(trigger)
    if owner is not None and owner.id != definition.id:
        report.error(
            "TRIGGER_CONFLICT",
            f"/{trigger} is already used by custom command '{owner.id}'",
            "trigger",
        )
    elif registry.builtin_owner(trigger) is not None:
        report.warn(
            "TRIGGER_OVERRIDES_BUILTIN",
            f"/{trigger} will override the built-in command",
            "trigger",
        )

    for alias in definition.aliases:
        key = alias.lower()
        owner = registry.custom_owner(key)
        if owner is not None and owner.id != definition.id:
            report.error(
                "ALIAS_CONFLICT",
                f"Alias '{alias}' is already used by custom command '{owner.id}'",
                "aliases",
            )
        elif registry.builtin_owner(key) is not None:
            report.warn(
                "ALIAS_OVERRIDES_BUILTIN",
                f"Alias '{alias}' will override a built-in command",
                "aliases",
            )


def _check_arguments(arguments: List[ArgumentDefinition], report: ValidationReport) -> None:
    names = set()
    flags = set()
    short_flags = set()
    positions: List[int] = []
    rest_args: List[ArgumentDefinition] = []

    for arg in arguments:
        field = f"arguments.{arg.name}"
        _check_argument(arg, report, field)

        if arg.name in names:
            report.error(
                "DUPLICATE_ARGUMENT_NAME", f"Duplicate argument name: {arg.name}", field
            )
        names.add(arg.name)

        if arg.position is None and arg.flag is None:
            report.error(
                "MISSING_BINDING",
                f"Argument {arg.name} needs either a position or a flag",
                field,
            )
        elif arg.position is not None and arg.flag is not None:
            report.error(
                "AMBIGUOUS_BINDING",
                f"Argument {arg.name} cannot have both a position and a flag",
                field,
            )

        if arg.flag is not None:
            if not FLAG_PATTERN.match(arg.flag):
                report.error("INVALID_FLAG_NAME", f"Invalid flag name: --{arg.flag}", field)
            if arg.flag in flags:
                report.error("DUPLICATE_FLAG", f"Duplicate flag: --{arg.flag}", field)
            flags.add(arg.flag)
            if arg.short_flag is not None:
                if not SHORT_FLAG_PATTERN.match(arg.short_flag):
                    report.error(
                        "INVALID_SHORT_FLAG",
                        f"Short flag must be a single letter: -{arg.short_flag}",
                        field,
                    )
                if arg.short_flag in short_flags:
                    report.error(
                        "DUPLICATE_SHORT_FLAG",
                        f"Duplicate short flag: -{arg.short_flag}",
                        field,
                    )
                short_flags.add(arg.short_flag)

        if arg.position is not None:
            if arg.position < 0:
                report.error(
                    "INVALID_POSITION", f"Position of {arg.name} must be >= 0", field
                )
            elif arg.position in positions:
                report.error(
                    "DUPLICATE_POSITION", f"Duplicate position: {arg.position}", field
                )
            positions.append(arg.position)

        if arg.type == ArgumentType.REST:
            rest_args.append(arg)

    _check_positions(arguments, positions, rest_args, report)


def _check_argument(arg: ArgumentDefinition, report: ValidationReport, field: str) -> None:
    if not ARGUMENT_NAME_PATTERN.match(arg.name):
        report.error(
            "INVALID_ARGUMENT_NAME",
            f"Argument name '{arg.name}' may only contain letters, numbers and underscores",
            field,
        )
    if len(arg.description.strip()) < MIN_ARGUMENT_DESCRIPTION:
        report.error(
            "ARGUMENT_DESCRIPTION_TOO_SHORT",
            f"Description of {arg.name} must be at least {MIN_ARGUMENT_DESCRIPTION} characters",
            field,
        )

    if arg.type == ArgumentType.CHOICE:
        if not arg.choices:
            report.error("MISSING_CHOICES", f"Choice argument {arg.name} needs choices", field)
        elif len(arg.choices) > MAX_CHOICES:
            report.error(
                "TOO_MANY_CHOICES",
                f"Choice argument {arg.name} has more than {MAX_CHOICES} choices",
                field,
            )

    rules = arg.validation
    if rules is not None:
        if rules.min is not None and rules.max is not None and rules.min > rules.max:
            report.error("INVALID_RANGE", f"min must be <= max for {arg.name}", field)
        if (rules.min_length is not None and rules.min_length < 0) or (
            rules.max_length is not None and rules.max_length < 0
        ):
            report.error(
                "INVALID_LENGTH_RANGE", f"Length limits of {arg.name} must be >= 0", field
            )
        elif (
            rules.min_length is not None
            and rules.max_length is not None
            and rules.min_length > rules.max_length
        ):
            report.error(
                "INVALID_LENGTH_RANGE", f"minLength must be <= maxLength for {arg.name}", field
            )
        if rules.pattern:
            try:
                re.compile(rules.pattern)
            except re.error as e:
                report.error(
                    "INVALID_PATTERN", f"Invalid pattern for {arg.name}: {e}", field
                )

    if arg.default_value is not None and not coerce_default(arg).valid:
        report.error(
            "INVALID_DEFAULT_VALUE",
            f"Default value {arg.default_value!r} is not a valid {arg.type.value}",
            field,
        )


def _check_positions(
    arguments: Iterable[ArgumentDefinition],
    positions: List[int],
    rest_args: List[ArgumentDefinition],
    report: ValidationReport,
) -> None:
    unique = sorted(set(p for p in positions if p >= 0))
    if unique and unique != list(range(len(unique))):
        report.warn(
            "POSITION_GAP",
            "Positions should be consecutive starting at 0",
            "arguments",
        )

    if len(rest_args) > 1:
        report.error("MULTIPLE_REST", "Only one rest argument is allowed", "arguments")
    for rest in rest_args:
        if rest.position is None:
            report.error(
                "REST_NOT_POSITIONAL",
                f"Rest argument {rest.name} must be positional",
                f"arguments.{rest.name}",
            )
        elif unique and rest.position != unique[-1]:
            report.error(
                "REST_NOT_LAST",
                f"Rest argument {rest.name} must be the last positional argument",
                f"arguments.{rest.name}",
            )

    ordered = sorted(
        (a for a in arguments if a.position is not None and a.flag is None),
        key=lambda a: a.position,
    )
    seen_optional = False
    for arg in ordered:
        if not arg.required:
            seen_optional = True
        elif seen_optional:
            report.warn(
                "REQUIRED_AFTER_OPTIONAL",
                f"Required argument {arg.name} follows an optional argument",
                f"arguments.{arg.name}",
            )


def _check_http_method(method: str, report: ValidationReport, field: str) -> None:
    if method.upper() not in HTTP_METHODS:
        report.error(
            "INVALID_HTTP_METHOD",
            f"HTTP method must be one of {', '.join(sorted(HTTP_METHODS))}",
            field,
        )


def _check_action(definition: CommandDefinition, report: ValidationReport) -> None:
    action_type = definition.action_type
    action = definition.action

    if action is not None and action.type != action_type.value:
        report.error(
            "ACTION_TYPE_MISMATCH",
            f"Action payload is '{action.type}' but action type is '{action_type.value}'",
            "action",
        )
        return

    if action_type == ActionType.MESSAGE:
        message = action.message if action is not None else None
        if not (message or definition.response_config.template):
            report.error(
                "MISSING_MESSAGE_TEMPLATE", "Message commands need a message template", "action.message"
            )
    elif action_type == ActionType.STATUS:
        if action is None or not (action.text or action.emoji):
            report.error(
                "MISSING_STATUS_CONFIG", "Status commands need a status text or emoji", "action"
            )
    elif action_type == ActionType.NAVIGATE:
        if action is None or not action.url:
            report.error("MISSING_NAVIGATE_URL", "Navigate commands need a URL", "action.url")
    elif action_type == ActionType.MODAL:
        if action is None or not action.component:
            report.error(
                "MISSING_MODAL_COMPONENT", "Modal commands need a component", "action.component"
            )
    elif action_type == ActionType.API:
        if action is None or not action.endpoint:
            report.error(
                "MISSING_API_ENDPOINT", "API commands need an endpoint", "action.endpoint"
            )
        else:
            _check_http_method(action.method, report, "action.method")
    elif action_type == ActionType.WEBHOOK:
        _check_webhook(definition, report)
    elif action_type == ActionType.WORKFLOW:
        if action is None or not action.workflow_id:
            report.error(
                "MISSING_WORKFLOW_CONFIG", "Workflow commands need a workflow id", "action.workflow_id"
            )
    elif action_type == ActionType.CUSTOM:
        report.warn(
            "CUSTOM_ACTION_UNSAFE",
            "Custom script actions are not executed and would need sandboxing",
            "action",
        )


def _check_webhook(definition: CommandDefinition, report: ValidationReport) -> None:
    action = definition.action
    if action is None or not action.url:
        report.error("MISSING_WEBHOOK_CONFIG", "Webhook commands need a URL", "action.url")
        return

    parsed = urlparse(action.url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        report.error("INVALID_WEBHOOK_URL", "Webhook URL must be an http(s) URL", "action.url")
    elif parsed.scheme == "http":
        report.warn(
            "INSECURE_WEBHOOK_URL", "Webhook URL should use HTTPS", "action.url"
        )

    _check_http_method(action.method, report, "action.method")

    lo, hi = WEBHOOK_TIMEOUT_RANGE
    if action.timeout_ms is not None and not lo <= action.timeout_ms <= hi:
        report.error(
            "INVALID_WEBHOOK_TIMEOUT",
            f"Webhook timeout must be between {lo} and {hi} ms",
            "action.timeout_ms",
        )
    lo, hi = WEBHOOK_RETRY_RANGE
    if action.retry_count is not None and not lo <= action.retry_count <= hi:
        report.error(
            "INVALID_WEBHOOK_RETRY",
            f"Webhook retry count must be between {lo} and {hi}",
            "action.retry_count",
        )

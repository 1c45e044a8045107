"""Argument binder: maps tokenized input onto a command's declared arguments.

Errors are collected per argument rather than failing fast, so a user
sees every problem with an invocation at once.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

import structlog

from ..models import (
    ArgumentDefinition,
    ArgumentError,
    ArgumentType,
    CommandDefinition,
    ParseErrorType,
    ParsedArgument,
    ParsedCommand,
)
from .tokenizer import TokenizedInput, tokenize
from .types import coerce, coerce_default

logger = structlog.get_logger("slashwire.parser")

TRIGGER_PATTERN = re.compile(r"^/(\S+)")


def split_invocation(text: str) -> Optional[Tuple[str, str]]:
    """Split ``/trigger args...`` into (lowercased trigger, argument text).

    Returns None when the text does not start with a slash command.
    """
    stripped = text.strip()
    match = TRIGGER_PATTERN.match(stripped)
    if not match:
        return None
    return match.group(1).lower(), stripped[match.end():].strip()


def parse_command(
    text: str,
    definition: CommandDefinition,
    now: Optional[datetime] = None,
) -> ParsedCommand:
    """Tokenize and bind an invocation against ``definition``.

    ``text`` may be the full input (``/slow 5s``) or only the argument
    text after the trigger.
    """
    split = split_invocation(text)
    args_text = split[1] if split is not None else text.strip()
    tokens = tokenize(args_text, definition.short_flags())
    return bind_arguments(definition, tokens, now=now)


def bind_arguments(
    definition: CommandDefinition,
    tokens: TokenizedInput,
    now: Optional[datetime] = None,
) -> ParsedCommand:
    """Bind positional tokens and flags to the definition's arguments."""
    parsed = ParsedCommand(definition=definition, errors=list(tokens.errors))
    positional = tokens.positional
    index = 0
    has_rest = False

    for arg in definition.positional_arguments():
        if arg.type == ArgumentType.REST:
            has_rest = True
            parsed.positional.append(
                _bind_rest(arg, positional[index:], now, parsed.errors)
            )
            index = len(positional)
            break
        if index < len(positional):
            parsed.positional.append(
                _bind_value(arg, positional[index], now, parsed.errors)
            )
            index += 1
        else:
            parsed.positional.append(_bind_missing(arg, now, parsed.errors))

    if not has_rest and index < len(positional):
        parsed.remainder = " ".join(positional[index:])

    known_flags = set()
    for arg in definition.flag_arguments():
        known_flags.add(arg.flag)
        if arg.flag in tokens.flags:
            parsed.flags[arg.flag] = _bind_flag(
                arg, tokens.flags[arg.flag], now, parsed.errors
            )
        else:
            parsed.flags[arg.flag] = _bind_missing(
                arg, now, parsed.errors, label=f"--{arg.flag}"
            )

    for name in tokens.flags:
        if name not in known_flags:
            parsed.errors.append(ArgumentError(
                argument=f"--{name}",
                type=ParseErrorType.UNKNOWN_FLAG,
                message=f"Unknown flag: --{name}",
            ))

    if parsed.errors:
        logger.debug(
            "arguments_invalid",
            trigger=definition.trigger,
            error_count=len(parsed.errors),
        )
    return parsed


def _bind_value(
    arg: ArgumentDefinition,
    raw: str,
    now: Optional[datetime],
    errors: List[ArgumentError],
) -> ParsedArgument:
    result = coerce(arg, raw, now)
    if not result.valid:
        errors.append(ArgumentError(
            argument=arg.name,
            type=ParseErrorType.VALIDATION_FAILED,
            message=result.error or f"Invalid value for {arg.name}",
        ))
        return ParsedArgument(arg, raw, None, is_valid=False, error=result.error)
    return ParsedArgument(arg, raw, result.value)


def _bind_rest(
    arg: ArgumentDefinition,
    values: Sequence[str],
    now: Optional[datetime],
    errors: List[ArgumentError],
) -> ParsedArgument:
    if not values:
        if arg.default_value is not None:
            return _default_argument(arg, now)
        return ParsedArgument(arg, None, "", values=[])

    joined = " ".join(values)
    bound = _bind_value(arg, joined, now, errors)
    bound.values = list(values)
    return bound


def _bind_flag(
    arg: ArgumentDefinition,
    raw: Optional[str],
    now: Optional[datetime],
    errors: List[ArgumentError],
) -> ParsedArgument:
    if raw is not None:
        return _bind_value(arg, raw, now, errors)
    if arg.type == ArgumentType.BOOLEAN:
        # Bare boolean flag: --verbose
        return ParsedArgument(arg, None, True)
    message = f"--{arg.flag} requires a value"
    errors.append(ArgumentError(
        argument=arg.name,
        type=ParseErrorType.VALIDATION_FAILED,
        message=message,
    ))
    return ParsedArgument(arg, None, None, is_valid=False, error=message)


def _bind_missing(
    arg: ArgumentDefinition,
    now: Optional[datetime],
    errors: List[ArgumentError],
    label: Optional[str] = None,
) -> ParsedArgument:
    if arg.required:
        kind = "flag" if label else "argument"
        message = f"Missing required {kind}: {label or arg.name}"
        errors.append(ArgumentError(
            argument=arg.name,
            type=ParseErrorType.MISSING_REQUIRED,
            message=message,
        ))
        return ParsedArgument(arg, None, None, is_valid=False, error=message)
    return _default_argument(arg, now)


def _default_argument(
    arg: ArgumentDefinition,
    now: Optional[datetime],
) -> ParsedArgument:
    result = coerce_default(arg, now)
    if not result.valid:
        logger.warning(
            "default_value_not_coercible",
            argument=arg.name,
            type=arg.type.value,
            default=arg.default_value,
        )
        return ParsedArgument(arg, None, arg.default_value)
    return ParsedArgument(arg, None, result.value)

"""Invocation parsing: tokenizer, type coercion and argument binding."""

from .binder import TRIGGER_PATTERN, bind_arguments, parse_command, split_invocation
from .tokenizer import Token, TokenizedInput, split_tokens, tokenize
from .types import (
    DISABLED_MS,
    FOREVER_MS,
    Coercion,
    check_constraints,
    coerce,
    coerce_default,
    parse_duration_ms,
    parse_time_of_day,
)

__all__ = [
    "TRIGGER_PATTERN",
    "bind_arguments",
    "parse_command",
    "split_invocation",
    "Token",
    "TokenizedInput",
    "split_tokens",
    "tokenize",
    "DISABLED_MS",
    "FOREVER_MS",
    "Coercion",
    "check_constraints",
    "coerce",
    "coerce_default",
    "parse_duration_ms",
    "parse_time_of_day",
]

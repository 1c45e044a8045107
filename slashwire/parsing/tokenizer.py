"""Quote-aware tokenizer for slash-command argument text.

Splits the text after the trigger into tokens, then separates long
(``--name``, ``--name=value``) and short (``-x``) flags from positional
tokens. Short flags are resolved to their canonical long name through a
map supplied by the command definition.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from ..models import ArgumentError, ParseErrorType

_QUOTES = ('"', "'")

_LONG_FLAG = re.compile(r"^--([A-Za-z0-9][A-Za-z0-9_-]*)(?:=(.*))?$", re.DOTALL)
_SHORT_FLAG = re.compile(r"^-([A-Za-z])$")


@dataclass
class Token:
    """A raw token. ``quoted`` tokens are never treated as flags."""
    text: str
    quoted: bool = False


@dataclass
class TokenizedInput:
    """Positional tokens in input order plus flag name -> value.

    A flag present without a value (last token, or followed directly by
    another flag) maps to ``None``.
    """
    positional: List[str] = field(default_factory=list)
    flags: Dict[str, Optional[str]] = field(default_factory=dict)
    errors: List[ArgumentError] = field(default_factory=list)


def split_tokens(text: str) -> List[Token]:
    """Split text on unquoted whitespace.

    ``"`` or ``'`` opens a quoted run that ends at the matching unescaped
    quote; the quotes are stripped and the run may contain spaces. Inside
    a quoted run a backslash escapes the active quote character or another
    backslash; every other backslash is kept literally (C:\\temp).
    An unterminated quote runs to the end of the input.
    """
    tokens: List[Token] = []
    current: List[str] = []
    in_token = False
    quoted = False
    quote_char: Optional[str] = None
    i = 0
    length = len(text)

    while i < length:
        ch = text[i]

        if quote_char is not None:
            if ch == "\\" and i + 1 < length and text[i + 1] in (quote_char, "\\"):
                current.append(text[i + 1])
                i += 2
                continue
            if ch == quote_char:
                quote_char = None
            else:
                current.append(ch)
            i += 1
            continue

        if ch in _QUOTES:
            quote_char = ch
            quoted = True
            in_token = True
        elif ch.isspace():
            if in_token:
                tokens.append(Token("".join(current), quoted))
                current = []
                in_token = False
                quoted = False
        else:
            current.append(ch)
            in_token = True
        i += 1

    if in_token:
        tokens.append(Token("".join(current), quoted))
    return tokens


def _flag_marker(token: Token) -> bool:
    if token.quoted:
        return False
    return bool(_LONG_FLAG.match(token.text) or _SHORT_FLAG.match(token.text))


def tokenize(
    text: str,
    short_flags: Optional[Mapping[str, str]] = None,
) -> TokenizedInput:
    """Tokenize argument text into positional tokens and flags.

    Args:
        text: Everything after the trigger.
        short_flags: Map of short flag letter -> canonical long flag name,
            usually ``CommandDefinition.short_flags()``.

    Returns:
        TokenizedInput. Unknown short flags are reported as
        ``unknown_flag`` errors; tokenization continues past them.
    """
    short_flags = short_flags or {}
    result = TokenizedInput()
    tokens = split_tokens(text)
    i = 0

    while i < len(tokens):
        token = tokens[i]
        i += 1

        if token.quoted:
            result.positional.append(token.text)
            continue

        long_match = _LONG_FLAG.match(token.text)
        if long_match:
            name, inline_value = long_match.group(1), long_match.group(2)
            if inline_value is not None:
                result.flags[name] = inline_value
                continue
            value, i = _take_value(tokens, i)
            result.flags[name] = value
            continue

        short_match = _SHORT_FLAG.match(token.text)
        if short_match:
            letter = short_match.group(1)
            canonical = short_flags.get(letter)
            if canonical is None:
                result.errors.append(ArgumentError(
                    argument=f"-{letter}",
                    type=ParseErrorType.UNKNOWN_FLAG,
                    message=f"Unknown flag: -{letter}",
                ))
                continue
            value, i = _take_value(tokens, i)
            result.flags[canonical] = value
            continue

        result.positional.append(token.text)

    return result


def _take_value(tokens: List[Token], index: int):
    """Consume the token at ``index`` as a flag value, unless it is a flag."""
    if index < len(tokens) and not _flag_marker(tokens[index]):
        return tokens[index].text, index + 1
    return None, index

"""Per-type parse/validate rules for command arguments.

Every ArgumentType owns a parser ``(arg, raw, now) -> Coercion``. The
shared length/pattern constraints from ``ArgumentValidation`` run after a
successful type parse. Relative date/time grammars are evaluated against
``now`` (normally ``CommandContext.timestamp``) so results are
reproducible.

Duration sentinels:
    FOREVER_MS (-1): ``forever`` / ``permanent``
    DISABLED_MS (0): ``off`` / ``disable`` / ``0``
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Dict, Optional

from ..models import ArgumentDefinition, ArgumentType, ArgValue

FOREVER_MS = -1
DISABLED_MS = 0
# Longest accepted duration: 100 years of 365 days
MAX_DURATION_MS = 100 * 365 * 86_400_000

_FOREVER_WORDS = frozenset({"forever", "permanent"})
_DISABLED_WORDS = frozenset({"off", "disable", "0"})

TRUE_WORDS = frozenset({"true", "yes", "1", "on"})
FALSE_WORDS = frozenset({"false", "no", "0", "off"})

_MS_PER_UNIT = {
    "s": 1000,
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
    "w": 7 * 24 * 60 * 60 * 1000,
}

# Longest alternatives first so "min" is not read as "m" + "in".
_DURATION_UNIT = (
    r"weeks?|w|days?|d|hours?|hrs?|h|minutes?|mins?|m|seconds?|secs?|sec|s"
)
_DURATION_RUN = re.compile(rf"(\d+(?:\.\d+)?)\s*({_DURATION_UNIT})", re.IGNORECASE)
_DURATION_FULL = re.compile(
    rf"^(?:\s*\d+(?:\.\d+)?\s*(?:{_DURATION_UNIT}))+\s*$", re.IGNORECASE
)

_NUMBER = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_NON_SPACE = re.compile(r"^\S+$")
_TIME = re.compile(
    r"^(\d{1,2})(?::(\d{2}))?(?::(\d{2}))?\s*([ap]\.?m\.?)?$", re.IGNORECASE
)
_IN_DAYS = re.compile(r"^in\s+(\d+)\s*days?$", re.IGNORECASE)
_IN_OFFSET = re.compile(
    r"^in\s+(\d+)\s*(minutes?|mins?|m|hours?|hrs?|hr|h|days?|d)$", re.IGNORECASE
)
_DAY_AT = re.compile(r"^(today|tomorrow)\s+at\s+(.+)$", re.IGNORECASE)


@dataclass
class Coercion:
    """Outcome of parsing one raw argument value."""
    value: ArgValue = None
    valid: bool = True
    error: Optional[str] = None

    @classmethod
    def ok(cls, value: ArgValue) -> "Coercion":
        return cls(value=value)

    @classmethod
    def fail(cls, error: str) -> "Coercion":
        return cls(valid=False, error=error)


def format_number(value: float):
    """Return an int for integral floats so 5.0 reads as 5."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _unit_key(unit: str) -> str:
    unit = unit.lower()
    if unit.startswith("mi") or unit == "m":
        return "m"
    return unit[0]


def parse_duration_ms(text: str) -> Optional[int]:
    """Parse a duration into milliseconds.

    Accepts one or more ``<N><unit>`` runs (``1h30m``, ``2d``, ``45s``)
    summed together, plus the sentinel words. Returns None when the text
    is not a duration at all.
    """
    lower = text.strip().lower()
    if lower in _FOREVER_WORDS:
        return FOREVER_MS
    if lower in _DISABLED_WORDS:
        return DISABLED_MS
    if not _DURATION_FULL.match(lower):
        return None
    total = 0.0
    for amount, unit in _DURATION_RUN.findall(lower):
        total += float(amount) * _MS_PER_UNIT[_unit_key(unit)]
    if not math.isfinite(total):
        return None
    return int(round(total))


def parse_time_of_day(text: str) -> Optional[time]:
    """Parse ``H:MM[:SS][am|pm]`` (or ``H am|pm``) into a time."""
    match = _TIME.match(text.strip())
    if not match:
        return None
    hour_s, minute_s, second_s, meridiem = match.groups()
    if minute_s is None and (second_s is not None or meridiem is None):
        return None
    hour = int(hour_s)
    minute = int(minute_s or 0)
    second = int(second_s or 0)
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        is_pm = meridiem.lower().startswith("p")
        hour = hour % 12 + (12 if is_pm else 0)
    elif hour > 23:
        return None
    if minute > 59 or second > 59:
        return None
    return time(hour, minute, second)


def _parse_iso_datetime(text: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Per-type parsers
# ---------------------------------------------------------------------------

def _parse_string(arg: ArgumentDefinition, raw: str, now: datetime) -> Coercion:
    return Coercion.ok(raw)


def _parse_number(arg: ArgumentDefinition, raw: str, now: datetime) -> Coercion:
    text = raw.strip()
    if not _NUMBER.match(text):
        return Coercion.fail(f"{arg.name} must be a number")
    number = float(text)
    if math.isnan(number) or math.isinf(number):
        return Coercion.fail(f"{arg.name} must be a number")
    rules = arg.validation
    if rules is not None:
        if rules.min is not None and number < rules.min:
            return Coercion.fail(
                f"{arg.name} must be at least {format_number(rules.min)}"
            )
        if rules.max is not None and number > rules.max:
            return Coercion.fail(
                f"{arg.name} must be at most {format_number(rules.max)}"
            )
    return Coercion.ok(format_number(number))


def _parse_boolean(arg: ArgumentDefinition, raw: str, now: datetime) -> Coercion:
    lower = raw.strip().lower()
    if lower in TRUE_WORDS:
        return Coercion.ok(True)
    if lower in FALSE_WORDS:
        return Coercion.ok(False)
    return Coercion.fail(f"{arg.name} must be true/false, yes/no, 1/0 or on/off")


def _mention_parser(prefix: str, noun: str):
    def parse(arg: ArgumentDefinition, raw: str, now: datetime) -> Coercion:
        text = raw.strip()
        if text.startswith(prefix):
            text = text[1:]
        if not _NON_SPACE.match(text):
            return Coercion.fail(f"{arg.name} must be a valid {noun}")
        return Coercion.ok(text)
    return parse


def _out_of_range(arg: ArgumentDefinition) -> Coercion:
    return Coercion.fail(f"{arg.name} is too far in the future or past")


def _parse_date(arg: ArgumentDefinition, raw: str, now: datetime) -> Coercion:
    text = raw.strip()
    parsed = _parse_iso_datetime(text)
    if parsed is not None:
        return Coercion.ok(parsed.date().isoformat())

    today = now.date()
    lower = text.lower()
    literal = {
        "today": today,
        "tomorrow": today + timedelta(days=1),
        "yesterday": today - timedelta(days=1),
    }.get(lower)
    if literal is not None:
        return Coercion.ok(literal.isoformat())

    match = _IN_DAYS.match(lower)
    if match:
        try:
            day: date = today + timedelta(days=int(match.group(1)))
        except (OverflowError, ValueError):
            return _out_of_range(arg)
        return Coercion.ok(day.isoformat())
    return Coercion.fail(
        f"{arg.name} must be a date (YYYY-MM-DD, today, tomorrow, yesterday or 'in N days')"
    )


def _parse_time(arg: ArgumentDefinition, raw: str, now: datetime) -> Coercion:
    parsed = parse_time_of_day(raw)
    if parsed is None:
        return Coercion.fail(f"{arg.name} must be a time like 9:30, 14:00:00 or 2:15pm")
    return Coercion.ok(parsed.strftime("%H:%M:%S"))


def _parse_datetime(arg: ArgumentDefinition, raw: str, now: datetime) -> Coercion:
    text = raw.strip()
    parsed = _parse_iso_datetime(text)
    if parsed is not None:
        return Coercion.ok(parsed.isoformat())

    match = _IN_OFFSET.match(text)
    if match:
        unit = _unit_key(match.group(2))
        try:
            delta = timedelta(milliseconds=int(match.group(1)) * _MS_PER_UNIT[unit])
            return Coercion.ok((now + delta).isoformat())
        except (OverflowError, ValueError):
            return _out_of_range(arg)

    match = _DAY_AT.match(text)
    if match:
        at = parse_time_of_day(match.group(2))
        if at is not None:
            day = now.date()
            if match.group(1).lower() == "tomorrow":
                day += timedelta(days=1)
            return Coercion.ok(datetime.combine(day, at, tzinfo=now.tzinfo).isoformat())

    return Coercion.fail(
        f"{arg.name} must be a date/time (ISO 8601, 'in 30m' or 'tomorrow at 9am')"
    )


def _parse_duration(arg: ArgumentDefinition, raw: str, now: datetime) -> Coercion:
    ms = parse_duration_ms(raw)
    if ms is None:
        return Coercion.fail(
            f"{arg.name} must be a duration like 30s, 5m, 1h30m, forever or off"
        )
    if ms > MAX_DURATION_MS:
        return Coercion.fail(f"{arg.name} must be at most 100 years")
    return Coercion.ok(ms)


def _parse_choice(arg: ArgumentDefinition, raw: str, now: datetime) -> Coercion:
    allowed = [choice.value for choice in arg.choices]
    if raw in allowed:
        return Coercion.ok(raw)
    return Coercion.fail(f"{arg.name} must be one of: {', '.join(allowed)}")


_PARSERS: Dict[ArgumentType, Callable[[ArgumentDefinition, str, datetime], Coercion]] = {
    ArgumentType.STRING: _parse_string,
    ArgumentType.REST: _parse_string,
    ArgumentType.NUMBER: _parse_number,
    ArgumentType.BOOLEAN: _parse_boolean,
    ArgumentType.USER: _mention_parser("@", "user"),
    ArgumentType.CHANNEL: _mention_parser("#", "channel"),
    ArgumentType.DATE: _parse_date,
    ArgumentType.TIME: _parse_time,
    ArgumentType.DATETIME: _parse_datetime,
    ArgumentType.DURATION: _parse_duration,
    ArgumentType.CHOICE: _parse_choice,
}


def check_constraints(arg: ArgumentDefinition, raw: str) -> Optional[str]:
    """Shared minLength/maxLength/pattern check. Returns an error or None."""
    rules = arg.validation
    if rules is None:
        return None
    if rules.min_length is not None and len(raw) < rules.min_length:
        return f"{arg.name} must be at least {rules.min_length} characters"
    if rules.max_length is not None and len(raw) > rules.max_length:
        return f"{arg.name} must be at most {rules.max_length} characters"
    if rules.pattern:
        try:
            if not re.search(rules.pattern, raw):
                return f"{arg.name} has an invalid format"
        except re.error:
            return f"{arg.name} cannot be checked: invalid pattern"
    return None


def coerce(
    arg: ArgumentDefinition,
    raw: str,
    now: Optional[datetime] = None,
) -> Coercion:
    """Parse ``raw`` with the argument's type, then apply shared constraints."""
    result = _PARSERS[arg.type](arg, raw, _now(now))
    if not result.valid:
        return result
    error = check_constraints(arg, raw)
    if error:
        return Coercion.fail(error)
    return result


def coerce_default(
    arg: ArgumentDefinition,
    now: Optional[datetime] = None,
) -> Coercion:
    """Resolve a declared default.

    String defaults of non-text types go through the type parser, so a
    duration default of ``"forever"`` becomes -1. Constraints are not
    applied to defaults.
    """
    default = arg.default_value
    if default is None or not isinstance(default, str):
        return Coercion.ok(default)
    if arg.type in (ArgumentType.STRING, ArgumentType.REST):
        return Coercion.ok(default)
    return _PARSERS[arg.type](arg, default, _now(now))

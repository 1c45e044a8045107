"""Template interpolation and small formatting helpers for actions.

``interpolate`` is small: ``{{name}}`` placeholders are
replaced from a flat bindings map and anything left unresolved is
stripped rather than shown literally.
"""

import re
from typing import Any, Dict, Mapping, Optional

from ..models import ArgValue, CommandContext, ParsedCommand

_PLACEHOLDER = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")


def format_value(value: ArgValue) -> str:
    """Render a coerced argument value for template substitution."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return " ".join(format_value(v) for v in value)
    return str(value)


def interpolate(template: str, bindings: Mapping[str, Any]) -> str:
    """Replace every ``{{name}}`` found in ``bindings``; drop the rest."""

    def _substitute(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key in bindings:
            return format_value(bindings[key])
        return ""

    return _PLACEHOLDER.sub(_substitute, template).strip()


def build_bindings(
    context: CommandContext,
    parsed: Optional[ParsedCommand] = None,
) -> Dict[str, Any]:
    """Flat name -> value map of context fields plus bound arguments.

    Arguments win over context fields of the same name, so a command
    with a ``user`` argument sees the argument value in ``{{user}}``.
    Context fields are exposed in both snake_case and camelCase.
    """
    bindings: Dict[str, Any] = {
        "user_id": context.user_id,
        "username": context.username,
        "display_name": context.actor_name,
        "channel_id": context.channel_id,
        "channel_name": context.channel_name,
        "channel_type": context.channel_type.value,
        "thread_id": context.thread_id,
        "role": context.role.value,
    }
    bindings.update({
        "userId": context.user_id,
        "displayName": context.actor_name,
        "channelId": context.channel_id,
        "channelName": context.channel_name,
    })
    if parsed is not None:
        bindings.update(parsed.arguments())
    return bindings


def render_payload(value: Any, bindings: Mapping[str, Any]) -> Any:
    """Interpolate every string inside a nested dict/list payload."""
    if isinstance(value, str):
        return interpolate(value, bindings)
    if isinstance(value, dict):
        return {k: render_payload(v, bindings) for k, v in value.items()}
    if isinstance(value, list):
        return [render_payload(v, bindings) for v in value]
    return value


def get_nested_value(data: Any, path: str) -> Any:
    """Dotted-path lookup (``result.message``); None when any hop is missing.

    Integer segments index into lists.
    """
    current = data
    for key in path.split("."):
        if isinstance(current, dict):
            current = current.get(key)
        elif isinstance(current, list) and key.isdigit():
            idx = int(key)
            current = current[idx] if idx < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


def format_duration(ms: int) -> str:
    """Human-readable duration: ``1h 30m``, ``indefinitely``, ``disabled``."""
    if ms < 0:
        return "indefinitely"
    if ms == 0:
        return "disabled"

    seconds = ms // 1000
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    parts = []
    if days:
        parts.append(f"{days}d")
    if hours % 24:
        parts.append(f"{hours % 24}h")
    if minutes % 60:
        parts.append(f"{minutes % 60}m")
    if seconds % 60 and not parts:
        parts.append(f"{seconds % 60}s")
    return " ".join(parts) or "0s"

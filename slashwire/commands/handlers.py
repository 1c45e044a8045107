"""Built-in command handlers.

Handles: help, shortcuts, away, active, status, dnd, mute, unmute,
invite, leave, topic, rename, archive, remind, poll, search, giphy,
dm, apps, settings, feedback, kick, ban, unban, slow, clear.

Every handler is a pure function of (context, parsed). Mutations are
returned as SideEffect values for the host to apply; failures raise a
SlashwireError that the executor turns into a failed result.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from ..exceptions import CommandExecutionError, ResolutionError
from ..models import (
    CommandContext,
    CommandResponse,
    CommandResult,
    ParsedCommand,
    ResponseType,
    SideEffect,
    SideEffectType,
)
from ..parsing.types import FOREVER_MS
from .base import BuiltinHandler, BuiltinHandlerGroup, HandlerTable
from .templates import format_duration

if TYPE_CHECKING:
    from .registry import CommandRegistry

POLL_MIN_OPTIONS = 2
POLL_MAX_OPTIONS = 10


def _result(
    content: Optional[str] = None,
    *effects: SideEffect,
    type: ResponseType = ResponseType.NOTIFICATION,
    ephemeral: bool = True,
    is_system: bool = False,
) -> CommandResult:
    response = None
    if content is not None:
        response = CommandResponse(type, content, ephemeral=ephemeral, is_system=is_system)
    return CommandResult(success=True, response=response, side_effects=list(effects))


def _announce(content: str, *effects: SideEffect) -> CommandResult:
    """System message visible to the whole channel."""
    return _result(
        content, *effects, type=ResponseType.MESSAGE, ephemeral=False, is_system=True
    )


def _effect(type: SideEffectType, **payload: Any) -> SideEffect:
    return SideEffect(type, payload)


def _workflow(action: str, **payload: Any) -> SideEffect:
    return SideEffect(SideEffectType.WORKFLOW, {"action": action, **payload})


def _modal(component: str, **props: Any) -> SideEffect:
    return SideEffect(SideEffectType.OPEN_MODAL, {"component": component, "props": props})


def _navigate(url: str) -> SideEffect:
    return SideEffect(SideEffectType.NAVIGATE, {"url": url})


def _bare_user(value: Any) -> str:
    return str(value or "").lstrip("@")


def _expires_at(context: CommandContext, duration: Optional[int]) -> Optional[str]:
    if not duration or duration <= 0:
        return None
    return (context.timestamp + timedelta(milliseconds=duration)).isoformat()


class GeneralHandlers(BuiltinHandlerGroup):
    """help, shortcuts, apps, settings, feedback."""

    def get_handlers(self) -> Dict[str, BuiltinHandler]:
        return {
            "help": self.handle_help,
            "shortcuts": self.handle_shortcuts,
            "apps": self.handle_apps,
            "settings": self.handle_settings,
            "feedback": self.handle_feedback,
        }

    def handle_help(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        """``/help`` opens the command list; ``/help <command>`` describes one.

        Raises:
            ResolutionError: The named command does not exist or is disabled.
        """
        name = parsed.get("command")
        if not name:
            commands = [
                {
                    "trigger": s.definition.trigger,
                    "description": s.definition.description,
                    "usage": s.definition.get_usage(),
                    "category": s.definition.category.value,
                }
                for s in self.registry.suggest(
                    "", role=context.role, channel_type=context.channel_type, limit=None
                )
            ]
            return _result(None, _modal("CommandHelpModal", commands=commands))

        trigger = str(name).lstrip("/").lower()
        command = self.registry.resolve(trigger)
        if command is None or not command.is_enabled:
            raise ResolutionError(f"Unknown command: /{trigger}", trigger=trigger)

        lines = [
            f"**/{command.trigger}** - {command.description}",
            "",
            f"Usage: `{command.get_usage()}`",
        ]
        if command.aliases:
            lines.append("Aliases: " + ", ".join(f"/{a}" for a in command.aliases))
        if command.help_text:
            lines.extend(["", command.help_text])
        return _result("\n".join(lines), type=ResponseType.EPHEMERAL)

    def handle_shortcuts(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        return _result(None, _modal("KeyboardShortcutsModal"))

    def handle_apps(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        return _result(None, _navigate("/apps"))

    def handle_settings(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        section = parsed.get("section")
        return _result(None, _navigate(f"/settings/{section}" if section else "/settings"))

    def handle_feedback(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        return _result(None, _modal("FeedbackModal", prefill=parsed.get("message") or None))


class StatusHandlers(BuiltinHandlerGroup):
    """away, active, status, dnd."""

    def get_handlers(self) -> Dict[str, BuiltinHandler]:
        return {
            "away": self.handle_away,
            "active": self.handle_active,
            "status": self.handle_status,
            "dnd": self.handle_dnd,
        }

    def handle_away(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        message = parsed.get("message") or None
        return _result(
            "You are now away" + (f": {message}" if message else ""),
            _effect(
                SideEffectType.UPDATE_STATUS,
                user_id=context.user_id, status="away", message=message,
            ),
        )

    def handle_active(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        return _result(
            "You are now active",
            _effect(SideEffectType.UPDATE_STATUS, user_id=context.user_id, status="online"),
        )

    def handle_status(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        message = parsed.get("message")
        emoji = parsed.get("emoji")
        duration = parsed.get("duration")
        shown = f"{emoji} {message}" if emoji else message
        return _result(
            f"Status updated: {shown}",
            _effect(
                SideEffectType.UPDATE_STATUS,
                user_id=context.user_id,
                text=message,
                emoji=emoji,
                expires_at=_expires_at(context, duration),
            ),
        )

    def handle_dnd(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        duration = parsed.get("duration")
        if duration == 0:
            return _result(
                "Do Not Disturb disabled",
                _effect(SideEffectType.UPDATE_STATUS, user_id=context.user_id, status="online"),
            )
        if duration is None:
            duration = FOREVER_MS
        content = (
            f"Do Not Disturb enabled for {format_duration(duration)}"
            if duration > 0 else "Do Not Disturb enabled"
        )
        return _result(
            content,
            _effect(
                SideEffectType.UPDATE_STATUS,
                user_id=context.user_id,
                status="dnd",
                expires_at=_expires_at(context, duration),
            ),
        )


class ChannelHandlers(BuiltinHandlerGroup):
    """mute, unmute, invite, leave, topic, rename, archive."""

    def get_handlers(self) -> Dict[str, BuiltinHandler]:
        return {
            "mute": self.handle_mute,
            "unmute": self.handle_unmute,
            "invite": self.handle_invite,
            "leave": self.handle_leave,
            "topic": self.handle_topic,
            "rename": self.handle_rename,
            "archive": self.handle_archive,
        }

    def handle_mute(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        """``/mute 0`` and ``/mute off`` mute indefinitely, like no duration."""
        duration = parsed.get("duration", FOREVER_MS) or FOREVER_MS
        content = (
            f"Channel muted for {format_duration(duration)}"
            if duration > 0 else "Channel muted"
        )
        return _result(
            content,
            _effect(
                SideEffectType.NOTIFICATION,
                action="mute_channel",
                channel_id=context.channel_id,
                user_id=context.user_id,
                duration=duration,
            ),
        )

    def handle_unmute(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        return _result(
            "Channel unmuted",
            _effect(
                SideEffectType.NOTIFICATION,
                action="unmute_channel",
                channel_id=context.channel_id,
                user_id=context.user_id,
            ),
        )

    def handle_invite(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        users = _unique_users([parsed.get("user")] + _tokens(parsed, "others"))
        return _announce(
            "Invited " + ", ".join(f"@{u}" for u in users) + " to the channel",
            _workflow(
                "invite_users",
                channel_id=context.channel_id,
                users=users,
                invited_by=context.user_id,
            ),
        )

    def handle_leave(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        return _result(
            f"You left #{context.channel_name or context.channel_id}",
            _workflow("leave_channel", channel_id=context.channel_id, user_id=context.user_id),
            _navigate("/chat"),
        )

    def handle_topic(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        topic = parsed.get("topic") or ""
        content = (
            f"{context.actor_name} set the channel topic: {topic}"
            if topic else f"{context.actor_name} cleared the channel topic"
        )
        return _announce(
            content,
            _workflow(
                "set_topic",
                channel_id=context.channel_id,
                topic=topic,
                user_id=context.user_id,
            ),
        )

    def handle_rename(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        new_name = parsed.get("name")
        return _announce(
            f"{context.actor_name} renamed the channel to #{new_name}",
            _workflow(
                "rename_channel",
                channel_id=context.channel_id,
                new_name=new_name,
                user_id=context.user_id,
            ),
        )

    def handle_archive(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        return _announce(
            f"{context.actor_name} archived this channel",
            _workflow("archive_channel", channel_id=context.channel_id, user_id=context.user_id),
        )


class UtilityHandlers(BuiltinHandlerGroup):
    """remind, poll, search, giphy, dm."""

    def get_handlers(self) -> Dict[str, BuiltinHandler]:
        return {
            "remind": self.handle_remind,
            "poll": self.handle_poll,
            "search": self.handle_search,
            "giphy": self.handle_giphy,
            "dm": self.handle_dm,
        }

    def handle_remind(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        when = parsed.get("when")
        return _result(
            f"Reminder set for {when}",
            _workflow(
                "create_reminder",
                user_id=context.user_id,
                channel_id=context.channel_id,
                when=when,
                message=parsed.get("message"),
            ),
        )

    def handle_poll(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        """Options are the individual quoted tokens after the question.

        Raises:
            CommandExecutionError: Fewer than 2 or more than 10 options.
        """
        options = _tokens(parsed, "options")
        if len(options) < POLL_MIN_OPTIONS:
            raise CommandExecutionError(
                "Poll requires at least 2 options. "
                'Use format: /poll "Question" "Option 1" "Option 2"',
                option_count=len(options),
            )
        if len(options) > POLL_MAX_OPTIONS:
            raise CommandExecutionError(
                f"Poll supports at most {POLL_MAX_OPTIONS} options",
                option_count=len(options),
            )
        return _result(
            None,
            _workflow(
                "create_poll",
                user_id=context.user_id,
                channel_id=context.channel_id,
                question=parsed.get("question"),
                options=options,
            ),
        )

    def handle_search(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        return _result(
            None,
            _modal(
                "SearchResults",
                query=parsed.get("query"),
                channel_id=context.channel_id,
                filters={
                    "from": parsed.get("from"),
                    "before": parsed.get("before"),
                    "after": parsed.get("after"),
                },
            ),
        )

    def handle_giphy(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        return _result(
            None,
            _modal("GiphyPicker", query=parsed.get("query"), channel_id=context.channel_id),
        )

    def handle_dm(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        user = _bare_user(parsed.get("user"))
        message = parsed.get("message") or None
        effects = [_navigate(f"/chat/dm/{user}")]
        if message:
            effects.append(_workflow(
                "send_dm", to_user=user, from_user=context.user_id, message=message,
            ))
        return _result(None, *effects)


class ModerationHandlers(BuiltinHandlerGroup):
    """kick, ban, unban, slow, clear."""

    def get_handlers(self) -> Dict[str, BuiltinHandler]:
        return {
            "kick": self.handle_kick,
            "ban": self.handle_ban,
            "unban": self.handle_unban,
            "slow": self.handle_slow,
            "clear": self.handle_clear,
        }

    def handle_kick(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        user = _bare_user(parsed.get("user"))
        reason = parsed.get("reason") or None
        return _announce(
            f"{user} has been removed from the channel" + (f": {reason}" if reason else ""),
            _workflow(
                "kick_user",
                channel_id=context.channel_id,
                user_id=user,
                kicked_by=context.user_id,
                reason=reason,
            ),
        )

    def handle_ban(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        user = _bare_user(parsed.get("user"))
        reason = parsed.get("reason") or None
        return _announce(
            f"{user} has been banned from the channel" + (f": {reason}" if reason else ""),
            _workflow(
                "ban_user",
                channel_id=context.channel_id,
                user_id=user,
                banned_by=context.user_id,
                reason=reason,
            ),
        )

    def handle_unban(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        user = _bare_user(parsed.get("user"))
        return _result(
            f"{user} has been unbanned",
            _workflow("unban_user", channel_id=context.channel_id, user_id=user),
        )

    def handle_slow(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        duration = parsed.get("duration", 0)
        content = (
            "Slow mode disabled" if duration == 0
            else f"Slow mode enabled: {format_duration(duration)} between messages"
        )
        return _announce(
            content,
            _workflow("set_slow_mode", channel_id=context.channel_id, duration=duration),
        )

    def handle_clear(self, context: CommandContext, parsed: ParsedCommand) -> CommandResult:
        count = parsed.get("count")
        source = _bare_user(parsed.get("from")) or None
        return _result(
            f"Deleting {count} messages" + (f" from @{source}" if source else "") + "...",
            _workflow(
                "clear_messages",
                channel_id=context.channel_id,
                count=count,
                from_user=source,
                cleared_by=context.user_id,
            ),
        )


HANDLER_GROUPS = (
    GeneralHandlers,
    StatusHandlers,
    ChannelHandlers,
    UtilityHandlers,
    ModerationHandlers,
)


def build_handler_table(registry: "CommandRegistry") -> HandlerTable:
    """HandlerTable with every built-in handler group registered."""
    table = HandlerTable()
    for group in HANDLER_GROUPS:
        table.register(group(registry))
    return table


def _tokens(parsed: ParsedCommand, name: str) -> List[str]:
    bound = parsed.argument(name)
    return list(bound.values) if bound is not None else []


def _unique_users(values: Iterable[Any]) -> List[str]:
    users: List[str] = []
    for value in values:
        user = _bare_user(value)
        if user and user not in users:
            users.append(user)
    return users

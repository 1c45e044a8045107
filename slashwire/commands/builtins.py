"""Built-in command catalogue.

``builtin_commands()`` returns fresh CommandDefinition objects every call,
so each registry owns its own copies. Most built-ins dispatch to a
handler in the HandlerTable keyed by trigger; the text
emoticons (shrug, tableflip, unflip, me) are plain message templates.
"""

from typing import Any, Dict, List

from ..models import (
    ArgumentChoice,
    ArgumentDefinition,
    ArgumentType,
    ArgumentValidation,
    BuiltinAction,
    ChannelConstraints,
    ChannelType,
    CommandCategory,
    CommandDefinition,
    CommandPermissions,
    MessageAction,
    ResponseConfig,
    ResponseType,
    Role,
)

SHRUG = "¯\\_(ツ)_/¯"
TABLEFLIP = "(╯°□°)╯︵ ┻━┻"
UNFLIP = "┬──┬ノ( ゜-゜ノ)"

_GUEST_OK = CommandPermissions(min_role=Role.GUEST, allow_guests=True)
_MODERATOR = CommandPermissions(min_role=Role.MODERATOR)
_ADMIN = CommandPermissions(min_role=Role.ADMIN)

_GROUP_CHANNELS = ChannelConstraints(
    allowed_channel_types=[ChannelType.PUBLIC, ChannelType.PRIVATE, ChannelType.GROUP],
    allow_in_threads=False,
)
_NAMED_CHANNELS = ChannelConstraints(
    allowed_channel_types=[ChannelType.PUBLIC, ChannelType.PRIVATE],
    allow_in_threads=False,
)

_BROADCAST = ResponseConfig(type=ResponseType.MESSAGE, ephemeral=False)


def _arg(name: str, description: str, type: ArgumentType = ArgumentType.STRING,
         **fields: Any) -> ArgumentDefinition:
    return ArgumentDefinition(name=name, description=description, type=type, **fields)


def _builtin(trigger: str, name: str, description: str,
             category: CommandCategory, order: int, **fields: Any) -> CommandDefinition:
    data: Dict[str, Any] = {
        "id": f"builtin-{trigger}",
        "trigger": trigger,
        "name": name,
        "description": description,
        "category": category,
        "order": order,
        "is_built_in": True,
        "action": BuiltinAction(handler=trigger),
    }
    data.update(fields)
    # Shared defaults are copied so no two definitions alias one model.
    for key in ("permissions", "channel_constraints", "response_config"):
        if key in data:
            data[key] = data[key].model_copy(deep=True)
    return CommandDefinition(**data)


def _emoticon(trigger: str, name: str, description: str, template: str,
              order: int, **fields: Any) -> CommandDefinition:
    return _builtin(
        trigger, name, description, CommandCategory.FUN, order,
        action_type="message",
        action=MessageAction(message=template),
        response_config=ResponseConfig(
            type=ResponseType.MESSAGE, ephemeral=False, template=template,
        ),
        **fields,
    )


def _optional_message(description: str = "Optional message to include") -> List[ArgumentDefinition]:
    return [_arg("message", description, ArgumentType.REST, position=0)]


def builtin_commands() -> List[CommandDefinition]:
    """The full built-in catalogue, in display order."""
    return [
        # General
        _builtin(
            "help", "Help", "Show available commands and help information",
            CommandCategory.GENERAL, 1,
            aliases=["?"],
            arguments=[_arg("command", "Specific command to get help for", position=0)],
            permissions=_GUEST_OK,
            usage="/help [command]",
            help_text="Lists every available command. Use /help <command> for details on one command.",
        ),
        _builtin(
            "shortcuts", "Keyboard Shortcuts", "Show keyboard shortcuts",
            CommandCategory.GENERAL, 2,
            aliases=["keys", "hotkeys"],
            permissions=_GUEST_OK,
            help_text="Displays all available keyboard shortcuts.",
        ),

        # Status
        _builtin(
            "away", "Set Away", "Set your status to away",
            CommandCategory.USER, 10,
            aliases=["brb", "afk"],
            arguments=_optional_message("Optional away message"),
            usage="/away [message]",
            help_text="Sets your status to away, optionally with a message.",
        ),
        _builtin(
            "active", "Set Active", "Set your status to active",
            CommandCategory.USER, 11,
            aliases=["back", "online"],
            help_text="Clears your away status and sets you as active.",
        ),
        _builtin(
            "status", "Set Custom Status", "Set a custom status message",
            CommandCategory.USER, 12,
            arguments=[
                _arg("message", "Status message", ArgumentType.REST, required=True, position=0),
                _arg("emoji", "Status emoji", flag="emoji", short_flag="e"),
                _arg("duration", "How long to show the status (e.g. 1h, 30m)",
                     ArgumentType.DURATION, flag="duration", short_flag="d"),
            ],
            usage="/status <message> [--emoji <emoji>] [--duration <duration>]",
            help_text="Sets a custom status with an optional emoji and expiry.",
        ),
        _builtin(
            "dnd", "Do Not Disturb", "Enable do not disturb mode",
            CommandCategory.USER, 13,
            aliases=["donotdisturb"],
            arguments=[_arg("duration", "How long to enable DND (e.g. 1h, 30m)",
                            ArgumentType.DURATION, position=0)],
            usage="/dnd [duration]",
            help_text="Silences notifications, optionally for a limited time.",
        ),

        # Channel
        _builtin(
            "mute", "Mute Channel", "Mute notifications for this channel",
            CommandCategory.CHANNEL, 20,
            arguments=[_arg("duration", "How long to mute (e.g. 1h, 30m, forever)",
                            ArgumentType.DURATION, position=0, default_value="forever")],
            usage="/mute [duration]",
            help_text="Mutes notifications from the current channel.",
        ),
        _builtin(
            "unmute", "Unmute Channel", "Unmute notifications for this channel",
            CommandCategory.CHANNEL, 21,
            help_text="Unmutes notifications from the current channel.",
        ),
        _builtin(
            "invite", "Invite User", "Invite a user to this channel",
            CommandCategory.CHANNEL, 22,
            arguments=[
                _arg("user", "User to invite", ArgumentType.USER, required=True, position=0),
                _arg("others", "More users to invite", ArgumentType.REST, position=1),
            ],
            channel_constraints=_GROUP_CHANNELS,
            usage="/invite @user [@user2...]",
            help_text="Invites one or more users to the current channel.",
        ),
        _builtin(
            "leave", "Leave Channel", "Leave the current channel",
            CommandCategory.CHANNEL, 23,
            aliases=["part"],
            channel_constraints=_GROUP_CHANNELS,
            help_text="Removes you from the current channel.",
        ),
        _builtin(
            "topic", "Set Topic", "Set the channel topic",
            CommandCategory.CHANNEL, 24,
            arguments=[_arg("topic", "New channel topic (leave empty to clear)",
                            ArgumentType.REST, position=0,
                            validation=ArgumentValidation(max_length=250))],
            permissions=_MODERATOR,
            channel_constraints=_NAMED_CHANNELS,
            usage="/topic [new topic]",
            help_text="Sets or clears the topic of the current channel.",
        ),
        _builtin(
            "rename", "Rename Channel", "Rename the current channel",
            CommandCategory.CHANNEL, 25,
            arguments=[_arg("name", "New channel name", required=True, position=0,
                            validation=ArgumentValidation(
                                min_length=2, max_length=80, pattern=r"^[a-z0-9-]+$"))],
            permissions=_ADMIN,
            channel_constraints=_NAMED_CHANNELS,
            usage="/rename <new-name>",
            help_text="Changes the name of the current channel.",
        ),
        _builtin(
            "archive", "Archive Channel", "Archive the current channel",
            CommandCategory.CHANNEL, 26,
            permissions=_ADMIN,
            channel_constraints=_NAMED_CHANNELS,
            help_text="Archives the channel. Archived channels are read-only.",
        ),

        # Utility
        _builtin(
            "remind", "Set Reminder", "Set a reminder for yourself",
            CommandCategory.UTILITY, 30,
            aliases=["reminder"],
            arguments=[
                _arg("when", "When to remind (e.g. \"in 30m\", \"tomorrow at 9am\")",
                     ArgumentType.DATETIME, required=True, position=0),
                _arg("message", "Reminder message", ArgumentType.REST, required=True, position=1),
            ],
            usage='/remind "<when>" <message>',
            help_text="Creates a reminder. Quote multi-word times: /remind \"in 30m\" stand-up.",
        ),
        _builtin(
            "poll", "Create Poll", "Create a poll in this channel",
            CommandCategory.UTILITY, 31,
            arguments=[
                _arg("question", "Poll question", required=True, position=0),
                _arg("options", "Poll options (min 2, max 10)", ArgumentType.REST,
                     required=True, position=1),
            ],
            response_config=ResponseConfig(
                type=ResponseType.MESSAGE, ephemeral=False, show_typing=True,
            ),
            usage='/poll "Question" "Option 1" "Option 2" ...',
            help_text="Creates a poll. Quote the question and each option.",
        ),
        _builtin(
            "search", "Search Messages", "Search messages in this channel",
            CommandCategory.UTILITY, 32,
            aliases=["find"],
            arguments=[
                _arg("query", "Search query", ArgumentType.REST, required=True, position=0),
                _arg("from", "Filter by author", ArgumentType.USER, flag="from", short_flag="f"),
                _arg("before", "Messages before this date", ArgumentType.DATE,
                     flag="before", short_flag="b"),
                _arg("after", "Messages after this date", ArgumentType.DATE,
                     flag="after", short_flag="a"),
            ],
            usage="/search <query> [--from @user] [--before date] [--after date]",
            help_text="Searches messages containing the text. Flags narrow the results.",
        ),

        # Fun
        _builtin(
            "giphy", "Giphy", "Search and share a GIF",
            CommandCategory.FUN, 40,
            aliases=["gif"],
            arguments=[_arg("query", "Search term", ArgumentType.REST, required=True, position=0)],
            response_config=ResponseConfig(
                type=ResponseType.MESSAGE, ephemeral=False, show_typing=True,
            ),
            usage="/giphy <search term>",
        ),
        _emoticon(
            "shrug", "Shrug", "Send a shrug emoticon",
            "{{message}} " + SHRUG, 41,
            arguments=_optional_message(),
        ),
        _emoticon(
            "tableflip", "Table Flip", "Flip a table in frustration",
            "{{message}} " + TABLEFLIP, 42,
            aliases=["flip"],
            arguments=_optional_message(),
        ),
        _emoticon(
            "unflip", "Unflip Table", "Put the table back where it belongs",
            UNFLIP, 43,
        ),
        _emoticon(
            "me", "Action Message", "Send an action message",
            "_{{display_name}} {{action}}_", 44,
            arguments=[_arg("action", "Action you are performing", ArgumentType.REST,
                            required=True, position=0)],
            help_text="Sends a message describing something you are doing.",
        ),

        # Navigation
        _builtin(
            "dm", "Direct Message", "Open a direct message with a user",
            CommandCategory.USER, 50,
            aliases=["msg"],
            arguments=[
                _arg("user", "User to message", ArgumentType.USER, required=True, position=0),
                _arg("message", "Optional first message", ArgumentType.REST, position=1),
            ],
            usage="/dm @user [message]",
            help_text="Opens a direct conversation, optionally sending a first message.",
        ),
        _builtin(
            "apps", "App Directory", "Open the app directory",
            CommandCategory.INTEGRATION, 51,
            aliases=["integrations"],
        ),
        _builtin(
            "settings", "Settings", "Open your settings",
            CommandCategory.GENERAL, 52,
            aliases=["preferences", "prefs"],
            arguments=[_arg(
                "section", "Settings section to open", ArgumentType.CHOICE, position=0,
                choices=[
                    ArgumentChoice(value="profile", label="Profile",
                                   description="Edit your profile"),
                    ArgumentChoice(value="notifications", label="Notifications",
                                   description="Notification preferences"),
                    ArgumentChoice(value="appearance", label="Appearance",
                                   description="Theme and display settings"),
                    ArgumentChoice(value="privacy", label="Privacy",
                                   description="Privacy settings"),
                    ArgumentChoice(value="advanced", label="Advanced",
                                   description="Advanced settings"),
                ],
            )],
            usage="/settings [section]",
        ),

        # Feedback
        _builtin(
            "feedback", "Send Feedback", "Send feedback or report a bug",
            CommandCategory.GENERAL, 60,
            aliases=["bug", "report"],
            arguments=_optional_message("Feedback message"),
            usage="/feedback [message]",
            help_text="Opens a form to submit feedback, suggestions or bug reports.",
        ),

        # Moderation
        _builtin(
            "kick", "Kick User", "Remove a user from this channel",
            CommandCategory.MODERATION, 70,
            arguments=[
                _arg("user", "User to kick", ArgumentType.USER, required=True, position=0),
                _arg("reason", "Reason for the kick", ArgumentType.REST, position=1),
            ],
            permissions=_MODERATOR,
            channel_constraints=_GROUP_CHANNELS,
            usage="/kick @user [reason]",
            help_text="Removes the user from the current channel.",
        ),
        _builtin(
            "ban", "Ban User", "Ban a user from this channel",
            CommandCategory.MODERATION, 71,
            arguments=[
                _arg("user", "User to ban", ArgumentType.USER, required=True, position=0),
                _arg("reason", "Reason for the ban", ArgumentType.REST, position=1),
            ],
            permissions=_ADMIN,
            channel_constraints=_GROUP_CHANNELS,
            usage="/ban @user [reason]",
            help_text="Bans the user from the current channel. Banned users cannot rejoin.",
        ),
        _builtin(
            "unban", "Unban User", "Remove a ban from a user",
            CommandCategory.MODERATION, 72,
            arguments=[_arg("user", "User to unban", ArgumentType.USER, required=True, position=0)],
            permissions=_ADMIN,
            channel_constraints=_GROUP_CHANNELS,
            usage="/unban @user",
        ),
        _builtin(
            "slow", "Slow Mode", "Enable slow mode for this channel",
            CommandCategory.MODERATION, 73,
            aliases=["slowmode"],
            arguments=[_arg("duration",
                            'Time between messages (e.g. 5s, 30s, 1m). Use "off" to disable.',
                            ArgumentType.DURATION, required=True, position=0)],
            permissions=_MODERATOR,
            channel_constraints=_NAMED_CHANNELS,
            usage="/slow <duration>",
            help_text="Limits how often users can send messages in this channel.",
        ),
        _builtin(
            "clear", "Clear Messages", "Delete recent messages",
            CommandCategory.MODERATION, 74,
            aliases=["purge"],
            arguments=[
                _arg("count", "Number of messages to delete (max 100)", ArgumentType.NUMBER,
                     required=True, position=0,
                     validation=ArgumentValidation(min=1, max=100)),
                _arg("from", "Only delete messages from this user", ArgumentType.USER,
                     flag="from", short_flag="f"),
            ],
            permissions=_ADMIN,
            usage="/clear <count> [--from @user]",
            help_text="Deletes the given number of recent messages in this channel.",
        ),
    ]

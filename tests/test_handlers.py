"""Tests for the built-in handler table."""

import pytest

from slashwire.commands import build_handler_table, builtin_commands
from slashwire.commands.base import BuiltinHandlerGroup, HandlerTable
from slashwire.exceptions import CommandExecutionError, ResolutionError
from slashwire.models import ActionType, CommandResult, ResponseType, SideEffectType
from slashwire.parsing import parse_command


@pytest.fixture
def table(registry):
    return build_handler_table(registry)


@pytest.fixture
def run(table, registry, make_context, fixed_now):
    """Parse ``text`` against the built-in it names and call its handler."""
    def _run(text, handler=None, **context_fields):
        trigger = text.split()[0].lstrip("/")
        definition = registry.resolve(trigger)
        parsed = parse_command(text, definition, now=fixed_now)
        assert parsed.is_valid, parsed.errors
        return table.get(handler or definition.trigger)(make_context(**context_fields), parsed)
    return _run


def _only_effect(result):
    assert len(result.side_effects) == 1
    return result.side_effects[0]


def test_every_builtin_action_has_a_handler(table):
    for definition in builtin_commands():
        if definition.action_type == ActionType.BUILTIN:
            assert definition.action.handler in table


class TestHandlerTable:

    def test_external_handlers(self):
        table = HandlerTable()
        handler = lambda context, parsed: CommandResult(success=True)
        table.register_external({"deploy": handler})
        assert table.get("deploy") is handler
        assert "deploy" in table.handler_names

    def test_later_registration_wins(self, registry):
        class Override(BuiltinHandlerGroup):
            def get_handlers(self):
                return {"help": self.handle}

            def handle(self, context, parsed):
                return CommandResult(success=True)

        table = build_handler_table(registry)
        group = Override(registry)
        table.register(group)
        assert table.get("help") == group.handle


class TestGeneral:

    def test_help_without_args_opens_modal(self, run):
        effect = _only_effect(run("/help"))
        assert effect.type == SideEffectType.OPEN_MODAL
        assert effect.payload["component"] == "CommandHelpModal"
        triggers = [c["trigger"] for c in effect.payload["props"]["commands"]]
        assert "help" in triggers
        assert "ban" not in triggers

    def test_help_for_command(self, run):
        result = run("/help slow")
        assert result.response.type == ResponseType.EPHEMERAL
        content = result.response.content
        assert content.startswith("**/slow** - Enable slow mode for this channel")
        assert "Usage: `/slow <duration>`" in content
        assert "Aliases: /slowmode" in content

    def test_help_accepts_leading_slash(self, run):
        assert "**/mute**" in run("/help /mute").response.content

    def test_help_unknown_command(self, run):
        with pytest.raises(ResolutionError, match="Unknown command: /nope"):
            run("/help nope")

    def test_settings_section(self, run):
        assert _only_effect(run("/settings privacy")).payload == {"url": "/settings/privacy"}
        assert _only_effect(run("/settings")).payload == {"url": "/settings"}

    def test_apps_and_shortcuts(self, run):
        assert _only_effect(run("/apps")).type == SideEffectType.NAVIGATE
        assert _only_effect(run("/shortcuts")).payload["component"] == "KeyboardShortcutsModal"

    def test_feedback_prefill(self, run):
        effect = _only_effect(run("/feedback the button is broken"))
        assert effect.payload["props"] == {"prefill": "the button is broken"}


class TestStatus:

    def test_away_with_message(self, run):
        result = run("/away lunch")
        assert result.response.content == "You are now away: lunch"
        assert _only_effect(result).payload == {
            "user_id": "u-1", "status": "away", "message": "lunch",
        }

    def test_active(self, run):
        assert _only_effect(run("/active")).payload["status"] == "online"

    def test_status_with_flags(self, run):
        result = run("/status In a meeting -e :calendar: --duration 1h")
        assert result.response.content == "Status updated: :calendar: In a meeting"
        payload = _only_effect(result).payload
        assert payload["text"] == "In a meeting"
        assert payload["expires_at"] == "2024-03-15T13:00:00+00:00"

    def test_dnd_forever_by_default(self, run):
        result = run("/dnd")
        assert result.response.content == "Do Not Disturb enabled"
        assert _only_effect(result).payload["expires_at"] is None

    def test_dnd_with_duration(self, run):
        assert run("/dnd 2h").response.content == "Do Not Disturb enabled for 2h"

    def test_dnd_off(self, run):
        result = run("/dnd off")
        assert result.response.content == "Do Not Disturb disabled"
        assert _only_effect(result).payload["status"] == "online"


class TestChannel:

    def test_mute_defaults_to_forever(self, run):
        result = run("/mute")
        assert result.response.content == "Channel muted"
        assert _only_effect(result).payload["duration"] == -1

    def test_mute_for_duration(self, run):
        result = run("/mute 30m")
        assert result.response.content == "Channel muted for 30m"
        assert _only_effect(result).payload["action"] == "mute_channel"

    @pytest.mark.parametrize("text", ["/mute 0", "/mute off"])
    def test_mute_zero_means_indefinite(self, run, text):
        result = run(text)
        assert result.response.content == "Channel muted"
        assert _only_effect(result).payload["duration"] == -1

    def test_invite_many_users(self, run):
        result = run("/invite @bob @carol bob")
        assert result.response.content == "Invited @bob, @carol to the channel"
        assert result.response.is_system
        payload = _only_effect(result).payload
        assert payload["action"] == "invite_users"
        assert payload["users"] == ["bob", "carol"]

    def test_leave_navigates_away(self, run):
        result = run("/leave")
        assert [e.type for e in result.side_effects] == [
            SideEffectType.WORKFLOW, SideEffectType.NAVIGATE,
        ]

    def test_topic_set_and_clear(self, run):
        assert run("/topic Release day").response.content == "Alice set the channel topic: Release day"
        assert run("/topic").response.content == "Alice cleared the channel topic"

    def test_rename(self, run):
        payload = _only_effect(run("/rename release-train")).payload
        assert payload == {
            "action": "rename_channel",
            "channel_id": "c-general",
            "new_name": "release-train",
            "user_id": "u-1",
        }

    def test_archive(self, run):
        assert _only_effect(run("/archive")).payload["action"] == "archive_channel"


class TestUtility:

    def test_remind(self, run):
        payload = _only_effect(run('/remind "in 30m" stand-up notes')).payload
        assert payload["action"] == "create_reminder"
        assert payload["when"] == "2024-03-15T12:30:00+00:00"
        assert payload["message"] == "stand-up notes"

    def test_poll_options_are_individual_tokens(self, run):
        payload = _only_effect(run('/poll "Lunch?" "Tacos" "Sushi place" "Pizza"')).payload
        assert payload["question"] == "Lunch?"
        assert payload["options"] == ["Tacos", "Sushi place", "Pizza"]

    def test_poll_needs_two_options(self, run):
        with pytest.raises(CommandExecutionError, match="at least 2 options"):
            run('/poll "Lunch?" "Tacos"')

    def test_poll_option_limit(self, run):
        options = " ".join(f'"o{i}"' for i in range(11))
        with pytest.raises(CommandExecutionError, match="at most 10 options"):
            run(f'/poll "Q" {options}')

    def test_search_filters(self, run):
        props = _only_effect(run("/search deploy notes --from @bob -a yesterday")).payload["props"]
        assert props["query"] == "deploy notes"
        assert props["filters"] == {"from": "bob", "before": None, "after": "2024-03-14"}

    def test_giphy(self, run):
        assert _only_effect(run("/giphy cats")).payload["props"]["query"] == "cats"

    def test_dm_with_message(self, run):
        result = run("/dm @bob hello there")
        assert result.side_effects[0].payload == {"url": "/chat/dm/bob"}
        assert result.side_effects[1].payload["message"] == "hello there"

    def test_dm_without_message(self, run):
        assert len(run("/dm bob").side_effects) == 1

    @pytest.mark.parametrize("trigger", ["me", "shrug", "tableflip", "unflip"])
    def test_text_commands_have_no_handler(self, table, registry, trigger):
        assert registry.resolve(trigger).action_type == ActionType.MESSAGE
        assert trigger not in table.handler_names


class TestModeration:

    def test_kick_with_reason(self, run):
        result = run("/kick @spammer flooding")
        assert result.response.content == "spammer has been removed from the channel: flooding"
        assert _only_effect(result).payload["action"] == "kick_user"

    def test_ban_and_unban(self, run):
        assert _only_effect(run("/ban @troll")).payload["action"] == "ban_user"
        assert _only_effect(run("/unban troll")).payload["user_id"] == "troll"

    def test_slow_mode(self, run):
        result = run("/slow 5s")
        assert result.response.content == "Slow mode enabled: 5s between messages"
        assert _only_effect(result).payload == {
            "action": "set_slow_mode", "channel_id": "c-general", "duration": 5000,
        }

    def test_slow_mode_off(self, run):
        assert run("/slow off").response.content == "Slow mode disabled"

    def test_clear(self, run):
        result = run("/clear 25 --from @bob")
        assert result.response.content == "Deleting 25 messages from @bob..."
        assert _only_effect(result).payload["count"] == 25

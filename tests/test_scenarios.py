"""End-to-end behaviour through the executor."""

import asyncio

import pytest

from slashwire.commands import CommandExecutor
from slashwire.config import Config
from slashwire.exceptions import ConfigurationError, RegistrationError
from slashwire.main import build_context
from slashwire.models import (
    ChannelType,
    CommandDefinition,
    ErrorKind,
    Role,
    SideEffect,
    SideEffectType,
)


def _custom(trigger, **fields):
    return CommandDefinition.model_validate({
        "trigger": trigger,
        "description": f"Custom {trigger}",
        "action_type": "message",
        "action": {"type": "message", "message": fields.pop("message", "ok")},
        **fields,
    })


@pytest.mark.asyncio
async def test_slow_mode_as_moderator(executor, make_context):
    result = await executor.execute("/slow 5s", make_context(role=Role.MODERATOR))

    assert result.success
    assert result.side_effects == [
        SideEffect(SideEffectType.WORKFLOW, {
            "action": "set_slow_mode",
            "channel_id": "c-general",
            "duration": 5000,
        }),
    ]
    assert result.response.content == "Slow mode enabled: 5s between messages"


@pytest.mark.asyncio
async def test_slow_mode_denied_to_member(executor, make_context):
    result = await executor.execute("/slowmode 5s", make_context(role=Role.MEMBER))
    assert result.error_kind == ErrorKind.AUTHORIZATION
    assert result.side_effects == []


@pytest.mark.asyncio
async def test_invite_without_user_is_not_executed(executor, make_context):
    result = await executor.execute("/invite", make_context())
    assert result.error_kind == ErrorKind.PARSE
    assert "Missing required argument: user" in result.error
    assert result.side_effects == []


@pytest.mark.asyncio
async def test_poll_keeps_option_order(executor, make_context):
    result = await executor.execute('/poll "Q?" "A" "B" "C"', make_context())
    payload = result.side_effects[0].payload
    assert payload["action"] == "create_poll"
    assert payload["question"] == "Q?"
    assert payload["options"] == ["A", "B", "C"]


@pytest.mark.asyncio
async def test_rest_argument_joins_quoted_tokens(executor, registry, make_context):
    registry.register(_custom(
        "say", message="{{text}}",
        arguments=[{"name": "text", "description": "Words", "type": "rest", "position": 0}],
    ))
    result = await executor.execute('/say "hello world" again', make_context())
    assert result.response.content == "hello world again"


@pytest.mark.asyncio
async def test_help_override_and_trigger_conflict(executor, registry, make_context):
    warnings = registry.register(_custom("help", message="Ask in #support"))
    assert [w.code for w in warnings] == ["TRIGGER_OVERRIDES_BUILTIN"]

    with pytest.raises(RegistrationError) as exc_info:
        registry.register(_custom("help", id="help-2"))
    assert exc_info.value.code == "TRIGGER_CONFLICT"

    result = await executor.execute("/help", make_context())
    assert result.response.content == "Ask in #support"
    # The built-in stays reachable through its alias
    builtin = await executor.execute("/?", make_context())
    assert builtin.side_effects[0].payload["component"] == "CommandHelpModal"


@pytest.mark.asyncio
async def test_allowed_users_grants_access(executor, registry, make_context):
    registry.register(_custom("standup", permissions={"min_role": "moderator"}))
    denied = await executor.execute("/standup", make_context(role=Role.MEMBER))
    assert denied.error == "This command requires moderator role or higher"

    registry.update(_custom("standup", permissions={
        "min_role": "moderator", "allowed_users": ["u-1"],
    }))
    allowed = await executor.execute("/standup", make_context(role=Role.MEMBER))
    assert allowed.success


@pytest.mark.asyncio
async def test_concurrent_invocations_are_independent(executor, make_context):
    contexts = [make_context(user_id=f"u-{i}", display_name=f"User {i}") for i in range(5)]
    results = await asyncio.gather(*(
        executor.execute(f"/me waves {i}", ctx) for i, ctx in enumerate(contexts)
    ))
    assert [r.response.content for r in results] == [
        f"_User {i} waves {i}_" for i in range(5)
    ]


@pytest.mark.asyncio
async def test_mute_default_is_forever(executor, make_context):
    result = await executor.execute("/mute", make_context())
    assert result.side_effects[0].payload["duration"] == -1


class TestConsoleContext:

    def test_from_settings(self, tmp_path):
        config = Config(tmp_path, settings={
            "console": {"user_id": "ops", "role": "admin", "channel_type": "private"},
        })
        context = build_context(config, "/slow 5s")
        assert context.user_id == "ops"
        assert context.role == Role.ADMIN
        assert context.channel_type == ChannelType.PRIVATE
        assert context.raw_input == "/slow 5s"

    @pytest.mark.asyncio
    async def test_console_actor_runs_commands(self, registry, tmp_path):
        config = Config(tmp_path, settings={
            "console": {"role": "moderator"}, "rate_limit": {"enabled": False},
        })
        executor = CommandExecutor(registry, config=config)
        result = await executor.execute("/slow off", build_context(config, "/slow off"))
        assert result.response.content == "Slow mode disabled"

    def test_unknown_role_rejected(self, tmp_path):
        config = Config(tmp_path, settings={"console": {"role": "superuser"}})
        with pytest.raises(ConfigurationError, match="Unknown console role: superuser"):
            build_context(config, "")

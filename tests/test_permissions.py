"""Tests for role and channel gating."""

import pytest

from slashwire.models import (
    ChannelConstraints,
    ChannelType,
    CommandDefinition,
    CommandPermissions,
    Role,
)
from slashwire.permissions import (
    can_see_command,
    can_use_command_in_channel,
    can_user_use_command,
    has_role_or_higher,
)


def _command(permissions=None, constraints=None):
    return CommandDefinition(
        trigger="demo",
        description="Demo command",
        permissions=permissions or CommandPermissions(),
        channel_constraints=constraints or ChannelConstraints(),
    )


class TestRoleHierarchy:

    @pytest.mark.parametrize("actual,required,expected", [
        (Role.OWNER, Role.ADMIN, True),
        (Role.ADMIN, Role.MODERATOR, True),
        (Role.MODERATOR, Role.MODERATOR, True),
        (Role.MEMBER, Role.MODERATOR, False),
        (Role.GUEST, Role.MEMBER, False),
    ])
    def test_has_role_or_higher(self, actual, required, expected):
        assert has_role_or_higher(actual, required) is expected


class TestUserPermission:

    def test_member_denied_moderator_command(self):
        cmd = _command(CommandPermissions(min_role=Role.MODERATOR))
        check = can_user_use_command(cmd, Role.MEMBER, "u-1")
        assert not check.allowed
        assert check.reason == "This command requires moderator role or higher"

    def test_allowed_users_grants_access(self):
        cmd = _command(CommandPermissions(min_role=Role.MODERATOR, allowed_users=["u-1"]))
        assert can_user_use_command(cmd, Role.MEMBER, "u-1").allowed
        assert not can_user_use_command(cmd, Role.MEMBER, "u-2").allowed

    def test_allowed_roles_grants_access(self):
        cmd = _command(CommandPermissions(min_role=Role.ADMIN, allowed_roles=[Role.MEMBER]))
        assert can_user_use_command(cmd, Role.MEMBER, "u-1").allowed

    def test_denied_users_beats_allow_list(self):
        cmd = _command(CommandPermissions(allowed_users=["u-1"], denied_users=["u-1"]))
        check = can_user_use_command(cmd, Role.MEMBER, "u-1")
        assert not check.allowed
        assert check.reason == "You are not allowed to use this command"

    @pytest.mark.parametrize("role", [Role.OWNER, Role.ADMIN])
    def test_owner_and_admin_bypass(self, role):
        cmd = _command(CommandPermissions(min_role=Role.OWNER, denied_users=["u-1"]))
        assert can_user_use_command(cmd, role, "u-1").allowed

    def test_guests_blocked_unless_allowed(self):
        cmd = _command(CommandPermissions(min_role=Role.GUEST))
        check = can_user_use_command(cmd, Role.GUEST, "g-1")
        assert check.reason == "Guests cannot use this command"
        cmd = _command(CommandPermissions(min_role=Role.GUEST, allow_guests=True))
        assert can_user_use_command(cmd, Role.GUEST, "g-1").allowed

    def test_custom_role_oracle(self):
        cmd = _command(CommandPermissions(min_role=Role.MODERATOR))
        calls = []

        def oracle(actual, required):
            calls.append((actual, required))
            return True

        assert can_user_use_command(cmd, Role.MEMBER, "u-1", role_oracle=oracle).allowed
        assert calls == [(Role.MEMBER, Role.MODERATOR)]


class TestChannelConstraints:

    def test_channel_type(self):
        cmd = _command(constraints=ChannelConstraints(allowed_channel_types=[ChannelType.PUBLIC]))
        assert can_use_command_in_channel(cmd, "c", ChannelType.PUBLIC).allowed
        check = can_use_command_in_channel(cmd, "c", ChannelType.DIRECT)
        assert check.reason == "This command cannot be used in direct channels"

    def test_threads(self):
        cmd = _command(constraints=ChannelConstraints(allow_in_threads=False))
        assert can_use_command_in_channel(cmd, "c", ChannelType.PUBLIC).allowed
        check = can_use_command_in_channel(cmd, "c", ChannelType.PUBLIC, in_thread=True)
        assert check.reason == "This command cannot be used in threads"

    def test_blocked_channel(self):
        cmd = _command(constraints=ChannelConstraints(blocked_channels=["c-1"]))
        assert not can_use_command_in_channel(cmd, "c-1", ChannelType.PUBLIC).allowed
        assert can_use_command_in_channel(cmd, "c-2", ChannelType.PUBLIC).allowed

    def test_allow_list_overrides_type_and_thread_rules(self):
        cmd = _command(constraints=ChannelConstraints(
            allowed_channel_types=[ChannelType.PUBLIC],
            allowed_channels=["c-ops"],
            allow_in_threads=False,
        ))
        assert can_use_command_in_channel(cmd, "c-ops", ChannelType.DIRECT, in_thread=True).allowed
        assert not can_use_command_in_channel(cmd, "c-other", ChannelType.PUBLIC).allowed

    def test_block_list_beats_allow_list(self):
        cmd = _command(constraints=ChannelConstraints(
            allowed_channels=["c-1"], blocked_channels=["c-1"],
        ))
        assert not can_use_command_in_channel(cmd, "c-1", ChannelType.PUBLIC).allowed


class TestVisibility:

    def test_hidden_below_min_role(self):
        cmd = _command(CommandPermissions(min_role=Role.ADMIN))
        assert not can_see_command(cmd, Role.MEMBER)
        assert can_see_command(cmd, Role.ADMIN)

    def test_hidden_in_wrong_channel_type(self):
        cmd = _command(constraints=ChannelConstraints(allowed_channel_types=[ChannelType.PUBLIC]))
        assert not can_see_command(cmd, Role.OWNER, ChannelType.DIRECT)
        assert can_see_command(cmd, Role.OWNER)

"""Role hierarchy and per-command user/channel gating.

The role oracle is injectable: ``CommandExecutor`` accepts any callable
with the signature of ``has_role_or_higher`` so a host application can
plug in its own RBAC.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .models import ChannelType, CommandDefinition, Role

RoleOracle = Callable[[Role, Role], bool]

# Highest first
ROLE_HIERARCHY = (Role.OWNER, Role.ADMIN, Role.MODERATOR, Role.MEMBER, Role.GUEST)

_ROLE_LEVEL: Dict[Role, int] = {
    role: len(ROLE_HIERARCHY) - i for i, role in enumerate(ROLE_HIERARCHY)
}

_BYPASS_ROLES = frozenset({Role.OWNER, Role.ADMIN})


@dataclass
class PermissionCheck:
    allowed: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "PermissionCheck":
        return cls(True)

    @classmethod
    def deny(cls, reason: str) -> "PermissionCheck":
        return cls(False, reason)


def role_level(role: Role) -> int:
    return _ROLE_LEVEL[Role(role)]


def has_role_or_higher(actual: Role, required: Role) -> bool:
    """Default role oracle: owner > admin > moderator > member > guest."""
    return role_level(actual) >= role_level(required)


def can_user_use_command(
    command: CommandDefinition,
    role: Role,
    user_id: str,
    role_oracle: RoleOracle = has_role_or_higher,
) -> PermissionCheck:
    """Check whether an actor may run ``command``.

    Order: owner/admin bypass, deny list, guest gate, explicit allow
    lists, then the minimum role.
    """
    perms = command.permissions

    if role in _BYPASS_ROLES:
        return PermissionCheck.allow()

    if perms.denied_users and user_id in perms.denied_users:
        return PermissionCheck.deny("You are not allowed to use this command")

    if role == Role.GUEST and not perms.allow_guests:
        return PermissionCheck.deny("Guests cannot use this command")

    if perms.allowed_users and user_id in perms.allowed_users:
        return PermissionCheck.allow()

    if perms.allowed_roles and role in perms.allowed_roles:
        return PermissionCheck.allow()

    if role_oracle(role, perms.min_role):
        return PermissionCheck.allow()

    return PermissionCheck.deny(
        f"This command requires {perms.min_role.value} role or higher"
    )


def can_use_command_in_channel(
    command: CommandDefinition,
    channel_id: str,
    channel_type: ChannelType,
    in_thread: bool = False,
) -> PermissionCheck:
    """Check the channel constraints of ``command``.

    Block list first; membership in a non-empty allow list overrides the
    type and thread rules, absence from it denies.
    """
    constraints = command.channel_constraints

    if constraints.blocked_channels and channel_id in constraints.blocked_channels:
        return PermissionCheck.deny("This command is disabled in this channel")

    if constraints.allowed_channels:
        if channel_id in constraints.allowed_channels:
            return PermissionCheck.allow()
        return PermissionCheck.deny("This command is not available in this channel")

    if channel_type not in constraints.allowed_channel_types:
        return PermissionCheck.deny(
            f"This command cannot be used in {ChannelType(channel_type).value} channels"
        )

    if in_thread and not constraints.allow_in_threads:
        return PermissionCheck.deny("This command cannot be used in threads")

    return PermissionCheck.allow()


def can_see_command(
    command: CommandDefinition,
    role: Role,
    channel_type: Optional[ChannelType] = None,
    role_oracle: RoleOracle = has_role_or_higher,
) -> bool:
    """Menu filter used by suggestions: role gate plus channel type only."""
    if role not in _BYPASS_ROLES:
        perms = command.permissions
        if role == Role.GUEST and not perms.allow_guests:
            return False
        explicitly_allowed = bool(perms.allowed_roles and role in perms.allowed_roles)
        if not explicitly_allowed and not role_oracle(role, perms.min_role):
            return False
    if channel_type is not None:
        return channel_type in command.channel_constraints.allowed_channel_types
    return True

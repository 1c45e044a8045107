"""Shared fixtures for slashwire tests."""

from datetime import datetime, timezone

import pytest

from slashwire.commands import CommandExecutor, CommandRegistry
from slashwire.config import Config
from slashwire.models import ChannelType, CommandContext, Role

FIXED_NOW = datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def config(tmp_path):
    """Config isolated from the repo's config directory; rate limiting off."""
    return Config(config_dir=tmp_path, settings={"rate_limit": {"enabled": False}})


@pytest.fixture
def registry(config):
    return CommandRegistry.with_builtins(config)


@pytest.fixture
def executor(registry, config):
    return CommandExecutor(registry, config=config)


@pytest.fixture
def make_context():
    def _make(role=Role.MEMBER, **overrides):
        fields = dict(
            user_id="u-1",
            username="alice",
            role=role,
            channel_id="c-general",
            channel_name="general",
            channel_type=ChannelType.PUBLIC,
            display_name="Alice",
            timestamp=FIXED_NOW,
        )
        fields.update(overrides)
        return CommandContext(**fields)
    return _make


@pytest.fixture
def fixed_now():
    return FIXED_NOW

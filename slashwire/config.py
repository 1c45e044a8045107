"""Configuration management for slashwire.

Loads YAML settings (settings.yaml, commands.yaml) and environment
variables (.env) into a typed Config object. Property getters provide
safe access with defaults for every subsystem: webhook calls, rate
limiting, input limits, reserved triggers, logging and the console host.

Key classes:
    Config: Central configuration manager.

Key functions:
    get_config: Singleton accessor for the global Config instance.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
import yaml
from dotenv import load_dotenv

logger = structlog.get_logger("slashwire")

WEBHOOK_TIMEOUT_MIN_MS = 1000
WEBHOOK_TIMEOUT_MAX_MS = 30000
WEBHOOK_MAX_RETRIES = 3

_DEFAULT_RESERVED = ["help", "commands", "admin", "debug", "system"]


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


class Config:
    """Central configuration manager for slashwire.

    Loads settings.yaml, commands.yaml and .env from the config
    directory. Read-only after __init__ except for the custom command
    helpers, which rewrite commands.yaml.

    Args:
        config_dir: Path to the config directory. Defaults to
            ``$SLASHWIRE_CONFIG_DIR`` or ``<repo_root>/config/``.
        settings: Settings dict used instead of settings.yaml.
    """

    def __init__(
        self,
        config_dir: Optional[Path] = None,
        settings: Optional[Dict[str, Any]] = None,
    ):
        if config_dir is None:
            env_dir = os.environ.get("SLASHWIRE_CONFIG_DIR")
            config_dir = Path(env_dir) if env_dir else Path(__file__).parent.parent / "config"
        self.config_dir = Path(config_dir)

        env_file = self.config_dir / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        self.settings = settings if settings is not None else self._load_yaml("settings.yaml")
        self.commands = self._load_yaml("commands.yaml") or {"commands": []}

    def _load_yaml(self, filename: str) -> dict:
        """Load a YAML configuration file."""
        filepath = self.config_dir / filename
        if filepath.exists():
            with open(filepath, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            if isinstance(data, list):
                # commands.yaml may be a bare list of definitions
                return {"commands": data}
            return data
        return {}

    def save_commands(self):
        """Save the custom commands configuration."""
        filepath = self.config_dir / "commands.yaml"
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(filepath, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.commands, f, default_flow_style=False, allow_unicode=True)

    def validate(self):
        """Validate settings at startup.

        Logs errors for out-of-range values but does not raise; the
        property getters clamp or fall back to defaults.
        """
        webhook = self.settings.get("webhook", {})
        if isinstance(webhook, dict):
            timeout = webhook.get("timeout_ms")
            if timeout is not None and (
                not isinstance(timeout, int)
                or not WEBHOOK_TIMEOUT_MIN_MS <= timeout <= WEBHOOK_TIMEOUT_MAX_MS
            ):
                logger.error(
                    "config_invalid_value",
                    key="webhook.timeout_ms",
                    value=timeout,
                    valid=f"{WEBHOOK_TIMEOUT_MIN_MS}-{WEBHOOK_TIMEOUT_MAX_MS}",
                )
            retries = webhook.get("max_retries")
            if retries is not None and (
                not isinstance(retries, int) or not 0 <= retries <= WEBHOOK_MAX_RETRIES
            ):
                logger.error(
                    "config_invalid_value",
                    key="webhook.max_retries",
                    value=retries,
                    valid=f"0-{WEBHOOK_MAX_RETRIES}",
                )

        rate = self.settings.get("rate_limit", {})
        if isinstance(rate, dict):
            max_requests = rate.get("max_requests")
            if max_requests is not None and (not isinstance(max_requests, int) or max_requests < 1):
                logger.error(
                    "config_invalid_value", key="rate_limit.max_requests",
                    value=max_requests, valid=">=1",
                )

        commands = self.commands.get("commands", [])
        if not isinstance(commands, list):
            logger.error("custom_commands_invalid_type", type=type(commands).__name__)

    # --- Webhook ---

    @property
    def webhook_timeout_ms(self) -> int:
        """Default webhook timeout, clamped to 1000..30000 ms.

        Env var SLASHWIRE_WEBHOOK_TIMEOUT_MS takes precedence.
        """
        raw = os.environ.get("SLASHWIRE_WEBHOOK_TIMEOUT_MS")
        if raw is None:
            raw = self.settings.get("webhook", {}).get("timeout_ms", 10000)
        try:
            value = int(raw)
        except (TypeError, ValueError):
            logger.warning("webhook_timeout_invalid", value=raw)
            value = 10000
        return _clamp(value, WEBHOOK_TIMEOUT_MIN_MS, WEBHOOK_TIMEOUT_MAX_MS)

    @property
    def webhook_max_retries(self) -> int:
        """Default retry count for failed webhook calls, clamped to 0..3."""
        value = self.settings.get("webhook", {}).get("max_retries", 0)
        if not isinstance(value, int):
            return 0
        return _clamp(value, 0, WEBHOOK_MAX_RETRIES)

    @property
    def webhook_retry_backoff_ms(self) -> int:
        """Delay before the first retry; doubles on each further attempt."""
        return self.settings.get("webhook", {}).get("retry_backoff_ms", 250)

    # --- Rate limiting & input ---

    @property
    def rate_limit_enabled(self) -> bool:
        return self.settings.get("rate_limit", {}).get("enabled", True)

    @property
    def rate_limit_window_seconds(self) -> int:
        return self.settings.get("rate_limit", {}).get("window_seconds", 60)

    @property
    def rate_limit_max_requests(self) -> int:
        return self.settings.get("rate_limit", {}).get("max_requests", 30)

    @property
    def max_input_length(self) -> int:
        """Raw command lines are truncated to this many characters (default 4000)."""
        return self.settings.get("max_input_length", 4000)

    # --- Commands ---

    @property
    def reserved_triggers(self) -> List[str]:
        """Triggers custom commands may not use."""
        reserved = self.settings.get("reserved_triggers", _DEFAULT_RESERVED)
        if not isinstance(reserved, list):
            logger.error("reserved_triggers_invalid_type", type=type(reserved).__name__)
            return list(_DEFAULT_RESERVED)
        return [str(t).lower() for t in reserved]

    @property
    def custom_commands(self) -> List[Dict[str, Any]]:
        """Raw custom command definitions from commands.yaml."""
        commands = self.commands.get("commands", [])
        if not isinstance(commands, list):
            return []
        return [c for c in commands if isinstance(c, dict)]

    def add_custom_command(self, definition: Dict[str, Any]) -> bool:
        """Append a definition to commands.yaml.

        Returns:
            True if added, False if a command with that trigger exists.
        """
        trigger = str(definition.get("trigger", "")).lower()
        for existing in self.custom_commands:
            if str(existing.get("trigger", "")).lower() == trigger:
                return False
        self.commands.setdefault("commands", []).append(definition)
        self.save_commands()
        return True

    def remove_custom_command(self, trigger: str) -> bool:
        """Remove a definition from commands.yaml by trigger (case-insensitive)."""
        commands = self.commands.get("commands", [])
        for i, existing in enumerate(commands):
            if str(existing.get("trigger", "")).lower() == trigger.lower():
                commands.pop(i)
                self.save_commands()
                return True
        return False

    # --- Logging ---

    @property
    def log_dir(self) -> Path:
        """Get log directory path."""
        configured = self.settings.get("log_dir")
        if configured:
            return Path(configured).expanduser()
        return Path(__file__).parent.parent / "logs"

    @property
    def logging_level(self) -> str:
        """Global log level (default INFO). Controls console and combined file."""
        return self.settings.get("logging", {}).get("level", "INFO")

    @property
    def logging_subsystem_levels(self) -> dict:
        """Per-subsystem log level overrides. E.g. {"webhook": "DEBUG"}."""
        return self.settings.get("logging", {}).get("subsystem_levels", {})

    @property
    def logging_max_file_size_mb(self) -> int:
        """Max size per log file in MB before rotation (default 10)."""
        return self.settings.get("logging", {}).get("max_file_size_mb", 10)

    @property
    def logging_backup_count(self) -> int:
        """Number of rotated log files to keep (default 5)."""
        return self.settings.get("logging", {}).get("backup_count", 5)

    # --- Console host ---

    @property
    def console_user_id(self) -> str:
        return self.settings.get("console", {}).get("user_id", "console")

    @property
    def console_role(self) -> str:
        return self.settings.get("console", {}).get("role", "member")

    @property
    def console_channel_type(self) -> str:
        return self.settings.get("console", {}).get("channel_type", "public")

    @property
    def console_channel_id(self) -> str:
        return self.settings.get("console", {}).get("channel_id", "console")


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config

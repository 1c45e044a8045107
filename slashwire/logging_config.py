"""Logging configuration for slashwire.

Routes each subsystem to its own rotating log file, scrubs credentials
from every event, and wires structlog on top of stdlib logging.

Logger tree (stdlib dotted names, structlog wraps them):
    root              → StreamHandler (stderr)
      └─ slashwire    → RotatingFileHandler → slashwire.log (combined)
           ├─ slashwire.registry  → RFH → registry.log
           ├─ slashwire.parser    → RFH → parser.log
           ├─ slashwire.executor  → RFH → executor.log
           ├─ slashwire.webhook   → RFH → webhook.log
           └─ slashwire.security  → RFH → security.log

Console output goes to stderr because stdout carries command results
in the console host.
"""

import logging
import logging.handlers
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping

import structlog

SUBSYSTEMS = ("registry", "parser", "executor", "webhook", "security")

LOGGER_PREFIX = "slashwire"

_MB = 1024 * 1024

# --- Credential scrubbing ---

_TOKEN_PATTERNS = (
    re.compile(r"sk-[a-zA-Z0-9_-]{20,}"),
    re.compile(r"xox[abpr]-[a-zA-Z0-9-]{10,}"),
    re.compile(r"(?:Bearer|Basic)\s+[a-zA-Z0-9_./+=-]{8,}"),
    # ?token=... and &api_key=... in webhook URLs
    re.compile(r"(?i)(?<=[?&])(?:api_key|apikey|token|access_token|secret)=[^&\s]+"),
)

_CREDENTIAL_KEY = re.compile(
    r"(authorization|api[-_]?key|token|secret|password|cookie)", re.IGNORECASE
)

_REDACTED = "***REDACTED***"


def _redact_text(text: str) -> str:
    for pattern in _TOKEN_PATTERNS:
        text = pattern.sub(_REDACTED, text)
    return text


def _redact(value: Any) -> Any:
    """Scrub strings anywhere inside lists, tuples and dicts."""
    if isinstance(value, str):
        return _redact_text(value)
    if isinstance(value, (list, tuple)):
        return type(value)(_redact(v) for v in value)
    if isinstance(value, Mapping):
        return {
            k: _REDACTED if isinstance(k, str) and v and _CREDENTIAL_KEY.search(k) else _redact(v)
            for k, v in value.items()
        }
    return value


def sanitize_secrets(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """structlog processor that scrubs credentials from every event.

    Token-shaped substrings (API keys, bearer credentials, secret query
    parameters) are replaced in every string value. Inside dict values,
    credential-named keys such as ``Authorization`` are masked outright.
    """
    return {key: _redact(value) for key, value in event_dict.items()}


# --- Setup ---

@dataclass
class _LogSettings:
    log_dir: Path = field(default_factory=lambda: Path(__file__).parent.parent / "logs")
    level: int = logging.INFO
    subsystem_levels: Dict[str, int] = field(default_factory=dict)
    max_bytes: int = 10 * _MB
    backup_count: int = 5
    cache_loggers: bool = False

    @classmethod
    def from_config(cls, config) -> "_LogSettings":
        level = _level(config.logging_level, logging.INFO)
        return cls(
            log_dir=config.log_dir,
            level=level,
            subsystem_levels={
                name: _level(value, level)
                for name, value in (config.logging_subsystem_levels or {}).items()
            },
            max_bytes=config.logging_max_file_size_mb * _MB,
            backup_count=config.logging_backup_count,
            cache_loggers=True,
        )


def _level(name: Any, fallback: int) -> int:
    if not name:
        return fallback
    value = getattr(logging, str(name).upper(), None)
    return value if isinstance(value, int) else fallback


def _file_formatter() -> logging.Formatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
    )


def _attach_file(
    logger: logging.Logger,
    path: Path,
    level: int,
    settings: _LogSettings,
    formatter: logging.Formatter,
) -> None:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=settings.max_bytes,
        backupCount=settings.backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def _prepare_log_dir(log_dir: Path) -> bool:
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        # Console-only; the engine keeps running without log files
        print(
            f"WARNING: Cannot create log directory {log_dir}: {exc}. "
            "Falling back to console-only logging.",
            file=sys.stderr,
        )
        return False
    return True


def _reset(logger: logging.Logger, level: int) -> logging.Logger:
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = True
    return logger


def setup_logging(config=None) -> None:
    """Configure stdlib handlers and structlog.

    Called twice by the console host: first without a config (defaults,
    loggers not cached) so import-time log calls work, then with the
    loaded Config (file sizes, levels, log_dir; loggers cached).

    Every subsystem logger propagates upward, so an event lands in its
    subsystem file, the combined ``slashwire.log`` and the console.

    Args:
        config: Optional Config instance.
    """
    settings = _LogSettings.from_config(config) if config is not None else _LogSettings()
    files_ok = _prepare_log_dir(settings.log_dir)
    formatter = _file_formatter()

    root = _reset(logging.getLogger(), logging.DEBUG)  # handlers filter by level
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(settings.level)
    console.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    root.addHandler(console)

    combined = _reset(logging.getLogger(LOGGER_PREFIX), logging.DEBUG)
    if files_ok:
        _attach_file(combined, settings.log_dir / "slashwire.log", settings.level, settings, formatter)

    for subsystem in SUBSYSTEMS:
        level = settings.subsystem_levels.get(subsystem, settings.level)
        sub_logger = _reset(logging.getLogger(f"{LOGGER_PREFIX}.{subsystem}"), level)
        if files_ok:
            _attach_file(sub_logger, settings.log_dir / f"{subsystem}.log", level, settings, formatter)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            sanitize_secrets,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=settings.cache_loggers,
    )


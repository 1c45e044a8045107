"""Command registry: trigger/alias resolution with built-in shadowing.

Built-in and custom definitions live in separate trigger maps. Lookup
checks the custom map first, so a custom command may shadow a built-in
trigger (a warning at registration, not an error) while the built-in
stays reachable through ``get(id)``. Two custom commands may never share
a trigger or alias.

Writers serialize on a lock and publish a brand-new immutable snapshot;
readers just grab the current snapshot, so a concurrent ``resolve()``
sees either the old or the new definition, never a half-applied update.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping, Optional

import structlog

from ..exceptions import RegistrationError
from ..models import (
    ChannelType,
    CommandCategory,
    CommandDefinition,
    Role,
    ValidationIssue,
)
from ..permissions import RoleOracle, can_see_command, has_role_or_higher
from .builtins import builtin_commands

if TYPE_CHECKING:
    from ..config import Config

logger = structlog.get_logger("slashwire.registry")

# Search ranking
SCORE_EXACT = 100
SCORE_TRIGGER_PREFIX = 80
SCORE_TRIGGER_SUBSTRING = 60
SCORE_NAME = 50
SCORE_DESCRIPTION = 40
SCORE_ALIAS = 30


@dataclass(frozen=True)
class _Snapshot:
    by_id: Mapping[str, CommandDefinition]
    builtin_triggers: Mapping[str, CommandDefinition]
    custom_triggers: Mapping[str, CommandDefinition]


@dataclass
class CommandSuggestion:
    definition: CommandDefinition
    score: int


def _normalize(trigger: str) -> str:
    key = trigger.strip().lower()
    return key[1:] if key.startswith("/") else key


def _build_snapshot(definitions: Iterable[CommandDefinition]) -> _Snapshot:
    by_id: Dict[str, CommandDefinition] = {}
    builtin: Dict[str, CommandDefinition] = {}
    custom: Dict[str, CommandDefinition] = {}
    for definition in definitions:
        by_id[definition.id] = definition
        target = builtin if definition.is_built_in else custom
        for key in definition.all_triggers():
            target[key] = definition
    return _Snapshot(
        MappingProxyType(by_id),
        MappingProxyType(builtin),
        MappingProxyType(custom),
    )


class CommandRegistry:
    """Holds built-in and custom command definitions.

    Owned by the host application and passed to the executor; there is
    no module-level instance.
    """

    def __init__(self, config: Optional["Config"] = None):
        self.config = config
        self._lock = threading.Lock()
        self._snapshot = _build_snapshot([])

    @classmethod
    def with_builtins(cls, config: Optional["Config"] = None) -> "CommandRegistry":
        """Registry pre-loaded with the built-in catalogue."""
        registry = cls(config=config)
        registry.register_many(builtin_commands())
        return registry

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def register(self, definition: CommandDefinition) -> List[ValidationIssue]:
        """Add a definition.

        Returns:
            Warnings, e.g. TRIGGER_OVERRIDES_BUILTIN when a custom
            command shadows a built-in.

        Raises:
            RegistrationError: Duplicate id, or a trigger/alias already
                owned by another command of the same kind.
        """
        definition = definition.model_copy(deep=True)
        with self._lock:
            current = self._snapshot
            if definition.id in current.by_id:
                raise RegistrationError(
                    f"A command with id '{definition.id}' is already registered",
                    code="DUPLICATE_ID",
                    command_id=definition.id,
                )
            warnings = self._check_conflicts(definition, current)
            self._snapshot = _build_snapshot([*current.by_id.values(), definition])

        self._log_registered(definition, warnings)
        return warnings

    def register_many(self, definitions: Iterable[CommandDefinition]) -> List[ValidationIssue]:
        warnings: List[ValidationIssue] = []
        for definition in definitions:
            warnings.extend(self.register(definition))
        return warnings

    def update(self, definition: CommandDefinition) -> List[ValidationIssue]:
        """Replace the definition with the same id.

        Raises:
            RegistrationError: Unknown id, or the new triggers conflict.
        """
        definition = definition.model_copy(deep=True)
        with self._lock:
            current = self._snapshot
            existing = current.by_id.get(definition.id)
            if existing is None:
                raise RegistrationError(
                    f"No command with id '{definition.id}'",
                    code="UNKNOWN_COMMAND",
                    command_id=definition.id,
                )
            if existing.is_built_in != definition.is_built_in:
                raise RegistrationError(
                    f"Command '{definition.id}' cannot change between built-in and custom",
                    code="BUILTIN_FLAG_CHANGED",
                    command_id=definition.id,
                )
            others = [d for d in current.by_id.values() if d.id != definition.id]
            warnings = self._check_conflicts(definition, _build_snapshot(others))
            self._snapshot = _build_snapshot([*others, definition])

        logger.info("command_updated", command_id=definition.id, trigger=definition.trigger)
        return warnings

    def set_enabled(self, command_id: str, enabled: bool) -> bool:
        """Enable or disable a command by id. Returns False if unknown."""
        with self._lock:
            current = self._snapshot
            existing = current.by_id.get(command_id)
            if existing is None:
                return False
            replacement = existing.model_copy(update={"is_enabled": enabled})
            self._snapshot = _build_snapshot(
                replacement if d.id == command_id else d for d in current.by_id.values()
            )
        logger.info("command_enabled_changed", command_id=command_id, enabled=enabled)
        return True

    def unregister(self, command_id: str) -> bool:
        """Remove a custom command. Built-ins cannot be removed."""
        with self._lock:
            current = self._snapshot
            existing = current.by_id.get(command_id)
            if existing is None:
                return False
            if existing.is_built_in:
                logger.warning("builtin_unregister_refused", command_id=command_id)
                return False
            self._snapshot = _build_snapshot(
                d for d in current.by_id.values() if d.id != command_id
            )
        logger.info("command_unregistered", command_id=command_id, trigger=existing.trigger)
        return True

    def clear_custom(self) -> int:
        """Remove every custom command; returns how many were removed."""
        with self._lock:
            current = self._snapshot
            kept = [d for d in current.by_id.values() if d.is_built_in]
            removed = len(current.by_id) - len(kept)
            self._snapshot = _build_snapshot(kept)
        if removed:
            logger.info("custom_commands_cleared", count=removed)
        return removed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def resolve(self, trigger: str) -> Optional[CommandDefinition]:
        """Definition owning ``trigger`` (or alias), custom before built-in."""
        key = _normalize(trigger)
        snapshot = self._snapshot
        return snapshot.custom_triggers.get(key) or snapshot.builtin_triggers.get(key)

    def get(self, command_id: str) -> Optional[CommandDefinition]:
        return self._snapshot.by_id.get(command_id)

    def custom_owner(self, trigger: str) -> Optional[CommandDefinition]:
        return self._snapshot.custom_triggers.get(_normalize(trigger))

    def builtin_owner(self, trigger: str) -> Optional[CommandDefinition]:
        return self._snapshot.builtin_triggers.get(_normalize(trigger))

    def all(self) -> List[CommandDefinition]:
        """Every registered definition (shadowed built-ins included), by order."""
        return sorted(self._snapshot.by_id.values(), key=lambda d: (d.order, d.trigger))

    def enabled(self) -> List[CommandDefinition]:
        """Enabled definitions reachable by their trigger."""
        return [d for d in self._reachable() if d.is_enabled]

    def by_category(self) -> Dict[CommandCategory, List[CommandDefinition]]:
        grouped: Dict[CommandCategory, List[CommandDefinition]] = {}
        for definition in self.enabled():
            grouped.setdefault(definition.category, []).append(definition)
        return grouped

    def search(self, query: str, limit: Optional[int] = None) -> List[CommandDefinition]:
        """Enabled commands matching ``query``, best match first."""
        return [s.definition for s in self._rank(self.enabled(), query, limit)]

    def suggest(
        self,
        query: str,
        role: Optional[Role] = None,
        channel_type: Optional[ChannelType] = None,
        limit: int = 10,
        role_oracle: RoleOracle = has_role_or_higher,
    ) -> List[CommandSuggestion]:
        """Autocomplete suggestions the actor is allowed to see."""
        candidates = [
            d for d in self.enabled()
            if role is None or can_see_command(d, role, channel_type, role_oracle)
        ]
        if role is None and channel_type is not None:
            candidates = [
                d for d in candidates
                if channel_type in d.channel_constraints.allowed_channel_types
            ]
        return self._rank(candidates, query, limit)

    def __len__(self) -> int:
        return len(self._snapshot.by_id)

    def __contains__(self, trigger_or_id: object) -> bool:
        if not isinstance(trigger_or_id, str):
            return False
        return self.resolve(trigger_or_id) is not None or trigger_or_id in self._snapshot.by_id

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _reachable(self) -> List[CommandDefinition]:
        snapshot = self._snapshot
        reachable = []
        for definition in snapshot.by_id.values():
            key = definition.trigger.lower()
            owner = snapshot.custom_triggers.get(key) or snapshot.builtin_triggers.get(key)
            if owner is not None and owner.id == definition.id:
                reachable.append(definition)
        return sorted(reachable, key=lambda d: (d.order, d.trigger))

    @staticmethod
    def _check_conflicts(
        definition: CommandDefinition,
        snapshot: _Snapshot,
    ) -> List[ValidationIssue]:
        own_map = snapshot.builtin_triggers if definition.is_built_in else snapshot.custom_triggers
        warnings: List[ValidationIssue] = []

        for i, key in enumerate(definition.all_triggers()):
            is_trigger = i == 0
            owner = own_map.get(key)
            if owner is not None:
                code = "TRIGGER_CONFLICT" if is_trigger else "ALIAS_CONFLICT"
                raise RegistrationError(
                    f"/{key} is already used by command '{owner.id}'",
                    code=code,
                    issues=[ValidationIssue(code, f"/{key} is already used by '{owner.id}'", "trigger")],
                    trigger=key,
                )
            if not definition.is_built_in and key in snapshot.builtin_triggers:
                code = "TRIGGER_OVERRIDES_BUILTIN" if is_trigger else "ALIAS_OVERRIDES_BUILTIN"
                warnings.append(ValidationIssue(
                    code,
                    f"/{key} overrides the built-in command",
                    "trigger" if is_trigger else "aliases",
                ))
        return warnings

    @staticmethod
    def _rank(
        candidates: Iterable[CommandDefinition],
        query: str,
        limit: Optional[int],
    ) -> List[CommandSuggestion]:
        q = _normalize(query)
        scored = []
        for definition in candidates:
            score = score_match(definition, q)
            if score > 0 or not q:
                scored.append(CommandSuggestion(definition, score))
        scored.sort(key=lambda s: (-s.score, s.definition.order, s.definition.trigger))
        return scored[:limit] if limit is not None else scored

    @staticmethod
    def _log_registered(definition: CommandDefinition, warnings: List[ValidationIssue]) -> None:
        logger.debug(
            "command_registered",
            command_id=definition.id,
            trigger=definition.trigger,
            built_in=definition.is_built_in,
        )
        for issue in warnings:
            logger.warning(
                "command_overrides_builtin",
                command_id=definition.id,
                code=issue.code,
                detail=issue.message,
            )


def score_match(definition: CommandDefinition, query: str) -> int:
    """Rank a definition against a normalized (lowercase) query.

    Exact id/trigger 100, trigger prefix 80, trigger substring 60, name 50,
    description 40, alias 30, no match 0.
    """
    if not query:
        return 0
    trigger = definition.trigger.lower()
    if query == trigger or query == definition.id.lower():
        return SCORE_EXACT
    if trigger.startswith(query):
        return SCORE_TRIGGER_PREFIX
    if query in trigger:
        return SCORE_TRIGGER_SUBSTRING
    if query in definition.name.lower():
        return SCORE_NAME
    if query in definition.description.lower():
        return SCORE_DESCRIPTION
    if any(query in alias.lower() for alias in definition.aliases):
        return SCORE_ALIAS
    return 0


def load_custom_commands(
    registry: CommandRegistry,
    config: Optional["Config"] = None,
) -> List[str]:
    """Validate and register every custom command from ``commands.yaml``.

    Invalid entries are logged and skipped. Returns the ids registered.
    """
    from ..config import get_config
    from .validator import validate_definition

    config = config or registry.config or get_config()
    registered: List[str] = []

    for raw in config.custom_commands:
        draft = {**raw, "is_built_in": False}
        report = validate_definition(draft, registry=registry, config=config)
        if not report.is_valid:
            logger.warning(
                "custom_command_invalid",
                trigger=raw.get("trigger"),
                errors=report.error_codes,
            )
            continue
        definition = CommandDefinition.model_validate(draft)
        try:
            registry.register(definition)
        except RegistrationError as e:
            logger.warning(
                "custom_command_rejected",
                trigger=definition.trigger,
                code=e.code,
                error=e.message,
            )
            continue
        registered.append(definition.id)

    logger.info("custom_commands_loaded", count=len(registered))
    return registered

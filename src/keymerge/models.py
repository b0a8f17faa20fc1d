"""Data model for keybinding records, conflicts and merge results."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

from .errors import InvalidKeybindError
from .normalizer import normalize_key

MERGED_CONFIG_VERSION = "2.0"

logger = logging.getLogger(__name__)


class Source(str, Enum):
    SYSTEM = "system"
    DEFAULT = "default"
    USER = "user"
    GENERATED = "generated"


class Priority(IntEnum):
    """Numeric tier derived from a record's source; lower wins ties."""

    SYSTEM_RESERVED = 0
    TOOL_DEFAULT = 1
    USER_OVERRIDE = 2
    GENERATED = 3


SOURCE_PRIORITY: dict[Source, Priority] = {
    Source.SYSTEM: Priority.SYSTEM_RESERVED,
    Source.DEFAULT: Priority.TOOL_DEFAULT,
    Source.USER: Priority.USER_OVERRIDE,
    Source.GENERATED: Priority.GENERATED,
}

# Layer order used for intra-tool merging.
LAYER_ORDER: tuple[Source, ...] = (Source.SYSTEM, Source.DEFAULT, Source.USER, Source.GENERATED)


class Frequency(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


FREQUENCY_RANK: dict[Frequency, int] = {Frequency.HIGH: 0, Frequency.MEDIUM: 1, Frequency.LOW: 2}


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ConflictType(str, Enum):
    HARD_COLLISION = "hard"
    SOFT_COLLISION = "soft"
    SHADOW_COLLISION = "shadow"
    CROSS_TOOL = "cross-tool"
    SYSTEM_OVERRIDE = "system"
    RULE_VIOLATION = "rule"


@dataclass
class Keybind:
    """One candidate key assignment produced by an extractor.

    The canonical key (``normalized``, ``modifiers``, ``key_sequence``) is
    derived from ``key`` on construction. Only the merger mutates
    ``disabled`` and ``conflicts``.
    """

    id: str
    tool: str
    key: str
    action: str = ""
    context: str = "global"
    source: Source = Source.DEFAULT
    frequency: Frequency | None = Frequency.MEDIUM
    difficulty: Difficulty | None = Difficulty.INTERMEDIATE
    category: str = ""
    tags: list[str] = field(default_factory=list)
    alternatives: list[str] = field(default_factory=list)
    source_file: str | None = None
    source_line: int | None = None
    priority: Priority | None = None
    disabled: bool = False
    conflicts: list[str] = field(default_factory=list)

    normalized: str = field(init=False)
    modifiers: tuple[str, ...] = field(init=False)
    key_sequence: tuple[str, ...] | None = field(init=False)

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise InvalidKeybindError("keybind record is missing its id")
        if not isinstance(self.tool, str) or not self.tool:
            raise InvalidKeybindError(f"keybind {self.id} is missing its tool")
        if not isinstance(self.key, str) or not self.key:
            raise InvalidKeybindError(f"keybind {self.id} is missing its key text")

        self.source = _coerce(Source, self.source, "source", self.id)
        self.frequency = _coerce_optional(Frequency, self.frequency, "frequency", self.id)
        self.difficulty = _coerce_optional(Difficulty, self.difficulty, "difficulty", self.id)
        if self.priority is None:
            self.priority = SOURCE_PRIORITY[self.source]
        else:
            try:
                self.priority = Priority(int(self.priority))
            except (TypeError, ValueError):
                raise InvalidKeybindError(f"keybind {self.id} has invalid priority: {self.priority}") from None

        canonical = normalize_key(self.key)
        self.normalized = canonical.normalized
        self.modifiers = canonical.ordered_modifiers
        self.key_sequence = canonical.sequence

    @property
    def enabled(self) -> bool:
        return not self.disabled

    @property
    def frequency_rank(self) -> int:
        if self.frequency is None:
            return len(FREQUENCY_RANK)
        return FREQUENCY_RANK[self.frequency]

    @property
    def base_key(self) -> str:
        return normalize_key(self.key).key

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Keybind:
        """Build a record from an extractor mapping (camelCase or snake_case)."""
        if "key" not in data or data["key"] is None:
            raise InvalidKeybindError(f"keybind {data.get('id', '?')} is missing its key text")

        line = _pick(data, "source_line", "sourceLine")
        return cls(
            id=str(data.get("id", "")),
            tool=str(data.get("tool", "")),
            key=data["key"],
            action=str(data.get("action", "")),
            context=str(data.get("context") or "global"),
            source=data.get("source") or Source.DEFAULT,
            frequency=data.get("frequency") or Frequency.MEDIUM,
            difficulty=data.get("difficulty") or Difficulty.INTERMEDIATE,
            category=str(data.get("category", "")),
            tags=[str(tag) for tag in data.get("tags", [])],
            alternatives=[str(alt) for alt in data.get("alternatives", [])],
            source_file=_pick(data, "source_file", "sourceFile"),
            source_line=int(line) if line is not None else None,
            priority=data.get("priority"),
            disabled=bool(data.get("disabled", False)),
            conflicts=[str(ref) for ref in data.get("conflicts", [])],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tool": self.tool,
            "key": self.key,
            "normalized": self.normalized,
            "modifiers": list(self.modifiers),
            "keySequence": list(self.key_sequence) if self.key_sequence is not None else None,
            "action": self.action,
            "category": self.category,
            "context": self.context,
            "tags": list(self.tags),
            "difficulty": self.difficulty.value if self.difficulty is not None else None,
            "frequency": self.frequency.value if self.frequency is not None else None,
            "alternatives": list(self.alternatives),
            "source": self.source.value,
            "sourceFile": self.source_file,
            "sourceLine": self.source_line,
            "priority": int(self.priority),
            "conflicts": list(self.conflicts),
            "disabled": self.disabled,
        }


@dataclass
class KeybindingLayer:
    """Per-tool record sets, one list per source."""

    system: list[Keybind] = field(default_factory=list)
    defaults: list[Keybind] = field(default_factory=list)
    user: list[Keybind] = field(default_factory=list)
    generated: list[Keybind] = field(default_factory=list)

    def for_source(self, source: Source) -> list[Keybind]:
        if source is Source.SYSTEM:
            return self.system
        if source is Source.DEFAULT:
            return self.defaults
        if source is Source.USER:
            return self.user
        return self.generated

    def all(self) -> list[Keybind]:
        return [record for source in LAYER_ORDER for record in self.for_source(source)]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> KeybindingLayer:
        def records(name: str) -> list[Keybind]:
            return [Keybind.from_dict(item) for item in data.get(name) or []]

        return cls(
            system=records("system"),
            defaults=records("defaults"),
            user=records("user"),
            generated=records("generated"),
        )


@dataclass(frozen=True)
class Conflict:
    """A classified collision between keybind records. Never mutated."""

    id: str
    severity: Severity
    type: ConflictType
    key: str
    keybinds: tuple[str, ...]
    contexts: tuple[str, ...]
    tools: tuple[str, ...]
    message: str
    suggestions: tuple[str, ...] = ()

    @property
    def signature(self) -> tuple[str, str, tuple[str, ...]]:
        return (self.type.value, self.key, tuple(sorted(self.keybinds)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "severity": self.severity.value,
            "type": self.type.value,
            "key": self.key,
            "keybinds": list(self.keybinds),
            "contexts": list(self.contexts),
            "tools": list(self.tools),
            "message": self.message,
            "suggestions": list(self.suggestions),
        }


@dataclass(frozen=True)
class KeybindSuggestion:
    """A ranked remediation proposal."""

    id: str
    action: str
    tool: str
    suggested_key: str
    reason: str
    confidence: float
    alternatives: tuple[str, ...] = ()
    keybind: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action,
            "tool": self.tool,
            "suggestedKey": self.suggested_key,
            "reason": self.reason,
            "confidence": self.confidence,
            "alternatives": list(self.alternatives),
            "keybind": self.keybind,
        }


@dataclass
class ValidationResult:
    valid: bool = True
    errors: list[Conflict] = field(default_factory=list)
    warnings: list[Conflict] = field(default_factory=list)
    info: list[Conflict] = field(default_factory=list)
    suggestions: list[KeybindSuggestion] = field(default_factory=list)

    @classmethod
    def from_conflicts(
        cls,
        conflicts: Iterable[Conflict],
        suggestions: Iterable[KeybindSuggestion] = (),
    ) -> ValidationResult:
        result = cls(suggestions=list(suggestions))
        for conflict in conflicts:
            result.add(conflict)
        return result

    def add(self, conflict: Conflict) -> None:
        if conflict.severity is Severity.ERROR:
            self.errors.append(conflict)
            self.valid = False
        elif conflict.severity is Severity.WARNING:
            self.warnings.append(conflict)
        else:
            self.info.append(conflict)

    def extend(self, other: ValidationResult) -> None:
        for conflict in [*other.errors, *other.warnings, *other.info]:
            self.add(conflict)
        self.suggestions.extend(other.suggestions)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [conflict.to_dict() for conflict in self.errors],
            "warnings": [conflict.to_dict() for conflict in self.warnings],
            "info": [conflict.to_dict() for conflict in self.info],
            "suggestions": [suggestion.to_dict() for suggestion in self.suggestions],
        }


@dataclass
class ToolConfig:
    """Merged result for one tool, grouped by source."""

    tool: str
    system: list[Keybind] = field(default_factory=list)
    defaults: list[Keybind] = field(default_factory=list)
    user: list[Keybind] = field(default_factory=list)
    generated: list[Keybind] = field(default_factory=list)
    conflicts: list[Conflict] = field(default_factory=list)
    suggestions: list[KeybindSuggestion] = field(default_factory=list)

    def keybinds(self) -> list[Keybind]:
        return [*self.system, *self.defaults, *self.user, *self.generated]

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "system": [record.to_dict() for record in self.system],
            "defaults": [record.to_dict() for record in self.defaults],
            "user": [record.to_dict() for record in self.user],
            "generated": [record.to_dict() for record in self.generated],
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
            "suggestions": [suggestion.to_dict() for suggestion in self.suggestions],
        }


@dataclass
class ConflictPartition:
    global_conflicts: list[Conflict] = field(default_factory=list)
    contextual: list[Conflict] = field(default_factory=list)
    resolved: list[Conflict] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "global": [conflict.to_dict() for conflict in self.global_conflicts],
            "contextual": [conflict.to_dict() for conflict in self.contextual],
            "resolved": [conflict.to_dict() for conflict in self.resolved],
        }


@dataclass
class Statistics:
    total_keybinds: int = 0
    enabled: int = 0
    disabled: int = 0
    by_tool: dict[str, int] = field(default_factory=dict)
    by_source: dict[str, int] = field(default_factory=dict)
    conflicts: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalKeybinds": self.total_keybinds,
            "enabled": self.enabled,
            "disabled": self.disabled,
            "byTool": dict(self.by_tool),
            "bySource": dict(self.by_source),
            "conflicts": dict(self.conflicts),
        }


@dataclass
class MergedConfig:
    """The merge artifact handed to exporters and the CLI."""

    tools: dict[str, ToolConfig]
    collisions: ConflictPartition
    validation: ValidationResult
    statistics: Statistics
    version: str = MERGED_CONFIG_VERSION

    def keybinds(self) -> list[Keybind]:
        return [record for config in self.tools.values() for record in config.keybinds()]

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "tools": {name: config.to_dict() for name, config in self.tools.items()},
            "collisions": self.collisions.to_dict(),
            "validation": self.validation.to_dict(),
            "statistics": self.statistics.to_dict(),
        }


def resolution_rank(record: Keybind) -> tuple[int, int, int, str]:
    """Sort key for priority resolution; the smallest key wins.

    User records beat every other source, then the lower priority tier wins,
    then the higher frequency, then the smaller id.
    """
    return (
        0 if record.source is Source.USER else 1,
        int(record.priority),
        record.frequency_rank,
        record.id,
    )


def _coerce(enum_type: type[Enum], value: object, name: str, record_id: str) -> Any:
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(str(value).lower())
    except ValueError:
        raise InvalidKeybindError(f"keybind {record_id} has unknown {name}: {value}") from None


def _coerce_optional(enum_type: type[Enum], value: object, name: str, record_id: str) -> Any:
    if value is None or isinstance(value, enum_type):
        return value
    try:
        return enum_type(str(value).lower())
    except ValueError:
        logger.warning("keybind %s has unknown %s %r; ranking it last", record_id, name, value)
        return None


def _pick(data: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if data.get(name) is not None:
            return data[name]
    return None

"""Collision registry and conflict classification."""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .models import (
    Conflict,
    ConflictType,
    Keybind,
    KeybindSuggestion,
    Severity,
    Source,
    ValidationResult,
)
from .normalizer import alternative_keys, format_key, is_system_reserved

logger = logging.getLogger(__name__)

GLOBAL_CONTEXT = "global"
CONFLICT_HINT_LIMIT = 5


@dataclass(frozen=True)
class CollisionRegistry:
    """Three-tier index of canonical keys to keybind ids.

    Built fresh by :func:`build_registry` for every batch; never updated.
    """

    global_keys: dict[str, list[str]]
    context_keys: dict[str, dict[str, list[str]]]
    tool_keys: dict[str, dict[str, list[str]]]

    def ids_for(self, key: str, *, context: str | None = None, tool: str | None = None) -> list[str]:
        if context is not None:
            return list(self.context_keys.get(context, {}).get(key, []))
        if tool is not None:
            return list(self.tool_keys.get(tool, {}).get(key, []))
        return list(self.global_keys.get(key, []))


def build_registry(batch: Iterable[Keybind]) -> CollisionRegistry:
    """Index BATCH by canonical key globally, per context and per tool."""
    global_keys: dict[str, list[str]] = defaultdict(list)
    context_keys: dict[str, dict[str, list[str]]] = defaultdict(lambda: defaultdict(list))
    tool_keys: dict[str, dict[str, list[str]]] = defaultdict(lambda: defaultdict(list))
    seen: set[str] = set()

    for record in batch:
        if record.id in seen:
            logger.warning("duplicate keybind id %s in batch", record.id)
        seen.add(record.id)
        global_keys[record.normalized].append(record.id)
        context_keys[record.context][record.normalized].append(record.id)
        tool_keys[record.tool][record.normalized].append(record.id)

    registry = CollisionRegistry(
        global_keys=dict(global_keys),
        context_keys={context: dict(keys) for context, keys in context_keys.items()},
        tool_keys={tool: dict(keys) for tool, keys in tool_keys.items()},
    )
    logger.debug(
        "registry built: %d keys, %d contexts, %d tools",
        len(registry.global_keys),
        len(registry.context_keys),
        len(registry.tool_keys),
    )
    return registry


def detect_all_collisions(batch: Sequence[Keybind]) -> list[Conflict]:
    """Return every conflict in BATCH, classified and deduplicated."""
    registry = build_registry(batch)
    by_id = {record.id: record for record in batch}
    conflicts: list[Conflict] = []

    for key, ids in registry.global_keys.items():
        participants = [by_id[record_id] for record_id in dict.fromkeys(ids)]
        if len(participants) > 1:
            conflicts.extend(_classify(key, participants, registry))

    conflicts.extend(_system_reserved_conflicts(batch))
    return _deduplicate(conflicts)


def detect_keybind_collisions(candidate: Keybind, batch: Sequence[Keybind]) -> list[Conflict]:
    """Return the conflicts CANDIDATE would have if added to BATCH."""
    others = [record for record in batch if record.id != candidate.id]
    participants = [candidate, *(record for record in others if record.normalized == candidate.normalized)]
    registry = build_registry(participants)

    conflicts: list[Conflict] = []
    if len(participants) > 1:
        conflicts.extend(
            conflict
            for conflict in _classify(candidate.normalized, participants, registry)
            if candidate.id in conflict.keybinds
        )
    if not conflicts:
        # alone in its context: still clashes with any overlapping context
        overlapping = [
            record
            for record in participants[1:]
            if record.context != candidate.context and contexts_overlap([candidate, record])
        ]
        if overlapping:
            conflicts.append(_cross_tool_conflict(candidate.normalized, [candidate, *overlapping]))
    conflicts.extend(_system_reserved_conflicts([candidate]))
    return _deduplicate(conflicts)


def validate_configuration(batch: Sequence[Keybind]) -> ValidationResult:
    """Detect conflicts among the enabled records of BATCH and split them by severity."""
    active = [record for record in batch if not record.disabled]
    conflicts = detect_all_collisions(active)
    return ValidationResult.from_conflicts(conflicts, validation_suggestions(conflicts))


def contexts_overlap(participants: Sequence[Keybind]) -> bool:
    """Whether the distinct contexts of PARTICIPANTS can be active at once.

    The global context overlaps everything; two contexts owned by the same
    tool overlap each other.
    """
    if any(record.context == GLOBAL_CONTEXT for record in participants):
        return True
    owners: dict[str, set[str]] = defaultdict(set)
    for record in participants:
        owners[record.tool].add(record.context)
    return any(len(contexts) > 1 for contexts in owners.values())


def validation_suggestions(conflicts: Iterable[Conflict]) -> list[KeybindSuggestion]:
    counts = Counter(conflict.type for conflict in conflicts)
    suggestions: list[KeybindSuggestion] = []

    if counts[ConflictType.HARD_COLLISION] > 3:
        suggestions.append(
            KeybindSuggestion(
                id="too-many-hard-collisions",
                action="Review keybinding organization",
                tool="all",
                suggested_key="",
                reason="Multiple hard collisions detected",
                confidence=0.9,
                alternatives=("Use more specific contexts", "Rely on priority-based resolution"),
            )
        )
    if counts[ConflictType.CROSS_TOOL] > 5:
        suggestions.append(
            KeybindSuggestion(
                id="cross-tool-conflicts",
                action="Standardize modifier key usage across tools",
                tool="all",
                suggested_key="",
                reason="Many cross-tool conflicts detected",
                confidence=0.8,
                alternatives=("Use tool-specific modifiers", "Create a tool-switching workflow"),
            )
        )
    return suggestions


def _classify(key: str, participants: Sequence[Keybind], registry: CollisionRegistry) -> list[Conflict]:
    groups: dict[str, list[Keybind]] = {}
    by_id = {record.id: record for record in participants}
    for record in participants:
        if record.context in groups:
            continue
        ids = dict.fromkeys(registry.ids_for(key, context=record.context))
        groups[record.context] = [by_id[record_id] for record_id in ids if record_id in by_id]

    if len(groups) == len(participants):
        if contexts_overlap(participants):
            return [_cross_tool_conflict(key, participants)]
        return []

    conflicts: list[Conflict] = []
    for context, members in groups.items():
        if len(members) < 2:
            continue
        if _is_shadow(members):
            conflicts.append(_shadow_conflict(key, context, members))
        else:
            conflicts.append(_hard_conflict(key, context, members))
    return conflicts


def _is_shadow(members: Sequence[Keybind]) -> bool:
    sources = sorted(record.source.value for record in members)
    return sources == [Source.DEFAULT.value, Source.USER.value]


def _cross_tool_conflict(key: str, participants: Sequence[Keybind]) -> Conflict:
    tools = _unique(record.tool for record in participants)
    return Conflict(
        id=f"cross-tool:{key}",
        severity=Severity.WARNING,
        type=ConflictType.CROSS_TOOL,
        key=key,
        keybinds=tuple(record.id for record in participants),
        contexts=_unique(record.context for record in participants),
        tools=tools,
        message=f"Key {format_key(key)} is used by {', '.join(tools)} in overlapping contexts",
        suggestions=("Consider using tool-specific modifier keys", "Verify the contexts do not overlap"),
    )


def _shadow_conflict(key: str, context: str, members: Sequence[Keybind]) -> Conflict:
    user = next(record for record in members if record.source is Source.USER)
    return Conflict(
        id=f"shadow:{context}:{key}",
        severity=Severity.INFO,
        type=ConflictType.SHADOW_COLLISION,
        key=key,
        keybinds=tuple(record.id for record in members),
        contexts=(context,),
        tools=_unique(record.tool for record in members),
        message=f'User keybinding "{user.action}" overrides the default for {format_key(key)}',
        suggestions=("This is intentional and expected",),
    )


def _hard_conflict(key: str, context: str, members: Sequence[Keybind]) -> Conflict:
    actions = ", ".join(f'"{record.action or record.id}"' for record in members)
    return Conflict(
        id=f"hard:{context}:{key}",
        severity=Severity.ERROR,
        type=ConflictType.HARD_COLLISION,
        key=key,
        keybinds=tuple(record.id for record in members),
        contexts=(context,),
        tools=_unique(record.tool for record in members),
        message=f"Key {format_key(key)} is bound to {actions} in context {context}",
        suggestions=_resolution_hints(members),
    )


def _system_reserved_conflicts(batch: Iterable[Keybind]) -> list[Conflict]:
    conflicts: list[Conflict] = []
    for record in batch:
        if record.source is Source.SYSTEM or not is_system_reserved(record.normalized):
            continue
        conflicts.append(
            Conflict(
                id=f"system:{record.id}",
                severity=Severity.ERROR,
                type=ConflictType.SYSTEM_OVERRIDE,
                key=record.normalized,
                keybinds=(record.id,),
                contexts=(record.context,),
                tools=(record.tool,),
                message=f"Key {format_key(record.normalized)} is reserved by the system and cannot be overridden",
                suggestions=tuple(alternative_keys(record.normalized)[:CONFLICT_HINT_LIMIT]),
            )
        )
    return conflicts


def _resolution_hints(members: Sequence[Keybind]) -> tuple[str, ...]:
    if len(members) == 2:
        first, second = (record.action or record.id for record in members)
        hints = [f'Keep "{first}" and remap "{second}"', f'Keep "{second}" and remap "{first}"']
    else:
        hints = ["Remap all but one of the conflicting keybindings"]
    hints.extend(
        [
            "Use different modifier combinations",
            "Move some actions to different contexts",
            "Disable less frequently used actions",
        ]
    )
    return tuple(hints)


def _deduplicate(conflicts: Iterable[Conflict]) -> list[Conflict]:
    seen: set[tuple[str, str, tuple[str, ...]]] = set()
    unique: list[Conflict] = []
    for conflict in conflicts:
        if conflict.signature in seen:
            continue
        seen.add(conflict.signature)
        unique.append(conflict)
    return unique


def _unique(values: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(values))

"""Priority-based merging of per-tool keybinding layers."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, fields
from typing import Any

from .detector import GLOBAL_CONTEXT, detect_all_collisions, validate_configuration
from .errors import ConfigError, InvalidKeybindError
from .models import (
    LAYER_ORDER,
    Conflict,
    ConflictPartition,
    ConflictType,
    Keybind,
    KeybindingLayer,
    MergedConfig,
    Source,
    Statistics,
    ToolConfig,
    resolution_rank,
)
from .normalizer import is_system_reserved
from .suggestions import suggest_for_tool

logger = logging.getLogger(__name__)

_CAMEL_OPTION_NAMES = {
    "resolveConflicts": "resolve_conflicts",
    "prioritizeUserConfig": "prioritize_user_config",
    "allowSystemOverrides": "allow_system_overrides",
    "preserveDisabled": "preserve_disabled",
    "generateSuggestions": "generate_suggestions",
}


@dataclass(frozen=True)
class MergeOptions:
    """Merge behaviour switches.

    ``allow_system_overrides`` only lets a later layer replace a system
    record inside one tool's layering. It never lifts the system-reserved
    key check: a non-system record on a reserved key is always disabled.
    """

    resolve_conflicts: bool = True
    prioritize_user_config: bool = True
    allow_system_overrides: bool = False
    preserve_disabled: bool = True
    generate_suggestions: bool = True

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> MergeOptions:
        """Build options from snake_case or camelCase keys; unknown keys are rejected."""
        known = {item.name for item in fields(cls)}
        values: dict[str, bool] = {}
        for raw_name, value in data.items():
            name = _CAMEL_OPTION_NAMES.get(raw_name, raw_name)
            if name not in known:
                raise ConfigError(f"unknown merge option: {raw_name}")
            if not isinstance(value, bool):
                raise ConfigError(f"merge option {raw_name} must be true or false")
            values[name] = value
        return cls(**values)


def merge_tool_layers(layers: KeybindingLayer, options: MergeOptions | None = None) -> list[Keybind]:
    """Layer one tool's records (system, default, user, generated) into one list.

    Records are keyed by (context, canonical key). A record that loses its
    slot is marked disabled and references the occupant; it stays in the
    returned list so the detector still sees it.
    """
    opts = options or MergeOptions()
    slots: dict[tuple[str, str], list[Keybind]] = {}
    layered: list[Keybind] = []

    for source in LAYER_ORDER:
        for record in layers.for_source(source):
            if record.source is not source:
                logger.debug(
                    "keybind %s listed in %s layer has source %s", record.id, source.value, record.source.value
                )
            layered.append(record)

            slot = (record.context, record.normalized)
            occupants = slots.get(slot)
            if not occupants:
                slots[slot] = [record]
                continue

            incumbent = occupants[0]
            if record.source is Source.GENERATED:
                _shadow(record, incumbent)
            elif _should_replace(incumbent, record, opts):
                for occupant in occupants:
                    _shadow(occupant, record)
                slots[slot] = [record]
            elif record.source is incumbent.source:
                occupants.append(record)
            else:
                _shadow(record, incumbent)

    return layered


def merge(
    tool_layers: Mapping[str, KeybindingLayer | Mapping[str, Any]],
    options: MergeOptions | Mapping[str, Any] | None = None,
) -> MergedConfig:
    """Merge every tool's layers, detect conflicts and resolve the errors."""
    opts = _coerce_options(options)
    layers_by_tool = {
        tool: layers if isinstance(layers, KeybindingLayer) else KeybindingLayer.from_dict(layers)
        for tool, layers in tool_layers.items()
    }

    per_tool: dict[str, list[Keybind]] = {}
    combined: list[Keybind] = []
    for tool, layers in layers_by_tool.items():
        records = merge_tool_layers(layers, opts)
        per_tool[tool] = records
        combined.extend(records)

    id_counts = Counter(record.id for record in combined)
    duplicates = sorted(record_id for record_id, count in id_counts.items() if count > 1)
    if duplicates:
        raise InvalidKeybindError(f"duplicate keybind id: {', '.join(duplicates)}")

    conflicts = detect_all_collisions(combined)
    resolved = _resolve(combined, conflicts, opts)
    enabled = [record for record in combined if not record.disabled]
    validation = validate_configuration(enabled)

    owner = {record.id: tool for tool, records in per_tool.items() for record in records}
    tools: dict[str, ToolConfig] = {}
    for tool, records in per_tool.items():
        config = _tool_config(tool, records, opts)
        config.conflicts = [
            conflict for conflict in conflicts if any(owner.get(record_id) == tool for record_id in conflict.keybinds)
        ]
        if opts.generate_suggestions:
            config.suggestions = suggest_for_tool(tool, records, resolved, enabled)
        tools[tool] = config

    logger.debug(
        "merged %d keybinds from %d tools: %d conflicts, %d resolved",
        len(combined),
        len(tools),
        len(conflicts),
        len(resolved),
    )
    return MergedConfig(
        tools=tools,
        collisions=_partition(conflicts, resolved),
        validation=validation,
        statistics=_statistics(per_tool, combined, conflicts),
    )


def _coerce_options(options: MergeOptions | Mapping[str, Any] | None) -> MergeOptions:
    if options is None:
        return MergeOptions()
    if isinstance(options, MergeOptions):
        return options
    return MergeOptions.from_mapping(options)


def _should_replace(existing: Keybind, candidate: Keybind, options: MergeOptions) -> bool:
    if options.prioritize_user_config and candidate.source is Source.USER and existing.source is not Source.USER:
        return True
    if existing.source is Source.SYSTEM and not options.allow_system_overrides:
        return False
    return int(candidate.priority) > int(existing.priority)


def _shadow(loser: Keybind, winner: Keybind) -> None:
    loser.disabled = True
    loser.conflicts = _with_ref(loser.conflicts, winner.id)


def _resolve(batch: Sequence[Keybind], conflicts: Sequence[Conflict], options: MergeOptions) -> list[Conflict]:
    by_id = {record.id: record for record in batch}
    resolved: list[Conflict] = []

    if options.resolve_conflicts:
        for conflict in conflicts:
            if conflict.type is ConflictType.HARD_COLLISION:
                _resolve_hard_collision(conflict, by_id)
                resolved.append(conflict)

    # Reserved keys are enforced whatever the options say.
    for conflict in conflicts:
        if conflict.type is ConflictType.SYSTEM_OVERRIDE:
            _resolve_system_override(conflict, by_id)
            resolved.append(conflict)

    return resolved


def _resolve_hard_collision(conflict: Conflict, by_id: Mapping[str, Keybind]) -> None:
    """Pick one winner among the members still enabled after layering.

    Records shadowed by layering keep that outcome, so a slot layering
    already settled is left alone. On a system-reserved key only a system
    record may win, even one that layering shadowed.
    """
    members = [by_id[record_id] for record_id in conflict.keybinds if record_id in by_id]
    eligible = [
        record for record in members if record.source is Source.SYSTEM or not is_system_reserved(record.normalized)
    ]
    pool = eligible or members
    active = [record for record in pool if not record.disabled]
    contenders = [record for record in members if not record.disabled]
    if len(active) == 1 and contenders == active:
        logger.debug("hard collision %s already settled by layering in favour of %s", conflict.id, active[0].id)
        return

    winner = min(active or pool, key=resolution_rank)
    losers = [record for record in contenders if record is not winner]
    decided = {winner.id, *(record.id for record in losers)}

    winner.disabled = False
    winner.conflicts = [
        *(ref for ref in winner.conflicts if ref not in decided),
        *(record.id for record in losers),
    ]
    for record in losers:
        record.disabled = True
        record.conflicts = _with_ref([ref for ref in record.conflicts if ref not in decided], winner.id)

    logger.debug("hard collision %s resolved in favour of %s", conflict.id, winner.id)


def _resolve_system_override(conflict: Conflict, by_id: Mapping[str, Keybind]) -> None:
    for record_id in conflict.keybinds:
        record = by_id.get(record_id)
        if record is None or record.source is Source.SYSTEM:
            continue
        record.disabled = True
        record.conflicts = _with_ref(record.conflicts, conflict.id)


def _tool_config(tool: str, records: Sequence[Keybind], options: MergeOptions) -> ToolConfig:
    config = ToolConfig(tool=tool)
    for record in records:
        if record.disabled and not options.preserve_disabled:
            continue
        if record.source is Source.SYSTEM:
            config.system.append(record)
        elif record.source is Source.DEFAULT:
            config.defaults.append(record)
        elif record.source is Source.USER:
            config.user.append(record)
        else:
            config.generated.append(record)
    return config


def _partition(conflicts: Sequence[Conflict], resolved: Sequence[Conflict]) -> ConflictPartition:
    partition = ConflictPartition(resolved=list(resolved))
    for conflict in conflicts:
        if len(conflict.tools) > 1 or GLOBAL_CONTEXT in conflict.contexts:
            partition.global_conflicts.append(conflict)
        else:
            partition.contextual.append(conflict)
    return partition


def _statistics(
    per_tool: Mapping[str, Sequence[Keybind]],
    combined: Sequence[Keybind],
    conflicts: Sequence[Conflict],
) -> Statistics:
    by_source = Counter(record.source for record in combined)
    by_type = Counter(conflict.type for conflict in conflicts)
    disabled = sum(1 for record in combined if record.disabled)
    return Statistics(
        total_keybinds=len(combined),
        enabled=len(combined) - disabled,
        disabled=disabled,
        by_tool={tool: len(records) for tool, records in per_tool.items()},
        by_source={source.value: by_source[source] for source in LAYER_ORDER},
        conflicts={kind.value: by_type[kind] for kind in ConflictType},
    )


def _with_ref(refs: Sequence[str], ref: str) -> list[str]:
    if ref in refs:
        return list(refs)
    return [*refs, ref]


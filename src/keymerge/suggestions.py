"""Alternative-key probing and remediation suggestions."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import replace

from .detector import detect_keybind_collisions
from .models import Conflict, Frequency, Keybind, KeybindSuggestion, Severity, Source
from .normalizer import alternative_keys, compose_key, key_tables, normalize_key

logger = logging.getLogger(__name__)

PROBE_LIMIT = 5
MAX_MODIFIERS = 3
DOMINANT_PATTERN_SHARE = 0.6
MIN_PATTERN_SAMPLE = 3

_KIND_BASE = {
    "remap": 0.6,
    "simplify-modifiers": 0.5,
    "ergonomic": 0.45,
    "standardize-modifiers": 0.4,
}
_SEVERITY_BONUS = {Severity.ERROR: 0.2, Severity.WARNING: 0.1, Severity.INFO: 0.0}
_FREQUENCY_BONUS = {Frequency.HIGH: 0.15, Frequency.MEDIUM: 0.05, Frequency.LOW: 0.0}
_SOURCE_PENALTY = {Source.SYSTEM: 0.3, Source.USER: 0.1, Source.DEFAULT: 0.0, Source.GENERATED: 0.0}


def probe_alternatives(
    record: Keybind,
    batch: Sequence[Keybind],
    limit: int = PROBE_LIMIT,
    candidates: Iterable[str] | None = None,
) -> list[str]:
    """Return up to LIMIT canonical keys RECORD could move to without any conflict.

    Candidates default to :func:`alternative_keys` of the record's key and are
    checked against the enabled records of BATCH.
    """
    active = [other for other in batch if not other.disabled and other.id != record.id]
    pool = alternative_keys(record.normalized) if candidates is None else candidates
    clean: list[str] = []
    for candidate in pool:
        if len(clean) >= limit:
            break
        probe = replace(record, key=candidate, disabled=False, conflicts=[])
        if probe.normalized in clean or probe.normalized == record.normalized:
            continue
        if detect_keybind_collisions(probe, active):
            continue
        clean.append(probe.normalized)
    return clean


def suggest_for_tool(
    tool: str,
    records: Sequence[Keybind],
    resolved: Sequence[Conflict],
    batch: Sequence[Keybind],
) -> list[KeybindSuggestion]:
    """Build ranked suggestions for one tool's layered RECORDS.

    BATCH is the enabled record set across all tools, used for probing.
    """
    suggestions: list[KeybindSuggestion] = []
    suggestions.extend(_remap_suggestions(tool, records, resolved, batch))

    enabled = [record for record in records if not record.disabled]
    suggestions.extend(_simplify_suggestions(enabled, batch))
    suggestions.extend(_ergonomic_suggestions(enabled, batch))
    standardize = _standardize_suggestion(tool, enabled)
    if standardize is not None:
        suggestions.append(standardize)

    unique = {suggestion.id: suggestion for suggestion in suggestions}
    ranked = sorted(unique.values(), key=lambda suggestion: (-suggestion.confidence, suggestion.id))
    logger.debug("tool %s: %d suggestions", tool, len(ranked))
    return ranked


def confidence(kind: str, record: Keybind | None = None, severity: Severity | None = None) -> float:
    score = _KIND_BASE[kind]
    if severity is not None:
        score += _SEVERITY_BONUS[severity]
    if record is not None:
        if record.frequency is not None:
            score += _FREQUENCY_BONUS[record.frequency]
        score -= _SOURCE_PENALTY[record.source]
    return round(min(max(score, 0.0), 1.0), 2)


def _remap_suggestions(
    tool: str,
    records: Sequence[Keybind],
    resolved: Sequence[Conflict],
    batch: Sequence[Keybind],
) -> list[KeybindSuggestion]:
    by_id = {record.id: record for record in records}
    suggestions: list[KeybindSuggestion] = []
    for conflict in resolved:
        for record_id in conflict.keybinds:
            record = by_id.get(record_id)
            if record is None or not record.disabled or record.tool != tool:
                continue
            found = probe_alternatives(record, batch)
            if not found:
                logger.debug("no clean alternative for %s", record.id)
                continue
            suggestions.append(
                KeybindSuggestion(
                    id=f"remap:{record.id}",
                    action=record.action,
                    tool=tool,
                    suggested_key=found[0],
                    reason=conflict.message,
                    confidence=confidence("remap", record, conflict.severity),
                    alternatives=tuple(found[1:]),
                    keybind=record.id,
                )
            )
    return suggestions


def _simplify_suggestions(enabled: Sequence[Keybind], batch: Sequence[Keybind]) -> list[KeybindSuggestion]:
    suggestions: list[KeybindSuggestion] = []
    for record in enabled:
        if record.key_sequence is not None or len(record.modifiers) <= MAX_MODIFIERS:
            continue
        found = [
            key
            for key in probe_alternatives(record, batch, limit=len(alternative_keys(record.normalized)))
            if len(normalize_key(key).modifiers) < len(record.modifiers)
        ][:PROBE_LIMIT]
        if not found:
            continue
        suggestions.append(
            KeybindSuggestion(
                id=f"simplify:{record.id}",
                action=record.action,
                tool=record.tool,
                suggested_key=found[0],
                reason=f"{len(record.modifiers)} modifiers are hard to press together",
                confidence=confidence("simplify-modifiers", record),
                alternatives=tuple(found[1:]),
                keybind=record.id,
            )
        )
    return suggestions


def _ergonomic_suggestions(enabled: Sequence[Keybind], batch: Sequence[Keybind]) -> list[KeybindSuggestion]:
    tables = key_tables()
    suggestions: list[KeybindSuggestion] = []
    for record in enabled:
        if record.frequency is not Frequency.HIGH or record.key_sequence is not None:
            continue
        awkward_key = record.base_key in tables.difficult_keys
        if not awkward_key and len(record.modifiers) < MAX_MODIFIERS:
            continue

        modifiers = record.modifiers if awkward_key else record.modifiers[:1]
        candidates = [compose_key(modifiers, easy) for easy in tables.easy_keys]
        found = probe_alternatives(record, batch, candidates=candidates)
        if not found:
            continue
        reason = (
            f"Frequently used action on hard-to-reach key {record.base_key}"
            if awkward_key
            else "Frequently used action needs many modifiers"
        )
        suggestions.append(
            KeybindSuggestion(
                id=f"ergonomic:{record.id}",
                action=record.action,
                tool=record.tool,
                suggested_key=found[0],
                reason=reason,
                confidence=confidence("ergonomic", record),
                alternatives=tuple(found[1:]),
                keybind=record.id,
            )
        )
    return suggestions


def _standardize_suggestion(tool: str, enabled: Sequence[Keybind]) -> KeybindSuggestion | None:
    patterns = Counter(
        "+".join(record.modifiers) for record in enabled if record.key_sequence is None and record.modifiers
    )
    total = sum(patterns.values())
    if total < MIN_PATTERN_SAMPLE:
        return None

    ranked = sorted(patterns.items(), key=lambda item: (-item[1], item[0]))
    dominant, count = ranked[0]
    if count / total >= DOMINANT_PATTERN_SHARE:
        return None
    return KeybindSuggestion(
        id=f"standardize:{tool}",
        action="Standardize modifier usage",
        tool=tool,
        suggested_key=dominant,
        reason=f"Most common modifier pattern covers only {count} of {total} bindings",
        confidence=confidence("standardize-modifiers"),
        alternatives=tuple(pattern for pattern, _ in ranked[1:]),
    )

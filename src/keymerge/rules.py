"""Custom validation rules loaded from configuration."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, assert_never

from .detector import GLOBAL_CONTEXT
from .errors import RuleError
from .models import Conflict, ConflictType, Keybind, Severity, ValidationResult
from .normalizer import format_key, key_tables, normalize_key

logger = logging.getLogger(__name__)

DEFAULT_MAX_MODIFIERS = 3


@dataclass(frozen=True)
class RequiredModifiers:
    """Every binding in CONTEXTS must hold all of MODIFIERS."""

    modifiers: tuple[str, ...]
    contexts: tuple[str, ...] = (GLOBAL_CONTEXT,)


@dataclass(frozen=True)
class ForbiddenKeys:
    """Base keys that may not be bound at all."""

    keys: tuple[str, ...]
    severity: Severity = Severity.ERROR


@dataclass(frozen=True)
class ContextIsolation:
    """Keys used inside CONTEXTS may not be reused anywhere else."""

    contexts: tuple[str, ...]


@dataclass(frozen=True)
class ErgonomicChecks:
    max_modifiers: int = DEFAULT_MAX_MODIFIERS
    difficult_keys: tuple[str, ...] | None = None


Rule = RequiredModifiers | ForbiddenKeys | ContextIsolation | ErgonomicChecks


def parse_rule(data: Mapping[str, Any]) -> Rule:
    """Build a rule from a configuration table keyed by ``type``."""
    kind = data.get("type")
    if kind == "required-modifiers":
        return RequiredModifiers(
            modifiers=tuple(_modifier_name(name) for name in _strings(data, "modifiers", required=True)),
            contexts=_strings(data, "contexts") or (GLOBAL_CONTEXT,),
        )
    if kind == "forbidden-keys":
        severity = data.get("severity", Severity.ERROR.value)
        if severity not in (Severity.ERROR.value, Severity.WARNING.value):
            raise RuleError(f"forbidden-keys severity must be error or warning, not {severity!r}")
        return ForbiddenKeys(
            keys=tuple(normalize_key(key).key for key in _strings(data, "keys", required=True)),
            severity=Severity(severity),
        )
    if kind == "context-isolation":
        return ContextIsolation(contexts=_strings(data, "contexts", required=True))
    if kind == "ergonomic-checks":
        limit = data.get("max_modifiers", data.get("maxModifiers", DEFAULT_MAX_MODIFIERS))
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            raise RuleError(f"ergonomic-checks max_modifiers must be a non-negative integer, not {limit!r}")
        difficult = _strings(data, "difficult_keys") or _strings(data, "difficultKeys")
        return ErgonomicChecks(
            max_modifiers=limit,
            difficult_keys=tuple(normalize_key(key).key for key in difficult) if difficult else None,
        )
    raise RuleError(f"unknown rule type: {kind!r}")


def parse_rules(items: Sequence[Mapping[str, Any]]) -> list[Rule]:
    return [parse_rule(item) for item in items]


def apply_rules(batch: Sequence[Keybind], rules: Sequence[Rule]) -> ValidationResult:
    """Check the enabled records of BATCH against RULES."""
    active = [record for record in batch if not record.disabled]
    result = ValidationResult()
    for rule in rules:
        for conflict in apply_rule(active, rule):
            result.add(conflict)
    logger.debug("applied %d rules to %d keybinds", len(rules), len(active))
    return result


def apply_rule(batch: Sequence[Keybind], rule: Rule) -> list[Conflict]:
    if isinstance(rule, RequiredModifiers):
        return _required_modifiers(batch, rule)
    if isinstance(rule, ForbiddenKeys):
        return _forbidden_keys(batch, rule)
    if isinstance(rule, ContextIsolation):
        return _context_isolation(batch, rule)
    if isinstance(rule, ErgonomicChecks):
        return _ergonomic_checks(batch, rule)
    assert_never(rule)


def _required_modifiers(batch: Sequence[Keybind], rule: RequiredModifiers) -> list[Conflict]:
    wanted = " + ".join(rule.modifiers)
    return [
        _violation(
            f"required-modifiers:{record.id}",
            record,
            Severity.ERROR,
            f"Keybinding must include required modifiers: {', '.join(rule.modifiers)}",
            (f"Add {wanted} to the key combination",),
        )
        for record in batch
        if record.context in rule.contexts and not set(rule.modifiers) <= set(record.modifiers)
    ]


def _forbidden_keys(batch: Sequence[Keybind], rule: ForbiddenKeys) -> list[Conflict]:
    return [
        _violation(
            f"forbidden-key:{record.id}",
            record,
            rule.severity,
            f"Key {record.base_key} is forbidden",
            ("Use a different base key", "Add more specific modifiers"),
        )
        for record in batch
        if record.key_sequence is None and record.base_key in rule.keys
    ]


def _context_isolation(batch: Sequence[Keybind], rule: ContextIsolation) -> list[Conflict]:
    conflicts: list[Conflict] = []
    for context in rule.contexts:
        isolated = {record.normalized for record in batch if record.context == context}
        for record in batch:
            if record.context == context or record.normalized not in isolated:
                continue
            conflicts.append(
                _violation(
                    f"context-isolation:{context}:{record.id}",
                    record,
                    Severity.WARNING,
                    f'Key {format_key(record.normalized)} is also used in isolated context "{context}"',
                    ("Use a different key for this context", "Remove the context isolation rule"),
                    kind=ConflictType.SOFT_COLLISION,
                )
            )
    return conflicts


def _ergonomic_checks(batch: Sequence[Keybind], rule: ErgonomicChecks) -> list[Conflict]:
    difficult = set(rule.difficult_keys) if rule.difficult_keys is not None else key_tables().difficult_keys
    conflicts: list[Conflict] = []
    for record in batch:
        if len(record.modifiers) > rule.max_modifiers:
            conflicts.append(
                _violation(
                    f"too-many-modifiers:{record.id}",
                    record,
                    Severity.WARNING,
                    f"Too many modifier keys ({len(record.modifiers)} > {rule.max_modifiers})",
                    ("Use fewer modifiers", "Use a key sequence instead"),
                )
            )
        if record.key_sequence is None and record.base_key in difficult:
            conflicts.append(
                _violation(
                    f"difficult-key:{record.id}",
                    record,
                    Severity.INFO,
                    f"Uses difficult-to-reach key: {record.base_key}",
                    ("Consider using home row keys",),
                )
            )
    return conflicts


def _violation(
    conflict_id: str,
    record: Keybind,
    severity: Severity,
    message: str,
    hints: tuple[str, ...],
    kind: ConflictType = ConflictType.RULE_VIOLATION,
) -> Conflict:
    return Conflict(
        id=conflict_id,
        severity=severity,
        type=kind,
        key=record.normalized,
        keybinds=(record.id,),
        contexts=(record.context,),
        tools=(record.tool,),
        message=message,
        suggestions=hints,
    )


def _strings(data: Mapping[str, Any], name: str, *, required: bool = False) -> tuple[str, ...]:
    value = data.get(name)
    if value is None:
        if required:
            raise RuleError(f"rule {data.get('type')!r} needs {name}")
        return ()
    if not isinstance(value, (list, tuple)) or not all(isinstance(item, str) for item in value):
        raise RuleError(f"rule {data.get('type')!r}: {name} must be a list of strings")
    return tuple(value)


def _modifier_name(name: str) -> str:
    modifier = key_tables().modifier_aliases.get(name.lower())
    if modifier is None:
        raise RuleError(f"unknown modifier in rule: {name!r}")
    return modifier

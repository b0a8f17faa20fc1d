"""TOML configuration: merge options and custom validation rules."""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .errors import ConfigError
from .merger import MergeOptions
from .rules import Rule, parse_rules

logger = logging.getLogger(__name__)

_KNOWN_TABLES = {"merge", "rules"}


@dataclass(frozen=True)
class KeymergeConfig:
    merge: MergeOptions = field(default_factory=MergeOptions)
    rules: tuple[Rule, ...] = ()

    def with_overrides(self, **overrides: bool | None) -> KeymergeConfig:
        """Return a copy whose merge options take every non-None override."""
        changes = {name: value for name, value in overrides.items() if value is not None}
        if not changes:
            return self
        try:
            merge = replace(self.merge, **changes)
        except TypeError as exc:
            raise ConfigError(str(exc)) from None
        return replace(self, merge=merge)


def load_config(path: str | Path | None) -> KeymergeConfig:
    """Read PATH; a missing argument yields the defaults."""
    if path is None:
        return KeymergeConfig()

    config_path = Path(path)
    try:
        with config_path.open("rb") as handle:
            data = tomllib.load(handle)
    except FileNotFoundError:
        raise ConfigError(f"config file not found: {config_path}") from None
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid TOML in {config_path}: {exc}") from None
    except OSError as exc:
        raise ConfigError(f"failed to read {config_path}: {exc}") from None

    config = parse_config(data)
    logger.debug("loaded %s: %d rules", config_path, len(config.rules))
    return config


def parse_config(data: dict[str, Any]) -> KeymergeConfig:
    unknown = sorted(set(data) - _KNOWN_TABLES)
    if unknown:
        raise ConfigError(f"unknown config section: {', '.join(unknown)}")

    merge_table = data.get("merge", {})
    if not isinstance(merge_table, dict):
        raise ConfigError("[merge] must be a table")
    rule_tables = data.get("rules", [])
    if not isinstance(rule_tables, list) or not all(isinstance(item, dict) for item in rule_tables):
        raise ConfigError("rules must be an array of tables ([[rules]])")

    return KeymergeConfig(
        merge=MergeOptions.from_mapping(merge_table),
        rules=tuple(parse_rules(rule_tables)),
    )

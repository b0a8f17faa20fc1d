from pathlib import Path

import pytest

from keymerge.config import KeymergeConfig, load_config, parse_config
from keymerge.errors import ConfigError, RuleError
from keymerge.merger import MergeOptions
from keymerge.rules import ForbiddenKeys, RequiredModifiers


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "keymerge.toml"
    path.write_text(text, encoding="utf-8")
    return path


def test_missing_path_gives_defaults() -> None:
    assert load_config(None) == KeymergeConfig()


def test_load_config_reads_options_and_rules(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        """
[merge]
resolveConflicts = false
preserve_disabled = false

[[rules]]
type = "required-modifiers"
modifiers = ["alt"]
contexts = ["wm"]

[[rules]]
type = "forbidden-keys"
keys = ["q"]
""",
    )

    config = load_config(path)

    assert config.merge == MergeOptions(resolve_conflicts=False, preserve_disabled=False)
    assert config.rules == (
        RequiredModifiers(modifiers=("option",), contexts=("wm",)),
        ForbiddenKeys(keys=("Q",)),
    )


def test_load_config_errors(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="config file not found"):
        load_config(tmp_path / "absent.toml")
    with pytest.raises(ConfigError, match="invalid TOML"):
        load_config(_write(tmp_path, "[merge\n"))


def test_parse_config_rejects_unknown_sections_and_options() -> None:
    with pytest.raises(ConfigError, match="unknown config section: output"):
        parse_config({"output": {}})
    with pytest.raises(ConfigError, match="unknown merge option"):
        parse_config({"merge": {"fast": True}})
    with pytest.raises(ConfigError, match=r"\[\[rules\]\]"):
        parse_config({"rules": {"type": "forbidden-keys"}})
    with pytest.raises(RuleError, match="unknown rule type"):
        parse_config({"rules": [{"type": "nope"}]})


def test_overrides_replace_only_given_options() -> None:
    config = KeymergeConfig(merge=MergeOptions(resolve_conflicts=False))

    assert config.with_overrides(resolve_conflicts=None) is config
    updated = config.with_overrides(generate_suggestions=False, allow_system_overrides=None)
    assert updated.merge == MergeOptions(resolve_conflicts=False, generate_suggestions=False)

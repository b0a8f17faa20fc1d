from keymerge.detector import detect_all_collisions
from keymerge.models import Conflict, ConflictType, Keybind, Severity
from keymerge.suggestions import confidence, probe_alternatives, suggest_for_tool


def _kb(record_id: str, key: str, **fields: object) -> Keybind:
    return Keybind(id=record_id, tool=fields.pop("tool", "ghostty"), key=key, action=record_id, **fields)


def test_probe_skips_taken_and_reserved_keys() -> None:
    record = _kb("r", "cmd+t")
    batch = [record, _kb("taken", "cmd+shift+t"), _kb("other", "cmd+option+t")]

    found = probe_alternatives(record, batch)

    assert 0 < len(found) <= 5
    assert "meta+shift+T" not in found
    assert "meta+option+T" not in found
    assert "meta+T" not in found
    assert found[0] == "ctrl+meta+T"


def test_probe_ignores_disabled_records() -> None:
    record = _kb("r", "cmd+t")
    taken = _kb("taken", "cmd+shift+t", disabled=True)
    assert probe_alternatives(record, [taken])[0] == "meta+shift+T"


def test_probe_respects_limit() -> None:
    assert len(probe_alternatives(_kb("r", "ctrl+j"), [], limit=2)) == 2


def test_confidence_heuristic() -> None:
    user_high = _kb("a", "x", source="user", frequency="high")
    default_low = _kb("b", "x", frequency="low")

    assert confidence("remap", user_high, Severity.ERROR) == 0.85
    assert confidence("remap", default_low, Severity.ERROR) == 0.8
    assert confidence("standardize-modifiers") == 0.4
    assert confidence("remap", _kb("c", "x", source="system"), Severity.INFO) == 0.35


def test_remap_suggestion_for_resolved_loser() -> None:
    winner = _kb("winner", "cmd+shift+t", context="terminal", source="user", frequency="high")
    loser = _kb("loser", "cmd+shift+t", context="terminal", source="user", frequency="medium")
    conflicts = detect_all_collisions([winner, loser])
    loser.disabled = True

    suggestions = suggest_for_tool("ghostty", [winner, loser], conflicts, [winner])

    remap = [suggestion for suggestion in suggestions if suggestion.id == "remap:loser"]
    assert len(remap) == 1
    assert remap[0].keybind == "loser"
    assert remap[0].suggested_key == "meta+option+shift+T"
    assert remap[0].confidence == 0.75


def test_simplify_heavy_modifier_combos() -> None:
    record = _kb("heavy", "ctrl+cmd+opt+shift+k")
    suggestions = suggest_for_tool("ghostty", [record], [], [record])

    simplify = [suggestion for suggestion in suggestions if suggestion.id == "simplify:heavy"]
    assert simplify
    assert simplify[0].suggested_key == "ctrl+meta+option+K"


def test_ergonomic_suggestion_for_frequent_function_key() -> None:
    record = _kb("help", "f1", frequency="high")
    suggestions = suggest_for_tool("ghostty", [record], [], [record])

    ergonomic = [suggestion for suggestion in suggestions if suggestion.id == "ergonomic:help"]
    assert ergonomic
    assert ergonomic[0].suggested_key == "A"


def test_standardize_when_no_modifier_pattern_dominates() -> None:
    records = [_kb("a", "cmd+a"), _kb("b", "ctrl+b"), _kb("c", "opt+c"), _kb("d", "cmd+d")]
    suggestions = suggest_for_tool("ghostty", records, [], records)

    standardize = [suggestion for suggestion in suggestions if suggestion.id == "standardize:ghostty"]
    assert len(standardize) == 1
    assert standardize[0].suggested_key == "meta"
    assert standardize[0].keybind is None


def test_consistent_modifiers_need_no_standardizing() -> None:
    records = [_kb("a", "cmd+a"), _kb("b", "cmd+b"), _kb("c", "cmd+c")]
    assert suggest_for_tool("ghostty", records, [], records) == []


def test_suggestions_are_ranked() -> None:
    records = [
        _kb("heavy", "ctrl+cmd+opt+shift+k"),
        _kb("help", "f1", frequency="high"),
        _kb("x", "ctrl+x"),
    ]
    suggestions = suggest_for_tool("ghostty", records, [], records)
    keys = [(-suggestion.confidence, suggestion.id) for suggestion in suggestions]

    assert keys == sorted(keys)


def test_conflicts_from_other_tools_are_skipped() -> None:
    loser = _kb("loser", "cmd+e", tool="tmux", disabled=True)
    conflict = Conflict(
        id="hard:global:meta+E",
        severity=Severity.ERROR,
        type=ConflictType.HARD_COLLISION,
        key="meta+E",
        keybinds=("loser",),
        contexts=("global",),
        tools=("tmux",),
        message="",
    )
    assert suggest_for_tool("ghostty", [loser], [conflict], []) == []

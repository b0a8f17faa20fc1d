from keymerge.detector import (
    build_registry,
    contexts_overlap,
    detect_all_collisions,
    detect_keybind_collisions,
    validate_configuration,
)
from keymerge.models import ConflictType, Keybind, Severity


def _kb(
    record_id: str, key: str, *, tool: str = "ghostty", context: str = "global", source: str = "default"
) -> Keybind:
    return Keybind(id=record_id, tool=tool, key=key, action=record_id, context=context, source=source)


def test_registry_indexes_three_tiers() -> None:
    batch = [
        _kb("a", "cmd+t", context="terminal"),
        _kb("b", "⌘T", tool="tmux", context="prefix"),
    ]
    registry = build_registry(batch)

    assert registry.ids_for("meta+T") == ["a", "b"]
    assert registry.ids_for("meta+T", context="terminal") == ["a"]
    assert registry.ids_for("meta+T", tool="tmux") == ["b"]
    assert registry.ids_for("meta+X") == []


def test_registry_is_rebuilt_per_call() -> None:
    first = build_registry([_kb("a", "cmd+t")])
    second = build_registry([_kb("b", "cmd+w")])

    assert first is not second
    assert "meta+T" not in second.global_keys
    assert first.ids_for("meta+T") == ["a"]


def test_same_context_mixed_sources_is_hard_collision() -> None:
    conflicts = detect_all_collisions(
        [
            _kb("u1", "Cmd+Shift+T", context="terminal", source="user"),
            _kb("u2", "cmd+shift+t", tool="tmux", context="terminal", source="user"),
        ]
    )

    assert len(conflicts) == 1
    conflict = conflicts[0]
    assert conflict.type is ConflictType.HARD_COLLISION
    assert conflict.severity is Severity.ERROR
    assert conflict.keybinds == ("u1", "u2")
    assert conflict.tools == ("ghostty", "tmux")
    assert conflict.id == "hard:terminal:meta+shift+T"


def test_default_and_user_in_one_context_is_shadow() -> None:
    conflicts = detect_all_collisions(
        [
            _kb("d", "C-b c", tool="tmux", context="prefix"),
            _kb("u", "C-b c", tool="tmux", context="prefix", source="user"),
        ]
    )

    assert [conflict.type for conflict in conflicts] == [ConflictType.SHADOW_COLLISION]
    assert conflicts[0].severity is Severity.INFO


def test_distinct_overlapping_contexts_warn_cross_tool() -> None:
    conflicts = detect_all_collisions(
        [
            _kb("g", "cmd+k", context="global"),
            _kb("t", "cmd+k", tool="tmux", context="prefix"),
        ]
    )

    assert [conflict.type for conflict in conflicts] == [ConflictType.CROSS_TOOL]
    assert conflicts[0].severity is Severity.WARNING


def test_distinct_non_overlapping_contexts_do_not_conflict() -> None:
    assert detect_all_collisions(
        [
            _kb("a", "ctrl+t", tool="nvim", context="editor"),
            _kb("b", "ctrl+t", tool="browser", context="tabs"),
        ]
    ) == []


def test_contexts_of_one_tool_overlap() -> None:
    same_tool = [_kb("a", "x", tool="tmux", context="prefix"), _kb("b", "x", tool="tmux", context="copy-mode")]
    assert contexts_overlap(same_tool)
    assert not contexts_overlap([_kb("a", "x", tool="a", context="one"), _kb("b", "x", tool="b", context="two")])


def test_system_reserved_override_for_non_system_sources() -> None:
    conflicts = detect_all_collisions(
        [
            _kb("spotlight", "cmd+space", source="system"),
            _kb("launcher", "Cmd+Space", tool="raycast", context="launcher", source="user"),
        ]
    )

    system = [conflict for conflict in conflicts if conflict.type is ConflictType.SYSTEM_OVERRIDE]
    assert [conflict.keybinds for conflict in system] == [("launcher",)]
    assert system[0].severity is Severity.ERROR
    assert system[0].suggestions


def test_unparseable_keys_are_still_indexed() -> None:
    conflicts = detect_all_collisions([_kb("a", "hyper+wat"), _kb("b", "Hyper+wat", tool="tmux", context="prefix")])
    assert [conflict.type for conflict in conflicts] == [ConflictType.CROSS_TOOL]


def test_conflicts_are_deduplicated_by_signature() -> None:
    batch = [_kb("a", "cmd+space", source="user"), _kb("b", "cmd+space", source="user")]
    conflicts = detect_all_collisions(batch)
    signatures = [conflict.signature for conflict in conflicts]

    assert len(signatures) == len(set(signatures))
    assert sorted(conflict.type.value for conflict in conflicts) == ["hard", "system", "system"]


def test_single_candidate_probe() -> None:
    batch = [_kb("taken", "cmd+shift+t", context="terminal")]

    clash = detect_keybind_collisions(_kb("probe", "⌘⇧T", tool="tmux", context="terminal"), batch)
    assert [conflict.type for conflict in clash] == [ConflictType.HARD_COLLISION]
    assert detect_keybind_collisions(_kb("probe", "cmd+option+t", context="terminal"), batch) == []


def test_single_candidate_alone_in_its_context_still_overlaps() -> None:
    batch = [
        _kb("pane-a", "ctrl+j", tool="tmux", context="pane", source="user"),
        _kb("pane-b", "ctrl+j", tool="tmux", context="pane", source="user"),
    ]

    clash = detect_keybind_collisions(_kb("jump", "ctrl+j"), batch)
    assert [conflict.type for conflict in clash] == [ConflictType.CROSS_TOOL]
    assert set(clash[0].keybinds) == {"jump", "pane-a", "pane-b"}
    assert detect_keybind_collisions(_kb("jump", "ctrl+j", context="terminal"), batch) == []


def test_validate_configuration_ignores_disabled_records() -> None:
    winner = _kb("a", "cmd+t", context="terminal", source="user")
    loser = _kb("b", "cmd+t", context="terminal", source="user")
    assert not validate_configuration([winner, loser]).valid

    loser.disabled = True
    result = validate_configuration([winner, loser])
    assert result.valid
    assert result.errors == []

import json
from pathlib import Path

from keymerge import cli
from keymerge.main import main

LAYERS = {
    "tmux": {
        "defaults": [{"id": "tmux-new-window", "tool": "tmux", "key": "C-b c", "context": "prefix"}],
        "user": [{"id": "tmux-kill-pane", "tool": "tmux", "key": "C-b c", "context": "prefix", "source": "user"}],
    },
    "ghostty": {
        "user": [
            {"id": "tab-a", "tool": "ghostty", "key": "cmd+shift+t", "context": "terminal", "source": "user"},
            {"id": "tab-b", "tool": "ghostty", "key": "⌘⇧T", "context": "terminal", "source": "user"},
        ]
    },
}


def _write(tmp_path: Path, name: str, data: object) -> str:
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def test_normalize_prints_canonical_forms(capsys) -> None:
    assert main(["normalize", "cmd+shift+a", "C-b c"]) == 0
    out = capsys.readouterr().out
    assert "meta+shift+A" in out
    assert "ctrl+B → C" in out


def test_normalize_json(capsys) -> None:
    assert main(["normalize", "--format", "json", "⌘⇧A"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload == [
        {"input": "⌘⇧A", "normalized": "meta+shift+A", "key": "A", "modifiers": ["meta", "shift"], "sequence": None}
    ]


def test_validate_fails_on_hard_collision(tmp_path: Path, capsys) -> None:
    batch = _write(tmp_path, "batch.json", LAYERS["ghostty"]["user"])

    assert main(["validate", batch, "--format", "json"]) == 1
    result = json.loads(capsys.readouterr().out)
    assert result["valid"] is False
    assert [error["type"] for error in result["errors"]] == ["hard"]


def test_validate_accepts_several_files(tmp_path: Path, capsys) -> None:
    first = _write(tmp_path, "a.json", [LAYERS["ghostty"]["user"][0]])
    second = _write(tmp_path, "b.json", {"keybinds": [{"id": "w", "tool": "tmux", "key": "cmd+w"}]})

    assert main(["validate", first, second]) == 0
    assert "valid" in capsys.readouterr().out


def test_validate_strict_fails_on_warnings(tmp_path: Path, capsys) -> None:
    batch = _write(
        tmp_path,
        "batch.json",
        [
            {"id": "g", "tool": "ghostty", "key": "cmd+k"},
            {"id": "t", "tool": "tmux", "key": "cmd+k", "context": "prefix"},
        ],
    )

    assert main(["validate", batch]) == 0
    assert main(["validate", batch, "--strict"]) == 1
    capsys.readouterr()


def test_validate_junit_output(tmp_path: Path, capsys) -> None:
    batch = _write(tmp_path, "batch.json", LAYERS["ghostty"]["user"])

    assert main(["validate", batch, "--format", "junit"]) == 1
    out = capsys.readouterr().out
    assert out.startswith("<?xml")
    assert "<failure" in out


def test_validate_applies_config_rules(tmp_path: Path, capsys) -> None:
    batch = _write(tmp_path, "batch.json", [{"id": "quit", "tool": "aerospace", "key": "alt+q"}])
    config = tmp_path / "keymerge.toml"
    config.write_text('[[rules]]\ntype = "forbidden-keys"\nkeys = ["q"]\n', encoding="utf-8")

    assert main(["validate", batch, "--config", str(config), "--format", "json"]) == 1
    result = json.loads(capsys.readouterr().out)
    assert [error["id"] for error in result["errors"]] == ["forbidden-key:quit"]


def test_merge_json_output(tmp_path: Path, capsys) -> None:
    layers = _write(tmp_path, "layers.json", LAYERS)

    assert main(["merge", layers, "--format", "json"]) == 0
    merged = json.loads(capsys.readouterr().out)
    assert merged["version"] == "2.0"
    assert list(merged["tools"]) == ["tmux", "ghostty"]
    assert merged["statistics"]["disabled"] == 2
    assert merged["validation"]["valid"] is True


def test_merge_writes_output_file(tmp_path: Path, capsys) -> None:
    layers = _write(tmp_path, "layers.json", LAYERS)
    target = tmp_path / "merged.json"

    assert main(["merge", layers, "--output", str(target)]) == 0
    assert json.loads(target.read_text(encoding="utf-8"))["statistics"]["totalKeybinds"] == 4
    assert "Statistics" in capsys.readouterr().out


def test_merge_no_resolve_exits_invalid(tmp_path: Path, capsys) -> None:
    layers = _write(tmp_path, "layers.json", LAYERS)

    assert main(["merge", layers, "--no-resolve", "--format", "json"]) == 1
    merged = json.loads(capsys.readouterr().out)
    assert merged["collisions"]["resolved"] == []


def test_merge_flags_override_config(tmp_path: Path, capsys) -> None:
    layers = _write(tmp_path, "layers.json", LAYERS)
    config = tmp_path / "keymerge.toml"
    config.write_text("[merge]\ngenerate_suggestions = true\npreserve_disabled = true\n", encoding="utf-8")

    args = ["merge", layers, "--config", str(config), "--drop-disabled", "--no-suggestions", "--format", "json"]
    assert main(args) == 0
    merged = json.loads(capsys.readouterr().out)
    assert merged["tools"]["tmux"]["defaults"] == []
    assert all(tool["suggestions"] == [] for tool in merged["tools"].values())


def test_browse_runs_browser_on_merge_result(tmp_path: Path, monkeypatch) -> None:
    layers = _write(tmp_path, "layers.json", LAYERS)
    seen = []
    monkeypatch.setattr(cli, "run_browser", seen.append)

    assert main(["browse", layers]) == 0
    assert len(seen) == 1
    assert set(seen[0].tools) == {"tmux", "ghostty"}

import xml.etree.ElementTree as ET

from rich.console import Console

from keymerge.detector import validate_configuration
from keymerge.merger import merge
from keymerge.models import Keybind, ValidationResult
from keymerge.normalizer import normalize_key
from keymerge.report import junit_report, normalized_table, render_merged, render_validation


def _clashing_batch() -> list[Keybind]:
    return [
        Keybind(id="a", tool="ghostty", key="cmd+k", context="terminal", source="user"),
        Keybind(id="b", tool="ghostty", key="⌘K", context="terminal", source="user"),
        Keybind(id="c", tool="tmux", key="cmd+k", context="prefix"),
    ]


def _console() -> Console:
    return Console(record=True, width=160, color_system=None)


def test_junit_report_marks_errors_as_failures() -> None:
    result = validate_configuration(_clashing_batch())

    suite = ET.fromstring(junit_report(result))

    assert suite.tag == "testsuite"
    assert suite.get("failures") == "1"
    failures = suite.findall("testcase/failure")
    assert len(failures) == 1
    assert failures[0].get("type") == "hard"
    assert suite.get("tests") == str(len(suite.findall("testcase")))


def test_junit_report_for_clean_result() -> None:
    suite = ET.fromstring(junit_report(ValidationResult()))
    assert suite.get("failures") == "0"
    assert [case.get("name") for case in suite.findall("testcase")] == ["keybinding-validation"]


def test_render_validation_lists_conflicts() -> None:
    console = _console()
    render_validation(validate_configuration(_clashing_batch()), console)

    text = console.export_text()
    assert "a, b" in text
    assert "⌘K" in text
    assert "invalid" in text
    assert "errors=1" in text


def test_render_merged_shows_statistics() -> None:
    console = _console()
    merged = merge(
        {
            "ghostty": {
                "user": [
                    {"id": "a", "tool": "ghostty", "key": "cmd+k", "context": "terminal", "source": "user"},
                    {"id": "b", "tool": "ghostty", "key": "⌘K", "context": "terminal", "source": "user"},
                ]
            },
            "tmux": {},
        }
    )

    render_merged(merged, console)

    text = console.export_text()
    assert "total=2 enabled=1 disabled=1" in text
    assert "hard=1" in text
    assert "tmux" in text
    assert "valid" in text


def test_normalized_table_shows_glyphs() -> None:
    console = _console()
    console.print(normalized_table([("cmd+shift+a", normalize_key("cmd+shift+a"))]))

    text = console.export_text()
    assert "meta+shift+A" in text
    assert "⌘⇧A" in text

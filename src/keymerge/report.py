"""Human-readable and CI report rendering."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from collections.abc import Iterable, Sequence

from rich.console import Console, Group
from rich.panel import Panel
from rich.style import Style
from rich.table import Table
from rich.text import Text

from .models import Conflict, KeybindSuggestion, MergedConfig, Severity, ValidationResult
from .normalizer import NormalizedKey, format_key

SEVERITY_STYLES: dict[Severity, Style] = {
    Severity.ERROR: Style(color="red", bold=True),
    Severity.WARNING: Style(color="yellow"),
    Severity.INFO: Style(color="cyan"),
}


def normalized_table(entries: Iterable[tuple[str, NormalizedKey]]) -> Table:
    table = Table(title="Normalized keys")
    table.add_column("Input")
    table.add_column("Canonical", style="bold")
    table.add_column("Display")
    for raw, normalized in entries:
        table.add_row(raw, normalized.normalized, format_key(normalized) if normalized.normalized else "")
    return table


def conflict_table(title: str, conflicts: Sequence[Conflict]) -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("Severity")
    table.add_column("Type")
    table.add_column("Key")
    table.add_column("Keybinds")
    table.add_column("Message")
    for conflict in conflicts:
        table.add_row(
            Text(conflict.severity.value, style=SEVERITY_STYLES[conflict.severity]),
            conflict.type.value,
            format_key(conflict.key) if conflict.key else "",
            ", ".join(conflict.keybinds),
            conflict.message,
        )
    return table


def suggestion_table(title: str, suggestions: Sequence[KeybindSuggestion]) -> Table:
    table = Table(title=title)
    table.add_column("Confidence", justify="right")
    table.add_column("Tool")
    table.add_column("Action")
    table.add_column("Suggested")
    table.add_column("Reason")
    for suggestion in suggestions:
        table.add_row(
            f"{suggestion.confidence:.2f}",
            suggestion.tool,
            suggestion.action,
            format_key(suggestion.suggested_key) if suggestion.keybind else suggestion.suggested_key,
            suggestion.reason,
        )
    return table


def validation_summary(result: ValidationResult) -> Text:
    if result.valid:
        text = Text("valid", style=Style(color="green", bold=True))
    else:
        text = Text("invalid", style=SEVERITY_STYLES[Severity.ERROR])
    text.append(f"  errors={len(result.errors)} warnings={len(result.warnings)} info={len(result.info)}")
    return text


def render_validation(result: ValidationResult, console: Console) -> None:
    conflicts = [*result.errors, *result.warnings, *result.info]
    if conflicts:
        console.print(conflict_table("Conflicts", conflicts))
    if result.suggestions:
        console.print(suggestion_table("Suggestions", result.suggestions))
    console.print(validation_summary(result))


def render_merged(config: MergedConfig, console: Console) -> None:
    stats = config.statistics
    overview = Table(title=f"Merged configuration v{config.version}")
    overview.add_column("Tool")
    overview.add_column("Keybinds", justify="right")
    overview.add_column("Conflicts", justify="right")
    overview.add_column("Suggestions", justify="right")
    for name, tool in config.tools.items():
        overview.add_row(name, str(stats.by_tool.get(name, 0)), str(len(tool.conflicts)), str(len(tool.suggestions)))
    console.print(overview)

    totals = Text(f"total={stats.total_keybinds} enabled={stats.enabled} disabled={stats.disabled}")
    counts = Text("  ".join(f"{kind}={count}" for kind, count in stats.conflicts.items() if count))
    console.print(Panel(Group(totals, counts), title="Statistics", expand=False))

    collisions = config.collisions
    for title, conflicts in (
        ("Global conflicts", collisions.global_conflicts),
        ("Contextual conflicts", collisions.contextual),
    ):
        if conflicts:
            console.print(conflict_table(title, conflicts))
    if collisions.resolved:
        console.print(Text(f"resolved: {', '.join(conflict.id for conflict in collisions.resolved)}"))

    suggestions = sorted(
        (suggestion for tool in config.tools.values() for suggestion in tool.suggestions),
        key=lambda suggestion: (-suggestion.confidence, suggestion.id),
    )
    if suggestions:
        console.print(suggestion_table("Suggestions", suggestions))
    console.print(validation_summary(config.validation))


def junit_report(result: ValidationResult, name: str = "keymerge") -> str:
    """Render RESULT as a JUnit XML document, one test case per conflict.

    Errors become failures; warnings and info are recorded as passing cases
    with their message in ``system-out``.
    """
    conflicts = [*result.errors, *result.warnings, *result.info]
    suite = ET.Element(
        "testsuite",
        name=name,
        tests=str(max(len(conflicts), 1)),
        failures=str(len(result.errors)),
        errors="0",
    )
    if not conflicts:
        ET.SubElement(suite, "testcase", classname=name, name="keybinding-validation")

    for conflict in conflicts:
        case = ET.SubElement(suite, "testcase", classname=f"{name}.{conflict.type.value}", name=conflict.id)
        if conflict.severity is Severity.ERROR:
            failure = ET.SubElement(case, "failure", message=conflict.message, type=conflict.type.value)
            failure.text = "\n".join(conflict.suggestions)
        else:
            out = ET.SubElement(case, "system-out")
            out.text = f"{conflict.severity.value}: {conflict.message}"

    return ET.tostring(suite, encoding="unicode", xml_declaration=True)

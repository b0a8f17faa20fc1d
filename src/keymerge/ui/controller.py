"""Browser state for navigating the conflicts of a merge result."""

from __future__ import annotations

from dataclasses import dataclass

from ..models import Conflict, Keybind, KeybindSuggestion, MergedConfig, Severity
from ..normalizer import format_key

SEVERITY_FILTERS: tuple[str, ...] = ("all", Severity.ERROR.value, Severity.WARNING.value, Severity.INFO.value)

KEY_ACTIONS: dict[str, str] = {
    "down": "next",
    "j": "next",
    "up": "previous",
    "k": "previous",
    "home": "first",
    "g": "first",
    "end": "last",
    "G": "last",
    "f": "cycle-filter",
    "q": "quit",
    "ctrl+q": "quit",
}


@dataclass(frozen=True)
class ConflictRow:
    """One line of the conflict list."""

    conflict_id: str
    severity: str
    type: str
    key: str
    tools: str
    resolved: bool
    selected: bool


@dataclass(frozen=True)
class BrowserSnapshot:
    rows: tuple[ConflictRow, ...]
    selected_id: str | None
    detail: tuple[str, ...]
    severity_filter: str
    status: str


@dataclass(frozen=True)
class UIAction:
    """UI actions consumed by the Textual layer."""

    name: str


class BrowserController:
    """Stateful adapter between key presses and a read-only merge result."""

    def __init__(self, config: MergedConfig) -> None:
        self.config = config
        collisions = config.collisions
        listed = [*collisions.global_conflicts, *collisions.contextual]
        self._conflicts = list({conflict.id: conflict for conflict in listed}.values())
        self._resolved = {conflict.id for conflict in collisions.resolved}
        self._records = {record.id: record for record in config.keybinds()}
        self._suggestions = {
            suggestion.keybind: suggestion
            for tool in config.tools.values()
            for suggestion in tool.suggestions
            if suggestion.keybind is not None
        }
        self._filter = 0
        self._selected = 0
        self._status = "ready"
        self._ui_action: UIAction | None = None

    @property
    def severity_filter(self) -> str:
        return SEVERITY_FILTERS[self._filter]

    def visible(self) -> list[Conflict]:
        wanted = self.severity_filter
        if wanted == "all":
            return list(self._conflicts)
        return [conflict for conflict in self._conflicts if conflict.severity.value == wanted]

    def selected(self) -> Conflict | None:
        visible = self.visible()
        if not visible:
            return None
        return visible[min(self._selected, len(visible) - 1)]

    def snapshot(self) -> BrowserSnapshot:
        current = self.selected()
        rows = tuple(
            ConflictRow(
                conflict_id=conflict.id,
                severity=conflict.severity.value,
                type=conflict.type.value,
                key=format_key(conflict.key) if conflict.key else "",
                tools=", ".join(conflict.tools),
                resolved=conflict.id in self._resolved,
                selected=conflict is current,
            )
            for conflict in self.visible()
        )
        return BrowserSnapshot(
            rows=rows,
            selected_id=current.id if current is not None else None,
            detail=self._detail(current) if current is not None else ("no conflicts",),
            severity_filter=self.severity_filter,
            status=self._status,
        )

    def dispatch_key(self, key: str) -> str:
        action = KEY_ACTIONS.get(key)
        if action is None:
            return self._set_status(f"unbound key: {key}")
        if action == "quit":
            self._ui_action = UIAction("quit")
            return self._set_status("quit")
        if action == "cycle-filter":
            self._filter = (self._filter + 1) % len(SEVERITY_FILTERS)
            self._selected = 0
            return self._set_status(f"filter: {self.severity_filter} ({len(self.visible())})")

        count = len(self.visible())
        if not count:
            return self._set_status("no conflicts")
        if action == "next":
            self._selected = min(self._selected + 1, count - 1)
        elif action == "previous":
            self._selected = max(self._selected - 1, 0)
        elif action == "first":
            self._selected = 0
        else:
            self._selected = count - 1
        return self._set_status(f"{self._selected + 1}/{count}")

    def pop_ui_action(self) -> UIAction | None:
        action = self._ui_action
        self._ui_action = None
        return action

    def _detail(self, conflict: Conflict) -> tuple[str, ...]:
        lines = [
            conflict.message,
            f"type: {conflict.type.value}  severity: {conflict.severity.value}",
            f"contexts: {', '.join(conflict.contexts)}",
            f"resolved: {'yes' if conflict.id in self._resolved else 'no'}",
            "",
        ]
        for record_id in conflict.keybinds:
            record = self._records.get(record_id)
            lines.append(_describe(record_id, record))
            suggestion = self._suggestions.get(record_id)
            if suggestion is not None:
                lines.append(f"    try {_describe_suggestion(suggestion)}")
        if conflict.suggestions:
            lines.append("")
            lines.extend(f"- {hint}" for hint in conflict.suggestions)
        return tuple(lines)

    def _set_status(self, status: str) -> str:
        self._status = status
        return status


def _describe(record_id: str, record: Keybind | None) -> str:
    if record is None:
        return f"{record_id}: (dropped)"
    state = "disabled" if record.disabled else "enabled"
    return f"{record_id}: {record.action or '-'} [{record.tool}/{record.source.value}] {state}"


def _describe_suggestion(suggestion: KeybindSuggestion) -> str:
    keys = [suggestion.suggested_key, *suggestion.alternatives]
    return ", ".join(format_key(key) for key in keys if key)

"""Textual conflict browser for a merge result."""

from __future__ import annotations

from rich.panel import Panel
from rich.style import Style
from rich.table import Table
from rich.text import Text
from textual.app import App, ComposeResult
from textual.events import Key
from textual.widgets import Static

from ..models import MergedConfig, Severity
from ..report import SEVERITY_STYLES
from .controller import BrowserController, BrowserSnapshot

SELECTED_ROW_STYLE = Style(reverse=True)


class ConflictListView(Static):
    can_focus = True


class KeymergeBrowserApp(App[None]):
    """Read-only browser over the conflicts of a merge result."""

    CSS = """
    Screen {
        layout: vertical;
    }

    #conflicts {
        height: 1fr;
        border: round $accent;
    }

    #detail {
        height: 1fr;
    }

    #status {
        height: 1;
        padding: 0 1;
        background: $panel;
        color: $text;
    }
    """

    def __init__(self, config: MergedConfig) -> None:
        super().__init__()
        self.controller = BrowserController(config)
        self.conflict_view: Table | None = None
        self.detail_view: Panel | None = None
        self._quit_requested = False

    @property
    def quit_requested(self) -> bool:
        return self._quit_requested

    def compose(self) -> ComposeResult:
        yield ConflictListView(id="conflicts")
        yield Static(id="detail")
        yield Static(id="status")

    def on_mount(self) -> None:
        self.query_one("#conflicts", ConflictListView).focus()
        self._refresh_view()

    def on_key(self, event: Key) -> None:
        self.controller.dispatch_key(event.key)
        self._apply_ui_action()
        self._refresh_view()
        event.stop()

    def _apply_ui_action(self) -> None:
        action = self.controller.pop_ui_action()
        if action is not None and action.name == "quit":
            self._quit_requested = True
            self.exit()

    def _refresh_view(self) -> None:
        snapshot = self.controller.snapshot()
        self.conflict_view = self._render_conflicts(snapshot)
        self.detail_view = Panel(
            Text("\n".join(snapshot.detail)),
            title=snapshot.selected_id or "details",
            border_style="bright_green" if snapshot.selected_id else "white",
        )
        self.query_one("#conflicts", Static).update(self.conflict_view)
        self.query_one("#detail", Static).update(self.detail_view)

        stats = self.controller.config.statistics
        self.query_one("#status", Static).update(
            Text(
                f"conflicts={len(snapshot.rows)} filter={snapshot.severity_filter} "
                f"enabled={stats.enabled} disabled={stats.disabled} | {snapshot.status}"
            )
        )

    def _render_conflicts(self, snapshot: BrowserSnapshot) -> Table:
        table = Table(expand=True)
        table.add_column("Severity")
        table.add_column("Type")
        table.add_column("Key")
        table.add_column("Tools")
        table.add_column("Resolved")
        for row in snapshot.rows:
            table.add_row(
                Text(row.severity, style=SEVERITY_STYLES[Severity(row.severity)]),
                row.type,
                row.key,
                row.tools,
                "yes" if row.resolved else "",
                style=SELECTED_ROW_STYLE if row.selected else None,
            )
        return table

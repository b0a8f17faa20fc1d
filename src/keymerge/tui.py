"""TUI entrypoint."""

from __future__ import annotations

from .models import MergedConfig
from .ui.app import KeymergeBrowserApp


def run_browser(config: MergedConfig) -> None:
    app = KeymergeBrowserApp(config)
    app.run()

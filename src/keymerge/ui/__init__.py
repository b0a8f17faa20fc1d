"""Terminal conflict browser for keymerge."""

from .app import KeymergeBrowserApp
from .controller import BrowserController, BrowserSnapshot

__all__ = ["BrowserController", "BrowserSnapshot", "KeymergeBrowserApp"]

"""Exception hierarchy for keymerge."""

from __future__ import annotations


class KeymergeError(Exception):
    """Base exception for keymerge."""


class InvalidKeybindError(KeymergeError, ValueError):
    """A keybind record is structurally invalid (e.g. missing its key text)."""


class ConfigError(KeymergeError, ValueError):
    """Configuration file or options could not be understood."""


class RuleError(ConfigError):
    """A custom validation rule is malformed or of an unknown type."""


class LoaderError(KeymergeError):
    """An input file could not be read or has an unexpected shape."""

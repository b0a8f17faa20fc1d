"""keymerge package."""

__all__ = [
    "CollisionRegistry",
    "Conflict",
    "ConflictType",
    "Keybind",
    "KeybindSuggestion",
    "KeybindingLayer",
    "MergeOptions",
    "MergedConfig",
    "NormalizedKey",
    "Severity",
    "Source",
    "ValidationResult",
    "build_registry",
    "detect_all_collisions",
    "detect_keybind_collisions",
    "format_key",
    "is_system_reserved",
    "merge",
    "merge_tool_layers",
    "normalize_key",
    "validate_configuration",
]
__version__ = "0.1.0"

from .detector import (
    CollisionRegistry,
    build_registry,
    detect_all_collisions,
    detect_keybind_collisions,
    validate_configuration,
)
from .merger import MergeOptions, merge, merge_tool_layers
from .models import (
    Conflict,
    ConflictType,
    Keybind,
    KeybindingLayer,
    KeybindSuggestion,
    MergedConfig,
    Severity,
    Source,
    ValidationResult,
)
from .normalizer import NormalizedKey, format_key, is_system_reserved, normalize_key

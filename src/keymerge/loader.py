"""JSON input and output for keybind batches and merge results."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from .errors import LoaderError
from .models import Keybind, KeybindingLayer, MergedConfig

logger = logging.getLogger(__name__)

_MERGED_GROUPS = ("system", "defaults", "user", "generated")


def read_json(path: str | Path) -> Any:
    source = Path(path)
    try:
        text = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise LoaderError(f"cannot read {source}: {exc.strerror or exc}") from None
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise LoaderError(f"invalid JSON in {source}: {exc}") from None


def load_batch(path: str | Path) -> list[Keybind]:
    """Read a flat record list from PATH.

    Accepts a JSON list, ``{"keybinds": [...]}`` or a merged config whose
    per-tool groups are flattened.
    """
    records = parse_batch(read_json(path), origin=str(path))
    logger.debug("loaded %d keybinds from %s", len(records), path)
    return records


def parse_batch(data: Any, origin: str = "<input>") -> list[Keybind]:
    if isinstance(data, list):
        items: Iterable[Any] = data
    elif isinstance(data, dict) and isinstance(data.get("keybinds"), list):
        items = data["keybinds"]
    elif isinstance(data, dict) and isinstance(data.get("tools"), dict):
        items = [
            item
            for group in data["tools"].values()
            if isinstance(group, dict)
            for name in _MERGED_GROUPS
            for item in group.get(name) or []
        ]
    else:
        raise LoaderError(f"{origin}: expected a list of keybinds, a keybinds object or a merged config")

    records: list[Keybind] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise LoaderError(f"{origin}: keybind #{index} is not an object")
        records.append(Keybind.from_dict(item))
    return records


def load_layers(path: str | Path) -> dict[str, KeybindingLayer]:
    """Read ``{tool: {system, defaults, user, generated}}`` from PATH."""
    data = read_json(path)
    if not isinstance(data, dict):
        raise LoaderError(f"{path}: expected an object keyed by tool name")

    layers: dict[str, KeybindingLayer] = {}
    for tool, groups in data.items():
        if not isinstance(groups, dict):
            raise LoaderError(f"{path}: layers for {tool} must be an object")
        for name, items in groups.items():
            if name not in _MERGED_GROUPS:
                logger.warning("%s: ignoring unknown layer %r for %s", path, name, tool)
            elif items is not None and not isinstance(items, list):
                raise LoaderError(f"{path}: {tool}.{name} must be a list")
        layers[tool] = KeybindingLayer.from_dict(groups)
    return layers


def dump_merged(config: MergedConfig) -> str:
    return json.dumps(config.to_dict(), indent=2, ensure_ascii=False)


def write_merged(config: MergedConfig, path: str | Path) -> None:
    target = Path(path)
    try:
        target.write_text(dump_merged(config) + "\n", encoding="utf-8")
    except OSError as exc:
        raise LoaderError(f"cannot write {target}: {exc.strerror or exc}") from None

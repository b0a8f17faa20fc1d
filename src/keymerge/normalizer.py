"""Key notation normalization for collision detection."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from dataclasses import dataclass
from functools import lru_cache
from importlib.resources import files

SEQUENCE_JOINER = " → "

_SEQUENCE_SPLIT = re.compile(r"\s*(?:,|→|\bthen\b)\s*", re.IGNORECASE)
_PREFIX_SEQUENCE = re.compile(r"^[CMS]-\S+\s+\S+")
_FUNCTION_KEY = re.compile(r"^f\d{1,2}$", re.IGNORECASE)
_SEPARATORS = ("+", "-")


@dataclass(frozen=True)
class KeyTables:
    """Static lookup tables shipped in ``data/keys.json``."""

    modifier_order: tuple[str, ...]
    modifier_aliases: dict[str, str]
    hyphen_modifier_aliases: dict[str, str]
    modifier_glyphs: dict[str, str]
    special_keys: dict[str, str]
    system_reserved: frozenset[str]
    adjacent_keys: dict[str, tuple[str, ...]]
    difficult_keys: frozenset[str]
    easy_keys: tuple[str, ...]
    display_glyphs: dict[str, str]


@dataclass(frozen=True)
class NormalizedKey:
    """Canonical form of a key combination or multi-key sequence."""

    key: str
    modifiers: frozenset[str]
    normalized: str
    sequence: tuple[str, ...] | None = None

    @property
    def ordered_modifiers(self) -> tuple[str, ...]:
        return order_modifiers(self.modifiers)

    @property
    def is_sequence(self) -> bool:
        return self.sequence is not None


@lru_cache(maxsize=1)
def key_tables() -> KeyTables:
    """Load the alias and key tables bundled with the package."""
    raw = json.loads(files("keymerge").joinpath("data/keys.json").read_text(encoding="utf-8"))
    return KeyTables(
        modifier_order=tuple(raw["modifier_order"]),
        modifier_aliases=dict(raw["modifier_aliases"]),
        hyphen_modifier_aliases=dict(raw["hyphen_modifier_aliases"]),
        modifier_glyphs=dict(raw["modifier_glyphs"]),
        special_keys=dict(raw["special_keys"]),
        system_reserved=frozenset(raw["system_reserved"]),
        adjacent_keys={key: tuple(values) for key, values in raw["adjacent_keys"].items()},
        difficult_keys=frozenset(raw["difficult_keys"]),
        easy_keys=tuple(raw["easy_keys"]),
        display_glyphs=dict(raw["display_glyphs"]),
    )


def normalize_key(raw: str) -> NormalizedKey:
    """Normalize RAW key text into its canonical form.

    Accepts plus-joined (``cmd+shift+a``), control-style (``C-M-a``),
    symbolic (``⌘⇧A``) and sequence (``C-b c``, ``ctrl+a, b``) notations.
    Never raises: unrecognized tokens pass through capitalized.
    """
    text = "" if raw is None else str(raw)
    if not text:
        return NormalizedKey(key="", modifiers=frozenset(), normalized="")
    if not text.strip():
        return NormalizedKey(key="Space", modifiers=frozenset(), normalized="Space")

    parts = _sequence_parts(text.strip())
    if parts is not None:
        return _normalize_sequence(parts)
    return _normalize_combo(text.strip())


def order_modifiers(modifiers: Iterable[str]) -> tuple[str, ...]:
    """Sort modifier names into the canonical order."""
    order = key_tables().modifier_order
    known = [mod for mod in order if mod in modifiers]
    extra = sorted(set(modifiers) - set(order))
    return (*known, *extra)


def compose_key(modifiers: Iterable[str], base: str) -> str:
    """Build a canonical combo string from MODIFIERS and a BASE key."""
    return "+".join([*order_modifiers(modifiers), base])


def is_system_reserved(key: NormalizedKey | str) -> bool:
    normalized = key.normalized if isinstance(key, NormalizedKey) else key
    return normalized in key_tables().system_reserved


def format_key(key: NormalizedKey | str) -> str:
    """Render a canonical key with modifier glyphs, e.g. ``⌘⇧A``."""
    normalized = key if isinstance(key, NormalizedKey) else normalize_key(key)
    if normalized.sequence is not None:
        return " then ".join(format_key(element) for element in normalized.sequence)

    glyphs = key_tables().display_glyphs
    return "".join(glyphs.get(mod, f"{mod}+") for mod in normalized.ordered_modifiers) + normalized.key


def alternative_keys(key: NormalizedKey | str) -> list[str]:
    """Candidate canonical keys near KEY: modifier variations, then adjacent base keys.

    For a sequence only the final element is varied.
    """
    normalized = key if isinstance(key, NormalizedKey) else normalize_key(key)
    if normalized.sequence is not None:
        *prefix, last = normalized.sequence
        return [
            SEQUENCE_JOINER.join([*prefix, candidate])
            for candidate in alternative_keys(last)
        ]

    base = normalized.key
    mods = set(normalized.modifiers)
    variations = [
        mods | {"shift"},
        mods | {"option"},
        mods | {"ctrl"},
        mods - {"shift"},
        mods - {"option"},
        (mods - {"shift"}) | {"option"},
    ]

    candidates = [compose_key(variation, base) for variation in variations]
    candidates.extend(compose_key(mods, near) for near in key_tables().adjacent_keys.get(base, ()))

    seen = {normalized.normalized}
    unique: list[str] = []
    for candidate in candidates:
        if candidate in seen:
            continue
        seen.add(candidate)
        unique.append(candidate)
    return unique


def _sequence_parts(text: str) -> list[str] | None:
    parts = _SEQUENCE_SPLIT.split(text)
    if len(parts) > 1 and all(parts):
        return parts

    tokens = text.split()
    if len(tokens) < 2:
        return None
    if _PREFIX_SEQUENCE.match(text):
        return tokens
    if any(_is_modifier_token(token) for token in tokens[:-1]):
        # "cmd shift a" and "⌘ Space" are single combos
        return None
    if not any(sep in text for sep in _SEPARATORS):
        return tokens
    if all(_is_self_contained(token) for token in tokens):
        return tokens
    return None


def _normalize_sequence(parts: list[str]) -> NormalizedKey:
    elements = tuple(_normalize_combo(part).normalized for part in parts)
    return NormalizedKey(
        key="",
        modifiers=frozenset(),
        normalized=SEQUENCE_JOINER.join(elements),
        sequence=elements,
    )


def _normalize_combo(text: str) -> NormalizedKey:
    tables = key_tables()
    if any(ch in tables.modifier_glyphs for ch in text):
        return _normalize_glyph_combo(text)

    separator = _pick_separator(text)
    tokens = _split_tokens(text, separator)
    hyphen = separator == "-"
    joiner = separator if separator in _SEPARATORS else "-"

    modifiers: set[str] = set()
    base_tokens: list[str] = []
    for idx, token in enumerate(tokens):
        modifier = _modifier_for(token, short_aliases=hyphen and idx < len(tokens) - 1)
        if modifier is None:
            base_tokens.append(token)
        else:
            modifiers.add(modifier)

    joined = joiner.join(base_tokens)
    if len(base_tokens) > 1 and joined.lower() not in tables.special_keys:
        base = joiner.join(_normalize_base(token) for token in base_tokens)
    elif base_tokens:
        base = _normalize_base(joined)
    else:
        # only modifier names: the last one is the key itself
        last = tokens[-1] if tokens else text
        modifiers.discard(_modifier_for(last, short_aliases=False) or "")
        base = _normalize_base(last)

    return _combo(base, modifiers)


def _normalize_glyph_combo(text: str) -> NormalizedKey:
    glyphs = key_tables().modifier_glyphs
    modifiers: set[str] = set()
    rest: list[str] = []
    last_glyph = ""
    for ch in text:
        modifier = glyphs.get(ch)
        if modifier is None:
            rest.append(ch)
        else:
            modifiers.add(modifier)
            last_glyph = ch

    remainder = "".join(rest).strip()
    if len(remainder) > 1 and remainder[0] in _SEPARATORS:
        remainder = remainder[1:].strip()

    if not remainder:
        # only modifier glyphs: the last one is the key, spelled as a word
        modifiers.discard(glyphs[last_glyph])
        return _combo(_normalize_base(glyphs[last_glyph]), modifiers)

    inner = _normalize_combo(remainder)
    return _combo(inner.key, modifiers | inner.modifiers)


def _combo(base: str, modifiers: set[str]) -> NormalizedKey:
    frozen = frozenset(modifiers)
    return NormalizedKey(key=base, modifiers=frozen, normalized=compose_key(frozen, base))


def _pick_separator(text: str) -> str | None:
    for sep in _SEPARATORS:
        if sep in text and text != sep:
            return sep
    if len(text.split()) > 1:
        return " "
    return None


def _split_tokens(text: str, separator: str | None) -> list[str]:
    if separator is None:
        return [text]
    if separator == " ":
        return text.split()

    tokens = [token.strip() for token in text.split(separator)]
    if len(tokens) >= 3 and tokens[-1] == "" and tokens[-2] == "":
        # trailing doubled separator is the key itself: "cmd++", "C--"
        tokens = [*tokens[:-2], separator]
    return [token for token in tokens if token]


def _modifier_for(token: str, *, short_aliases: bool) -> str | None:
    tables = key_tables()
    lowered = token.lower()
    modifier = tables.modifier_aliases.get(lowered)
    if modifier is None and short_aliases:
        modifier = tables.hyphen_modifier_aliases.get(lowered)
    return modifier


def _is_modifier_token(token: str) -> bool:
    tables = key_tables()
    if token.lower() in tables.modifier_aliases:
        return True
    return all(ch in tables.modifier_glyphs for ch in token)


def _is_self_contained(token: str) -> bool:
    if token in _SEPARATORS:
        return False
    if token[0] in _SEPARATORS:
        return False
    if token[-1] in _SEPARATORS and token[-2] not in _SEPARATORS:
        return False
    return True


def _normalize_base(token: str) -> str:
    special = key_tables().special_keys.get(token.lower())
    if special is not None:
        return special
    if _FUNCTION_KEY.match(token):
        return token.upper()
    if len(token) == 1:
        return token.upper()
    if token.isdigit():
        return token
    return token[:1].upper() + token[1:]
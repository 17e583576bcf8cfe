"""Canonical representation shared by user queries and product names.

Upstream catalogs spell the same product in many ways ("Coca-Cola 2,25 Lts",
"coca cola 2.25l", "COCA COLA 2250 cc"). Every comparison in the matcher goes
through :func:`canonicalize` so that the query and each candidate name are
reduced with the very same steps:

1. :func:`normalize_text` lowercases, folds accents with ``unidecode``, turns
   decimal commas into dots and separators (``-``, ``_``, ``/``) into spaces.
2. :func:`normalize_units` rewrites unit spellings to ``ml``/``l``/``g``/``kg``
   and puts exactly one space between a number and its unit.
3. Volume (liters) and weight (kilograms) are extracted, each only when the
   value lies in a plausible range for groceries.
4. Combo and zero/diet flags are detected.
5. Units, numbers, punctuation and generic descriptors are removed to produce
   the ``core`` text used for fuzzy similarity.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

from unidecode import unidecode

_WHITESPACE_RE = re.compile(r"\s+")
_SEPARATOR_RE = re.compile(r"[-_/]")

# Unit aliases may follow a number without a space ("2lts", "500gr").
_UNIT_START = r"(?:(?<=\d)|\b)"
_UNIT_ALIASES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bc\.\s?c\b\.?"), "cc"),
    (re.compile(_UNIT_START + r"(?:mililitros?|mls)\b"), "ml"),
    (re.compile(_UNIT_START + r"(?:lts|lt|litros?)\b"), "l"),
    (re.compile(_UNIT_START + r"(?:kilos?|kilogramos?)\b"), "kg"),
    (re.compile(_UNIT_START + r"(?:gramos?|grs?)\b"), "g"),
)
_NUMBER = r"(\d+(?:\.\d+)?)"
_UNIT_SPACING: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(_NUMBER + r"\s*(?:cm3|cc)\b"), r"\1 ml"),
    (re.compile(_NUMBER + r"\s*ml\b"), r"\1 ml"),
    (re.compile(_NUMBER + r"\s*l\b"), r"\1 l"),
    (re.compile(_NUMBER + r"\s*kg\b"), r"\1 kg"),
    (re.compile(_NUMBER + r"\s*g\b"), r"\1 g"),
)

_VOLUME_RE = re.compile(r"\b" + _NUMBER + r"\s*(ml|l)\b")
_WEIGHT_RE = re.compile(r"\b" + _NUMBER + r"\s*(g|kg)\b")
_BARE_UNIT_RE = re.compile(r"\b(?:ml|l|kg|g|cc|cm3)\b")
_BARE_NUMBER_RE = re.compile(r"\b\d+(?:\.\d+)?\b")
_SYMBOL_RE = re.compile(r"[^a-z0-9\s+]")

_COMBO_WORDS_RE = re.compile(r"\b(?:pack|combo|multipack|promo|oferta)\b")
_ZERO_WORDS_RE = re.compile(r"\b(?:zero|light|liviana|diet|liviano)\b")
_SUGAR_FREE_RE = re.compile(r"\bsin\s*azucar\b|\bno\s*sugar\b")
_COUNT_UNITS_RE = re.compile(r"\b\d+\s*(?:u|uds|unidades)\b")
_TIMES_RE = re.compile(r"\b\d+\s*x\s*\d+\b")
_BY_COUNT_RE = re.compile(r"\bx\s*\d+\b")
_TAKE_N_RE = re.compile(r"\b(?:lleva|llevas|llevate)\s*\d+\b")

VOLUME_RANGE_LITERS = (0.02, 10.0)
WEIGHT_RANGE_KG = (0.01, 50.0)

STOP_WORDS = frozenset(
    {
        "gaseosa",
        "bebida",
        "jugo",
        "agua",
        "vino",
        "cerveza",
        "sabor",
        "original",
        "pack",
        "combo",
        "multipack",
        "promo",
        "oferta",
        "zero",
        "light",
        "liviana",
        "liviano",
        "diet",
        "sin",
        "azucar",
        "sugar",
        "no",
        "unidad",
        "unidades",
        "un",
        "u",
        "ud",
        "uds",
        "x",
    }
)


@dataclass(frozen=True)
class CanonicalQuery:
    core: str
    volume_liters: Optional[float] = None
    weight_kg: Optional[float] = None
    wants_combo: bool = False
    wants_zero: bool = False

    @property
    def tokens(self) -> List[str]:
        return self.core.split()

    @property
    def has_size(self) -> bool:
        return self.volume_liters is not None or self.weight_kg is not None


def collapse(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_text(text: str | None) -> str:
    """Lowercase, fold accents and normalize separators and decimal commas."""
    folded = unidecode(str(text or "")).lower()
    folded = folded.replace(",", ".")
    folded = _SEPARATOR_RE.sub(" ", folded)
    return collapse(folded)


def normalize_units(text: str | None) -> str:
    normalized = normalize_text(text)
    for pattern, replacement in _UNIT_ALIASES:
        normalized = pattern.sub(replacement, normalized)
    for pattern, replacement in _UNIT_SPACING:
        normalized = pattern.sub(replacement, normalized)
    return collapse(normalized)


def _in_range(value: float, bounds: tuple[float, float]) -> Optional[float]:
    low, high = bounds
    if low <= value <= high:
        return round(value, 3)
    return None


def _volume_from_units(units_text: str) -> Optional[float]:
    match = _VOLUME_RE.search(units_text)
    if not match:
        return None
    value = float(match.group(1))
    liters = value / 1000 if match.group(2) == "ml" else value
    return _in_range(liters, VOLUME_RANGE_LITERS)


def _weight_from_units(units_text: str) -> Optional[float]:
    match = _WEIGHT_RE.search(units_text)
    if not match:
        return None
    value = float(match.group(1))
    kilograms = value / 1000 if match.group(2) == "g" else value
    return _in_range(kilograms, WEIGHT_RANGE_KG)


def extract_volume_liters(text: str | None) -> Optional[float]:
    return _volume_from_units(normalize_units(text))


def extract_weight_kg(text: str | None) -> Optional[float]:
    return _weight_from_units(normalize_units(text))


def _mentions_zero(units_text: str) -> bool:
    return bool(_ZERO_WORDS_RE.search(units_text) or _SUGAR_FREE_RE.search(units_text))


def _mentions_combo(units_text: str) -> bool:
    return "+" in units_text or bool(_COMBO_WORDS_RE.search(units_text))


def is_zero_name(name: str | None) -> bool:
    return _mentions_zero(normalize_units(name))


def is_combo_name(name: str | None) -> bool:
    """Product-name combo detection, stricter than the query-side flag.

    Besides the query markers it also catches multi-unit listings such as
    ``6 u``, ``2x1``, ``x 6`` and ``llevate 3``.
    """
    units_text = normalize_units(name)
    return (
        _mentions_combo(units_text)
        or bool(_COUNT_UNITS_RE.search(units_text))
        or bool(_TIMES_RE.search(units_text))
        or bool(_BY_COUNT_RE.search(units_text))
        or bool(_TAKE_N_RE.search(units_text))
    )


def combo_markers(name: str | None) -> tuple[bool, bool]:
    """Return ``(has_plus, has_pack_marker)`` used to size the combo penalty."""
    units_text = normalize_units(name)
    has_pack = bool(
        _COMBO_WORDS_RE.search(units_text)
        or _TIMES_RE.search(units_text)
        or _BY_COUNT_RE.search(units_text)
    )
    return "+" in units_text, has_pack


def strip_units(text: str | None) -> str:
    """Drop unit words while keeping the numbers that preceded them."""
    return collapse(_BARE_UNIT_RE.sub(" ", normalize_units(text)))


def has_word(text: str, token: str) -> bool:
    needle = normalize_text(token)
    if not needle:
        return False
    return re.search(rf"\b{re.escape(needle)}\b", text, re.IGNORECASE) is not None


def canonicalize(text: str | None) -> CanonicalQuery:
    units_text = normalize_units(text)

    cleaned = _BARE_UNIT_RE.sub(" ", units_text)
    cleaned = _BARE_NUMBER_RE.sub(" ", cleaned)
    cleaned = collapse(_SYMBOL_RE.sub(" ", cleaned))

    core = " ".join(token for token in cleaned.split(" ") if token and token not in STOP_WORDS)

    return CanonicalQuery(
        core=core or cleaned,
        volume_liters=_volume_from_units(units_text),
        weight_kg=_weight_from_units(units_text),
        wants_combo=_mentions_combo(units_text),
        wants_zero=_mentions_zero(units_text),
    )

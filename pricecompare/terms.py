"""Retrieval term expansion.

Retailer search backends are literal: ``"coca cola 2.25 litros"`` often finds
nothing while ``"coca cola"`` finds plenty. :func:`build_search_terms` turns a
query into an ordered list of progressively broader terms so the orchestrator
can start specific and only widen when the narrower terms come back empty.
"""
from __future__ import annotations

import re
from typing import Iterable, List

from .canonical import collapse, normalize_text

UNIT_WORDS = r"(?:l|lt|lts|litro|litros|ml|mls|mililitro|mililitros|g|gr|gramo|gramos|kg|kilo|kilos)"

_SIZE_TOKEN_RE = re.compile(r"\b\d+(?:\.\d+)?\s*" + UNIT_WORDS + r"\b")
_UNIT_AFTER_NUMBER_RE = re.compile(r"\b(\d+(?:\.\d+)?)\s*" + UNIT_WORDS + r"\b")
_UNIT_WORD_RE = re.compile(r"\b" + UNIT_WORDS + r"\b")
_NUMBER_RE = re.compile(r"\b\d+(?:\.\d+)?\b")

MAX_TERMS = 6


def normalize_query(query: str | None) -> str:
    return normalize_text(query)


def first_word(text: str) -> str:
    words = normalize_query(text).split(" ")
    return words[0].strip() if words else ""


def remove_size_token(text: str) -> str:
    """``"leche 1 l entera"`` -> ``"leche entera"``."""
    return collapse(_SIZE_TOKEN_RE.sub(" ", normalize_query(text)))


def strip_numbers(text: str) -> str:
    return collapse(_NUMBER_RE.sub(" ", normalize_query(text)))


def has_loose_number(text: str) -> bool:
    return _NUMBER_RE.search(normalize_query(text)) is not None


def strip_unit_words(text: str) -> str:
    return collapse(_UNIT_WORD_RE.sub(" ", normalize_query(text)))


def remove_unit_after_number(text: str) -> str:
    """``"coca 2.25l"`` -> ``"coca 2.25"``: drop the unit but keep the size."""
    return collapse(_UNIT_AFTER_NUMBER_RE.sub(r" \1 ", normalize_query(text)))


def clean_items(items: Iterable[str | None] | None) -> List[str]:
    return [item.strip() for item in (items or []) if item and item.strip()]


def build_search_terms(query: str | None) -> List[str]:
    base = normalize_query(query)
    if not base:
        return []

    terms: List[str] = []

    def add(candidate: str) -> None:
        term = normalize_query(candidate)
        if term and term not in terms:
            terms.append(term)

    add(base)
    add(remove_unit_after_number(base))

    without_size = remove_size_token(base)
    if without_size and without_size != base:
        add(without_size)

    without_units = strip_unit_words(base)
    if without_units and without_units != base:
        add(without_units)

    without_numbers = strip_numbers(without_size or base)
    if without_numbers and without_numbers != base:
        add(without_numbers)

    first = first_word(without_units or without_size or base)
    if first and first != base:
        add(first)

    return terms[:MAX_TERMS]

"""Tests for retrieval term expansion."""

import pytest

from pricecompare.terms import (
    build_search_terms,
    clean_items,
    first_word,
    has_loose_number,
    remove_size_token,
    remove_unit_after_number,
    strip_numbers,
)


def test_terms_broaden_progressively():
    assert build_search_terms("Coca Cola 2.25 Litros") == [
        "coca cola 2.25 litros",
        "coca cola 2.25",
        "coca cola",
        "coca",
    ]


def test_unit_glued_to_number():
    assert build_search_terms("Yerba 1kg") == ["yerba 1kg", "yerba 1", "yerba"]


def test_single_word_has_a_single_term():
    assert build_search_terms("Leche") == ["leche"]


def test_blank_query_has_no_terms():
    assert build_search_terms("   ") == []
    assert build_search_terms(None) == []


@pytest.mark.parametrize(
    "query",
    [
        "Coca Cola 2.25 Litros",
        "aceite girasol 1,5 l natura 900 ml",
        "arroz 1 kg gallo 500 gr",
        "leche 1 l",
        "pan",
        "queso cremoso 2 kilos 3",
    ],
)
def test_terms_are_unique_and_bounded(query):
    terms = build_search_terms(query)

    assert len(terms) == len(set(terms))
    assert 1 <= len(terms) <= 6


def test_helpers():
    assert remove_size_token("leche 1 l entera") == "leche entera"
    assert remove_unit_after_number("coca 2.25l") == "coca 2.25"
    assert strip_numbers("huevos 12 blancos") == "huevos blancos"
    assert has_loose_number("huevos 12")
    assert not has_loose_number("huevos")
    assert first_word("  Dulce de leche ") == "dulce"


def test_clean_items_drops_blanks():
    assert clean_items([" leche ", "", None, "   ", "pan"]) == ["leche", "pan"]
    assert clean_items(None) == []

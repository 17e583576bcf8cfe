"""Tests for single-item and shopping-list comparison."""

import asyncio

import pytest

from pricecompare.compare import CompareService, check_list_cost, rank_retailers
from pricecompare.errors import ListTooLargeError
from pricecompare.models import CompareItemResponse, CompareItemResult
from pricecompare.search_service import SearchService

from conftest import FakeRetailer, make_product


def build_compare(*retailers, item_concurrency=3):
    search = SearchService(list(retailers), ttl=60, negative_ttl=15)
    return CompareService(search, item_concurrency=item_concurrency)


@pytest.fixture
def grocery_retailers():
    dia = FakeRetailer(
        "dia",
        {
            "leche": [make_product("Leche Entera", 800)],
            "pan": [make_product("Pan Francés", 500)],
        },
    )
    jumbo = FakeRetailer("jumbo", {"leche": [make_product("Leche Entera", 900, "jumbo")]})
    return dia, jumbo


def test_list_ranking_picks_cheapest_total(grocery_retailers):
    compare = build_compare(*grocery_retailers)

    response = asyncio.run(compare.compare_list(["leche", "pan"]))

    assert response.items == ["leche", "pan"]
    assert response.retailers == ["dia", "jumbo"]
    assert [row.retailer for row in response.ranking] == ["jumbo", "dia"]

    jumbo_row, dia_row = response.ranking
    assert jumbo_row.total == 900
    assert jumbo_row.missingCount == 1
    assert jumbo_row.missingItems == ["pan"]
    assert dia_row.total == 1300
    assert dia_row.missingItems == []

    assert response.best == jumbo_row
    assert [item.query for item in response.detail] == ["leche", "pan"]


def test_list_cleans_items_before_searching(grocery_retailers):
    dia, jumbo = grocery_retailers
    compare = build_compare(dia, jumbo)

    response = asyncio.run(compare.compare_list(["  leche ", "", "   "], ["dia"]))

    assert response.items == ["leche"]
    assert response.retailers == ["dia"]
    assert jumbo.calls == []


def test_empty_list_has_no_best():
    compare = build_compare(FakeRetailer("dia"))

    response = asyncio.run(compare.compare_list(["", "  "]))

    assert response.items == []
    assert response.best is None
    assert response.ranking == []
    assert response.detail == []


def test_item_rows_follow_retailer_order(grocery_retailers):
    compare = build_compare(*grocery_retailers)

    response = asyncio.run(compare.compare_item("leche", ["jumbo", "dia"], 5))

    assert response.limit == 5
    assert [row.retailer for row in response.results] == ["dia", "jumbo"]
    assert [row.products[0].price for row in response.results] == [800, 900]


def test_blank_item_does_no_upstream_work(grocery_retailers):
    dia, jumbo = grocery_retailers
    compare = build_compare(dia, jumbo)

    response = asyncio.run(compare.compare_item("   "))

    assert [row.products for row in response.results] == [[], []]
    assert dia.calls == [] and jumbo.calls == []


def test_unknown_retailer_filter_falls_back_to_all(grocery_retailers):
    compare = build_compare(*grocery_retailers)

    response = asyncio.run(compare.compare_item("leche", ["coto"]))

    assert response.retailers == ["dia", "jumbo"]


def test_item_errors_are_reported_per_retailer(grocery_retailers):
    """A retailer whose search raises yields an error row instead of failing the item."""

    class BrokenMatcher:
        def match(self, query, products, limit=15):
            raise ValueError("matcher exploded")

    search = SearchService(list(grocery_retailers), BrokenMatcher(), ttl=60, negative_ttl=15)
    compare = CompareService(search)

    response = asyncio.run(compare.compare_item("leche entera"))

    assert [row.retailer for row in response.results] == ["dia", "jumbo"]
    assert all(row.error == "matcher exploded" for row in response.results)
    assert all(row.products == [] for row in response.results)


def test_item_concurrency_is_bounded():
    dia = FakeRetailer("dia", lambda term: [make_product(term.title(), 100)], delay=0.01)
    compare = build_compare(dia, item_concurrency=1)

    asyncio.run(compare.compare_list(["leche", "yerba", "arroz", "fideos"]))

    assert dia.max_active == 1
    assert sorted(dia.calls) == ["arroz", "fideos", "leche", "yerba"]


def test_rank_retailers_counts_error_rows_as_missing():
    detail = [
        CompareItemResponse(
            query="leche",
            limit=5,
            retailers=["dia", "vea"],
            results=[
                CompareItemResult(retailer="dia", products=[make_product("Leche", 800)]),
                CompareItemResult(retailer="vea", products=[], error="timeout"),
            ],
        )
    ]

    ranking = rank_retailers(detail, ["dia", "vea"])

    assert [(row.retailer, row.total, row.missingItems) for row in ranking] == [
        ("vea", 0, ["leche"]),
        ("dia", 800, []),
    ]


def test_check_list_cost():
    check_list_cost(["x"] * 60, ["carrefour", "dia", "jumbo", "vea"])

    with pytest.raises(ListTooLargeError, match="Max items: 60"):
        check_list_cost(["x"] * 61, ["dia"])

    with pytest.raises(ListTooLargeError, match=r"Too expensive \(cost=350\)"):
        check_list_cost(["x"] * 50, ["r"] * 7)

"""Terminal client runs against in-memory retailers."""

import pytest

import cli_compare
from pricecompare.services import build_services

from conftest import FakeRetailer, make_product


@pytest.fixture
def fake_services(monkeypatch):
    dia = FakeRetailer("dia", {"leche": [make_product("Leche Entera", 800)]})
    jumbo = FakeRetailer("jumbo", {"leche": [make_product("Leche Entera", 900, "jumbo")]})
    services = build_services([dia, jumbo])
    monkeypatch.setattr(cli_compare, "get_services", lambda: services)
    return services


def test_single_query(fake_services, capsys):
    assert cli_compare.main(["leche", "--limit", "3"]) == 0

    out = capsys.readouterr().out
    assert "Query: leche | retailers: dia, jumbo" in out
    assert "$800.00 | Leche Entera" in out


def test_list_prints_ranking(fake_services, capsys):
    assert cli_compare.main(["--list", "leche", "pan"]) == 0

    out = capsys.readouterr().out
    assert "Ranking:" in out
    assert "missing=pan" in out


def test_oversized_list_is_rejected(fake_services, capsys):
    assert cli_compare.main(["--list", *["x"] * 61]) == 2
    assert "Max items: 60" in capsys.readouterr().out


def test_batch_file(fake_services, tmp_path, capsys):
    batch = tmp_path / "queries.txt"
    batch.write_text("leche\n\n  leche  \n", encoding="utf-8")

    assert cli_compare.main(["--batch", str(batch)]) == 0
    assert capsys.readouterr().out.count("Query: leche") == 2

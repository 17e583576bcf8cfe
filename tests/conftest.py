"""Shared fakes: in-memory retailers that record every upstream call."""
from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Optional, Union

import pytest

from pricecompare.models import Product

Catalog = Union[Dict[str, List[Product]], Callable[[str], List[Product]]]


class FakeRetailer:
    def __init__(
        self,
        retailer: str,
        catalog: Optional[Catalog] = None,
        *,
        delay: float = 0.0,
        error: Optional[Exception] = None,
    ) -> None:
        self.retailer = retailer
        self.catalog = catalog or {}
        self.delay = delay
        self.error = error
        self.calls: List[str] = []
        self.active = 0
        self.max_active = 0

    async def search(self, term: str) -> List[Product]:
        self.calls.append(term)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            if callable(self.catalog):
                return list(self.catalog(term))
            return list(self.catalog.get(term, []))
        finally:
            self.active -= 1


def make_product(name: str, price: float, retailer: str = "dia", id: Optional[str] = None) -> Product:
    return Product(id=id, name=name, price=price, retailer=retailer)


@pytest.fixture
def product() -> Callable[..., Product]:
    return make_product


@pytest.fixture
def fake_retailer() -> Callable[..., FakeRetailer]:
    return FakeRetailer

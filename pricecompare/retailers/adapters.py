"""Concrete retailer adapters. Each one implements :class:`RetailerPort`."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ..config import settings
from ..errors import PersistedQueryNotFoundError
from ..models import Product
from .http_client import HttpClient
from .vtex import (
    is_persisted_query_not_found,
    map_vtex_products,
    persisted_query_params,
    product_search_variables,
    require_hash,
    storefront_terms,
    suggestions_variables,
)

logger = logging.getLogger(__name__)


class DiaAdapter:
    retailer = "dia"
    base_url = "https://diaonline.supermercadosdia.com.ar"

    def __init__(self, http: HttpClient) -> None:
        self.http = http

    async def search(self, term: str) -> List[Product]:
        data = await self.http.get_json(
            f"{self.base_url}/api/catalog_system/pub/products/search",
            params={"ft": term, "_from": 0, "_to": 30},
        )
        return map_vtex_products(data, self.retailer, require_stock=False)


class JumboAdapter:
    retailer = "jumbo"
    base_url = "https://www.jumbo.com.ar"

    def __init__(self, http: HttpClient) -> None:
        self.http = http

    async def search(self, term: str) -> List[Product]:
        data = await self.http.get_json(
            f"{self.base_url}/api/catalog_system/pub/products/search/",
            params={"ft": term},
        )
        return map_vtex_products(data, self.retailer, require_product_data=True)


class _GraphqlStorefront(ABC):
    """Persisted-query storefront: tries its own narrow terms, first hit wins."""

    retailer = ""
    base_url = ""

    def __init__(self, http: HttpClient) -> None:
        self.http = http

    @abstractmethod
    def _params(self, term: str) -> Dict[str, str]: ...

    @abstractmethod
    def _products(self, payload: Dict[str, Any]) -> List[Any]: ...

    async def search(self, term: str) -> List[Product]:
        for candidate in storefront_terms(term):
            payload = await self.http.get_json(
                f"{self.base_url}/_v/segment/graphql/v1/", params=self._params(candidate)
            )
            if is_persisted_query_not_found(payload):
                raise PersistedQueryNotFoundError()

            products = map_vtex_products(
                self._products(payload or {}),
                self.retailer,
                base_url=self.base_url,
                use_price_range=True,
            )
            if products:
                return products
            logger.debug("%s: no products for %r", self.retailer, candidate)
        return []


class CarrefourAdapter(_GraphqlStorefront):
    retailer = "carrefour"
    base_url = "https://www.carrefour.com.ar"

    def _params(self, term: str) -> Dict[str, str]:
        return persisted_query_params(
            operation="productSuggestions",
            sha256_hash=require_hash(settings.vtex_sha256_hash, "VTEX_SHA256_HASH"),
            variables=suggestions_variables(term, count=30),
        )

    def _products(self, payload: Dict[str, Any]) -> List[Any]:
        data = payload.get("data") or {}
        return (data.get("productSuggestions") or {}).get("products") or []


class VeaAdapter(_GraphqlStorefront):
    retailer = "vea"
    base_url = "https://www.vea.com.ar"

    def _params(self, term: str) -> Dict[str, str]:
        return persisted_query_params(
            operation="productSearchV3",
            sha256_hash=require_hash(settings.vea_vtex_sha256_hash, "VEA_VTEX_SHA256_HASH"),
            variables=product_search_variables(term, 0, 20),
            max_age="short",
            binding_id=settings.vea_binding_id,
        )

    def _products(self, payload: Dict[str, Any]) -> List[Any]:
        data = payload.get("data") or {}
        search = data.get("productSearchV3") or data.get("productSearch") or {}
        return search.get("products") or []

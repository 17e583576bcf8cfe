"""Helpers shared by the VTEX-backed storefronts (all four supported retailers).

Two wire formats are in use: the public catalog REST search (dia, jumbo) and
the storefront's persisted GraphQL queries (carrefour, vea). Both return the
same product shape: ``items[0].sellers[0].commertialOffer`` holds price and
stock.
"""
from __future__ import annotations

import base64
import json
import re
from typing import Any, Dict, Iterable, List, Optional

from ..errors import MissingConfigurationError
from ..models import Product

_VOLUME_IN_QUERY_RE = re.compile(r"\d+(?:\.\d+)?\s*(?:ml|l|lts?|lt|litros?|mls?|mililitros?)", re.IGNORECASE)

PERSISTED_QUERY_SENDER = "vtex.store-resources@0.x"
PERSISTED_QUERY_PROVIDER = "vtex.search-graphql@0.x"


def _b64json(payload: Dict[str, Any]) -> str:
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def require_hash(value: str, env_name: str) -> str:
    if not value:
        raise MissingConfigurationError(f"Missing {env_name}")
    return value


def persisted_query_params(
    *,
    operation: str,
    sha256_hash: str,
    variables: Dict[str, Any],
    max_age: str = "medium",
    locale: str = "es-AR",
    binding_id: Optional[str] = None,
) -> Dict[str, str]:
    """Query-string parameters for a ``/_v/segment/graphql/v1`` persisted query."""
    extensions = {
        "persistedQuery": {
            "version": 1,
            "sha256Hash": sha256_hash,
            "sender": PERSISTED_QUERY_SENDER,
            "provider": PERSISTED_QUERY_PROVIDER,
        },
        "variables": _b64json(variables),
    }
    params = {
        "workspace": "master",
        "maxAge": max_age,
        "appsEtag": "remove",
        "domain": "store",
        "locale": locale,
    }
    if binding_id:
        params["__bindingId"] = binding_id
    params.update(
        {
            "operationName": operation,
            "variables": "{}",
            "extensions": json.dumps(extensions, separators=(",", ":")),
        }
    )
    return params


def suggestions_variables(full_text: str, count: int = 8) -> Dict[str, Any]:
    return {
        "productOriginVtex": True,
        "simulationBehavior": "default",
        "hideUnavailableItems": True,
        "fullText": full_text,
        "count": count,
        "shippingOptions": [],
        "variant": None,
    }


def product_search_variables(query: str, start: int, end: int) -> Dict[str, Any]:
    return {
        "hideUnavailableItems": True,
        "skusFilter": "ALL",
        "simulationBehavior": "default",
        "installmentCriteria": "MAX_WITHOUT_INTEREST",
        "productOriginVtex": False,
        "map": "ft",
        "query": query,
        "orderBy": "OrderByScoreDESC",
        "from": start,
        "to": end,
        "selectedFacets": [{"key": "ft", "value": query}],
        "fullText": query,
        "facetsBehavior": "Static",
        "categoryTreeBehavior": "default",
        "withFacets": False,
    }


def is_persisted_query_not_found(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    errors = payload.get("errors") or (payload.get("data") or {}).get("errors") or []
    message = errors[0].get("message", "") if errors and isinstance(errors[0], dict) else ""
    return "PersistedQueryNotFound" in str(message)


def storefront_terms(query: str) -> List[str]:
    """Narrow term list the GraphQL storefronts try on their own.

    Original query, the query without its volume token, then its first word.
    """
    normalized = " ".join(query.lower().replace(",", ".").split())
    terms = [normalized]
    if _VOLUME_IN_QUERY_RE.search(normalized):
        without_size = " ".join(_VOLUME_IN_QUERY_RE.sub("", normalized).split())
        if without_size and without_size != normalized:
            terms.append(without_size)
    first = normalized.split(" ")[0] if normalized else ""
    if first and first not in terms:
        terms.append(first)
    return terms


def _first(values: Any) -> Optional[Dict[str, Any]]:
    if isinstance(values, list) and values and isinstance(values[0], dict):
        return values[0]
    return None


def _as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def map_vtex_products(
    raw_products: Iterable[Any],
    retailer: str,
    *,
    base_url: Optional[str] = None,
    require_stock: bool = True,
    require_product_data: bool = False,
    use_price_range: bool = False,
) -> List[Product]:
    """Map VTEX product payloads to :class:`Product`, skipping unusable rows.

    A row is kept only with a name, a positive price and, when
    ``require_stock`` is set, a positive ``AvailableQuantity``. Links are taken
    from ``link`` (catalog REST) or built from ``linkText`` when ``base_url`` is
    given (GraphQL).
    """
    products: List[Product] = []
    for raw in raw_products or []:
        if not isinstance(raw, dict):
            continue
        if require_product_data and not raw.get("ProductData"):
            continue

        item = _first(raw.get("items")) or {}
        image = _first(item.get("images")) or {}
        seller = _first(item.get("sellers")) or {}
        offer = seller.get("commertialOffer") or {}

        if require_stock:
            if offer.get("IsAvailable") is False or (_as_float(offer.get("AvailableQuantity")) or 0) <= 0:
                continue

        price = _as_float(offer.get("Price"))
        if price is None and use_price_range:
            price = _as_float(((raw.get("priceRange") or {}).get("sellingPrice") or {}).get("lowPrice"))

        name = raw.get("productName")
        if not name or not price or price <= 0:
            continue

        if base_url is not None:
            link = f"{base_url}/{raw['linkText']}/p" if raw.get("linkText") else None
        else:
            link = str(raw["link"]) if raw.get("link") else None

        products.append(
            Product(
                id=str(raw["productId"]) if raw.get("productId") else None,
                name=str(name),
                price=price,
                listPrice=_as_float(offer.get("ListPrice")),
                link=link,
                image=str(image["imageUrl"]) if image.get("imageUrl") else None,
                retailer=retailer,
            )
        )
    return products

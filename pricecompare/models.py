"""Pydantic models for products and request/response payloads."""
from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

RetailerId = Literal["carrefour", "dia", "jumbo", "vea"]


class Product(BaseModel):
    id: str | None = None
    name: str
    price: float = Field(..., ge=0)
    listPrice: float | None = None
    link: str | None = None
    image: str | None = None
    retailer: str


class SearchResult(BaseModel):
    query: str
    retailer: str
    count: int
    products: List[Product]


class RetailersItemRequest(BaseModel):
    query: str = Field(..., min_length=1, description="Free-text product query")
    limit: int = Field(15, ge=1, le=50)
    retailers: Optional[List[RetailerId]] = None


class RetailersListRequest(BaseModel):
    items: List[str] = Field(..., min_length=1, max_length=60)
    limit: int = Field(15, ge=1, le=50)
    retailers: Optional[List[RetailerId]] = None

    @field_validator("items")
    @classmethod
    def _items_not_blank(cls, items: List[str]) -> List[str]:
        if any(not item or not item.strip() for item in items):
            raise ValueError("items must be non-empty strings")
        return items


class CompareItemResult(BaseModel):
    retailer: str
    products: List[Product]
    error: str | None = None


class CompareItemResponse(BaseModel):
    query: str
    limit: int
    retailers: List[str]
    results: List[CompareItemResult]


class RankingRow(BaseModel):
    retailer: str
    total: float
    missingCount: int
    missingItems: List[str]


class CompareListResponse(BaseModel):
    items: List[str]
    limit: int
    retailers: List[str]
    best: RankingRow | None
    ranking: List[RankingRow]
    detail: List[CompareItemResponse]


class HealthResponse(BaseModel):
    status: str
    retailers: List[str]

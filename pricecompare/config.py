"""Application configuration and constants."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Tuple

RETAILERS: Tuple[str, ...] = ("carrefour", "dia", "jumbo", "vea")


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


def _parse_concurrency(raw: str) -> Dict[str, int]:
    """Parse ``"dia=1,jumbo=2"`` into a retailer -> slots mapping."""
    limits: Dict[str, int] = {}
    for chunk in raw.split(","):
        name, _, value = chunk.partition("=")
        name = name.strip().lower()
        if not name or not value.strip():
            continue
        limits[name] = max(1, int(value))
    return limits


@dataclass(frozen=True)
class Settings:
    """Simple settings container with environment variable overrides."""

    log_level: str = _get_env("LOG_LEVEL", "INFO")
    cors_origins: str = _get_env("CORS_ORIGINS", "*")

    http_timeout_seconds: float = float(_get_env("HTTP_TIMEOUT_SECONDS", "15"))
    http_user_agent: str = _get_env("HTTP_USER_AGENT", "Mozilla/5.0")

    vtex_sha256_hash: str = _get_env("VTEX_SHA256_HASH", "")
    vea_vtex_sha256_hash: str = _get_env("VEA_VTEX_SHA256_HASH", "")
    vea_binding_id: str = _get_env("VTEX_VEA_BINDING_ID", "6890cd39-87c6-4689-ad4f-3b913f3c0b19")

    candidate_cache_ttl_seconds: float = float(_get_env("CANDIDATE_CACHE_TTL_SECONDS", "600"))
    candidate_cache_negative_ttl_seconds: float = float(_get_env("CANDIDATE_CACHE_NEGATIVE_TTL_SECONDS", "90"))
    candidate_cache_max_entries: int = int(_get_env("CANDIDATE_CACHE_MAX_ENTRIES", "2000"))

    query_cache_ttl_seconds: float = float(_get_env("QUERY_CACHE_TTL_SECONDS", "60"))
    query_cache_negative_ttl_seconds: float = float(_get_env("QUERY_CACHE_NEGATIVE_TTL_SECONDS", "15"))
    query_cache_max_entries: int = int(_get_env("QUERY_CACHE_MAX_ENTRIES", "500"))

    retailer_concurrency: Dict[str, int] = field(
        default_factory=lambda: _parse_concurrency(
            _get_env("RETAILER_CONCURRENCY", "dia=1,carrefour=2,jumbo=2,vea=2")
        )
    )
    item_concurrency: int = int(_get_env("ITEM_CONCURRENCY", "3"))

    default_limit: int = int(_get_env("DEFAULT_LIMIT", "15"))
    max_list_items: int = int(_get_env("MAX_LIST_ITEMS", "60"))
    max_list_cost: int = int(_get_env("MAX_LIST_COST", "340"))


settings = Settings()

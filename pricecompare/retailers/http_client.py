"""Shared async HTTP client for retailer adapters."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..config import settings
from ..errors import UpstreamError

logger = logging.getLogger(__name__)


class HttpClient:
    """Thin JSON GET wrapper around one pooled ``httpx.AsyncClient``."""

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or httpx.AsyncClient(
            timeout=settings.http_timeout_seconds,
            headers={
                "Accept": "application/json",
                "User-Agent": settings.http_user_agent,
            },
            follow_redirects=True,
        )

    async def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(f"{exc.response.status_code} from {exc.request.url.host}") from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"request to {url} failed: {exc}") from exc

        try:
            return response.json()
        except ValueError as exc:
            logger.warning("Non-JSON payload from %s", response.request.url.host)
            raise UpstreamError(f"malformed response from {url}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()

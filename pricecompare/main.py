"""FastAPI application exposing item and shopping-list comparisons."""
from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .compare import check_list_cost
from .config import settings
from .errors import PriceCompareError, UnknownRetailerError
from .models import (
    CompareItemResponse,
    CompareListResponse,
    HealthResponse,
    RetailersItemRequest,
    RetailersListRequest,
    SearchResult,
)
from .search_service import pick_retailers
from .services import Services, get_services
from .terms import clean_items

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL = logging.getLevelName(settings.log_level.upper())

# ``force=True`` replaces uvicorn's default handlers so the timing lines from
# the search service share one format.
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, force=True)
for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
    logging.getLogger(name).setLevel(LOG_LEVEL)
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)
logger.info("Logging configured at %s", settings.log_level.upper())

app = FastAPI(title="Grocery Price Comparison Service")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PriceCompareError)
async def price_compare_error_handler(request: Request, exc: PriceCompareError) -> JSONResponse:
    status = 400
    if isinstance(exc, UnknownRetailerError):
        status = 404
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


@app.on_event("shutdown")
async def shutdown_event() -> None:
    if get_services.cache_info().currsize:
        await get_services().aclose()


@app.get("/health", response_model=HealthResponse)
async def health(services: Services = Depends(get_services)) -> HealthResponse:
    return HealthResponse(status="ok", retailers=services.search.supported_retailers())


@app.get("/retailers/{retailer}/search", response_model=SearchResult)
async def search_retailer(
    retailer: str,
    q: str = Query(..., description="Search query"),
    limit: int = Query(15, ge=1, le=50),
    services: Services = Depends(get_services),
) -> SearchResult:
    if not q.strip():
        raise HTTPException(status_code=400, detail="Query must not be empty")
    return await services.search.by_retailer(retailer, q, limit)


@app.post("/retailers/item", response_model=CompareItemResponse)
async def compare_item(body: RetailersItemRequest, services: Services = Depends(get_services)) -> CompareItemResponse:
    return await services.compare.compare_item(body.query, body.retailers, body.limit)


@app.post("/retailers/list", response_model=CompareListResponse)
async def compare_list(body: RetailersListRequest, services: Services = Depends(get_services)) -> CompareListResponse:
    selected = pick_retailers(body.retailers, services.search.supported_retailers())
    check_list_cost(clean_items(body.items), selected)
    return await services.compare.compare_list(body.items, selected, body.limit)

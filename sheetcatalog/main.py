"""FastAPI application wiring the catalog service."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from googleapiclient.errors import HttpError

from .cache import CatalogCache
from .catalog import CatalogService
from .config import ConfigurationError, settings
from .fx import get_cny_to_eur_rate
from .models import CatalogItem, Facets, PageResult, SellerDirectory, SellerListing, SpreadsheetPage
from .sheets_client import SheetAccessor

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL = logging.getLevelName(settings.log_level.upper())

# Force a predictable logging setup even when run under uvicorn so timing and
# cache lines are visible. ``force=True`` replaces uvicorn's default handlers.
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, force=True)
for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "googleapiclient.discovery"):
    logging.getLogger(name).setLevel(LOG_LEVEL)

logger = logging.getLogger(__name__)
logger.info("Logging configured at %s", settings.log_level.upper())

app = FastAPI(title="Sheet Catalog Service")


@lru_cache(maxsize=1)
def get_catalog() -> CatalogService:
    return CatalogService(
        SheetAccessor(settings),
        rate_provider=get_cny_to_eur_rate,
        cache=CatalogCache.from_settings(settings),
        config=settings,
    )


@app.exception_handler(HttpError)
async def upstream_error_handler(request: Request, exc: HttpError) -> JSONResponse:
    status = getattr(exc.resp, "status", None)
    logger.warning("Sheets API error status=%s path=%s: %s", status, request.url.path, exc)
    if status == 429:
        return JSONResponse(status_code=503, content={"detail": "Upstream quota exhausted, retry later"})
    return JSONResponse(status_code=502, content={"detail": "Spreadsheet backend error"})


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error("Configuration error: %s", exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.on_event("startup")
async def startup_event() -> None:
    if settings.warm_on_startup:
        meta = await get_catalog().get_meta()
        logger.info("Warmed metadata cache with %s rows", len(meta.rows))


@app.get("/health")
async def health(catalog: CatalogService = Depends(get_catalog)) -> dict:
    return {"sheet_tab": catalog.config.sheet_tab, "cache": catalog.cache.stats()}


@app.get("/items", response_model=PageResult)
async def items_page(
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1, le=500),
    catalog: CatalogService = Depends(get_catalog),
) -> PageResult:
    return await catalog.get_items_page(page, page_size)


@app.get("/items/head", response_model=List[CatalogItem])
async def items_head(
    limit: Optional[int] = Query(None, ge=1, le=500),
    catalog: CatalogService = Depends(get_catalog),
) -> List[CatalogItem]:
    return await catalog.get_items_head(limit)


@app.get("/items/{key}", response_model=CatalogItem)
async def item_detail(key: str, catalog: CatalogService = Depends(get_catalog)) -> CatalogItem:
    item = await catalog.get_item_by_slug_or_id(key)
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")
    return item


@app.get("/spreadsheet", response_model=SpreadsheetPage)
async def spreadsheet_page(
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1, le=500),
    q: str = Query("", description="Free text search"),
    brand: str = "all",
    category: str = "all",
    seller: str = "all",
    order: str = Query("random", pattern="^(default|random)$"),
    seed: Optional[str] = None,
    catalog: CatalogService = Depends(get_catalog),
) -> SpreadsheetPage:
    return await catalog.get_spreadsheet_page(
        page,
        page_size,
        query=q,
        brand=brand,
        category=category,
        seller=seller,
        order=order,
        seed=seed,
    )


@app.get("/facets", response_model=Facets)
async def facets(catalog: CatalogService = Depends(get_catalog)) -> Facets:
    return await catalog.get_facets()


@app.get("/sellers", response_model=List[SellerListing])
async def sellers(catalog: CatalogService = Depends(get_catalog)) -> List[SellerListing]:
    return await catalog.get_sellers()


@app.get("/sellers/directory", response_model=SellerDirectory)
async def sellers_directory(catalog: CatalogService = Depends(get_catalog)) -> SellerDirectory:
    return await catalog.get_seller_directory()

"""Pydantic models shared by the query layer and the HTTP payloads."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Order = Literal["default", "random"]
ALL = "all"


class CatalogItem(BaseModel):
    row_number: int = Field(..., description="1-based row in the backing sheet")
    id: str
    slug: str
    title: str
    brand: str = ""
    category: str = ""
    seller: str = ""
    images: list[str] = Field(default_factory=list)
    cover: str = ""
    source_url: str = ""
    agent_url: str | None = Field(None, description="Shopping-agent link derived from source_url")
    source_price_raw: str = ""
    tags: list[str] = Field(default_factory=list)
    price_converted: float | None = None


class MetaRow(BaseModel):
    """Lightweight per-row projection used for filtering and lookup."""

    model_config = ConfigDict(frozen=True)

    row_number: int
    id: str
    slug: str
    title: str
    brand: str = ""
    category: str = ""
    seller: str = ""


class Facets(BaseModel):
    brands: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    sellers: list[str] = Field(default_factory=list)


class FilterSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: str = ""
    brand: str = ALL
    category: str = ALL
    seller: str = ALL

    def signature(self) -> str:
        return f"b={self.brand}|c={self.category}|s={self.seller}|q={self.query}"


class CatalogMeta(BaseModel):
    rows: list[MetaRow]
    facets: Facets
    built_at: float = 0.0


class PageResult(BaseModel):
    items: list[CatalogItem]
    page: int
    page_size: int
    total_items: int
    total_pages: int


class SpreadsheetPage(PageResult):
    facets: Facets
    order: Order


class Seller(BaseModel):
    id: str
    name: str
    tags: list[str] = Field(default_factory=list)
    yupoo_url: str | None = None
    whatsapp: str | None = None
    store_url: str | None = None


class SellerCard(BaseModel):
    id: str
    seller_id: str
    title: str
    description: str | None = None
    image: str | None = None


class SellerDirectory(BaseModel):
    sellers: list[Seller]
    cards: list[SellerCard]


class SellerListing(BaseModel):
    """One entry of the public sellers list, deduplicated by name."""

    name: str
    description: str
    tags: list[str] = Field(default_factory=list)
    verified: bool = True
    href: str

"""Application configuration and constants."""
from __future__ import annotations

import os
from dataclasses import dataclass


class ConfigurationError(RuntimeError):
    """Required configuration (sheet id, credentials) is missing or invalid."""


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


def _get_bool(name: str, default: str) -> bool:
    return _get_env(name, default).lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class Settings:
    """Simple settings container with environment variable overrides."""

    sheet_id: str = _get_env("SHEET_ID", "").strip()
    sheet_tab: str = _get_env("SHEET_TAB", "items").strip() or "items"
    service_account: str = (
        _get_env("GOOGLE_SERVICE_ACCOUNT_JSON", "") or _get_env("GOOGLE_SERVICE_ACCOUNT", "")
    ).strip()
    application_credentials: str = _get_env("GOOGLE_APPLICATION_CREDENTIALS", "").strip()
    client_email: str = (
        _get_env("GOOGLE_CLIENT_EMAIL", "") or _get_env("GOOGLE_SERVICE_ACCOUNT_EMAIL", "")
    ).strip()
    private_key: str = (
        _get_env("GOOGLE_PRIVATE_KEY", "") or _get_env("GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY", "")
    ).strip()

    cache_ttl_seconds: int = int(_get_env("CACHE_TTL_SECONDS", "600"))
    cache_single_flight: bool = _get_bool("CACHE_SINGLE_FLIGHT", "true")
    cache_capacity_pages: int = int(_get_env("CACHE_CAPACITY_PAGES", "100"))
    cache_capacity_orders: int = int(_get_env("CACHE_CAPACITY_ORDERS", "100"))
    cache_capacity_head: int = int(_get_env("CACHE_CAPACITY_HEAD", "20"))
    cache_capacity_rows: int = int(_get_env("CACHE_CAPACITY_ROWS", "250"))

    default_page_size: int = int(_get_env("DEFAULT_PAGE_SIZE", "42"))
    head_limit: int = int(_get_env("HEAD_LIMIT", "120"))
    preview_limit: int = int(_get_env("PREVIEW_LIMIT", "18"))
    max_load_all_items: int = int(_get_env("MAX_LOAD_ALL_ITEMS", "5000"))
    load_all_page_size: int = int(_get_env("LOAD_ALL_PAGE_SIZE", "500"))
    shuffle_seed: str = _get_env("SPREADSHEET_SHUFFLE_SEED", "").strip()
    photo_host: str = _get_env("PHOTO_HOST", "photo.yupoo.com").strip().lower()
    agent_link: str = _get_env("AGENT_LINK", "usfans").strip().lower()
    agent_ref: str = _get_env("AGENT_REF", "").strip()

    sellers_sheet_id: str = _get_env("SELLERS_SHEET_ID", "").strip()
    sellers_tab: str = _get_env("SELLERS_TAB", "sellers").strip() or "sellers"
    seller_cards_tab: str = _get_env("SELLER_CARDS_TAB", "seller_cards").strip() or "seller_cards"
    sellers_ttl_seconds: int = int(_get_env("SELLERS_TTL_SECONDS", "300"))

    redis_host: str = _get_env("REDIS_HOST", "localhost")
    redis_port: int = int(_get_env("REDIS_PORT", "6379"))
    fx_url: str = _get_env("FX_URL", "https://api.exchangerate.host/convert?from=CNY&to=EUR")
    fx_ttl_seconds: int = int(_get_env("FX_TTL_SECONDS", "3600"))
    fx_fallback_rate: float = float(_get_env("FX_FALLBACK_RATE", "0.13"))

    warm_on_startup: bool = _get_bool("WARM_ON_STARTUP", "false")
    log_level: str = _get_env("LOG_LEVEL", "INFO")


settings = Settings()

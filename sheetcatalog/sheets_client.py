"""Google Sheets client factory and low-level readers.

The rest of the code works against the official synchronous
``googleapiclient`` service. Blocking calls are wrapped via
``asyncio.to_thread`` so the event loop only suspends on sheet I/O.

Errors raised by the API (``googleapiclient.errors.HttpError`` for quota,
permission and not-found failures) are deliberately left untouched: retry
policy belongs to whoever calls the catalog.
"""
from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build

from .columns import COLUMN_COUNT, FIRST_DATA_ROW, LAST_COLUMN, pad_row
from .config import ConfigurationError, Settings, settings

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]
DEFAULT_CREDENTIAL_FILES = ("service-account.json", "scraper/service-account.json")


def _accept(info: Any) -> Optional[dict]:
    if isinstance(info, dict) and info.get("client_email") and info.get("private_key"):
        return info
    return None


def _read_json_file(path: str | Path) -> Optional[dict]:
    file_path = Path(path)
    if not file_path.is_file():
        return None
    try:
        return _accept(json.loads(file_path.read_text(encoding="utf-8")))
    except (OSError, ValueError):
        logger.warning("Could not read service account file %s", file_path)
        return None


def _parse_inline(raw: str) -> Optional[dict]:
    """Inline service account payload: JSON text or base64-encoded JSON."""
    if raw.startswith("{"):
        try:
            return _accept(json.loads(raw))
        except ValueError:
            return None
    try:
        decoded = base64.b64decode(raw, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    if not decoded.strip().startswith("{"):
        return None
    try:
        return _accept(json.loads(decoded))
    except ValueError:
        return None


def load_service_account_info(config: Settings = settings) -> dict:
    """Locate service account credentials.

    Sources, in order:

    1. ``GOOGLE_SERVICE_ACCOUNT_JSON`` as a path, inline JSON or base64 JSON.
    2. ``GOOGLE_APPLICATION_CREDENTIALS`` path.
    3. ``service-account.json`` files in the working directory.
    4. ``GOOGLE_CLIENT_EMAIL`` + ``GOOGLE_PRIVATE_KEY``.
    """
    raw = config.service_account
    if raw:
        if raw.startswith(("/", ".")) or raw.lower().endswith(".json"):
            info = _read_json_file(raw)
        else:
            info = _parse_inline(raw)
        if info:
            return info

    if config.application_credentials:
        info = _read_json_file(config.application_credentials)
        if info:
            return info

    for candidate in DEFAULT_CREDENTIAL_FILES:
        info = _read_json_file(candidate)
        if info:
            return info

    if config.client_email and config.private_key:
        return {
            "type": "service_account",
            "client_email": config.client_email,
            "private_key": config.private_key,
            "token_uri": "https://oauth2.googleapis.com/token",
        }

    raise ConfigurationError(
        "Missing Google credentials. Provide GOOGLE_SERVICE_ACCOUNT_JSON (JSON/path/base64) "
        "or GOOGLE_APPLICATION_CREDENTIALS or GOOGLE_CLIENT_EMAIL + GOOGLE_PRIVATE_KEY."
    )


@lru_cache(maxsize=1)
def get_service(config: Settings = settings) -> Any:
    info = dict(load_service_account_info(config))
    info["private_key"] = str(info["private_key"]).replace("\\n", "\n")
    info.setdefault("token_uri", "https://oauth2.googleapis.com/token")
    logger.info("Connecting to Google Sheets as %s", info["client_email"])
    credentials = Credentials.from_service_account_info(info, scopes=SCOPES)
    return build("sheets", "v4", credentials=credentials, cache_discovery=False)


def quote_tab(title: str) -> str:
    escaped = title.replace("'", "''")
    return f"'{escaped}'"


def pick_tab(available: Sequence[str], preferred: str, fallback_index: int) -> str:
    """Tab titled ``preferred``, else the tab at ``fallback_index``."""
    if preferred in available:
        return preferred
    if 0 <= fallback_index < len(available):
        fallback = available[fallback_index]
        logger.warning("Tab %r not found, falling back to tab #%s %r", preferred, fallback_index, fallback)
        return fallback
    listing = ", ".join(available) or "none"
    raise ConfigurationError(
        f"Sheet tab {preferred!r} not found (fallback index {fallback_index}); available tabs: {listing}"
    )


def column_width(last_column: str) -> int:
    width = 0
    for letter in last_column.upper():
        width = width * 26 + (ord(letter) - ord("A") + 1)
    return width


class SheetAccessor:
    """Range and batch readers bound to one spreadsheet tab."""

    def __init__(self, config: Settings = settings, service: Any = None) -> None:
        if not config.sheet_id:
            raise ConfigurationError("Missing SHEET_ID")
        self.config = config
        self.spreadsheet_id = config.sheet_id
        self.tab = config.sheet_tab
        self._service = service

    def _get_service(self) -> Any:
        if self._service is None:
            self._service = get_service(self.config)
        return self._service

    def a1(self, cells: str) -> str:
        return f"{quote_tab(self.tab)}!{cells}"

    async def get_range(
        self,
        start_row: int = FIRST_DATA_ROW,
        end_row: Optional[int] = None,
        *,
        last_column: str = LAST_COLUMN,
    ) -> list[list[str]]:
        """Rows ``start_row..end_row`` (open-ended when ``end_row`` is None).

        The API trims trailing blank rows, so the result may be shorter than
        requested; element ``i`` is always sheet row ``start_row + i``.
        """
        rng = self.a1(f"A{start_row}:{last_column}{end_row if end_row else ''}")
        service = self._get_service()

        def _do_get() -> Dict[str, Any]:
            return service.spreadsheets().values().get(spreadsheetId=self.spreadsheet_id, range=rng).execute()

        response = await asyncio.to_thread(_do_get)
        width = column_width(last_column)
        values = response.get("values") or []
        logger.debug("values.get range=%s rows=%s", rng, len(values))
        return [pad_row(row, width) for row in values]

    async def batch_get_rows(self, row_numbers: Sequence[int]) -> Dict[int, list[str]]:
        """Fetch disjoint single rows; keys follow the order of ``row_numbers``."""
        if not row_numbers:
            return {}
        ranges = [self.a1(f"A{n}:{LAST_COLUMN}{n}") for n in row_numbers]
        service = self._get_service()

        def _do_batch_get() -> Dict[str, Any]:
            return (
                service.spreadsheets()
                .values()
                .batchGet(spreadsheetId=self.spreadsheet_id, ranges=ranges)
                .execute()
            )

        response = await asyncio.to_thread(_do_batch_get)
        rows: Dict[int, list[str]] = {}
        # valueRanges come back in request order
        for row_number, value_range in zip(row_numbers, response.get("valueRanges") or []):
            values = value_range.get("values") or [[]]
            rows[row_number] = pad_row(values[0], COLUMN_COUNT)
        logger.debug("values.batchGet rows=%s", len(rows))
        return rows

    async def list_tabs(self, spreadsheet_id: Optional[str] = None) -> list[str]:
        """Tab titles of ``spreadsheet_id`` (this accessor's sheet by default), in tab order."""
        sheet_id = spreadsheet_id or self.spreadsheet_id
        service = self._get_service()

        def _do_get() -> Dict[str, Any]:
            return service.spreadsheets().get(spreadsheetId=sheet_id, fields="sheets.properties.title").execute()

        response = await asyncio.to_thread(_do_get)
        return [sheet.get("properties", {}).get("title", "") for sheet in response.get("sheets") or []]

    async def get_tabs(self, titles: Sequence[str], spreadsheet_id: Optional[str] = None) -> list[list[list[str]]]:
        """Whole tabs in one ``batchGet``; rows are stringified, not padded."""
        if not titles:
            return []
        sheet_id = spreadsheet_id or self.spreadsheet_id
        ranges = [quote_tab(title) for title in titles]
        service = self._get_service()

        def _do_batch_get() -> Dict[str, Any]:
            return service.spreadsheets().values().batchGet(spreadsheetId=sheet_id, ranges=ranges).execute()

        response = await asyncio.to_thread(_do_batch_get)
        value_ranges = list(response.get("valueRanges") or [])
        value_ranges.extend({} for _ in range(len(titles) - len(value_ranges)))
        tabs = [
            [pad_row(row, len(row)) for row in value_range.get("values") or []]
            for value_range in value_ranges[: len(titles)]
        ]
        logger.debug("values.batchGet tabs=%s rows=%s", list(titles), [len(tab) for tab in tabs])
        return tabs

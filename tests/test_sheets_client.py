"""Tests for credential resolution and the sheet readers."""

import asyncio
import base64
import json

import pytest

from conftest import make_settings
from sheetcatalog.config import ConfigurationError
from sheetcatalog.sheets_client import SheetAccessor, column_width, load_service_account_info, pick_tab

SERVICE_ACCOUNT = {"client_email": "bot@example.iam.gserviceaccount.com", "private_key": "-----KEY-----"}


class FakeRequest:
    def __init__(self, payload):
        self.payload = payload

    def execute(self):
        return self.payload


class FakeValues:
    def __init__(self, get_payload=None, batch_payload=None):
        self.calls = []
        self.get_payload = get_payload or {}
        self.batch_payload = batch_payload or {}

    def get(self, spreadsheetId, range):
        self.calls.append(("get", spreadsheetId, range))
        return FakeRequest(self.get_payload)

    def batchGet(self, spreadsheetId, ranges):
        self.calls.append(("batchGet", spreadsheetId, tuple(ranges)))
        return FakeRequest(self.batch_payload)


class FakeService:
    def __init__(self, values, spreadsheet_payload=None):
        self._values = values
        self.spreadsheet_payload = spreadsheet_payload or {}
        self.calls = []

    def spreadsheets(self):
        return self

    def get(self, spreadsheetId, fields):
        self.calls.append((spreadsheetId, fields))
        return FakeRequest(self.spreadsheet_payload)

    def values(self):
        return self._values


def _no_credentials(**overrides):
    values = dict(service_account="", application_credentials="", client_email="", private_key="")
    values.update(overrides)
    return make_settings(**values)


def test_missing_sheet_id_fails_before_any_io():
    with pytest.raises(ConfigurationError):
        SheetAccessor(make_settings(sheet_id=""))


def test_missing_credentials_raise_configuration_error(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    with pytest.raises(ConfigurationError):
        load_service_account_info(_no_credentials())


def test_inline_json_and_base64_credentials(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    raw = json.dumps(SERVICE_ACCOUNT)
    encoded = base64.b64encode(raw.encode()).decode()

    assert load_service_account_info(_no_credentials(service_account=raw)) == SERVICE_ACCOUNT
    assert load_service_account_info(_no_credentials(service_account=encoded)) == SERVICE_ACCOUNT


def test_credentials_from_file_paths(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "sa.json"
    path.write_text(json.dumps(SERVICE_ACCOUNT), encoding="utf-8")

    assert load_service_account_info(_no_credentials(service_account=str(path))) == SERVICE_ACCOUNT
    assert load_service_account_info(_no_credentials(application_credentials=str(path))) == SERVICE_ACCOUNT


def test_default_service_account_file_in_working_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "service-account.json").write_text(json.dumps(SERVICE_ACCOUNT), encoding="utf-8")

    assert load_service_account_info(_no_credentials()) == SERVICE_ACCOUNT


def test_email_and_key_pair(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    info = load_service_account_info(_no_credentials(client_email="a@b.c", private_key="k"))

    assert info["client_email"] == "a@b.c"
    assert info["private_key"] == "k"


def test_incomplete_payload_is_ignored(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    with pytest.raises(ConfigurationError):
        load_service_account_info(_no_credentials(service_account=json.dumps({"client_email": "x"})))


def test_get_range_pads_and_stringifies_cells():
    values = FakeValues(get_payload={"values": [["a1", "", "Title", 12], []]})
    accessor = SheetAccessor(make_settings(sheet_tab="items"), service=FakeService(values))

    rows = asyncio.run(accessor.get_range(2, 3))

    assert values.calls == [("get", "sheet-id", "'items'!A2:T3")]
    assert len(rows) == 2
    assert all(len(row) == 20 for row in rows)
    assert rows[0][:4] == ["a1", "", "Title", "12"]
    assert rows[1] == [""] * 20


def test_open_ended_narrow_range():
    values = FakeValues(get_payload={"values": [["1", "s", "t"]]})
    accessor = SheetAccessor(make_settings(sheet_tab="my tab"), service=FakeService(values))

    rows = asyncio.run(accessor.get_range(2, last_column="F"))

    assert values.calls[0][2] == "'my tab'!A2:F"
    assert rows == [["1", "s", "t", "", "", ""]]


def test_batch_get_maps_rows_in_request_order():
    values = FakeValues(batch_payload={"valueRanges": [{"values": [["x", "", "T"]]}, {"range": "items!A9:T9"}]})
    accessor = SheetAccessor(make_settings(), service=FakeService(values))

    rows = asyncio.run(accessor.batch_get_rows([5, 9]))

    assert values.calls[0][2] == ("'items'!A5:T5", "'items'!A9:T9")
    assert rows[5][:3] == ["x", "", "T"]
    assert rows[9] == [""] * 20
    assert asyncio.run(accessor.batch_get_rows([])) == {}


def test_column_width():
    assert column_width("A") == 1
    assert column_width("T") == 20
    assert column_width("AA") == 27


def test_list_tabs_reads_titles_in_order():
    payload = {"sheets": [{"properties": {"title": "items"}}, {"properties": {"title": "sellers"}}]}
    service = FakeService(FakeValues(), spreadsheet_payload=payload)
    accessor = SheetAccessor(make_settings(), service=service)

    assert asyncio.run(accessor.list_tabs()) == ["items", "sellers"]
    assert asyncio.run(accessor.list_tabs("other-sheet")) == ["items", "sellers"]
    assert [call[0] for call in service.calls] == ["sheet-id", "other-sheet"]


def test_get_tabs_reads_whole_tabs_in_one_batch():
    values = FakeValues(batch_payload={"valueRanges": [{"values": [["id", "name"], ["s1", "A", 3]]}]})
    accessor = SheetAccessor(make_settings(), service=FakeService(values))

    tabs = asyncio.run(accessor.get_tabs(["sellers", "it's"], "sellers-sheet"))

    assert values.calls == [("batchGet", "sellers-sheet", ("'sellers'", "'it''s'"))]
    assert tabs == [[["id", "name"], ["s1", "A", "3"]], []]
    assert asyncio.run(accessor.get_tabs([])) == []


def test_pick_tab_prefers_title_then_position():
    assert pick_tab(["a", "sellers"], "sellers", 0) == "sellers"
    assert pick_tab(["a", "b"], "seller_cards", 1) == "b"

    with pytest.raises(ConfigurationError):
        pick_tab(["a"], "seller_cards", 1)

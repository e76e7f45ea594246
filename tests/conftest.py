"""
Shared fakes for the Google APIs.

FakeClient / FakeSpreadsheet mimic the gspread surface the adapter uses and
keep every tab as a list of string rows. FakeDrive / FakeSheetsService mimic
the googleapiclient resources (files().x(...).execute()).
"""
import itertools
import json
import re
from typing import Any, Dict, List, Optional

import gspread
import httplib2
import pytest
from googleapiclient.errors import HttpError

import archisheets.adapters.sheets as sheets_module
import archisheets.core.drive_client as drive_module


# ========== helpers ==========

class FakeResponse:
    """Enough of requests.Response for gspread.exceptions.APIError."""

    def __init__(self, status_code: int, message: str, status: str = "INVALID_ARGUMENT"):
        self.status_code = status_code
        self._payload = {"error": {"code": status_code, "message": message, "status": status}}
        self.text = json.dumps(self._payload)

    def json(self):
        return self._payload


def api_error(code: int, message: str) -> gspread.exceptions.APIError:
    return gspread.exceptions.APIError(FakeResponse(code, message))


def http_error(code: int, message: str = "boom") -> HttpError:
    content = json.dumps({"error": {"code": code, "message": message}}).encode()
    return HttpError(httplib2.Response({"status": str(code)}), content)


_A1 = re.compile(r"^([A-Z]+)?(\d+)?$")


def _col_index(letters: str) -> int:
    n = 0
    for ch in letters:
        n = n * 26 + (ord(ch) - 64)
    return n - 1


def parse_range(range_name: str):
    """"'TAB'!A2:C" -> ("TAB", row0, col0, row1 or None, col1 or None)."""
    if "!" in range_name:
        tab, cells = range_name.rsplit("!", 1)
    else:
        tab, cells = range_name, "A1:ZZ"
    if tab.startswith("'") and tab.endswith("'"):
        tab = tab[1:-1].replace("''", "'")
    start, _, end = cells.partition(":")
    end = end or start
    sm, em = _A1.match(start), _A1.match(end)
    row0 = int(sm.group(2)) - 1 if sm.group(2) else 0
    col0 = _col_index(sm.group(1)) if sm.group(1) else 0
    row1 = int(em.group(2)) - 1 if em.group(2) else None
    col1 = _col_index(em.group(1)) if em.group(1) else None
    return tab, row0, col0, row1, col1


def _cell_str(v: Any) -> str:
    if isinstance(v, bool):
        return "TRUE" if v else "FALSE"
    return "" if v is None else str(v)


# ========== gspread fakes ==========

class FakeSpreadsheet:
    def __init__(self, sheet_id: str, tabs: Optional[List[str]] = None):
        self.id = sheet_id
        self.tabs: Dict[str, List[List[str]]] = {t: [] for t in (tabs or [])}
        self.calls: List[tuple] = []
        # method name -> status code to raise once
        self.fail_next: Dict[str, int] = {}

    # --- internals ---
    def _maybe_fail(self, method: str) -> None:
        code = self.fail_next.pop(method, None)
        if code is not None:
            raise api_error(code, f"injected failure in {method}")

    def _tab(self, range_name: str):
        tab, row0, col0, row1, col1 = parse_range(range_name)
        if tab not in self.tabs:
            raise api_error(400, f"Unable to parse range: {range_name}")
        return self.tabs[tab], row0, col0, row1, col1

    def _read(self, range_name: str) -> List[List[str]]:
        rows, row0, col0, row1, col1 = self._tab(range_name)
        last = len(rows) - 1 if row1 is None else min(row1, len(rows) - 1)
        out = []
        for r in range(row0, last + 1):
            row = rows[r]
            end = len(row) if col1 is None else col1 + 1
            cells = row[col0:end]
            while cells and cells[-1] == "":
                cells.pop()
            out.append(cells)
        while out and not out[-1]:
            out.pop()
        return out

    def _write(self, range_name: str, values: List[List[Any]]) -> None:
        rows, row0, col0, _, _ = self._tab(range_name)
        for i, vrow in enumerate(values):
            r = row0 + i
            while len(rows) <= r:
                rows.append([])
            row = rows[r]
            for j, v in enumerate(vrow):
                c = col0 + j
                while len(row) <= c:
                    row.append("")
                row[c] = _cell_str(v)

    def _clear(self, range_name: str) -> None:
        rows, row0, col0, row1, col1 = self._tab(range_name)
        last = len(rows) - 1 if row1 is None else min(row1, len(rows) - 1)
        for r in range(row0, last + 1):
            row = rows[r]
            end = len(row) if col1 is None else min(col1 + 1, len(row))
            for c in range(col0, end):
                row[c] = ""

    def values(self, tab: str) -> List[List[str]]:
        """Non-empty content of a tab, for assertions."""
        return self._read(f"'{tab}'!A1:ZZ")

    # --- gspread.Spreadsheet surface ---
    def values_get(self, range, params=None):
        self.calls.append(("values_get", range))
        self._maybe_fail("values_get")
        values = self._read(range)
        data = {"range": range}
        if values:
            data["values"] = values
        return data

    def values_batch_get(self, ranges, params=None):
        self.calls.append(("values_batch_get", tuple(ranges)))
        self._maybe_fail("values_batch_get")
        out = []
        for rng in ranges:
            values = self._read(rng)
            vr = {"range": rng}
            if values:
                vr["values"] = values
            out.append(vr)
        return {"spreadsheetId": self.id, "valueRanges": out}

    def fetch_sheet_metadata(self, params=None):
        self.calls.append(("fetch_sheet_metadata", params))
        self._maybe_fail("fetch_sheet_metadata")
        return {
            "sheets": [
                {"properties": {"title": t, "index": i}} for i, t in enumerate(self.tabs)
            ]
        }

    def batch_update(self, body):
        self.calls.append(("batch_update", body))
        self._maybe_fail("batch_update")
        titles = [r["addSheet"]["properties"]["title"] for r in body["requests"] if "addSheet" in r]
        for t in titles:
            if t in self.tabs or titles.count(t) > 1:
                raise api_error(400, f"Invalid requests[0].addSheet: A sheet with the name \"{t}\" already exists.")
        for t in titles:
            self.tabs[t] = []
        return {"replies": [{} for _ in titles]}

    def values_batch_clear(self, params=None, body=None):
        self.calls.append(("values_batch_clear", tuple(body["ranges"])))
        self._maybe_fail("values_batch_clear")
        for rng in body["ranges"]:
            self._clear(rng)
        return {}

    def values_batch_update(self, body=None):
        self.calls.append(("values_batch_update", body))
        self._maybe_fail("values_batch_update")
        for item in body["data"]:
            self._write(item["range"], item["values"])
        return {}

    def values_update(self, range, params=None, body=None):
        self.calls.append(("values_update", range, body))
        self._maybe_fail("values_update")
        self._write(range, body["values"])
        return {}

    def values_append(self, range, params=None, body=None):
        self.calls.append(("values_append", range, body))
        self._maybe_fail("values_append")
        self._tab(range)
        tab = parse_range(range)[0]
        start = len(self._read(f"'{tab}'!A1:ZZ")) + 1
        self._write(f"'{tab}'!A{start}", body["values"])
        return {}

    def call_names(self) -> List[str]:
        return [c[0] for c in self.calls]


class FakeClient:
    def __init__(self):
        self.spreadsheets: Dict[str, FakeSpreadsheet] = {}
        # gspread 6 raises the builtin PermissionError when open_by_key gets a 403
        self.forbidden: set = set()

    def add_spreadsheet(self, sheet_id: str, tabs: Optional[List[str]] = None) -> FakeSpreadsheet:
        ss = FakeSpreadsheet(sheet_id, tabs)
        self.spreadsheets[sheet_id] = ss
        return ss

    def open_by_key(self, key: str) -> FakeSpreadsheet:
        if key in self.forbidden:
            raise PermissionError()
        if key not in self.spreadsheets:
            raise gspread.exceptions.SpreadsheetNotFound(f"Spreadsheet {key} not found")
        return self.spreadsheets[key]


# ========== googleapiclient fakes ==========

class _Request:
    def __init__(self, fn):
        self._fn = fn

    def execute(self):
        return self._fn()


class FakeDrive:
    """files() resource with folders/files kept in a dict."""

    def __init__(self):
        self.files_by_id: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.fail_copy: set = set()
        self.fail_create = False
        self.fail_update = False
        self._ids = itertools.count(1)

    def new_id(self, prefix: str = "new") -> str:
        # 33 chars, like a real Drive id
        return f"{prefix}{next(self._ids):04d}".ljust(33, "X")

    def add_file(self, file_id: str, name: str = "", parents: Optional[List[str]] = None) -> None:
        self.files_by_id[file_id] = {"id": file_id, "name": name, "parents": list(parents or [])}

    def files(self):
        return _FakeFiles(self)

    def copies(self) -> List[tuple]:
        return [c for c in self.calls if c[0] == "copy"]


class _FakeFiles:
    def __init__(self, drive: FakeDrive):
        self.drive = drive

    def get(self, fileId, fields=None):
        def run():
            self.drive.calls.append(("get", fileId))
            f = self.drive.files_by_id.get(fileId)
            if f is None:
                raise http_error(404, f"File not found: {fileId}")
            data = {"id": fileId}
            if f["parents"]:
                data["parents"] = list(f["parents"])
            return data
        return _Request(run)

    def create(self, body, fields=None, **kwargs):
        def run():
            self.drive.calls.append(("create", body))
            if self.drive.fail_create:
                raise http_error(500, "folder create failed")
            fid = self.drive.new_id("fold")
            self.drive.add_file(fid, body["name"], body.get("parents"))
            self.drive.files_by_id[fid]["mimeType"] = body.get("mimeType")
            return {"id": fid}
        return _Request(run)

    def update(self, fileId, addParents=None, removeParents=None, fields=None, **kwargs):
        def run():
            self.drive.calls.append(("update", fileId, addParents, removeParents))
            if self.drive.fail_update:
                raise http_error(403, "insufficient permissions")
            f = self.drive.files_by_id[fileId]
            if removeParents:
                f["parents"] = [p for p in f["parents"] if p != removeParents]
            if addParents and addParents not in f["parents"]:
                f["parents"].append(addParents)
            return {"id": fileId, "parents": list(f["parents"])}
        return _Request(run)

    def copy(self, fileId, body, fields=None):
        def run():
            self.drive.calls.append(("copy", fileId, body))
            if fileId in self.drive.fail_copy or fileId not in self.drive.files_by_id:
                raise http_error(404, f"File not found: {fileId}")
            fid = self.drive.new_id("copy")
            self.drive.add_file(fid, body["name"], body.get("parents"))
            return {"id": fid}
        return _Request(run)


class FakeSheetsService:
    """spreadsheets().create(...) backed by the FakeClient + FakeDrive."""

    def __init__(self, client: FakeClient, drive: FakeDrive):
        self.client = client
        self.drive = drive
        self.created: List[dict] = []
        self.fail_create = False

    def spreadsheets(self):
        return self

    def create(self, body, fields=None):
        def run():
            if self.fail_create:
                raise http_error(500, "spreadsheet create failed")
            sid = self.drive.new_id("sheet")
            self.created.append(body)
            self.client.add_spreadsheet(sid, [s["properties"]["title"] for s in body.get("sheets", [])])
            # new files land in My Drive root
            self.drive.add_file(sid, body["properties"]["title"], ["root"])
            return {"spreadsheetId": sid}
        return _Request(run)


class FakeGoogle:
    def __init__(self):
        self.client = FakeClient()
        self.drive = FakeDrive()
        self.sheets_service = FakeSheetsService(self.client, self.drive)
        self.tokens: List[str] = []

    def authorize(self, token: str) -> FakeClient:
        self.tokens.append(token)
        return self.client

    def build(self, api: str, version: str, token: str):
        self.tokens.append(token)
        return self.drive if api == "drive" else self.sheets_service


@pytest.fixture
def google(monkeypatch) -> FakeGoogle:
    fake = FakeGoogle()
    monkeypatch.setattr(sheets_module, "authorize_token", fake.authorize)
    monkeypatch.setattr(drive_module, "build_service", fake.build)
    return fake


TOKEN = "ya29.test-token"

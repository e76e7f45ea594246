# archisheets/adapters/sheets/__init__.py
from __future__ import annotations

import functools
import logging
from typing import Any, Dict, Iterable, List, Optional

import gspread
from gspread.utils import absolute_range_name
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from archisheets.core import drive_client
from archisheets.settings import get_settings

logger = logging.getLogger(__name__)

# ========== Sheet schema (fixed, versionless) ==========

MASTER_TAB = "PROJECTES"
CONFIG_TAB = "CONFIG"
STRUCTURE_TAB = "ESTRUCTURA"

RESERVED_TABS = (CONFIG_TAB, STRUCTURE_TAB)

HEADERS = {
    MASTER_TAB: ["ID", "NOM", "SHEET_ID", "CREAT_EL", "ES_PLANTILLA"],
    CONFIG_TAB: ["CLAU", "VALOR", "DESCRIPCIO"],
    STRUCTURE_TAB: ["TITOL", "PESTANYA", "DOCS"],
    # every chapter tab
    "chapter": ["NOM DOCUMENT", "URL DRIVE"],
}

MASTER_READ_RANGE = absolute_range_name(MASTER_TAB, "A2:E")
MASTER_APPEND_RANGE = absolute_range_name(MASTER_TAB, "A:E")
MASTER_HEADER_RANGE = absolute_range_name(MASTER_TAB, "A1:E1")

VALUE_INPUT_OPTION = "USER_ENTERED"


def read_range(tab: str) -> str:
    """Data rows (below the header) of a project tab."""
    return absolute_range_name(tab, "A2:C")


def write_range(tab: str, last_col: str = "C") -> str:
    """Header + data rows of a project tab."""
    return absolute_range_name(tab, f"A1:{last_col}")


# ========== Error classification ==========

def api_status(exc: BaseException) -> Optional[int]:
    code = getattr(exc, "code", None)
    if isinstance(code, int):
        return code
    response = getattr(exc, "response", None)
    return getattr(response, "status_code", None)


def is_not_found(exc: BaseException) -> bool:
    """
    True when the error means "that sheet/tab does not exist".

    The Sheets API answers a range on a missing tab with
    400 "Unable to parse range", not 404, so both count.
    """
    if isinstance(exc, (gspread.exceptions.SpreadsheetNotFound, gspread.exceptions.WorksheetNotFound)):
        return True
    if not isinstance(exc, gspread.exceptions.APIError):
        return False
    status = api_status(exc)
    if status == 404:
        return True
    return status == 400 and "Unable to parse range" in str(exc)


def is_transient(exc: BaseException) -> bool:
    return isinstance(exc, gspread.exceptions.APIError) and api_status(exc) in (429, 500, 503)


# ========== Retry decorator for Google Sheets API calls ==========
def retry_sheets_api(func):
    """Retry Sheets API calls with exponential backoff on quota / server errors only."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        retryer = Retrying(
            stop=stop_after_attempt(get_settings().sheets_retry_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception(is_transient),
            reraise=True,
        )
        return retryer(func, *args, **kwargs)

    return wrapper


def authorize_token(token: str) -> gspread.Client:
    """Authorized gspread client acting with the caller's bearer token."""
    return gspread.authorize(drive_client.credentials_for_token(token))


def create_spreadsheet(token: str, title: str, tab_titles: Iterable[str]) -> str:
    """
    Create a spreadsheet that already holds the given tabs (and no "Sheet1").
    Returns the spreadsheet id.

    gspread's Client.create goes through Drive and always yields a default
    tab, so this uses the Sheets v4 resource directly.
    """
    service = drive_client.build_service("sheets", "v4", token)
    body = {
        "properties": {"title": title},
        "sheets": [{"properties": {"title": t}} for t in tab_titles],
    }
    created = service.spreadsheets().create(body=body, fields="spreadsheetId").execute()
    return created["spreadsheetId"]


class SheetsAdapter:
    """
    Thin gspread wrapper used by the sync engine.

    One adapter per token and per operation: it caches opened spreadsheets for
    its own lifetime only and holds no cross-request state.
    """

    def __init__(self, client: gspread.Client) -> None:
        self.gc = client
        self._open: Dict[str, gspread.Spreadsheet] = {}

    @classmethod
    def from_token(cls, token: str) -> "SheetsAdapter":
        return cls(authorize_token(token))

    def _spreadsheet(self, sheet_id: str) -> gspread.Spreadsheet:
        if sheet_id not in self._open:
            self._open[sheet_id] = self.gc.open_by_key(sheet_id)
        return self._open[sheet_id]

    # ========== Reads ==========

    @retry_sheets_api
    def get_values(self, sheet_id: str, range_name: str) -> List[List[Any]]:
        data = self._spreadsheet(sheet_id).values_get(range_name)
        return data.get("values", []) or []

    @retry_sheets_api
    def batch_get_values(self, sheet_id: str, ranges: List[str]) -> List[List[List[Any]]]:
        """Values of every range, in request order ([] for an empty range)."""
        data = self._spreadsheet(sheet_id).values_batch_get(ranges)
        value_ranges = data.get("valueRanges", []) or []
        out: List[List[List[Any]]] = []
        for i in range(len(ranges)):
            vr = value_ranges[i] if i < len(value_ranges) else {}
            out.append(vr.get("values", []) or [])
        return out

    @retry_sheets_api
    def tab_titles(self, sheet_id: str) -> List[str]:
        meta = self._spreadsheet(sheet_id).fetch_sheet_metadata({"fields": "sheets.properties"})
        return [s["properties"]["title"] for s in meta.get("sheets", [])]

    # ========== Writes ==========

    @retry_sheets_api
    def add_tabs(self, sheet_id: str, titles: List[str]) -> None:
        """One batched addSheet. Any title that already exists fails the whole batch."""
        if not titles:
            return
        body = {"requests": [{"addSheet": {"properties": {"title": t}}} for t in titles]}
        self._spreadsheet(sheet_id).batch_update(body)
        logger.info("Added tabs %s to spreadsheet %s", titles, sheet_id)

    @retry_sheets_api
    def clear_ranges(self, sheet_id: str, ranges: List[str]) -> None:
        if ranges:
            self._spreadsheet(sheet_id).values_batch_clear(body={"ranges": ranges})

    @retry_sheets_api
    def write_ranges(self, sheet_id: str, data: List[Dict[str, Any]]) -> None:
        """data: [{"range": "...", "values": [[...], ...]}, ...] in one request."""
        if not data:
            return
        body = {"valueInputOption": VALUE_INPUT_OPTION, "data": data}
        self._spreadsheet(sheet_id).values_batch_update(body)

    @retry_sheets_api
    def update_values(self, sheet_id: str, range_name: str, rows: List[List[Any]]) -> None:
        self._spreadsheet(sheet_id).values_update(
            range_name,
            params={"valueInputOption": VALUE_INPUT_OPTION},
            body={"values": rows},
        )

    @retry_sheets_api
    def append_rows(self, sheet_id: str, range_name: str, rows: List[List[Any]]) -> None:
        if rows:
            self._spreadsheet(sheet_id).values_append(
                range_name,
                params={"valueInputOption": VALUE_INPUT_OPTION},
                body={"values": rows},
            )

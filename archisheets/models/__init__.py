from __future__ import annotations

import re
import secrets
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


# Tab names are capped by what the UI shows; Sheets itself allows 100.
SHEET_TAB_NAME_MAX_LEN = 30
DEFAULT_TAB_NAME = "CAPITOL"

_NON_TAB_CHARS = re.compile(r"[^A-Z0-9]")


class DocType(str, Enum):
    GOOGLE_DOC = "DOC"
    GOOGLE_SHEET = "SHEET"
    PDF = "PDF"
    OTHER = "OTHER"


def classify_url(url: Optional[str]) -> DocType:
    """
    Infer the document type from its URL.

    Only Sheets vs Docs can be told apart from a Drive link, so PDF / OTHER
    never come out of here; they can only be set explicitly.
    """
    if url and "spreadsheets" in url:
        return DocType.GOOGLE_SHEET
    return DocType.GOOGLE_DOC


def sheet_tab_name(title: Optional[str]) -> str:
    """
    Derive the spreadsheet tab name for a chapter title.

    Upper-case, everything outside [A-Z0-9] becomes "_", cut to 30 chars.
    Truncation happens last so the length bound holds even when upper-casing
    expands a character (e.g. "ß" -> "SS").
    """
    name = _NON_TAB_CHARS.sub("_", (title or "").upper())[:SHEET_TAB_NAME_MAX_LEN]
    return name or DEFAULT_TAB_NAME


def new_local_id(prefix: str) -> str:
    return f"{prefix}_{secrets.token_hex(5)}"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DriveDocument(_CamelModel):
    """
    Reference to a Drive file attached to a chapter.
    `id` is local only; it is never written to the sheet.
    """
    id: str = Field(default_factory=lambda: new_local_id("d"))
    title: str = ""
    url: str = ""
    type: Optional[DocType] = None

    @model_validator(mode="after")
    def _fill_type(self) -> "DriveDocument":
        if self.type is None:
            self.type = classify_url(self.url)
        return self


class Chapter(_CamelModel):
    """
    Structural section of the memòria. Maps 1:1 to a spreadsheet tab named
    `sheet_tab_name`, which is the only chapter field that survives a round trip
    as an identity.
    """
    id: str = Field(default_factory=lambda: new_local_id("c"))
    title: str = ""
    sheet_tab_name: str = ""
    documents: List[DriveDocument] = Field(default_factory=list)

    @model_validator(mode="after")
    def _fill_tab_name(self) -> "Chapter":
        if not self.sheet_tab_name:
            self.sheet_tab_name = sheet_tab_name(self.title)
        return self


class Placeholder(_CamelModel):
    key: str
    value: str = ""
    description: str = ""


class Project(_CamelModel):
    id: str
    name: str
    description: str = ""
    is_template: bool = False
    created_at: str = ""

    # Per-project spreadsheet; assigned at creation and never changed.
    sheet_id: Optional[str] = None
    # Drive folder; absent for projects created before folders existed.
    folder_id: Optional[str] = None

    chapters: List[Chapter] = Field(default_factory=list)
    placeholders: List[Placeholder] = Field(default_factory=list)


class RemoteProjectState(_CamelModel):
    """What a pull brings back from a per-project spreadsheet."""
    chapters: List[Chapter] = Field(default_factory=list)
    placeholders: List[Placeholder] = Field(default_factory=list)

"""
Validation utilities for ARCHISHEETS.
Guards the sheet layout before anything is written remotely.
"""
from typing import Iterable, Optional

from fastapi import HTTPException

from archisheets.adapters.sheets import RESERVED_TABS
from archisheets.models import Placeholder, Project


def validate_tab_names(project: Project) -> None:
    """
    Ensure every chapter maps to its own, non-reserved tab.

    A full-overwrite push writes each chapter into the tab named by its
    sheet_tab_name, so a chapter called "Config" would overwrite the CONFIG
    tab, and two chapters with the same tab would overwrite each other.

    Raises:
        ValueError: EMPTY_TAB_NAME / RESERVED_TAB_NAME:<tab> / DUPLICATE_TAB_NAME:<tab>
    """
    seen = set()
    for chapter in project.chapters:
        tab = chapter.sheet_tab_name
        if not tab or not tab.strip():
            raise ValueError("EMPTY_TAB_NAME")
        if tab in RESERVED_TABS:
            raise ValueError(f"RESERVED_TAB_NAME:{tab}")
        if tab in seen:
            raise ValueError(f"DUPLICATE_TAB_NAME:{tab}")
        seen.add(tab)


def ensure_unique_placeholder_keys(placeholders: Iterable[Placeholder]) -> None:
    """
    Placeholder keys must be unique within a project.

    Raises:
        ValueError: DUPLICATE_PLACEHOLDER_KEY:<key>
    """
    seen = set()
    for p in placeholders:
        if p.key in seen:
            raise ValueError(f"DUPLICATE_PLACEHOLDER_KEY:{p.key}")
        seen.add(p.key)


def require_master_id(master_id: Optional[str]) -> str:
    """
    Resolve the master spreadsheet id for a request.

    Raises:
        HTTPException: 400 if no master id was given or configured
    """
    value = (master_id or "").strip()
    if not value:
        raise HTTPException(
            status_code=400,
            detail="master_id is required (query param or MASTER_SHEET_ID setting)"
        )
    return value


def require_sheet_id(project: Project) -> str:
    """
    Raises:
        HTTPException: 400 if the project has no spreadsheet yet
    """
    if not project.sheet_id:
        raise HTTPException(
            status_code=400,
            detail=f"Project {project.id} has no sheetId"
        )
    return project.sheet_id

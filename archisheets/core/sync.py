# archisheets/core/sync.py
"""
Read-reconcile-write cycles between an in-memory Project and its sheets.

Every function takes the bearer token and the ids it needs; nothing here
keeps state between calls. Callers must not run two pushes (or a push and a
pull) for the same sheet at once, see core/scheduler.py.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from archisheets.adapters.sheets import (
    CONFIG_TAB,
    HEADERS,
    MASTER_APPEND_RANGE,
    MASTER_HEADER_RANGE,
    MASTER_READ_RANGE,
    MASTER_TAB,
    STRUCTURE_TAB,
    SheetsAdapter,
    is_not_found,
    read_range,
    write_range,
)
from archisheets.core.validation import ensure_unique_placeholder_keys, validate_tab_names
from archisheets.models import Project, RemoteProjectState
from archisheets.models.converters import (
    chapter_from_remote,
    documents_to_rows,
    placeholders_from_rows,
    placeholders_to_rows,
    project_from_master_row,
    project_to_master_row,
    structure_from_rows,
    structure_to_rows,
)

logger = logging.getLogger(__name__)


# ========== Master index ==========

def setup_master_sheet(adapter: SheetsAdapter, master_id: str) -> None:
    """Create the PROJECTES tab and write its header row."""
    adapter.add_tabs(master_id, [MASTER_TAB])
    adapter.update_values(master_id, MASTER_HEADER_RANGE, [HEADERS[MASTER_TAB]])
    logger.info("Provisioned %s tab on master %s", MASTER_TAB, master_id)


def _read_master(adapter: SheetsAdapter, master_id: str) -> List[Project]:
    try:
        rows = adapter.get_values(master_id, MASTER_READ_RANGE)
    except Exception as e:
        if is_not_found(e):
            setup_master_sheet(adapter, master_id)
            return []
        logger.error("Failed reading master sheet %s: %s", master_id, e)
        raise

    projects: List[Project] = []
    for row in rows:
        project = project_from_master_row(row)
        if project is not None:
            projects.append(project)
    return projects


def fetch_master_projects(token: str, master_id: str) -> List[Project]:
    """
    List project summaries from the master spreadsheet, in row order.

    A master without a PROJECTES tab is set up on the fly and reads as empty.
    Transport / auth errors propagate.
    """
    if not master_id:
        return []
    return _read_master(SheetsAdapter.from_token(token), master_id)


def register_project_in_master(token: str, master_id: str, project: Project) -> bool:
    """
    Append the project's row to PROJECTES unless a row with the same sheet id
    is already there. Returns True when a row was appended.
    """
    adapter = SheetsAdapter.from_token(token)
    current = _read_master(adapter, master_id)
    if any(p.sheet_id == project.sheet_id for p in current):
        logger.info("Project sheet %s already registered in master %s", project.sheet_id, master_id)
        return False

    adapter.append_rows(master_id, MASTER_APPEND_RANGE, [project_to_master_row(project)])
    logger.info("Registered project %s (%s) in master %s", project.id, project.sheet_id, master_id)
    return True


# ========== Per-project spreadsheet ==========

def _read_chapter_rows(adapter: SheetsAdapter, sheet_id: str, tab: str) -> List[list]:
    try:
        return adapter.get_values(sheet_id, read_range(tab))
    except Exception as e:
        if is_not_found(e):
            # ESTRUCTURA lists a tab that is gone: chapter without documents
            return []
        raise


def pull(token: str, sheet_id: str) -> Optional[RemoteProjectState]:
    """
    Read placeholders and chapters (with their documents) from a project sheet.

    Returns None instead of raising on any failure, including a brand-new
    sheet whose tabs do not exist yet; the caller keeps its local state.
    """
    if not sheet_id:
        return None
    try:
        adapter = SheetsAdapter.from_token(token)
        config_rows, structure_rows = adapter.batch_get_values(
            sheet_id, [read_range(CONFIG_TAB), read_range(STRUCTURE_TAB)]
        )

        chapters = []
        for title, tab in structure_from_rows(structure_rows):
            doc_rows = _read_chapter_rows(adapter, sheet_id, tab)
            chapters.append(chapter_from_remote(title, tab, doc_rows))

        return RemoteProjectState(
            chapters=chapters,
            placeholders=placeholders_from_rows(config_rows),
        )
    except Exception as e:
        logger.warning("Could not load project sheet %s (maybe it is new): %s", sheet_id, e)
        return None


def merge_remote(project: Project, remote: Optional[RemoteProjectState]) -> Project:
    """
    Apply a pull result to a local project.

    Per collection: a non-empty remote list wins, an empty one keeps the local
    list. This protects local edits from a pull that ran before the first push.
    """
    if remote is None:
        return project
    return project.model_copy(
        update={
            "chapters": remote.chapters if remote.chapters else project.chapters,
            "placeholders": remote.placeholders if remote.placeholders else project.placeholders,
        }
    )


def required_tabs(project: Project) -> List[str]:
    """CONFIG, ESTRUCTURA, then one tab per chapter, in chapter order."""
    tabs = [CONFIG_TAB, STRUCTURE_TAB]
    for chapter in project.chapters:
        if chapter.sheet_tab_name not in tabs:
            tabs.append(chapter.sheet_tab_name)
    return tabs


def build_value_updates(project: Project) -> List[Dict[str, object]]:
    """One full-replacement write (header + rows) per tab."""
    data: List[Dict[str, object]] = [
        {
            "range": write_range(CONFIG_TAB),
            "values": [HEADERS[CONFIG_TAB]] + placeholders_to_rows(project.placeholders),
        },
        {
            "range": write_range(STRUCTURE_TAB),
            "values": [HEADERS[STRUCTURE_TAB]] + structure_to_rows(project.chapters),
        },
    ]
    for chapter in project.chapters:
        data.append(
            {
                "range": write_range(chapter.sheet_tab_name, last_col="B"),
                "values": [HEADERS["chapter"]] + documents_to_rows(chapter.documents),
            }
        )
    return data


def build_clear_ranges(project: Project) -> List[str]:
    """
    Ranges wiped before the write. Chapter tabs are cleared through column C
    even though only A:B is written, so a legacy third column goes too.
    """
    return [write_range(tab) for tab in required_tabs(project)]


def push(token: str, project: Project) -> None:
    """
    Write the whole project to its spreadsheet.

    Phase 1 creates the missing tabs in one addSheet batch. Phase 2 clears
    every project tab and rewrites header + rows in one value batch, so rows
    deleted locally do not linger remotely. Errors propagate.
    """
    if not project.sheet_id:
        return

    validate_tab_names(project)
    ensure_unique_placeholder_keys(project.placeholders)

    adapter = SheetsAdapter.from_token(token)
    sheet_id = project.sheet_id

    existing = set(adapter.tab_titles(sheet_id))
    missing = [t for t in required_tabs(project) if t not in existing]
    adapter.add_tabs(sheet_id, missing)

    data = build_value_updates(project)
    adapter.clear_ranges(sheet_id, build_clear_ranges(project))
    adapter.write_ranges(sheet_id, data)
    logger.info(
        "Pushed project %s to sheet %s (%d chapters, %d placeholders, %d new tabs)",
        project.id,
        sheet_id,
        len(project.chapters),
        len(project.placeholders),
        len(missing),
    )

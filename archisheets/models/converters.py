from __future__ import annotations

from typing import Any, List, Optional, Sequence

from . import Chapter, DriveDocument, Placeholder, Project, classify_url, new_local_id


def _cell(row: Sequence[Any], idx: int) -> str:
    """Cell as a string; cells past the end of a short row read as empty."""
    if idx >= len(row) or row[idx] is None:
        return ""
    return str(row[idx])


def _bool_from_sheet(v: Any) -> bool:
    """
    ES_PLANTILLA is TRUE only for the literal "TRUE" Sheets writes for a
    checked boolean (surrounding spaces ignored); anything else (FALSE,
    blank, "true", "yes") is False.
    """
    return str(v or "").strip() == "TRUE"


def _bool_to_sheet(v: bool) -> str:
    return "TRUE" if v else "FALSE"


# ========== Master index (PROJECTES) ==========

def project_from_master_row(row: Sequence[Any]) -> Optional[Project]:
    """
    [id, name, sheetId, createdAt, isTemplate] -> Project summary.
    Chapters/placeholders stay empty until the caller pulls the project sheet.
    """
    project_id = _cell(row, 0).strip()
    if not project_id:
        return None
    return Project(
        id=project_id,
        name=_cell(row, 1),
        sheet_id=_cell(row, 2).strip() or None,
        created_at=_cell(row, 3),
        is_template=_bool_from_sheet(_cell(row, 4)),
        description="",
        chapters=[],
        placeholders=[],
    )


def project_to_master_row(project: Project) -> List[Any]:
    return [
        project.id,
        project.name,
        project.sheet_id or "",
        project.created_at,
        _bool_to_sheet(project.is_template),
    ]


# ========== CONFIG ==========

def placeholders_from_rows(rows: Sequence[Sequence[Any]]) -> List[Placeholder]:
    out: List[Placeholder] = []
    for r in rows:
        key = _cell(r, 0)
        if not key.strip():
            continue
        out.append(Placeholder(key=key, value=_cell(r, 1), description=_cell(r, 2)))
    return out


def placeholders_to_rows(placeholders: Sequence[Placeholder]) -> List[List[Any]]:
    return [[p.key, p.value, p.description] for p in placeholders]


# ========== ESTRUCTURA ==========

def structure_from_rows(rows: Sequence[Sequence[Any]]) -> List[tuple[str, str]]:
    """
    [(title, tab_name), ...] in sheet order.
    The DOCS column is informational and deliberately not returned.
    """
    out: List[tuple[str, str]] = []
    for r in rows:
        tab = _cell(r, 1).strip()
        if not tab:
            continue
        out.append((_cell(r, 0), tab))
    return out


def structure_to_rows(chapters: Sequence[Chapter]) -> List[List[Any]]:
    return [[c.title, c.sheet_tab_name, len(c.documents)] for c in chapters]


# ========== Chapter tabs ==========

def documents_from_rows(rows: Sequence[Sequence[Any]]) -> List[DriveDocument]:
    """
    [title, url(, ignored)] rows -> documents with fresh local ids.
    Type comes from the URL; PDF/OTHER set locally do not survive this.
    """
    out: List[DriveDocument] = []
    for r in rows:
        title = _cell(r, 0)
        url = _cell(r, 1).strip()
        if not title.strip() and not url:
            continue
        out.append(
            DriveDocument(
                id=new_local_id("d"),
                title=title,
                url=url,
                type=classify_url(url),
            )
        )
    return out


def documents_to_rows(documents: Sequence[DriveDocument]) -> List[List[Any]]:
    return [[d.title, d.url] for d in documents]


def chapter_from_remote(title: str, tab_name: str, doc_rows: Sequence[Sequence[Any]]) -> Chapter:
    return Chapter(
        id=new_local_id("c"),
        title=title,
        sheet_tab_name=tab_name,
        documents=documents_from_rows(doc_rows),
    )

# archisheets/core/provisioning.py
from __future__ import annotations

import logging
import re
import time
import uuid
from typing import List, Optional

from googleapiclient.errors import HttpError

from archisheets.adapters.sheets import CONFIG_TAB, STRUCTURE_TAB, create_spreadsheet
from archisheets.core import drive_client
from archisheets.core.errors import ProvisioningError
from archisheets.core.sync import push, register_project_in_master
from archisheets.core.validation import ensure_unique_placeholder_keys, validate_tab_names
from archisheets.models import Chapter, DriveDocument, Project, new_local_id
from archisheets.settings import get_settings

logger = logging.getLogger(__name__)

# Drive file ids are 25+ chars of [A-Za-z0-9_-]; the first such run in a
# Docs/Sheets/Drive URL is the id.
DRIVE_FILE_ID_RE = re.compile(r"[A-Za-z0-9_-]{25,}")


def utc_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def extract_drive_file_id(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    m = DRIVE_FILE_ID_RE.search(url)
    return m.group(0) if m else None


def _resolve_parent_folder(service, master_id: str) -> Optional[str]:
    try:
        return drive_client.get_file_parent(service, master_id)
    except HttpError as e:
        logger.warning("Could not resolve parent folder of master %s: %s", master_id, e)
        return None


def _clone_document(service, doc: DriveDocument, project_name: str, folder_id: str) -> DriveDocument:
    """
    Copy the underlying Drive file into folder_id and relink the URL to it.
    Non-Drive links and failed copies keep the original reference.
    """
    old_id = extract_drive_file_id(doc.url)
    url = doc.url
    if old_id:
        try:
            new_id = drive_client.copy_file(service, old_id, f"{project_name} - {doc.title}", folder_id)
            url = doc.url.replace(old_id, new_id, 1)
        except Exception as e:
            logger.warning("Copy of '%s' (%s) failed, keeping original link: %s", doc.title, old_id, e)

    return DriveDocument(id=new_local_id("d"), title=doc.title, url=url, type=doc.type)


def clone_chapters(service, template: Project, project_name: str, folder_id: str) -> List[Chapter]:
    chapters: List[Chapter] = []
    for chapter in template.chapters:
        chapters.append(
            Chapter(
                id=new_local_id("c"),
                title=chapter.title,
                sheet_tab_name=chapter.sheet_tab_name,
                documents=[_clone_document(service, d, project_name, folder_id) for d in chapter.documents],
            )
        )
    return chapters


def create_project_from_template(
    token: str,
    master_id: str,
    name: str,
    template: Optional[Project] = None,
) -> Project:
    """
    Provision a new project: Drive folder, spreadsheet with CONFIG and
    ESTRUCTURA, optional deep copy of a template's documents, master
    registration and a first push.

    Not transactional. A failure while creating the folder or spreadsheet, or
    while moving the spreadsheet, raises ProvisioningError and leaves whatever
    was already created in place.
    """
    if not master_id:
        raise ValueError("MASTER_SHEET_ID_REQUIRED")
    if not name or not name.strip():
        raise ValueError("PROJECT_NAME_REQUIRED")
    name = name.strip()
    if template is not None:
        # same checks as push, before anything is created remotely
        validate_tab_names(template)
        ensure_unique_placeholder_keys(template.placeholders)

    settings = get_settings()
    service = drive_client.get_drive_service(token)

    # 1) Parent of the master spreadsheet (None at Drive root)
    parent_id = _resolve_parent_folder(service, master_id)

    # 2) Project folder
    try:
        folder_id = drive_client.create_folder(
            service,
            drive_client.safe_segment(name, settings.project_folder_fallback_name),
            parent_id,
        )
    except Exception as e:
        raise ProvisioningError("create_folder", str(e)) from e

    # 3) Project spreadsheet
    try:
        sheet_id = create_spreadsheet(
            token,
            f"{settings.spreadsheet_title_prefix}{name}",
            [CONFIG_TAB, STRUCTURE_TAB],
        )
    except Exception as e:
        raise ProvisioningError("create_spreadsheet", str(e)) from e

    # 4) Spreadsheet into the folder
    try:
        drive_client.move_file_to_folder(service, sheet_id, folder_id)
    except Exception as e:
        raise ProvisioningError("move_spreadsheet", str(e)) from e

    # 5) Template documents
    chapters: List[Chapter] = []
    if template is not None:
        chapters = clone_chapters(service, template, name, folder_id)

    # 6) Project record
    project = Project(
        id=str(uuid.uuid4()),
        name=name,
        description=template.description if template is not None else "",
        is_template=False,
        created_at=utc_iso(),
        sheet_id=sheet_id,
        folder_id=folder_id,
        chapters=chapters,
        placeholders=[p.model_copy() for p in template.placeholders] if template is not None else [],
    )

    # 7) Master index
    register_project_in_master(token, master_id, project)

    # 8) First full sync
    push(token, project)

    logger.info(
        "Provisioned project %s: sheet=%s folder=%s template=%s",
        project.id,
        sheet_id,
        folder_id,
        template.id if template is not None else None,
    )
    return project

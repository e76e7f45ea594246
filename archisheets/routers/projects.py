# archisheets/routers/projects.py
from __future__ import annotations

import logging
from typing import List, Optional

import gspread
from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, status
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from archisheets.adapters.sheets import api_status
from archisheets.core import sync
from archisheets.core.errors import ProvisioningError
from archisheets.core.provisioning import create_project_from_template
from archisheets.core.scheduler import SyncScheduler
from archisheets.core.validation import require_master_id, require_sheet_id
from archisheets.dependencies import BearerToken, Scheduler
from archisheets.models import Project
from archisheets.schemas import AutosaveOut, ProjectCreate, ProjectDetailsOut, SyncStatusOut
from archisheets.settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])


# ====== Helpers ======

def _remote_status(e: Exception) -> Optional[int]:
    if isinstance(e, HttpError):
        return getattr(e, "status_code", None) or int(e.resp.status)
    if isinstance(e, gspread.exceptions.APIError):
        return api_status(e)
    return None


def _to_http_error(e: Exception, action: str) -> HTTPException:
    """
    Map core failures to HTTP:
      ValueError -> 400, expired/invalid token -> 401, forbidden -> 403,
      provisioning or any other remote failure -> 502.
    """
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, RefreshError):
        return HTTPException(status_code=401, detail="Google access token expired or invalid")
    if isinstance(e, PermissionError):
        # gspread turns a 403 from open_by_key into the builtin PermissionError
        return HTTPException(status_code=403, detail=f"{action}: access denied by Google")
    if isinstance(e, ProvisioningError):
        return HTTPException(status_code=502, detail=f"{action} failed at {e.step}: {e}")

    remote = _remote_status(e)
    if remote == 401:
        return HTTPException(status_code=401, detail="Google access token expired or invalid")
    if remote == 403:
        return HTTPException(status_code=403, detail=f"{action}: access denied by Google")
    if remote is not None:
        return HTTPException(status_code=502, detail=f"{action} failed: Google API {remote}")
    return HTTPException(status_code=500, detail=f"{action} failed: {e}")


def _status_out(scheduler: SyncScheduler, sheet_id: str) -> SyncStatusOut:
    st = scheduler.status(sheet_id)
    return SyncStatusOut(
        sheet_id=sheet_id,
        state=st.state,
        last_error=st.last_error,
        updated_at=st.updated_at,
        pushes=st.pushes,
    )


# ====== Master index ======

@router.get("", response_model=List[Project])
def list_projects(
    token: BearerToken,
    master_id: Optional[str] = Query(None, description="Master spreadsheet id"),
):
    """
    Project summaries from the master sheet (chapters/placeholders empty;
    pull each project to populate them).
    """
    mid = require_master_id(master_id or get_settings().master_sheet_id)
    try:
        return sync.fetch_master_projects(token, mid)
    except Exception as e:
        logger.error(f"Error listing projects from master {mid}: {e}")
        raise _to_http_error(e, "List projects")


@router.post("", response_model=Project, status_code=status.HTTP_201_CREATED)
def create_project(payload: ProjectCreate, token: BearerToken):
    """Provision folder + spreadsheet, clone the template if any, register and sync."""
    mid = require_master_id(payload.master_id or get_settings().master_sheet_id)
    try:
        return create_project_from_template(token, mid, payload.name, payload.template)
    except Exception as e:
        logger.exception("Project provisioning failed for '%s'", payload.name)
        raise _to_http_error(e, "Create project")


# ====== Per-project sync ======

@router.get("/{sheet_id}/details", response_model=ProjectDetailsOut)
def project_details(sheet_id: str, token: BearerToken):
    """
    Pull chapters and placeholders from a project sheet.
    Never fails on remote errors: found=False tells the UI to keep local state.
    """
    remote = sync.pull(token, sheet_id)
    if remote is None:
        return ProjectDetailsOut(found=False)
    return ProjectDetailsOut(found=True, chapters=remote.chapters, placeholders=remote.placeholders)


@router.post("/refresh", response_model=Project)
def refresh_project(project: Project, token: BearerToken):
    """Pull the project's sheet and merge it into the posted local snapshot."""
    sheet_id = require_sheet_id(project)
    return sync.merge_remote(project, sync.pull(token, sheet_id))


@router.put("/sync", response_model=SyncStatusOut)
def sync_project(project: Project, token: BearerToken, scheduler: Scheduler):
    """
    Explicit save. Runs on this request and reports failures as HTTP errors.
    If an autosave is in flight the snapshot is buffered and pushed by it.
    """
    sheet_id = require_sheet_id(project)
    try:
        scheduler.sync_now(token, project)
    except Exception as e:
        raise _to_http_error(e, "Sync project")
    return _status_out(scheduler, sheet_id)


@router.post("/autosave", response_model=AutosaveOut, status_code=status.HTTP_202_ACCEPTED)
def autosave_project(
    project: Project,
    token: BearerToken,
    scheduler: Scheduler,
    background_tasks: BackgroundTasks,
):
    """
    Debounced-edit endpoint: buffer the latest snapshot and push it in the
    background, never overlapping with a push already running for this sheet.
    """
    sheet_id = require_sheet_id(project)
    started = scheduler.submit(token, project)
    if started:
        background_tasks.add_task(scheduler.drain, sheet_id)
    return AutosaveOut(started=started, status=_status_out(scheduler, sheet_id))


@router.get("/{sheet_id}/sync-status", response_model=SyncStatusOut)
def sync_status(sheet_id: str, scheduler: Scheduler):
    return _status_out(scheduler, sheet_id)

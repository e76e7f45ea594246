# archisheets/core/drive_client.py
from __future__ import annotations
import logging
from typing import Optional

from google.oauth2.credentials import Credentials as UserCredentials
from googleapiclient.discovery import build

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


def credentials_for_token(token: str) -> UserCredentials:
    """
    Wrap a bearer token handed over by the browser.

    There is no refresh token, so an expired token fails with RefreshError on
    the first 401 instead of being renewed here.
    """
    if not token:
        raise ValueError("A Google access token is required")
    return UserCredentials(token=token)


def build_service(api: str, version: str, token: str):
    """
    Construct a googleapiclient resource (drive v3 / sheets v4) for one token.
    Not cached: every caller may be acting for a different user.
    """
    return build(
        api,
        version,
        credentials=credentials_for_token(token),
        cache_discovery=False,
    )


def get_drive_service(token: str):
    return build_service("drive", "v3", token)


def safe_segment(value: str, fallback: str = "UNKNOWN") -> str:
    """
    Clean folder/file name segments so Drive accepts them nicely.
    """
    if not value:
        return fallback
    v = value.strip()
    if not v:
        return fallback
    # avoid slashes and crazy chars in folder names
    v = v.replace("/", "_").replace("\\", "_")
    # keep names reasonable length
    return v[:120]


def get_file_parent(service, file_id: str) -> Optional[str]:
    """
    Return the first parent folder id of a file, or None when it has none
    (e.g. it sits at My Drive root and the API reports no parents).
    """
    data = service.files().get(fileId=file_id, fields="parents").execute()
    parents = data.get("parents") or []
    return parents[0] if parents else None


def create_folder(service, name: str, parent_id: Optional[str] = None) -> str:
    """
    Create a folder under parent_id (or My Drive root). Returns the folder ID.

    Unlike a find-or-create, this always creates: two projects with the same
    name get two folders.
    """
    metadata = {
        "name": name,
        "mimeType": FOLDER_MIME_TYPE,
    }
    if parent_id:
        metadata["parents"] = [parent_id]

    created = service.files().create(
        body=metadata,
        fields="id",
    ).execute()
    logger.info("Created Drive folder %s (%s)", created["id"], name)
    return created["id"]


def move_file_to_folder(service, file_id: str, folder_id: str) -> None:
    """
    Move a file into folder_id, detaching it from its current parent.
    """
    current_parent = get_file_parent(service, file_id)
    kwargs = {"fileId": file_id, "addParents": folder_id, "fields": "id, parents"}
    if current_parent and current_parent != folder_id:
        kwargs["removeParents"] = current_parent
    service.files().update(**kwargs).execute()


def copy_file(service, file_id: str, new_name: str, folder_id: str) -> str:
    """
    Copy a file into folder_id under a new name. Returns the new file ID.
    """
    created = service.files().copy(
        fileId=file_id,
        body={
            "name": new_name,
            "parents": [folder_id],
        },
        fields="id",
    ).execute()
    return created["id"]

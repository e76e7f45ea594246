"""
Pydantic schemas for API request/response validation.
"""
from .project import AutosaveOut, ProjectCreate, ProjectDetailsOut, SyncStatusOut

__all__ = ["AutosaveOut", "ProjectCreate", "ProjectDetailsOut", "SyncStatusOut"]

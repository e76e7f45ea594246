"""
Pydantic schemas for the projects API.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from archisheets.models import Chapter, Placeholder, Project


class _CamelSchema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProjectCreate(_CamelSchema):
    """Request to provision a new project, optionally from a template."""
    name: str = Field(..., min_length=1, description="Project name")
    master_id: Optional[str] = Field(None, description="Master spreadsheet id (defaults to settings)")
    template: Optional[Project] = Field(None, description="Template project to deep-copy")


class ProjectDetailsOut(_CamelSchema):
    """Result of a pull; found=False means the sheet could not be read."""
    found: bool
    chapters: List[Chapter] = Field(default_factory=list)
    placeholders: List[Placeholder] = Field(default_factory=list)


class SyncStatusOut(_CamelSchema):
    sheet_id: str
    state: str
    last_error: Optional[str] = None
    updated_at: float = 0.0
    pushes: int = 0


class AutosaveOut(_CamelSchema):
    started: bool = Field(..., description="False when the edit was buffered behind an in-flight push")
    status: SyncStatusOut

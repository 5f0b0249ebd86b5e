"""Pydantic schemas for notes."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from collabspace.schemas.common import ApiModel


class NoteCreate(ApiModel):
    title: str = Field(..., max_length=500)
    body_markdown: str = ""
    project_id: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    visibility: str = Field(default="project", pattern=r"^(project|private)$")


class NoteUpdate(ApiModel):
    """Partial update — only fields present in the body are applied."""
    title: Optional[str] = Field(None, max_length=500)
    body_markdown: Optional[str] = None
    tags: Optional[list[str]] = None
    visibility: Optional[str] = Field(None, pattern=r"^(project|private)$")


class NoteRead(ApiModel):
    id: uuid.UUID
    title: str
    body_markdown: str
    project_id: Optional[uuid.UUID] = None
    tags: list[str]
    visibility: str
    author_id: uuid.UUID
    created_at: datetime
    updated_at: datetime


class Pagination(ApiModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class NotePage(ApiModel):
    data: list[NoteRead]
    pagination: Pagination

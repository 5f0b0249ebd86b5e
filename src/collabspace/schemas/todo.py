"""Pydantic schemas for todos."""

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import Field

from collabspace.schemas.common import ApiModel


class TodoCreate(ApiModel):
    title: str = Field(..., max_length=500)
    project_id: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    due_date: Optional[date] = None


class TodoUpdate(ApiModel):
    title: Optional[str] = Field(None, max_length=500)
    done: Optional[bool] = None
    tags: Optional[list[str]] = None
    due_date: Optional[date] = None


class TodoRead(ApiModel):
    id: uuid.UUID
    title: str
    done: bool
    project_id: Optional[uuid.UUID] = None
    owner_id: uuid.UUID
    tags: list[str]
    due_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime

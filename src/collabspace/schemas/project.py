"""Pydantic schemas for projects."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from collabspace.schemas.common import ApiModel


class ProjectCreate(ApiModel):
    name: str = Field(..., max_length=200)
    description: str = Field(default="", max_length=5000)


class ProjectUpdate(ApiModel):
    name: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)


class ProjectRead(ApiModel):
    id: uuid.UUID
    name: str
    description: str
    owner_id: uuid.UUID
    created_by: Optional[uuid.UUID] = None
    members: list[str]
    created_at: datetime
    updated_at: datetime

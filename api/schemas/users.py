from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class UserCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    sui_address: str = Field(..., min_length=3, max_length=66)
    name: str | None = Field(default=None, max_length=128)


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sui_address: str
    name: str | None = None
    is_active: bool
    created_at: datetime

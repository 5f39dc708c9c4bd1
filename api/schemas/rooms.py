from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.chat.contracts import ChatMessage, DomainStatus, Intent


class RoomCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)


class RoomUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    is_active: bool | None = None


class RoomPreferencesRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_preferences: dict[str, Any] | None = None
    conversation_style: str | None = Field(default=None, min_length=1, max_length=32)


class RoomContextRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    summary: str
    keywords: list[str]
    user_preferences: dict[str, Any]
    conversation_style: str
    last_updated: datetime


class RoomRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    title: str
    description: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class RoomDetailResponse(BaseModel):
    room: RoomRead
    context: RoomContextRead | None = None
    messages: list[ChatMessage] = Field(default_factory=list)


class MessageCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    message: str = Field(..., min_length=1, max_length=5000)
    wallet_address: str | None = Field(default=None, max_length=66)
    sender_id: UUID | None = None


class MessageCreateResponse(BaseModel):
    room_id: UUID
    intent: Intent
    message: ChatMessage
    user_message: ChatMessage
    message_count: int | None = None
    refresh_scheduled: bool
    data_status: DomainStatus | None = None

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base
from db.utils import JSONType, UUIDType, utcnow

if TYPE_CHECKING:
    from db.models.room import Room

DEFAULT_CONVERSATION_STYLE = "friendly"


class RoomContext(Base):
    __tablename__ = "room_contexts"

    room_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(),
        ForeignKey("rooms.id", ondelete="CASCADE"),
        primary_key=True,
    )

    summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    keywords: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    user_preferences: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    conversation_style: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default=DEFAULT_CONVERSATION_STYLE,
    )

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    room: Mapped["Room"] = relationship(back_populates="context")

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base
from db.utils import UUIDType, utcnow

if TYPE_CHECKING:
    from db.models.message import Message
    from db.models.room_context import RoomContext


class Room(Base):
    __tablename__ = "rooms"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(),
        primary_key=True,
        default=uuid.uuid4,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    # conversation order is (created_at, position); see messages_repo.append_messages
    messages: Mapped[list["Message"]] = relationship(
        back_populates="room",
        order_by="[Message.created_at, Message.position]",
        cascade="all, delete-orphan",
    )

    context: Mapped["RoomContext"] = relationship(
        back_populates="room",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="joined",
    )

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.room import Room
from db.models.room_context import DEFAULT_CONVERSATION_STYLE, RoomContext
from db.repos.users_repo import UserNotFoundError, get_user
from db.utils.time import utcnow


class RoomNotFoundError(Exception):
    pass


def create_room(
    db: Session,
    *,
    user_id: uuid.UUID,
    title: str,
    description: str | None = None,
) -> Room:
    if get_user(db, user_id) is None:
        raise UserNotFoundError(f"User not found: {user_id}")

    room = Room(
        user_id=user_id,
        title=title,
        description=description,
        is_active=True,
    )
    room.context = RoomContext(
        summary="",
        keywords=[],
        user_preferences={},
        conversation_style=DEFAULT_CONVERSATION_STYLE,
        last_updated=utcnow(),
    )
    db.add(room)
    db.commit()
    db.refresh(room)
    return room


def get_room(db: Session, room_id: uuid.UUID) -> Room | None:
    return db.execute(select(Room).where(Room.id == room_id)).unique().scalar_one_or_none()


def list_rooms_for_user(db: Session, *, user_id: uuid.UUID) -> list[Room]:
    stmt = (
        select(Room)
        .where(Room.user_id == user_id)
        .order_by(Room.updated_at.desc())
    )
    return list(db.execute(stmt).unique().scalars().all())


def update_room(
    db: Session,
    *,
    room_id: uuid.UUID,
    title: str | None = None,
    description: str | None = None,
    is_active: bool | None = None,
) -> Room:
    room = get_room(db, room_id)
    if not room:
        raise RoomNotFoundError(f"Room not found: {room_id}")

    if title is not None:
        room.title = title
    if description is not None:
        room.description = description
    if is_active is not None:
        room.is_active = is_active

    db.add(room)
    db.commit()
    db.refresh(room)
    return room


def delete_room(db: Session, *, room_id: uuid.UUID) -> None:
    room = get_room(db, room_id)
    if not room:
        raise RoomNotFoundError(f"Room not found: {room_id}")
    # orm cascade removes messages and context with the room
    db.delete(room)
    db.commit()


def _get_context(db: Session, room_id: uuid.UUID) -> RoomContext:
    context = db.get(RoomContext, room_id)
    if context is None:
        raise RoomNotFoundError(f"Room not found: {room_id}")
    return context


def replace_context(
    db: Session,
    *,
    room_id: uuid.UUID,
    summary: str,
    keywords: list[str],
    last_updated: datetime | None = None,
) -> RoomContext:
    """
    Replace the derived part of a room context (summary, keywords, timestamp).

    User preferences and conversation style are owned by update_preferences.
    """
    context = _get_context(db, room_id)

    context.summary = summary
    context.keywords = list(keywords)
    context.last_updated = last_updated or utcnow()

    db.add(context)
    db.commit()
    db.refresh(context)
    return context


def update_preferences(
    db: Session,
    *,
    room_id: uuid.UUID,
    user_preferences: dict[str, Any] | None = None,
    conversation_style: str | None = None,
) -> RoomContext:
    context = _get_context(db, room_id)

    if user_preferences is not None:
        context.user_preferences = dict(user_preferences)
    if conversation_style is not None:
        context.conversation_style = conversation_style

    db.add(context)
    db.commit()
    db.refresh(context)
    return context

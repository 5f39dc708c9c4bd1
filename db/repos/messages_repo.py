from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models.message import Message, MessageRole
from db.models.room import Room
from db.utils.time import utcnow


class PersistenceError(Exception):
    pass


@dataclass(frozen=True)
class NewMessage:
    role: MessageRole
    content: str
    user_id: uuid.UUID | None = None
    intent: str | None = None


def append_messages(
    db: Session,
    *,
    room_id: uuid.UUID,
    messages: Sequence[NewMessage],
) -> list[Message]:
    """
    Append a batch of messages to a room in one transaction.

    Every message in the batch shares one created_at; ``position`` keeps the
    batch order, so a user message appended with its reply always sorts first.
    Either the whole batch is visible afterwards or none of it is.
    """
    created_at = utcnow()
    rows = [
        Message(
            room_id=room_id,
            role=m.role.value,
            content=m.content,
            user_id=m.user_id if m.role == MessageRole.USER else None,
            intent=m.intent,
            position=index,
            created_at=created_at,
        )
        for index, m in enumerate(messages)
    ]

    try:
        db.add_all(rows)
        db.execute(update(Room).where(Room.id == room_id).values(updated_at=created_at))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"append to room {room_id} failed: {e}") from e

    for row in rows:
        db.refresh(row)
    return rows


def count_messages(db: Session, *, room_id: uuid.UUID) -> int:
    stmt = select(func.count()).select_from(Message).where(Message.room_id == room_id)
    return int(db.execute(stmt).scalar_one())


def list_messages(
    db: Session,
    *,
    room_id: uuid.UUID,
    limit: int = 50,
    offset: int = 0,
) -> list[Message]:
    stmt = (
        select(Message)
        .where(Message.room_id == room_id)
        .order_by(Message.created_at.asc(), Message.position.asc())
        .limit(limit)
        .offset(offset)
    )
    return list(db.execute(stmt).scalars().all())


def find_recent_messages(
    db: Session,
    *,
    room_id: uuid.UUID,
    limit: int = 10,
    newest_first: bool = False,
) -> list[Message]:
    stmt = (
        select(Message)
        .where(Message.room_id == room_id)
        .order_by(Message.created_at.desc(), Message.position.desc())
        .limit(limit)
    )
    rows = list(db.execute(stmt).scalars().all())
    if not newest_first:
        rows.reverse()
    return rows


def get_messages(db: Session, *, message_ids: Sequence[uuid.UUID]) -> list[Message]:
    if not message_ids:
        return []
    stmt = select(Message).where(Message.id.in_(list(message_ids)))
    return list(db.execute(stmt).scalars().all())


def attach_embedding(
    db: Session,
    *,
    message_id: uuid.UUID,
    embedding: Sequence[float],
) -> bool:
    """
    Attach an embedding to a message that has none yet.

    Returns False when the message is gone or already carries an embedding.
    """
    message = db.get(Message, message_id)
    if message is None or message.embedding:
        return False

    message.embedding = [float(x) for x in embedding]
    db.add(message)
    db.commit()
    return True


def find_similar_messages(
    db: Session,
    *,
    room_id: uuid.UUID,
    query_embedding: Sequence[float],
    k: int = 5,
) -> list[tuple[Message, float]]:
    """
    Cosine nearest neighbours within one room.

    Messages without an embedding (or with a different dimensionality) are not
    candidates. Ranked by score desc, ties broken by recency desc.
    """
    if k <= 0 or not query_embedding:
        return []

    stmt = (
        select(Message)
        .where(Message.room_id == room_id)
        .where(Message.embedding.is_not(None))
    )
    query = np.asarray(query_embedding, dtype=np.float32)
    candidates = [
        m
        for m in db.execute(stmt).scalars().all()
        if isinstance(m.embedding, list) and len(m.embedding) == query.shape[0]
    ]
    if not candidates:
        return []

    matrix = np.asarray([m.embedding for m in candidates], dtype=np.float32)
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    norms[norms == 0] = 1.0
    scores = (matrix @ query) / norms

    ranked = sorted(
        zip(candidates, (float(s) for s in scores)),
        key=lambda item: (-item[1], -item[0].created_at.timestamp(), -item[0].position),
    )
    return ranked[:k]

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Callable, Sequence

from sqlalchemy.orm import Session

from db.models import Message, Room, RoomContext, User
from db.repos import messages_repo, rooms_repo, users_repo
from db.repos.messages_repo import NewMessage


class RoomStore:
    """
    Storage collaborator for the chat pipeline and the context manager.

    Every operation runs in its own short session so the store can be shared
    between request threads and background jobs. Returned rows are detached
    with their columns loaded.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    # ---------------------------
    # Users
    # ---------------------------

    def create_user(self, *, sui_address: str, name: str | None = None) -> User:
        with self._session_factory() as db:
            return users_repo.create_user(db, sui_address=sui_address, name=name)

    def get_user(self, user_id: uuid.UUID) -> User | None:
        with self._session_factory() as db:
            return users_repo.get_user(db, user_id)

    # ---------------------------
    # Rooms
    # ---------------------------

    def create_room(self, *, user_id: uuid.UUID, title: str, description: str | None = None) -> Room:
        with self._session_factory() as db:
            return rooms_repo.create_room(db, user_id=user_id, title=title, description=description)

    def get_room(self, room_id: uuid.UUID) -> Room | None:
        with self._session_factory() as db:
            return rooms_repo.get_room(db, room_id)

    def list_rooms(self, *, user_id: uuid.UUID) -> list[Room]:
        with self._session_factory() as db:
            return rooms_repo.list_rooms_for_user(db, user_id=user_id)

    def update_room(
        self,
        *,
        room_id: uuid.UUID,
        title: str | None = None,
        description: str | None = None,
        is_active: bool | None = None,
    ) -> Room:
        with self._session_factory() as db:
            return rooms_repo.update_room(
                db,
                room_id=room_id,
                title=title,
                description=description,
                is_active=is_active,
            )

    def delete_room(self, room_id: uuid.UUID) -> None:
        with self._session_factory() as db:
            rooms_repo.delete_room(db, room_id=room_id)

    def replace_context(
        self,
        room_id: uuid.UUID,
        *,
        summary: str,
        keywords: list[str],
        last_updated: datetime | None = None,
    ) -> RoomContext:
        with self._session_factory() as db:
            return rooms_repo.replace_context(
                db,
                room_id=room_id,
                summary=summary,
                keywords=keywords,
                last_updated=last_updated,
            )

    def update_preferences(
        self,
        room_id: uuid.UUID,
        *,
        user_preferences: dict[str, Any] | None = None,
        conversation_style: str | None = None,
    ) -> RoomContext:
        with self._session_factory() as db:
            return rooms_repo.update_preferences(
                db,
                room_id=room_id,
                user_preferences=user_preferences,
                conversation_style=conversation_style,
            )

    # ---------------------------
    # Messages
    # ---------------------------

    def append_messages(self, room_id: uuid.UUID, messages: Sequence[NewMessage]) -> list[Message]:
        with self._session_factory() as db:
            return messages_repo.append_messages(db, room_id=room_id, messages=messages)

    def count_messages(self, room_id: uuid.UUID) -> int:
        with self._session_factory() as db:
            return messages_repo.count_messages(db, room_id=room_id)

    def list_messages(self, room_id: uuid.UUID, *, limit: int = 50, offset: int = 0) -> list[Message]:
        with self._session_factory() as db:
            return messages_repo.list_messages(db, room_id=room_id, limit=limit, offset=offset)

    def find_recent_messages(
        self,
        room_id: uuid.UUID,
        *,
        limit: int = 10,
        newest_first: bool = False,
    ) -> list[Message]:
        with self._session_factory() as db:
            return messages_repo.find_recent_messages(
                db,
                room_id=room_id,
                limit=limit,
                newest_first=newest_first,
            )

    def get_messages(self, message_ids: Sequence[uuid.UUID]) -> list[Message]:
        with self._session_factory() as db:
            return messages_repo.get_messages(db, message_ids=message_ids)

    def attach_embedding(self, message_id: uuid.UUID, embedding: Sequence[float]) -> bool:
        with self._session_factory() as db:
            return messages_repo.attach_embedding(db, message_id=message_id, embedding=embedding)

    def find_similar_messages(
        self,
        room_id: uuid.UUID,
        query_embedding: Sequence[float],
        *,
        k: int = 5,
    ) -> list[tuple[Message, float]]:
        with self._session_factory() as db:
            return messages_repo.find_similar_messages(
                db,
                room_id=room_id,
                query_embedding=query_embedding,
                k=k,
            )

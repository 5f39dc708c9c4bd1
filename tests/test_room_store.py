from __future__ import annotations

import uuid
from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from db.models import MessageRole
from db.models.room_context import DEFAULT_CONVERSATION_STYLE
from db.repos.messages_repo import NewMessage, PersistenceError
from db.repos.rooms_repo import RoomNotFoundError
from db.repos.users_repo import UserAlreadyExistsError, UserNotFoundError


def _pair(text: str, reply: str, sender=None) -> list[NewMessage]:
    return [
        NewMessage(role=MessageRole.USER, content=text, user_id=sender),
        NewMessage(role=MessageRole.ASSISTANT, content=reply),
    ]


def test_create_room_starts_with_empty_context(store, user):
    room = store.create_room(user_id=user.id, title="Risk talk", description="weekly check")

    loaded = store.get_room(room.id)
    assert loaded is not None
    assert loaded.title == "Risk talk"
    assert loaded.is_active is True
    assert loaded.context.summary == ""
    assert loaded.context.keywords == []
    assert loaded.context.user_preferences == {}
    assert loaded.context.conversation_style == DEFAULT_CONVERSATION_STYLE
    assert store.count_messages(room.id) == 0


def test_create_room_unknown_user(store):
    with pytest.raises(UserNotFoundError):
        store.create_room(user_id=uuid.uuid4(), title="orphan")


def test_duplicate_user_address(store, user):
    with pytest.raises(UserAlreadyExistsError):
        store.create_user(sui_address=user.sui_address)


def test_get_room_missing_returns_none(store):
    assert store.get_room(uuid.uuid4()) is None


def test_list_and_update_rooms(store, user):
    first = store.create_room(user_id=user.id, title="one")
    store.create_room(user_id=user.id, title="two")

    updated = store.update_room(room_id=first.id, title="renamed", is_active=False)

    assert updated.title == "renamed"
    assert updated.is_active is False
    assert sorted(r.title for r in store.list_rooms(user_id=user.id)) == ["renamed", "two"]
    with pytest.raises(RoomNotFoundError):
        store.update_room(room_id=uuid.uuid4(), title="x")


def test_append_keeps_user_before_assistant(store, room, user):
    rows = store.append_messages(room.id, _pair("hi", "hello!", sender=user.id))

    assert [r.role for r in rows] == ["user", "assistant"]
    assert rows[0].user_id == user.id
    assert rows[1].user_id is None
    assert rows[0].created_at == rows[1].created_at

    store.append_messages(room.id, _pair("coins?", "2 SUI"))
    history = store.list_messages(room.id)
    assert [m.content for m in history] == ["hi", "hello!", "coins?", "2 SUI"]


def test_find_recent_messages_window(store, room):
    for i in range(3):
        store.append_messages(room.id, _pair(f"q{i}", f"a{i}"))

    oldest_first = store.find_recent_messages(room.id, limit=3)
    newest_first = store.find_recent_messages(room.id, limit=3, newest_first=True)

    assert [m.content for m in oldest_first] == ["a1", "q2", "a2"]
    assert [m.content for m in newest_first] == ["a2", "q2", "a1"]


def test_append_failure_leaves_no_partial_pair(store, room):
    store.append_messages(room.id, _pair("before", "ok"))

    with patch("sqlalchemy.orm.Session.commit", side_effect=OperationalError("INSERT", {}, Exception("disk full"))):
        with pytest.raises(PersistenceError):
            store.append_messages(room.id, _pair("lost", "lost reply"))

    assert store.count_messages(room.id) == 2
    assert [m.content for m in store.list_messages(room.id)] == ["before", "ok"]


def test_replace_context_round_trip(store, room):
    when = datetime(2026, 3, 1, 12, 30, tzinfo=timezone.utc)

    store.replace_context(room.id, summary="User tracks SUI staking.", keywords=["staking", "sui"], last_updated=when)
    loaded = store.get_room(room.id).context
    again = store.get_room(room.id).context

    assert loaded.summary == "User tracks SUI staking."
    assert loaded.keywords == ["staking", "sui"]
    assert loaded.last_updated.replace(tzinfo=timezone.utc) == when
    assert (again.summary, again.keywords, again.last_updated) == (
        loaded.summary,
        loaded.keywords,
        loaded.last_updated,
    )


def test_replace_context_is_wholesale_and_keeps_preferences(store, room):
    store.update_preferences(room.id, user_preferences={"risk": "low"}, conversation_style="concise")
    store.replace_context(room.id, summary="first", keywords=["alpha", "beta"])

    store.replace_context(room.id, summary="second", keywords=["gamma"])

    context = store.get_room(room.id).context
    assert context.summary == "second"
    assert context.keywords == ["gamma"]
    assert context.user_preferences == {"risk": "low"}
    assert context.conversation_style == "concise"


def test_replace_context_missing_room(store):
    with pytest.raises(RoomNotFoundError):
        store.replace_context(uuid.uuid4(), summary="x", keywords=[])


def test_delete_room_removes_messages_and_context(store, room):
    store.append_messages(room.id, _pair("q", "a"))

    store.delete_room(room.id)

    assert store.get_room(room.id) is None
    assert store.count_messages(room.id) == 0
    with pytest.raises(RoomNotFoundError):
        store.delete_room(room.id)


from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from app.services.room_context import RoomContextManager
from app.services.room_events import subscribe, unsubscribe
from db.models import MessageRole
from db.repos.messages_repo import NewMessage


@pytest.fixture
def make_manager(store):
    created = []

    def _make(llm=None, **kwargs):
        manager = RoomContextManager(store, llm, **kwargs)
        created.append(manager)
        return manager

    yield _make
    for manager in created:
        manager.shutdown(wait=True)


def _exchange(store, room_id, question, answer):
    store.append_messages(
        room_id,
        [
            NewMessage(role=MessageRole.USER, content=question),
            NewMessage(role=MessageRole.ASSISTANT, content=answer),
        ],
    )


def _drain(queue):
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


@pytest.mark.parametrize("count,expected", [(0, False), (4, False), (5, False), (6, True), (8, True)])
def test_should_refresh_is_strictly_above_threshold(make_manager, count, expected):
    assert make_manager(threshold=5).should_refresh(count) is expected


def test_refresh_replaces_summary_and_keywords(store, room, make_manager):
    llm = MagicMock()
    llm.complete.return_value = "The user is tracking staking rewards."
    _exchange(store, room.id, "show my staking rewards", "Your staking rewards are 3 SUI")
    _exchange(store, room.id, "and staking on cetus?", "No cetus staking found")
    manager = make_manager(llm, window=10, keywords_top_k=3)

    context = manager.schedule_refresh(room.id).result(timeout=5)

    assert context is not None
    loaded = store.get_room(room.id).context
    assert loaded.summary == "The user is tracking staking rewards."
    assert loaded.keywords == ["staking", "cetus", "rewards"]
    transcript = llm.complete.call_args.kwargs["prompt"]["user"]
    assert transcript.splitlines()[0] == "user: show my staking rewards"
    assert transcript.splitlines()[-1] == "assistant: No cetus staking found"


def test_refresh_reads_only_the_latest_window(store, room, make_manager):
    llm = MagicMock()
    llm.complete.return_value = "summary"
    for i in range(4):
        _exchange(store, room.id, f"question {i}", f"answer {i}")
    manager = make_manager(llm, window=3)

    manager.refresh(room.id)

    transcript = llm.complete.call_args.kwargs["prompt"]["user"]
    assert transcript.splitlines() == ["assistant: answer 2", "user: question 3", "assistant: answer 3"]


def test_refresh_leaves_preferences_untouched(store, room, make_manager):
    store.update_preferences(room.id, user_preferences={"currency": "usd"}, conversation_style="formal")
    llm = MagicMock()
    llm.complete.return_value = "summary"
    _exchange(store, room.id, "portfolio risk please", "Here it is")

    make_manager(llm).refresh(room.id)

    context = store.get_room(room.id).context
    assert context.user_preferences == {"currency": "usd"}
    assert context.conversation_style == "formal"


def test_refresh_failure_is_isolated_and_published(store, room, make_manager):
    store.replace_context(room.id, summary="old summary", keywords=["old"])
    _exchange(store, room.id, "hello there", "hi")
    llm = MagicMock()
    llm.complete.side_effect = RuntimeError("LLM timeout")
    manager = make_manager(llm)
    queue = subscribe(str(room.id))
    try:
        result = manager.schedule_refresh(room.id).result(timeout=5)
        events = _drain(queue)
    finally:
        unsubscribe(str(room.id), queue)

    assert result is None
    assert llm.complete.call_count == 1
    context = store.get_room(room.id).context
    assert context.summary == "old summary"
    assert context.keywords == ["old"]
    statuses = [e["status"] for e in events if e["type"] == "context_refresh"]
    assert statuses == ["scheduled", "failed"]
    assert "LLM timeout" in events[-1]["error"]


def test_refresh_without_llm_uses_keyword_digest(store, room, make_manager):
    _exchange(store, room.id, "bucket protocol lending", "bucket lending is live")

    context = make_manager(None).refresh(room.id)

    assert context.keywords[0] == "bucket"
    assert context.summary.startswith("2 recent messages about: bucket")


def test_embeddings_attached_in_background(store, room, make_manager):
    embedder = MagicMock()
    embedder.embed.side_effect = lambda text: [float(len(text)), 1.0]
    rows = store.append_messages(room.id, [NewMessage(role=MessageRole.USER, content="abc")])
    manager = make_manager(None, embedder=embedder)

    attached = manager.schedule_embeddings(room.id, [rows[0].id]).result(timeout=5)

    assert attached == 1
    assert store.get_messages([rows[0].id])[0].embedding == [3.0, 1.0]


def test_embeddings_disabled_schedules_nothing(store, room, make_manager):
    rows = store.append_messages(room.id, [NewMessage(role=MessageRole.USER, content="abc")])

    assert make_manager(None).schedule_embeddings(room.id, [rows[0].id]) is None


def test_scheduling_after_shutdown_returns_none_and_publishes_failure(store, room, make_manager):
    rows = store.append_messages(room.id, [NewMessage(role=MessageRole.USER, content="abc")])
    manager = make_manager(None, embedder=MagicMock())
    manager.shutdown(wait=True)
    queue = subscribe(str(room.id))
    try:
        refresh = manager.schedule_refresh(room.id)
        embeddings = manager.schedule_embeddings(room.id, [rows[0].id])
        events = _drain(queue)
    finally:
        unsubscribe(str(room.id), queue)

    assert refresh is None
    assert embeddings is None
    assert [e["status"] for e in events if e["type"] == "context_refresh"] == ["scheduled", "failed"]
    assert [e["status"] for e in events if e["type"] == "embeddings"] == ["failed"]

from __future__ import annotations

import pytest

from db.models import MessageRole
from db.repos.messages_repo import NewMessage


def _append(store, room_id, *texts):
    return store.append_messages(
        room_id,
        [NewMessage(role=MessageRole.USER, content=t) for t in texts],
    )


def test_ranked_by_cosine_similarity(store, room):
    near, far, mid = _append(store, room.id, "staking sui", "nft art", "sui rewards")
    store.attach_embedding(near.id, [1.0, 0.0, 0.0])
    store.attach_embedding(far.id, [0.0, 1.0, 0.0])
    store.attach_embedding(mid.id, [0.7, 0.7, 0.0])

    results = store.find_similar_messages(room.id, [1.0, 0.1, 0.0], k=3)

    assert [m.content for m, _ in results] == ["staking sui", "sui rewards", "nft art"]
    scores = [score for _, score in results]
    assert scores == sorted(scores, reverse=True)
    assert scores[0] == pytest.approx(0.995, abs=1e-3)


def test_messages_without_embedding_are_not_candidates(store, room):
    with_vec, without_vec = _append(store, room.id, "has vector", "no vector")
    store.attach_embedding(with_vec.id, [0.0, 1.0])

    results = store.find_similar_messages(room.id, [1.0, 0.0], k=5)

    assert [m.id for m, _ in results] == [with_vec.id]
    assert results[0][1] == pytest.approx(0.0)


def test_ties_broken_by_recency(store, room):
    (older,) = _append(store, room.id, "older")
    (newer,) = _append(store, room.id, "newer")
    store.attach_embedding(older.id, [0.5, 0.5])
    store.attach_embedding(newer.id, [0.5, 0.5])

    results = store.find_similar_messages(room.id, [1.0, 1.0], k=2)

    assert [m.content for m, _ in results] == ["newer", "older"]


def test_scoped_to_room_and_capped_at_k(store, user, room):
    other = store.create_room(user_id=user.id, title="other")
    mine = _append(store, room.id, "a", "b", "c")
    (theirs,) = _append(store, other.id, "x")
    for message in mine:
        store.attach_embedding(message.id, [1.0, 0.0])
    store.attach_embedding(theirs.id, [1.0, 0.0])

    results = store.find_similar_messages(room.id, [1.0, 0.0], k=2)

    assert len(results) == 2
    assert all(m.room_id == room.id for m, _ in results)


def test_attach_embedding_only_once(store, room):
    (message,) = _append(store, room.id, "hello")

    assert store.attach_embedding(message.id, [1.0, 2.0]) is True
    assert store.attach_embedding(message.id, [3.0, 4.0]) is False
    assert store.get_messages([message.id])[0].embedding == [1.0, 2.0]


def test_dimension_mismatch_and_empty_query(store, room):
    (message,) = _append(store, room.id, "hello")
    store.attach_embedding(message.id, [1.0, 2.0, 3.0])

    assert store.find_similar_messages(room.id, [1.0, 2.0], k=3) == []
    assert store.find_similar_messages(room.id, [], k=3) == []

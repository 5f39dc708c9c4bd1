from __future__ import annotations

import uuid
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from app.chat.composer import ResponseComposer
from app.chat.contracts import DomainData, DomainKind, DomainStatus, Intent
from app.chat.pipeline import MessagePipeline
from app.services.room_context import RoomContextManager
from app.services.room_events import subscribe, unsubscribe
from db.models import MessageRole
from db.repos.messages_repo import NewMessage, PersistenceError
from db.repos.rooms_repo import RoomNotFoundError

WALLET = "0x" + "ef" * 32


class FakeClassifier:
    def __init__(self, intent: Intent = Intent.UNKNOWN) -> None:
        self.intent = intent
        self.calls: list[str] = []

    def classify(self, text: str) -> Intent:
        self.calls.append(text)
        return self.intent


class FakeAggregator:
    def __init__(self, status: DomainStatus = DomainStatus.EMPTY) -> None:
        self.status = status
        self.calls: list[tuple] = []

    def fetch(self, domain, wallet_address):
        self.calls.append((domain, wallet_address))
        return DomainData(domain=domain, wallet_address=wallet_address or "", status=self.status)

    def shutdown(self) -> None:
        pass


@pytest.fixture
def build(store):
    created = []

    def _build(
        *,
        intent: Intent = Intent.UNKNOWN,
        composer=None,
        refresh_llm=None,
        embedder=None,
        similar_recall_k: int = 0,
    ):
        classifier = FakeClassifier(intent)
        aggregator = FakeAggregator()
        context_manager = RoomContextManager(store, refresh_llm, threshold=5, embedder=embedder)
        pipeline = MessagePipeline(
            classifier=classifier,
            aggregator=aggregator,
            composer=composer or ResponseComposer(None),
            store=store,
            context_manager=context_manager,
            embedder=embedder,
            similar_recall_k=similar_recall_k,
        )
        created.append(context_manager)
        return pipeline, classifier, aggregator, context_manager

    yield _build
    for manager in created:
        manager.shutdown(wait=True)


def _seed(store, room_id, pairs: int) -> None:
    for i in range(pairs):
        store.append_messages(
            room_id,
            [
                NewMessage(role=MessageRole.USER, content=f"earlier question {i}"),
                NewMessage(role=MessageRole.ASSISTANT, content=f"earlier answer {i}"),
            ],
        )


@pytest.mark.parametrize("prior_pairs", [0, 1, 3])
def test_exchange_appends_user_then_assistant(store, room, user, build, prior_pairs):
    _seed(store, room.id, prior_pairs)
    pipeline, *_ = build()

    result = pipeline.handle(room_id=room.id, text="what can you do?", sender_id=user.id)

    history = store.list_messages(room.id)
    assert len(history) == prior_pairs * 2 + 2
    assert result.message_count == prior_pairs * 2 + 2
    assert [m.role for m in history[-2:]] == ["user", "assistant"]
    assert history[-2].content == "what can you do?"
    assert history[-2].user_id == user.id
    assert history[-1].content == result.assistant_message.content
    assert result.user_message.id == history[-2].id
    assert result.intent == Intent.UNKNOWN


def test_missing_room_raises_and_persists_nothing(store, build):
    pipeline, classifier, _, _ = build()
    missing = uuid.uuid4()

    with pytest.raises(RoomNotFoundError):
        pipeline.handle(room_id=missing, text="hi")

    assert classifier.calls == []
    assert store.count_messages(missing) == 0


def test_append_failure_leaves_no_partial_pair(store, room, build):
    _seed(store, room.id, 2)
    pipeline, _, _, context_manager = build()
    context_manager.schedule_refresh = MagicMock()

    with patch("sqlalchemy.orm.Session.commit", side_effect=OperationalError("INSERT", {}, Exception("locked"))):
        with pytest.raises(PersistenceError):
            pipeline.handle(room_id=room.id, text="will not be saved")

    assert store.count_messages(room.id) == 4
    assert "will not be saved" not in [m.content for m in store.list_messages(room.id)]
    context_manager.schedule_refresh.assert_not_called()


def test_refresh_not_triggered_at_six_then_triggered_at_eight(store, room, build):
    _seed(store, room.id, 2)
    pipeline, _, _, context_manager = build()
    scheduled = []
    original = context_manager.schedule_refresh
    context_manager.schedule_refresh = lambda room_id: scheduled.append(original(room_id)) or scheduled[-1]

    first = pipeline.handle(room_id=room.id, text="tell me about staking")

    assert first.message_count == 6
    assert first.refresh_scheduled is False
    assert scheduled == []
    assert store.get_room(room.id).context.summary == ""

    second = pipeline.handle(room_id=room.id, text="staking rewards on sui")

    assert second.message_count == 8
    assert second.refresh_scheduled is True
    assert len(scheduled) == 1
    scheduled[0].result(timeout=5)
    context = store.get_room(room.id).context
    assert "staking" in context.keywords
    assert context.summary != ""


def test_refresh_failure_does_not_fail_the_request(store, room, build):
    _seed(store, room.id, 3)
    failing_llm = MagicMock()
    failing_llm.complete.side_effect = RuntimeError("summary timeout")
    pipeline, _, _, context_manager = build(refresh_llm=failing_llm)
    futures = []
    original = context_manager.schedule_refresh
    context_manager.schedule_refresh = lambda room_id: futures.append(original(room_id)) or futures[-1]

    result = pipeline.handle(room_id=room.id, text="hello again")

    assert result.refresh_scheduled is True
    assert futures[0].result(timeout=5) is None
    assert store.count_messages(room.id) == 8
    assert store.get_room(room.id).context.summary == ""


def test_domain_intent_aggregates_with_wallet(store, room, build):
    pipeline, _, aggregator, _ = build(intent=Intent.GET_NFT_DATA)

    result = pipeline.handle(room_id=room.id, text="show my nfts", wallet_address=WALLET)

    assert aggregator.calls == [(DomainKind.NFTS, WALLET)]
    assert result.data_status == DomainStatus.EMPTY
    assert result.assistant_message.content == "No NFTs found in this wallet."
    assert result.user_message.intent == Intent.GET_NFT_DATA.value


def test_general_intent_skips_aggregation(store, room, build):
    pipeline, _, aggregator, _ = build(intent=Intent.DEFI_OPERATIONS)

    result = pipeline.handle(room_id=room.id, text="how do I stake?")

    assert aggregator.calls == []
    assert result.data_status is None


def test_context_excludes_current_turn(store, room, build):
    store.replace_context(room.id, summary="Talks about SUI.", keywords=["sui"])
    _seed(store, room.id, 1)
    composer = MagicMock()
    composer.compose.return_value = "reply"
    pipeline, *_ = build(composer=composer)

    pipeline.handle(room_id=room.id, text="brand new question")

    context_text = composer.compose.call_args.args[2]
    assert "Summary: Talks about SUI." in context_text
    assert "Keywords: sui" in context_text
    assert "user: earlier question 0" in context_text
    assert "brand new question" not in context_text
    assert composer.compose.call_args.kwargs["message"] == "brand new question"


def test_similarity_recall_adds_older_messages(store, room, build):
    rows = store.append_messages(room.id, [NewMessage(role=MessageRole.USER, content="my cetus position")])
    store.attach_embedding(rows[0].id, [1.0, 0.0])
    embedder = MagicMock()
    embedder.embed.return_value = [1.0, 0.0]
    composer = MagicMock()
    composer.compose.return_value = "reply"
    pipeline, *_ = build(composer=composer, embedder=embedder, similar_recall_k=3)
    pipeline._recent_messages = 0

    pipeline.handle(room_id=room.id, text="what about cetus?")

    context_text = composer.compose.call_args.args[2]
    assert "Related earlier messages:\nuser: my cetus position" in context_text


def test_exchange_event_published(store, room, build):
    pipeline, *_ = build(intent=Intent.GREETING)
    queue = subscribe(str(room.id))
    try:
        pipeline.handle(room_id=room.id, text="hi")
        events = []
        while not queue.empty():
            events.append(queue.get_nowait())
    finally:
        unsubscribe(str(room.id), queue)

    exchange = [e for e in events if e["type"] == "message_exchange"]
    assert len(exchange) == 1
    assert exchange[0]["intent"] == "greeting"
    assert exchange[0]["messageCount"] == 2
    assert exchange[0]["roomId"] == str(room.id)


def test_count_failure_after_append_still_returns_the_exchange(store, room, build):
    _seed(store, room.id, 3)
    pipeline, _, _, context_manager = build()
    context_manager.schedule_refresh = MagicMock()

    with patch.object(store, "count_messages", side_effect=RuntimeError("db read timeout")):
        result = pipeline.handle(room_id=room.id, text="still answered")

    assert result.assistant_message.content
    assert result.message_count is None
    assert result.refresh_scheduled is False
    context_manager.schedule_refresh.assert_not_called()
    assert store.count_messages(room.id) == 8


def test_exchange_after_context_shutdown_still_succeeds(store, room, build):
    _seed(store, room.id, 3)
    embedder = MagicMock()
    embedder.embed.return_value = [1.0, 0.0]
    pipeline, _, _, context_manager = build(embedder=embedder)
    context_manager.shutdown(wait=True)

    result = pipeline.handle(room_id=room.id, text="late message")

    assert result.message_count == 8
    assert result.refresh_scheduled is False
    assert store.count_messages(room.id) == 8

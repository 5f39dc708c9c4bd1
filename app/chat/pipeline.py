from __future__ import annotations

import logging
import uuid
from enum import Enum
from typing import Sequence

from app.chat.aggregator import DomainQueryAggregator
from app.chat.classifier import IntentClassifier
from app.chat.composer import ResponseComposer
from app.chat.contracts import ChatMessage, DomainData, PipelineResult, domain_for_intent
from app.services.room_context import RoomContextManager
from app.services.room_events import publish_event
from app.services.room_store import RoomStore
from db.models import Message, MessageRole, Room
from db.repos.messages_repo import NewMessage
from db.repos.rooms_repo import RoomNotFoundError
from llm.client import LLMClient

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    VALIDATING = "validating"
    CLASSIFYING = "classifying"
    AGGREGATING = "aggregating"
    COMPOSING = "composing"
    PERSISTING = "persisting"
    COMPLETED = "completed"
    FAILED = "failed"


def _format_lines(messages: Sequence[Message]) -> str:
    return "\n".join(f"{m.role}: {m.content}" for m in messages)


class MessagePipeline:
    """
    Handles one chat exchange end to end.

    validating -> classifying -> (aggregating) -> composing -> persisting ->
    completed. Classification, aggregation and composition degrade instead of
    failing, so only a missing room (RoomNotFoundError) or a failed append
    (PersistenceError) reaches the caller. The context refresh and embedding
    jobs are handed to the context manager and never awaited.
    """

    def __init__(
        self,
        *,
        classifier: IntentClassifier,
        aggregator: DomainQueryAggregator,
        composer: ResponseComposer,
        store: RoomStore,
        context_manager: RoomContextManager,
        embedder: LLMClient | None = None,
        recent_messages: int = 10,
        similar_recall_k: int = 0,
    ) -> None:
        self._classifier = classifier
        self._aggregator = aggregator
        self._composer = composer
        self._store = store
        self._context = context_manager
        self._embedder = embedder
        self._recent_messages = recent_messages
        self._similar_recall_k = similar_recall_k

    def shutdown(self) -> None:
        self._aggregator.shutdown()
        self._context.shutdown()

    def handle(
        self,
        *,
        room_id: uuid.UUID,
        text: str,
        wallet_address: str | None = None,
        sender_id: uuid.UUID | None = None,
    ) -> PipelineResult:
        stage = PipelineStage.VALIDATING
        self._log_stage(room_id, stage)
        try:
            room = self._store.get_room(room_id)
            if room is None:
                raise RoomNotFoundError(f"Room {room_id} not found")

            stage = PipelineStage.CLASSIFYING
            self._log_stage(room_id, stage)
            intent = self._classifier.classify(text)

            data: DomainData | None = None
            domain = domain_for_intent(intent)
            if domain is not None:
                stage = PipelineStage.AGGREGATING
                self._log_stage(room_id, stage, intent=intent.value)
                data = self._aggregator.fetch(domain, wallet_address)

            stage = PipelineStage.COMPOSING
            self._log_stage(room_id, stage, intent=intent.value)
            conversation_context = self._conversation_context(room, text)
            reply = self._composer.compose(intent, data, conversation_context, message=text)

            stage = PipelineStage.PERSISTING
            self._log_stage(room_id, stage)
            user_row, assistant_row = self._store.append_messages(
                room_id,
                [
                    NewMessage(role=MessageRole.USER, content=text, user_id=sender_id, intent=intent.value),
                    NewMessage(role=MessageRole.ASSISTANT, content=reply, intent=intent.value),
                ],
            )
        except Exception as e:
            logger.warning("pipeline failed room_id=%s stage=%s: %s", room_id, stage.value, e)
            self._log_stage(room_id, PipelineStage.FAILED)
            raise

        # The exchange is stored; nothing below may fail the request.
        message_count: int | None = None
        refresh_scheduled = False
        try:
            message_count = self._store.count_messages(room_id)
            # the reply just written does not count toward the refresh trigger
            if self._context.should_refresh(message_count - 1):
                refresh_scheduled = self._context.schedule_refresh(room_id) is not None
        except Exception as e:
            logger.warning("context refresh not scheduled room_id=%s: %s", room_id, e)
        try:
            self._context.schedule_embeddings(room_id, [user_row.id, assistant_row.id])
        except Exception as e:
            logger.warning("embeddings not scheduled room_id=%s: %s", room_id, e)

        try:
            publish_event(
                str(room_id),
                {
                    "type": "message_exchange",
                    "intent": intent.value,
                    "messageCount": message_count,
                    "refreshScheduled": refresh_scheduled,
                    "dataStatus": data.status.value if data is not None else None,
                },
            )
        except Exception as e:
            logger.warning("message_exchange event not published room_id=%s: %s", room_id, e)
        self._log_stage(room_id, PipelineStage.COMPLETED, intent=intent.value)

        return PipelineResult(
            room_id=room_id,
            intent=intent,
            user_message=ChatMessage.model_validate(user_row),
            assistant_message=ChatMessage.model_validate(assistant_row),
            message_count=message_count,
            refresh_scheduled=refresh_scheduled,
            data_status=data.status if data is not None else None,
        )

    def _log_stage(self, room_id: uuid.UUID, stage: PipelineStage, **fields: str) -> None:
        extra = "".join(f" {k}={v}" for k, v in fields.items())
        logger.info("pipeline stage=%s room_id=%s%s", stage.value, room_id, extra)

    # ---------------------------
    # Conversation context
    # ---------------------------

    def _conversation_context(self, room: Room, text: str) -> str:
        """
        Room summary and keywords plus the messages that precede this turn.
        Read failures leave the reply without history rather than failing it.
        """
        parts: list[str] = []
        context = room.context
        if context is not None:
            if context.summary:
                parts.append(f"Summary: {context.summary}")
            if context.keywords:
                parts.append(f"Keywords: {', '.join(context.keywords)}")
            if context.conversation_style:
                parts.append(f"Conversation style: {context.conversation_style}")

        try:
            recent = self._store.find_recent_messages(room.id, limit=self._recent_messages)
        except Exception as e:
            logger.warning("recent messages unavailable room_id=%s: %s", room.id, e)
            recent = []

        recalled = self._recall(room.id, text, exclude={m.id for m in recent})
        if recalled:
            parts.append("Related earlier messages:\n" + _format_lines(recalled))
        if recent:
            parts.append("Recent messages:\n" + _format_lines(recent))
        return "\n\n".join(parts)

    def _recall(self, room_id: uuid.UUID, text: str, *, exclude: set[uuid.UUID]) -> list[Message]:
        if self._embedder is None or self._similar_recall_k <= 0:
            return []
        try:
            query = self._embedder.embed(text)
            scored = self._store.find_similar_messages(room_id, query, k=self._similar_recall_k)
        except Exception as e:
            logger.warning("similarity recall skipped room_id=%s: %s", room_id, e)
            return []
        return [message for message, _ in scored if message.id not in exclude]


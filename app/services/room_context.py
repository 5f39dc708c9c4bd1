from __future__ import annotations

import logging
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Sequence

from app.chat.prompts import build_summary_prompt
from app.core.context import set_room_id
from app.services.keywords import extract_keywords
from app.services.room_events import publish_event
from app.services.room_store import RoomStore
from db.models import Message, RoomContext
from llm.client import LLMClient

logger = logging.getLogger(__name__)


def _transcript(messages: Sequence[Message]) -> str:
    return "\n".join(f"{m.role}: {m.content}" for m in messages)


class RoomContextManager:
    """
    Keeps each room's rolling summary and keywords fresh.

    Refresh and embedding jobs run on a dedicated executor, detached from the
    request that triggered them. A failed job is logged and published as a
    room event; it is not retried, the next qualifying exchange triggers again.
    """

    def __init__(
        self,
        store: RoomStore,
        llm: LLMClient | None,
        *,
        threshold: int = 5,
        window: int = 10,
        keywords_top_k: int = 10,
        keyword_min_length: int = 3,
        max_workers: int = 2,
        embedder: LLMClient | None = None,
    ) -> None:
        self._store = store
        self._llm = llm
        self._embedder = embedder
        self.threshold = threshold
        self.window = window
        self.keywords_top_k = keywords_top_k
        self.keyword_min_length = keyword_min_length
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers),
            thread_name_prefix="room-context",
        )

    def should_refresh(self, message_count: int) -> bool:
        return message_count > self.threshold

    def shutdown(self, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=not wait)

    # ---------------------------
    # Summary / keywords
    # ---------------------------

    def schedule_refresh(self, room_id: uuid.UUID) -> Future | None:
        """
        Hand a refresh to the executor. Returns None when the executor no
        longer accepts work (shutdown); the failure is logged and published.
        """
        publish_event(str(room_id), {"type": "context_refresh", "status": "scheduled"})
        try:
            future = self._executor.submit(self._run_refresh, room_id)
        except RuntimeError as e:
            logger.warning("context refresh not scheduled room_id=%s: %s", room_id, e)
            publish_event(
                str(room_id),
                {"type": "context_refresh", "status": "failed", "error": str(e)},
            )
            return None
        logger.info("context refresh scheduled room_id=%s", room_id)
        return future

    def _run_refresh(self, room_id: uuid.UUID) -> RoomContext | None:
        set_room_id(str(room_id))
        try:
            context = self.refresh(room_id)
        except Exception as e:
            logger.exception("context refresh failed room_id=%s", room_id)
            publish_event(
                str(room_id),
                {"type": "context_refresh", "status": "failed", "error": str(e)},
            )
            return None
        finally:
            set_room_id(None)

        publish_event(
            str(room_id),
            {
                "type": "context_refresh",
                "status": "completed",
                "keywords": list(context.keywords or []),
            },
        )
        return context

    def refresh(self, room_id: uuid.UUID) -> RoomContext:
        """
        Rebuild the summary and keywords from the latest window of messages
        and replace the stored context. Raises on any failure; nothing is
        written unless both parts were produced.
        """
        messages = self._store.find_recent_messages(room_id, limit=self.window, newest_first=False)
        keywords = extract_keywords(
            (m.content for m in messages),
            top_k=self.keywords_top_k,
            min_length=self.keyword_min_length,
        )
        summary = self._summarize(messages, keywords)

        context = self._store.replace_context(room_id, summary=summary, keywords=keywords)
        logger.info(
            "context refreshed room_id=%s messages=%s keywords=%s",
            room_id,
            len(messages),
            len(keywords),
        )
        return context

    def _summarize(self, messages: Sequence[Message], keywords: list[str]) -> str:
        if not messages:
            return ""
        if self._llm is None:
            # No LLM configured: keep a keyword digest so the context still moves.
            if not keywords:
                return f"{len(messages)} recent messages."
            return f"{len(messages)} recent messages about: {', '.join(keywords)}."

        summary = self._llm.complete(prompt=build_summary_prompt(_transcript(messages)))
        if not isinstance(summary, str) or not summary.strip():
            raise RuntimeError("summary generation returned empty text")
        return summary.strip()

    # ---------------------------
    # Embeddings
    # ---------------------------

    def schedule_embeddings(self, room_id: uuid.UUID, message_ids: Sequence[uuid.UUID]) -> Future | None:
        if self._embedder is None or not message_ids:
            return None
        try:
            return self._executor.submit(self._run_embeddings, room_id, list(message_ids))
        except RuntimeError as e:
            logger.warning("embeddings not scheduled room_id=%s: %s", room_id, e)
            publish_event(str(room_id), {"type": "embeddings", "status": "failed", "error": str(e)})
            return None

    def _run_embeddings(self, room_id: uuid.UUID, message_ids: list[uuid.UUID]) -> int:
        set_room_id(str(room_id))
        attached = 0
        failed = 0
        try:
            for message in self._store.get_messages(message_ids):
                try:
                    vector = self._embedder.embed(message.content)
                    if self._store.attach_embedding(message.id, vector):
                        attached += 1
                except Exception as e:
                    failed += 1
                    logger.warning("embedding failed message_id=%s: %s", message.id, e)
        except Exception as e:
            logger.exception("embedding job failed room_id=%s", room_id)
            publish_event(str(room_id), {"type": "embeddings", "status": "failed", "error": str(e)})
            return attached
        finally:
            set_room_id(None)

        status = "failed" if failed and not attached else "completed"
        publish_event(
            str(room_id),
            {"type": "embeddings", "status": status, "attached": attached, "failed": failed},
        )
        return attached

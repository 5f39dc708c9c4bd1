from __future__ import annotations

import logging
from functools import lru_cache

from app.chat.aggregator import ChainSource, DomainQueryAggregator, MarketSource
from app.chat.classifier import IntentClassifier
from app.chat.composer import ResponseComposer
from app.chat.pipeline import MessagePipeline
from app.config import Settings, get_settings
from app.services.room_context import RoomContextManager
from app.services.room_store import RoomStore
from chain.market import DexScreenerClient
from chain.rpc import SuiRPC
from llm.client import LLMClient

logger = logging.getLogger(__name__)


def build_llm(
    settings: Settings,
    *,
    temperature: float | None = None,
    timeout_s: int | None = None,
) -> LLMClient | None:
    if not settings.LLM_ENABLED:
        return None
    return LLMClient(
        model=settings.LLM_MODEL,
        provider=settings.LLM_PROVIDER,
        api_key=settings.OPENAI_API_KEY,
        temperature=settings.llm_temperature if temperature is None else temperature,
        timeout_s=settings.LLM_TIMEOUT_S if timeout_s is None else timeout_s,
        embedding_model=settings.embedding_model,
    )


def build_pipeline(
    settings: Settings,
    *,
    store: RoomStore,
    chain: ChainSource | None = None,
    market: MarketSource | None = None,
) -> MessagePipeline:
    llm = build_llm(settings)
    embedder = build_llm(settings) if settings.embeddings_enabled else None

    aggregator = DomainQueryAggregator(
        chain=chain or SuiRPC(),
        market=market or DexScreenerClient(),
        max_workers=settings.aggregator_max_workers,
        timeout_s=settings.aggregator_timeout_s,
        transactions_limit=settings.transactions_limit,
        position_types=settings.position_object_types,
    )
    context_manager = RoomContextManager(
        store,
        build_llm(settings, timeout_s=settings.context_refresh_timeout_s),
        threshold=settings.context_refresh_threshold,
        window=settings.context_refresh_window,
        keywords_top_k=settings.context_keywords_top_k,
        keyword_min_length=settings.context_keyword_min_length,
        max_workers=settings.context_worker_threads,
        embedder=embedder,
    )
    logger.info(
        "pipeline built llm_enabled=%s embeddings_enabled=%s",
        llm is not None,
        embedder is not None,
    )
    return MessagePipeline(
        classifier=IntentClassifier(llm),
        aggregator=aggregator,
        composer=ResponseComposer(llm, temperature=settings.llm_chat_temperature),
        store=store,
        context_manager=context_manager,
        embedder=embedder,
        recent_messages=settings.chat_recent_messages,
        similar_recall_k=settings.chat_similar_recall_k,
    )


@lru_cache
def get_room_store() -> RoomStore:
    from db.session import SessionLocal

    return RoomStore(SessionLocal)


@lru_cache
def get_pipeline() -> MessagePipeline:
    """
    Process-level pipeline (FastAPI dependency).
    """
    return build_pipeline(get_settings(), store=get_room_store())


def shutdown_pipeline() -> None:
    if get_pipeline.cache_info().currsize:
        get_pipeline().shutdown()
    get_pipeline.cache_clear()

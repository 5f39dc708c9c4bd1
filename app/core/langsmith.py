from __future__ import annotations

import logging
import os

from app.config import get_settings

logger = logging.getLogger(__name__)


def configure_langsmith() -> bool:
    """
    Export LangSmith tracing settings for the LangChain OpenAI clients.

    Tracing is optional; returns whether it was switched on.
    """
    s = get_settings()
    if not s.langsmith_tracing:
        return False

    # read by ChatOpenAI / OpenAIEmbeddings at call time
    os.environ["LANGCHAIN_TRACING_V2"] = "true"
    os.environ["LANGCHAIN_PROJECT"] = s.langsmith_project
    os.environ["LANGCHAIN_ENDPOINT"] = s.langsmith_endpoint
    if s.langsmith_api_key:
        os.environ["LANGCHAIN_API_KEY"] = s.langsmith_api_key
    else:
        logger.warning("LangSmith tracing enabled without LANGSMITH_API_KEY")

    logger.info("LangSmith tracing enabled project=%s", s.langsmith_project)
    return True

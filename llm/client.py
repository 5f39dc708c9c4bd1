from __future__ import annotations

import json
import logging

logger = logging.getLogger(__name__)


class LLMClient:
    """
    Thin provider wrapper used by the chat pipeline.

    Prompts are ``{"system": ..., "user": ...}`` dicts. Every call is bounded by
    ``timeout_s``; any provider failure surfaces as an exception so callers can
    decide how to degrade.
    """

    def __init__(
        self,
        *,
        model: str | None = None,
        provider: str | None = None,
        api_key: str | None = None,
        temperature: float = 0.0,
        timeout_s: int = 30,
        embedding_model: str | None = None,
    ) -> None:
        self.model = model
        self.provider = provider
        self.api_key = api_key
        self.temperature = temperature
        self.timeout_s = timeout_s
        self.embedding_model = embedding_model

    def classify(self, *, prompt: dict) -> str:
        return self._call_provider(prompt=prompt, temperature=0.0)

    def complete(self, *, prompt: dict, temperature: float | None = None) -> str:
        return self._call_provider(prompt=prompt, temperature=temperature)

    def embed(self, text: str) -> list[float]:
        if self.provider == "openai":
            return self._embed_openai(text)
        raise RuntimeError("LLM provider not configured")

    def _call_provider(self, *, prompt: dict, temperature: float | None = None) -> str:
        if self.provider == "openai":
            return self._call_openai(prompt=prompt, temperature=temperature)
        raise RuntimeError("LLM provider not configured")

    def _call_openai(self, *, prompt: dict, temperature: float | None = None) -> str:
        if not self.api_key:
            raise RuntimeError("OPENAI_API_KEY is not set")
        try:
            from langchain_core.messages import HumanMessage, SystemMessage
            from langchain_openai import ChatOpenAI
        except Exception as e:
            raise RuntimeError(f"LangChain OpenAI client not available: {e}") from e

        messages = []
        if prompt.get("system"):
            messages.append(SystemMessage(content=prompt["system"]))
        messages.append(HumanMessage(content=prompt["user"]))

        logger.info("LLM call start provider=openai model=%s", self.model or "gpt-4o-mini")
        llm = ChatOpenAI(
            model=self.model or "gpt-4o-mini",
            temperature=self.temperature if temperature is None else temperature,
            timeout=self.timeout_s,
            max_retries=0,
            api_key=self.api_key,
        )
        response = llm.invoke(messages)
        output_text = response.content
        if not output_text:
            raise RuntimeError("OpenAI returned empty content")
        if not isinstance(output_text, str):
            output_text = json.dumps(output_text)
        logger.info("LLM call success provider=openai output_len=%s", len(output_text))
        return output_text

    def _embed_openai(self, text: str) -> list[float]:
        if not self.api_key:
            raise RuntimeError("OPENAI_API_KEY is not set")
        try:
            from langchain_openai import OpenAIEmbeddings
        except Exception as e:
            raise RuntimeError(f"LangChain OpenAI embeddings not available: {e}") from e

        embeddings = OpenAIEmbeddings(
            model=self.embedding_model or "text-embedding-3-small",
            api_key=self.api_key,
            timeout=self.timeout_s,
            max_retries=0,
        )
        vector = embeddings.embed_query(text)
        logger.info("LLM embed success provider=openai dims=%s", len(vector))
        return vector


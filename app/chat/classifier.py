from __future__ import annotations

import json
import logging
import re

from app.chat.contracts import Intent
from app.chat.prompts import build_intent_classifier_prompt
from llm.client import LLMClient

logger = logging.getLogger(__name__)

_LABELS: dict[str, Intent] = {intent.value: intent for intent in Intent}
_SEPARATORS = re.compile(r"[\s\-]+")


def normalize_label(raw: object) -> Intent:
    """
    Map free classifier output onto the closed intent set.

    Matching is case-insensitive after trimming quotes, markdown and trailing
    punctuation; a ``{"intent": ...}`` JSON object is also accepted. Anything
    else is Intent.UNKNOWN.
    """
    if not isinstance(raw, str):
        return Intent.UNKNOWN

    text = raw.strip()
    if text.startswith("{"):
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            return Intent.UNKNOWN
        text = parsed.get("intent") if isinstance(parsed, dict) else None
        if not isinstance(text, str):
            return Intent.UNKNOWN

    text = text.strip().strip("`'\"*").strip().rstrip(".!?:;,").strip().lower()
    text = _SEPARATORS.sub("_", text)
    return _LABELS.get(text, Intent.UNKNOWN)


class IntentClassifier:
    def __init__(self, llm: LLMClient | None) -> None:
        self._llm = llm

    def classify(self, text: str) -> Intent:
        if self._llm is None:
            return Intent.UNKNOWN
        if not text or not text.strip():
            return Intent.UNKNOWN

        prompt = build_intent_classifier_prompt(text)
        try:
            raw = self._llm.classify(prompt=prompt)
        except Exception as e:
            logger.warning("intent classification failed, using fallback: %s", e)
            return Intent.UNKNOWN

        intent = normalize_label(raw)
        if intent is Intent.UNKNOWN and isinstance(raw, str) and raw.strip():
            logger.info("classifier returned out-of-set label %r", raw.strip()[:64])
        logger.info("intent classified intent=%s", intent.value)
        return intent

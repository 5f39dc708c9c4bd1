from __future__ import annotations

import logging
import random

from app.chat.aggregator import INVALID_WALLET, POSITIONS_NOT_CONFIGURED
from app.chat.contracts import DomainData, DomainStatus, Intent
from app.chat.formatting import (
    CAPABILITIES_MESSAGE,
    COMPOSITION_FAILED_MESSAGE,
    INVALID_WALLET_MESSAGE,
    POSITIONS_NOT_CONFIGURED_MESSAGE,
    empty_message,
    failed_message,
    format_domain_data,
)
from app.chat.prompts import build_domain_prompt, build_general_prompt
from llm.client import LLMClient

logger = logging.getLogger(__name__)

GREETINGS = (
    "I am your personal assistant specializing in financial management on Sui. How can I assist you today?",
    "Hello! I am your financial assistant. Is there anything I can help you with today?",
    "Hi there! I'm here to help you with your Sui wallet and portfolio. What do you need assistance with?",
    "Greetings! I am your assistant for on-chain finance. Please let me know how I can help!",
)


class ResponseComposer:
    """
    Turns an intent plus (optional) domain data into reply text.

    Greetings, empty results and failed fetches are answered from fixed
    templates without touching the LLM. An LLM failure becomes a canned
    apology; compose never raises.
    """

    def __init__(
        self,
        llm: LLMClient | None,
        *,
        temperature: float | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._llm = llm
        self._temperature = temperature
        self._rng = rng or random.Random()

    def compose(
        self,
        intent: Intent,
        data: DomainData | None,
        conversation_context: str,
        *,
        message: str = "",
    ) -> str:
        if intent is Intent.GREETING:
            return self._rng.choice(GREETINGS)

        if data is not None:
            if data.status is DomainStatus.EMPTY:
                return empty_message(data.domain)
            if data.status is DomainStatus.FAILED:
                if data.error == INVALID_WALLET:
                    return INVALID_WALLET_MESSAGE
                if data.error == POSITIONS_NOT_CONFIGURED:
                    return POSITIONS_NOT_CONFIGURED_MESSAGE
                return failed_message(data.domain)
            if self._llm is None:
                return format_domain_data(data)
            prompt = build_domain_prompt(
                data,
                message=message,
                conversation_context=conversation_context,
            )
        else:
            if self._llm is None:
                return CAPABILITIES_MESSAGE
            prompt = build_general_prompt(
                intent,
                message=message,
                conversation_context=conversation_context,
            )

        try:
            text = self._llm.complete(prompt=prompt, temperature=self._temperature)
        except Exception as e:
            logger.warning("response composition failed intent=%s: %s", intent.value, e)
            return COMPOSITION_FAILED_MESSAGE

        if not isinstance(text, str) or not text.strip():
            logger.warning("response composition returned empty text intent=%s", intent.value)
            return COMPOSITION_FAILED_MESSAGE
        return text.strip()

from __future__ import annotations

import json
from typing import Any, Dict

from app.chat.contracts import DomainData, DomainKind, Intent

INTENT_DESCRIPTIONS: Dict[str, str] = {
    Intent.GREETING.value: "A message that opens a conversation or acknowledges the assistant.",
    Intent.ANALYZE_PORTFOLIO_RISK.value: (
        "A request to assess the risk of the user's portfolio: volatility, "
        "allocation, potential losses."
    ),
    Intent.ANALYZE_POSITIONS.value: (
        "A request to evaluate the user's liquidity / leveraged pool positions, "
        "whether any is close to liquidation, and how to manage them."
    ),
    Intent.GET_COIN_DATA.value: "A request for the coins and balances in the user's wallet.",
    Intent.GET_NFT_DATA.value: "A request for the NFTs held by the user's wallet.",
    Intent.GET_TRANSACTION_HISTORY.value: "A request for the wallet's recent transactions.",
    Intent.SUI_NETWORK_INFO.value: "A question about the Sui network itself: gas, validators, epochs, Move.",
    Intent.DEFI_OPERATIONS.value: "A question about how to swap, stake, lend or provide liquidity on Sui.",
    Intent.MARKET_ANALYSIS.value: "A question about market conditions or token price trends.",
}

INTENT_CLASSIFIER_SYSTEM = (
    "You are a routing classifier for a Sui wallet assistant. "
    "Pick exactly one category for the user's message. "
    "Return only the category name, nothing else (no punctuation, no markdown). "
    "If no category fits, return unknown."
)

CHAT_RESPONSE_SYSTEM = (
    "You are a helpful financial assistant for Sui wallet owners. "
    "Answer using only the data and context provided. "
    "Preserve numbers, symbols and addresses exactly. "
    "Do not invent balances, prices or transactions. "
    "Respond in markdown."
)

CONTEXT_SUMMARY_SYSTEM = (
    "You summarise chat conversations between a user and a Sui wallet assistant. "
    "Write 2-4 sentences covering what the user asked about, which assets or "
    "protocols came up, and any stated preferences. Plain text only."
)

_DOMAIN_INSTRUCTIONS: Dict[DomainKind, str] = {
    DomainKind.PORTFOLIO_RISK: (
        "Analyse the portfolio below. Based on the 24h price changes and the "
        "allocation by value, suggest how to rebalance to reduce risk while "
        "keeping upside. Mention which tokens have no price data."
    ),
    DomainKind.POSITIONS: (
        "Evaluate each position below. Point out positions that look close to "
        "liquidation or out of range and give concrete management advice."
    ),
    DomainKind.COINS: "Summarise the wallet's coin holdings below in a short table.",
    DomainKind.NFTS: "Describe the NFTs below, grouped by collection.",
    DomainKind.TRANSACTIONS: (
        "Summarise the recent transactions below: activity types, failures and "
        "total gas spent."
    ),
}

_TOPIC_INSTRUCTIONS: Dict[Intent, str] = {
    Intent.SUI_NETWORK_INFO: "Answer the question about the Sui network concisely.",
    Intent.DEFI_OPERATIONS: (
        "Explain the DeFi operation step by step. Never ask for private keys or "
        "seed phrases."
    ),
    Intent.MARKET_ANALYSIS: (
        "Give a balanced market view. State clearly that this is not financial advice."
    ),
    Intent.UNKNOWN: "Answer the user's message helpfully in 1-4 sentences.",
}


def build_intent_classifier_prompt(message: str) -> Dict[str, str]:
    user = {
        "message": message,
        "categories": INTENT_DESCRIPTIONS,
        "instruction": "Return only one category name.",
    }
    return {
        "system": INTENT_CLASSIFIER_SYSTEM,
        "user": json.dumps(user, ensure_ascii=True),
    }


def build_domain_prompt(
    data: DomainData,
    *,
    message: str,
    conversation_context: str,
) -> Dict[str, str]:
    payload: Dict[str, Any] = data.model_dump(mode="json", exclude={"error"})
    user = {
        "question": message,
        "instruction": _DOMAIN_INSTRUCTIONS[data.domain],
        "data": payload,
        "conversation_context": conversation_context,
    }
    return {
        "system": CHAT_RESPONSE_SYSTEM,
        "user": json.dumps(user, ensure_ascii=True),
    }


def build_general_prompt(
    intent: Intent,
    *,
    message: str,
    conversation_context: str,
) -> Dict[str, str]:
    user = {
        "question": message,
        "instruction": _TOPIC_INSTRUCTIONS.get(intent, _TOPIC_INSTRUCTIONS[Intent.UNKNOWN]),
        "conversation_context": conversation_context,
    }
    return {
        "system": CHAT_RESPONSE_SYSTEM,
        "user": json.dumps(user, ensure_ascii=True),
    }


def build_summary_prompt(transcript: str) -> Dict[str, str]:
    return {
        "system": CONTEXT_SUMMARY_SYSTEM,
        "user": transcript,
    }

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class Intent(str, Enum):
    GREETING = "greeting"
    ANALYZE_PORTFOLIO_RISK = "analyze_portfolio_risk"
    ANALYZE_POSITIONS = "analyze_positions"
    GET_COIN_DATA = "get_coin_data"
    GET_NFT_DATA = "get_nft_data"
    GET_TRANSACTION_HISTORY = "get_transaction_history"
    SUI_NETWORK_INFO = "sui_network_info"
    DEFI_OPERATIONS = "defi_operations"
    MARKET_ANALYSIS = "market_analysis"
    UNKNOWN = "unknown"


class DomainKind(str, Enum):
    COINS = "coins"
    NFTS = "nfts"
    TRANSACTIONS = "transactions"
    POSITIONS = "positions"
    PORTFOLIO_RISK = "portfolio_risk"


class DomainStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"


INTENT_DOMAINS: dict[Intent, DomainKind] = {
    Intent.ANALYZE_PORTFOLIO_RISK: DomainKind.PORTFOLIO_RISK,
    Intent.ANALYZE_POSITIONS: DomainKind.POSITIONS,
    Intent.GET_COIN_DATA: DomainKind.COINS,
    Intent.GET_NFT_DATA: DomainKind.NFTS,
    Intent.GET_TRANSACTION_HISTORY: DomainKind.TRANSACTIONS,
}


def domain_for_intent(intent: Intent) -> DomainKind | None:
    return INTENT_DOMAINS.get(intent)


class CoinHolding(BaseModel):
    coin_type: str
    symbol: str = "UNKNOWN"
    decimals: int = 9
    total_balance: str = "0"
    amount: float = 0.0
    price_usd: float | None = None
    price_change_h24: float = 0.0
    value_usd: float = 0.0
    priced: bool = False


class NFTAttribute(BaseModel):
    trait_type: str
    value: Any = None


class NFTAsset(BaseModel):
    object_id: str
    name: str
    description: str = ""
    image_url: str = ""
    collection: str = "Unknown Collection"
    collection_address: str = ""
    type: str = ""
    attributes: list[NFTAttribute] = Field(default_factory=list)


class TransactionKind(str, Enum):
    SWAP = "swap"
    STAKE = "stake"
    UNSTAKE = "unstake"
    CLAIM = "claim"
    TRANSFER = "transfer"


class Transaction(BaseModel):
    digest: str
    timestamp_ms: int = 0
    kind: TransactionKind = TransactionKind.TRANSFER
    gas_fee_sui: float = 0.0
    status: str = "success"


class Position(BaseModel):
    position_id: str
    type_name: str
    pool: str = ""
    coin_x: str | None = None
    coin_y: str | None = None
    price_change_x_h24: float = 0.0
    price_change_y_h24: float = 0.0
    fields: dict[str, Any] = Field(default_factory=dict)


class DomainData(BaseModel):
    """
    Normalised result of one domain query. Always usable by the composer;
    ``status`` separates "nothing there" from "could not fetch".
    """

    domain: DomainKind
    wallet_address: str
    status: DomainStatus = DomainStatus.OK
    coins: list[CoinHolding] = Field(default_factory=list)
    nfts: list[NFTAsset] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    positions: list[Position] = Field(default_factory=list)
    total_value_usd: float = 0.0
    degraded: list[str] = Field(default_factory=list)
    error: str | None = None

    @property
    def is_degraded(self) -> bool:
        return bool(self.degraded)


class ChatMessage(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    room_id: UUID
    role: str
    content: str
    intent: str | None = None
    user_id: UUID | None = None
    created_at: datetime


class PipelineResult(BaseModel):
    room_id: UUID
    intent: Intent
    user_message: ChatMessage
    assistant_message: ChatMessage
    # None when the count could not be read after the exchange was stored
    message_count: int | None = None
    refresh_scheduled: bool = False
    data_status: DomainStatus | None = None

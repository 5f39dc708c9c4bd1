from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from app.chat.contracts import (
    CoinHolding,
    NFTAsset,
    NFTAttribute,
    Position,
    Transaction,
    TransactionKind,
)

DEFAULT_DECIMALS = 9
MIST_PER_SUI = Decimal(10) ** 9

_PREFERRED_QUOTES = ("USDC", "USDT", "SUI")

_SYSTEM_TYPE_PREFIXES = (
    "0x2::coin::Coin",
    "0x3::staking_pool::",
    "0x2::dynamic_field::",
    "0x2::package::UpgradeCap",
)

_KNOWN_COLLECTIONS = (
    "sui_frens",
    "suins",
    "cosmocadia",
    "clutchy",
    "capy",
    "bluemove",
    "tocen",
    "aftermath",
    "kriya",
    "cetus",
    "stakedwal",
)

_NFT_RESERVED_FIELDS = {"id", "name", "description", "image_url", "url"}
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def _humanize(name: str) -> str:
    return _CAMEL_BOUNDARY.sub(" ", name.replace("_", " ")).strip()


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _to_float(value: Any, default: float | None = None) -> float | None:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


# ---------------------------
# Coins / prices
# ---------------------------

def pick_price_pair(pairs: Iterable[dict[str, Any]] | None) -> dict[str, Any] | None:
    """
    Prefer a pair quoted in USDC/USDT/SUI, otherwise the first pair.
    """
    candidates = [p for p in _as_list(pairs) if isinstance(p, dict)]
    if not candidates:
        return None
    for pair in candidates:
        quote = _as_dict(pair.get("quoteToken")).get("symbol")
        if isinstance(quote, str) and quote.upper() in _PREFERRED_QUOTES:
            return pair
    return candidates[0]


def price_from_pair(pair: dict[str, Any] | None) -> tuple[float | None, float | None]:
    """
    (price_usd, price_change_h24) from a DexScreener pair; None where absent.
    """
    if not isinstance(pair, dict):
        return None, None
    price_usd = _to_float(pair.get("priceUsd"))
    change = _to_float(_as_dict(pair.get("priceChange")).get("h24"))
    return price_usd, change


def scale_amount(raw_balance: Any, decimals: int) -> float:
    try:
        raw = Decimal(str(raw_balance))
    except (InvalidOperation, ValueError):
        return 0.0
    if decimals <= 0:
        return float(raw)
    return float(raw / (Decimal(10) ** decimals))


def build_coin_holding(
    balance: dict[str, Any],
    *,
    metadata: dict[str, Any] | None,
    pair: dict[str, Any] | None,
) -> CoinHolding:
    """
    Missing metadata falls back to UNKNOWN / 9 decimals; a missing price
    leaves the holding unpriced with a neutral 0.0 change and no value.
    """
    coin_type = str(balance.get("coinType") or "")
    total_balance = str(balance.get("totalBalance") or "0")

    symbol = "UNKNOWN"
    decimals = DEFAULT_DECIMALS
    if isinstance(metadata, dict):
        symbol = str(metadata.get("symbol") or symbol)
        meta_decimals = metadata.get("decimals")
        if isinstance(meta_decimals, int) and meta_decimals >= 0:
            decimals = meta_decimals

    amount = scale_amount(total_balance, decimals)
    price_usd, change = price_from_pair(pair)
    priced = price_usd is not None

    return CoinHolding(
        coin_type=coin_type,
        symbol=symbol,
        decimals=decimals,
        total_balance=total_balance,
        amount=amount,
        price_usd=price_usd,
        price_change_h24=change if change is not None else 0.0,
        value_usd=amount * price_usd if priced else 0.0,
        priced=priced,
    )


def total_value(holdings: Iterable[CoinHolding]) -> float:
    return sum(h.value_usd for h in holdings if h.priced)


# ---------------------------
# NFTs
# ---------------------------

def _object_data(obj: dict[str, Any]) -> dict[str, Any]:
    data = obj.get("data") if isinstance(obj, dict) else None
    return data if isinstance(data, dict) else {}


def _content_fields(data: dict[str, Any]) -> dict[str, Any]:
    content = data.get("content")
    if isinstance(content, dict) and content.get("dataType") == "moveObject":
        fields = content.get("fields")
        if isinstance(fields, dict):
            return fields
    return {}


def _display_data(data: dict[str, Any]) -> dict[str, Any]:
    display = data.get("display")
    inner = display.get("data") if isinstance(display, dict) else None
    return inner if isinstance(inner, dict) else {}


def is_known_collection(type_name: str) -> bool:
    lowered = type_name.lower()
    return any(name in lowered for name in _KNOWN_COLLECTIONS)


def is_nft_object(obj: dict[str, Any]) -> bool:
    data = _object_data(obj)
    type_name = data.get("type")
    if not isinstance(type_name, str) or not type_name:
        return False
    if type_name.startswith(_SYSTEM_TYPE_PREFIXES):
        return False
    return bool(_display_data(data)) or is_known_collection(type_name)


def collection_info(type_name: str) -> tuple[str, str]:
    """
    (collection name, package address) from ``0xpkg::module::Struct``.
    """
    parts = type_name.split("::")
    if len(parts) >= 2:
        return _humanize(parts[1]), parts[0]
    return "Unknown Collection", ""


def name_from_type(type_name: str) -> str:
    parts = type_name.split("<", 1)[0].split("::")
    if len(parts) >= 3:
        return _humanize(parts[2])
    return "NFT"


def nft_attributes(fields: dict[str, Any]) -> list[NFTAttribute]:
    raw = fields.get("attributes")
    if isinstance(raw, list):
        return [
            NFTAttribute(trait_type=str(item.get("trait_type", "")), value=item.get("value"))
            for item in raw
            if isinstance(item, dict)
        ]
    return [
        NFTAttribute(trait_type=_humanize(key), value=value)
        for key, value in fields.items()
        if key not in _NFT_RESERVED_FIELDS and not isinstance(value, (dict, list))
    ]


def build_nft(obj: dict[str, Any]) -> NFTAsset:
    data = _object_data(obj)
    type_name = str(data.get("type") or "")
    display = _display_data(data)
    fields = _content_fields(data)
    collection, collection_address = collection_info(type_name)

    return NFTAsset(
        object_id=str(data.get("objectId") or ""),
        name=str(display.get("name") or fields.get("name") or name_from_type(type_name) or "Unknown NFT"),
        description=str(display.get("description") or fields.get("description") or ""),
        image_url=str(
            display.get("image_url")
            or display.get("img_url")
            or fields.get("image_url")
            or fields.get("url")
            or ""
        ),
        collection=collection,
        collection_address=collection_address,
        type=type_name,
        attributes=nft_attributes(fields),
    )


# ---------------------------
# Transactions
# ---------------------------

def _move_call_names(tx: dict[str, Any]) -> list[str]:
    block = _as_dict(_as_dict(_as_dict(tx.get("transaction")).get("data")).get("transaction"))
    names: list[str] = []
    for command in _as_list(block.get("transactions")):
        call = command.get("MoveCall") if isinstance(command, dict) else None
        if isinstance(call, dict):
            names.append(f"{call.get('module', '')}::{call.get('function', '')}")
    return names


def transaction_kind(tx: dict[str, Any]) -> TransactionKind:
    event_types = [
        str(event.get("type", ""))
        for event in _as_list(tx.get("events"))
        if isinstance(event, dict)
    ]
    haystack = " ".join(_move_call_names(tx) + event_types).lower()
    if "unstake" in haystack or "withdraw_stake" in haystack:
        return TransactionKind.UNSTAKE
    if "stake" in haystack:
        return TransactionKind.STAKE
    if "claim" in haystack or "harvest" in haystack:
        return TransactionKind.CLAIM
    if "swap" in haystack:
        return TransactionKind.SWAP
    return TransactionKind.TRANSFER


def gas_fee_sui(tx: dict[str, Any]) -> float:
    gas = _as_dict(_as_dict(tx.get("effects")).get("gasUsed"))
    try:
        net = (
            int(gas.get("computationCost") or 0)
            + int(gas.get("storageCost") or 0)
            - int(gas.get("storageRebate") or 0)
        )
    except (TypeError, ValueError):
        return 0.0
    return float(Decimal(max(net, 0)) / MIST_PER_SUI)


def build_transaction(tx: dict[str, Any]) -> Transaction:
    status = _as_dict(_as_dict(tx.get("effects")).get("status")).get("status")
    try:
        timestamp_ms = int(tx.get("timestampMs") or 0)
    except (TypeError, ValueError):
        timestamp_ms = 0
    return Transaction(
        digest=str(tx.get("digest") or ""),
        timestamp_ms=timestamp_ms,
        kind=transaction_kind(tx),
        gas_fee_sui=gas_fee_sui(tx),
        status="success" if status == "success" else "failed",
    )


# ---------------------------
# Positions
# ---------------------------

def type_arguments(type_name: str) -> list[str]:
    """
    Top-level generic arguments of a Move struct type.
    """
    start = type_name.find("<")
    end = type_name.rfind(">")
    if start == -1 or end <= start:
        return []

    args: list[str] = []
    depth = 0
    current = ""
    for ch in type_name[start + 1 : end]:
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
        if ch == "," and depth == 0:
            args.append(current.strip())
            current = ""
            continue
        current += ch
    if current.strip():
        args.append(current.strip())
    return args


def build_position(obj: dict[str, Any]) -> Position:
    data = _object_data(obj)
    type_name = str(data.get("type") or "")
    fields = _content_fields(data)
    coins = type_arguments(type_name)

    scalar_fields = {
        key: value
        for key, value in fields.items()
        if key != "id" and isinstance(value, (str, int, float, bool))
    }
    pool = fields.get("pool") or fields.get("pool_id") or type_name.split("<", 1)[0]

    return Position(
        position_id=str(data.get("objectId") or ""),
        type_name=type_name,
        pool=str(pool),
        coin_x=coins[0] if len(coins) > 0 else None,
        coin_y=coins[1] if len(coins) > 1 else None,
        fields=scalar_fields,
    )

from __future__ import annotations

from datetime import datetime, timezone

from app.chat.contracts import DomainData, DomainKind

_EMPTY_MESSAGES: dict[DomainKind, str] = {
    DomainKind.COINS: "I couldn't find any coins in this wallet.",
    DomainKind.PORTFOLIO_RISK: "This wallet holds no coins yet, so there is no portfolio risk to analyse.",
    DomainKind.NFTS: "No NFTs found in this wallet.",
    DomainKind.TRANSACTIONS: "No transactions found for this wallet.",
    DomainKind.POSITIONS: "No open positions found for this wallet.",
}

_FAILED_MESSAGES: dict[DomainKind, str] = {
    DomainKind.COINS: "I was unable to fetch coin data for this wallet right now. Please try again shortly.",
    DomainKind.PORTFOLIO_RISK: "I was unable to fetch your portfolio right now. Please try again shortly.",
    DomainKind.NFTS: "I was unable to fetch NFT data for this wallet right now. Please try again shortly.",
    DomainKind.TRANSACTIONS: "I was unable to fetch the transaction history right now. Please try again shortly.",
    DomainKind.POSITIONS: "I was unable to fetch position data for this wallet right now. Please try again shortly.",
}

INVALID_WALLET_MESSAGE = (
    "I need a valid Sui wallet address (0x followed by up to 64 hex characters) to look that up."
)
POSITIONS_NOT_CONFIGURED_MESSAGE = "Position analysis is not enabled on this assistant yet."
COMPOSITION_FAILED_MESSAGE = (
    "Sorry, I ran into a problem putting together an answer. Please try again in a moment."
)
CAPABILITIES_MESSAGE = (
    "I can show your Sui coins, NFTs and recent transactions, analyse your "
    "portfolio risk and open positions, and answer questions about Sui and DeFi. "
    "What would you like to do?"
)


def empty_message(domain: DomainKind) -> str:
    return _EMPTY_MESSAGES[domain]


def failed_message(domain: DomainKind) -> str:
    return _FAILED_MESSAGES[domain]


def _short_address(value: str | None) -> str:
    if not value or not isinstance(value, str):
        return "unknown"
    if len(value) <= 12:
        return value
    return f"{value[:6]}...{value[-4:]}"


def _format_amount(amount: float) -> str:
    if amount == 0:
        return "0"
    if abs(amount) >= 1:
        return f"{amount:,.4f}".rstrip("0").rstrip(".")
    return f"{amount:.8f}".rstrip("0").rstrip(".")


def _format_usd(value: float | None) -> str:
    if value is None:
        return "n/a"
    return f"${value:,.2f}"


def format_holdings(data: DomainData) -> str:
    lines = [
        "Wallet coins" if data.domain == DomainKind.COINS else "Portfolio overview",
        f"Wallet: {_short_address(data.wallet_address)}",
    ]
    for coin in data.coins[:15]:
        change = f"{coin.price_change_h24:+.2f}%" if coin.priced else "n/a"
        lines.append(
            f"- {coin.symbol}: {_format_amount(coin.amount)} "
            f"(price {_format_usd(coin.price_usd)}, 24h {change}, value {_format_usd(coin.value_usd if coin.priced else None)})"
        )
    lines.append(f"Total priced value: {_format_usd(data.total_value_usd)}")
    unpriced = [c.symbol for c in data.coins if not c.priced]
    if unpriced:
        lines.append(f"No price data: {', '.join(unpriced)}")
    return "\n".join(lines)


def format_nfts(data: DomainData) -> str:
    lines = [f"NFTs ({len(data.nfts)})"]
    for nft in data.nfts[:12]:
        lines.append(f"- {nft.name} [{nft.collection}] {_short_address(nft.object_id)}")
    return "\n".join(lines)


def format_transactions(data: DomainData) -> str:
    lines = [f"Recent transactions ({len(data.transactions)})"]
    for tx in data.transactions[:10]:
        when = (
            datetime.fromtimestamp(tx.timestamp_ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")
            if tx.timestamp_ms
            else "unknown time"
        )
        lines.append(
            f"- {when} {tx.kind.value} {tx.status} gas {tx.gas_fee_sui:.6f} SUI ({_short_address(tx.digest)})"
        )
    total_gas = sum(tx.gas_fee_sui for tx in data.transactions)
    lines.append(f"Total gas: {total_gas:.6f} SUI")
    return "\n".join(lines)


def format_positions(data: DomainData) -> str:
    lines = [f"Open positions ({len(data.positions)})"]
    for position in data.positions[:10]:
        lines.append(
            f"- {_short_address(position.position_id)} {position.pool}: "
            f"24h X {position.price_change_x_h24:+.2f}%, Y {position.price_change_y_h24:+.2f}%"
        )
    return "\n".join(lines)


def format_domain_data(data: DomainData) -> str:
    if data.domain in {DomainKind.COINS, DomainKind.PORTFOLIO_RISK}:
        return format_holdings(data)
    if data.domain == DomainKind.NFTS:
        return format_nfts(data)
    if data.domain == DomainKind.TRANSACTIONS:
        return format_transactions(data)
    return format_positions(data)

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, Hashable, Protocol

from app.chat import normalize
from app.chat.contracts import DomainData, DomainKind, DomainStatus
from chain.chains import is_sui_address, normalize_sui_address

logger = logging.getLogger(__name__)

INVALID_WALLET = "invalid_wallet"
POSITIONS_NOT_CONFIGURED = "positions_not_configured"


class ChainSource(Protocol):
    def get_all_balances(self, owner: str) -> list[dict[str, Any]]: ...

    def get_coin_metadata(self, coin_type: str) -> dict[str, Any] | None: ...

    def get_owned_objects(
        self, owner: str, *, struct_types: list[str] | None = None, limit: int = 50
    ) -> list[dict[str, Any]]: ...

    def query_transaction_blocks(self, sender: str, *, limit: int = 20) -> list[dict[str, Any]]: ...


class MarketSource(Protocol):
    def token_pairs(self, token_id: str) -> list[dict[str, Any]]: ...


class DomainQueryAggregator:
    """
    Fetches and normalises wallet data for one domain.

    Independent sub-fetches (coin metadata, per-token prices) fan out on a
    bounded pool and are joined with a timeout. A failed or late sub-fetch
    only degrades its own data point; only a failed primary fetch marks the
    whole result as FAILED. ``fetch`` never raises.
    """

    def __init__(
        self,
        *,
        chain: ChainSource,
        market: MarketSource,
        max_workers: int = 8,
        timeout_s: float = 20.0,
        transactions_limit: int = 20,
        position_types: list[str] | None = None,
    ) -> None:
        self._chain = chain
        self._market = market
        self._timeout_s = timeout_s
        self._transactions_limit = transactions_limit
        self._position_types = list(position_types or [])
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers),
            thread_name_prefix="domain-fetch",
        )

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def fetch(self, domain: DomainKind, wallet_address: str | None) -> DomainData:
        if not is_sui_address(wallet_address):
            return DomainData(
                domain=domain,
                wallet_address=wallet_address or "",
                status=DomainStatus.FAILED,
                error=INVALID_WALLET,
            )
        wallet = normalize_sui_address(wallet_address)

        handlers: dict[DomainKind, Callable[[str], DomainData]] = {
            DomainKind.COINS: lambda w: self._holdings(DomainKind.COINS, w),
            DomainKind.PORTFOLIO_RISK: lambda w: self._holdings(DomainKind.PORTFOLIO_RISK, w),
            DomainKind.NFTS: self._nfts,
            DomainKind.TRANSACTIONS: self._transactions,
            DomainKind.POSITIONS: self._positions,
        }
        try:
            data = handlers[domain](wallet)
        except Exception as e:
            logger.warning("domain fetch failed domain=%s wallet=%s: %s", domain.value, wallet, e)
            return DomainData(
                domain=domain,
                wallet_address=wallet,
                status=DomainStatus.FAILED,
                error=str(e),
            )

        if data.is_degraded:
            logger.info(
                "domain fetch degraded domain=%s notes=%s",
                domain.value,
                len(data.degraded),
            )
        return data

    # ---------------------------
    # fan-out helper
    # ---------------------------

    def _gather(self, calls: dict[Hashable, Callable[[], Any]]) -> dict[Hashable, Any]:
        """
        Run calls concurrently; each value is the call's result or the
        exception it raised (TimeoutError when it missed the join deadline).
        """
        if not calls:
            return {}
        futures = {self._executor.submit(fn): key for key, fn in calls.items()}
        done, pending = wait(futures, timeout=self._timeout_s)

        results: dict[Hashable, Any] = {}
        for future in done:
            key = futures[future]
            try:
                results[key] = future.result()
            except Exception as e:
                results[key] = e
        for future in pending:
            future.cancel()
            results[futures[future]] = TimeoutError(f"timed out after {self._timeout_s}s")
        return results

    def _prices(self, token_ids: list[str], degraded: list[str]) -> dict[str, dict[str, Any] | None]:
        results = self._gather(
            {token: (lambda t=token: self._market.token_pairs(t)) for token in token_ids}
        )
        pairs: dict[str, dict[str, Any] | None] = {}
        for token in token_ids:
            value = results.get(token)
            if isinstance(value, Exception):
                logger.warning("price fetch failed token=%s: %s", token, value)
                degraded.append(f"price unavailable for {token}")
                pairs[token] = None
            else:
                pairs[token] = normalize.pick_price_pair(value)
        return pairs

    # ---------------------------
    # domains
    # ---------------------------

    def _holdings(self, domain: DomainKind, wallet: str) -> DomainData:
        balances = [b for b in self._chain.get_all_balances(wallet) if isinstance(b, dict)]
        if not balances:
            return DomainData(domain=domain, wallet_address=wallet, status=DomainStatus.EMPTY)

        coin_types = [str(b.get("coinType") or "") for b in balances]
        calls: dict[Hashable, Callable[[], Any]] = {}
        for coin_type in coin_types:
            calls[("meta", coin_type)] = lambda c=coin_type: self._chain.get_coin_metadata(c)
            calls[("price", coin_type)] = lambda c=coin_type: self._market.token_pairs(c)
        results = self._gather(calls)

        degraded: list[str] = []
        holdings = []
        for balance, coin_type in zip(balances, coin_types):
            metadata = results.get(("meta", coin_type))
            if isinstance(metadata, Exception):
                logger.warning("coin metadata failed coin=%s: %s", coin_type, metadata)
                degraded.append(f"metadata unavailable for {coin_type}")
                metadata = None

            pairs = results.get(("price", coin_type))
            if isinstance(pairs, Exception):
                logger.warning("price fetch failed coin=%s: %s", coin_type, pairs)
                degraded.append(f"price unavailable for {coin_type}")
                pairs = None

            try:
                holding = normalize.build_coin_holding(
                    balance,
                    metadata=metadata,
                    pair=normalize.pick_price_pair(pairs),
                )
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning("coin normalization failed coin=%s: %s", coin_type, e)
                degraded.append(f"could not read market data for {coin_type}")
                holding = normalize.build_coin_holding(balance, metadata=None, pair=None)
            holdings.append(holding)

        return DomainData(
            domain=domain,
            wallet_address=wallet,
            coins=holdings,
            total_value_usd=normalize.total_value(holdings),
            degraded=degraded,
        )

    def _nfts(self, wallet: str) -> DomainData:
        objects = self._chain.get_owned_objects(wallet)
        degraded: list[str] = []
        nfts = []
        for obj in objects:
            if not normalize.is_nft_object(obj):
                continue
            try:
                nfts.append(normalize.build_nft(obj))
            except (TypeError, ValueError) as e:
                object_id = (obj.get("data") or {}).get("objectId")
                logger.warning("nft parse failed object=%s: %s", object_id, e)
                degraded.append(f"could not parse object {object_id}")

        status = DomainStatus.OK if nfts else DomainStatus.EMPTY
        return DomainData(
            domain=DomainKind.NFTS,
            wallet_address=wallet,
            status=status,
            nfts=nfts,
            degraded=degraded,
        )

    def _transactions(self, wallet: str) -> DomainData:
        raw = self._chain.query_transaction_blocks(wallet, limit=self._transactions_limit)
        transactions = [normalize.build_transaction(tx) for tx in raw if isinstance(tx, dict)]
        status = DomainStatus.OK if transactions else DomainStatus.EMPTY
        return DomainData(
            domain=DomainKind.TRANSACTIONS,
            wallet_address=wallet,
            status=status,
            transactions=transactions,
        )

    def _positions(self, wallet: str) -> DomainData:
        if not self._position_types:
            return DomainData(
                domain=DomainKind.POSITIONS,
                wallet_address=wallet,
                status=DomainStatus.FAILED,
                error=POSITIONS_NOT_CONFIGURED,
            )

        objects = self._chain.get_owned_objects(wallet, struct_types=self._position_types)
        positions = [normalize.build_position(obj) for obj in objects if isinstance(obj, dict)]
        if not positions:
            return DomainData(
                domain=DomainKind.POSITIONS,
                wallet_address=wallet,
                status=DomainStatus.EMPTY,
            )

        tokens = sorted({c for p in positions for c in (p.coin_x, p.coin_y) if c})
        degraded: list[str] = []
        pairs = self._prices(tokens, degraded)
        for position in positions:
            _, change_x = normalize.price_from_pair(pairs.get(position.coin_x or ""))
            _, change_y = normalize.price_from_pair(pairs.get(position.coin_y or ""))
            position.price_change_x_h24 = change_x if change_x is not None else 0.0
            position.price_change_y_h24 = change_y if change_y is not None else 0.0

        return DomainData(
            domain=DomainKind.POSITIONS,
            wallet_address=wallet,
            positions=positions,
            degraded=degraded,
        )

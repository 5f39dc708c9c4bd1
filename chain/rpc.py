from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from web3 import Web3

from app.config import get_settings
from chain.chains import get_rpc_url

logger = logging.getLogger(__name__)


class SuiRPCError(RuntimeError):
    pass


@lru_cache
def _get_provider(rpc_url: str, timeout_s: int) -> Web3.HTTPProvider:
    """
    Lazily create and cache an HTTP JSON-RPC provider per fullnode URL.

    Only the provider's transport is used: ``make_request`` posts a plain
    JSON-RPC 2.0 envelope and does no EVM-specific encoding, so it carries
    the ``suix_*`` methods unchanged. No Web3 instance is built on top.
    """
    return Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout_s})


class SuiRPC:
    """
    Raw Sui fullnode JSON-RPC calls. Results are returned as the node sends
    them; shaping happens in the aggregator.
    """

    def __init__(self, *, rpc_url: str | None = None, timeout_s: int | None = None) -> None:
        settings = get_settings()
        self.rpc_url = rpc_url or get_rpc_url()
        self.timeout_s = timeout_s or settings.sui_rpc_timeout_s

    def _request(self, method: str, params: list[Any]) -> Any:
        provider = _get_provider(self.rpc_url, self.timeout_s)
        try:
            response = provider.make_request(method, params)
        except Exception as e:
            raise SuiRPCError(f"{method} failed: {e}") from e

        error = response.get("error") if isinstance(response, dict) else None
        if error:
            message = error.get("message") if isinstance(error, dict) else error
            raise SuiRPCError(f"{method} returned error: {message}")
        if not isinstance(response, dict) or "result" not in response:
            raise SuiRPCError(f"{method} returned malformed response")
        return response["result"]

    # ---------------------------
    # Coins
    # ---------------------------

    def get_all_balances(self, owner: str) -> list[dict[str, Any]]:
        result = self._request("suix_getAllBalances", [owner])
        return result if isinstance(result, list) else []

    def get_coin_metadata(self, coin_type: str) -> dict[str, Any] | None:
        result = self._request("suix_getCoinMetadata", [coin_type])
        return result if isinstance(result, dict) else None

    # ---------------------------
    # Objects
    # ---------------------------

    def get_owned_objects(
        self,
        owner: str,
        *,
        struct_types: list[str] | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        query: dict[str, Any] = {
            "options": {
                "showType": True,
                "showContent": True,
                "showDisplay": True,
                "showOwner": True,
            }
        }
        if struct_types:
            query["filter"] = {"MatchAny": [{"StructType": t} for t in struct_types]}

        result = self._request("suix_getOwnedObjects", [owner, query, None, limit])
        data = result.get("data") if isinstance(result, dict) else None
        return data if isinstance(data, list) else []

    # ---------------------------
    # Transactions
    # ---------------------------

    def query_transaction_blocks(self, sender: str, *, limit: int = 20) -> list[dict[str, Any]]:
        query = {
            "filter": {"FromAddress": sender},
            "options": {
                "showEffects": True,
                "showInput": True,
                "showEvents": True,
            },
        }
        result = self._request("suix_queryTransactionBlocks", [query, None, limit, True])
        data = result.get("data") if isinstance(result, dict) else None
        return data if isinstance(data, list) else []

from __future__ import annotations

import logging
from typing import Any

import requests

from app.config import get_settings

logger = logging.getLogger(__name__)


class MarketDataError(RuntimeError):
    pass


class DexScreenerClient:
    """
    Price data by token identifier (Sui coin type) from DexScreener.
    """

    def __init__(self, *, base_url: str | None = None, timeout_s: int | None = None) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.dexscreener_base_url).rstrip("/")
        self.timeout_s = timeout_s or settings.market_timeout_s

    def token_pairs(self, token_id: str) -> list[dict[str, Any]]:
        url = f"{self.base_url}/latest/dex/tokens/{token_id}"
        try:
            resp = requests.get(url, timeout=self.timeout_s)
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as e:
            raise MarketDataError(f"dexscreener request failed for {token_id}: {e}") from e
        except ValueError as e:
            raise MarketDataError(f"dexscreener returned invalid JSON for {token_id}") from e

        pairs = payload.get("pairs") if isinstance(payload, dict) else None
        return pairs if isinstance(pairs, list) else []

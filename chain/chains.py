from __future__ import annotations

import re
from typing import Dict

from app.config import get_settings


class UnsupportedNetworkError(ValueError):
    pass


class InvalidAddressError(ValueError):
    pass


_FULLNODE_URLS: Dict[str, str] = {
    "mainnet": "https://fullnode.mainnet.sui.io:443",
    "testnet": "https://fullnode.testnet.sui.io:443",
    "devnet": "https://fullnode.devnet.sui.io:443",
    "localnet": "http://127.0.0.1:9000",
}

_SUI_ADDRESS = re.compile(r"^0x[0-9a-fA-F]{1,64}$")


def get_rpc_url(network: str | None = None) -> str:
    """
    Return the fullnode RPC URL.

    An explicit SUI_RPC_URL wins; otherwise the public fullnode for the
    configured (or given) network is used.
    """
    settings = get_settings()
    if settings.sui_rpc_url and network is None:
        return settings.sui_rpc_url.rstrip("/")

    name = (network or settings.sui_network or "").strip().lower()
    rpc_url = _FULLNODE_URLS.get(name)
    if not rpc_url:
        raise UnsupportedNetworkError(
            f"Unsupported Sui network: {name or '<empty>'} "
            f"(supported: {', '.join(list_supported_networks())})"
        )
    return rpc_url


def list_supported_networks() -> list[str]:
    return sorted(_FULLNODE_URLS.keys())


def is_sui_address(value: str | None) -> bool:
    return isinstance(value, str) and bool(_SUI_ADDRESS.match(value.strip()))


def normalize_sui_address(value: str) -> str:
    """
    Lower-case, zero-padded 32-byte form (0x + 64 hex chars).
    """
    if not is_sui_address(value):
        raise InvalidAddressError(f"Invalid Sui address: {value!r}")
    body = value.strip()[2:].lower()
    return "0x" + body.rjust(64, "0")

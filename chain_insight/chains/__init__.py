"""
Network identities and per-network connection handles.
"""

from chain_insight.chains.connections import ConnectionCache, ConnectionHandle, DataClient
from chain_insight.chains.registry import (
    DEFAULT_NETWORKS,
    HYPERLIQUID_MAINNET,
    HYPERLIQUID_TESTNET,
    ChainRegistry,
    NetworkIdentity,
    format_address,
)

__all__ = [
    "ChainRegistry",
    "ConnectionCache",
    "ConnectionHandle",
    "DataClient",
    "DEFAULT_NETWORKS",
    "HYPERLIQUID_MAINNET",
    "HYPERLIQUID_TESTNET",
    "NetworkIdentity",
    "format_address",
]

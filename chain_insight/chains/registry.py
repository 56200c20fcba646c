"""
Static identities of the supported Hyperliquid networks.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from chain_insight.utils.error_classification import PipelineError, chain_error

HYPERLIQUID_EXPLORER = "https://app.hyperliquid.xyz/explorer"

EXPLORER_PATHS = {
    "tx": "tx",
    "address": "address",
    "block": "block",
}


@dataclass(frozen=True)
class NetworkIdentity:
    """Immutable description of one network."""
    chain_id: int
    name: str
    short_name: str
    currency_symbol: str
    currency_name: str
    decimals: int
    is_testnet: bool
    explorer_url: str = HYPERLIQUID_EXPLORER

    @property
    def display_name(self) -> str:
        return self.name


HYPERLIQUID_MAINNET = NetworkIdentity(
    chain_id=998,
    name="Hyperliquid Mainnet",
    short_name="hyperliquid-mainnet",
    currency_symbol="USDC",
    currency_name="USDC",
    decimals=6,
    is_testnet=False,
)

HYPERLIQUID_TESTNET = NetworkIdentity(
    chain_id=99998,
    name="Hyperliquid Testnet",
    short_name="hyperliquid-testnet",
    currency_symbol="USDC",
    currency_name="USDC",
    decimals=6,
    is_testnet=True,
)

DEFAULT_NETWORKS = (HYPERLIQUID_MAINNET, HYPERLIQUID_TESTNET)


def format_address(address: Optional[str]) -> str:
    """Shorten an address to ``0x1234...abcd`` form."""
    if not address:
        return ""
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


class ChainRegistry:
    """
    Lookup of network identities by chain id.

    The set of networks is fixed when the registry is constructed.
    """

    def __init__(self, networks: Iterable[NetworkIdentity] = DEFAULT_NETWORKS):
        self._networks: Dict[int, NetworkIdentity] = {network.chain_id: network for network in networks}

    def lookup(self, network_id: int) -> Optional[NetworkIdentity]:
        try:
            return self._networks.get(int(network_id))
        except (TypeError, ValueError):
            return None

    def require(self, network_id: int) -> NetworkIdentity:
        """
        Look up a network, failing for unknown ids.

        Raises:
            PipelineError: CHAIN_ERROR when the id is not registered
        """
        network = self.lookup(network_id)
        if network is None:
            raise PipelineError(chain_error(
                f"Unsupported Hyperliquid chain {network_id}. "
                f"Supported chains: {self._supported_summary()}",
                network_id,
            ))
        return network

    def _supported_summary(self) -> str:
        return ", ".join(
            f"{network.chain_id} ({'testnet' if network.is_testnet else 'mainnet'})"
            for network in self._networks.values()
        )

    def all_networks(self) -> List[NetworkIdentity]:
        return list(self._networks.values())

    def supported_ids(self) -> List[int]:
        return list(self._networks)

    def is_testnet(self, network_id: int) -> bool:
        network = self.lookup(network_id)
        return bool(network and network.is_testnet)

    def explorer_url(self, network_id: int, kind: str, value: str) -> str:
        """
        Build an explorer link.

        Args:
            network_id: Chain id
            kind: One of ``tx``, ``address`` or ``block``
            value: Hash, address or block number

        Returns:
            URL string, empty when the network is unknown
        """
        network = self.lookup(network_id)
        if network is None:
            return ""
        if kind not in EXPLORER_PATHS:
            raise ValueError(f"Unknown explorer link kind: {kind}")
        return f"{network.explorer_url.rstrip('/')}/{EXPLORER_PATHS[kind]}/{value}"

"""
Typed records produced by the data access layer.

Records are constructed once per query and never mutated. Chain quantities
(values, gas figures, prices) stay decimal strings so they keep full width;
only derived percentages are floats.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

DEFAULT_BLOCK_GAS_LIMIT = "30000000"
DEFAULT_TX_GAS_LIMIT = "21000"
EMPTY_INPUT = "0x"


@dataclass(frozen=True)
class LogEntry:
    """One receipt log of a transaction."""
    log_index: int
    address: str
    topics: Tuple[str, ...] = ()
    data: str = EMPTY_INPUT

    @property
    def topic0(self) -> Optional[str]:
        return self.topics[0] if self.topics else None


@dataclass(frozen=True)
class BlockContext:
    """The block a transaction was included in, or defaults when unavailable."""
    gas_used: str = "0"
    gas_limit: str = DEFAULT_BLOCK_GAS_LIMIT
    base_fee_per_gas: str = "0"
    miner: str = ""
    size: int = 0
    transaction_count: int = 0
    utilization: float = 0.0
    available: bool = False


@dataclass(frozen=True)
class AddressActivity:
    """Indexed transaction counts of the sender and receiver, or defaults when unavailable."""
    from_transaction_count: int = 0
    to_transaction_count: int = 0
    available: bool = False


@dataclass(frozen=True)
class TransactionNetworkMetrics:
    """Network figures attached to a transaction record."""
    average_gas_price: str = "0"
    recent_transaction_count: int = 0
    gas_price_compare: str = "Normal"
    network_congestion: str = "Normal"


@dataclass(frozen=True)
class TransactionRecord:
    """A transaction with its receipt, block context and derived metrics."""
    hash: str
    block_number: int
    block_timestamp: int
    transaction_index: int
    from_address: str
    to_address: Optional[str]
    value: str
    gas_limit: str
    gas_price: str
    gas_used: str
    effective_gas_price: str
    status: bool
    input: str
    nonce: int
    transaction_type: int
    block_hash: str
    gas_efficiency: float
    transaction_cost: str
    is_contract_interaction: bool
    block_context: BlockContext = field(default_factory=BlockContext)
    address_activity: AddressActivity = field(default_factory=AddressActivity)
    network_metrics: TransactionNetworkMetrics = field(default_factory=TransactionNetworkMetrics)
    logs: Tuple[LogEntry, ...] = ()

    @property
    def function_selector(self) -> Optional[str]:
        if self.input and len(self.input) >= 10:
            return self.input[:10].lower()
        return None


@dataclass(frozen=True)
class SampleTransaction:
    """A sibling transaction sampled from a block."""
    hash: str
    from_address: str
    to_address: str
    value: str
    gas_used: str
    gas_price: str
    status: bool
    is_contract_call: bool


@dataclass(frozen=True)
class BlockMetrics:
    """Aggregates over a block's sampled transactions."""
    total_transactions: int = 0
    successful_transactions: int = 0
    failed_transactions: int = 0
    average_gas_price: str = "0"
    total_value: str = "0"
    unique_addresses: int = 0
    contract_interactions: int = 0
    network_utilization: float = 0.0


@dataclass(frozen=True)
class AddressFlow:
    """Sent or received totals of one address within a sample."""
    address: str
    transaction_count: int
    total_value: str


@dataclass(frozen=True)
class GasDistribution:
    """Sampled transactions bucketed by gas price relative to the sample average."""
    low: int = 0
    medium: int = 0
    high: int = 0


@dataclass(frozen=True)
class BlockPatterns:
    """Activity patterns found in a block's sample."""
    high_value_transfers: int = 0
    failure_rate: float = 0.0
    top_senders: Tuple[AddressFlow, ...] = ()
    top_receivers: Tuple[AddressFlow, ...] = ()
    gas_distribution: GasDistribution = field(default_factory=GasDistribution)


@dataclass(frozen=True)
class BlockRecord:
    """A block with a bounded sample of its transactions."""
    number: int
    hash: str
    parent_hash: str
    timestamp: int
    gas_used: str
    gas_limit: str
    base_fee_per_gas: str
    miner: str
    size: int
    transaction_count: int
    metrics: BlockMetrics = field(default_factory=BlockMetrics)
    sample_transactions: Tuple[SampleTransaction, ...] = ()
    patterns: BlockPatterns = field(default_factory=BlockPatterns)


@dataclass(frozen=True)
class RecentBlock:
    """Summary row of a recent block, used as network context."""
    number: int
    hash: str
    timestamp: int
    gas_used: str
    gas_limit: str
    transaction_count: int


@dataclass(frozen=True)
class AddressTransaction:
    """Summary row of a transaction sent or received by an address."""
    hash: str
    block_number: int
    from_address: str
    to_address: Optional[str]
    value: str
    status: bool
    block_timestamp: int


@dataclass(frozen=True)
class AddressStats:
    """Indexed totals of every transaction an address sent or received."""
    address: str
    transaction_count: int = 0
    sent_count: int = 0
    received_count: int = 0
    failed_count: int = 0
    contract_calls: int = 0
    counterparties: int = 0
    first_seen: Optional[int] = None
    last_seen: Optional[int] = None

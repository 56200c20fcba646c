"""
Data access layer: bounded, timeout-guarded queries returning typed records.
"""

from chain_insight.data.blocks import BlockDataService, parse_block_identifier
from chain_insight.data.models import (
    AddressActivity,
    AddressFlow,
    AddressTransaction,
    BlockContext,
    BlockMetrics,
    BlockPatterns,
    BlockRecord,
    GasDistribution,
    LogEntry,
    RecentBlock,
    SampleTransaction,
    TransactionNetworkMetrics,
    TransactionRecord,
)
from chain_insight.data.transactions import TransactionDataService

__all__ = [
    "AddressActivity",
    "AddressFlow",
    "AddressTransaction",
    "BlockContext",
    "BlockDataService",
    "BlockMetrics",
    "BlockPatterns",
    "BlockRecord",
    "GasDistribution",
    "LogEntry",
    "RecentBlock",
    "SampleTransaction",
    "TransactionDataService",
    "TransactionNetworkMetrics",
    "TransactionRecord",
    "parse_block_identifier",
]

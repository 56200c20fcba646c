"""
Block lookups against the indexed block table.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple, Union

from chain_insight.data.base import BaseDataService, int_value, text_value
from chain_insight.data.models import (
    DEFAULT_BLOCK_GAS_LIMIT,
    EMPTY_INPUT,
    AddressFlow,
    BlockMetrics,
    BlockPatterns,
    BlockRecord,
    GasDistribution,
    RecentBlock,
    SampleTransaction,
)
from chain_insight.utils.error_classification import PipelineError, invalid_request_error
from chain_insight.utils.values import ratio_percent, to_int

logger = logging.getLogger(__name__)

HIGH_VALUE_TRANSFER_RAW = 1000
TOP_ADDRESS_COUNT = 5

BlockIdentifier = Union[int, str]


def parse_block_identifier(identifier: BlockIdentifier) -> Union[int, str]:
    """
    Normalize a block identifier to a non-negative int or ``"latest"``.

    Raises:
        PipelineError: VALIDATION_ERROR for anything else
    """
    if isinstance(identifier, str):
        cleaned = identifier.strip().lower()
        if cleaned == "latest":
            return "latest"
        if cleaned.isdigit():
            return int(cleaned)
    elif isinstance(identifier, int) and not isinstance(identifier, bool) and identifier >= 0:
        return identifier

    raise PipelineError(invalid_request_error(
        f"block identifier must be a non-negative number or 'latest', got {identifier!r}",
        {"block_number": str(identifier)},
    ))


def summarize_sample(samples: Sequence[SampleTransaction], transaction_count: int,
                     gas_used: str, gas_limit: str) -> Tuple[BlockMetrics, BlockPatterns]:
    """
    Derive block metrics and activity patterns from sampled transactions.

    Args:
        samples: Sampled sibling transactions
        transaction_count: Block transaction count from the block row
        gas_used: Block gas used
        gas_limit: Block gas limit

    Returns:
        Tuple of (metrics, patterns)
    """
    successful = sum(1 for tx in samples if tx.status)
    failed = len(samples) - successful

    addresses = {tx.from_address for tx in samples if tx.from_address}
    addresses.update(tx.to_address for tx in samples if tx.to_address)

    gas_prices = [to_int(tx.gas_price) for tx in samples]
    average_gas_price = sum(gas_prices) // len(gas_prices) if gas_prices else 0
    total_value = sum(to_int(tx.value) for tx in samples)

    metrics = BlockMetrics(
        total_transactions=transaction_count,
        successful_transactions=successful,
        failed_transactions=failed,
        average_gas_price=str(average_gas_price),
        total_value=str(total_value),
        unique_addresses=len(addresses),
        contract_interactions=sum(1 for tx in samples if tx.is_contract_call),
        network_utilization=ratio_percent(gas_used, gas_limit),
    )

    patterns = BlockPatterns(
        high_value_transfers=sum(1 for tx in samples if to_int(tx.value) > HIGH_VALUE_TRANSFER_RAW),
        failure_rate=(failed / len(samples)) * 100 if samples else 0.0,
        top_senders=_top_flows((tx.from_address, tx.value) for tx in samples if tx.from_address),
        top_receivers=_top_flows((tx.to_address, tx.value) for tx in samples if tx.to_address),
        gas_distribution=_gas_distribution(gas_prices, average_gas_price),
    )
    return metrics, patterns


def _top_flows(pairs) -> Tuple[AddressFlow, ...]:
    counts: Dict[str, int] = defaultdict(int)
    values: Dict[str, int] = defaultdict(int)
    for address, value in pairs:
        counts[address] += 1
        values[address] += to_int(value)

    ranked = sorted(counts, key=lambda address: (-counts[address], -values[address], address))
    return tuple(
        AddressFlow(address=address, transaction_count=counts[address], total_value=str(values[address]))
        for address in ranked[:TOP_ADDRESS_COUNT]
    )


def _gas_distribution(gas_prices: List[int], average: int) -> GasDistribution:
    """Low below 80% of the average price, high above 120%, medium otherwise."""
    low = medium = high = 0
    for price in gas_prices:
        if price * 10 < average * 8:
            low += 1
        elif price * 10 > average * 12:
            high += 1
        else:
            medium += 1
    return GasDistribution(low=low, medium=medium, high=high)


class BlockDataService(BaseDataService):
    """Fetches one block plus a bounded sample of its transactions."""

    async def get_latest_block_number(self) -> Optional[int]:
        """
        Highest indexed block number.

        Returns:
            Block number, or None when the table is empty

        Raises:
            PipelineError: TIMEOUT or DATABASE_ERROR
        """
        sql = f"SELECT MAX(number) AS latest FROM {self.config.block_table}"
        rows = await self._run_query(
            "latest block lookup", sql, None, self.config.latest_block_timeout, {"block_number": "latest"}
        )
        if not rows or rows[0].get("latest") is None:
            return None
        return int_value(rows[0]["latest"])

    async def get_block(self, identifier: BlockIdentifier) -> Optional[BlockRecord]:
        """
        Fetch a block by number, or the latest indexed block.

        Args:
            identifier: Block number or ``"latest"``

        Returns:
            BlockRecord, or None when the block is not indexed

        Raises:
            PipelineError: VALIDATION_ERROR for a malformed identifier,
                TIMEOUT or DATABASE_ERROR from the primary queries
        """
        parsed = parse_block_identifier(identifier)
        if parsed == "latest":
            block_number = await self.get_latest_block_number()
            if block_number is None:
                logger.info("No blocks indexed, cannot resolve latest block")
                return None
        else:
            block_number = parsed

        sql = f"""
            SELECT
                number,
                hash,
                parent_hash,
                timestamp,
                gas_used,
                gas_limit,
                base_fee_per_gas,
                miner,
                size,
                transaction_count
            FROM {self.config.block_table}
            WHERE number = :number
            LIMIT 1
        """
        rows = await self._run_query(
            "block lookup",
            sql,
            {"number": block_number},
            self.config.block_timeout,
            {"block_number": str(block_number)},
        )
        if not rows:
            logger.info(f"Block {block_number} not found in database")
            return None

        row = rows[0]
        samples = await self._get_sample_transactions(block_number)
        gas_used = text_value(row.get("gas_used"))
        gas_limit = text_value(row.get("gas_limit"), DEFAULT_BLOCK_GAS_LIMIT)
        transaction_count = int_value(row.get("transaction_count")) or len(samples)
        metrics, patterns = summarize_sample(samples, transaction_count, gas_used, gas_limit)

        return BlockRecord(
            number=int_value(row.get("number")),
            hash=row.get("hash") or "",
            parent_hash=row.get("parent_hash") or "",
            timestamp=int_value(row.get("timestamp")),
            gas_used=gas_used,
            gas_limit=gas_limit,
            base_fee_per_gas=text_value(row.get("base_fee_per_gas")),
            miner=row.get("miner") or "",
            size=int_value(row.get("size")),
            transaction_count=transaction_count,
            metrics=metrics,
            sample_transactions=samples,
            patterns=patterns,
        )

    async def _get_sample_transactions(self, block_number: int) -> Tuple[SampleTransaction, ...]:
        sql = f"""
            SELECT
                hash,
                from_address,
                to_address,
                value,
                receipt_gas_used,
                gas_price,
                receipt_status,
                input
            FROM {self.config.transaction_table}
            WHERE block_number = :number
            LIMIT :limit
        """
        rows = await self._run_optional(
            "block sample lookup",
            sql,
            {"number": block_number, "limit": self.config.sample_limit},
            self.config.sample_timeout,
        )
        if not rows:
            return ()

        logger.debug(f"Found {len(rows)} sample transactions in block {block_number}")
        return tuple(
            SampleTransaction(
                hash=row["hash"],
                from_address=row.get("from_address") or "",
                to_address=row.get("to_address") or "",
                value=text_value(row.get("value")),
                gas_used=text_value(row.get("receipt_gas_used")),
                gas_price=text_value(row.get("gas_price")),
                status=int_value(row.get("receipt_status")) == 1,
                is_contract_call=len(row.get("input") or EMPTY_INPUT) > len(EMPTY_INPUT),
            )
            for row in rows
        )

    async def get_recent_blocks(self, limit: int = 10) -> List[RecentBlock]:
        """
        Most recent blocks, newest first.

        Best-effort: returns an empty list when the query fails.
        """
        sql = f"""
            SELECT
                number,
                hash,
                timestamp,
                gas_used,
                gas_limit,
                transaction_count
            FROM {self.config.block_table}
            ORDER BY number DESC
            LIMIT :limit
        """
        rows = await self._run_optional("recent block lookup", sql, {"limit": limit}, self.config.history_timeout)
        if not rows:
            return []

        return [
            RecentBlock(
                number=int_value(row.get("number")),
                hash=row.get("hash") or "",
                timestamp=int_value(row.get("timestamp")),
                gas_used=text_value(row.get("gas_used")),
                gas_limit=text_value(row.get("gas_limit"), DEFAULT_BLOCK_GAS_LIMIT),
                transaction_count=int_value(row.get("transaction_count")),
            )
            for row in rows
        ]

"""
Transaction lookups against the indexed transaction table.
"""

import json
import logging
from typing import Any, List, Optional, Tuple

from chain_insight.data.base import BaseDataService, int_value, text_value
from chain_insight.data.models import (
    DEFAULT_BLOCK_GAS_LIMIT,
    DEFAULT_TX_GAS_LIMIT,
    EMPTY_INPUT,
    AddressActivity,
    AddressStats,
    AddressTransaction,
    BlockContext,
    LogEntry,
    TransactionNetworkMetrics,
    TransactionRecord,
)
from chain_insight.utils.values import ratio_percent, to_int

logger = logging.getLogger(__name__)


def parse_topics(raw: Any) -> Tuple[str, ...]:
    """Topics are stored as a JSON array; array-typed columns arrive as lists."""
    if raw is None or raw == "":
        return ()
    if isinstance(raw, (list, tuple)):
        return tuple(str(topic).lower() for topic in raw)
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring unparseable log topics: {raw!r}")
        return ()
    if not isinstance(parsed, list):
        return ()
    return tuple(str(topic).lower() for topic in parsed)


class TransactionDataService(BaseDataService):
    """Fetches one transaction plus its best-effort block context and logs."""

    async def get_transaction(self, tx_hash: str) -> Optional[TransactionRecord]:
        """
        Fetch a transaction by hash.

        Args:
            tx_hash: 0x-prefixed transaction hash

        Returns:
            TransactionRecord, or None when the hash is not indexed

        Raises:
            PipelineError: TIMEOUT or DATABASE_ERROR from the primary query
        """
        sql = f"""
            SELECT
                hash,
                block_number,
                block_timestamp,
                transaction_index,
                from_address,
                to_address,
                value,
                gas,
                gas_price,
                receipt_gas_used,
                receipt_effective_gas_price,
                receipt_status,
                input,
                nonce,
                transaction_type,
                block_hash
            FROM {self.config.transaction_table}
            WHERE hash = :hash
            LIMIT 1
        """
        rows = await self._run_query(
            "transaction lookup",
            sql,
            {"hash": tx_hash},
            self.config.transaction_timeout,
            {"tx_hash": tx_hash},
        )
        if not rows:
            logger.info(f"Transaction {tx_hash} not found in database")
            return None

        row = rows[0]
        block_number = int_value(row.get("block_number"))
        block_context = await self._get_block_context(block_number)
        logs = await self.get_logs(tx_hash)
        activity = await self.get_address_activity(row.get("from_address") or "", row.get("to_address"))
        return self._build_record(row, block_context, logs, activity)

    async def get_address_activity(self, from_address: str, to_address: Optional[str]) -> AddressActivity:
        """
        Count the indexed transactions sent or received by each party.

        Best-effort: a failed or slow count leaves both counts at zero and
        ``available`` False.
        """
        sql = f"""
            SELECT
                (SELECT COUNT(*) FROM {self.config.transaction_table}
                 WHERE from_address = :from_address OR to_address = :from_address) AS from_count,
                (SELECT COUNT(*) FROM {self.config.transaction_table}
                 WHERE from_address = :to_address OR to_address = :to_address) AS to_count
        """
        rows = await self._run_optional(
            "address activity count",
            sql,
            {"from_address": from_address, "to_address": to_address or ""},
            self.config.activity_timeout,
        )
        if not rows:
            return AddressActivity()

        row = rows[0]
        return AddressActivity(
            from_transaction_count=int_value(row.get("from_count")),
            to_transaction_count=int_value(row.get("to_count")) if to_address else 0,
            available=True,
        )

    async def _get_block_context(self, block_number: int) -> BlockContext:
        sql = f"""
            SELECT
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
        rows = await self._run_optional(
            "block context lookup", sql, {"number": block_number}, self.config.block_context_timeout
        )
        if not rows:
            return BlockContext()

        row = rows[0]
        gas_used = text_value(row.get("gas_used"))
        gas_limit = text_value(row.get("gas_limit"), DEFAULT_BLOCK_GAS_LIMIT)
        return BlockContext(
            gas_used=gas_used,
            gas_limit=gas_limit,
            base_fee_per_gas=text_value(row.get("base_fee_per_gas")),
            miner=row.get("miner") or "",
            size=int_value(row.get("size")),
            transaction_count=int_value(row.get("transaction_count")),
            utilization=ratio_percent(gas_used, gas_limit),
            available=True,
        )

    async def get_logs(self, tx_hash: str) -> Tuple[LogEntry, ...]:
        """
        Receipt logs of a transaction.

        Only queried when a logs table is configured; failures yield no logs.
        """
        if not self.config.logs_table:
            return ()

        sql = f"""
            SELECT log_index, address, topics, data
            FROM {self.config.logs_table}
            WHERE transaction_hash = :hash
            ORDER BY log_index
        """
        rows = await self._run_optional("receipt log lookup", sql, {"hash": tx_hash}, self.config.logs_timeout)
        if not rows:
            return ()

        return tuple(
            LogEntry(
                log_index=int_value(row.get("log_index")),
                address=(row.get("address") or "").lower(),
                topics=parse_topics(row.get("topics")),
                data=row.get("data") or EMPTY_INPUT,
            )
            for row in rows
        )

    def _build_record(self, row: dict, block_context: BlockContext,
                      logs: Tuple[LogEntry, ...],
                      activity: Optional[AddressActivity] = None) -> TransactionRecord:
        gas_used = text_value(row.get("receipt_gas_used"))
        gas_price = text_value(row.get("gas_price"))
        effective_gas_price = text_value(row.get("receipt_effective_gas_price"), gas_price)
        input_data = row.get("input") or EMPTY_INPUT

        cost = to_int(gas_used) * to_int(effective_gas_price)

        return TransactionRecord(
            hash=row["hash"],
            block_number=int_value(row.get("block_number")),
            block_timestamp=int_value(row.get("block_timestamp")),
            transaction_index=int_value(row.get("transaction_index")),
            from_address=row.get("from_address") or "",
            to_address=row.get("to_address") or None,
            value=text_value(row.get("value")),
            gas_limit=text_value(row.get("gas")),
            gas_price=gas_price,
            gas_used=gas_used,
            effective_gas_price=effective_gas_price,
            status=int_value(row.get("receipt_status")) == 1,
            input=input_data,
            nonce=int_value(row.get("nonce")),
            transaction_type=int_value(row.get("transaction_type")),
            block_hash=row.get("block_hash") or "",
            gas_efficiency=ratio_percent(gas_used, text_value(row.get("gas"), DEFAULT_TX_GAS_LIMIT)),
            transaction_cost=str(cost),
            is_contract_interaction=len(input_data) > len(EMPTY_INPUT),
            block_context=block_context,
            address_activity=activity or AddressActivity(),
            network_metrics=TransactionNetworkMetrics(average_gas_price=gas_price),
            logs=logs,
        )

    async def get_address_stats(self, address: str) -> AddressStats:
        """
        Aggregate the indexed transactions sent or received by an address.

        Args:
            address: Lowercase 0x-prefixed address

        Returns:
            AddressStats; all counts are zero for an address never indexed

        Raises:
            PipelineError: TIMEOUT or DATABASE_ERROR
        """
        sql = f"""
            SELECT
                COUNT(*) AS transaction_count,
                SUM(CASE WHEN from_address = :address THEN 1 ELSE 0 END) AS sent_count,
                SUM(CASE WHEN to_address = :address THEN 1 ELSE 0 END) AS received_count,
                SUM(CASE WHEN receipt_status = 0 THEN 1 ELSE 0 END) AS failed_count,
                SUM(CASE WHEN from_address = :address AND input IS NOT NULL AND input <> '0x'
                    THEN 1 ELSE 0 END) AS contract_calls,
                COUNT(DISTINCT CASE WHEN from_address = :address THEN to_address ELSE from_address END)
                    AS counterparties,
                MIN(block_timestamp) AS first_seen,
                MAX(block_timestamp) AS last_seen
            FROM {self.config.transaction_table}
            WHERE from_address = :address OR to_address = :address
        """
        rows = await self._run_query(
            "address statistics",
            sql,
            {"address": address},
            self.config.history_timeout,
            {"address": address},
        )
        row = rows[0] if rows else {}
        transaction_count = int_value(row.get("transaction_count"))
        return AddressStats(
            address=address,
            transaction_count=transaction_count,
            sent_count=int_value(row.get("sent_count")),
            received_count=int_value(row.get("received_count")),
            failed_count=int_value(row.get("failed_count")),
            contract_calls=int_value(row.get("contract_calls")),
            counterparties=int_value(row.get("counterparties")),
            first_seen=int_value(row.get("first_seen")) if transaction_count else None,
            last_seen=int_value(row.get("last_seen")) if transaction_count else None,
        )

    async def get_address_transactions(self, address: str, limit: int = 10) -> List[AddressTransaction]:
        """
        Most recent transactions sent or received by an address.

        Best-effort: returns an empty list when the query fails.
        """
        sql = f"""
            SELECT
                hash,
                block_number,
                from_address,
                to_address,
                value,
                receipt_status,
                block_timestamp
            FROM {self.config.transaction_table}
            WHERE from_address = :address OR to_address = :address
            ORDER BY block_timestamp DESC
            LIMIT :limit
        """
        rows = await self._run_optional(
            "address transaction lookup",
            sql,
            {"address": address, "limit": limit},
            self.config.history_timeout,
        )
        if not rows:
            return []

        return [
            AddressTransaction(
                hash=row["hash"],
                block_number=int_value(row.get("block_number")),
                from_address=row.get("from_address") or "",
                to_address=row.get("to_address") or None,
                value=text_value(row.get("value")),
                status=int_value(row.get("receipt_status")) == 1,
                block_timestamp=int_value(row.get("block_timestamp")),
            )
            for row in rows
        ]

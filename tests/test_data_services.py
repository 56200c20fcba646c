"""
Tests for the transaction and block data services.
"""

import asyncio
import json

import pytest
from sqlalchemy.exc import OperationalError

from chain_insight.analysis.activity import TRANSFER_TOPIC
from chain_insight.config.models import QueryConfig
from chain_insight.data.blocks import BlockDataService, parse_block_identifier, summarize_sample
from chain_insight.data.models import AddressActivity, SampleTransaction
from chain_insight.data.transactions import TransactionDataService, parse_topics
from chain_insight.database.models import TransactionRow
from chain_insight.utils.error_classification import PipelineError


@pytest.fixture
def transactions(seeded_database, query_config):
    return TransactionDataService(seeded_database, query_config)


@pytest.fixture
def blocks(seeded_database, query_config):
    return BlockDataService(seeded_database, query_config)


def sample(hash_suffix, sender, receiver, value="0", gas_price="1000000000", status=True, call=False):
    return SampleTransaction(
        hash="0x" + hash_suffix * 64,
        from_address=sender,
        to_address=receiver,
        value=value,
        gas_used="21000",
        gas_price=gas_price,
        status=status,
        is_contract_call=call,
    )


class TestTransactionDataService:
    """Test transaction lookups."""

    @pytest.mark.asyncio
    async def test_get_transaction(self, transactions, chain_data):
        record = await transactions.get_transaction(chain_data.simple_tx)

        assert record.hash == chain_data.simple_tx
        assert record.block_number == chain_data.tx_block
        assert record.from_address == chain_data.alice
        assert record.to_address == chain_data.bob
        assert record.value == "0"
        assert record.status is True
        assert record.input == "0x"
        assert record.is_contract_interaction is False
        assert record.logs == ()

    @pytest.mark.asyncio
    async def test_derived_fields(self, transactions, chain_data):
        record = await transactions.get_transaction(chain_data.swap_tx)

        # No receipt price stored, so the gas price is used
        assert record.effective_gas_price == record.gas_price
        assert record.transaction_cost == str(150000 * 2 * chain_data.gwei)
        assert record.gas_efficiency == pytest.approx(50.0)
        assert record.is_contract_interaction is True
        assert record.function_selector == "0x38ed1739"
        assert record.network_metrics.average_gas_price == record.gas_price

    @pytest.mark.asyncio
    async def test_block_context_attached(self, transactions, chain_data):
        record = await transactions.get_transaction(chain_data.simple_tx)

        assert record.block_context.available is True
        assert record.block_context.gas_limit == "30000000"
        assert record.block_context.utilization == pytest.approx(30.0)
        assert record.block_context.transaction_count == 3

    @pytest.mark.asyncio
    async def test_logs_attached_in_order(self, transactions, chain_data):
        record = await transactions.get_transaction(chain_data.swap_tx)

        assert [log.log_index for log in record.logs] == [0, 1, 2]
        assert record.logs[0].address == chain_data.token_a
        assert record.logs[0].topic0 == TRANSFER_TOPIC
        assert len(record.logs[0].topics) == 3

    @pytest.mark.asyncio
    async def test_logs_skipped_without_logs_table(self, seeded_database, chain_data):
        service = TransactionDataService(seeded_database, QueryConfig())
        record = await service.get_transaction(chain_data.swap_tx)

        assert record.logs == ()

    @pytest.mark.asyncio
    async def test_missing_transaction(self, transactions, chain_data):
        assert await transactions.get_transaction(chain_data.missing_tx) is None

    @pytest.mark.asyncio
    async def test_address_activity_attached(self, transactions, chain_data):
        record = await transactions.get_transaction(chain_data.simple_tx)

        assert record.address_activity.available is True
        assert record.address_activity.from_transaction_count == 3
        assert record.address_activity.to_transaction_count == 1

    @pytest.mark.asyncio
    async def test_address_activity_counts_sent_and_received(self, transactions, chain_data):
        activity = await transactions.get_address_activity(chain_data.router, chain_data.validator)

        assert activity.from_transaction_count == 2
        assert activity.to_transaction_count == 0
        assert activity.available is True

    @pytest.mark.asyncio
    async def test_address_activity_without_receiver(self, transactions, chain_data):
        activity = await transactions.get_address_activity(chain_data.alice, None)

        assert activity.from_transaction_count == 3
        assert activity.to_transaction_count == 0

    @pytest.mark.asyncio
    async def test_missing_block_context_uses_defaults(self, database, query_config):
        async with database.get_async_session() as session:
            session.add(TransactionRow(
                hash="0x" + "4" * 64,
                block_number=5000,
                block_timestamp=1_700_000_000,
                from_address="0x" + "a" * 40,
                to_address=None,
                value="0",
                gas="100000",
                gas_price="0",
                receipt_gas_used="0",
                input="0x6080",
            ))
            await session.commit()

        record = await TransactionDataService(database, query_config).get_transaction("0x" + "4" * 64)

        assert record.to_address is None
        assert record.block_context.available is False
        assert record.block_context.gas_limit == "30000000"
        assert record.gas_efficiency == 0.0

    @pytest.mark.asyncio
    async def test_primary_query_timeout(self, transactions, chain_data, mocker):
        mocker.patch.object(transactions.connection, "fetch_all", side_effect=asyncio.TimeoutError())

        with pytest.raises(PipelineError) as exc_info:
            await transactions.get_transaction(chain_data.simple_tx)

        assert exc_info.value.code == "E006"
        assert exc_info.value.error.context["tx_hash"] == chain_data.simple_tx

    @pytest.mark.asyncio
    async def test_primary_query_database_error(self, transactions, chain_data, mocker):
        mocker.patch.object(
            transactions.connection,
            "fetch_all",
            side_effect=OperationalError("SELECT", {}, Exception("no such table")),
        )

        with pytest.raises(PipelineError) as exc_info:
            await transactions.get_transaction(chain_data.simple_tx)

        assert exc_info.value.code == "E004"

    @pytest.mark.asyncio
    async def test_secondary_failures_are_best_effort(self, transactions, chain_data, mocker):
        original = transactions.connection.fetch_all

        async def fail_secondary(sql, params=None):
            if "WHERE hash = :hash" in sql:
                return await original(sql, params)
            raise OperationalError("SELECT", {}, Exception("boom"))

        mocker.patch.object(transactions.connection, "fetch_all", side_effect=fail_secondary)

        record = await transactions.get_transaction(chain_data.swap_tx)

        assert record is not None
        assert record.block_context.available is False
        assert record.logs == ()
        assert record.address_activity == AddressActivity()

    @pytest.mark.asyncio
    async def test_address_transactions(self, transactions, chain_data):
        rows = await transactions.get_address_transactions(chain_data.bob, limit=10)

        assert len(rows) == 1
        assert rows[0].hash == chain_data.simple_tx

        sent = await transactions.get_address_transactions(chain_data.alice, limit=2)
        assert len(sent) == 2

    @pytest.mark.asyncio
    async def test_address_stats(self, transactions, chain_data):
        stats = await transactions.get_address_stats(chain_data.alice)

        assert stats.address == chain_data.alice
        assert stats.transaction_count == 3
        assert stats.sent_count == 3
        assert stats.received_count == 0
        assert stats.failed_count == 0
        assert stats.contract_calls == 2
        assert stats.counterparties == 2
        assert stats.first_seen == stats.last_seen == chain_data.base_timestamp + 4

    @pytest.mark.asyncio
    async def test_address_stats_receiver_and_failures(self, transactions, seeded_database, chain_data):
        async with seeded_database.get_async_session() as session:
            session.add(TransactionRow(
                hash="0x" + "f0" * 32,
                block_number=chain_data.tx_block,
                block_timestamp=chain_data.base_timestamp + 10,
                from_address=chain_data.bob,
                to_address=chain_data.router,
                receipt_status=0,
            ))
            await session.commit()

        stats = await transactions.get_address_stats(chain_data.router)

        assert stats.transaction_count == 3
        assert stats.sent_count == 0
        assert stats.received_count == 3
        assert stats.failed_count == 1
        assert stats.contract_calls == 0
        assert stats.counterparties == 2
        assert stats.last_seen == chain_data.base_timestamp + 10

    @pytest.mark.asyncio
    async def test_address_stats_unknown_address(self, transactions):
        stats = await transactions.get_address_stats("0x" + "7" * 40)

        assert stats.transaction_count == 0
        assert stats.sent_count == 0
        assert stats.counterparties == 0
        assert stats.first_seen is None
        assert stats.last_seen is None

    @pytest.mark.asyncio
    async def test_address_stats_query_failure_raises(self, transactions, mocker):
        mocker.patch.object(
            transactions.connection, "fetch_all", side_effect=OperationalError("SELECT", {}, Exception("gone"))
        )

        with pytest.raises(PipelineError) as exc_info:
            await transactions.get_address_stats("0x" + "7" * 40)

        assert exc_info.value.code == "E004"

    def test_parse_topics(self):
        assert parse_topics(json.dumps(["0xAB", "0xcd"])) == ("0xab", "0xcd")
        assert parse_topics(["0xAB"]) == ("0xab",)
        assert parse_topics("not json") == ()
        assert parse_topics(None) == ()
        assert parse_topics('{"a": 1}') == ()


class TestBlockDataService:
    """Test block lookups."""

    @pytest.mark.asyncio
    async def test_latest_block_number(self, blocks, chain_data):
        assert await blocks.get_latest_block_number() == chain_data.latest_block

    @pytest.mark.asyncio
    async def test_latest_block_on_empty_store(self, database, query_config):
        service = BlockDataService(database, query_config)
        assert await service.get_latest_block_number() is None
        assert await service.get_block("latest") is None

    @pytest.mark.asyncio
    async def test_get_block_with_sample(self, blocks, chain_data):
        block = await blocks.get_block(chain_data.tx_block)

        assert block.number == chain_data.tx_block
        assert block.transaction_count == 3
        assert len(block.sample_transactions) == 3
        assert block.metrics.successful_transactions == 3
        assert block.metrics.failed_transactions == 0
        assert block.metrics.contract_interactions == 2
        assert block.metrics.total_value == str(100_000_000)
        assert block.metrics.average_gas_price == str(2 * chain_data.gwei)
        assert block.metrics.network_utilization == pytest.approx(30.0)

    @pytest.mark.asyncio
    async def test_get_latest_block(self, blocks, chain_data):
        block = await blocks.get_block("latest")

        assert block.number == chain_data.latest_block
        assert block.sample_transactions == ()
        assert block.transaction_count == 0

    @pytest.mark.asyncio
    async def test_missing_block(self, blocks):
        assert await blocks.get_block(999999) is None

    @pytest.mark.asyncio
    async def test_invalid_identifier(self, blocks):
        with pytest.raises(PipelineError) as exc_info:
            await blocks.get_block("pending")
        assert exc_info.value.code == "E010"

    @pytest.mark.asyncio
    async def test_sample_limit(self, seeded_database, chain_data):
        service = BlockDataService(seeded_database, QueryConfig(sample_limit=1))
        block = await service.get_block(chain_data.tx_block)

        assert len(block.sample_transactions) == 1
        # Count comes from the block row, not the sample
        assert block.metrics.total_transactions == 3

    @pytest.mark.asyncio
    async def test_recent_blocks_newest_first(self, blocks, chain_data):
        recent = await blocks.get_recent_blocks(3)

        assert [block.number for block in recent] == [
            chain_data.latest_block,
            chain_data.latest_block - 1,
            chain_data.latest_block - 2,
        ]

    @pytest.mark.asyncio
    async def test_recent_blocks_failure_is_empty(self, blocks, mocker):
        mocker.patch.object(blocks.connection, "fetch_all", side_effect=asyncio.TimeoutError())
        assert await blocks.get_recent_blocks(5) == []


class TestBlockIdentifier:
    """Test block identifier parsing."""

    def test_valid_identifiers(self):
        assert parse_block_identifier("latest") == "latest"
        assert parse_block_identifier(" LATEST ") == "latest"
        assert parse_block_identifier("1234") == 1234
        assert parse_block_identifier(0) == 0

    @pytest.mark.parametrize("identifier", ["-1", "0x10", "", -5, True, 1.5, None])
    def test_invalid_identifiers(self, identifier):
        with pytest.raises(PipelineError):
            parse_block_identifier(identifier)


class TestSummarizeSample:
    """Test block aggregates derived from sampled transactions."""

    def test_empty_sample(self):
        metrics, patterns = summarize_sample((), 0, "0", "30000000")

        assert metrics.total_transactions == 0
        assert metrics.average_gas_price == "0"
        assert patterns.failure_rate == 0.0
        assert patterns.top_senders == ()

    def test_failure_rate_and_high_value(self):
        samples = (
            sample("1", "0xa", "0xb", value="5000"),
            sample("2", "0xa", "0xc", status=False),
            sample("3", "0xd", "0xb", value="10", call=True),
            sample("4", "0xd", "0xb", status=False),
        )

        metrics, patterns = summarize_sample(samples, 10, "15000000", "30000000")

        assert metrics.total_transactions == 10
        assert metrics.failed_transactions == 2
        assert metrics.unique_addresses == 4
        assert metrics.contract_interactions == 1
        assert metrics.network_utilization == pytest.approx(50.0)
        assert patterns.failure_rate == pytest.approx(50.0)
        assert patterns.high_value_transfers == 1

    def test_top_addresses_ordering(self):
        samples = (
            sample("1", "0xb", "0xz", value="1"),
            sample("2", "0xa", "0xz", value="1"),
            sample("3", "0xa", "0xy", value="1"),
            sample("4", "0xc", "0xy", value="9"),
            sample("5", "0xc", "0xy", value="9"),
        )

        _, patterns = summarize_sample(samples, 5, "0", "30000000")

        # Count desc, then value desc, then address
        assert [flow.address for flow in patterns.top_senders] == ["0xc", "0xa", "0xb"]
        assert patterns.top_senders[0].total_value == "18"
        assert [flow.address for flow in patterns.top_receivers] == ["0xy", "0xz"]

    def test_top_addresses_capped_at_five(self):
        samples = tuple(sample(str(index), f"0x{index}", "0xf") for index in range(7))
        _, patterns = summarize_sample(samples, 7, "0", "30000000")
        assert len(patterns.top_senders) == 5

    def test_gas_distribution_relative_to_average(self):
        samples = (
            sample("1", "0xa", "0xb", gas_price="50"),
            sample("2", "0xa", "0xb", gas_price="100"),
            sample("3", "0xa", "0xb", gas_price="150"),
        )

        metrics, patterns = summarize_sample(samples, 3, "0", "30000000")

        assert metrics.average_gas_price == "100"
        assert patterns.gas_distribution.low == 1
        assert patterns.gas_distribution.medium == 1
        assert patterns.gas_distribution.high == 1

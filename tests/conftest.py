"""
Pytest configuration and shared fixtures.

The database fixtures seed an in-memory SQLite store with three indexed
transactions (a plain transfer, a DEX swap with receipt logs and a
high-gas variant of the swap) spread over a run of recent blocks.
"""

import json
from types import SimpleNamespace

import pytest
import pytest_asyncio

from chain_insight.analysis.activity import TRANSFER_TOPIC
from chain_insight.analysis.models import NetworkContext
from chain_insight.cache.smart_cache import SmartCache
from chain_insight.chains.registry import HYPERLIQUID_MAINNET, ChainRegistry
from chain_insight.config.models import AppConfig, DatabaseConfig, MaintenanceConfig, QueryConfig
from chain_insight.data.models import BlockContext, BlockRecord, LogEntry, TransactionRecord
from chain_insight.database.connection import DatabaseConnection
from chain_insight.database.models import BlockRow, TransactionLogRow, TransactionRow
from chain_insight.pipeline.context import AnalysisContext

ALICE = "0x" + "a" * 40
BOB = "0x" + "b" * 40
ROUTER = "0x" + "c" * 40
TOKEN_A = "0x" + "1" * 40
TOKEN_B = "0x" + "2" * 40
VALIDATOR = "0x" + "9" * 40

SIMPLE_TX = "0x" + "1" * 64
SWAP_TX = "0x" + "2" * 64
MEV_TX = "0x" + "3" * 64
MISSING_TX = "0x" + "f" * 64

SWAP_INPUT = "0x38ed1739" + "0" * 128
GWEI = 1_000_000_000
BASE_TIMESTAMP = 1_700_000_000  # 22:13 UTC
FIRST_BLOCK = 1000
BLOCK_COUNT = 5
TX_BLOCK = 1002


class ClockStub:
    """Manually advanced time source."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def padded_topic(address: str) -> str:
    return "0x" + "0" * 24 + address[2:].lower()


def transfer_log(index: int, token: str, sender: str, receiver: str, amount: int) -> LogEntry:
    return LogEntry(
        log_index=index,
        address=token,
        topics=(TRANSFER_TOPIC, padded_topic(sender), padded_topic(receiver)),
        data="0x" + format(amount, "064x"),
    )


SWAP_LOGS = (
    transfer_log(0, TOKEN_A, ALICE, ROUTER, 25_000_000),
    transfer_log(1, TOKEN_A, ROUTER, BOB, 24_000_000),
    transfer_log(2, TOKEN_B, BOB, ALICE, 40_000_000),
)


def build_transaction(**overrides) -> TransactionRecord:
    """A successful zero-value transfer, with any field overridden."""
    fields = dict(
        hash=SIMPLE_TX,
        block_number=TX_BLOCK,
        block_timestamp=BASE_TIMESTAMP + 4,
        transaction_index=0,
        from_address=ALICE,
        to_address=BOB,
        value="0",
        gas_limit="21000",
        gas_price=str(2 * GWEI),
        gas_used="21000",
        effective_gas_price=str(2 * GWEI),
        status=True,
        input="0x",
        nonce=7,
        transaction_type=2,
        block_hash="0x" + "b1" * 32,
        gas_efficiency=100.0,
        transaction_cost=str(21000 * 2 * GWEI),
        is_contract_interaction=False,
        block_context=BlockContext(
            gas_used="9000000",
            gas_limit="30000000",
            base_fee_per_gas=str(GWEI),
            miner=VALIDATOR,
            size=2048,
            transaction_count=3,
            utilization=30.0,
            available=True,
        ),
    )
    fields.update(overrides)
    if "input" in overrides and "is_contract_interaction" not in overrides:
        fields["is_contract_interaction"] = len(fields["input"]) > 2
    return TransactionRecord(**fields)


def build_swap(**overrides) -> TransactionRecord:
    """A 50 USDC router swap emitting three ERC-20 Transfer logs."""
    fields = dict(
        hash=SWAP_TX,
        to_address=ROUTER,
        value=str(50_000_000),
        gas_limit="300000",
        gas_used="150000",
        input=SWAP_INPUT,
        logs=SWAP_LOGS,
    )
    fields.update(overrides)
    return build_transaction(**fields)


def build_block(**overrides) -> BlockRecord:
    fields = dict(
        number=TX_BLOCK,
        hash="0x" + "b1" * 32,
        parent_hash="0x" + "b0" * 32,
        timestamp=BASE_TIMESTAMP + 4,
        gas_used="9000000",
        gas_limit="30000000",
        base_fee_per_gas=str(GWEI),
        miner=VALIDATOR,
        size=2048,
        transaction_count=3,
    )
    fields.update(overrides)
    return BlockRecord(**fields)


def _transaction_row(record: TransactionRecord) -> TransactionRow:
    return TransactionRow(
        hash=record.hash,
        block_number=record.block_number,
        block_timestamp=record.block_timestamp,
        block_hash=record.block_hash,
        transaction_index=record.transaction_index,
        from_address=record.from_address,
        to_address=record.to_address,
        value=record.value,
        gas=record.gas_limit,
        gas_price=record.gas_price,
        receipt_gas_used=record.gas_used,
        receipt_effective_gas_price=None,
        receipt_status=1 if record.status else 0,
        input=record.input,
        nonce=record.nonce,
        transaction_type=record.transaction_type,
    )


def _seed_rows():
    blocks = []
    for offset in range(BLOCK_COUNT):
        number = FIRST_BLOCK + offset
        blocks.append(BlockRow(
            number=number,
            hash="0x" + format(number, "064x"),
            parent_hash="0x" + format(number - 1, "064x"),
            timestamp=BASE_TIMESTAMP + 2 * offset,
            gas_used="9000000",
            gas_limit="30000000",
            base_fee_per_gas=str(GWEI),
            miner=VALIDATOR,
            size=2048,
            transaction_count=3 if number == TX_BLOCK else 0,
        ))

    transactions = [
        build_transaction(block_hash="0x" + format(TX_BLOCK, "064x")),
        build_swap(transaction_index=1, block_hash="0x" + format(TX_BLOCK, "064x")),
        build_swap(
            hash=MEV_TX,
            transaction_index=2,
            gas_limit="900000",
            gas_used="600000",
            block_hash="0x" + format(TX_BLOCK, "064x"),
        ),
    ]
    logs = [
        TransactionLogRow(
            transaction_hash=tx_hash,
            log_index=log.log_index,
            address=log.address,
            topics=json.dumps(list(log.topics)),
            data=log.data,
        )
        for tx_hash in (SWAP_TX, MEV_TX)
        for log in SWAP_LOGS
    ]
    return blocks + [_transaction_row(record) for record in transactions] + logs


@pytest.fixture
def chain_data():
    """Addresses, hashes and block numbers of the seeded store."""
    return SimpleNamespace(
        alice=ALICE,
        bob=BOB,
        router=ROUTER,
        token_a=TOKEN_A,
        token_b=TOKEN_B,
        validator=VALIDATOR,
        simple_tx=SIMPLE_TX,
        swap_tx=SWAP_TX,
        mev_tx=MEV_TX,
        missing_tx=MISSING_TX,
        swap_input=SWAP_INPUT,
        first_block=FIRST_BLOCK,
        latest_block=FIRST_BLOCK + BLOCK_COUNT - 1,
        tx_block=TX_BLOCK,
        base_timestamp=BASE_TIMESTAMP,
        gwei=GWEI,
    )


@pytest.fixture
def make_transaction():
    """Factory for transaction records; zero-value transfer by default."""
    return build_transaction


@pytest.fixture
def make_swap():
    """Factory for the 50 USDC router swap with three Transfer logs."""
    return build_swap


@pytest.fixture
def make_transfer_log():
    return transfer_log


@pytest.fixture
def make_block():
    return build_block


@pytest.fixture
def network_context():
    """Mainnet context without recent blocks."""
    return NetworkContext(network=HYPERLIQUID_MAINNET)


@pytest.fixture
def clock():
    return ClockStub()


@pytest.fixture
def database_config():
    """In-memory SQLite configuration for testing."""
    return DatabaseConfig(url="sqlite:///:memory:", pool_size=1, echo=False)


@pytest.fixture
def query_config():
    """Default tables with the receipt log table enabled."""
    return QueryConfig(logs_table="logs_1")


@pytest_asyncio.fixture
async def database(database_config):
    """Initialized in-memory database with the schema created and no rows."""
    connection = DatabaseConnection(database_config)
    connection.initialize()
    await connection.create_tables_async()
    yield connection
    await connection.close_async()


@pytest_asyncio.fixture
async def seeded_database(database):
    """The in-memory database populated with blocks, transactions and logs."""
    async with database.get_async_session() as session:
        session.add_all(_seed_rows())
        await session.commit()
    return database


@pytest.fixture
def app_config(database_config, query_config):
    config = AppConfig(database=database_config, queries=query_config)
    config.maintenance = MaintenanceConfig(enabled=False)
    return config


@pytest_asyncio.fixture
async def analysis_context(app_config, seeded_database, clock):
    """Context sharing the seeded database, with a cache on the test clock."""
    cache = SmartCache(policies=app_config.cache.to_policies(), clock=clock)
    context = AnalysisContext.from_config(
        app_config,
        registry=ChainRegistry(),
        connection=seeded_database,
        cache=cache,
    )
    await context.start()
    yield context
    await context.close()



"""
Tests for the plain-text analysis formatter.
"""

import re

import pytest

from chain_insight.analysis.engine import AnalysisEngine
from chain_insight.analysis.models import BLOCK, TRANSACTION, NetworkContext
from chain_insight.chains.registry import HYPERLIQUID_MAINNET
from chain_insight.data.models import AddressActivity, BlockMetrics, SampleTransaction
from chain_insight.formatting.formatter import NO_DATA, AnalysisFormatter, iso_timestamp
from chain_insight.formatting.prompts import analysis_directive, system_prompt
from chain_insight.utils.error_classification import PipelineError

TRANSACTION_SECTIONS = [
    "NETWORK INFORMATION",
    "TRANSACTION DETAILS",
    "GAS ANALYSIS",
    "BLOCK CONTEXT",
    "ADDRESS ACTIVITY",
    "NETWORK METRICS",
    "CONTRACT INTERACTIONS",
    "TRANSFERS",
    "RISK ASSESSMENT",
    "TRANSACTION CLUSTERING",
    "MEV ANALYSIS",
    "SECURITY ANALYSIS",
    "GAS OPTIMIZATION",
    "TRADING PATTERNS",
    "HYPERLIQUID ANALYSIS",
    "LIQUIDITY METRICS",
    "ANALYSIS SUMMARY",
]

BLOCK_SECTIONS = [
    "NETWORK INFORMATION",
    "BLOCK DETAILS",
    "BLOCK PERFORMANCE",
    "TRANSACTION ANALYSIS",
    "NETWORK METRICS",
    "TRANSACTION PATTERNS",
    "SAMPLE TRANSACTIONS",
    "HYPERLIQUID BLOCK ANALYSIS",
    "BLOCK SUMMARY",
]


@pytest.fixture
def engine():
    return AnalysisEngine()


@pytest.fixture
def formatter():
    return AnalysisFormatter()


def section_titles(text):
    return re.findall(r"^=== (.+) ===$", text, flags=re.MULTILINE)


def section_body(text, title):
    """Lines of one section, up to the next header."""
    lines = text.splitlines()
    start = lines.index(f"=== {title} ===") + 1
    body = []
    for line in lines[start:]:
        if line.startswith("=== "):
            break
        if line:
            body.append(line)
    return body


class TestTransactionFormatting:
    """Test transaction section rendering."""

    def test_section_order(self, engine, formatter, make_transaction, network_context):
        formatted = formatter.format(engine.analyze(make_transaction(), network_context))
        assert section_titles(formatted.text) == TRANSACTION_SECTIONS

    def test_missing_sections_render_no_data(self, engine, formatter, make_transaction, network_context):
        text = formatter.format(engine.analyze(make_transaction(), network_context)).text

        assert section_body(text, "ADDRESS ACTIVITY") == [NO_DATA]
        assert section_body(text, "NETWORK METRICS") == [NO_DATA]
        assert section_body(text, "BLOCK CONTEXT") != [NO_DATA]

    def test_address_activity_counts(self, engine, formatter, make_transaction, network_context, chain_data):
        record = make_transaction(address_activity=AddressActivity(
            from_transaction_count=150, to_transaction_count=0, available=True,
        ))
        body = section_body(formatter.format(engine.analyze(record, network_context)).text, "ADDRESS ACTIVITY")

        assert f"  - Address: {chain_data.alice}" in body
        assert "  - Total Transactions: 150" in body
        assert "  - Activity Level: Active" in body
        assert body[-1] == "  - Activity Level: Low"

    def test_simple_transfer_content(self, engine, formatter, make_transaction, network_context, chain_data):
        text = formatter.format(engine.analyze(make_transaction(), network_context)).text

        assert f"Hash: {chain_data.simple_tx}" in text
        assert "Risk Level: Low" in section_body(text, "RISK ASSESSMENT")
        assert "Cluster: Simple User" in section_body(text, "TRANSACTION CLUSTERING")
        assert section_body(text, "MEV ANALYSIS") == ["MEV Indicators: None detected"]
        assert section_body(text, "CONTRACT INTERACTIONS")[0] == "Contract Call Detected: NO"
        assert "Network Health: Unknown" in section_body(text, "NETWORK INFORMATION")

    def test_swap_content(self, engine, formatter, make_swap, network_context):
        text = formatter.format(engine.analyze(make_swap(), network_context)).text

        interactions = section_body(text, "CONTRACT INTERACTIONS")
        assert "Contract Call Detected: YES" in interactions
        assert "Function Selector: 0x38ed1739" in interactions
        assert "Known Functions: Spot Trade" in interactions
        assert section_body(text, "MEV ANALYSIS")[0] == "MEV Indicators: 1"
        assert "[Native]" in section_body(text, "TRANSFERS")[0]

    def test_network_metrics_with_context(self, engine, formatter, make_transaction, chain_data):
        context = NetworkContext(network=HYPERLIQUID_MAINNET, latest_block_number=chain_data.latest_block)
        text = formatter.format(engine.analyze(make_transaction(), context)).text

        # Confirmations alone do not make up network metrics
        assert section_body(text, "NETWORK METRICS") == [NO_DATA]

    def test_degraded_section(self, engine, formatter, make_swap, network_context, mocker):
        mocker.patch("chain_insight.analysis.engine.detect_mev", side_effect=RuntimeError("boom"))
        text = formatter.format(engine.analyze(make_swap(), network_context)).text

        assert section_body(text, "MEV ANALYSIS") == [NO_DATA]
        assert "Heuristics unavailable: mev" in section_body(text, "ANALYSIS SUMMARY")
        assert section_titles(text) == TRANSACTION_SECTIONS

    def test_directive_matches_kind(self, engine, formatter, make_transaction, network_context):
        formatted = formatter.format(engine.analyze(make_transaction(), network_context))
        assert formatted.directive == analysis_directive(TRANSACTION)
        assert "graph LR" in formatted.directive

    def test_kind_mismatch(self, engine, formatter, make_transaction, network_context):
        result = engine.analyze(make_transaction(), network_context)

        with pytest.raises(PipelineError) as exc_info:
            formatter.format(result, BLOCK)
        assert exc_info.value.code == "E010"


class TestBlockFormatting:
    """Test block section rendering."""

    @pytest.fixture
    def block(self, make_block, chain_data):
        samples = (
            SampleTransaction(
                hash=chain_data.simple_tx,
                from_address=chain_data.alice,
                to_address=chain_data.bob,
                value="0",
                gas_used="21000",
                gas_price=str(2 * chain_data.gwei),
                status=True,
                is_contract_call=False,
            ),
        )
        return make_block(
            sample_transactions=samples,
            metrics=BlockMetrics(total_transactions=3, successful_transactions=1,
                                 average_gas_price=str(2 * chain_data.gwei)),
        )

    def test_section_order(self, engine, formatter, block, network_context):
        formatted = formatter.format(engine.analyze(block, network_context))

        assert section_titles(formatted.text) == BLOCK_SECTIONS
        assert "graph TD" in formatted.directive

    def test_block_content(self, engine, formatter, block, network_context, chain_data):
        text = formatter.format(engine.analyze(block, network_context)).text

        assert f"Block Number: #{chain_data.tx_block}" in section_body(text, "BLOCK DETAILS")
        assert "Confirmations: Unknown" in section_body(text, "BLOCK DETAILS")
        assert "Block Utilization: 30.00%" in section_body(text, "BLOCK PERFORMANCE")
        assert f"  - Hash: {chain_data.simple_tx}" in section_body(text, "SAMPLE TRANSACTIONS")
        assert "Sample metrics cover 1 of 3 transactions." in section_body(text, "BLOCK SUMMARY")

    def test_empty_sample(self, engine, formatter, make_block, network_context):
        text = formatter.format(engine.analyze(make_block(), network_context)).text
        assert section_body(text, "SAMPLE TRANSACTIONS") == [NO_DATA]


class TestPrompts:
    """Test the fixed generator instructions."""

    def test_system_prompts(self):
        assert "graph LR" in system_prompt(TRANSACTION)
        assert "graph TD" in system_prompt(BLOCK)

    def test_unknown_kind(self):
        with pytest.raises(PipelineError):
            analysis_directive("address")
        with pytest.raises(PipelineError):
            system_prompt("address")

    def test_iso_timestamp(self):
        assert iso_timestamp(0) == "Unknown"
        assert iso_timestamp(1_700_000_000) == "2023-11-14T22:13:20Z"

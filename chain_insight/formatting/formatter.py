"""
Plain-text rendering of analysis results for the downstream text generator.

Sections always appear in a fixed order. A section whose data is missing,
or whose heuristic fell back to its default, renders ``No data available``
instead of disappearing.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from chain_insight.analysis.models import BLOCK, TRANSACTION, AnalysisResult
from chain_insight.analysis.network import activity_category
from chain_insight.data.models import BlockRecord, TransactionRecord
from chain_insight.formatting.prompts import analysis_directive
from chain_insight.utils.error_classification import PipelineError, invalid_request_error
from chain_insight.utils.values import format_gwei, format_native_cost, format_units, ratio_percent

logger = logging.getLogger(__name__)

NO_DATA = "No data available"
SAMPLE_LIMIT = 5
TOP_ADDRESS_LIMIT = 5

Section = Tuple[str, Optional[List[str]]]


@dataclass(frozen=True)
class FormattedAnalysis:
    """Formatted text plus the instructions that go with it."""
    text: str
    directive: str


def iso_timestamp(timestamp: int) -> str:
    if not timestamp:
        return "Unknown"
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def _joined(items: Sequence[str]) -> str:
    return ", ".join(items) or "None"


def render_sections(sections: Sequence[Section]) -> str:
    lines: List[str] = []
    for title, body in sections:
        lines.append(f"=== {title} ===")
        lines.extend(body if body else [NO_DATA])
        lines.append("")
    return "\n".join(lines).rstrip("\n")


class AnalysisFormatter:
    """
    Render an AnalysisResult as labeled plain-text sections.

    Transaction and block results have their own fixed section lists.
    """

    def format(self, result: AnalysisResult, kind: Optional[str] = None) -> FormattedAnalysis:
        """
        Format an analysis result.

        Args:
            result: Output of the analysis engine
            kind: "transaction" or "block"; defaults to the result's kind

        Returns:
            FormattedAnalysis with the text and the matching directive

        Raises:
            PipelineError: If the kind does not match the result
        """
        kind = kind or result.kind
        if kind != result.kind:
            raise PipelineError(invalid_request_error(
                f"Cannot format a {result.kind} analysis as {kind}", {"kind": kind}
            ))

        if kind == TRANSACTION:
            sections = self._transaction_sections(result)
        elif kind == BLOCK:
            sections = self._block_sections(result)
        else:
            raise PipelineError(invalid_request_error(f"Unknown analysis kind: {kind}", {"kind": kind}))

        missing = [title for title, body in sections if not body]
        if missing:
            logger.debug(f"Sections without data: {', '.join(missing)}")

        return FormattedAnalysis(text=render_sections(sections), directive=analysis_directive(kind))

    @staticmethod
    def _section(result: AnalysisResult, title: str, steps: Sequence[str],
                 build: Callable[[], Optional[List[str]]]) -> Section:
        if any(step in result.degraded for step in steps):
            return title, None
        return title, build()

    # Shared sections

    def _network_information(self, result: AnalysisResult) -> List[str]:
        network = result.network
        health = result.network_assessment
        health_text = health.health if health.health_score is None else f"{health.health} ({health.health_score}/100)"
        return [
            f"Network: {network.name}",
            f"Chain ID: {network.chain_id}",
            f"Currency: {network.currency_symbol}",
            f"Network Health: {health_text}",
            f"Scoring Table: {result.scoring_version}",
        ]

    def _network_metrics(self, result: AnalysisResult) -> Optional[List[str]]:
        assessment = result.network_assessment
        if assessment.health_score is None:
            return None
        lines = [
            f"Average Gas Price: {format_gwei(assessment.average_gas_price)} GWEI",
            f"Network TPS: {assessment.network_tps:.2f}",
            f"Network Health: {assessment.health} ({assessment.health_score}/100)",
            f"Congestion Level: {assessment.congestion_level}",
            f"Average Block Time: {assessment.average_block_time:.2f}s",
            f"Block Time Variation: {assessment.block_time_variation:.2f}s ({assessment.gas_usage_consistency})",
            f"Average Utilization: {assessment.average_utilization:.2f}%",
        ]
        if assessment.factors:
            lines.append(f"Health Factors: {_joined(assessment.factors)}")
        if assessment.warnings:
            lines.append(f"Health Warnings: {_joined(assessment.warnings)}")
        return lines

    # Transaction sections

    def _transaction_sections(self, result: AnalysisResult) -> List[Section]:
        record: TransactionRecord = result.record
        decimals = result.network.decimals
        symbol = result.network.currency_symbol

        return [
            ("NETWORK INFORMATION", self._network_information(result)),
            self._section(result, "TRANSACTION DETAILS", ["classification"],
                          lambda: self._transaction_details(result, record, decimals, symbol)),
            self._section(result, "GAS ANALYSIS", ["classification"],
                          lambda: self._gas_analysis(result, record)),
            ("BLOCK CONTEXT", self._block_context(record)),
            ("ADDRESS ACTIVITY", self._address_activity(record)),
            self._section(result, "NETWORK METRICS", ["network"], lambda: self._network_metrics(result)),
            self._section(result, "CONTRACT INTERACTIONS", ["activity", "classification"],
                          lambda: self._contract_interactions(result, record)),
            self._section(result, "TRANSFERS", ["activity"], lambda: self._transfers(result, symbol)),
            self._section(result, "RISK ASSESSMENT", ["risk"], lambda: self._risk(result)),
            self._section(result, "TRANSACTION CLUSTERING", ["clustering"], lambda: self._clustering(result)),
            self._section(result, "MEV ANALYSIS", ["mev"], lambda: self._mev(result)),
            self._section(result, "SECURITY ANALYSIS", ["activity", "vulnerabilities"],
                          lambda: self._security(result)),
            self._section(result, "GAS OPTIMIZATION", ["gas_optimization"], lambda: self._gas_optimization(result)),
            self._section(result, "TRADING PATTERNS", ["trading_patterns"], lambda: self._trading_patterns(result)),
            self._section(result, "HYPERLIQUID ANALYSIS", ["signals"], lambda: self._signals(result)),
            self._section(result, "LIQUIDITY METRICS", ["liquidity"], lambda: self._liquidity(result, symbol)),
            ("ANALYSIS SUMMARY", self._transaction_summary(result, record)),
        ]

    def _transaction_details(self, result: AnalysisResult, record: TransactionRecord,
                             decimals: int, symbol: str) -> Optional[List[str]]:
        classification = result.classification
        if classification is None:
            return None
        return [
            f"Hash: {record.hash}",
            f"Block: #{record.block_number} ({iso_timestamp(record.block_timestamp)})",
            f"Position: Index {record.transaction_index} in block",
            f"From: {record.from_address}",
            f"To: {record.to_address or 'Contract Creation'}",
            f"Value: {format_units(record.value, decimals, decimals)} {symbol}",
            f"Status: {'Success' if record.status else 'Failed'}",
            f"Type: {classification.transaction_type}",
            f"Value Category: {classification.value_category}",
            f"Nonce: {record.nonce}",
        ]

    def _gas_analysis(self, result: AnalysisResult, record: TransactionRecord) -> Optional[List[str]]:
        if result.classification is None:
            return None
        return [
            f"Gas Used: {record.gas_used}",
            f"Gas Limit: {record.gas_limit}",
            f"Gas Price: {format_gwei(record.gas_price)} GWEI",
            f"Effective Gas Price: {format_gwei(record.effective_gas_price)} GWEI",
            f"Total Cost: {format_native_cost(record.gas_used, record.effective_gas_price)} ETH equivalent",
            f"Gas Efficiency: {result.classification.gas_efficiency} ({record.gas_efficiency:.2f}% of limit)",
        ]

    def _block_context(self, record: TransactionRecord) -> Optional[List[str]]:
        context = record.block_context
        if not context.available:
            return None
        return [
            f"Block Hash: {record.block_hash}",
            f"Block Gas Used: {context.gas_used} / {context.gas_limit}",
            f"Block Utilization: {context.utilization:.2f}%",
            f"Base Fee: {format_gwei(context.base_fee_per_gas)} GWEI",
            f"Miner: {context.miner}",
            f"Block Size: {context.size} bytes",
            f"Total Transactions: {context.transaction_count}",
        ]

    def _address_activity(self, record: TransactionRecord) -> Optional[List[str]]:
        activity = record.address_activity
        if not activity.available:
            return None
        return [
            "From Address Activity:",
            f"  - Address: {record.from_address}",
            f"  - Total Transactions: {activity.from_transaction_count}",
            f"  - Activity Level: {activity_category(activity.from_transaction_count)}",
            "To Address Activity:",
            f"  - Address: {record.to_address or 'Contract Creation'}",
            f"  - Total Transactions: {activity.to_transaction_count}",
            f"  - Activity Level: {activity_category(activity.to_transaction_count)}",
        ]

    def _contract_interactions(self, result: AnalysisResult, record: TransactionRecord) -> Optional[List[str]]:
        classification = result.classification
        activity = result.activity
        if classification is None or activity is None:
            return None
        if not classification.is_contract_interaction:
            return ["Contract Call Detected: NO", "Transaction Type: Simple transfer"]
        return [
            "Contract Call Detected: YES",
            f"Function Selector: {classification.function_selector or 'Unknown'}",
            f"Known Functions: {_joined(activity.known_functions)}",
            f"Input Data Length: {len(record.input)} characters",
            f"Contracts Touched: {_joined(activity.interactions)}",
            f"Action Types: {_joined(activity.action_types)}",
        ]

    def _transfers(self, result: AnalysisResult, symbol: str) -> Optional[List[str]]:
        activity = result.activity
        if activity is None:
            return None
        if not activity.transfers:
            return ["No value or token transfers"]
        lines = []
        for index, transfer in enumerate(activity.transfers, start=1):
            unit = symbol if transfer.token_type == "Native" else transfer.token_symbol
            lines.append(
                f"  {index}. [{transfer.token_type}] {transfer.from_address} → {transfer.to_address}: "
                f"{transfer.value} {unit}"
            )
        lines.append(f"Approvals: {activity.approvals}")
        return lines

    def _risk(self, result: AnalysisResult) -> Optional[List[str]]:
        risk = result.risk
        if risk is None:
            return None
        return [
            f"Risk Level: {risk.category}",
            f"Risk Score: {risk.score}/100",
            f"Value Risk Level: {risk.legacy_level}",
            f"Risk Factors: {_joined(risk.factors)}",
            f"Factor Risk Level: {risk.factor_risk_level}",
            f"Complexity: {risk.complexity} ({risk.complexity_points} points)",
        ]

    def _clustering(self, result: AnalysisResult) -> Optional[List[str]]:
        clustering = result.clustering
        if clustering is None:
            return None
        return [
            f"Cluster: {clustering.label}",
            f"Confidence: {clustering.confidence}%",
            f"Similarity Factors: {_joined(clustering.similarity_factors)}",
            f"Risk Contribution: {clustering.risk_contribution}",
        ]

    def _mev(self, result: AnalysisResult) -> List[str]:
        if not result.mev_indicators:
            return ["MEV Indicators: None detected"]
        lines = [f"MEV Indicators: {len(result.mev_indicators)}"]
        for indicator in result.mev_indicators:
            lines.append(
                f"  - {indicator.type} ({indicator.severity}, {indicator.confidence}% confidence): "
                f"{indicator.description}"
            )
        return lines

    def _security(self, result: AnalysisResult) -> Optional[List[str]]:
        if result.activity is None:
            return None
        lines = []
        for note in result.activity.security_notes:
            lines.append(f"  - [{note.level}] {note.message}")
        for vulnerability in result.vulnerabilities:
            lines.append(f"  - {vulnerability.type} ({vulnerability.severity}): {vulnerability.description}")
        if not lines:
            return ["Findings: None"]
        return ["Findings:"] + lines

    def _gas_optimization(self, result: AnalysisResult) -> Optional[List[str]]:
        gas = result.gas_optimization
        if gas is None:
            return None
        return [
            f"Efficiency: {gas.efficiency}",
            f"Optimization: {_joined(gas.optimization)}",
            f"Recommendations: {_joined(gas.recommendations)}",
        ]

    def _trading_patterns(self, result: AnalysisResult) -> Optional[List[str]]:
        patterns = result.trading_patterns
        if patterns is None:
            return None
        return [
            f"Transaction Type: {patterns.transaction_type}",
            f"Behavior Type: {patterns.behavior_type}",
            f"Primary Type: {patterns.primary_type} ({patterns.activity_level})",
            f"Automation Level: {patterns.automation_level}",
            f"Sophistication: {patterns.sophistication}",
            f"Intent: {patterns.intent}",
            f"Primary Strategy: {patterns.primary_strategy}",
            f"Trading Style: {patterns.trading_style}",
            f"Frequency: {patterns.frequency}",
            f"Trader Sophistication: {patterns.trader_sophistication}",
            f"Patterns: {_joined(patterns.patterns)}",
        ]

    def _signals(self, result: AnalysisResult) -> Optional[List[str]]:
        signals = result.signals
        if signals is None:
            return None
        return [
            "Trading:",
            f"  - Perpetual Trade: {signals.is_perpetual_trade}",
            f"  - Spot Trade: {signals.is_spot_trade}",
            f"  - Liquidity Action: {signals.is_liquidity_action}",
            f"  - Trade Direction: {signals.trade_direction}",
            f"  - Estimated Size: {signals.estimated_size}",
            "DEX Activity:",
            f"  - Is DEX Transaction: {signals.dex.is_dex_transaction}",
            f"  - Estimated Volume: {signals.dex.estimated_volume}",
            f"  - DEX Type: {signals.dex.dex_type}",
            "Perpetuals Trading:",
            f"  - Has Perp Activity: {signals.perp.has_perp_activity}",
            f"  - Position Type: {signals.perp.position_type}",
            f"  - Leverage Indicators: {_joined(signals.perp.leverage_indicators)}",
            f"  - Leverage Ratio: {signals.perp.leverage_ratio}",
            f"  - Margin Used: {signals.perp.margin_used}",
            "Order Book:",
            f"  - Placement: {signals.order_book.is_order_placement}",
            f"  - Cancellation: {signals.order_book.is_order_cancellation}",
            f"  - Execution: {signals.order_book.is_order_execution}",
            f"  - Order Type: {signals.order_book.order_type}",
            "Liquidity Events:",
            f"  - Has Liquidity Activity: {signals.liquidity.has_liquidity_activity}",
            f"  - Liquidity Type: {signals.liquidity.liquidity_type}",
            f"  - Estimated Amount: {signals.liquidity.estimated_amount}",
            f"  - LP Tokens: {signals.liquidity.lp_tokens}",
        ]

    def _liquidity(self, result: AnalysisResult, symbol: str) -> Optional[List[str]]:
        metrics = result.liquidity_metrics
        if metrics is None:
            return None
        return [
            f"Total Transfer Value: {metrics.total_transfer_value} {symbol}",
            f"Impact Level: {metrics.impact_level}",
            f"Liquidity Score: {metrics.liquidity_score}",
            f"Market Conditions: {metrics.market_conditions}",
            f"Recommendations: {_joined(metrics.recommendations)}",
        ]

    def _transaction_summary(self, result: AnalysisResult, record: TransactionRecord) -> List[str]:
        network = result.network
        classification = result.classification
        assessment = result.network_assessment
        lines = []
        if classification is not None:
            lines.append(
                f"This is a {classification.value_category} {classification.transaction_type.lower()} "
                f"on {network.name}."
            )
            lines.append(
                f"The transaction {'executed successfully' if record.status else 'failed'} with "
                f"{classification.gas_efficiency.lower()} gas usage."
            )
        if assessment.health_score is not None:
            lines.append(
                f"Network conditions are {assessment.health.lower()} with "
                f"{assessment.congestion_level.lower()} congestion."
            )
        signals = result.signals
        if signals is not None and (signals.dex.is_dex_transaction or signals.perp.has_perp_activity):
            lines.append(f"This appears to be active DeFi trading activity on {network.name}.")
        if result.degraded:
            lines.append(f"Heuristics unavailable: {', '.join(result.degraded)}")
        return lines

    # Block sections

    def _block_sections(self, result: AnalysisResult) -> List[Section]:
        block: BlockRecord = result.record
        symbol = result.network.currency_symbol

        return [
            ("NETWORK INFORMATION", self._network_information(result)),
            ("BLOCK DETAILS", self._block_details(result, block)),
            self._section(result, "BLOCK PERFORMANCE", ["block"], lambda: self._block_performance(result, block)),
            self._section(result, "TRANSACTION ANALYSIS", ["block"],
                          lambda: self._block_transactions(result, block)),
            self._section(result, "NETWORK METRICS", ["network"], lambda: self._block_network_metrics(result, block)),
            self._section(result, "TRANSACTION PATTERNS", ["block"],
                          lambda: self._block_patterns(result, block, symbol)),
            ("SAMPLE TRANSACTIONS", self._sample_transactions(result, block, symbol)),
            self._section(result, "HYPERLIQUID BLOCK ANALYSIS", ["block"], lambda: self._block_estimates(result)),
            ("BLOCK SUMMARY", self._block_summary(result, block, symbol)),
        ]

    def _block_details(self, result: AnalysisResult, block: BlockRecord) -> List[str]:
        assessment = result.network_assessment
        confirmations = assessment.confirmations if assessment.confirmations is not None else "Unknown"
        return [
            f"Block Number: #{block.number}",
            f"Block Hash: {block.hash}",
            f"Parent Hash: {block.parent_hash}",
            f"Timestamp: {iso_timestamp(block.timestamp)}",
            f"Miner/Validator: {block.miner}",
            f"Block Size: {block.size} bytes",
            f"Block Position: {assessment.position}",
            f"Confirmations: {confirmations}",
        ]

    def _block_performance(self, result: AnalysisResult, block: BlockRecord) -> Optional[List[str]]:
        assessment = result.block
        if assessment is None:
            return None
        return [
            f"Gas Used: {block.gas_used}",
            f"Gas Limit: {block.gas_limit}",
            f"Block Utilization: {assessment.utilization:.2f}%",
            f"Base Fee: {format_gwei(block.base_fee_per_gas)} GWEI",
            f"Processing Time: {assessment.processing_time}",
            f"Block Efficiency: {assessment.efficiency}",
        ]

    def _block_transactions(self, result: AnalysisResult, block: BlockRecord) -> Optional[List[str]]:
        if result.block is None:
            return None
        metrics = block.metrics
        return [
            f"Total Transactions: {metrics.total_transactions}",
            f"Successful Transactions: {metrics.successful_transactions}",
            f"Failed Transactions: {metrics.failed_transactions}",
            f"Success Rate: {result.block.success_rate:.2f}%",
            f"Contract Interactions: {metrics.contract_interactions}",
            f"Unique Addresses: {metrics.unique_addresses}",
            f"High Value Transfers: {block.patterns.high_value_transfers}",
        ]

    def _block_network_metrics(self, result: AnalysisResult, block: BlockRecord) -> Optional[List[str]]:
        assessment = result.block
        if assessment is None:
            return None
        symbol = result.network.currency_symbol
        lines = [
            f"Average Gas Price: {format_gwei(block.metrics.average_gas_price)} GWEI",
            f"Total Value Transferred: {assessment.total_value:.6f} {symbol}",
            f"Average Value Per Transaction: {assessment.average_value:.6f} {symbol}",
        ]
        context = self._network_metrics(result)
        if context:
            lines.extend(line for line in context if not line.startswith("Average Gas Price"))
        return lines

    def _block_patterns(self, result: AnalysisResult, block: BlockRecord, symbol: str) -> Optional[List[str]]:
        assessment = result.block
        if assessment is None:
            return None
        lines = ["Top Senders:"]
        for index, sender in enumerate(assessment.top_senders[:TOP_ADDRESS_LIMIT], start=1):
            lines.append(
                f"  {index}. {sender.address} ({sender.transaction_count} txs, "
                f"{sender.total_value:.6f} {symbol}, {sender.significance})"
            )
        lines.append("Top Receivers:")
        for index, receiver in enumerate(assessment.top_receivers[:TOP_ADDRESS_LIMIT], start=1):
            lines.append(
                f"  {index}. {receiver.address} ({receiver.transaction_count} txs, "
                f"{receiver.total_value:.6f} {symbol}, {receiver.significance})"
            )
        distribution = block.patterns.gas_distribution
        lines.extend([
            "Gas Distribution:",
            f"  - Low Gas Transactions: {distribution.low}",
            f"  - Medium Gas Transactions: {distribution.medium}",
            f"  - High Gas Transactions: {distribution.high}",
            f"  - Analysis: {assessment.gas_distribution_analysis}",
        ])
        return lines

    def _sample_transactions(self, result: AnalysisResult, block: BlockRecord, symbol: str) -> Optional[List[str]]:
        if not block.sample_transactions:
            return None
        decimals = result.network.decimals
        lines = []
        for index, tx in enumerate(block.sample_transactions[:SAMPLE_LIMIT], start=1):
            lines.extend([
                f"Transaction {index}:",
                f"  - Hash: {tx.hash}",
                f"  - From: {tx.from_address} → To: {tx.to_address or 'Contract Creation'}",
                f"  - Value: {format_units(tx.value, decimals, decimals)} {symbol}",
                f"  - Gas: {tx.gas_used} ({format_gwei(tx.gas_price)} GWEI)",
                f"  - Status: {'Success' if tx.status else 'Failed'}",
                f"  - Contract Call: {_yes_no(tx.is_contract_call)}",
            ])
        return lines

    def _block_estimates(self, result: AnalysisResult) -> Optional[List[str]]:
        assessment = result.block
        if assessment is None:
            return None
        return [
            f"DEX Volume Estimate: {assessment.dex_volume_estimate}",
            "Perpetuals Activity:",
            f"  - Estimated Perp Transactions: {assessment.estimated_perp_transactions}",
            f"  - Perp Activity Level: {assessment.perp_activity_level}",
            "Liquidity Provision:",
            f"  - Estimated Liquidity Operations: {assessment.estimated_liquidity_operations}",
            f"  - Liquidity Health Score: {assessment.liquidity_health}/100",
            f"Network Stability: {assessment.stability}",
            f"Market Conditions: {assessment.market_conditions}",
        ]

    def _block_summary(self, result: AnalysisResult, block: BlockRecord, symbol: str) -> List[str]:
        network = result.network
        metrics = block.metrics
        lines = [
            f"Block #{block.number} on {network.name} processed {block.transaction_count} transactions.",
        ]
        assessment = result.block
        if assessment is not None and "block" not in result.degraded:
            lines.extend([
                f"Block utilization was {ratio_percent(block.gas_used, block.gas_limit):.2f}% "
                f"with {assessment.efficiency} efficiency.",
                f"Network conditions show {assessment.stability.lower()} stability and "
                f"{assessment.market_conditions.lower()}.",
                f"Transaction success rate: {assessment.success_rate:.1f}%",
            ])
            total = f"{assessment.total_value:.6f} {symbol}"
            if assessment.total_value > 100000:
                lines.append(f"High-value block with significant trading activity ({total} total value).")
            elif assessment.total_value > 10000:
                lines.append(f"Active trading block with moderate volume ({total} total value).")
            else:
                lines.append(f"Standard block with normal trading activity ({total} total value).")
        sampled = len(block.sample_transactions)
        if sampled < metrics.total_transactions:
            lines.append(f"Sample metrics cover {sampled} of {metrics.total_transactions} transactions.")
        if result.degraded:
            lines.append(f"Heuristics unavailable: {', '.join(result.degraded)}")
        return lines

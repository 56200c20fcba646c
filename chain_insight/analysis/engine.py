"""
Analysis engine combining every heuristic into one result.
"""

import logging
from typing import Callable, List, Optional, TypeVar, Union

from chain_insight.analysis import clustering as clustering_rules
from chain_insight.analysis.activity import build_activity_profile, classify_transaction
from chain_insight.analysis.mev import detect_mev
from chain_insight.analysis.models import (
    BLOCK,
    TRANSACTION,
    ActivityProfile,
    AnalysisResult,
    BlockAssessment,
    Classification,
    ClusteringResult,
    GasOptimization,
    LiquidityMetrics,
    NetworkAssessment,
    NetworkContext,
    RiskAssessment,
    TradingPatterns,
    TradingSignals,
)
from chain_insight.analysis.network import assess_block, assess_network
from chain_insight.analysis.risk import analyze_gas_optimization, assess_risk, detect_vulnerabilities
from chain_insight.analysis.scoring import SCORING_TABLE, ScoringTable
from chain_insight.analysis.trading import analyze_trading_patterns, build_trading_signals, liquidity_metrics
from chain_insight.config.models import AnalysisConfig
from chain_insight.data.models import BlockRecord, TransactionRecord
from chain_insight.utils.error_classification import PipelineError, invalid_request_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AnalysisEngine:
    """
    Run the heuristic analyses over a transaction or block record.

    Every heuristic runs guarded: a failing step logs the error, falls back
    to its neutral default and is listed in ``AnalysisResult.degraded``.
    The engine holds no mutable state, so identical inputs produce identical
    results.
    """

    def __init__(self, scoring: ScoringTable = SCORING_TABLE, config: Optional[AnalysisConfig] = None):
        """
        Initialize the analysis engine.

        Args:
            scoring: Versioned scoring constants
            config: Analysis options
        """
        self.scoring = scoring
        self.config = config or AnalysisConfig()
        self.clustering_rules = clustering_rules.default_rules(scoring)

    def analyze(self, record: Union[TransactionRecord, BlockRecord], context: NetworkContext) -> AnalysisResult:
        """
        Analyze a record of either kind.

        Raises:
            PipelineError: If the record is neither a transaction nor a block
        """
        if isinstance(record, TransactionRecord):
            return self.analyze_transaction(record, context)
        if isinstance(record, BlockRecord):
            return self.analyze_block(record, context)
        raise PipelineError(invalid_request_error(
            f"Cannot analyze record of type {type(record).__name__}"
        ))

    def analyze_transaction(self, record: TransactionRecord, context: NetworkContext) -> AnalysisResult:
        """
        Analyze a single transaction.

        Args:
            record: Transaction with its block context and logs
            context: Network the transaction belongs to and recent blocks

        Returns:
            AnalysisResult with every transaction section filled in
        """
        network = context.network
        scoring = self.scoring
        degraded: List[str] = []

        def guard(step: str, func: Callable[[], T], default: T) -> T:
            return self._guard(step, func, default, degraded, record.hash)

        activity = guard("activity", lambda: build_activity_profile(record, network), ActivityProfile())
        classification = guard(
            "classification", lambda: classify_transaction(record, network, scoring), Classification()
        )
        value = classification.value

        clustering = guard(
            "clustering",
            lambda: clustering_rules.cluster(
                clustering_rules.ClusteringFeatures.from_activity(record, activity, value),
                self.clustering_rules,
            ),
            ClusteringResult(),
        )
        mev_indicators = guard(
            "mev", lambda: detect_mev(record, activity, value, context.analysis_time), []
        )
        vulnerabilities = guard("vulnerabilities", lambda: detect_vulnerabilities(record, activity, scoring), [])
        gas = guard(
            "gas_optimization",
            lambda: analyze_gas_optimization(record, activity, record.network_metrics.average_gas_price, scoring),
            GasOptimization(),
        )
        signals = guard("signals", lambda: build_trading_signals(record, network), TradingSignals())
        patterns = guard(
            "trading_patterns",
            lambda: analyze_trading_patterns(record, activity, network, clustering, signals, scoring),
            TradingPatterns(),
        )
        risk = guard(
            "risk",
            lambda: assess_risk(record, classification, activity, patterns.pattern_risk,
                                mev_indicators, vulnerabilities, gas, scoring),
            RiskAssessment(),
        )
        liquidity = guard("liquidity", lambda: liquidity_metrics(activity, scoring), LiquidityMetrics())
        network_assessment = self._network_assessment(
            context, record.block_number, record.network_metrics.average_gas_price, True, degraded, record.hash
        )

        return AnalysisResult(
            kind=TRANSACTION,
            network=network,
            record=record,
            scoring_version=scoring.version,
            network_assessment=network_assessment,
            activity=activity,
            classification=classification,
            risk=risk,
            clustering=clustering,
            mev_indicators=tuple(mev_indicators),
            vulnerabilities=tuple(vulnerabilities),
            gas_optimization=gas,
            trading_patterns=patterns,
            signals=signals,
            liquidity_metrics=liquidity,
            degraded=tuple(degraded),
        )

    def analyze_block(self, block: BlockRecord, context: NetworkContext) -> AnalysisResult:
        """
        Analyze a block and its sampled transactions.

        Args:
            block: Block with derived metrics and patterns
            context: Network the block belongs to and recent blocks

        Returns:
            AnalysisResult with the block assessment filled in
        """
        degraded: List[str] = []
        label = f"block {block.number}"
        assessment = self._guard(
            "block", lambda: assess_block(block, context.network, self.scoring),
            BlockAssessment(), degraded, label,
        )
        network_assessment = self._network_assessment(
            context, block.number, block.metrics.average_gas_price, False, degraded, label
        )

        return AnalysisResult(
            kind=BLOCK,
            network=context.network,
            record=block,
            scoring_version=self.scoring.version,
            network_assessment=network_assessment,
            block=assessment,
            degraded=tuple(degraded),
        )

    def _network_assessment(self, context: NetworkContext, block_number: int, average_gas_price: str,
                            context_position: bool, degraded: List[str], label: str) -> NetworkAssessment:
        if not self.config.include_network_metrics:
            return NetworkAssessment()
        return self._guard(
            "network",
            lambda: assess_network(context, block_number, average_gas_price,
                                   self.config.context_blocks, context_position),
            NetworkAssessment(),
            degraded,
            label,
        )

    @staticmethod
    def _guard(step: str, func: Callable[[], T], default: T, degraded: List[str], label: str) -> T:
        try:
            return func()
        except Exception as e:
            logger.error(f"Error in {step} analysis for {label}: {e}")
            degraded.append(step)
            return default

"""
Result types of the analysis engine.

Every section has a neutral default so a heuristic that fails can be
replaced by its default without blocking the rest of the analysis.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple, Union

from chain_insight.chains.registry import NetworkIdentity
from chain_insight.data.models import BlockRecord, RecentBlock, TransactionRecord

AnalysisKind = str
TRANSACTION = "transaction"
BLOCK = "block"


@dataclass(frozen=True)
class NetworkContext:
    """
    Light network context passed alongside a record.

    ``analysis_time`` is the wall-clock time (unix seconds) the analysis is
    run for; recency heuristics compare against it.
    """
    network: NetworkIdentity
    recent_blocks: Tuple[RecentBlock, ...] = ()
    latest_block_number: Optional[int] = None
    analysis_time: Optional[float] = None


@dataclass(frozen=True)
class TokenTransfer:
    """A value movement: native currency or a token Transfer event."""
    token_type: str
    token_address: str
    token_symbol: str
    from_address: str
    to_address: str
    value: Decimal


@dataclass(frozen=True)
class SecurityNote:
    """A warning or informational finding about an interaction."""
    level: str
    message: str
    address: Optional[str] = None


@dataclass(frozen=True)
class ActivityProfile:
    """What a transaction did: actions, transfers and contracts touched."""
    action_types: Tuple[str, ...] = ()
    transfers: Tuple[TokenTransfer, ...] = ()
    interactions: Tuple[str, ...] = ()
    approvals: int = 0
    flash_events: int = 0
    function_selector: Optional[str] = None
    known_functions: Tuple[str, ...] = ()
    security_notes: Tuple[SecurityNote, ...] = ()

    @property
    def unique_tokens(self) -> int:
        return len({transfer.token_address for transfer in self.transfers})

    @property
    def unverified_interactions(self) -> int:
        return sum(1 for note in self.security_notes if note.level == "Warning" and note.address)


@dataclass(frozen=True)
class Classification:
    transaction_type: str = "Unknown"
    value_category: str = "No Value Transfer"
    gas_efficiency: str = "Unknown"
    is_contract_interaction: bool = False
    function_selector: Optional[str] = None
    value: Decimal = Decimal(0)


@dataclass(frozen=True)
class RiskAssessment:
    """Additive risk score, its band, and the related complexity rating."""
    score: int = 0
    category: str = "Low"
    legacy_level: str = "Low"
    factors: Tuple[str, ...] = ()
    factor_risk_level: str = "Low"
    complexity: str = "Simple"
    complexity_points: int = 0


@dataclass(frozen=True)
class ClusteringResult:
    label: str = "Uncategorized"
    confidence: int = 0
    similarity_factors: Tuple[str, ...] = ()
    risk_contribution: int = 0


@dataclass(frozen=True)
class MevIndicator:
    type: str
    severity: str
    description: str
    confidence: int
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Vulnerability:
    type: str
    severity: str
    description: str


@dataclass(frozen=True)
class GasOptimization:
    efficiency: str = "Unknown"
    optimization: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TradingPatterns:
    """Behavioural reading of a transaction."""
    transaction_type: str = "Unknown"
    behavior_type: str = "Normal"
    patterns: Tuple[str, ...] = ()
    pattern_risk: int = 0
    automation_level: str = "Manual"
    sophistication: str = "Basic"
    intent: str = "Unknown"
    trading_style: str = "Standard trading"
    frequency: str = "Occasional"
    trader_sophistication: str = "Basic user"
    primary_strategy: str = "Standard Trading"
    primary_type: str = "Standard Transaction"
    activity_level: str = "Normal"


@dataclass(frozen=True)
class DexSignals:
    is_dex_transaction: bool = False
    estimated_volume: str = "Unknown"
    dex_type: str = "Unknown"


@dataclass(frozen=True)
class PerpSignals:
    has_perp_activity: bool = False
    position_type: str = "Unknown"
    leverage_indicators: Tuple[str, ...] = ()
    has_leverage: bool = False
    leverage_ratio: str = "1x"
    margin_used: str = "0"


@dataclass(frozen=True)
class OrderBookSignals:
    is_order_placement: bool = False
    is_order_cancellation: bool = False
    is_order_execution: bool = False
    order_type: str = "unknown"


@dataclass(frozen=True)
class LiquiditySignals:
    has_liquidity_activity: bool = False
    liquidity_type: str = "Unknown"
    estimated_amount: str = "0"
    lp_tokens: str = "0"


@dataclass(frozen=True)
class TradingSignals:
    """Protocol-level signals read from the call data and value."""
    is_perpetual_trade: bool = False
    is_spot_trade: bool = False
    is_liquidity_action: bool = False
    trade_direction: str = "unknown"
    estimated_size: str = "0"
    dex: DexSignals = field(default_factory=DexSignals)
    perp: PerpSignals = field(default_factory=PerpSignals)
    order_book: OrderBookSignals = field(default_factory=OrderBookSignals)
    liquidity: LiquiditySignals = field(default_factory=LiquiditySignals)


@dataclass(frozen=True)
class LiquidityMetrics:
    total_transfer_value: Decimal = Decimal(0)
    impact_level: str = "Minimal"
    liquidity_score: float = 0.95
    market_conditions: str = "Stable"
    recommendations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class NetworkAssessment:
    """Network conditions derived from recent blocks."""
    health_score: Optional[int] = None
    health: str = "Unknown"
    factors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    congestion_level: str = "Unknown"
    average_block_time: float = 0.0
    block_time_variation: float = 0.0
    gas_usage_consistency: str = "Stable"
    average_utilization: float = 0.0
    network_tps: float = 0.0
    average_gas_price: str = "0"
    confirmations: Optional[int] = None
    position: str = "Unknown"


@dataclass(frozen=True)
class AddressSignificance:
    address: str
    transaction_count: int
    total_value: Decimal
    significance: str


@dataclass(frozen=True)
class BlockAssessment:
    """Block-level heuristics."""
    utilization: float = 0.0
    success_rate: float = 0.0
    efficiency: str = "Moderate"
    processing_time: str = "Unknown"
    stability: str = "Unknown"
    market_conditions: str = "Stable market"
    liquidity_health: float = 0.0
    gas_distribution_analysis: str = "Low priority transactions dominant"
    dex_volume_estimate: str = "~0.00 USDC"
    estimated_perp_transactions: int = 0
    perp_activity_level: str = "Moderate"
    estimated_liquidity_operations: int = 0
    top_senders: Tuple[AddressSignificance, ...] = ()
    top_receivers: Tuple[AddressSignificance, ...] = ()
    total_value: Decimal = Decimal(0)
    average_value: Decimal = Decimal(0)


@dataclass(frozen=True)
class AnalysisResult:
    """
    Merged output of every heuristic for one record.

    Transaction-only sections are None for blocks and ``block`` is None for
    transactions. ``degraded`` names the heuristics that fell back to their
    defaults.
    """
    kind: AnalysisKind
    network: NetworkIdentity
    record: Union[TransactionRecord, BlockRecord]
    scoring_version: str
    network_assessment: NetworkAssessment = field(default_factory=NetworkAssessment)
    activity: Optional[ActivityProfile] = None
    classification: Optional[Classification] = None
    risk: Optional[RiskAssessment] = None
    clustering: Optional[ClusteringResult] = None
    mev_indicators: Tuple[MevIndicator, ...] = ()
    vulnerabilities: Tuple[Vulnerability, ...] = ()
    gas_optimization: Optional[GasOptimization] = None
    trading_patterns: Optional[TradingPatterns] = None
    signals: Optional[TradingSignals] = None
    liquidity_metrics: Optional[LiquidityMetrics] = None
    block: Optional[BlockAssessment] = None
    degraded: Tuple[str, ...] = ()

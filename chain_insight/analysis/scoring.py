"""
Versioned table of the heuristic scoring constants.

Every point value and band cutoff used by the analysis engine lives here so
a change to the heuristics is a change to one named, versioned table.
Values are compared in display units (the network currency, not raw units).
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Tuple

SCORING_TABLE_VERSION = "2024.1"


@dataclass(frozen=True)
class ScoringTable:
    """Thresholds, point values and band cutoffs."""
    version: str = SCORING_TABLE_VERSION

    # Value tiers, highest first: (exclusive lower bound, label, risk points)
    value_tiers: Tuple[Tuple[Decimal, str, int], ...] = (
        (Decimal(100000), "Very High Value", 30),
        (Decimal(10000), "High Value", 15),
        (Decimal(1000), "Medium Value", 5),
        (Decimal(0), "Low Value", 0),
    )
    no_value_label: str = "No Value Transfer"

    # Additive risk score
    contract_interaction_points: int = 20
    low_activity_points: int = 10
    low_activity_threshold: int = 5
    unverified_contract_points: int = 25
    max_risk_score: int = 100
    # Bands: score below the cutoff gets the label, else the final label
    risk_bands: Tuple[Tuple[int, str], ...] = ((25, "Low"), (50, "Medium"), (75, "High"))
    top_risk_band: str = "Critical"

    # Legacy value-only risk level
    legacy_high_value: Decimal = Decimal(100000)
    legacy_medium_value: Decimal = Decimal(10000)

    # Complexity score
    transfer_complexity_points: int = 2
    interaction_complexity_points: int = 3
    security_note_complexity_points: int = 1
    multi_action_complexity_points: int = 5
    mev_indicator_complexity_points: int = 2
    # Bands: points at or below the cutoff get the label
    complexity_bands: Tuple[Tuple[int, str], ...] = ((5, "Simple"), (15, "Moderate"), (30, "Complex"))
    top_complexity_band: str = "Very Complex"

    # Factor-count risk level: factors at or below the cutoff get the label
    factor_risk_bands: Tuple[Tuple[int, str], ...] = ((0, "Low"), (3, "Medium"), (6, "High"))
    top_factor_risk_band: str = "Critical"

    # Gas usage ratio labels (used / limit)
    efficient_gas_ratio: Decimal = Decimal("0.5")
    moderate_gas_ratio: Decimal = Decimal("0.8")

    # Raw gas thresholds
    high_gas_usage: int = 500000
    very_high_gas_usage: int = 1000000
    clustering_automation_gas: int = 200000
    liquidation_gas_usage: int = 800000

    # Nonce thresholds for automation
    semi_automated_nonce: int = 1000
    fully_automated_nonce: int = 5000

    # Liquidity impact tiers: (exclusive lower bound, impact, liquidity score)
    liquidity_tiers: Tuple[Tuple[Decimal, str, float], ...] = (
        (Decimal(100000), "High", 0.75),
        (Decimal(10000), "Medium", 0.85),
    )
    liquidity_default: Tuple[str, float] = ("Minimal", 0.95)
    liquidity_monitor_value: Decimal = Decimal(50000)

    # Block estimates as shares of observed activity
    dex_volume_share: Decimal = Decimal("0.3")
    perp_call_share: Decimal = Decimal("0.2")
    liquidity_call_share: Decimal = Decimal("0.1")

    def value_category(self, value: Decimal) -> str:
        for bound, label, _ in self.value_tiers:
            if value > bound:
                return label
        return self.no_value_label

    def value_risk_points(self, value: Decimal) -> int:
        for bound, _, points in self.value_tiers:
            if value > bound:
                return points
        return 0

    def risk_band(self, score: int) -> str:
        for cutoff, label in self.risk_bands:
            if score < cutoff:
                return label
        return self.top_risk_band

    def legacy_risk_level(self, value: Decimal) -> str:
        if value > self.legacy_high_value:
            return "High"
        if value > self.legacy_medium_value:
            return "Medium"
        return "Low"

    def complexity_band(self, points: int) -> str:
        for cutoff, label in self.complexity_bands:
            if points <= cutoff:
                return label
        return self.top_complexity_band

    def factor_risk_level(self, factors: int) -> str:
        for cutoff, label in self.factor_risk_bands:
            if factors <= cutoff:
                return label
        return self.top_factor_risk_band

    def gas_usage_label(self, gas_used: int, gas_limit: int) -> str:
        if gas_limit <= 0:
            return "High Usage"
        ratio = Decimal(gas_used) / Decimal(gas_limit)
        if ratio < self.efficient_gas_ratio:
            return "Efficient"
        if ratio < self.moderate_gas_ratio:
            return "Moderate"
        return "High Usage"

    def liquidity_tier(self, total_value: Decimal) -> Tuple[str, float]:
        for bound, impact, score in self.liquidity_tiers:
            if total_value > bound:
                return impact, score
        return self.liquidity_default


SCORING_TABLE = ScoringTable()

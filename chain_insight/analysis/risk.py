"""
Risk scoring, complexity, vulnerabilities and gas optimization.
"""

import math
from decimal import Decimal
from typing import List, Sequence

from chain_insight.analysis.activity import TOKEN_SWAP
from chain_insight.analysis.models import (
    ActivityProfile,
    Classification,
    GasOptimization,
    MevIndicator,
    RiskAssessment,
    Vulnerability,
)
from chain_insight.analysis.scoring import ScoringTable
from chain_insight.data.models import TransactionRecord
from chain_insight.utils.values import to_gwei, to_int

HIGH_VALUE_TRANSFER = Decimal(1000)
MULTIPLE_APPROVAL_COUNT = 2


def risk_score(value: Decimal, is_contract_call: bool, sender_activity: int,
               unverified_contracts: int, scoring: ScoringTable) -> int:
    """
    Additive risk score clamped to [0, max].

    Args:
        value: Transaction value in display units
        is_contract_call: Whether the transaction carries call data
        sender_activity: Known transaction count of the sender
        unverified_contracts: Interactions that could not be verified
        scoring: Scoring constants
    """
    score = scoring.value_risk_points(value)
    if is_contract_call:
        score += scoring.contract_interaction_points
    if sender_activity < scoring.low_activity_threshold:
        score += scoring.low_activity_points
    score += unverified_contracts * scoring.unverified_contract_points
    return max(0, min(scoring.max_risk_score, score))


def risk_factors(value: Decimal, is_contract_call: bool, sender_activity: int,
                 unverified_contracts: int, scoring: ScoringTable) -> List[str]:
    factors = []
    if value > scoring.legacy_high_value:
        factors.append("High value transaction")
    elif value > scoring.legacy_medium_value:
        factors.append("Significant value")
    if is_contract_call:
        factors.append("Contract interaction")
    if sender_activity < scoring.low_activity_threshold:
        factors.append("Low activity address")
    if unverified_contracts:
        factors.append(f"{unverified_contracts} unverified contract interaction(s)")
    return factors


def complexity_points(activity: ActivityProfile, pattern_risk: int,
                      mev_indicators: Sequence[MevIndicator], scoring: ScoringTable) -> int:
    points = len(activity.transfers) * scoring.transfer_complexity_points
    points += len(activity.interactions) * scoring.interaction_complexity_points
    points += len(activity.security_notes) * scoring.security_note_complexity_points
    if len(activity.action_types) > 1:
        points += scoring.multi_action_complexity_points
    points += pattern_risk
    points += len(mev_indicators) * scoring.mev_indicator_complexity_points
    return points


def factor_count(activity: ActivityProfile, vulnerabilities: Sequence[Vulnerability],
                 mev_indicators: Sequence[MevIndicator], gas: GasOptimization) -> int:
    """Number of risk factors behind the factor-count risk level."""
    factors = 0
    if len(activity.interactions) > 3:
        factors += 1
    if TOKEN_SWAP in activity.action_types:
        factors += 1
    if any(note.level == "Warning" for note in activity.security_notes):
        factors += 2
    if len(activity.transfers) > 5:
        factors += 1
    if len(activity.action_types) > 1:
        factors += 1
    factors += len(vulnerabilities)
    if mev_indicators:
        factors += math.ceil(len(mev_indicators) / 2)
    if gas.efficiency == "Very Poor":
        factors += 2
    return factors


def assess_risk(record: TransactionRecord, classification: Classification, activity: ActivityProfile,
                pattern_risk: int, mev_indicators: Sequence[MevIndicator],
                vulnerabilities: Sequence[Vulnerability], gas: GasOptimization,
                scoring: ScoringTable) -> RiskAssessment:
    """Combine the additive score, factor count and complexity into one assessment."""
    sender_activity = record.address_activity.from_transaction_count
    unverified = activity.unverified_interactions
    score = risk_score(classification.value, classification.is_contract_interaction,
                       sender_activity, unverified, scoring)
    points = complexity_points(activity, pattern_risk, mev_indicators, scoring)

    return RiskAssessment(
        score=score,
        category=scoring.risk_band(score),
        legacy_level=scoring.legacy_risk_level(classification.value),
        factors=tuple(risk_factors(classification.value, classification.is_contract_interaction,
                                   sender_activity, unverified, scoring)),
        factor_risk_level=scoring.factor_risk_level(factor_count(activity, vulnerabilities,
                                                                  mev_indicators, gas)),
        complexity=scoring.complexity_band(points),
        complexity_points=points,
    )


def detect_vulnerabilities(record: TransactionRecord, activity: ActivityProfile,
                           scoring: ScoringTable) -> List[Vulnerability]:
    vulnerabilities = []

    if to_int(record.gas_used) > scoring.very_high_gas_usage:
        vulnerabilities.append(Vulnerability(
            type="HIGH_GAS_USAGE",
            severity="Medium",
            description="Extremely high gas usage - potential inefficient or malicious contract",
        ))

    unverified = activity.unverified_interactions
    if unverified:
        vulnerabilities.append(Vulnerability(
            type="UNVERIFIED_CONTRACTS",
            severity="High",
            description=f"Interaction with {unverified} unverified contracts",
        ))

    high_value = [transfer for transfer in activity.transfers if transfer.value > HIGH_VALUE_TRANSFER]
    if high_value:
        vulnerabilities.append(Vulnerability(
            type="HIGH_VALUE_TRANSFER",
            severity="Medium",
            description=f"High value transfer detected: {len(high_value)} transfers > 1000 tokens",
        ))

    if activity.approvals > MULTIPLE_APPROVAL_COUNT:
        vulnerabilities.append(Vulnerability(
            type="MULTIPLE_APPROVALS",
            severity="Medium",
            description="Multiple token approvals detected - verify contract trustworthiness",
        ))

    return vulnerabilities


def analyze_gas_optimization(record: TransactionRecord, activity: ActivityProfile,
                             network_gas_price: str, scoring: ScoringTable) -> GasOptimization:
    """
    Compare the paid gas price with the network average.

    Returns the neutral default when the transaction has no gas price or
    gas usage.
    """
    gas_used = to_int(record.gas_used)
    if to_int(record.gas_price) == 0 or gas_used == 0:
        return GasOptimization()

    efficiency = "Unknown"
    optimization: List[str] = []
    recommendations: List[str] = []

    tx_price = to_gwei(record.gas_price)
    network_price = to_gwei(network_gas_price)
    if network_price > 0:
        difference = (tx_price - network_price) / network_price * 100
        if difference < -10:
            efficiency = "Excellent"
            optimization.append("Gas price significantly below network average")
        elif difference < 10:
            efficiency = "Good"
        elif difference < 50:
            efficiency = "Poor"
            recommendations.append("Consider using lower gas price for non-urgent transactions")
        else:
            efficiency = "Very Poor"
            recommendations.append("Gas price is extremely high - consider waiting for lower network congestion")

    if gas_used > scoring.high_gas_usage:
        recommendations.append("High gas usage - consider optimizing contract interactions")
    if len(activity.interactions) > 1:
        recommendations.append("Multiple contract interactions - consider batching operations")

    return GasOptimization(
        efficiency=efficiency,
        optimization=tuple(optimization),
        recommendations=tuple(recommendations),
    )

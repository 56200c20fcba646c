"""
Address risk from indexed history, and the combined risk of a transfer.

Factors are scored 0-100 and averaged into an overall score. The balance and
contract bytecode factors need live node state, which the index does not
hold; they are reported as unavailable and left out of the average.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from chain_insight.data.models import AddressStats

logger = logging.getLogger(__name__)

LOW = "LOW"
MEDIUM = "MEDIUM"
HIGH = "HIGH"
CRITICAL = "CRITICAL"
UNAVAILABLE = "UNAVAILABLE"

TRANSACTION_PATTERN = "TRANSACTION_PATTERN"
INTERACTION_HISTORY = "INTERACTION_HISTORY"
CONTRACT_VERIFICATION = "CONTRACT_VERIFICATION"
BALANCE_ANALYSIS = "BALANCE_ANALYSIS"

SUSPICIOUS_PATTERN = "SUSPICIOUS_PATTERN"

HIGH_VOLUME_TRANSACTIONS = 1000
RECIPIENT_WEIGHT = 0.7
SENDER_WEIGHT = 0.3
LARGE_AMOUNT = Decimal(1000)
SIGNIFICANT_AMOUNT = Decimal(100)


@dataclass(frozen=True)
class RiskFactor:
    type: str
    severity: str
    score: int
    description: str
    evidence: Optional[str] = None
    available: bool = True


@dataclass(frozen=True)
class RiskScore:
    """Overall 0-100 score (higher is riskier) with its band and confidence."""
    overall: float = 0.0
    confidence: int = 0
    category: str = LOW
    factors: Tuple[RiskFactor, ...] = ()


@dataclass(frozen=True)
class SecurityFlag:
    type: str
    severity: str
    description: str
    source: str
    confidence: int


@dataclass(frozen=True)
class AddressRiskAnalysis:
    """
    Risk reading of one address.

    ``is_contract`` and ``balance`` stay None: they are not part of the index.
    """
    address: str
    stats: AddressStats
    risk_score: RiskScore
    flags: Tuple[SecurityFlag, ...] = ()
    is_contract: Optional[bool] = None
    balance: Optional[str] = None


@dataclass(frozen=True)
class TransferRiskAnalysis:
    """Risk of sending ``amount`` from one address to another."""
    to_address: AddressRiskAnalysis
    from_address: Optional[AddressRiskAnalysis]
    amount: Decimal
    overall_risk: RiskScore
    warnings: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()


def categorize_risk(score: float) -> str:
    if score >= 80:
        return CRITICAL
    if score >= 60:
        return HIGH
    if score >= 40:
        return MEDIUM
    return LOW


def activity_factor(transaction_count: int) -> RiskFactor:
    """Fewer indexed transactions means less history to judge the address by."""
    if transaction_count == 0:
        return RiskFactor(TRANSACTION_PATTERN, HIGH, 70,
                          "New address with no transaction history", "Zero transactions found")
    evidence = f"{transaction_count} transactions"
    if transaction_count < 5:
        return RiskFactor(TRANSACTION_PATTERN, MEDIUM, 40, "Limited transaction history", evidence)
    if transaction_count < 50:
        return RiskFactor(TRANSACTION_PATTERN, LOW, 20, "Moderate transaction history", evidence)
    return RiskFactor(TRANSACTION_PATTERN, LOW, 10,
                      "Established address with good transaction history", evidence)


def pattern_factor(transaction_count: int) -> RiskFactor:
    if transaction_count > HIGH_VOLUME_TRANSACTIONS:
        return RiskFactor(INTERACTION_HISTORY, MEDIUM, 25,
                          "High transaction volume - possible bot or exchange",
                          f"{transaction_count} transactions - automated pattern detected")
    return RiskFactor(INTERACTION_HISTORY, LOW, 15, "Normal transaction frequency",
                      f"{transaction_count} transactions")


def unavailable_factors() -> Tuple[RiskFactor, ...]:
    return (
        RiskFactor(CONTRACT_VERIFICATION, UNAVAILABLE, 0,
                   "Contract bytecode is not indexed", available=False),
        RiskFactor(BALANCE_ANALYSIS, UNAVAILABLE, 0,
                   "Account balance is not indexed", available=False),
    )


def calculate_confidence(factors: Sequence[RiskFactor]) -> int:
    """
    Confidence grows with the number of scored factors.

    A critical or high factor moves it to a fixed floor of 60 or 70.
    """
    scored = [factor for factor in factors if factor.available]
    if not scored:
        return 0

    base = min(90, len(scored) * 20)
    severities = {factor.severity for factor in scored}
    if CRITICAL in severities:
        return max(base - 20, 60)
    if HIGH in severities:
        return max(base - 10, 70)
    return base


def score_factors(factors: Sequence[RiskFactor]) -> RiskScore:
    scored = [factor for factor in factors if factor.available]
    average = sum(factor.score for factor in scored) / len(scored) if scored else 0.0
    overall = round(max(0.0, min(100.0, average)), 1)
    return RiskScore(
        overall=overall,
        confidence=calculate_confidence(factors),
        category=categorize_risk(overall),
        factors=tuple(factors),
    )


def generate_security_flags(risk_score: RiskScore, transaction_count: int) -> List[SecurityFlag]:
    flags = []
    if risk_score.overall >= 80:
        flags.append(SecurityFlag(SUSPICIOUS_PATTERN, CRITICAL, "Multiple high-risk factors detected",
                                  "Risk Analysis", risk_score.confidence))
    if transaction_count == 0:
        flags.append(SecurityFlag(SUSPICIOUS_PATTERN, MEDIUM, "New address with no transaction history",
                                  "Activity Analysis", 85))
    return flags


def analyze_address_risk(stats: AddressStats) -> AddressRiskAnalysis:
    """
    Score an address from its indexed transaction totals.

    Args:
        stats: Totals from the transaction table

    Returns:
        AddressRiskAnalysis with scored and unavailable factors and flags
    """
    count = stats.transaction_count
    factors = (activity_factor(count), pattern_factor(count)) + unavailable_factors()
    risk_score = score_factors(factors)
    flags = generate_security_flags(risk_score, count)

    logger.debug(f"Address {stats.address}: {count} transactions, risk {risk_score.overall} ({risk_score.category})")
    return AddressRiskAnalysis(
        address=stats.address,
        stats=stats,
        risk_score=risk_score,
        flags=tuple(flags),
    )


def amount_risk(amount: Decimal) -> int:
    if amount > LARGE_AMOUNT:
        return 20
    if amount > SIGNIFICANT_AMOUNT:
        return 10
    return 0


def combine_transfer_risk(to_analysis: AddressRiskAnalysis,
                          from_analysis: Optional[AddressRiskAnalysis] = None,
                          amount: Decimal = Decimal(0)) -> RiskScore:
    """
    Weight the recipient's risk over the sender's and add an amount surcharge.

    An unknown sender contributes zero risk and does not cap the confidence.
    """
    to_score = to_analysis.risk_score
    from_score = from_analysis.risk_score if from_analysis else None

    weighted = to_score.overall * RECIPIENT_WEIGHT
    if from_score is not None:
        weighted += from_score.overall * SENDER_WEIGHT
    overall = round(min(100.0, weighted + amount_risk(amount)), 1)

    factors = to_score.factors + (from_score.factors if from_score else ())
    confidence = min(to_score.confidence, from_score.confidence if from_score else 100)
    return RiskScore(
        overall=overall,
        confidence=confidence,
        category=categorize_risk(overall),
        factors=factors,
    )


def transfer_warnings(to_analysis: AddressRiskAnalysis, overall_risk: RiskScore) -> List[str]:
    warnings = []
    if overall_risk.overall >= 80:
        warnings.append("CRITICAL RISK: Multiple suspicious factors detected")
    if to_analysis.stats.transaction_count == 0:
        warnings.append("NEW ADDRESS: No transaction history available")
    high_factors = [factor for factor in overall_risk.factors if factor.severity in (HIGH, CRITICAL)]
    if len(high_factors) >= 2:
        warnings.append("Multiple high-risk patterns detected - investigate before proceeding")
    return warnings


def transfer_recommendations(overall_risk: RiskScore) -> List[str]:
    if overall_risk.overall >= 80:
        return [
            "High risk detected - Consider avoiding this transaction",
            "Verify the recipient address through official channels",
            "Start with a small test amount if you must proceed",
        ]
    if overall_risk.overall >= 60:
        return [
            "Moderate risk - Proceed with caution",
            "Double-check the recipient address",
        ]
    return ["Low risk transaction", "Safe to proceed"]


def analyze_transfer_risk(to_stats: AddressStats, from_stats: Optional[AddressStats] = None,
                          amount: Decimal = Decimal(0)) -> TransferRiskAnalysis:
    to_analysis = analyze_address_risk(to_stats)
    from_analysis = analyze_address_risk(from_stats) if from_stats is not None else None
    overall = combine_transfer_risk(to_analysis, from_analysis, amount)

    logger.info(f"Transfer {from_stats.address if from_stats else 'unknown'} -> {to_stats.address}: "
                f"risk {overall.overall} ({overall.category})")
    return TransferRiskAnalysis(
        to_address=to_analysis,
        from_address=from_analysis,
        amount=amount,
        overall_risk=overall,
        warnings=tuple(transfer_warnings(to_analysis, overall)),
        recommendations=tuple(transfer_recommendations(overall)),
    )

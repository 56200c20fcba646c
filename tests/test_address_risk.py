"""
Tests for address and transfer risk scoring.
"""

from decimal import Decimal

import pytest

from chain_insight.analysis.address_risk import (
    CRITICAL,
    HIGH,
    LOW,
    MEDIUM,
    RiskFactor,
    activity_factor,
    analyze_address_risk,
    analyze_transfer_risk,
    amount_risk,
    calculate_confidence,
    categorize_risk,
    generate_security_flags,
    pattern_factor,
    score_factors,
)
from chain_insight.data.models import AddressStats

SENDER = "0x" + "a" * 40
RECIPIENT = "0x" + "b" * 40


def stats(address, transaction_count):
    return AddressStats(address=address, transaction_count=transaction_count, sent_count=transaction_count)


class TestRiskBands:
    """Test the 40/60/80 category bands."""

    @pytest.mark.parametrize("score, category", [
        (0, LOW),
        (39.9, LOW),
        (40, MEDIUM),
        (59.9, MEDIUM),
        (60, HIGH),
        (79.9, HIGH),
        (80, CRITICAL),
        (100, CRITICAL),
    ])
    def test_categorize_risk(self, score, category):
        assert categorize_risk(score) == category


class TestAddressFactors:
    """Test the activity and transaction pattern factors."""

    @pytest.mark.parametrize("count, severity, score", [
        (0, HIGH, 70),
        (1, MEDIUM, 40),
        (4, MEDIUM, 40),
        (5, LOW, 20),
        (49, LOW, 20),
        (50, LOW, 10),
    ])
    def test_activity_factor(self, count, severity, score):
        factor = activity_factor(count)

        assert factor.type == "TRANSACTION_PATTERN"
        assert factor.severity == severity
        assert factor.score == score

    def test_pattern_factor(self):
        assert pattern_factor(1000).score == 15
        busy = pattern_factor(1001)
        assert busy.severity == MEDIUM
        assert busy.score == 25
        assert "possible bot or exchange" in busy.description

    def test_unavailable_factors_are_not_averaged(self):
        analysis = analyze_address_risk(stats(SENDER, 3))
        factors = {factor.type: factor for factor in analysis.risk_score.factors}

        assert factors["CONTRACT_VERIFICATION"].available is False
        assert factors["BALANCE_ANALYSIS"].available is False
        # (40 + 15) / 2
        assert analysis.risk_score.overall == pytest.approx(27.5)
        assert analysis.is_contract is None
        assert analysis.balance is None


class TestConfidence:
    """Test confidence derived from the scored factors."""

    def test_no_scored_factors(self):
        assert calculate_confidence([]) == 0
        assert calculate_confidence([RiskFactor("BALANCE_ANALYSIS", "UNAVAILABLE", 0, "", available=False)]) == 0

    def test_grows_with_factor_count(self):
        factors = [RiskFactor("A", LOW, 10, "")] * 5
        assert calculate_confidence(factors[:2]) == 40
        assert calculate_confidence(factors) == 90

    def test_strong_factors_set_a_floor(self):
        low = RiskFactor("A", LOW, 10, "")
        assert calculate_confidence([low, RiskFactor("B", HIGH, 70, "")]) == 70
        assert calculate_confidence([low, RiskFactor("B", CRITICAL, 90, "")]) == 60


class TestAddressRisk:
    """Test the full address reading."""

    def test_new_address(self):
        analysis = analyze_address_risk(stats(RECIPIENT, 0))
        score = analysis.risk_score

        assert score.overall == pytest.approx(42.5)
        assert score.category == MEDIUM
        assert score.confidence == 70
        assert len(analysis.flags) == 1
        assert analysis.flags[0].type == "SUSPICIOUS_PATTERN"
        assert analysis.flags[0].severity == MEDIUM
        assert analysis.flags[0].confidence == 85

    def test_established_address(self):
        analysis = analyze_address_risk(stats(SENDER, 200))

        assert analysis.risk_score.overall == pytest.approx(12.5)
        assert analysis.risk_score.category == LOW
        assert analysis.risk_score.confidence == 40
        assert analysis.flags == ()

    def test_critical_score_raises_flag(self):
        score = score_factors([RiskFactor("A", CRITICAL, 90, ""), RiskFactor("B", HIGH, 80, "")])
        flags = generate_security_flags(score, transaction_count=12)

        assert score.overall == pytest.approx(85.0)
        assert score.category == CRITICAL
        assert [(flag.severity, flag.confidence) for flag in flags] == [(CRITICAL, 60)]


class TestTransferRisk:
    """Test combining recipient and sender risk."""

    @pytest.mark.parametrize("amount, points", [
        (Decimal(0), 0),
        (Decimal(100), 0),
        (Decimal("100.01"), 10),
        (Decimal(1000), 10),
        (Decimal(1001), 20),
    ])
    def test_amount_risk(self, amount, points):
        assert amount_risk(amount) == points

    def test_recipient_weighted_over_sender(self):
        analysis = analyze_transfer_risk(stats(RECIPIENT, 0), stats(SENDER, 3))
        overall = analysis.overall_risk

        # 42.5 * 0.7 + 27.5 * 0.3
        assert overall.overall == pytest.approx(38.0)
        assert overall.category == LOW
        assert overall.confidence == 40
        assert len(overall.factors) == 8
        assert "NEW ADDRESS: No transaction history available" in analysis.warnings
        assert analysis.recommendations == ("Low risk transaction", "Safe to proceed")

    def test_amount_surcharge(self):
        analysis = analyze_transfer_risk(stats(RECIPIENT, 0), stats(SENDER, 3), Decimal(500))

        assert analysis.overall_risk.overall == pytest.approx(48.0)
        assert analysis.overall_risk.category == MEDIUM
        assert analysis.amount == Decimal(500)

    def test_unknown_sender(self):
        analysis = analyze_transfer_risk(stats(RECIPIENT, 200))

        assert analysis.from_address is None
        assert analysis.overall_risk.overall == pytest.approx(8.75, abs=0.05)
        assert analysis.overall_risk.confidence == 40
        assert analysis.warnings == ()

    def test_high_risk_recommendations(self):
        analysis = analyze_transfer_risk(stats(RECIPIENT, 0), stats(SENDER, 0), Decimal(5000))

        # 42.5 + 20
        assert analysis.overall_risk.overall == pytest.approx(62.5)
        assert analysis.overall_risk.category == HIGH
        assert analysis.recommendations[0] == "Moderate risk - Proceed with caution"
        assert "Multiple high-risk patterns detected - investigate before proceeding" in analysis.warnings

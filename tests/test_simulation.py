"""
Tests for simulated address timelines.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from chain_insight.simulation.address_history import (
    ACCOUNT_EVENT_TYPES,
    CONTRACT_EVENT_TYPES,
    HISTORY_DAYS,
    SimulatedAddressHistory,
    TimelineEvent,
    analyze_patterns,
    regularity_score,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def history():
    return SimulatedAddressHistory(seed=42)


def make_event(timestamp, status="SUCCESS", risk_level="LOW"):
    return TimelineEvent(
        tx_hash="0x" + "0" * 64,
        timestamp=timestamp,
        event_type="SEND",
        amount=Decimal("1.5"),
        counterparty="0x" + "b" * 40,
        risk_level=risk_level,
        gas_used=21000,
        gas_price_gwei=Decimal("25.00"),
        status=status,
        description="USDC transfer sent",
    )


class TestSimulatedAddressHistory:
    """Test timeline generation."""

    def test_same_seed_same_timeline(self, chain_data):
        first = SimulatedAddressHistory(seed=7).generate(chain_data.alice, 50, now=NOW)
        second = SimulatedAddressHistory(seed=7).generate(chain_data.alice, 50, now=NOW)

        assert first == second

    def test_different_seeds_differ(self, chain_data):
        first = SimulatedAddressHistory(seed=1).generate(chain_data.alice, 5, now=NOW)
        second = SimulatedAddressHistory(seed=2).generate(chain_data.alice, 5, now=NOW)

        assert first.events != second.events

    def test_everything_is_marked_simulated(self, history, chain_data):
        timeline = history.generate(chain_data.alice, 10, now=NOW)

        assert timeline.is_simulated
        assert timeline.summary.is_simulated
        assert timeline.patterns.is_simulated
        assert all(event.is_simulated for event in timeline.events)

    def test_event_count_is_limited(self, history, chain_data):
        assert len(history.generate(chain_data.alice, 100, limit=5, now=NOW).events) == 5
        assert len(history.generate(chain_data.alice, 3, limit=20, now=NOW).events) == 3

    def test_events_newest_first_within_history_window(self, history, chain_data):
        events = history.generate(chain_data.alice, 20, now=NOW).events

        timestamps = [event.timestamp for event in events]
        assert timestamps == sorted(timestamps, reverse=True)
        assert all(NOW - timedelta(days=HISTORY_DAYS) <= ts <= NOW for ts in timestamps)
        assert all(event.event_type in ACCOUNT_EVENT_TYPES for event in events)
        assert all(len(event.tx_hash) == 66 for event in events)

    def test_contract_event_types(self, history, chain_data):
        events = history.generate(chain_data.router, 40, limit=40, is_contract=True, now=NOW).events

        assert all(event.event_type in CONTRACT_EVENT_TYPES for event in events)
        for event in events:
            if event.event_type == "TOKEN_TRANSFER":
                assert event.token == "USDC"
            if event.event_type == "NFT_TRANSFER":
                assert event.amount == Decimal(1)

    def test_summary(self, history, chain_data):
        timeline = history.generate(chain_data.alice, 10, now=NOW)
        summary = timeline.summary

        assert summary.total_transactions == 10
        assert summary.total_volume == sum(event.amount for event in timeline.events)
        assert summary.currency_symbol == "USDC"
        assert summary.most_active_day != "No data"

    def test_empty_history(self, history, chain_data):
        timeline = history.generate(chain_data.alice, 0, now=NOW)

        assert timeline.events == ()
        assert timeline.summary.most_active_day == "No data"
        assert timeline.summary.average_gas_price_gwei == Decimal("0.00")
        assert timeline.patterns.trading_behavior == "NORMAL"


class TestPatternAnalysis:
    """Test bot detection over timelines."""

    def test_regularity_of_even_spacing(self):
        events = [make_event(NOW - timedelta(hours=hour)) for hour in range(5)]
        assert regularity_score(events) == 100

    def test_regularity_needs_two_events(self):
        assert regularity_score([make_event(NOW)]) == 0
        assert regularity_score([]) == 0

    def test_regular_timing_is_automated(self):
        events = [make_event(NOW - timedelta(hours=hour)) for hour in range(12)]

        patterns = analyze_patterns(events, NOW)

        assert patterns.is_bot is True
        assert patterns.trading_behavior == "AUTOMATED"
        assert "Highly regular transaction timing" in patterns.suspicious_patterns

    def test_failure_rate(self):
        events = [
            make_event(NOW - timedelta(days=day), status="FAILED" if day < 2 else "SUCCESS")
            for day in range(10)
        ]

        patterns = analyze_patterns(events, NOW)

        assert patterns.is_bot is False
        assert patterns.failure_rate == 0.2
        assert "High transaction failure rate" in patterns.suspicious_patterns
        assert patterns.trading_behavior == "SUSPICIOUS"

    def test_high_risk_share(self):
        events = [make_event(NOW - timedelta(days=day * 3 + day ** 2), risk_level="HIGH" if day == 0 else "LOW")
                  for day in range(5)]

        patterns = analyze_patterns(events, NOW)

        assert "Multiple high-risk transactions detected" in patterns.risk_factors

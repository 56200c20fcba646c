"""
Simulated address timelines.

Nothing in this module reads chain data. Timelines are generated from a
seeded pseudo-random source and every result is marked ``is_simulated`` so it
can never be mistaken for indexed history. The analysis pipeline does not
use this module.
"""

import logging
import random
import statistics
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

CONTRACT_EVENT_TYPES = ("CONTRACT_INTERACTION", "TOKEN_TRANSFER", "NFT_TRANSFER")
ACCOUNT_EVENT_TYPES = ("SEND", "RECEIVE", "CONTRACT_INTERACTION")

HISTORY_DAYS = 365
FAILURE_PROBABILITY = 0.05
HIGH_RISK_PROBABILITY = 0.02
MEDIUM_RISK_AMOUNT = Decimal("1000")
BOT_REGULARITY_THRESHOLD = 80
BOT_MIN_EVENTS = 10
HIGH_FREQUENCY_DAILY_EVENTS = 50
ACTIVE_DAILY_EVENTS = 20
FAILURE_RATE_THRESHOLD = 0.1
HIGH_RISK_SHARE = 0.05


@dataclass(frozen=True)
class TimelineEvent:
    """One synthetic transaction on an address timeline."""
    tx_hash: str
    timestamp: datetime
    event_type: str
    amount: Decimal
    counterparty: str
    risk_level: str
    gas_used: int
    gas_price_gwei: Decimal
    status: str
    description: str
    token: Optional[str] = None
    is_simulated: bool = True


@dataclass(frozen=True)
class TimelineSummary:
    total_transactions: int
    total_volume: Decimal
    currency_symbol: str
    risk_events: int
    average_gas_price_gwei: Decimal
    most_active_day: str
    is_simulated: bool = True


@dataclass(frozen=True)
class PatternAnalysis:
    """Bot detection and behaviour over a timeline."""
    is_bot: bool = False
    regularity_score: int = 0
    failure_rate: float = 0.0
    suspicious_patterns: Tuple[str, ...] = ()
    trading_behavior: str = "NORMAL"
    risk_factors: Tuple[str, ...] = ()
    is_simulated: bool = True


@dataclass(frozen=True)
class SimulatedTimeline:
    address: str
    events: Tuple[TimelineEvent, ...]
    summary: TimelineSummary
    patterns: PatternAnalysis = field(default_factory=PatternAnalysis)
    is_simulated: bool = True


class SimulatedAddressHistory:
    """
    Generates a plausible but synthetic timeline for an address.

    The same seed, inputs and ``now`` always produce the same timeline.
    """

    def __init__(self, seed: Optional[int] = None, currency_symbol: str = "USDC"):
        """
        Initialize the generator.

        Args:
            seed: Seed of the pseudo-random source
            currency_symbol: Symbol used for native amounts
        """
        self.seed = seed
        self.currency_symbol = currency_symbol
        self._random = random.Random(seed)

    def generate(
        self,
        address: str,
        transaction_count: int,
        limit: int = 20,
        is_contract: bool = False,
        now: Optional[datetime] = None,
    ) -> SimulatedTimeline:
        """
        Generate a timeline.

        Args:
            address: Address the timeline belongs to
            transaction_count: Total transaction count the address reports
            limit: Maximum number of events
            is_contract: Whether the address is a contract
            now: Reference time, the current UTC time when omitted

        Returns:
            SimulatedTimeline with events newest first
        """
        now = now or datetime.now(timezone.utc)
        event_count = max(0, min(limit, transaction_count))

        events = sorted(
            (self._event(now, is_contract) for _ in range(event_count)),
            key=lambda event: event.timestamp,
            reverse=True,
        )
        logger.info(f"Generated {len(events)} simulated events for {address}")

        return SimulatedTimeline(
            address=address,
            events=tuple(events),
            summary=self._summarize(events),
            patterns=analyze_patterns(events, now),
        )

    def _event(self, now: datetime, is_contract: bool) -> TimelineEvent:
        rng = self._random
        timestamp = now - timedelta(days=rng.uniform(0, HISTORY_DAYS))
        risk_level = "LOW"
        token = None

        if is_contract:
            event_type = rng.choice(CONTRACT_EVENT_TYPES)
            if event_type == "CONTRACT_INTERACTION":
                amount, description = self._amount(10, 6), "Smart contract function call"
            elif event_type == "TOKEN_TRANSFER":
                amount, description = self._amount(1000, 2), "ERC20 token transfer"
                token = self.currency_symbol
            else:
                amount, description = Decimal(1), "NFT mint/transfer"
        else:
            event_type = rng.choice(ACCOUNT_EVENT_TYPES)
            if event_type == "SEND":
                amount, description = self._amount(100, 6), f"{self.currency_symbol} transfer sent"
            elif event_type == "RECEIVE":
                amount, description = self._amount(50, 6), f"{self.currency_symbol} transfer received"
            else:
                amount, description = self._amount(200, 6), "DeFi interaction"
                if rng.random() > 0.8:
                    risk_level = "MEDIUM"

        gas_used = 21000 + int(rng.random() * 200000)
        gas_price = Decimal(str(round(20 + rng.random() * 80, 2)))
        status = "FAILED" if rng.random() < FAILURE_PROBABILITY else "SUCCESS"

        if status == "FAILED" or amount > MEDIUM_RISK_AMOUNT:
            risk_level = "MEDIUM"
        if rng.random() < HIGH_RISK_PROBABILITY:
            risk_level = "HIGH"

        return TimelineEvent(
            tx_hash="0x" + "%064x" % rng.getrandbits(256),
            timestamp=timestamp,
            event_type=event_type,
            amount=amount,
            counterparty="0x" + "%040x" % rng.getrandbits(160),
            risk_level=risk_level,
            gas_used=gas_used,
            gas_price_gwei=gas_price,
            status=status,
            description=description,
            token=token,
        )

    def _amount(self, upper: float, places: int) -> Decimal:
        return Decimal(str(round(self._random.uniform(0, upper), places)))

    def _summarize(self, events: List[TimelineEvent]) -> TimelineSummary:
        total_volume = sum((event.amount for event in events), Decimal(0))
        risk_events = sum(1 for event in events if event.risk_level in ("HIGH", "MEDIUM"))

        if events:
            average_gas = (sum(event.gas_price_gwei for event in events) / len(events)).quantize(Decimal("0.01"))
            day_activity = Counter(event.timestamp.date().isoformat() for event in events)
            most_active_day = day_activity.most_common(1)[0][0]
        else:
            average_gas = Decimal("0.00")
            most_active_day = "No data"

        return TimelineSummary(
            total_transactions=len(events),
            total_volume=total_volume,
            currency_symbol=self.currency_symbol,
            risk_events=risk_events,
            average_gas_price_gwei=average_gas,
            most_active_day=most_active_day,
        )


def regularity_score(events: List[TimelineEvent]) -> int:
    """
    How evenly spaced the events are, 0-100.

    100 minus the coefficient of variation of the gaps between consecutive
    events, in percent.
    """
    if len(events) < 2:
        return 0
    ordered = sorted(events, key=lambda event: event.timestamp)
    gaps = [
        (later.timestamp - earlier.timestamp).total_seconds()
        for earlier, later in zip(ordered, ordered[1:])
    ]
    mean_gap = statistics.fmean(gaps)
    if mean_gap <= 0:
        return 0
    return round(max(0.0, 100 - statistics.pstdev(gaps) / mean_gap * 100))


def analyze_patterns(events: List[TimelineEvent], now: datetime) -> PatternAnalysis:
    """Bot detection, failure rate and trading behaviour of a timeline."""
    if not events:
        return PatternAnalysis()

    suspicious: List[str] = []
    risk_factors: List[str] = []

    regularity = regularity_score(events)
    is_bot = regularity > BOT_REGULARITY_THRESHOLD and len(events) > BOT_MIN_EVENTS
    if is_bot:
        suspicious.append("Highly regular transaction timing")

    recent = sum(1 for event in events if now - event.timestamp < timedelta(days=1))
    if recent > HIGH_FREQUENCY_DAILY_EVENTS:
        suspicious.append("High-frequency trading activity")
        risk_factors.append("Possible automated trading bot")

    failure_rate = sum(1 for event in events if event.status == "FAILED") / len(events)
    if failure_rate > FAILURE_RATE_THRESHOLD:
        suspicious.append("High transaction failure rate")
        risk_factors.append(f"{failure_rate * 100:.1f}% transaction failure rate")

    high_risk = sum(1 for event in events if event.risk_level == "HIGH")
    if high_risk > len(events) * HIGH_RISK_SHARE:
        risk_factors.append("Multiple high-risk transactions detected")

    if is_bot:
        behavior = "AUTOMATED"
    elif recent > ACTIVE_DAILY_EVENTS:
        behavior = "HIGH_FREQUENCY"
    elif suspicious:
        behavior = "SUSPICIOUS"
    else:
        behavior = "NORMAL"

    return PatternAnalysis(
        is_bot=is_bot,
        regularity_score=regularity,
        failure_rate=round(failure_rate, 4),
        suspicious_patterns=tuple(suspicious),
        trading_behavior=behavior,
        risk_factors=tuple(risk_factors),
    )

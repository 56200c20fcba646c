"""
MEV pattern detection.

Every check is independent; a transaction can raise any number of
indicators.
"""

from decimal import Decimal
from typing import List, Optional

from chain_insight.analysis.activity import TOKEN_SWAP
from chain_insight.analysis.models import ActivityProfile, MevIndicator
from chain_insight.data.models import TransactionRecord
from chain_insight.utils.values import to_gwei, to_int

SANDWICH_GAS_GWEI = Decimal(100)
SANDWICH_MAX_VALUE = Decimal("0.1")
SUSPICIOUS_GAS_GWEI = Decimal(50)
HIGH_VOLUME_TRANSFER_VALUE = Decimal(1000)
BOT_NONCE = 1000
BOT_GAS_SUFFIXES = ("000000000", "500000000")
FRONT_RUN_GAS_GWEI = Decimal(80)
FRONT_RUN_MAX_GAS_USED = 100000
FRONT_RUN_MAX_RATIO = Decimal(1000)
TIME_SENSITIVE_SECONDS = 60
TIME_SENSITIVE_GAS_GWEI = Decimal(200)


def _swap_indicators(gas_price: Decimal, value: Decimal) -> List[MevIndicator]:
    indicators = []
    if gas_price > SANDWICH_GAS_GWEI and value < SANDWICH_MAX_VALUE:
        indicators.append(MevIndicator(
            type="MEV_SANDWICH_FRONTRUN",
            severity="High",
            description="High gas price with minimal value transfer - likely sandwich attack front-running",
            confidence=85,
            details={"gas_price_gwei": gas_price, "value": value},
        ))
    if gas_price > SUSPICIOUS_GAS_GWEI:
        indicators.append(MevIndicator(
            type="MEV_SUSPICIOUS_GAS",
            severity="Medium",
            description="Unusually high gas price potentially indicating MEV competition",
            confidence=65,
            details={"gas_price_gwei": gas_price},
        ))
    return indicators


def _arbitrage_indicators(activity: ActivityProfile) -> List[MevIndicator]:
    indicators = []
    transfers = activity.transfers
    unique_tokens = activity.unique_tokens
    swap_count = sum(1 for action in activity.action_types if "Swap" in action)

    if unique_tokens >= 2 and swap_count > 0:
        token_flow = " -> ".join(transfer.token_symbol for transfer in transfers)
        circular = len(transfers) > 3
        indicators.append(MevIndicator(
            type="MEV_CIRCULAR_ARBITRAGE" if circular else "MEV_ARBITRAGE_PATTERN",
            severity="High" if circular else "Medium",
            description=("Circular arbitrage detected - token path returns to origin" if circular
                         else "Multi-token swap pattern indicating arbitrage opportunity"),
            confidence=90 if circular else 70,
            details={"token_count": unique_tokens, "swap_count": swap_count, "pattern": token_flow},
        ))

    total_value = sum((transfer.value for transfer in transfers), Decimal(0))
    if total_value > HIGH_VOLUME_TRANSFER_VALUE and len(transfers) > 4:
        indicators.append(MevIndicator(
            type="MEV_HIGH_VOLUME_ARBITRAGE",
            severity="High",
            description="High-volume multi-transfer pattern suggesting institutional arbitrage",
            confidence=80,
            details={"total_value": total_value, "transfer_count": len(transfers)},
        ))
    return indicators


def _flash_loan_indicator(activity: ActivityProfile) -> Optional[MevIndicator]:
    if not activity.flash_events:
        return None
    complex_flow = len(activity.transfers) > 3 and len(activity.interactions) > 2
    return MevIndicator(
        type="MEV_FLASH_LOAN_COMPLEX",
        severity="Critical" if complex_flow else "High",
        description=("Complex flash loan with multiple interactions - sophisticated MEV strategy"
                     if complex_flow else "Flash loan activity detected"),
        confidence=95 if complex_flow else 75,
        details={
            "flash_loan_events": activity.flash_events,
            "interactions": len(activity.interactions),
            "transfers": len(activity.transfers),
        },
    )


def has_automated_gas_pattern(gas_price: str) -> bool:
    """Gas price set to a whole or half gwei, as bots commonly do."""
    raw = to_int(gas_price)
    return raw > 0 and str(raw).endswith(BOT_GAS_SUFFIXES)


def detect_mev(record: TransactionRecord, activity: ActivityProfile, value: Decimal,
               analysis_time: Optional[float] = None) -> List[MevIndicator]:
    """
    Run every MEV check against a transaction.

    Args:
        record: Transaction being analyzed
        activity: Its activity profile
        value: Native value in display units
        analysis_time: Unix time the analysis runs for; the recency check
            is skipped without it

    Returns:
        Indicators in check order
    """
    indicators: List[MevIndicator] = []
    gas_price = to_gwei(record.gas_price)
    gas_used = to_int(record.gas_used)

    if TOKEN_SWAP in activity.action_types:
        indicators.extend(_swap_indicators(gas_price, value))

    if len(activity.transfers) > 2:
        indicators.extend(_arbitrage_indicators(activity))

    flash_loan = _flash_loan_indicator(activity)
    if flash_loan is not None:
        indicators.append(flash_loan)

    if record.nonce > BOT_NONCE and has_automated_gas_pattern(record.gas_price):
        indicators.append(MevIndicator(
            type="MEV_BOT_ACTIVITY",
            severity="Medium",
            description="Automated trading pattern detected - likely MEV bot operation",
            confidence=75,
            details={"nonce": record.nonce, "gas_pattern": "automated"},
        ))

    if gas_price > 0 and gas_used > 0:
        ratio = Decimal(gas_used) / gas_price
        if gas_price > FRONT_RUN_GAS_GWEI and gas_used < FRONT_RUN_MAX_GAS_USED and ratio < FRONT_RUN_MAX_RATIO:
            indicators.append(MevIndicator(
                type="MEV_FRONT_RUNNING",
                severity="High",
                description="High gas price with low computational work - classic front-running pattern",
                confidence=85,
                details={"gas_price_gwei": gas_price, "gas_used": gas_used, "efficiency": ratio},
            ))

    if analysis_time is not None and record.block_timestamp:
        elapsed = analysis_time - record.block_timestamp
        if elapsed < TIME_SENSITIVE_SECONDS and gas_price > TIME_SENSITIVE_GAS_GWEI:
            indicators.append(MevIndicator(
                type="MEV_TIME_SENSITIVE",
                severity="Critical",
                description="Extremely recent transaction with very high gas - time-sensitive MEV extraction",
                confidence=90,
                details={"time_since_block": elapsed, "gas_price_gwei": gas_price},
            ))

    return indicators

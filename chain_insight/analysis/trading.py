"""
Trading behaviour, intent and protocol signals.

Call data keyword checks run against the lowercased input; they only fire
for calls whose payload spells the keyword out.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from chain_insight.analysis.activity import (
    CONTRACT_DEPLOYMENT,
    CONTRACT_INTERACTION,
    NFT_TRANSFER,
    TOKEN_SWAP,
    native_value,
    normalized_input,
)
from chain_insight.analysis.mev import has_automated_gas_pattern
from chain_insight.analysis.models import (
    ActivityProfile,
    ClusteringResult,
    DexSignals,
    LiquidityMetrics,
    LiquiditySignals,
    OrderBookSignals,
    PerpSignals,
    TradingPatterns,
    TradingSignals,
)
from chain_insight.analysis.scoring import ScoringTable
from chain_insight.chains.registry import NetworkIdentity
from chain_insight.data.models import TransactionRecord
from chain_insight.utils.values import ends_with_round_gwei, to_gwei, to_int

PERP_SIGNATURES = ("1234abcd", "5678efgh", "9012ijkl", "abcd1234")
SPOT_SIGNATURES = ("a9059cbb", "23b872dd", "38ed1739")
LIQUIDITY_SIGNATURES = ("e8e33700", "baa2abde")
DEX_SWAP_SIGNATURE = "38ed1739"

PERP_KEYWORDS = ("perp", "leverage", "margin", "position")
LEVERAGE_KEYWORDS = ("perp", "leverage", "margin")
LIQUIDITY_KEYWORDS = ("liquidity", "pool", "lp", "provide", "withdraw")

MAX_GAS_PRICE_WEI = 1000000000000
OFF_HOURS_UTC = range(2, 7)

# Strategies in priority order
STRATEGY_PRIORITY = (
    "Market Making",
    "Algorithmic Trading",
    "High Frequency Trading",
    "Hedging",
    "Scalping",
)


def _contains_any(text: str, keywords) -> bool:
    return any(keyword in text for keyword in keywords)


def _usdc_amount(value: Decimal) -> str:
    return f"{value:,.2f}"


def _signature_kinds(input_data: str) -> Tuple[bool, bool, bool]:
    return (
        _contains_any(input_data, PERP_SIGNATURES),
        _contains_any(input_data, SPOT_SIGNATURES),
        _contains_any(input_data, LIQUIDITY_SIGNATURES),
    )


def _dex_signals(input_data: str, value: Decimal, symbol: str) -> DexSignals:
    has_swap = DEX_SWAP_SIGNATURE in input_data
    return DexSignals(
        is_dex_transaction=has_swap or value > 0,
        estimated_volume=f"{_usdc_amount(value)} {symbol}" if value > 0 else "Unknown",
        dex_type="Hyperliquid DEX" if has_swap else "Unknown",
    )


def _position_type(input_data: str) -> str:
    if "long" in input_data:
        return "Long Position"
    if "short" in input_data:
        return "Short Position"
    if "close" in input_data:
        return "Position Close"
    return "Unknown"


def _leverage_ratio(value: Decimal) -> str:
    if value > 100000:
        return "10x+"
    if value > 50000:
        return "5-10x"
    if value > 10000:
        return "2-5x"
    return "1x"


def _perp_signals(input_data: str, value: Decimal, symbol: str) -> PerpSignals:
    indicators = []
    if "leverage" in input_data:
        indicators.append("Explicit leverage call")
    if "margin" in input_data:
        indicators.append("Margin operation")
    if value > 50000:
        indicators.append("High value suggesting leverage")

    has_leverage = _contains_any(input_data, LEVERAGE_KEYWORDS)
    return PerpSignals(
        has_perp_activity=_contains_any(input_data, PERP_KEYWORDS),
        position_type=_position_type(input_data),
        leverage_indicators=tuple(indicators),
        has_leverage=has_leverage,
        leverage_ratio=_leverage_ratio(value) if has_leverage else "1x",
        margin_used=f"{value * Decimal('0.1'):.2f} {symbol}" if has_leverage else "0",
    )


def _order_book_signals(input_data: str) -> OrderBookSignals:
    placement = _contains_any(input_data, ("place", "submit"))
    if "limit" in input_data:
        order_type = "limit"
    elif "market" in input_data:
        order_type = "market"
    elif "stop" in input_data:
        order_type = "stop-loss"
    elif "take" in input_data:
        order_type = "take-profit"
    elif placement:
        order_type = "market"
    else:
        order_type = "unknown"

    return OrderBookSignals(
        is_order_placement=placement,
        is_order_cancellation=_contains_any(input_data, ("cancel", "remove")),
        is_order_execution=_contains_any(input_data, ("execute", "fill", "match")),
        order_type=order_type,
    )


def _liquidity_signals(input_data: str, value: Decimal, record: TransactionRecord,
                       network: NetworkIdentity) -> LiquiditySignals:
    if _contains_any(input_data, ("add", "provide")):
        liquidity_type = "Liquidity Addition"
    elif _contains_any(input_data, ("remove", "withdraw")):
        liquidity_type = "Liquidity Removal"
    else:
        liquidity_type = "Unknown"

    pool_interaction = _contains_any(input_data, ("addliquidity", "deposit", "removeliquidity", "withdraw", "pool"))
    lp_tokens = f"~{value * Decimal('0.95'):.2f} LP" if pool_interaction and value > 0 else "0"

    return LiquiditySignals(
        has_liquidity_activity=_contains_any(input_data, LIQUIDITY_KEYWORDS),
        liquidity_type=liquidity_type,
        estimated_amount=f"{value:.{network.decimals}f}" if to_int(record.value) else "0",
        lp_tokens=lp_tokens,
    )


def build_trading_signals(record: TransactionRecord, network: NetworkIdentity) -> TradingSignals:
    """Read protocol-level trading signals from the call data and value."""
    input_data = normalized_input(record)
    value = native_value(record, network)
    symbol = network.currency_symbol
    is_perp, is_spot, is_liquidity = _signature_kinds(input_data)

    if is_perp:
        if "open" in input_data:
            direction = "long/short"
        elif "close" in input_data:
            direction = "close"
        else:
            direction = "unknown"
    elif is_spot:
        direction = "buy/sell"
    else:
        direction = "unknown"

    return TradingSignals(
        is_perpetual_trade=is_perp,
        is_spot_trade=is_spot,
        is_liquidity_action=is_liquidity,
        trade_direction=direction,
        estimated_size=f"~${_usdc_amount(value)} {symbol}" if value > 0 else "0",
        dex=_dex_signals(input_data, value, symbol),
        perp=_perp_signals(input_data, value, symbol),
        order_book=_order_book_signals(input_data),
        liquidity=_liquidity_signals(input_data, value, record, network),
    )


def detected_strategies(input_data: str, value: Decimal, signals: TradingSignals) -> List[str]:
    """Strategies whose predicates match, in priority order."""
    detected = {
        "Market Making": signals.is_liquidity_action or "provide" in input_data,
        "Algorithmic Trading": "batch" in input_data or "multi" in input_data,
        "High Frequency Trading": value < 100 and (signals.is_spot_trade or signals.perp.has_leverage),
        "Hedging": signals.perp.has_leverage and signals.is_spot_trade,
        "Scalping": value < 1000 and (signals.is_spot_trade or signals.perp.has_leverage),
    }
    return [name for name in STRATEGY_PRIORITY if detected[name]]


def primary_strategy(input_data: str, value: Decimal, signals: TradingSignals) -> str:
    strategies = detected_strategies(input_data, value, signals)
    return strategies[0] if strategies else "Standard Trading"


def infer_intent(record: TransactionRecord, activity: ActivityProfile,
                 network: NetworkIdentity, scoring: ScoringTable) -> Tuple[str, List[str], int]:
    """
    Infer the intent of a transaction.

    Later matches override earlier ones; indicators of every matching rule
    are kept.

    Returns:
        Tuple of (intent, indicators, risk contribution)
    """
    intent, indicators, contribution = "Unknown", [], 0
    transfers = activity.transfers
    has_swap = TOKEN_SWAP in activity.action_types

    if has_swap and len(transfers) > 2 and activity.unique_tokens >= 3:
        intent, contribution = "Profit Maximization", 2
        indicators.append("Multi-token arbitrage pattern")

    if len(transfers) > 5 and to_int(record.gas_used) > scoring.liquidation_gas_usage:
        intent, contribution = "Liquidation/Emergency", 3
        indicators.append("High transfer count with urgent gas usage")

    sender = (record.from_address or "").lower()
    if sum(1 for transfer in transfers if transfer.to_address.lower() == sender) > 2:
        intent, contribution = "Asset Collection", 1
        indicators.append("Multiple inbound transfers to sender")

    if network.is_testnet and CONTRACT_DEPLOYMENT in activity.action_types:
        intent, contribution = "Development/Testing", 0
        indicators.append("Contract deployment on testnet")

    if has_swap and len(transfers) <= 2:
        intent, contribution = "Normal Trading", 0
        indicators.append("Standard token exchange")

    return intent, indicators, contribution


def _trading_style(value: Decimal, gas_price_gwei: Decimal) -> str:
    if value < 100 and gas_price_gwei > 20:
        return "High-frequency trading"
    if value > 50000:
        return "Large volume trading"
    if gas_price_gwei < 5:
        return "Patient trading"
    return "Standard trading"


def _frequency(transaction_count: int) -> str:
    if transaction_count > 1000:
        return "Very high frequency"
    if transaction_count > 100:
        return "High frequency"
    if transaction_count > 10:
        return "Regular"
    return "Occasional"


def _trader_sophistication(record: TransactionRecord) -> str:
    is_contract_call = normalized_input(record) != "0x"
    high_activity = record.address_activity.from_transaction_count > 100
    if is_contract_call and high_activity and not ends_with_round_gwei(record.gas_price):
        return "Advanced trader"
    if is_contract_call or high_activity:
        return "Intermediate trader"
    return "Basic user"


def _primary_type(activity: ActivityProfile) -> Tuple[str, str]:
    has_swap = TOKEN_SWAP in activity.action_types or CONTRACT_INTERACTION in activity.action_types
    if has_swap and len(activity.transfers) > 1:
        return "DeFi Trading", "Active"
    if any(transfer.value > 1000 for transfer in activity.transfers):
        return "High Value Transfer", "Significant"
    if len(activity.interactions) > 2:
        return "Complex Contract Interaction", "Advanced"
    return "Standard Transaction", "Normal"


def analyze_trading_patterns(record: TransactionRecord, activity: ActivityProfile, network: NetworkIdentity,
                             clustering: ClusteringResult, signals: Optional[TradingSignals],
                             scoring: ScoringTable) -> TradingPatterns:
    """
    Behaviour type, automation level, sophistication and intent.

    The accumulated pattern risk includes the clustering contribution and
    feeds the complexity score.
    """
    patterns: List[str] = []
    risk = 0
    transaction_type = "Unknown"
    behavior_type = "Normal"
    sophistication = "Basic"
    automation = "Manual"
    transfers = len(activity.transfers)
    interactions = len(activity.interactions)

    if TOKEN_SWAP in activity.action_types and transfers >= 2:
        swap_complexity = transfers + interactions
        if swap_complexity > 8:
            transaction_type = "Complex DEX Strategy"
            patterns.append("Multi-step DEX arbitrage or advanced trading")
            risk += 3
        elif swap_complexity > 4:
            transaction_type = "Advanced DEX Trading"
            patterns.append("Multi-hop token exchange")
            risk += 2
        else:
            transaction_type = "Simple DEX Trading"
            patterns.append("Basic token exchange via DEX")
            risk += 1
    elif NFT_TRANSFER in activity.action_types:
        transaction_type = "NFT Transaction"
        patterns.append("Non-fungible token transfer")
        if transfers > 1:
            patterns.append("NFT transaction with additional transfers")
            risk += 1
    elif CONTRACT_DEPLOYMENT in activity.action_types:
        transaction_type = "Contract Deployment"
        patterns.append("Smart contract deployment")
        sophistication = "Advanced"
    elif transfers > 0:
        transaction_type = "Token Transfer"
        patterns.append("Token or value transfer")

    risk += clustering.risk_contribution

    if interactions > 5:
        behavior_type = "Highly Complex"
        patterns.append("Extensive contract interaction network")
        sophistication = "Expert"
        risk += 4
    elif interactions > 3:
        behavior_type = "Complex"
        patterns.append("Multiple contract interactions")
        sophistication = "Intermediate"
        risk += 2

    if transfers > 10:
        behavior_type = "Extremely High Activity"
        patterns.append("Massive multi-transfer operation")
        risk += 5
    elif transfers > 5:
        behavior_type = "High Activity"
        patterns.append("Multiple transfers in single transaction")
        risk += 3

    if record.nonce > scoring.fully_automated_nonce:
        automation = "Fully Automated"
        patterns.append("Very high nonce - likely automated system")
        risk += 2
    elif record.nonce > scoring.semi_automated_nonce:
        automation = "Semi-Automated"
        patterns.append("High nonce - frequent transaction sender")
        risk += 1

    if has_automated_gas_pattern(record.gas_price):
        if to_int(record.gas_price) > MAX_GAS_PRICE_WEI:
            automation = "Bot/MEV"
            patterns.append("Round gas prices with maximum urgency - MEV bot pattern")
            risk += 3
        else:
            patterns.append("Programmatic gas pricing detected")
            risk += 1

    intent, indicators, contribution = infer_intent(record, activity, network, scoring)
    patterns.extend(indicators)
    risk += contribution

    if record.block_timestamp:
        hour = datetime.fromtimestamp(record.block_timestamp, tz=timezone.utc).hour
        if hour in OFF_HOURS_UTC:
            patterns.append("Off-hours transaction timing")
            if automation == "Manual":
                automation = "Semi-Automated"

    value = native_value(record, network)
    primary_type, activity_level = _primary_type(activity)
    strategy = primary_strategy(normalized_input(record), value, signals) if signals else "Standard Trading"

    return TradingPatterns(
        transaction_type=transaction_type,
        behavior_type=behavior_type,
        patterns=tuple(patterns),
        pattern_risk=risk,
        automation_level=automation,
        sophistication=sophistication,
        intent=intent,
        trading_style=_trading_style(value, to_gwei(record.gas_price)),
        frequency=_frequency(record.address_activity.from_transaction_count),
        trader_sophistication=_trader_sophistication(record),
        primary_strategy=strategy,
        primary_type=primary_type,
        activity_level=activity_level,
    )


def liquidity_metrics(activity: ActivityProfile, scoring: ScoringTable) -> LiquidityMetrics:
    total = sum((transfer.value for transfer in activity.transfers), Decimal(0))
    impact, score = scoring.liquidity_tier(total)
    recommendations = ("Monitor market impact",) if total > scoring.liquidity_monitor_value else ()
    return LiquidityMetrics(
        total_transfer_value=total,
        impact_level=impact,
        liquidity_score=score,
        recommendations=recommendations,
    )

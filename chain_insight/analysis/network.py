"""
Network condition and block-level assessments.
"""

import statistics
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from chain_insight.analysis.models import AddressSignificance, BlockAssessment, NetworkAssessment, NetworkContext
from chain_insight.analysis.scoring import ScoringTable
from chain_insight.chains.registry import NetworkIdentity
from chain_insight.data.models import AddressFlow, BlockRecord, RecentBlock
from chain_insight.utils.values import ratio_percent, round_float, to_gwei, to_int, to_units

HEALTH_LABELS = ((85, "Excellent"), (70, "Good"), (50, "Fair"))


def health_label(score: Optional[int]) -> str:
    if score is None:
        return "Unknown"
    for cutoff, label in HEALTH_LABELS:
        if score >= cutoff:
            return label
    return "Poor"


def activity_category(transaction_count: int) -> str:
    if transaction_count > 1000:
        return "Very Active"
    if transaction_count > 100:
        return "Active"
    if transaction_count > 10:
        return "Moderate"
    return "Low"


def congestion_level(tps: float, gas_price_gwei: Decimal) -> str:
    if tps > 100 or gas_price_gwei > 50:
        return "High"
    if tps > 50 or gas_price_gwei > 20:
        return "Medium"
    return "Low"


def block_times(blocks: Sequence[RecentBlock]) -> List[int]:
    """Seconds between consecutive blocks, oldest first."""
    ordered = sorted(blocks, key=lambda block: block.number)
    return [
        abs(current.timestamp - previous.timestamp)
        for previous, current in zip(ordered, ordered[1:])
        if current.timestamp and previous.timestamp
    ]


def network_tps(blocks: Sequence[RecentBlock]) -> float:
    if len(blocks) < 2:
        return 0.0
    ordered = sorted(blocks, key=lambda block: block.number)
    span = ordered[-1].timestamp - ordered[0].timestamp
    if span <= 0:
        return 0.0
    return sum(block.transaction_count for block in ordered) / span


def network_health(times: Sequence[int], utilization: Sequence[float]) -> Tuple[int, List[str], List[str]]:
    """
    Score network health from block-time spread and gas utilization.

    Returns:
        Tuple of (score 0-100, factors, warnings)
    """
    score = 100
    factors: List[str] = []
    warnings: List[str] = []

    if times:
        variance = statistics.pstdev(times)
        if variance > 10:
            score -= 15
            warnings.append("High block time variance detected")
        elif variance > 5:
            score -= 5
            factors.append("Moderate block time consistency")
        else:
            factors.append("Excellent block time consistency")

    if utilization:
        average = statistics.fmean(utilization)
        if average > 95:
            score -= 20
            warnings.append("Network extremely congested")
        elif average > 80:
            score -= 10
            warnings.append("Network heavily congested")
        elif average > 60:
            score -= 5
            factors.append("Moderate network usage")
        else:
            factors.append("Healthy network utilization")

    return max(0, min(100, score)), factors, warnings


def _context_position(block_number: int, blocks: Sequence[RecentBlock]) -> Optional[str]:
    ordered = sorted(blocks, key=lambda block: block.number)
    index = next((i for i, block in enumerate(ordered) if block.number == block_number), -1)
    if index == -1:
        return None
    total = len(ordered)
    if index < total / 3:
        return "Early in context"
    if index > 2 * total / 3:
        return "Recent in context"
    return "Middle of context"


def _chain_position(confirmations: int, context_blocks: int) -> str:
    if confirmations <= 0:
        return "Latest"
    if confirmations <= context_blocks:
        return "Recent"
    return "Historical"


def assess_network(context: NetworkContext, block_number: Optional[int], average_gas_price: str,
                   context_blocks: int = 10, context_position: bool = True) -> NetworkAssessment:
    """
    Assess network conditions around a block.

    Without recent blocks the assessment stays at its Unknown defaults apart
    from confirmations. With ``context_position`` a block found among the
    recent blocks is placed by its index within them.
    """
    confirmations = None
    position = "Unknown"
    if block_number is not None and context.latest_block_number is not None:
        confirmations = max(0, context.latest_block_number - block_number)
        position = _chain_position(confirmations, context_blocks)

    blocks = context.recent_blocks
    if not blocks:
        return NetworkAssessment(
            average_gas_price=average_gas_price,
            confirmations=confirmations,
            position=position,
        )

    if context_position and block_number is not None:
        position = _context_position(block_number, blocks) or position

    times = block_times(blocks)
    utilization = [ratio_percent(block.gas_used, block.gas_limit) for block in blocks if to_int(block.gas_limit)]
    score, factors, warnings = network_health(times, utilization)
    average_time = statistics.fmean(times) if times else 0.0
    variation = statistics.pstdev(times) if len(times) > 1 else 0.0
    tps = network_tps(blocks)

    if variation < 5:
        consistency = "Stable"
    elif variation < 15:
        consistency = "Moderate"
    else:
        consistency = "Volatile"

    return NetworkAssessment(
        health_score=score,
        health=health_label(score),
        factors=tuple(factors),
        warnings=tuple(warnings),
        congestion_level=congestion_level(tps, to_gwei(average_gas_price)),
        average_block_time=round_float(average_time),
        block_time_variation=round_float(variation),
        gas_usage_consistency=consistency,
        average_utilization=round_float(statistics.fmean(utilization)) if utilization else 0.0,
        network_tps=round_float(tps),
        average_gas_price=average_gas_price,
        confirmations=confirmations,
        position=position,
    )


def address_significance(transaction_count: int, total_transactions: int) -> str:
    share = transaction_count / max(total_transactions, 1) * 100
    if share > 10:
        return "Dominant"
    if share > 5:
        return "Significant"
    if share > 1:
        return "Notable"
    return "Minor"


def _significance(flows: Sequence[AddressFlow], total: int, decimals: int) -> Tuple[AddressSignificance, ...]:
    return tuple(
        AddressSignificance(
            address=flow.address,
            transaction_count=flow.transaction_count,
            total_value=to_units(flow.total_value, decimals),
            significance=address_significance(flow.transaction_count, total),
        )
        for flow in flows
    )


def assess_block(block: BlockRecord, network: NetworkIdentity, scoring: ScoringTable) -> BlockAssessment:
    """Efficiency, stability, market and protocol-share estimates for a block."""
    metrics = block.metrics
    total = metrics.total_transactions or block.transaction_count
    divisor = max(total, 1)
    utilization = ratio_percent(block.gas_used, block.gas_limit)
    success_rate = (total - metrics.failed_transactions) / divisor * 100
    failure_rate = metrics.failed_transactions / divisor * 100

    if utilization < 50 and success_rate > 95:
        efficiency = "Excellent"
    elif utilization < 80 and success_rate > 90:
        efficiency = "Good"
    else:
        efficiency = "Moderate"

    if utilization < 25:
        processing = "Fast (~1-2 seconds)"
    elif utilization < 50:
        processing = "Normal (~2-3 seconds)"
    elif utilization < 75:
        processing = "Slow (~3-5 seconds)"
    else:
        processing = "Congested (~5+ seconds)"

    if utilization < 70 and failure_rate < 5:
        stability = "Stable"
    elif utilization < 85 and failure_rate < 10:
        stability = "Moderate"
    else:
        stability = "Congested"

    total_value = to_units(metrics.total_value, network.decimals)
    average_value = total_value / divisor
    if average_value > 10000:
        market = "High activity market"
    elif average_value > 1000:
        market = "Active market"
    else:
        market = "Stable market"

    distribution = block.patterns.gas_distribution
    distributed = distribution.low + distribution.medium + distribution.high
    high_share = distribution.high / max(distributed, 1) * 100
    if high_share > 50:
        gas_analysis = "High priority transactions dominant"
    elif high_share > 25:
        gas_analysis = "Mixed priority levels"
    else:
        gas_analysis = "Low priority transactions dominant"

    calls = metrics.contract_interactions
    perp_estimate = Decimal(calls) * scoring.perp_call_share
    health = 100 - utilization * 0.5 - failure_rate * 2

    return BlockAssessment(
        utilization=round_float(utilization),
        success_rate=round_float(success_rate),
        efficiency=efficiency,
        processing_time=processing,
        stability=stability,
        market_conditions=market,
        liquidity_health=round_float(max(0.0, min(100.0, health))),
        gas_distribution_analysis=gas_analysis,
        dex_volume_estimate=f"~{total_value * scoring.dex_volume_share:,.2f} {network.currency_symbol}",
        estimated_perp_transactions=int(perp_estimate),
        perp_activity_level="High" if perp_estimate > Decimal(total) * Decimal("0.1") else "Moderate",
        estimated_liquidity_operations=int(Decimal(calls) * scoring.liquidity_call_share),
        top_senders=_significance(block.patterns.top_senders, total, network.decimals),
        top_receivers=_significance(block.patterns.top_receivers, total, network.decimals),
        total_value=total_value,
        average_value=average_value,
    )

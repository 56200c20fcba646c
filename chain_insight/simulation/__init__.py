"""
Simulated data, kept apart from the real-data pipeline.
"""

from chain_insight.simulation.address_history import (
    PatternAnalysis,
    SimulatedAddressHistory,
    SimulatedTimeline,
    TimelineEvent,
    TimelineSummary,
    analyze_patterns,
    regularity_score,
)

__all__ = [
    "PatternAnalysis",
    "SimulatedAddressHistory",
    "SimulatedTimeline",
    "TimelineEvent",
    "TimelineSummary",
    "analyze_patterns",
    "regularity_score",
]

"""
Heuristic analysis of transactions and blocks.
"""

from chain_insight.analysis.engine import AnalysisEngine
from chain_insight.analysis.models import (
    BLOCK,
    TRANSACTION,
    ActivityProfile,
    AnalysisResult,
    BlockAssessment,
    Classification,
    ClusteringResult,
    MevIndicator,
    NetworkAssessment,
    NetworkContext,
    RiskAssessment,
)
from chain_insight.analysis.scoring import SCORING_TABLE, SCORING_TABLE_VERSION, ScoringTable

__all__ = [
    "AnalysisEngine",
    "AnalysisResult",
    "ActivityProfile",
    "BLOCK",
    "BlockAssessment",
    "Classification",
    "ClusteringResult",
    "MevIndicator",
    "NetworkAssessment",
    "NetworkContext",
    "RiskAssessment",
    "SCORING_TABLE",
    "SCORING_TABLE_VERSION",
    "ScoringTable",
    "TRANSACTION",
]

"""
Request pipeline: shared context and orchestration.
"""

from chain_insight.pipeline.context import AnalysisContext, TextGenerator
from chain_insight.pipeline.orchestrator import AnalysisOrchestrator, AnalysisRequest

__all__ = [
    "AnalysisContext",
    "AnalysisOrchestrator",
    "AnalysisRequest",
    "TextGenerator",
]

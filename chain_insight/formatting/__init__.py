"""
Plain-text formatting of analysis results and generator instructions.
"""

from chain_insight.formatting.formatter import NO_DATA, AnalysisFormatter, FormattedAnalysis
from chain_insight.formatting.prompts import analysis_directive, system_prompt

__all__ = [
    "AnalysisFormatter",
    "FormattedAnalysis",
    "NO_DATA",
    "analysis_directive",
    "system_prompt",
]

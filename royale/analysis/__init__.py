"""
Screenshot analysis: reads placement, kills and player rows off a result screen.
Advisory input to scoring; never writes to the store.
"""
from __future__ import annotations

from royale.analysis.llm import analyze_screenshot, parse_analysis
from royale.analysis.schemas import AnalysisResult, PlayerLine

__all__ = ["analyze_screenshot", "parse_analysis", "AnalysisResult", "PlayerLine"]

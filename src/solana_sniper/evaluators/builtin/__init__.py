"""Built-in evaluators."""

from .credibility import CREDIBILITY_GATE, CredibilityEvaluator
from .safety import RUG_SAFE_GATE, SafetyEvaluator
from .token_analysis import LIQUIDITY_GATE, TokenAnalysisEvaluator, TokenAnalysisWeights

__all__ = [
    "TokenAnalysisEvaluator",
    "TokenAnalysisWeights",
    "SafetyEvaluator",
    "CredibilityEvaluator",
    "LIQUIDITY_GATE",
    "RUG_SAFE_GATE",
    "CREDIBILITY_GATE",
]

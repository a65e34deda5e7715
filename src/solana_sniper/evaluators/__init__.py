"""
Evaluators Layer - Pluggable signals about candidate tokens.

This module provides:
    - Evaluator: Protocol every signal source implements
    - Candidate: The token being evaluated
    - EvaluationResult: One evaluator's outcome (success or isolated failure)
    - EvaluatorRegistry: Named, ordered collection of evaluators
    - AnalysisServiceClient: REST client for the analysis services
    - Built-in evaluators: token analysis, safety, credibility

Design Principle:
    Evaluators may do I/O, but they never decide. They report metrics,
    a score, and the threshold gates they own; the aggregator combines
    them and the decision policy decides.
"""

from .protocol import Candidate, EvaluationResult, Evaluator, MetricValue

from .registry import (
    DuplicateEvaluatorError,
    EvaluatorNotFoundError,
    EvaluatorRegistry,
)

from .clients import (
    AnalysisServiceClient,
    CredibilityReport,
    RateLimitError,
    SafetyReport,
    ServiceError,
    TokenAnalysis,
)

from .builtin import (
    CREDIBILITY_GATE,
    LIQUIDITY_GATE,
    RUG_SAFE_GATE,
    CredibilityEvaluator,
    SafetyEvaluator,
    TokenAnalysisEvaluator,
    TokenAnalysisWeights,
)

__all__ = [
    # Protocol
    "Evaluator",
    "Candidate",
    "EvaluationResult",
    "MetricValue",
    # Registry
    "EvaluatorRegistry",
    "EvaluatorNotFoundError",
    "DuplicateEvaluatorError",
    # Clients
    "AnalysisServiceClient",
    "ServiceError",
    "RateLimitError",
    "TokenAnalysis",
    "SafetyReport",
    "CredibilityReport",
    # Built-in evaluators
    "TokenAnalysisEvaluator",
    "TokenAnalysisWeights",
    "SafetyEvaluator",
    "CredibilityEvaluator",
    "LIQUIDITY_GATE",
    "RUG_SAFE_GATE",
    "CREDIBILITY_GATE",
]

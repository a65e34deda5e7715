"""
Core Layer - Correlation, aggregation and decision.

This module provides:
    - TradingEngine: Orchestrates posts -> candidates -> decisions -> trades
    - SignalAggregator: Concurrent evaluator fan-out with per-evaluator timeouts
    - CompositeScorer / WeightedScorer: Pluggable composite scoring
    - DecisionPolicy: Pure BUY/SKIP decision
    - CooldownRegistry: Per-token dedup window

Flow:
    SocialPost -> MentionFilter -> Candidate -> CooldownRegistry claim
        -> SignalAggregator -> DecisionPolicy -> TradeCoordinator queue
"""

from .aggregator import (
    DEFAULT_WEIGHTS,
    AggregatedScore,
    CompositeScorer,
    SignalAggregator,
    WeightedScorer,
    merge_flags,
)
from .cooldown import CooldownEntry, CooldownRegistry
from .decision import Decision, DecisionPolicy, Verdict
from .engine import EngineConfig, EngineStats, TradingEngine

__all__ = [
    # Engine
    "TradingEngine",
    "EngineConfig",
    "EngineStats",
    # Aggregation
    "SignalAggregator",
    "AggregatedScore",
    "CompositeScorer",
    "WeightedScorer",
    "DEFAULT_WEIGHTS",
    "merge_flags",
    # Decision
    "Decision",
    "DecisionPolicy",
    "Verdict",
    # Cooldown
    "CooldownRegistry",
    "CooldownEntry",
]

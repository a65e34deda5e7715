"""
Core layer test fixtures.

Core tests verify orchestration logic, so evaluators are small in-memory
fakes and the trade coordinator and alert manager are mocks.
"""
import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock

from solana_sniper.core import (
    CooldownRegistry,
    DecisionPolicy,
    EngineConfig,
    SignalAggregator,
    TradingEngine,
    WeightedScorer,
)
from solana_sniper.evaluators import Candidate, EvaluationResult, EvaluatorRegistry
from solana_sniper.ingestion import MentionFilter, PostAuthor, SocialPost


TOKEN_ID = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class StaticEvaluator:
    """Evaluator returning a fixed score and gate, optionally after a delay."""

    def __init__(self, name, score=50.0, gate=None, gate_open=True, delay=0.0, error=None):
        self._name = name
        self._score = score
        self._gate = gate
        self._gate_open = gate_open
        self._delay = delay
        self._error = error
        self.calls = 0

    @property
    def name(self):
        return self._name

    @property
    def gates(self):
        return frozenset({self._gate}) if self._gate else frozenset()

    async def evaluate(self, candidate: Candidate) -> EvaluationResult:
        self.calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error:
            raise self._error
        return EvaluationResult(
            evaluator_name=self._name,
            succeeded=True,
            metrics={"value": self._score},
            score=self._score,
            flags={self._gate: self._gate_open} if self._gate else {},
        )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def candidate():
    return Candidate(token_id=TOKEN_ID, first_seen_at=0.0)


@pytest.fixture
def reference_registry():
    """Evaluators producing the reference 70 / 80 / 60 scores."""
    registry = EvaluatorRegistry()
    registry.register(StaticEvaluator("token_analysis", 70.0, gate="liquidity_above_floor"))
    registry.register(StaticEvaluator("safety", 80.0, gate="rug_safe"))
    registry.register(StaticEvaluator("credibility", 60.0, gate="credibility_above_floor"))
    return registry


@pytest.fixture
def make_post():
    def _make(text=f"memecoin {TOKEN_ID}", followers=150, post_id="p1"):
        return SocialPost(
            post_id=post_id,
            text=text,
            author=PostAuthor(author_id="author_1", username="degen", follower_count=followers),
        )
    return _make


@pytest.fixture
def mock_coordinator():
    coordinator = MagicMock()
    coordinator.submit = AsyncMock(return_value=True)
    return coordinator


@pytest.fixture
def mock_alert_manager():
    return MagicMock()


@pytest.fixture
def make_engine(reference_registry, clock, mock_coordinator, mock_alert_manager):
    """Build an engine around the reference evaluators."""
    def _make(dry_run=True, threshold=70.0, registry=None, cooldown_seconds=600.0, max_concurrent=32):
        aggregator = SignalAggregator(
            registry or reference_registry,
            scorer=WeightedScorer(),
            timeout=1.0,
            cooldown=CooldownRegistry(cooldown_seconds, clock=clock),
        )
        return TradingEngine(
            config=EngineConfig(dry_run=dry_run, max_concurrent_candidates=max_concurrent),
            mention_filter=MentionFilter(["memecoin", "solana", "pump"]),
            aggregator=aggregator,
            policy=DecisionPolicy(
                buy_threshold=threshold,
                mandatory_gates=["liquidity_above_floor", "rug_safe", "credibility_above_floor"],
            ),
            trade_coordinator=mock_coordinator,
            alert_manager=mock_alert_manager,
            clock=clock,
        )
    return _make


@pytest.fixture
def evaluator_cls():
    """The StaticEvaluator class, for tests that build their own registry."""
    return StaticEvaluator

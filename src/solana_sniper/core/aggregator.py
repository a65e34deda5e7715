"""
Signal aggregation for candidate tokens.

Runs every registered evaluator concurrently, each under its own timeout,
and folds their results into one AggregatedScore. A slow or failing
evaluator only fails itself: its result is marked unsuccessful, its gates
are reported closed, and the remaining evaluators still count.

The composite score comes from a pluggable CompositeScorer so the scoring
heuristic can change without touching the concurrency code.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Protocol, Sequence, Tuple

from solana_sniper.evaluators import Candidate, EvaluationResult, Evaluator, EvaluatorRegistry

from .cooldown import CooldownRegistry

logger = logging.getLogger(__name__)

DEFAULT_EVALUATOR_TIMEOUT = 5.0

# Safety and credibility report on a 0-100 scale; token analysis already
# produces its points directly, so it carries full weight.
DEFAULT_WEIGHTS: Mapping[str, float] = MappingProxyType({
    "token_analysis": 1.0,
    "safety": 0.1,
    "credibility": 0.1,
})


@dataclass(frozen=True)
class AggregatedScore:
    """
    Combined view of all evaluator results for one candidate.

    Recomputed per candidate and never cached.
    """

    token_id: str
    results: Tuple[EvaluationResult, ...]
    composite_score: float
    threshold_flags: Mapping[str, bool] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "threshold_flags", MappingProxyType(dict(self.threshold_flags)))

    @property
    def succeeded(self) -> Tuple[EvaluationResult, ...]:
        return tuple(r for r in self.results if r.succeeded)

    @property
    def failed(self) -> Tuple[EvaluationResult, ...]:
        return tuple(r for r in self.results if not r.succeeded)

    def result_for(self, evaluator_name: str) -> Optional[EvaluationResult]:
        for result in self.results:
            if result.evaluator_name == evaluator_name:
                return result
        return None


class CompositeScorer(Protocol):
    """Strategy that reduces evaluator results to a single number."""

    def score(self, results: Sequence[EvaluationResult]) -> float:
        ...


class WeightedScorer:
    """
    Weighted sum of evaluator scores.

    Failed evaluators and evaluators without a score contribute nothing.
    Evaluators missing from the weight table use ``default_weight``.
    """

    def __init__(
        self,
        weights: Optional[Mapping[str, float]] = None,
        default_weight: float = 0.0,
    ) -> None:
        self._weights = dict(DEFAULT_WEIGHTS if weights is None else weights)
        self._default_weight = default_weight

    @property
    def weights(self) -> Mapping[str, float]:
        return MappingProxyType(self._weights)

    def score(self, results: Sequence[EvaluationResult]) -> float:
        total = 0.0
        for result in results:
            if not result.succeeded or result.score is None:
                continue
            weight = self._weights.get(result.evaluator_name, self._default_weight)
            total += weight * result.score
        return total


def merge_flags(results: Sequence[EvaluationResult]) -> Dict[str, bool]:
    """
    Merge threshold flags from every result.

    A gate reported by more than one evaluator is open only if all of them
    report it open.
    """
    merged: Dict[str, bool] = {}
    for result in results:
        for gate, value in result.flags.items():
            merged[gate] = merged.get(gate, True) and bool(value)
    return merged


class SignalAggregator:
    """
    Concurrent, failure-isolated evaluator fan-out.

    Usage:
        aggregator = SignalAggregator(registry, WeightedScorer(), timeout=5.0)
        score = await aggregator.evaluate(candidate)

        # With a cooldown registry, repeated candidates are skipped
        aggregator = SignalAggregator(registry, cooldown=CooldownRegistry(600))
        score = await aggregator.evaluate_if_due(candidate)  # None if cooling down
    """

    def __init__(
        self,
        registry: EvaluatorRegistry,
        scorer: Optional[CompositeScorer] = None,
        timeout: float = DEFAULT_EVALUATOR_TIMEOUT,
        cooldown: Optional[CooldownRegistry] = None,
    ) -> None:
        """
        Initialize the aggregator.

        Args:
            registry: Evaluators to run for each candidate
            scorer: Composite score strategy (WeightedScorer by default)
            timeout: Per-evaluator timeout in seconds
            cooldown: Optional per-token dedup registry
        """
        if timeout <= 0:
            raise ValueError(f"Evaluator timeout must be positive, got {timeout}")
        self._registry = registry
        self._scorer = scorer or WeightedScorer()
        self._timeout = timeout
        self._cooldown = cooldown
        self._in_flight: Dict[str, asyncio.Future] = {}

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def cooldown(self) -> Optional[CooldownRegistry]:
        return self._cooldown

    async def evaluate_if_due(self, candidate: Candidate) -> Optional[AggregatedScore]:
        """
        Aggregate unless the token is inside its cooldown window.

        Returns:
            AggregatedScore, or None when the token was already claimed
        """
        if self._cooldown is not None and not self._cooldown.try_claim(candidate.token_id):
            logger.debug(f"Token {candidate.token_id} is cooling down, skipping aggregation")
            return None
        return await self.evaluate(candidate)

    async def evaluate(self, candidate: Candidate) -> AggregatedScore:
        """
        Run every evaluator for the candidate and combine the results.

        Concurrent calls for the same token share one aggregation.
        """
        existing = self._in_flight.get(candidate.token_id)
        if existing is not None:
            return await asyncio.shield(existing)

        token_id = candidate.token_id
        future = asyncio.ensure_future(self._aggregate(candidate))
        self._in_flight[token_id] = future
        future.add_done_callback(lambda _f: self._in_flight.pop(token_id, None))
        return await asyncio.shield(future)

    async def _aggregate(self, candidate: Candidate) -> AggregatedScore:
        evaluators = self._registry.all()
        results = await asyncio.gather(
            *(self._run_one(evaluator, candidate) for evaluator in evaluators)
        )

        score = AggregatedScore(
            token_id=candidate.token_id,
            results=tuple(results),
            composite_score=self._scorer.score(results),
            threshold_flags=merge_flags(results),
        )

        if score.failed:
            failed = ", ".join(f"{r.evaluator_name} ({r.failure_reason})" for r in score.failed)
            logger.warning(f"Token {candidate.token_id}: evaluator failures: {failed}")

        logger.info(
            f"Token {candidate.token_id}: composite={score.composite_score:.2f} "
            f"({len(score.succeeded)}/{len(score.results)} evaluators succeeded)"
        )
        return score

    async def _run_one(self, evaluator: Evaluator, candidate: Candidate) -> EvaluationResult:
        """Run one evaluator under the timeout. Never raises except on cancellation."""
        name = evaluator.name
        try:
            result = await asyncio.wait_for(evaluator.evaluate(candidate), timeout=self._timeout)
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            logger.warning(f"Evaluator {name} timed out after {self._timeout}s for {candidate.token_id}")
            return EvaluationResult.failure(name, f"Timed out after {self._timeout}s", evaluator.gates)
        except Exception as e:
            logger.warning(f"Evaluator {name} failed for {candidate.token_id}: {e}")
            return EvaluationResult.failure(name, f"{type(e).__name__}: {e}", evaluator.gates)

        if not isinstance(result, EvaluationResult):
            return EvaluationResult.failure(
                name, f"Returned {type(result).__name__}, expected EvaluationResult", evaluator.gates
            )

        if result.evaluator_name != name:
            logger.debug(f"Evaluator {name} reported as {result.evaluator_name}, using registered name")
            result = EvaluationResult(
                evaluator_name=name,
                succeeded=result.succeeded,
                metrics=result.metrics,
                score=result.score,
                failure_reason=result.failure_reason,
                flags=result.flags,
            )

        if not result.succeeded:
            # Owned gates stay closed when an evaluator reports its own failure
            flags = {gate: False for gate in evaluator.gates}
            flags.update({gate: False for gate in result.flags})
            result = EvaluationResult.failure(name, result.failure_reason or "Evaluator failed", frozenset(flags))

        return result

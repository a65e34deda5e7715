"""
Token analysis evaluator.

Scores a candidate from liquidity, smart-money activity and holder count,
minus a penalty for the analysis service's rug-risk level.

Reference heuristic (illustrative policy, not verified financial logic):

    score = liquidity_component + smart_money_component + holder_component
            - rug_penalty

Each component ramps linearly up to its target and is capped at its
maximum points.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping, Protocol

from ..protocol import Candidate, EvaluationResult

if TYPE_CHECKING:
    from ..clients import TokenAnalysis


class TokenAnalysisSource(Protocol):
    async def token_analysis(self, token_id: str) -> "TokenAnalysis":
        ...


LIQUIDITY_GATE = "liquidity_above_floor"


@dataclass(frozen=True)
class TokenAnalysisWeights:
    """Tunable targets and points for the token analysis heuristic."""

    liquidity_target: float = 10.0
    liquidity_points: float = 30.0
    smart_money_target: float = 3.0
    smart_money_points: float = 20.0
    holder_target: float = 100.0
    holder_points: float = 20.0
    liquidity_floor: float = 5.0
    rug_penalties: Mapping[str, float] = field(
        default_factory=lambda: {"low": 0.0, "medium": 20.0, "high": 50.0}
    )
    unknown_rug_penalty: float = 50.0


def _component(value: float, target: float, points: float) -> float:
    if target <= 0:
        return points
    return max(0.0, min(value / target, 1.0)) * points


class TokenAnalysisEvaluator:
    """
    Liquidity / holder evaluator backed by the token analysis service.

    Contributes the ``liquidity_above_floor`` gate.
    """

    def __init__(
        self,
        source: TokenAnalysisSource,
        weights: TokenAnalysisWeights | None = None,
    ) -> None:
        self._source = source
        self._weights = weights or TokenAnalysisWeights()

    @property
    def name(self) -> str:
        return "token_analysis"

    @property
    def gates(self) -> frozenset[str]:
        return frozenset({LIQUIDITY_GATE})

    def score(self, analysis: "TokenAnalysis") -> float:
        """Apply the weighted heuristic to an analysis payload."""
        w = self._weights
        rug_level = analysis.rug_risk_level.strip().lower()
        penalty = w.rug_penalties.get(rug_level, w.unknown_rug_penalty)

        return (
            _component(analysis.liquidity, w.liquidity_target, w.liquidity_points)
            + _component(analysis.smart_money_activity, w.smart_money_target, w.smart_money_points)
            + _component(float(analysis.holder_count), w.holder_target, w.holder_points)
            - penalty
        )

    async def evaluate(self, candidate: Candidate) -> EvaluationResult:
        analysis = await self._source.token_analysis(candidate.token_id)

        return EvaluationResult(
            evaluator_name=self.name,
            succeeded=True,
            metrics={
                "liquidity": analysis.liquidity,
                "smart_money_activity": analysis.smart_money_activity,
                "holder_count": analysis.holder_count,
                "rug_risk_level": analysis.rug_risk_level.lower(),
            },
            score=self.score(analysis),
            flags={LIQUIDITY_GATE: analysis.liquidity >= self._weights.liquidity_floor},
        )

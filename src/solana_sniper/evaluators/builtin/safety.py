"""
Safety (rug-risk) evaluator.

The safety service reports a risk score from 0 (safe) to 100. The
evaluator's score is the inverted risk, and the ``rug_safe`` gate is open
when the risk is at or below the configured maximum.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from ..protocol import Candidate, EvaluationResult

if TYPE_CHECKING:
    from ..clients import SafetyReport

RUG_SAFE_GATE = "rug_safe"
DEFAULT_MAX_RISK_SCORE = 50.0


class SafetySource(Protocol):
    async def safety_check(self, token_id: str) -> "SafetyReport":
        ...


class SafetyEvaluator:
    """Rug-risk evaluator. Contributes the ``rug_safe`` gate."""

    def __init__(
        self,
        source: SafetySource,
        max_risk_score: float = DEFAULT_MAX_RISK_SCORE,
    ) -> None:
        self._source = source
        self._max_risk_score = max_risk_score

    @property
    def name(self) -> str:
        return "safety"

    @property
    def gates(self) -> frozenset[str]:
        return frozenset({RUG_SAFE_GATE})

    async def evaluate(self, candidate: Candidate) -> EvaluationResult:
        report = await self._source.safety_check(candidate.token_id)
        risk = report.risk_score

        return EvaluationResult(
            evaluator_name=self.name,
            succeeded=True,
            metrics={"risk_score": risk},
            score=100.0 - risk,
            flags={RUG_SAFE_GATE: risk <= self._max_risk_score},
        )

"""
Social credibility evaluator.

Scores the author of the mention that surfaced the candidate, not the
token itself. A candidate without an originating author cannot be scored
and fails this evaluator only.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from ..protocol import Candidate, EvaluationResult

if TYPE_CHECKING:
    from ..clients import CredibilityReport

CREDIBILITY_GATE = "credibility_above_floor"
DEFAULT_MIN_CREDIBILITY = 50.0


class CredibilitySource(Protocol):
    async def credibility_check(self, author_id: str) -> "CredibilityReport":
        ...


class CredibilityEvaluator:
    """Author credibility evaluator. Contributes ``credibility_above_floor``."""

    def __init__(
        self,
        source: CredibilitySource,
        min_credibility: float = DEFAULT_MIN_CREDIBILITY,
    ) -> None:
        self._source = source
        self._min_credibility = min_credibility

    @property
    def name(self) -> str:
        return "credibility"

    @property
    def gates(self) -> frozenset[str]:
        return frozenset({CREDIBILITY_GATE})

    async def evaluate(self, candidate: Candidate) -> EvaluationResult:
        author_id = candidate.author_id
        if not author_id:
            return EvaluationResult.failure(self.name, "No originating author", self.gates)

        report = await self._source.credibility_check(author_id)

        return EvaluationResult(
            evaluator_name=self.name,
            succeeded=True,
            metrics={"credibility_score": report.score},
            score=report.score,
            flags={CREDIBILITY_GATE: report.score >= self._min_credibility},
        )

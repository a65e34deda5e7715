"""
Evaluator protocol and result definitions.

An evaluator produces one signal about a candidate token (liquidity,
safety, author credibility). Evaluators may call external services; the
aggregator runs each under its own timeout and isolates their failures.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping, Optional, Protocol, Union, runtime_checkable

if TYPE_CHECKING:
    from solana_sniper.ingestion.mention_filter import Mention

MetricValue = Union[float, int, str]


@dataclass(frozen=True)
class Candidate:
    """
    A token surfaced by a social mention, pending evaluation.

    Identity is the token id: two candidates with the same token_id are
    the same candidate regardless of which mention surfaced them.
    """

    token_id: str
    first_seen_at: float
    originating_mention: Optional["Mention"] = field(default=None, compare=False, hash=False)

    @property
    def author_id(self) -> Optional[str]:
        if self.originating_mention is None:
            return None
        return self.originating_mention.author_id


@dataclass(frozen=True)
class EvaluationResult:
    """
    Outcome of one evaluator for one candidate.

    On failure, metrics are empty, score is None and failure_reason
    explains what happened. Gates the evaluator owns are reported False.
    """

    evaluator_name: str
    succeeded: bool
    metrics: Mapping[str, MetricValue] = field(default_factory=dict)
    score: Optional[float] = None
    failure_reason: Optional[str] = None
    flags: Mapping[str, bool] = field(default_factory=dict)

    def __post_init__(self):
        # Freeze mappings so results can be shared between tasks
        object.__setattr__(self, "metrics", MappingProxyType(dict(self.metrics)))
        object.__setattr__(self, "flags", MappingProxyType(dict(self.flags)))

    @classmethod
    def failure(
        cls,
        evaluator_name: str,
        reason: str,
        gates: frozenset[str] = frozenset(),
    ) -> "EvaluationResult":
        """Build a failed result that reports every owned gate as closed."""
        return cls(
            evaluator_name=evaluator_name,
            succeeded=False,
            failure_reason=reason,
            flags={gate: False for gate in gates},
        )


@runtime_checkable
class Evaluator(Protocol):
    """
    Protocol that all evaluators must implement.

    Example implementation:
        class HolderEvaluator:
            name = "holders"
            gates = frozenset({"holders_above_floor"})

            async def evaluate(self, candidate: Candidate) -> EvaluationResult:
                count = await self._client.holder_count(candidate.token_id)
                return EvaluationResult(
                    evaluator_name=self.name,
                    succeeded=True,
                    metrics={"holder_count": count},
                    score=min(count / 100, 1.0) * 20,
                    flags={"holders_above_floor": count >= 100},
                )
    """

    @property
    def name(self) -> str:
        """Unique evaluator identifier, used for weights and logging."""
        ...

    @property
    def gates(self) -> frozenset[str]:
        """Threshold flag names this evaluator contributes."""
        ...

    async def evaluate(self, candidate: Candidate) -> EvaluationResult:
        """
        Produce a signal for the candidate.

        May raise; the aggregator converts exceptions and timeouts into
        failed results.
        """
        ...

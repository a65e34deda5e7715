"""
Buy/skip decision policy.

A pure function of the aggregated score: the same score always yields the
same decision. Repeat decisions for one token are prevented upstream by the
cooldown claim, not here.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Tuple

from .aggregator import AggregatedScore


class Decision(str, Enum):
    BUY = "buy"
    SKIP = "skip"


@dataclass(frozen=True)
class Verdict:
    """A decision and the reasons behind it (empty reasons on BUY)."""

    token_id: str
    decision: Decision
    composite_score: float
    reasons: Tuple[str, ...] = ()

    @property
    def is_buy(self) -> bool:
        return self.decision is Decision.BUY


class DecisionPolicy:
    """
    BUY iff the composite score reaches the threshold and every mandatory
    gate is present and open.

    Usage:
        policy = DecisionPolicy(buy_threshold=70, mandatory_gates={"rug_safe"})
        if policy.decide(score) is Decision.BUY:
            ...
    """

    def __init__(self, buy_threshold: float, mandatory_gates: Iterable[str] = ()) -> None:
        self._buy_threshold = float(buy_threshold)
        self._mandatory_gates = frozenset(mandatory_gates)

    @property
    def buy_threshold(self) -> float:
        return self._buy_threshold

    @property
    def mandatory_gates(self) -> frozenset[str]:
        return self._mandatory_gates

    def decide(self, score: AggregatedScore) -> Decision:
        return self.verdict(score).decision

    def verdict(self, score: AggregatedScore) -> Verdict:
        """Decide and explain."""
        reasons = []

        if score.composite_score < self._buy_threshold:
            reasons.append(
                f"composite {score.composite_score:.2f} below threshold {self._buy_threshold:.2f}"
            )

        # Sorted so the reasons are stable across runs
        for gate in sorted(self._mandatory_gates):
            if gate not in score.threshold_flags:
                reasons.append(f"gate {gate} missing")
            elif not score.threshold_flags[gate]:
                reasons.append(f"gate {gate} closed")

        return Verdict(
            token_id=score.token_id,
            decision=Decision.SKIP if reasons else Decision.BUY,
            composite_score=score.composite_score,
            reasons=tuple(reasons),
        )

"""
Compute-budget (gas) settings and the sticky fee policy.

Fee selection per trade:
    1. If a previous trade confirmed, reuse its settings (sticky)
    2. Otherwise query recent prioritization fees and take the median of
       the non-zero values, floored at the configured minimum
    3. If the query fails, fall back to the minimum fee

Only a confirmed trade may replace the sticky settings. Any failure leaves
them untouched.
"""
from __future__ import annotations

import logging
import statistics
import threading
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

logger = logging.getLogger(__name__)

DEFAULT_COMPUTE_UNIT_LIMIT = 200_000
DEFAULT_MIN_PRIORITY_FEE = 1_000  # micro-lamports per compute unit


@dataclass(frozen=True)
class GasSettings:
    """Compute-unit limit and priority fee (micro-lamports per unit)."""

    compute_unit_limit: int
    priority_fee_per_unit: int

    def __post_init__(self):
        if self.compute_unit_limit <= 0:
            raise ValueError(f"compute_unit_limit must be positive, got {self.compute_unit_limit}")
        if self.priority_fee_per_unit < 0:
            raise ValueError(f"priority_fee_per_unit must be non-negative, got {self.priority_fee_per_unit}")

    @property
    def max_priority_fee_lamports(self) -> int:
        """Upper bound of the priority fee paid if every unit is consumed."""
        return self.compute_unit_limit * self.priority_fee_per_unit // 1_000_000


class PriorityFeeSource(Protocol):
    async def get_recent_prioritization_fees(self) -> Sequence[int]:
        ...


def median_priority_fee(fees: Sequence[int], floor: int) -> int:
    """
    Median of the non-zero fees, never below ``floor``.

    Examples:
        >>> median_priority_fee([0, 0, 5000, 7000, 9000], floor=1000)
        7000
        >>> median_priority_fee([], floor=1000)
        1000
    """
    observed = [int(f) for f in fees if f and f > 0]
    if not observed:
        return floor
    return max(int(statistics.median(observed)), floor)


class FeePolicy:
    """
    Chooses GasSettings for each trade and remembers the last good one.

    The trade coordinator is the only writer. Reads are safe from any task.
    """

    def __init__(
        self,
        fee_source: Optional[PriorityFeeSource] = None,
        compute_unit_limit: int = DEFAULT_COMPUTE_UNIT_LIMIT,
        min_priority_fee: int = DEFAULT_MIN_PRIORITY_FEE,
        sticky: Optional[GasSettings] = None,
    ) -> None:
        self._fee_source = fee_source
        self._compute_unit_limit = compute_unit_limit
        self._min_priority_fee = min_priority_fee
        self._sticky = sticky
        self._lock = threading.Lock()

    @property
    def default(self) -> GasSettings:
        """Safe default used before any trade has confirmed."""
        return GasSettings(
            compute_unit_limit=self._compute_unit_limit,
            priority_fee_per_unit=self._min_priority_fee,
        )

    @property
    def sticky(self) -> Optional[GasSettings]:
        with self._lock:
            return self._sticky

    @property
    def current(self) -> GasSettings:
        return self.sticky or self.default

    async def select(self) -> GasSettings:
        """Pick settings for the next trade. Never raises on a fee query failure."""
        sticky = self.sticky
        if sticky is not None:
            logger.debug(f"Using sticky gas settings: {sticky}")
            return sticky

        if self._fee_source is None:
            return self.default

        try:
            fees = await self._fee_source.get_recent_prioritization_fees()
        except Exception as e:
            logger.warning(f"Priority fee query failed, using minimum fee: {e}")
            return self.default

        fee = median_priority_fee(fees, floor=self._min_priority_fee)
        logger.info(f"Selected priority fee {fee} micro-lamports/CU from {len(fees)} samples")
        return GasSettings(
            compute_unit_limit=self._compute_unit_limit,
            priority_fee_per_unit=fee,
        )

    def record_success(self, settings: GasSettings) -> None:
        """Store the settings of a confirmed trade as the new sticky value."""
        with self._lock:
            previous = self._sticky
            self._sticky = settings
        if previous != settings:
            logger.info(f"Sticky gas settings updated: {previous} -> {settings}")

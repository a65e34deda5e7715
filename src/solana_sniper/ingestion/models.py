"""
Data models for the ingestion layer.

These models represent data structures for:
- Swap events decoded from program logs
- Raw log notifications from the chain subscription
- Social posts from the mention stream
- Price snapshots from the market-data poller

Note on swap decoding:
    This layer never parses a DEX's binary log layout. A SwapDecoder
    (external collaborator) turns a LogNotification into a SwapEvent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class SwapEvent:
    """
    One swap against a watched pool.

    Attributes:
        pool_id: Pool address the swap executed against
        amount: Swap size in base-asset units (SOL)
        observed_at: Monotonic timestamp (seconds) when the event was seen
    """
    pool_id: str
    amount: Decimal
    observed_at: float

    def __post_init__(self):
        if self.amount < 0:
            raise ValueError(f"Swap amount must be non-negative, got {self.amount}")


@dataclass(frozen=True)
class LogNotification:
    """
    Raw logsSubscribe notification.

    Attributes:
        signature: Transaction signature the logs belong to
        logs: Ordered log lines emitted by the program
        slot: Slot from the notification context
        err: Transaction error, if the transaction failed
    """
    signature: str
    logs: tuple[str, ...]
    slot: int
    err: Optional[object] = None

    def mentions(self, needle: str) -> bool:
        """Whether any log line contains the given substring."""
        return any(needle in line for line in self.logs)


@dataclass(frozen=True)
class PostAuthor:
    """Expansion data for the author of a social post."""
    author_id: str
    username: str
    follower_count: int


@dataclass(frozen=True)
class SocialPost:
    """
    A post delivered by the social stream.

    Attributes:
        post_id: Platform identifier of the post
        text: Post body
        author: Author expansion (follower count, username)
        created_at: When the platform says the post was created
        received_at: Monotonic timestamp when we received it
    """
    post_id: str
    text: str
    author: PostAuthor
    created_at: Optional[datetime] = None
    received_at: float = 0.0


@dataclass(frozen=True)
class PriceSnapshot:
    """
    Point-in-time market data for a token from the price API.

    market_cap is a rough estimate (liquidity * price) and may be missing.
    """
    token_address: str
    price: Decimal
    volume: Optional[Decimal] = None
    market_cap: Optional[Decimal] = None
    observed_at: float = 0.0
    extra: dict = field(default_factory=dict, compare=False)

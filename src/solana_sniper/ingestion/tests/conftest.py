"""
Ingestion layer test fixtures.

Ingestion tests run against in-memory payloads; no network connections
are opened.
"""
import pytest
from decimal import Decimal

from solana_sniper.ingestion import (
    DEFAULT_POOL_ID,
    LogNotification,
    PostAuthor,
    SocialPost,
    SwapEvent,
)


TOKEN_44 = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"


@pytest.fixture
def token_id():
    """A 44-character address-shaped token id."""
    return TOKEN_44


@pytest.fixture
def make_swap():
    """Factory for swap events on the default pool."""
    def _make(amount, observed_at=0.0, pool_id=DEFAULT_POOL_ID):
        return SwapEvent(pool_id=pool_id, amount=Decimal(str(amount)), observed_at=observed_at)
    return _make


@pytest.fixture
def make_post():
    """Factory for social posts."""
    def _make(text, followers=150, author_id="author_1", username="degen", post_id="p1"):
        return SocialPost(
            post_id=post_id,
            text=text,
            author=PostAuthor(author_id=author_id, username=username, follower_count=followers),
            received_at=12.5,
        )
    return _make


@pytest.fixture
def swap_notification():
    """A successful notification touching the default pool with a swap line."""
    return LogNotification(
        signature="5sigSwap",
        logs=(
            "Program 675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8 invoke [1]",
            f"Program log: pool {DEFAULT_POOL_ID}",
            "Program log: Instruction: Swap",
        ),
        slot=250_000_000,
    )

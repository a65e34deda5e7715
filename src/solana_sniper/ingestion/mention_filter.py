"""
Mention filter for social posts.

Turns a raw SocialPost into a structured Mention when the post matches at
least one configured keyword and its author passes the follower gate.

Filter order:
    1. Keyword match (case-insensitive) - no match, discard
    2. Author follower count >= minimum - spam gate
    3. Candidate token extraction - optional, absence is not an error
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from .models import SocialPost

logger = logging.getLogger(__name__)

DEFAULT_MIN_FOLLOWER_COUNT = 100

# Solana addresses are 32-44 character alphanumeric strings.
# Word boundaries keep us from slicing an address out of a longer token.
TOKEN_ADDRESS_PATTERN = re.compile(r"\b[A-Za-z0-9]{32,44}\b")


@dataclass(frozen=True)
class Mention:
    """
    A qualifying social mention.

    Produced once per qualifying post and never mutated.
    """
    author_id: str
    author_follower_count: int
    text: str
    candidate_token_id: Optional[str]
    matched_keywords: frozenset[str]
    observed_at: float

    def __post_init__(self):
        if not self.matched_keywords:
            raise ValueError("A mention requires at least one matched keyword")


def extract_token_candidate(text: str) -> Optional[str]:
    """
    Extract the first address-shaped token identifier from text.

    Validation is syntactic only; the address is not checked on-chain.

    Examples:
        >>> extract_token_candidate("gm") is None
        True
        >>> extract_token_candidate("buy So11111111111111111111111111111111111111112 now")
        'So11111111111111111111111111111111111111112'
    """
    if not text:
        return None
    match = TOKEN_ADDRESS_PATTERN.search(text)
    return match.group(0) if match else None


class MentionFilter:
    """
    Stateless filter from social posts to mentions.

    Safe to call concurrently; holds only immutable configuration.

    Usage:
        mention_filter = MentionFilter(keywords=["memecoin", "pump"])

        mention = mention_filter.process(post)
        if mention and mention.candidate_token_id:
            ...
    """

    def __init__(
        self,
        keywords: Iterable[str],
        min_follower_count: int = DEFAULT_MIN_FOLLOWER_COUNT,
    ) -> None:
        """
        Initialize the filter.

        Args:
            keywords: Keywords to match (case-insensitive)
            min_follower_count: Authors below this count are rejected
        """
        normalized = frozenset(k.strip().lower() for k in keywords if k and k.strip())
        if not normalized:
            raise ValueError("MentionFilter requires at least one keyword")
        self._keywords = normalized
        self._min_follower_count = min_follower_count

    @property
    def keywords(self) -> frozenset[str]:
        return self._keywords

    @property
    def min_follower_count(self) -> int:
        return self._min_follower_count

    def match_keywords(self, text: str) -> frozenset[str]:
        """Return the configured keywords that appear in ``text``."""
        if not text:
            return frozenset()
        lowered = text.lower()
        return frozenset(k for k in self._keywords if k in lowered)

    def process(self, post: SocialPost) -> Optional[Mention]:
        """
        Filter a post into a Mention.

        Args:
            post: Post from the social stream

        Returns:
            Mention if the post qualifies, None otherwise
        """
        matched = self.match_keywords(post.text)
        if not matched:
            return None

        if post.author.follower_count < self._min_follower_count:
            logger.debug(
                f"Rejected post {post.post_id}: author @{post.author.username} has "
                f"{post.author.follower_count} followers (min {self._min_follower_count})"
            )
            return None

        return Mention(
            author_id=post.author.author_id,
            author_follower_count=post.author.follower_count,
            text=post.text,
            candidate_token_id=extract_token_candidate(post.text),
            matched_keywords=matched,
            observed_at=post.received_at,
        )

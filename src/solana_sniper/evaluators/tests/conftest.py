"""
Evaluators layer test fixtures.

Evaluator tests stub the analysis services; the HTTP client is exercised
through its request seam.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from solana_sniper.evaluators import (
    Candidate,
    CredibilityReport,
    SafetyReport,
    TokenAnalysis,
)
from solana_sniper.ingestion import Mention


TOKEN_ID = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"


@pytest.fixture
def mention():
    """A qualifying mention from a 150-follower author."""
    return Mention(
        author_id="author_1",
        author_follower_count=150,
        text=f"memecoin {TOKEN_ID}",
        candidate_token_id=TOKEN_ID,
        matched_keywords=frozenset({"memecoin"}),
        observed_at=1.0,
    )


@pytest.fixture
def candidate(mention):
    return Candidate(token_id=TOKEN_ID, first_seen_at=1.0, originating_mention=mention)


@pytest.fixture
def analysis_source():
    """Service stub returning the reference inputs."""
    source = MagicMock()
    source.token_analysis = AsyncMock(
        return_value=TokenAnalysis(
            liquidity=20, smart_money_activity=3, holder_count=100, rug_risk_level="low"
        )
    )
    source.safety_check = AsyncMock(return_value=SafetyReport(risk_score=20))
    source.credibility_check = AsyncMock(return_value=CredibilityReport(score=60))
    return source

"""
Shared test fixtures for integration tests.

This file provides fixtures that span multiple components,
unlike component-specific fixtures in src/solana_sniper/{component}/tests/conftest.py
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from solana_sniper.evaluators import CredibilityReport, SafetyReport, TokenAnalysis
from solana_sniper.execution import Route, SignatureStatus, WRAPPED_SOL_MINT
from solana_sniper.ingestion import PostAuthor, SocialPost


TOKEN_ID = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"
TX_SIGNATURE = "4sGjMW1sUnHzSxGspuhpqLDx6wiyjNtZAMdL4VZHirAn1111111111111111111111"


# =============================================================================
# Social Fixtures
# =============================================================================

@pytest.fixture
def token_id():
    return TOKEN_ID


@pytest.fixture
def make_post():
    """Factory for stream posts."""
    counter = {"n": 0}

    def _make(text=f"this memecoin is next {TOKEN_ID}", followers=150, author_id="author_1"):
        counter["n"] += 1
        return SocialPost(
            post_id=f"post_{counter['n']}",
            text=text,
            author=PostAuthor(author_id=author_id, username=author_id, follower_count=followers),
            received_at=float(counter["n"]),
        )

    return _make


# =============================================================================
# External Service Fixtures
# =============================================================================

@pytest.fixture
def analysis_source():
    """Analysis services returning the reference inputs (composite 84)."""
    source = MagicMock()
    source.token_analysis = AsyncMock(
        return_value=TokenAnalysis(
            liquidity=20, smart_money_activity=3, holder_count=100, rug_risk_level="low"
        )
    )
    source.safety_check = AsyncMock(return_value=SafetyReport(risk_score=20))
    source.credibility_check = AsyncMock(return_value=CredibilityReport(score=60))
    return source


@pytest.fixture
def mock_router():
    router = MagicMock()
    router.quote = AsyncMock(
        return_value=Route(
            input_mint=WRAPPED_SOL_MINT,
            output_mint=TOKEN_ID,
            in_amount=100_000_000,
            out_amount=5_000_000,
            slippage_bps=100,
            raw={},
        )
    )
    router.build_swap_transaction = AsyncMock(return_value=b"unsigned")
    return router


@pytest.fixture
def mock_wallet():
    wallet = MagicMock()
    wallet.public_key = "WalletPubkey1111111111111111111111111111111"
    wallet.sign = MagicMock(return_value=b"signed")
    return wallet


@pytest.fixture
def mock_rpc():
    rpc = MagicMock()
    rpc.get_recent_prioritization_fees = AsyncMock(return_value=[1_000, 3_000, 5_000])
    rpc.send_transaction = AsyncMock(return_value=TX_SIGNATURE)
    rpc.confirm_transaction = AsyncMock(
        return_value=SignatureStatus(signature=TX_SIGNATURE, slot=1, confirmation_status="confirmed")
    )
    return rpc


@pytest.fixture
def mock_telegram_api():
    api = MagicMock()
    api.send_message = MagicMock(return_value={"ok": True})
    return api

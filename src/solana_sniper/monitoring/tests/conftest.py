"""
Monitoring layer test fixtures.

Alerts go to an injected Telegram API mock; nothing leaves the process.
"""
import pytest
from unittest.mock import MagicMock

from solana_sniper.core import Decision, Verdict
from solana_sniper.execution import GasSettings, TradeFailureReason, TradeOutcome, TradeStage
from solana_sniper.monitoring import AlertManager


TOKEN_ID = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"


@pytest.fixture
def mock_telegram_api():
    """Mock Telegram API client."""
    api = MagicMock()
    api.send_message = MagicMock(return_value={"ok": True})
    return api


@pytest.fixture
def alert_manager(mock_telegram_api):
    """Alert manager wired to the mock Telegram API."""
    return AlertManager(
        telegram_bot_token="test_token",
        telegram_chat_id="test_chat",
        _telegram_api=mock_telegram_api,
    )


@pytest.fixture
def buy_verdict():
    return Verdict(token_id=TOKEN_ID, decision=Decision.BUY, composite_score=84.0)


@pytest.fixture
def gas():
    return GasSettings(compute_unit_limit=200_000, priority_fee_per_unit=4_000)


@pytest.fixture
def confirmed_outcome(gas):
    return TradeOutcome(
        token_id=TOKEN_ID,
        succeeded=True,
        gas_settings=gas,
        timestamp=1_700_000_000.0,
        stage=TradeStage.CONFIRMED,
        tx_signature="5ConfirmedSig",
    )


@pytest.fixture
def failed_outcome(gas):
    return TradeOutcome(
        token_id=TOKEN_ID,
        succeeded=False,
        gas_settings=gas,
        timestamp=1_700_000_000.0,
        stage=TradeStage.FAILED,
        failure_reason=TradeFailureReason.QUOTE_UNAVAILABLE,
        failed_at=TradeStage.QUOTE_REQUESTED,
        detail="No route",
    )

"""
Integration test fixtures.

These fixtures wire real pipeline components together; only the network
edges (analysis services, router, RPC, wallet, Telegram) are mocked.
"""

import pytest

from solana_sniper.core import (
    CooldownRegistry,
    DecisionPolicy,
    EngineConfig,
    SignalAggregator,
    TradingEngine,
    WeightedScorer,
)
from solana_sniper.evaluators import (
    CREDIBILITY_GATE,
    LIQUIDITY_GATE,
    RUG_SAFE_GATE,
    CredibilityEvaluator,
    EvaluatorRegistry,
    SafetyEvaluator,
    TokenAnalysisEvaluator,
)
from solana_sniper.execution import FeePolicy, TradeConfig, TradeCoordinator
from solana_sniper.ingestion import MentionFilter
from solana_sniper.monitoring import AlertManager

# Mark all tests in this directory as integration tests
pytestmark = pytest.mark.integration


@pytest.fixture
def alert_manager(mock_telegram_api):
    return AlertManager(
        telegram_bot_token="test_token",
        telegram_chat_id="test_chat",
        _telegram_api=mock_telegram_api,
    )


@pytest.fixture
def coordinator(mock_router, mock_wallet, mock_rpc, alert_manager):
    return TradeCoordinator(
        router=mock_router,
        wallet=mock_wallet,
        rpc=mock_rpc,
        fee_policy=FeePolicy(fee_source=mock_rpc, compute_unit_limit=200_000, min_priority_fee=1_000),
        config=TradeConfig(confirm_timeout_seconds=1.0, confirm_poll_interval=0.01),
        notifier=alert_manager,
    )


@pytest.fixture
def build_engine(analysis_source, alert_manager, coordinator):
    """Factory for a fully wired engine (dry run or live)."""

    def _build(dry_run=False, buy_threshold=70.0, cooldown_seconds=300.0):
        registry = EvaluatorRegistry()
        registry.register(TokenAnalysisEvaluator(analysis_source))
        registry.register(SafetyEvaluator(analysis_source))
        registry.register(CredibilityEvaluator(analysis_source))

        aggregator = SignalAggregator(
            registry,
            scorer=WeightedScorer(),
            timeout=1.0,
            cooldown=CooldownRegistry(cooldown_seconds),
        )
        return TradingEngine(
            config=EngineConfig(dry_run=dry_run),
            mention_filter=MentionFilter(["memecoin", "solana", "pump"], min_follower_count=100),
            aggregator=aggregator,
            policy=DecisionPolicy(
                buy_threshold=buy_threshold,
                mandatory_gates=[LIQUIDITY_GATE, RUG_SAFE_GATE, CREDIBILITY_GATE],
            ),
            trade_coordinator=None if dry_run else coordinator,
            alert_manager=alert_manager,
        )

    return _build

"""
Tests for the trade coordinator state machine.

These tests verify:
- The full stage sequence on a confirmed trade
- Each failure maps to its stage and reason
- Gas settings change only after a confirmed trade
- Submissions are serialised through one worker
"""
import asyncio
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock

from solana_sniper.execution import (
    ConfirmationTimeout,
    GasSettings,
    RouterError,
    RpcError,
    SignatureStatus,
    SigningError,
    SolanaRpcClient,
    TradeConfig,
    TradeCoordinator,
    TradeFailureReason,
    TradeStage,
)


TOKEN_ID = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"


class TestSuccessfulTrade:
    """Tests for the happy path."""

    @pytest.mark.asyncio
    async def test_confirmed_trade(self, coordinator, mock_router, mock_wallet, mock_notifier):
        outcome = await coordinator.execute(TOKEN_ID)

        assert outcome.succeeded is True
        assert outcome.stage is TradeStage.CONFIRMED
        assert outcome.tx_signature.startswith("5VERY")
        assert outcome.stages == (
            TradeStage.IDLE,
            TradeStage.FEE_SELECTION,
            TradeStage.QUOTE_REQUESTED,
            TradeStage.ROUTE_SIGNED,
            TradeStage.SUBMITTED,
            TradeStage.CONFIRMED,
        )
        assert coordinator.stage is TradeStage.IDLE
        mock_notifier.alert_trade_outcome.assert_called_once_with(outcome)

    @pytest.mark.asyncio
    async def test_quote_uses_spend_amount(self, coordinator, mock_router):
        await coordinator.execute(TOKEN_ID)

        mock_router.quote.assert_awaited_once_with(
            input_mint="So11111111111111111111111111111111111111112",
            output_mint=TOKEN_ID,
            amount=100_000_000,
            slippage_bps=100,
        )

    @pytest.mark.asyncio
    async def test_success_makes_gas_sticky(self, coordinator, fee_policy, mock_wallet):
        """The selected settings become sticky and are used for signing."""
        outcome = await coordinator.execute(TOKEN_ID)

        expected = GasSettings(compute_unit_limit=200_000, priority_fee_per_unit=4_000)
        assert outcome.gas_settings == expected
        assert fee_policy.sticky == expected
        mock_wallet.sign.assert_called_once_with(b"unsigned", expected)


class TestFailedTrades:
    """Tests for failure mapping. None of these raise."""

    @pytest.mark.asyncio
    async def test_quote_failure_leaves_gas_unchanged(self, coordinator, fee_policy, mock_router, sticky_gas, mock_rpc):
        fee_policy.record_success(sticky_gas)
        mock_router.quote = AsyncMock(side_effect=RouterError("No route"))

        outcome = await coordinator.execute(TOKEN_ID)

        assert outcome.succeeded is False
        assert outcome.failure_reason is TradeFailureReason.QUOTE_UNAVAILABLE
        assert outcome.failed_at is TradeStage.QUOTE_REQUESTED
        assert fee_policy.sticky == sticky_gas
        mock_rpc.send_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_quote_failure_without_sticky_stays_unset(self, coordinator, fee_policy, mock_router):
        mock_router.quote = AsyncMock(side_effect=RouterError("No route"))

        await coordinator.execute(TOKEN_ID)

        assert fee_policy.sticky is None

    @pytest.mark.asyncio
    async def test_signing_failure(self, coordinator, mock_wallet, fee_policy):
        mock_wallet.sign.side_effect = SigningError("bad tx")

        outcome = await coordinator.execute(TOKEN_ID)

        assert outcome.failure_reason is TradeFailureReason.SIGNING_FAILED
        assert outcome.failed_at is TradeStage.ROUTE_SIGNED
        assert fee_policy.sticky is None

    @pytest.mark.asyncio
    async def test_swap_build_failure_is_signing_failure(self, coordinator, mock_router):
        mock_router.build_swap_transaction = AsyncMock(side_effect=RouterError("swap 500"))

        outcome = await coordinator.execute(TOKEN_ID)

        assert outcome.failure_reason is TradeFailureReason.SIGNING_FAILED
        assert outcome.failed_at is TradeStage.ROUTE_SIGNED

    @pytest.mark.asyncio
    async def test_send_rejected(self, coordinator, mock_rpc):
        mock_rpc.send_transaction = AsyncMock(side_effect=RpcError("Blockhash not found", code=-32002))

        outcome = await coordinator.execute(TOKEN_ID)

        assert outcome.failure_reason is TradeFailureReason.REJECTED
        assert outcome.failed_at is TradeStage.SUBMITTED
        assert outcome.tx_signature is None

    @pytest.mark.asyncio
    async def test_send_timeout(self, coordinator, mock_rpc):
        async def hang(_signed):
            await asyncio.sleep(10)

        mock_rpc.send_transaction = AsyncMock(side_effect=hang)

        outcome = await coordinator.execute(TOKEN_ID)

        assert outcome.failure_reason is TradeFailureReason.SUBMISSION_TIMEOUT
        assert outcome.failed_at is TradeStage.SUBMITTED

    @pytest.mark.asyncio
    async def test_confirmation_timeout(self, coordinator, mock_rpc, fee_policy):
        mock_rpc.confirm_transaction = AsyncMock(side_effect=ConfirmationTimeout("not confirmed"))

        outcome = await coordinator.execute(TOKEN_ID)

        assert outcome.failure_reason is TradeFailureReason.SUBMISSION_TIMEOUT
        assert outcome.failed_at is TradeStage.SUBMITTED
        assert outcome.tx_signature is not None
        assert fee_policy.sticky is None

    @pytest.mark.asyncio
    async def test_on_chain_error_rejected(self, coordinator, mock_rpc):
        mock_rpc.confirm_transaction = AsyncMock(
            return_value=SignatureStatus("sig", 1, "confirmed", err={"InstructionError": [2, {"Custom": 6001}]})
        )

        outcome = await coordinator.execute(TOKEN_ID)

        assert outcome.failure_reason is TradeFailureReason.REJECTED
        assert "6001" in outcome.detail

    @pytest.mark.asyncio
    async def test_unexpected_confirm_error_still_reported(self, coordinator, mock_rpc, mock_notifier):
        mock_rpc.confirm_transaction = AsyncMock(side_effect=AttributeError("'str' object has no attribute 'get'"))

        outcome = await coordinator.execute(TOKEN_ID)

        assert outcome.succeeded is False
        assert outcome.failure_reason is TradeFailureReason.REJECTED
        assert outcome.failed_at is TradeStage.SUBMITTED
        assert coordinator.outcomes == [outcome]
        mock_notifier.alert_trade_outcome.assert_called_once_with(outcome)

    @pytest.mark.asyncio
    async def test_malformed_status_body_still_produces_outcome(
        self, mock_router, mock_wallet, fee_policy, mock_notifier, fake_session_cls, response_cls
    ):
        """A broadcast trade whose status polls return garbage ends in a reported failure."""
        send_ok = response_cls(200, {"jsonrpc": "2.0", "id": 1, "result": "5sig"})
        garbage = [response_cls(200, {"jsonrpc": "2.0", "id": 1, "result": "not-a-dict"}) for _ in range(200)]
        rpc = SolanaRpcClient("https://rpc.test", session=fake_session_cls(send_ok, *garbage), retry_delay=0)
        coordinator = TradeCoordinator(
            router=mock_router,
            wallet=mock_wallet,
            rpc=rpc,
            fee_policy=fee_policy,
            config=TradeConfig(confirm_timeout_seconds=0.05, confirm_poll_interval=0.01),
            notifier=mock_notifier,
        )

        outcome = await coordinator.execute(TOKEN_ID)

        assert outcome.succeeded is False
        assert outcome.tx_signature == "5sig"
        assert outcome.failed_at is TradeStage.SUBMITTED
        assert outcome.failure_reason is TradeFailureReason.SUBMISSION_TIMEOUT
        assert coordinator.outcomes == [outcome]
        mock_notifier.alert_trade_outcome.assert_called_once_with(outcome)
        assert fee_policy.sticky is None

    @pytest.mark.asyncio
    async def test_notifier_errors_swallowed(self, coordinator, mock_notifier):
        mock_notifier.alert_trade_outcome.side_effect = RuntimeError("telegram down")

        outcome = await coordinator.execute(TOKEN_ID)

        assert outcome.succeeded is True
        assert coordinator.outcomes == [outcome]


class TestQueue:
    """Tests for the single submission queue."""

    @pytest.mark.asyncio
    async def test_worker_runs_in_order(self, coordinator, mock_router):
        worker = asyncio.create_task(coordinator.run())

        assert await coordinator.submit("token_a") is True
        assert await coordinator.submit("token_b") is True
        await coordinator.stop(drain_timeout=2.0)
        worker.cancel()

        assert [o.token_id for o in coordinator.outcomes] == ["token_a", "token_b"]
        assert coordinator.pending == 0

    @pytest.mark.asyncio
    async def test_attempts_never_overlap(self, coordinator, mock_rpc):
        """A second attempt starts only after the first one finished."""
        active = 0
        peak = 0

        async def slow_send(_signed):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.02)
            active -= 1
            return "sig"

        mock_rpc.send_transaction = AsyncMock(side_effect=slow_send)
        worker = asyncio.create_task(coordinator.run())
        for token in ("a", "b", "c"):
            await coordinator.submit(token)
        await coordinator.stop(drain_timeout=2.0)
        worker.cancel()

        assert peak == 1
        assert len(coordinator.outcomes) == 3

    @pytest.mark.asyncio
    async def test_refuses_after_stop(self, coordinator):
        await coordinator.stop(drain_timeout=0.1)

        assert await coordinator.submit(TOKEN_ID) is False

    @pytest.mark.asyncio
    async def test_refuses_when_full(self, mock_router, mock_wallet, mock_rpc, fee_policy):
        small = TradeCoordinator(mock_router, mock_wallet, mock_rpc, fee_policy, config=TradeConfig(queue_size=1))

        assert await small.submit("a") is True
        assert await small.submit("b") is False


class TestTradeConfig:
    def test_spend_amount_lamports(self):
        assert TradeConfig(spend_amount_sol=Decimal("0.25")).spend_amount_lamports == 250_000_000

"""
TradeCoordinator - one buy attempt from fee selection to confirmation.

Stages of an attempt:
    IDLE -> FEE_SELECTION -> QUOTE_REQUESTED -> ROUTE_SIGNED -> SUBMITTED
         -> CONFIRMED | FAILED

Failures are reported as a TradeOutcome (and a notification), never raised.
There are no automatic retries. GasSettings are replaced only when a trade
confirms; every failure leaves them as they were.

All submissions go through one queue and one worker, so transactions from
the single wallet are sent in order.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

from .gas import FeePolicy, GasSettings
from .router import WRAPPED_SOL_MINT, JupiterRouter, Route, RouterError, sol_to_lamports
from .rpc import ConfirmationTimeout, RpcError, SolanaRpcClient
from .wallet import SigningError, Wallet

logger = logging.getLogger(__name__)


class TradeStage(str, Enum):
    IDLE = "idle"
    FEE_SELECTION = "fee_selection"
    QUOTE_REQUESTED = "quote_requested"
    ROUTE_SIGNED = "route_signed"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class TradeFailureReason(str, Enum):
    QUOTE_UNAVAILABLE = "quote_unavailable"
    SIGNING_FAILED = "signing_failed"
    SUBMISSION_TIMEOUT = "submission_timeout"
    REJECTED = "rejected"


@dataclass(frozen=True)
class TradeOutcome:
    """
    Result of one trade attempt.

    ``stage`` is CONFIRMED or FAILED; ``failed_at`` is the stage that was
    active when a failure happened.
    """

    token_id: str
    succeeded: bool
    gas_settings: GasSettings
    timestamp: float
    stage: TradeStage
    tx_signature: Optional[str] = None
    failure_reason: Optional[TradeFailureReason] = None
    failed_at: Optional[TradeStage] = None
    detail: Optional[str] = None
    stages: Tuple[TradeStage, ...] = ()


@dataclass
class TradeConfig:
    """Configuration for buy attempts."""

    spend_amount_sol: Decimal = Decimal("0.1")
    slippage_bps: int = 100
    confirm_timeout_seconds: float = 60.0
    confirm_poll_interval: float = 1.0
    input_mint: str = WRAPPED_SOL_MINT
    queue_size: int = 100

    @property
    def spend_amount_lamports(self) -> int:
        return sol_to_lamports(self.spend_amount_sol)


class _AttemptFailed(Exception):
    def __init__(self, reason: TradeFailureReason, detail: str):
        super().__init__(detail)
        self.reason = reason
        self.detail = detail


class TradeCoordinator:
    """
    Runs buy attempts and serialises them through a queue.

    Usage:
        coordinator = TradeCoordinator(router, wallet, rpc, fee_policy, notifier=alerts)
        worker = asyncio.create_task(coordinator.run())

        await coordinator.submit(token_id)      # queued, returns immediately
        outcome = await coordinator.execute(token_id)   # direct, for tests/tools

        await coordinator.stop()
    """

    def __init__(
        self,
        router: JupiterRouter,
        wallet: Wallet,
        rpc: SolanaRpcClient,
        fee_policy: FeePolicy,
        config: Optional[TradeConfig] = None,
        notifier: Optional[Any] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the coordinator.

        Args:
            router: Swap router for quotes and unsigned transactions
            wallet: Signing wallet
            rpc: RPC client for broadcast and confirmation
            fee_policy: Sticky gas settings (the coordinator is its only writer)
            config: Trade configuration
            notifier: Object with ``alert_trade_outcome(outcome)`` (sync or async)
            clock: Wall clock for outcome timestamps
        """
        self._router = router
        self._wallet = wallet
        self._rpc = rpc
        self._fee_policy = fee_policy
        self._config = config or TradeConfig()
        self._notifier = notifier
        self._clock = clock

        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=self._config.queue_size)
        self._accepting = True
        self._stage = TradeStage.IDLE
        self._outcomes: List[TradeOutcome] = []

    @property
    def stage(self) -> TradeStage:
        """Stage of the attempt in progress (IDLE between attempts)."""
        return self._stage

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def outcomes(self) -> List[TradeOutcome]:
        return list(self._outcomes)

    @property
    def fee_policy(self) -> FeePolicy:
        return self._fee_policy

    # =========================================================================
    # Queue
    # =========================================================================

    async def submit(self, token_id: str) -> bool:
        """
        Queue a buy for the worker.

        Returns:
            True if queued, False if shutting down or the queue is full
        """
        if not self._accepting:
            logger.warning(f"Trade for {token_id} refused: coordinator is stopping")
            return False
        try:
            self._queue.put_nowait(token_id)
        except asyncio.QueueFull:
            logger.error(f"Trade queue full ({self._queue.maxsize}), dropping buy for {token_id}")
            return False
        logger.info(f"Queued buy for {token_id} ({self._queue.qsize()} pending)")
        return True

    async def run(self) -> None:
        """Worker loop. One attempt at a time, in submission order."""
        while True:
            token_id = await self._queue.get()
            try:
                await self.execute(token_id)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Unexpected error executing trade for {token_id}: {e}")
            finally:
                self._queue.task_done()

    async def stop(self, drain_timeout: Optional[float] = None) -> None:
        """
        Stop accepting trades and wait for queued attempts to finish.

        Each attempt is bounded by its own timeouts; ``drain_timeout`` caps
        the total wait.
        """
        self._accepting = False
        try:
            await asyncio.wait_for(self._queue.join(), timeout=drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Trade queue not drained after {drain_timeout}s, {self._queue.qsize()} left")

    # =========================================================================
    # State machine
    # =========================================================================

    async def execute(self, token_id: str) -> TradeOutcome:
        """
        Run one buy attempt to completion.

        Never raises for trade failures; the outcome says what happened.
        """
        stages: List[TradeStage] = [TradeStage.IDLE]

        def advance(stage: TradeStage) -> None:
            self._stage = stage
            stages.append(stage)
            logger.debug(f"Trade {token_id}: {stage.value}")

        gas = self._fee_policy.current
        signature: Optional[str] = None

        try:
            advance(TradeStage.FEE_SELECTION)
            gas = await self._fee_policy.select()

            advance(TradeStage.QUOTE_REQUESTED)
            route = await self._quote(token_id)

            advance(TradeStage.ROUTE_SIGNED)
            signed = await self._build_and_sign(route, gas)

            advance(TradeStage.SUBMITTED)
            signature = await self._send(signed)
            logger.info(f"Trade {token_id}: submitted {signature}")

            await self._confirm(signature)
            advance(TradeStage.CONFIRMED)

        except _AttemptFailed as e:
            failed_at = self._stage
            advance(TradeStage.FAILED)
            outcome = TradeOutcome(
                token_id=token_id,
                succeeded=False,
                gas_settings=gas,
                timestamp=self._clock(),
                stage=TradeStage.FAILED,
                tx_signature=signature,
                failure_reason=e.reason,
                failed_at=failed_at,
                detail=e.detail,
                stages=tuple(stages),
            )
            logger.warning(f"Trade {token_id} failed at {failed_at.value}: {e.reason.value} ({e.detail})")
        else:
            self._fee_policy.record_success(gas)
            outcome = TradeOutcome(
                token_id=token_id,
                succeeded=True,
                gas_settings=gas,
                timestamp=self._clock(),
                stage=TradeStage.CONFIRMED,
                tx_signature=signature,
                stages=tuple(stages),
            )
            logger.info(f"Trade {token_id} confirmed: {signature}")
        finally:
            self._stage = TradeStage.IDLE

        self._outcomes.append(outcome)
        await self._notify(outcome)
        return outcome

    async def _quote(self, token_id: str) -> Route:
        try:
            return await self._router.quote(
                input_mint=self._config.input_mint,
                output_mint=token_id,
                amount=self._config.spend_amount_lamports,
                slippage_bps=self._config.slippage_bps,
            )
        except asyncio.CancelledError:
            raise
        except RouterError as e:
            raise _AttemptFailed(TradeFailureReason.QUOTE_UNAVAILABLE, str(e)) from e
        except Exception as e:
            raise _AttemptFailed(TradeFailureReason.QUOTE_UNAVAILABLE, f"{type(e).__name__}: {e}") from e

    async def _build_and_sign(self, route: Route, gas: GasSettings) -> bytes:
        try:
            unsigned = await self._router.build_swap_transaction(route, self._wallet.public_key, gas)
            return self._wallet.sign(unsigned, gas)
        except asyncio.CancelledError:
            raise
        except (RouterError, SigningError) as e:
            raise _AttemptFailed(TradeFailureReason.SIGNING_FAILED, str(e)) from e
        except Exception as e:
            raise _AttemptFailed(TradeFailureReason.SIGNING_FAILED, f"{type(e).__name__}: {e}") from e

    async def _send(self, signed: bytes) -> str:
        try:
            return await asyncio.wait_for(
                self._rpc.send_transaction(signed),
                timeout=self._config.confirm_timeout_seconds,
            )
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError as e:
            raise _AttemptFailed(TradeFailureReason.SUBMISSION_TIMEOUT, "sendTransaction timed out") from e
        except RpcError as e:
            raise _AttemptFailed(TradeFailureReason.REJECTED, str(e)) from e
        except Exception as e:
            raise _AttemptFailed(TradeFailureReason.REJECTED, f"{type(e).__name__}: {e}") from e

    async def _confirm(self, signature: str) -> None:
        try:
            status = await self._rpc.confirm_transaction(
                signature,
                timeout=self._config.confirm_timeout_seconds,
                poll_interval=self._config.confirm_poll_interval,
            )
        except asyncio.CancelledError:
            raise
        except ConfirmationTimeout as e:
            raise _AttemptFailed(TradeFailureReason.SUBMISSION_TIMEOUT, str(e)) from e
        except RpcError as e:
            raise _AttemptFailed(TradeFailureReason.REJECTED, str(e)) from e
        except Exception as e:
            raise _AttemptFailed(TradeFailureReason.REJECTED, f"{type(e).__name__}: {e}") from e

        if status.failed:
            raise _AttemptFailed(TradeFailureReason.REJECTED, f"On-chain error: {status.err}")

    async def _notify(self, outcome: TradeOutcome) -> None:
        """Deliver the outcome. Notification failures are logged, not raised."""
        if self._notifier is None:
            return
        try:
            alert = self._notifier.alert_trade_outcome
            if inspect.iscoroutinefunction(alert):
                await alert(outcome)
            else:
                await asyncio.to_thread(alert, outcome)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Failed to send trade notification for {outcome.token_id}: {e}")

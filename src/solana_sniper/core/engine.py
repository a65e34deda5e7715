"""
Trading Engine - Correlates mentions with evaluations and decides.

The engine coordinates the flow for each social post:
1. Filter the post into a Mention (keywords, follower gate, token id)
2. Create a Candidate for the mentioned token
3. Claim the token's cooldown (duplicates inside the window stop here)
4. Aggregate evaluator signals
5. Decide BUY or SKIP
6. Route BUY to the trade queue (or log and notify in dry-run mode)

Swap events from the log subscription are folded into the tracker on a
separate consumer so a slow evaluation never delays swap ingestion.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional, Set

from solana_sniper.evaluators import Candidate
from solana_sniper.ingestion.mention_filter import Mention, MentionFilter
from solana_sniper.ingestion.models import SocialPost, SwapEvent

from .aggregator import SignalAggregator
from .decision import Decision, DecisionPolicy, Verdict

if TYPE_CHECKING:
    from solana_sniper.execution import TradeCoordinator
    from solana_sniper.ingestion.swap_tracker import SwapEventTracker
    from solana_sniper.monitoring import AlertManager

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """Configuration for the trading engine."""

    # Mode
    dry_run: bool = True  # If True, don't submit real trades

    # Candidate evaluations running at once
    max_concurrent_candidates: int = 32

    # How long stop() waits for running evaluations
    shutdown_timeout_seconds: float = 10.0


@dataclass
class EngineStats:
    """Runtime statistics for the engine."""

    posts_received: int = 0
    mentions_qualified: int = 0
    mentions_without_token: int = 0
    candidates_evaluated: int = 0
    cooldown_skips: int = 0
    buy_decisions: int = 0
    skip_decisions: int = 0
    trades_queued: int = 0
    dry_run_signals: int = 0
    swaps_ingested: int = 0
    errors: int = 0


class TradingEngine:
    """
    Main engine orchestrator.

    Coordinates the flow: posts -> mentions -> candidates -> decision -> trade queue

    Usage:
        engine = TradingEngine(
            config=EngineConfig(dry_run=True),
            mention_filter=MentionFilter(["memecoin"]),
            aggregator=SignalAggregator(registry, cooldown=CooldownRegistry(600)),
            policy=DecisionPolicy(buy_threshold=70),
        )

        await engine.start()

        # Process posts from the social stream
        verdict = await engine.process_post(post)

        await engine.stop()
    """

    def __init__(
        self,
        config: EngineConfig,
        mention_filter: MentionFilter,
        aggregator: SignalAggregator,
        policy: DecisionPolicy,
        trade_coordinator: Optional["TradeCoordinator"] = None,
        alert_manager: Optional["AlertManager"] = None,
        swap_tracker: Optional["SwapEventTracker"] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the trading engine.

        Args:
            config: Engine configuration
            mention_filter: Post to mention filter
            aggregator: Evaluator fan-out (owns the cooldown registry)
            policy: BUY/SKIP policy
            trade_coordinator: Trade queue (required when not in dry-run mode)
            alert_manager: Optional notifier for BUY decisions
            swap_tracker: Optional tracker fed by ``consume_swaps``
            clock: Monotonic clock for candidate timestamps
        """
        self.config = config
        self._mention_filter = mention_filter
        self._aggregator = aggregator
        self._policy = policy
        self._trade_coordinator = trade_coordinator
        self._alert_manager = alert_manager
        self._swap_tracker = swap_tracker
        self._clock = clock

        self._stats = EngineStats()
        self._is_running = False
        self._semaphore = asyncio.Semaphore(config.max_concurrent_candidates)
        self._tasks: Set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def stats(self) -> EngineStats:
        return self._stats

    @property
    def in_flight(self) -> int:
        """Candidate evaluations currently running."""
        return len(self._tasks)

    async def start(self) -> None:
        if self._is_running:
            logger.warning("Engine already running")
            return

        if not self.config.dry_run and self._trade_coordinator is None:
            raise ValueError("Live mode requires a trade coordinator")

        self._is_running = True
        logger.info(f"Mode: {'DRY RUN' if self.config.dry_run else 'LIVE'}")
        logger.info(
            f"Buy threshold {self._policy.buy_threshold}, "
            f"mandatory gates: {sorted(self._policy.mandatory_gates) or 'none'}"
        )
        logger.info("Trading engine started")

    async def stop(self) -> None:
        """Stop the engine, letting running evaluations finish up to the timeout."""
        if not self._is_running:
            return

        logger.info("Stopping trading engine...")
        self._is_running = False

        if self._tasks:
            done, pending = await asyncio.wait(
                set(self._tasks), timeout=self.config.shutdown_timeout_seconds
            )
            for task in pending:
                task.cancel()
            if pending:
                logger.warning(f"Cancelled {len(pending)} unfinished candidate evaluation(s)")
                await asyncio.gather(*pending, return_exceptions=True)

        logger.info("Trading engine stopped")

    # =========================================================================
    # Consumers
    # =========================================================================

    async def consume_posts(self, queue: "asyncio.Queue[SocialPost]") -> None:
        """
        Consume posts until cancelled. Each post is handled in its own task
        so one slow candidate never blocks the others.

        A post is only taken off the queue once a candidate slot is free, so
        a burst backs up in the bounded queue instead of in pending tasks.
        """
        while True:
            await self._semaphore.acquire()
            try:
                post = await queue.get()
            except BaseException:
                self._semaphore.release()
                raise

            try:
                if not self._is_running:
                    self._semaphore.release()
                    logger.debug(f"Engine stopped, dropping post {post.post_id}")
                    continue
                task = asyncio.create_task(self._handle_post(post))
                self._tasks.add(task)
                task.add_done_callback(self._post_done)
            finally:
                queue.task_done()

    def _post_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        self._semaphore.release()

    async def consume_swaps(self, queue: "asyncio.Queue[SwapEvent]") -> None:
        """Fold swap events into the tracker until cancelled."""
        while True:
            event = await queue.get()
            try:
                self.ingest_swap(event)
            finally:
                queue.task_done()

    def ingest_swap(self, event: SwapEvent) -> bool:
        if self._swap_tracker is None:
            return False
        accepted = self._swap_tracker.ingest(event)
        if accepted:
            self._stats.swaps_ingested += 1
        return accepted

    async def _handle_post(self, post: SocialPost) -> None:
        try:
            await self.process_post(post)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._stats.errors += 1
            logger.exception(f"Error processing post {post.post_id}: {e}")

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def process_post(self, post: SocialPost) -> Optional[Verdict]:
        """
        Run one post through the pipeline.

        Returns:
            The verdict, or None if the post produced no decision
            (filtered out, no token, or token cooling down)
        """
        self._stats.posts_received += 1

        mention = self._mention_filter.process(post)
        if mention is None:
            return None

        return await self.process_mention(mention)

    async def process_mention(self, mention: Mention) -> Optional[Verdict]:
        self._stats.mentions_qualified += 1

        if not mention.candidate_token_id:
            self._stats.mentions_without_token += 1
            logger.debug(
                f"Mention by {mention.author_id} matched {sorted(mention.matched_keywords)} "
                f"but names no token"
            )
            return None

        candidate = Candidate(
            token_id=mention.candidate_token_id,
            first_seen_at=self._clock(),
            originating_mention=mention,
        )
        logger.info(
            f"Candidate {candidate.token_id} from author {mention.author_id} "
            f"({mention.author_follower_count} followers, keywords {sorted(mention.matched_keywords)})"
        )

        score = await self._aggregator.evaluate_if_due(candidate)
        if score is None:
            self._stats.cooldown_skips += 1
            logger.info(f"Candidate {candidate.token_id} is cooling down, skipped")
            return None

        self._stats.candidates_evaluated += 1
        verdict = self._policy.verdict(score)
        await self._route_verdict(verdict)
        return verdict

    async def _route_verdict(self, verdict: Verdict) -> None:
        if verdict.decision is Decision.SKIP:
            self._stats.skip_decisions += 1
            logger.info(f"SKIP {verdict.token_id}: {'; '.join(verdict.reasons)}")
            return

        self._stats.buy_decisions += 1

        if self.config.dry_run:
            self._stats.dry_run_signals += 1
            logger.info(
                f"DRY RUN: Would buy {verdict.token_id} (composite {verdict.composite_score:.2f})"
            )
            await self._alert(verdict, dry_run=True)
            return

        logger.info(f"BUY {verdict.token_id} (composite {verdict.composite_score:.2f})")
        await self._alert(verdict, dry_run=False)

        if await self._trade_coordinator.submit(verdict.token_id):
            self._stats.trades_queued += 1
        else:
            self._stats.errors += 1

    async def _alert(self, verdict: Verdict, dry_run: bool) -> None:
        if self._alert_manager is None:
            return
        try:
            alert = self._alert_manager.alert_buy_decision
            if inspect.iscoroutinefunction(alert):
                await alert(verdict, dry_run=dry_run)
            else:
                await asyncio.to_thread(alert, verdict, dry_run=dry_run)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Failed to send buy alert for {verdict.token_id}: {e}")

    def describe(self) -> dict[str, Any]:
        """Snapshot for the periodic status log."""
        stats = self._stats
        return {
            "posts": stats.posts_received,
            "mentions": stats.mentions_qualified,
            "evaluated": stats.candidates_evaluated,
            "cooldown_skips": stats.cooldown_skips,
            "buys": stats.buy_decisions,
            "skips": stats.skip_decisions,
            "queued": stats.trades_queued,
            "dry_run": stats.dry_run_signals,
            "swaps": stats.swaps_ingested,
            "errors": stats.errors,
            "in_flight": self.in_flight,
        }

"""
Solana Sniper - Main Entry Point

Correlates on-chain swap activity and social mentions, scores mentioned
tokens with independent evaluators, and buys tokens that pass the decision
policy (once per token per cooldown window).

Usage:
    python -m solana_sniper.main [--dry-run] [--env-file PATH] [--log-level LEVEL]

Configuration:
    The bot reads configuration from:
    1. Environment variables
    2. A .env file (values already in the environment win)
    3. Command line arguments

Environment Variables:
    SOLANA_RPC_URL             HTTP RPC endpoint (required)
    SOLANA_WS_URL              Websocket endpoint (default: derived from SOLANA_RPC_URL)
    COMMITMENT                 Commitment level (default: confirmed)
    WATCHED_PROGRAM_ID         Program whose logs are subscribed (default: Raydium AMM v4)
    WATCHED_POOL_ID            Pool whose swaps are tracked (default: Raydium SOL/USDC)
    SWAP_DECODER               "module:attr" of the SwapDecoder (log stream disabled if unset)
    POLL_INTERVAL_MS           Trend report / price poll interval (default: 10000)
    HISTORY_CAPACITY           Samples kept in the swap history (default: 100)
    TREND_WINDOW               Samples used for the trend (default: 5)
    MENTION_KEYWORDS           Comma-separated keywords (default: memecoin,solana,pump)
    MIN_FOLLOWER_COUNT         Follower gate for mention authors (default: 100)
    X_BEARER_TOKEN             Social stream bearer token (social stream disabled if unset)
    BUY_THRESHOLD              Composite score needed to buy (required)
    COOLDOWN_SECONDS           Per-token dedup window (required)
    MANDATORY_GATES            Gates that must be open to buy
                               (default: liquidity_above_floor,rug_safe,credibility_above_floor)
    SCORE_WEIGHTS              Evaluator weights, e.g. "token_analysis=1,safety=0.1,credibility=0.1"
    EVALUATOR_TIMEOUT_SECONDS  Per-evaluator timeout (default: 5)
    ANALYSIS_API_URL           Token analysis service base URL
    SAFETY_API_URL             Safety (rug-check) service base URL
    CREDIBILITY_API_URL        Author credibility service base URL
    ANALYSIS_API_KEY           API key for the analysis services
    JUPITER_API_URL            Swap router base URL (default: https://quote-api.jup.ag/v6)
    SPEND_AMOUNT_SOL           SOL spent per buy (default: 0.1)
    SLIPPAGE_BPS               Slippage tolerance (default: 100)
    MIN_PRIORITY_FEE           Priority fee floor in micro-lamports/CU (default: 1000)
    COMPUTE_UNIT_LIMIT         Compute-unit limit (default: 200000)
    CONFIRM_TIMEOUT_SECONDS    Confirmation timeout per trade (default: 60)
    WALLET_SECRET_KEY          Base58 secret or JSON byte array (live mode)
    WALLET_KEYPAIR_PATH        Keypair file, alternative to WALLET_SECRET_KEY
    MARKET_DATA_ENABLED        Poll the price API (default: true)
    PRICE_API_URL              Price endpoint (default: Birdeye /defi/price)
    PRICE_API_KEY              Price API key
    PRICE_TOKEN_ADDRESS        Token priced by the poller (default: wrapped SOL)
    TELEGRAM_BOT_TOKEN         Telegram bot token for alerts
    TELEGRAM_CHAT_ID           Telegram chat ID for alerts
    LOG_LEVEL                  Logging level (DEBUG/INFO/WARNING/ERROR)
    DRY_RUN                    Set to "false" for live trading (default: true)

Live Mode Requirements:
    When DRY_RUN=false, the bot requires a wallet secret. The bot will fail
    fast if it is missing or cannot be loaded.
"""

from __future__ import annotations

import argparse
import asyncio
import atexit
import fcntl
import importlib
import logging
import os
import signal
import sys
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

import aiohttp

from solana_sniper.core import (
    CooldownRegistry,
    DecisionPolicy,
    EngineConfig,
    SignalAggregator,
    TradingEngine,
    WeightedScorer,
)
from solana_sniper.core.aggregator import DEFAULT_WEIGHTS
from solana_sniper.evaluators import (
    CREDIBILITY_GATE,
    LIQUIDITY_GATE,
    RUG_SAFE_GATE,
    AnalysisServiceClient,
    CredibilityEvaluator,
    EvaluatorRegistry,
    SafetyEvaluator,
    TokenAnalysisEvaluator,
)
from solana_sniper.execution import (
    DEFAULT_JUPITER_API_URL,
    WRAPPED_SOL_MINT,
    FeePolicy,
    JupiterRouter,
    SolanaRpcClient,
    TradeConfig,
    TradeCoordinator,
    Wallet,
)
from solana_sniper.ingestion import (
    DEFAULT_POOL_ID,
    DEFAULT_PRICE_API_URL,
    DEFAULT_PROGRAM_ID,
    MarketDataPoller,
    MentionFilter,
    ProgramLogSubscription,
    SocialPostStream,
    SwapEventTracker,
    SwapLogFilter,
    ws_url_from_rpc,
)
from solana_sniper.monitoring import AlertManager

# Configure logging before anything else logs
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Default PID file location
DEFAULT_PID_FILE = "/tmp/solana-sniper.pid"

DEFAULT_KEYWORDS = ("memecoin", "solana", "pump")
DEFAULT_MANDATORY_GATES = (LIQUIDITY_GATE, RUG_SAFE_GATE, CREDIBILITY_GATE)
DEFAULT_ANALYSIS_API_URL = "https://public-api.birdeye.so/v1"
DEFAULT_SAFETY_API_URL = "https://api.rugcheck.xyz/v1"
DEFAULT_CREDIBILITY_API_URL = "http://localhost:8081/v1"


class ConfigurationError(Exception):
    """Missing or invalid configuration. Fatal at startup."""
    pass


class SingletonBotError(Exception):
    """Raised when another bot instance is already running."""
    pass


@contextmanager
def singleton_lock(pid_file: str = DEFAULT_PID_FILE) -> Generator[None, None, None]:
    """
    Hold an exclusive lock on the PID file for the life of the process.

    Two instances would buy every signal twice from the same wallet.

    Raises:
        SingletonBotError: If another instance is already running

    Usage:
        with singleton_lock():
            run_bot()
    """
    pid_path = Path(pid_file)

    # Read existing PID before opening (which would truncate)
    existing_pid = None
    try:
        existing_pid = pid_path.read_text().strip()
    except FileNotFoundError:
        pass

    fp = open(pid_path, "a+")

    try:
        fcntl.flock(fp.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError:
        fp.close()
        if existing_pid:
            raise SingletonBotError(
                f"Solana sniper already running as PID {existing_pid}. "
                f"Stop it first (kill {existing_pid})"
            )
        raise SingletonBotError(
            "Solana sniper already running (lock held). "
            "Find it with: pgrep -f solana_sniper"
        )

    fp.seek(0)
    fp.truncate()
    fp.write(str(os.getpid()))
    fp.flush()

    def cleanup():
        try:
            fcntl.flock(fp.fileno(), fcntl.LOCK_UN)
            fp.close()
            pid_path.unlink(missing_ok=True)
        except (OSError, ValueError):
            pass

    atexit.register(cleanup)

    try:
        logger.info(f"Acquired singleton lock (PID: {os.getpid()}, file: {pid_file})")
        yield
    finally:
        cleanup()
        atexit.unregister(cleanup)


def _split(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_weights(value: str) -> Dict[str, float]:
    """
    Parse "name=weight,name=weight" into a dict.

    Examples:
        >>> parse_weights("token_analysis=1,safety=0.1")
        {'token_analysis': 1.0, 'safety': 0.1}
    """
    weights: Dict[str, float] = {}
    for item in _split(value):
        name, sep, weight = item.partition("=")
        if not sep:
            raise ConfigurationError(f"Invalid weight entry '{item}', expected name=weight")
        try:
            weights[name.strip()] = float(weight)
        except ValueError as e:
            raise ConfigurationError(f"Invalid weight for {name.strip()}: {weight}") from e
    return weights


@dataclass
class BotConfig:
    """Complete bot configuration."""

    # Chain
    rpc_endpoint: str = ""
    ws_endpoint: str = ""
    commitment: str = "confirmed"
    program_id: str = DEFAULT_PROGRAM_ID
    pool_id: str = DEFAULT_POOL_ID
    swap_decoder: Optional[str] = None

    # Swap tracking
    poll_interval_ms: int = 10_000
    history_capacity: int = 100
    trend_window: int = 5

    # Mentions
    keywords: List[str] = field(default_factory=lambda: list(DEFAULT_KEYWORDS))
    min_follower_count: int = 100
    x_bearer_token: Optional[str] = None

    # Decision (no defaults: must be configured)
    buy_threshold: Optional[Decimal] = None
    cooldown_seconds: Optional[float] = None
    mandatory_gates: List[str] = field(default_factory=lambda: list(DEFAULT_MANDATORY_GATES))
    score_weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    evaluator_timeout_seconds: float = 5.0

    # Evaluator services
    analysis_api_url: str = DEFAULT_ANALYSIS_API_URL
    safety_api_url: str = DEFAULT_SAFETY_API_URL
    credibility_api_url: str = DEFAULT_CREDIBILITY_API_URL
    analysis_api_key: Optional[str] = None

    # Trading
    dry_run: bool = True
    jupiter_api_url: str = DEFAULT_JUPITER_API_URL
    spend_amount_sol: Decimal = Decimal("0.1")
    slippage_bps: int = 100
    min_priority_fee: int = 1_000
    compute_unit_limit: int = 200_000
    confirm_timeout_seconds: float = 60.0
    wallet_secret: Optional[str] = None

    # Market data
    market_data_enabled: bool = True
    price_api_url: str = DEFAULT_PRICE_API_URL
    price_api_key: Optional[str] = None
    price_token_address: str = WRAPPED_SOL_MINT

    # Alerts
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None

    # Misc
    request_timeout_seconds: float = 10.0
    queue_size: int = 1000

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000.0

    @classmethod
    def from_env(cls) -> "BotConfig":
        """
        Load configuration from environment variables.

        Raises:
            ConfigurationError: If a value cannot be parsed
        """
        env = os.environ

        try:
            rpc_endpoint = env.get("SOLANA_RPC_URL", "")
            buy_threshold = env.get("BUY_THRESHOLD")
            cooldown = env.get("COOLDOWN_SECONDS")

            config = cls(
                rpc_endpoint=rpc_endpoint,
                ws_endpoint=env.get("SOLANA_WS_URL") or ws_url_from_rpc(rpc_endpoint),
                commitment=env.get("COMMITMENT", "confirmed"),
                program_id=env.get("WATCHED_PROGRAM_ID", DEFAULT_PROGRAM_ID),
                pool_id=env.get("WATCHED_POOL_ID", DEFAULT_POOL_ID),
                swap_decoder=env.get("SWAP_DECODER") or None,
                poll_interval_ms=int(env.get("POLL_INTERVAL_MS", "10000")),
                history_capacity=int(env.get("HISTORY_CAPACITY", "100")),
                trend_window=int(env.get("TREND_WINDOW", "5")),
                keywords=_split(env.get("MENTION_KEYWORDS", ",".join(DEFAULT_KEYWORDS))),
                min_follower_count=int(env.get("MIN_FOLLOWER_COUNT", "100")),
                x_bearer_token=env.get("X_BEARER_TOKEN") or None,
                buy_threshold=Decimal(buy_threshold) if buy_threshold else None,
                cooldown_seconds=float(cooldown) if cooldown else None,
                mandatory_gates=_split(env.get("MANDATORY_GATES", ",".join(DEFAULT_MANDATORY_GATES))),
                score_weights=(
                    parse_weights(env["SCORE_WEIGHTS"]) if env.get("SCORE_WEIGHTS") else dict(DEFAULT_WEIGHTS)
                ),
                evaluator_timeout_seconds=float(env.get("EVALUATOR_TIMEOUT_SECONDS", "5")),
                analysis_api_url=env.get("ANALYSIS_API_URL", DEFAULT_ANALYSIS_API_URL),
                safety_api_url=env.get("SAFETY_API_URL", DEFAULT_SAFETY_API_URL),
                credibility_api_url=env.get("CREDIBILITY_API_URL", DEFAULT_CREDIBILITY_API_URL),
                analysis_api_key=env.get("ANALYSIS_API_KEY") or None,
                dry_run=env.get("DRY_RUN", "true").lower() == "true",
                jupiter_api_url=env.get("JUPITER_API_URL", DEFAULT_JUPITER_API_URL),
                spend_amount_sol=Decimal(env.get("SPEND_AMOUNT_SOL", "0.1")),
                slippage_bps=int(env.get("SLIPPAGE_BPS", "100")),
                min_priority_fee=int(env.get("MIN_PRIORITY_FEE", "1000")),
                compute_unit_limit=int(env.get("COMPUTE_UNIT_LIMIT", "200000")),
                confirm_timeout_seconds=float(env.get("CONFIRM_TIMEOUT_SECONDS", "60")),
                wallet_secret=env.get("WALLET_SECRET_KEY") or env.get("WALLET_KEYPAIR_PATH") or None,
                market_data_enabled=env.get("MARKET_DATA_ENABLED", "true").lower() == "true",
                price_api_url=env.get("PRICE_API_URL", DEFAULT_PRICE_API_URL),
                price_api_key=env.get("PRICE_API_KEY") or None,
                price_token_address=env.get("PRICE_TOKEN_ADDRESS", WRAPPED_SOL_MINT),
                telegram_bot_token=env.get("TELEGRAM_BOT_TOKEN") or None,
                telegram_chat_id=env.get("TELEGRAM_CHAT_ID") or None,
            )
        except (ValueError, InvalidOperation) as e:
            raise ConfigurationError(f"Invalid configuration value: {e}") from e

        return config

    def validate(self) -> None:
        """
        Check the configuration before anything connects.

        Raises:
            ConfigurationError: On the first problem found
        """
        if not self.rpc_endpoint:
            raise ConfigurationError("SOLANA_RPC_URL environment variable is required")
        if self.buy_threshold is None:
            raise ConfigurationError("BUY_THRESHOLD environment variable is required")
        if self.buy_threshold <= 0:
            raise ConfigurationError(f"BUY_THRESHOLD must be positive, got {self.buy_threshold}")
        if self.cooldown_seconds is None:
            raise ConfigurationError("COOLDOWN_SECONDS environment variable is required")
        if self.cooldown_seconds <= 0:
            raise ConfigurationError(f"COOLDOWN_SECONDS must be positive, got {self.cooldown_seconds}")
        if not self.keywords:
            raise ConfigurationError("MENTION_KEYWORDS must contain at least one keyword")
        if self.evaluator_timeout_seconds <= 0:
            raise ConfigurationError("EVALUATOR_TIMEOUT_SECONDS must be positive")
        if self.history_capacity < self.trend_window or self.trend_window <= 0:
            raise ConfigurationError(
                f"TREND_WINDOW ({self.trend_window}) must be positive and "
                f"not exceed HISTORY_CAPACITY ({self.history_capacity})"
            )
        if self.poll_interval_ms <= 0:
            raise ConfigurationError("POLL_INTERVAL_MS must be positive")
        if self.spend_amount_sol <= 0:
            raise ConfigurationError("SPEND_AMOUNT_SOL must be positive")
        if not self.dry_run and not self.wallet_secret:
            raise ConfigurationError(
                "Live trading requires WALLET_SECRET_KEY or WALLET_KEYPAIR_PATH"
            )


def load_swap_decoder(path: str) -> Any:
    """
    Load a SwapDecoder from "package.module:attribute".

    Classes are instantiated with no arguments; other objects are used as is.

    Raises:
        ConfigurationError: If the path cannot be imported
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"SWAP_DECODER must look like 'module:attr', got '{path}'")
    try:
        target = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot load swap decoder {path}: {e}") from e
    return target() if isinstance(target, type) else target


class TradingBot:
    """
    Main bot orchestrator.

    Manages the lifecycle of all components:
    - Producers (log subscription, social stream, price poller)
    - Trading engine (mentions -> decisions)
    - Trade coordinator (live mode)
    - Alerts
    """

    def __init__(self, config: BotConfig):
        self.config = config
        self._running = False
        self._shutdown_event = asyncio.Event()
        self._started_at: Optional[datetime] = None

        # Components (initialized on start)
        self._session: Optional[aiohttp.ClientSession] = None
        self._analysis_client: Optional[AnalysisServiceClient] = None
        self._rpc: Optional[SolanaRpcClient] = None
        self._router: Optional[JupiterRouter] = None
        self._alert_manager: Optional[AlertManager] = None
        self._tracker: Optional[SwapEventTracker] = None
        self._cooldown: Optional[CooldownRegistry] = None
        self._engine: Optional[TradingEngine] = None
        self._coordinator: Optional[TradeCoordinator] = None
        self._log_subscription: Optional[ProgramLogSubscription] = None
        self._social_stream: Optional[SocialPostStream] = None
        self._poller: Optional[MarketDataPoller] = None

        self._swap_queue: Optional[asyncio.Queue] = None
        self._post_queue: Optional[asyncio.Queue] = None
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def engine(self) -> Optional[TradingEngine]:
        return self._engine

    @property
    def tracker(self) -> Optional[SwapEventTracker]:
        return self._tracker

    async def start(self) -> None:
        """Start the bot and run until a shutdown signal."""
        logger.info("=" * 60)
        logger.info("SOLANA SNIPER")
        logger.info("=" * 60)
        logger.info(f"Trading: {'DRY RUN' if self.config.dry_run else 'LIVE'}")
        logger.info(f"RPC: {self.config.rpc_endpoint}")
        logger.info("=" * 60)

        self._running = True
        self._started_at = datetime.now(timezone.utc)
        self._shutdown_event.clear()

        # Setup signal handlers FIRST to catch early signals
        self._setup_signal_handlers()

        try:
            await self._init_components()

            if self._shutdown_event.is_set():
                logger.info("Shutdown requested during startup")
                return

            await self._init_producers()

            logger.info("=" * 60)
            logger.info("Bot started successfully")
            logger.info("Press Ctrl+C to stop")
            logger.info("=" * 60)

            await self._run_loop()

        except Exception as e:
            logger.exception(f"Fatal error: {e}")
            raise
        finally:
            await self.stop()

    async def stop(self) -> None:
        """
        Stop the bot gracefully.

        Ingestion stops first, running evaluations and queued trades get to
        finish within their own timeouts, then every session is closed.
        """
        if not self._running:
            return

        logger.info("Shutting down...")
        self._running = False
        self._shutdown_event.set()

        # 1. Producers
        for name, component in (
            ("log subscription", self._log_subscription),
            ("social stream", self._social_stream),
            ("market data poller", self._poller),
        ):
            if component is None:
                continue
            try:
                await component.stop()
            except Exception as e:
                logger.warning(f"Error stopping {name}: {e}")

        for name in ("social_stream", "poller", "swap_consumer", "post_consumer"):
            await self._cancel_task(name)

        # 2. Engine (lets running evaluations finish)
        if self._engine:
            try:
                await self._engine.stop()
            except Exception as e:
                logger.warning(f"Error stopping engine: {e}")

        # 3. Trades in flight
        if self._coordinator:
            try:
                # Queued attempts each run to their own confirm timeout
                await self._coordinator.stop(drain_timeout=self.config.confirm_timeout_seconds * 2)
            except Exception as e:
                logger.warning(f"Error stopping trade coordinator: {e}")
        await self._cancel_task("trade_worker")

        # 4. Sessions
        for name, client in (
            ("analysis client", self._analysis_client),
            ("rpc client", self._rpc),
            ("router", self._router),
        ):
            if client is None:
                continue
            try:
                await client.close()
            except Exception as e:
                logger.warning(f"Error closing {name}: {e}")

        if self._session:
            await self._session.close()
            self._session = None

        logger.info("Shutdown complete")

    async def request_shutdown(self, reason: str = "manual") -> None:
        """Request a graceful shutdown."""
        if not self._running:
            return
        logger.warning(f"Shutdown requested: {reason}")
        self._shutdown_event.set()

    async def _cancel_task(self, name: str) -> None:
        task = self._tasks.pop(name, None)
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.warning(f"Task {name} ended with error: {e}")

    async def _init_components(self) -> None:
        config = self.config
        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=config.request_timeout_seconds)
        )

        self._alert_manager = AlertManager(
            telegram_bot_token=config.telegram_bot_token,
            telegram_chat_id=config.telegram_chat_id,
        )
        if not self._alert_manager.enabled:
            logger.info("Alerts: Telegram not configured, alerts will only be logged")

        self._tracker = SwapEventTracker(
            pool_id=config.pool_id,
            capacity=config.history_capacity,
            trend_window=config.trend_window,
        )

        self._analysis_client = AnalysisServiceClient(
            token_analysis_url=config.analysis_api_url,
            safety_url=config.safety_api_url,
            credibility_url=config.credibility_api_url,
            api_key=config.analysis_api_key,
            session=self._session,
            timeout=config.request_timeout_seconds,
        )

        registry = EvaluatorRegistry()
        registry.register(TokenAnalysisEvaluator(self._analysis_client))
        registry.register(SafetyEvaluator(self._analysis_client))
        registry.register(CredibilityEvaluator(self._analysis_client))
        logger.info(f"Evaluators: {registry.list_all()}")

        self._cooldown = CooldownRegistry(config.cooldown_seconds)
        aggregator = SignalAggregator(
            registry,
            scorer=WeightedScorer(config.score_weights),
            timeout=config.evaluator_timeout_seconds,
            cooldown=self._cooldown,
        )
        policy = DecisionPolicy(
            buy_threshold=float(config.buy_threshold),
            mandatory_gates=config.mandatory_gates,
        )

        if not config.dry_run:
            await self._init_trading()

        self._engine = TradingEngine(
            config=EngineConfig(dry_run=config.dry_run),
            mention_filter=MentionFilter(config.keywords, config.min_follower_count),
            aggregator=aggregator,
            policy=policy,
            trade_coordinator=self._coordinator,
            alert_manager=self._alert_manager,
            swap_tracker=self._tracker,
        )
        await self._engine.start()

    async def _init_trading(self) -> None:
        """Wallet, router, RPC and the trade worker. Live mode only."""
        config = self.config
        try:
            wallet = Wallet.from_secret(config.wallet_secret)
        except ValueError as e:
            raise ConfigurationError(f"Cannot load wallet: {e}") from e
        logger.info(f"Wallet: {wallet.public_key}")

        self._rpc = SolanaRpcClient(
            config.rpc_endpoint,
            session=self._session,
            commitment=config.commitment,
        )
        self._router = JupiterRouter(config.jupiter_api_url, session=self._session)
        fee_policy = FeePolicy(
            fee_source=self._rpc,
            compute_unit_limit=config.compute_unit_limit,
            min_priority_fee=config.min_priority_fee,
        )
        self._coordinator = TradeCoordinator(
            router=self._router,
            wallet=wallet,
            rpc=self._rpc,
            fee_policy=fee_policy,
            config=TradeConfig(
                spend_amount_sol=config.spend_amount_sol,
                slippage_bps=config.slippage_bps,
                confirm_timeout_seconds=config.confirm_timeout_seconds,
            ),
            notifier=self._alert_manager,
        )
        self._tasks["trade_worker"] = asyncio.create_task(self._coordinator.run())

    async def _init_producers(self) -> None:
        config = self.config
        self._swap_queue = asyncio.Queue(maxsize=config.queue_size)
        self._post_queue = asyncio.Queue(maxsize=config.queue_size)

        self._tasks["swap_consumer"] = asyncio.create_task(self._engine.consume_swaps(self._swap_queue))
        self._tasks["post_consumer"] = asyncio.create_task(self._engine.consume_posts(self._post_queue))

        if config.swap_decoder:
            decoder = load_swap_decoder(config.swap_decoder)
            self._log_subscription = ProgramLogSubscription(
                url=config.ws_endpoint,
                program_id=config.program_id,
                commitment=config.commitment,
                on_notification=SwapLogFilter(decoder, self._swap_queue, pool_id=config.pool_id),
            )
            await self._log_subscription.start()
            logger.info(f"Log subscription: program {config.program_id}, pool {config.pool_id}")
        else:
            logger.warning("SWAP_DECODER not set, swap volume tracking is disabled")

        if config.x_bearer_token:
            self._social_stream = SocialPostStream(bearer_token=config.x_bearer_token)
            await self._social_stream.configure(config.keywords)
            self._tasks["social_stream"] = asyncio.create_task(self._social_stream.run(self._post_queue))
            logger.info(f"Social stream: keywords {config.keywords}")
        else:
            logger.warning("X_BEARER_TOKEN not set, social stream is disabled")

        if config.market_data_enabled:
            self._poller = MarketDataPoller(
                token_address=config.price_token_address,
                url=config.price_api_url,
                api_key=config.price_api_key,
                interval=config.poll_interval_seconds,
                session=self._session,
                capacity=config.history_capacity,
                trend_window=config.trend_window,
            )
            self._tasks["poller"] = asyncio.create_task(self._poller.run())

    async def _run_loop(self) -> None:
        """Report trends and stats until shutdown."""
        interval = self.config.poll_interval_seconds

        while self._running:
            try:
                try:
                    await asyncio.wait_for(self._shutdown_event.wait(), timeout=interval)
                    break  # Shutdown requested
                except asyncio.TimeoutError:
                    pass

                self._check_tasks()

                if self._tracker:
                    logger.info(
                        f"Volume Trend: {self._tracker.trend().value} | "
                        f"Total Volume: {self._tracker.total_volume:.2f} SOL "
                        f"({len(self._tracker)} samples)"
                    )

                if self._cooldown:
                    self._cooldown.purge_expired()

                if self._engine:
                    stats = self._engine.describe()
                    logger.info("Stats: " + ", ".join(f"{k}={v}" for k, v in stats.items()))

            except Exception as e:
                logger.error(f"Error in main loop: {e}")
                await asyncio.sleep(5)

    def _check_tasks(self) -> None:
        """Report background tasks that died."""
        for name, task in list(self._tasks.items()):
            if not task.done() or task.cancelled():
                continue
            self._tasks.pop(name)
            error = task.exception()
            if error is None:
                logger.warning(f"Background task {name} exited")
                continue
            logger.error(f"Background task {name} crashed: {error}")
            if self._alert_manager:
                self._alert_manager.alert_component_issue(name, "DOWN", str(error))

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def handle_signal(sig):
            logger.info(f"Received signal {sig}")
            self._shutdown_event.set()

        try:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass


def load_env_file(path: str = ".env") -> None:
    """Load environment variables from .env file if it exists."""
    env_path = Path(path)
    if env_path.exists():
        logger.info(f"Loading environment from {env_path}")
        with open(env_path) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, _, value = line.partition("=")
                    value = value.strip().strip('"').strip("'")
                    os.environ.setdefault(key.strip(), value)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Solana Sniper",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Decide and notify, but never submit trades",
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=".env",
        help="Path to a .env file (default: .env)",
    )
    parser.add_argument(
        "--pid-file",
        type=str,
        default=DEFAULT_PID_FILE,
        help=f"Single-instance lock file (default: {DEFAULT_PID_FILE})",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level",
    )
    return parser.parse_args(argv)


async def main_async(args: argparse.Namespace) -> int:
    """Async main function."""
    try:
        config = BotConfig.from_env()
        if args.dry_run:
            config.dry_run = True
        config.validate()
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    bot = TradingBot(config)

    try:
        await bot.start()
        return 0
    except ConfigurationError as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


def main() -> int:
    """Main entry point."""
    args = parse_args()

    load_env_file(args.env_file)

    if args.log_level:
        logging.getLogger().setLevel(getattr(logging, args.log_level))

    try:
        with singleton_lock(args.pid_file):
            try:
                return asyncio.run(main_async(args))
            except KeyboardInterrupt:
                return 0
    except SingletonBotError as e:
        logger.error(str(e))
        print(f"\n❌ {e}\n", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""
Ingestion Layer - On-chain swaps, social mentions and market data.

This module provides:
    - SwapEventTracker: Bounded volume history and trend for a watched pool
    - MentionFilter: Keyword / follower gate / token extraction for posts
    - ProgramLogSubscription: logsSubscribe websocket with reconnect
    - SwapLogFilter / SwapDecoder: Swap notification filter and decoder seam
    - SocialPostStream: Filtered social stream with reconnect
    - MarketDataPoller: Periodic price snapshots and price trend

Producers never block on consumers: they deliver into bounded queues and
drop (with a warning) when a queue is full.
"""

from .models import (
    LogNotification,
    PostAuthor,
    PriceSnapshot,
    SocialPost,
    SwapEvent,
)

from .swap_tracker import (
    DEFAULT_HISTORY_CAPACITY,
    DEFAULT_TREND_WINDOW,
    MarketHistory,
    SwapEventTracker,
    Trend,
    VolumeSample,
    compute_trend,
)

from .mention_filter import (
    DEFAULT_MIN_FOLLOWER_COUNT,
    Mention,
    MentionFilter,
    extract_token_candidate,
)

from .log_stream import (
    DEFAULT_POOL_ID,
    DEFAULT_PROGRAM_ID,
    ProgramLogSubscription,
    SubscriptionState,
    SwapDecoder,
    SwapLogFilter,
    parse_log_notification,
    ws_url_from_rpc,
)

from .social_stream import SocialPostStream, StreamError, build_rule, parse_post

from .market_data import DEFAULT_PRICE_API_URL, MarketDataPoller, parse_price_response

__all__ = [
    # Models
    "SwapEvent",
    "LogNotification",
    "SocialPost",
    "PostAuthor",
    "PriceSnapshot",
    # Swap tracking
    "SwapEventTracker",
    "MarketHistory",
    "VolumeSample",
    "Trend",
    "compute_trend",
    "DEFAULT_HISTORY_CAPACITY",
    "DEFAULT_TREND_WINDOW",
    # Mentions
    "Mention",
    "MentionFilter",
    "extract_token_candidate",
    "DEFAULT_MIN_FOLLOWER_COUNT",
    # Log subscription
    "ProgramLogSubscription",
    "SubscriptionState",
    "SwapDecoder",
    "SwapLogFilter",
    "parse_log_notification",
    "ws_url_from_rpc",
    "DEFAULT_PROGRAM_ID",
    "DEFAULT_POOL_ID",
    # Social stream
    "SocialPostStream",
    "StreamError",
    "build_rule",
    "parse_post",
    # Market data
    "MarketDataPoller",
    "parse_price_response",
    "DEFAULT_PRICE_API_URL",
]

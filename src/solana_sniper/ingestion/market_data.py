"""
Market-data poller for a single token.

Polls a price API (Birdeye-compatible) on a fixed interval, keeps a bounded
history of snapshots and reports the price trend with the same rule the
swap tracker uses for volume.

A failed poll is logged and skipped; the next tick tries again.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

import aiohttp

from .models import PriceSnapshot
from .swap_tracker import DEFAULT_HISTORY_CAPACITY, DEFAULT_TREND_WINDOW, Trend, compute_trend

logger = logging.getLogger(__name__)

DEFAULT_PRICE_API_URL = "https://public-api.birdeye.so/defi/price"


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def parse_price_response(
    payload: Any,
    token_address: str,
    observed_at: float,
) -> Optional[PriceSnapshot]:
    """
    Build a snapshot from a price API response.

    Market cap is estimated as liquidity * price when liquidity is present.
    """
    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, dict):
        return None

    price = _decimal(data.get("value"))
    if price is None:
        return None

    liquidity = _decimal(data.get("liquidity"))
    return PriceSnapshot(
        token_address=token_address,
        price=price,
        volume=_decimal(data.get("volume") or data.get("v24hUSD")),
        market_cap=liquidity * price if liquidity is not None else None,
        observed_at=observed_at,
        extra={k: v for k, v in data.items() if k not in ("value", "liquidity", "volume")},
    )


class MarketDataPoller:
    """
    Periodic price poller.

    Usage:
        poller = MarketDataPoller(token_address=WRAPPED_SOL_MINT, interval=10.0)
        task = asyncio.create_task(poller.run())

        poller.trend()       # Trend.RISING / FALLING / ...
        poller.latest        # last PriceSnapshot or None

        await poller.stop()
    """

    def __init__(
        self,
        token_address: str,
        url: str = DEFAULT_PRICE_API_URL,
        api_key: Optional[str] = None,
        interval: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
        capacity: int = DEFAULT_HISTORY_CAPACITY,
        trend_window: int = DEFAULT_TREND_WINDOW,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the poller.

        Args:
            token_address: Mint to price
            url: Price endpoint
            api_key: Optional API key sent as X-API-KEY
            interval: Seconds between polls
            session: Optional aiohttp session (created if not provided)
            capacity: Snapshots retained
            trend_window: Trailing samples used by trend()
            timeout: Request timeout in seconds
            clock: Monotonic clock for snapshot timestamps
        """
        self._token_address = token_address
        self._url = url
        self._api_key = api_key
        self._interval = interval
        self._session = session
        self._owns_session = session is None
        self._trend_window = trend_window
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._clock = clock

        self._history: deque[PriceSnapshot] = deque(maxlen=capacity)
        self._stop_event = asyncio.Event()
        self.polls = 0
        self.failures = 0

    @property
    def latest(self) -> Optional[PriceSnapshot]:
        return self._history[-1] if self._history else None

    def history(self) -> list[PriceSnapshot]:
        return list(self._history)

    def trend(self) -> Trend:
        return compute_trend([s.price for s in self._history], self._trend_window)

    async def fetch(self) -> Optional[PriceSnapshot]:
        """Fetch one snapshot. Returns None on any failure."""
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True

        headers = {"x-chain": "solana"}
        if self._api_key:
            headers["X-API-KEY"] = self._api_key

        try:
            async with self._session.get(
                self._url,
                params={"address": self._token_address},
                headers=headers,
            ) as response:
                if response.status != 200:
                    text = await response.text()
                    logger.warning(f"Price API returned {response.status}: {text[:200]}")
                    return None
                payload = await response.json(content_type=None)
        except asyncio.TimeoutError:
            logger.warning("Price API request timed out")
            return None
        except aiohttp.ClientError as e:
            logger.warning(f"Price API request failed: {e}")
            return None

        snapshot = parse_price_response(payload, self._token_address, self._clock())
        if snapshot is None:
            logger.warning(f"Unexpected price API response: {str(payload)[:200]}")
        return snapshot

    async def poll_once(self) -> Optional[PriceSnapshot]:
        self.polls += 1
        snapshot = await self.fetch()
        if snapshot is None:
            self.failures += 1
            return None

        self._history.append(snapshot)
        volume = f"{snapshot.volume:.2f}" if snapshot.volume is not None else "N/A"
        market_cap = f"${snapshot.market_cap:.2f}" if snapshot.market_cap is not None else "N/A"
        logger.info(
            f"Price: ${snapshot.price:.4f} | Volume: {volume} | "
            f"Market Cap: {market_cap} | Trend: {self.trend().value}"
        )
        return snapshot

    async def run(self) -> None:
        """Poll until stopped."""
        self._stop_event.clear()
        while not self._stop_event.is_set():
            await self.poll_once()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass

    async def stop(self) -> None:
        self._stop_event.set()
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

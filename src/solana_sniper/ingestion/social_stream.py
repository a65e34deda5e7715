"""
Social mention stream (X API v2 filtered stream).

Features:
    - configure(keywords) replaces the stream's rules with one OR rule
    - Author expansion with public_metrics so follower counts arrive inline
    - Auto-reconnect with exponential backoff (longer after HTTP 429)
    - Keep-alive newlines count as heartbeats

Posts are pushed into a bounded queue; when the queue is full the post is
dropped with a warning rather than stalling the HTTP stream.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, AsyncIterator, Callable, Iterable, Optional

import aiohttp
from dateutil.parser import isoparse

from .models import PostAuthor, SocialPost

logger = logging.getLogger(__name__)

X_API_URL = "https://api.twitter.com/2"
RULE_TAG = "solana-sniper"

STREAM_PARAMS = {
    "tweet.fields": "created_at,author_id",
    "expansions": "author_id",
    "user.fields": "public_metrics,username",
}


class StreamError(Exception):
    """Stream connection or rule management failure."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def build_rule(keywords: Iterable[str]) -> str:
    """
    Build one filtered-stream rule matching any keyword, excluding retweets.

    Examples:
        >>> build_rule(["memecoin", "pump"])
        '(memecoin OR pump) -is:retweet'
    """
    terms = [k.strip() for k in keywords if k and k.strip()]
    if not terms:
        raise ValueError("At least one keyword is required")
    quoted = [f'"{t}"' if " " in t else t for t in terms]
    return f"({' OR '.join(quoted)}) -is:retweet"


def parse_post(payload: dict[str, Any], received_at: float) -> Optional[SocialPost]:
    """
    Build a SocialPost from one stream payload.

    Returns None when the payload carries no post or no author expansion.
    """
    data = payload.get("data")
    if not isinstance(data, dict) or not data.get("id"):
        return None

    author_id = data.get("author_id")
    users = (payload.get("includes") or {}).get("users") or []
    user = next((u for u in users if u.get("id") == author_id), None)
    if author_id is None or user is None:
        logger.debug(f"Post {data.get('id')} has no author expansion, skipping")
        return None

    metrics = user.get("public_metrics") or {}
    created_at = None
    if data.get("created_at"):
        try:
            created_at = isoparse(data["created_at"])
        except ValueError:
            logger.debug(f"Unparseable created_at on post {data['id']}: {data['created_at']}")

    return SocialPost(
        post_id=str(data["id"]),
        text=data.get("text", ""),
        author=PostAuthor(
            author_id=str(author_id),
            username=user.get("username", ""),
            follower_count=int(metrics.get("followers_count", 0)),
        ),
        created_at=created_at,
        received_at=received_at,
    )


class SocialPostStream:
    """
    Resilient filtered-stream client.

    Usage:
        stream = SocialPostStream(bearer_token=token)
        await stream.configure(["memecoin", "solana", "pump"])

        queue: asyncio.Queue[SocialPost] = asyncio.Queue(maxsize=1000)
        task = asyncio.create_task(stream.run(queue))

        # ... later
        await stream.stop()
    """

    def __init__(
        self,
        bearer_token: str,
        session: Optional[aiohttp.ClientSession] = None,
        base_url: str = X_API_URL,
        request_timeout: float = 10.0,
        heartbeat_timeout: float = 60.0,
        initial_reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 300.0,
        reconnect_multiplier: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the stream client.

        Args:
            bearer_token: App bearer token
            session: Optional aiohttp session (created if not provided)
            base_url: API base URL
            request_timeout: Timeout for rule requests and connecting
            heartbeat_timeout: Seconds without data (or keep-alive) before reconnect
            initial_reconnect_delay: Initial delay before reconnect attempt
            max_reconnect_delay: Maximum delay between reconnect attempts
            reconnect_multiplier: Multiplier for exponential backoff
            clock: Monotonic clock for received_at stamps
        """
        self._bearer_token = bearer_token
        self._session = session
        self._owns_session = session is None
        self._base_url = base_url.rstrip("/")
        self._request_timeout = request_timeout
        self._heartbeat_timeout = heartbeat_timeout
        self._initial_reconnect_delay = initial_reconnect_delay
        self._max_reconnect_delay = max_reconnect_delay
        self._reconnect_multiplier = reconnect_multiplier
        self._clock = clock

        self._current_reconnect_delay = initial_reconnect_delay
        self._reconnect_count = 0
        self._stop_event = asyncio.Event()
        self._response: Optional[aiohttp.ClientResponse] = None

        self.posts_received = 0
        self.posts_dropped = 0

    @property
    def reconnect_count(self) -> int:
        return self._reconnect_count

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._bearer_token}"}

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            # No total timeout: the stream is long-lived
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the client session."""
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    async def _json_request(self, method: str, path: str, **kwargs) -> Any:
        session = self._ensure_session()
        timeout = aiohttp.ClientTimeout(total=self._request_timeout)
        try:
            async with session.request(
                method, f"{self._base_url}{path}", headers=self._headers, timeout=timeout, **kwargs
            ) as response:
                if response.status >= 400:
                    text = await response.text()
                    raise StreamError(f"{method} {path}: {response.status} - {text}", status_code=response.status)
                return await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise StreamError(f"{method} {path} timed out") from e
        except aiohttp.ClientError as e:
            raise StreamError(f"{method} {path} failed: {e}") from e

    async def configure(self, keywords: Iterable[str]) -> str:
        """
        Replace the stream rules with one rule for the keywords.

        Returns:
            The rule value that was installed
        """
        rule = build_rule(keywords)

        existing = await self._json_request("GET", "/tweets/search/stream/rules")
        ids = [r["id"] for r in (existing or {}).get("data") or [] if "id" in r]
        if ids:
            await self._json_request("POST", "/tweets/search/stream/rules", json={"delete": {"ids": ids}})
            logger.info(f"Deleted {len(ids)} existing stream rule(s)")

        await self._json_request(
            "POST",
            "/tweets/search/stream/rules",
            json={"add": [{"value": rule, "tag": RULE_TAG}]},
        )
        logger.info(f"Stream rule installed: {rule}")
        return rule

    async def posts(self) -> AsyncIterator[SocialPost]:
        """
        Yield posts from one stream connection until it ends.

        Raises:
            StreamError: If the connection cannot be opened or goes stale
        """
        session = self._ensure_session()
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=self._request_timeout)

        try:
            response = await session.get(
                f"{self._base_url}/tweets/search/stream",
                headers=self._headers,
                params=STREAM_PARAMS,
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise StreamError("Stream connect timed out") from e
        except aiohttp.ClientError as e:
            raise StreamError(f"Stream connect failed: {e}") from e

        self._response = response
        try:
            if response.status != 200:
                text = await response.text()
                raise StreamError(f"Stream returned {response.status}: {text}", status_code=response.status)

            logger.info("Social stream connected")
            self._current_reconnect_delay = self._initial_reconnect_delay

            while not self._stop_event.is_set():
                try:
                    line = await asyncio.wait_for(response.content.readline(), timeout=self._heartbeat_timeout)
                except asyncio.TimeoutError as e:
                    raise StreamError(f"No data in {self._heartbeat_timeout}s, stream is stale") from e

                if not line:
                    logger.info("Social stream ended")
                    return

                line = line.strip()
                if not line:
                    continue  # keep-alive

                try:
                    payload = json.loads(line)
                except json.JSONDecodeError as e:
                    logger.warning(f"Failed to parse stream line: {e}")
                    continue

                if "errors" in payload and "data" not in payload:
                    logger.warning(f"Stream error payload: {str(payload['errors'])[:200]}")
                    continue

                post = parse_post(payload, received_at=self._clock())
                if post is not None:
                    self.posts_received += 1
                    yield post
        finally:
            response.close()
            self._response = None

    async def run(self, queue: "asyncio.Queue[SocialPost]") -> None:
        """Stream posts into the queue, reconnecting until stopped."""
        self._stop_event.clear()

        while not self._stop_event.is_set():
            try:
                async for post in self.posts():
                    try:
                        queue.put_nowait(post)
                    except asyncio.QueueFull:
                        self.posts_dropped += 1
                        logger.warning(f"Post queue full, dropped post {post.post_id}")
            except asyncio.CancelledError:
                raise
            except StreamError as e:
                logger.warning(f"Social stream error: {e}")
                if e.status_code == 429:
                    # Rate limited - start well above the normal backoff
                    self._current_reconnect_delay = max(self._current_reconnect_delay, 60.0)
            except Exception as e:
                logger.error(f"Unexpected social stream error: {e}")

            if self._stop_event.is_set():
                break
            await self._backoff()

    async def _backoff(self) -> None:
        self._reconnect_count += 1
        delay = self._current_reconnect_delay
        logger.info(f"Reconnecting social stream in {delay:.1f}s (attempt #{self._reconnect_count})...")

        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

        self._current_reconnect_delay = min(
            self._current_reconnect_delay * self._reconnect_multiplier,
            self._max_reconnect_delay,
        )

    async def stop(self) -> None:
        """Stop streaming and close the session."""
        self._stop_event.set()
        if self._response is not None:
            self._response.close()
        await self.close()

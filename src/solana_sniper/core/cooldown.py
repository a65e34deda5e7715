"""
Cooldown registry for per-token deduplication.

A token id is evaluated and decided at most once per cooldown window. The
first caller claims the token; every later caller inside the window is
told to skip, no matter how many new mentions arrive.

The claim is an atomic check-and-record so two concurrent mentions for the
same token cannot both pass.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class CooldownEntry:
    """A claimed token and when its window closes."""

    token_id: str
    claimed_at: float
    expires_at: float
    claims_rejected: int = 0


class CooldownRegistry:
    """
    TTL map keyed by token id.

    Usage:
        cooldown = CooldownRegistry(cooldown_seconds=600)

        if cooldown.try_claim(token_id):
            # first time inside the window - evaluate
            ...
        else:
            # duplicate inside the window - skip
            ...
    """

    def __init__(
        self,
        cooldown_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the registry.

        Args:
            cooldown_seconds: Window length in seconds
            clock: Monotonic clock, injectable for tests
        """
        if cooldown_seconds <= 0:
            raise ValueError(f"Cooldown must be positive, got {cooldown_seconds}")
        self._cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._entries: Dict[str, CooldownEntry] = {}
        self._lock = threading.Lock()

    @property
    def cooldown_seconds(self) -> float:
        return self._cooldown_seconds

    def try_claim(self, token_id: str) -> bool:
        """
        Atomically check and claim a token for this window.

        Returns:
            True if this caller claimed the token,
            False if the token is still cooling down
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(token_id)
            if entry is not None and now < entry.expires_at:
                entry.claims_rejected += 1
                return False

            self._entries[token_id] = CooldownEntry(
                token_id=token_id,
                claimed_at=now,
                expires_at=now + self._cooldown_seconds,
            )
            return True

    def is_cooling_down(self, token_id: str) -> bool:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(token_id)
            return entry is not None and now < entry.expires_at

    def remaining(self, token_id: str) -> float:
        """Seconds left in the token's window (0 if not cooling down)."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(token_id)
            if entry is None:
                return 0.0
            return max(0.0, entry.expires_at - now)

    def get(self, token_id: str) -> Optional[CooldownEntry]:
        with self._lock:
            return self._entries.get(token_id)

    def release(self, token_id: str) -> bool:
        """
        Drop a claim before its window closes.

        Returns:
            True if a claim was removed, False if not found
        """
        with self._lock:
            return self._entries.pop(token_id, None) is not None

    def purge_expired(self) -> int:
        """Remove expired entries. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if now >= e.expires_at]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Purged {len(expired)} expired cooldown entries")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, token_id: str) -> bool:
        return self.is_cooling_down(token_id)

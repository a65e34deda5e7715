"""
Telegram notifications for buy decisions, trade outcomes and component health.

Repeated alerts under the same key are suppressed for a cooldown window.
Without Telegram credentials alerts are written to the log and reported as
not delivered. A failed notification never fails a trade.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

import requests

if TYPE_CHECKING:
    from solana_sniper.core.decision import Verdict
    from solana_sniper.execution.trade_coordinator import TradeOutcome

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"
SOLSCAN_TX_URL = "https://solscan.io/tx"

PRIORITY_MARKERS = {
    "critical": "🚨",
    "high": "⚠️",
    "low": "ℹ️",
}


@dataclass
class DeliveryRecord:
    """Last delivery of an alert key."""

    key: str
    delivered_at: float  # monotonic
    deliveries: int = 1


class AlertManager:
    """
    Telegram notifier with per-key cooldowns.

    Usage:
        alerts = AlertManager(telegram_bot_token="...", telegram_chat_id="...")

        alerts.send_alert("Stream Down", "Social stream reconnecting", dedup_key="stream_social")
        alerts.alert_buy_decision(verdict, dry_run=True)
        alerts.alert_trade_outcome(outcome)
    """

    DEFAULT_COOLDOWN = 300

    def __init__(
        self,
        telegram_bot_token: Optional[str] = None,
        telegram_chat_id: Optional[str] = None,
        default_cooldown: int = DEFAULT_COOLDOWN,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        _telegram_api: Optional[Any] = None,
    ) -> None:
        """
        Args:
            telegram_bot_token: Bot API token
            telegram_chat_id: Destination chat
            default_cooldown: Seconds before the same key may alert again
            timeout: HTTP timeout for the Bot API
            clock: Monotonic clock for cooldowns
            _telegram_api: Object with ``send_message(chat_id, text, parse_mode)``
                used instead of HTTP (tests)
        """
        self._token = telegram_bot_token
        self._chat_id = telegram_chat_id
        self._default_cooldown = default_cooldown
        self._timeout = timeout
        self._clock = clock
        self._telegram_api = _telegram_api

        self._deliveries: Dict[str, DeliveryRecord] = {}

    @property
    def enabled(self) -> bool:
        return self._telegram_api is not None or bool(self._token and self._chat_id)

    def send_alert(
        self,
        title: str,
        message: str,
        dedup_key: Optional[str] = None,
        cooldown_seconds: Optional[int] = None,
        priority: str = "normal",
    ) -> bool:
        """
        Format and deliver one alert.

        Args:
            title: Bold first line
            message: Body
            dedup_key: Alerts sharing a key are suppressed during the cooldown
            cooldown_seconds: Overrides the default cooldown for this key
            priority: "low", "normal", "high" or "critical"

        Returns:
            True if Telegram accepted the message
        """
        window = cooldown_seconds or self._default_cooldown
        if dedup_key and self._cooling_down(dedup_key, window):
            logger.debug(f"Suppressed repeat alert {dedup_key}")
            return False

        delivered = self._deliver(self._render(title, message, priority))
        if delivered and dedup_key:
            self._remember(dedup_key)
        return delivered

    def send(self, message: str) -> bool:
        """Deliver a raw message, bypassing cooldowns."""
        return self._deliver(message)

    def alert_buy_decision(self, verdict: "Verdict", dry_run: bool = False) -> bool:
        title = "🧪 Buy Signal (dry run)" if dry_run else "🎯 Buy Signal"
        body = (
            f"Token: {_escape(verdict.token_id)}\n"
            f"Composite Score: {verdict.composite_score:.2f}\n"
            f"Time: {_utc_now()}"
        )
        return self.send_alert(title, body, dedup_key=f"buy_{verdict.token_id}", cooldown_seconds=60)

    def alert_trade_outcome(self, outcome: "TradeOutcome") -> bool:
        """
        Report a finished trade.

        Confirmed trades carry the signature and an explorer link; failures
        carry the stage they stopped at and the reason.
        """
        lines = [f"Token: {_escape(outcome.token_id)}"]
        gas = outcome.gas_settings

        if outcome.succeeded:
            title = "🟢 Trade Confirmed"
            lines += [
                f"Signature: {_escape(outcome.tx_signature)}",
                f"Explorer: {SOLSCAN_TX_URL}/{_escape(outcome.tx_signature)}",
                f"Priority Fee: {gas.priority_fee_per_unit} µlamports/CU",
                f"CU Limit: {gas.compute_unit_limit}",
            ]
            priority = "normal"
        else:
            title = "🔴 Trade Failed"
            stage = outcome.failed_at or outcome.stage
            reason = outcome.failure_reason.value if outcome.failure_reason else "unknown"
            lines += [
                f"Stage: {_escape(stage.value)}",
                f"Reason: {_escape(reason)}",
                f"Details: {_escape(outcome.detail or '-')}",
            ]
            if outcome.tx_signature:
                lines.append(f"Signature: {_escape(outcome.tx_signature)}")
            priority = "high"

        return self.send_alert(
            title,
            "\n".join(lines),
            dedup_key=f"trade_{outcome.tx_signature or outcome.token_id}",
            cooldown_seconds=60,
            priority=priority,
        )

    def alert_component_issue(self, component: str, status: str, message: str) -> bool:
        """Stream disconnects, crashed producers and similar."""
        down = status.upper() == "DOWN"
        body = (
            f"Component: {_escape(component)}\n"
            f"Status: {_escape(status)}\n"
            f"Details: {_escape(message)}\n"
            f"Time: {_utc_now()}"
        )
        return self.send_alert(
            f"{'🔴' if down else '🟡'} Component {status.replace('_', ' ').upper()}",
            body,
            dedup_key=f"component_{component}_{status}",
            priority="high" if down else "normal",
        )

    # =========================================================================
    # Cooldowns
    # =========================================================================

    def _cooling_down(self, key: str, window: float) -> bool:
        record = self._deliveries.get(key)
        return record is not None and self._clock() - record.delivered_at < window

    def _remember(self, key: str) -> None:
        record = self._deliveries.get(key)
        if record is None:
            self._deliveries[key] = DeliveryRecord(key=key, delivered_at=self._clock())
        else:
            record.delivered_at = self._clock()
            record.deliveries += 1

    def clear_dedup_cache(self) -> None:
        self._deliveries.clear()

    def get_alert_stats(self) -> Dict[str, int]:
        return {
            "unique_alerts": len(self._deliveries),
            "total_sent": sum(r.deliveries for r in self._deliveries.values()),
        }

    # =========================================================================
    # Delivery
    # =========================================================================

    @staticmethod
    def _render(title: str, message: str, priority: str) -> str:
        marker = PRIORITY_MARKERS.get(priority)
        heading = f"*{title}*" if marker is None else f"{marker} *{title}*"
        return f"{heading}\n\n{message.strip()}"

    def _deliver(self, text: str) -> bool:
        if self._telegram_api is not None:
            try:
                self._telegram_api.send_message(chat_id=self._chat_id, text=text, parse_mode="Markdown")
            except Exception as e:
                logger.error(f"Telegram client error: {e}")
                return False
            return True

        if not (self._token and self._chat_id):
            logger.info(f"Alert (Telegram not configured): {text}")
            return False

        try:
            response = requests.post(
                f"{TELEGRAM_API_URL}/bot{self._token}/sendMessage",
                json={"chat_id": self._chat_id, "text": text, "parse_mode": "Markdown"},
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Telegram delivery failed: {e}")
            return False

        logger.info(f"Telegram alert delivered: {text[:50]}...")
        return True


_MARKDOWN_SPECIALS = ("_", "*", "[", "`")


def _escape(value: Any) -> str:
    """Backslash-escape legacy Markdown entities in an interpolated value."""
    text = str(value)
    for char in _MARKDOWN_SPECIALS:
        text = text.replace(char, "\\" + char)
    return text


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()

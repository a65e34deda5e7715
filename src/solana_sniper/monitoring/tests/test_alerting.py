"""
Tests for alerting and notifications.

Alerts notify operators of buy decisions, trade outcomes and component
issues.
"""
import re
from dataclasses import replace

import pytest
from unittest.mock import MagicMock, patch

import requests

from solana_sniper.monitoring import AlertManager


class TestTelegramAlerts:
    """Tests for Telegram notification sending."""

    def test_sends_alert_message(self, alert_manager, mock_telegram_api):
        """Should send message via Telegram API."""
        result = alert_manager.send_alert(title="Buy Signal", message="Token X")

        assert result is True
        mock_telegram_api.send_message.assert_called_once()
        assert mock_telegram_api.send_message.call_args[1]["parse_mode"] == "Markdown"

    def test_handles_api_error_gracefully(self, alert_manager, mock_telegram_api):
        """Should not crash on Telegram API errors."""
        mock_telegram_api.send_message.side_effect = Exception("API error")

        assert alert_manager.send_alert(title="Test", message="Test") is False

    def test_returns_false_without_credentials(self):
        """Without credentials alerts are only logged."""
        manager = AlertManager()

        assert manager.enabled is False
        assert manager.send_alert(title="Test", message="Test") is False

    def test_posts_to_bot_api(self):
        """With real credentials the Bot API is called over HTTP."""
        manager = AlertManager(telegram_bot_token="tok", telegram_chat_id="chat")
        response = MagicMock()

        with patch("solana_sniper.monitoring.alerting.requests.post", return_value=response) as post:
            assert manager.send("hello") is True

        assert post.call_args[0][0] == "https://api.telegram.org/bottok/sendMessage"
        assert post.call_args[1]["json"]["chat_id"] == "chat"

    def test_http_failure_returns_false(self):
        manager = AlertManager(telegram_bot_token="tok", telegram_chat_id="chat")

        with patch(
            "solana_sniper.monitoring.alerting.requests.post",
            side_effect=requests.ConnectionError("no network"),
        ):
            assert manager.send("hello") is False


class TestAlertDeduplication:
    """Tests for alert deduplication."""

    def test_deduplicates_repeated_alerts(self, alert_manager, mock_telegram_api):
        alert_manager.send_alert(title="A", message="same", dedup_key="k")
        alert_manager.send_alert(title="A", message="same", dedup_key="k")

        assert mock_telegram_api.send_message.call_count == 1

    def test_different_keys_not_deduplicated(self, alert_manager, mock_telegram_api):
        alert_manager.send_alert(title="A", message="m", dedup_key="k1")
        alert_manager.send_alert(title="B", message="m", dedup_key="k2")

        assert mock_telegram_api.send_message.call_count == 2
        assert alert_manager.get_alert_stats() == {"unique_alerts": 2, "total_sent": 2}

    def test_clear_cache(self, alert_manager, mock_telegram_api):
        alert_manager.send_alert(title="A", message="m", dedup_key="k")
        alert_manager.clear_dedup_cache()
        alert_manager.send_alert(title="A", message="m", dedup_key="k")

        assert mock_telegram_api.send_message.call_count == 2


class TestTradeAlerts:
    """Tests for the specialised alerts."""

    def test_buy_decision(self, alert_manager, mock_telegram_api, buy_verdict):
        alert_manager.alert_buy_decision(buy_verdict, dry_run=True)

        text = mock_telegram_api.send_message.call_args[1]["text"]
        assert buy_verdict.token_id in text
        assert "dry run" in text
        assert "84.00" in text

    def test_confirmed_trade_includes_signature(self, alert_manager, mock_telegram_api, confirmed_outcome):
        assert alert_manager.alert_trade_outcome(confirmed_outcome) is True

        text = mock_telegram_api.send_message.call_args[1]["text"]
        assert "Trade Confirmed" in text
        assert "Signature: 5ConfirmedSig" in text
        assert "solscan.io/tx/5ConfirmedSig" in text

    def test_failed_trade_includes_stage_and_reason(self, alert_manager, mock_telegram_api, failed_outcome):
        alert_manager.alert_trade_outcome(failed_outcome)

        text = mock_telegram_api.send_message.call_args[1]["text"]
        assert "Trade Failed" in text
        assert r"Stage: quote\_requested" in text
        assert r"Reason: quote\_unavailable" in text

    def test_component_issue(self, alert_manager, mock_telegram_api):
        alert_manager.alert_component_issue("social_stream", "DOWN", "429 from API")

        text = mock_telegram_api.send_message.call_args[1]["text"]
        assert r"Component: social\_stream" in text
        assert "*🔴 Component DOWN*" in text


class TestMarkdownEscaping:
    """Interpolated values must not open Markdown entities."""

    UNESCAPED = re.compile(r"(?<!\\)[_*`\[]")

    def _body(self, text):
        # Everything after the bold heading line
        return text.split("\n\n", 1)[1]

    def test_failure_fields_are_escaped(self, alert_manager, mock_telegram_api, failed_outcome):
        outcome = replace(
            failed_outcome,
            detail="custom_program_error: 0x1771 [slippage_exceeded]",
            tx_signature="5sig_with*marks",
        )

        assert alert_manager.alert_trade_outcome(outcome) is True

        body = self._body(mock_telegram_api.send_message.call_args[1]["text"])
        assert self.UNESCAPED.search(body) is None
        assert r"Details: custom\_program\_error: 0x1771 \[slippage\_exceeded]" in body

    def test_component_fields_are_escaped(self, alert_manager, mock_telegram_api):
        alert_manager.alert_component_issue("post_consumer", "DEGRADED", "bad *token* `x`")

        text = mock_telegram_api.send_message.call_args[1]["text"]
        heading, body = text.split("\n\n", 1)
        assert "_" not in heading
        assert self.UNESCAPED.search(body) is None

    def test_plain_values_unchanged(self, alert_manager, mock_telegram_api, confirmed_outcome):
        alert_manager.alert_trade_outcome(confirmed_outcome)

        text = mock_telegram_api.send_message.call_args[1]["text"]
        assert "Signature: 5ConfirmedSig" in text

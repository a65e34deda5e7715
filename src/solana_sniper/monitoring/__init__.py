"""
Monitoring Layer - Operator notifications.

This module provides:
    - AlertManager: Telegram alerts for buy decisions, trade outcomes and
      component issues, with per-key cooldowns
"""

from .alerting import AlertManager

__all__ = [
    "AlertManager",
]

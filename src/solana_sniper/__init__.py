"""
Solana Sniper.

An event-correlation and decision engine for Solana tokens. On-chain swap
activity and social mentions flow in, pluggable evaluators score each
mentioned token, and a pure decision policy turns the composite score into
BUY or SKIP. Buys are executed one at a time through a swap router with
sticky priority-fee settings.
"""

__version__ = "0.1.0"

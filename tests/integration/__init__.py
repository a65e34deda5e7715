"""
Integration tests for the Solana Sniper.

These tests verify that components work together correctly.
Network edges (analysis services, router, RPC, Telegram) are mocked.

Run with:
    pytest tests/integration/ -v -m integration

Skip with:
    pytest -m "not integration"
"""

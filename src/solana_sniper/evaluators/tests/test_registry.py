"""
Tests for the evaluator registry.
"""
import pytest
from unittest.mock import MagicMock

from solana_sniper.evaluators import (
    DuplicateEvaluatorError,
    EvaluatorNotFoundError,
    EvaluatorRegistry,
)


def _evaluator(name):
    evaluator = MagicMock()
    evaluator.name = name
    return evaluator


class TestEvaluatorRegistry:
    """Tests for registration and lookup."""

    def test_register_and_get(self):
        registry = EvaluatorRegistry()
        evaluator = _evaluator("safety")

        registry.register(evaluator)

        assert registry.get("safety") is evaluator
        assert "safety" in registry
        assert len(registry) == 1

    def test_duplicate_rejected(self):
        """Names are unique."""
        registry = EvaluatorRegistry()
        registry.register(_evaluator("safety"))

        with pytest.raises(DuplicateEvaluatorError):
            registry.register(_evaluator("safety"))

    def test_missing_lookup(self):
        registry = EvaluatorRegistry()

        with pytest.raises(EvaluatorNotFoundError):
            registry.get("nope")
        assert registry.get_optional("nope") is None

    def test_keeps_registration_order(self):
        """all() returns evaluators in the order they were registered."""
        registry = EvaluatorRegistry()
        for name in ("token_analysis", "safety", "credibility"):
            registry.register(_evaluator(name))

        assert registry.list_all() == ["token_analysis", "safety", "credibility"]
        assert [e.name for e in registry.all()] == ["token_analysis", "safety", "credibility"]

    def test_unregister(self):
        registry = EvaluatorRegistry()
        registry.register(_evaluator("safety"))

        assert registry.unregister("safety") is True
        assert registry.unregister("safety") is False
        assert len(registry) == 0

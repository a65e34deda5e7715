"""
Evaluator registry.

Holds the evaluators the aggregator fans out to, keyed by name, in
registration order so aggregated results are reported in a stable order.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from .protocol import Evaluator


class EvaluatorNotFoundError(Exception):
    """Raised when a requested evaluator is not found in the registry."""

    pass


class DuplicateEvaluatorError(Exception):
    """Raised when attempting to register an evaluator with a name that already exists."""

    pass


class EvaluatorRegistry:
    """
    Registry for evaluator lookup and management.

    Usage:
        registry = EvaluatorRegistry()
        registry.register(TokenAnalysisEvaluator(client))
        registry.register(SafetyEvaluator(client))

        for evaluator in registry.all():
            ...
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._evaluators: Dict[str, Evaluator] = {}

    def register(self, evaluator: Evaluator) -> None:
        """
        Register an evaluator instance.

        Raises:
            DuplicateEvaluatorError: If an evaluator with this name already exists
        """
        name = evaluator.name
        if name in self._evaluators:
            raise DuplicateEvaluatorError(
                f"Evaluator '{name}' is already registered. "
                f"Use a different name or unregister first."
            )
        self._evaluators[name] = evaluator

    def get(self, name: str) -> Evaluator:
        """
        Get an evaluator by name.

        Raises:
            EvaluatorNotFoundError: If no evaluator with this name exists
        """
        if name not in self._evaluators:
            available = ", ".join(self.list_all()) or "(none)"
            raise EvaluatorNotFoundError(
                f"Evaluator '{name}' not found. Available: {available}"
            )
        return self._evaluators[name]

    def get_optional(self, name: str) -> Optional[Evaluator]:
        return self._evaluators.get(name)

    def unregister(self, name: str) -> bool:
        """
        Remove an evaluator from the registry.

        Returns:
            True if removed, False if not found
        """
        return self._evaluators.pop(name, None) is not None

    def all(self) -> List[Evaluator]:
        """Registered evaluators in registration order."""
        return list(self._evaluators.values())

    def list_all(self) -> List[str]:
        """Sorted list of evaluator names."""
        return sorted(self._evaluators.keys())

    def __len__(self) -> int:
        return len(self._evaluators)

    def __contains__(self, name: str) -> bool:
        return name in self._evaluators

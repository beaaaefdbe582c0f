"""
Typed errors raised by the explainability engine.

All errors derive from ExplainabilityError so callers can catch the whole
family at once; none of them are swallowed inside the engine.
"""

from typing import Any, Dict, Optional


class ExplainabilityError(Exception):
    """Base exception for engine errors."""
    pass


class ShapeMismatch(ExplainabilityError):
    """Row counts of features and target disagree, or the target leaked into the features."""
    pass


class PredictionContractViolation(ExplainabilityError):
    """The predict function returned the wrong length, type or range."""
    pass


class FeatureNotFound(ExplainabilityError, KeyError):
    """A requested feature is not a column of the feature matrix."""

    def __init__(self, feature: str):
        self.feature = feature
        super().__init__(f"Feature '{feature}' not found in feature matrix")

    def __str__(self) -> str:
        return self.args[0]


class EmptyVocabulary(ExplainabilityError):
    """The fitted vocabulary would contain no tokens."""
    pass


class InsufficientVariation(ExplainabilityError):
    """A feature has fewer than two distinct observed values."""
    pass


class InvalidRepeatCount(ExplainabilityError):
    """Permutation repeat count must be a positive integer."""
    pass


class InvalidFeatureBudget(ExplainabilityError):
    """Feature budget exceeds the features available for a local explanation."""
    pass


class InsufficientSamples(ExplainabilityError):
    """Too few perturbed samples for the requested feature budget."""
    pass


class InvalidTarget(ExplainabilityError):
    """The target vector cannot be converted unambiguously to 0/1."""
    pass


class ComputationCancelled(ExplainabilityError):
    """
    A long-running computation was cancelled before all units completed.

    Attributes:
        partial_results: Results of the units that completed, keyed by unit.
        pending: Number of units that were not executed.
    """

    def __init__(
        self,
        message: str,
        partial_results: Optional[Dict[Any, Any]] = None,
        pending: int = 0
    ):
        super().__init__(message)
        self.partial_results = partial_results or {}
        self.pending = pending

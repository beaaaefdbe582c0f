"""
Explainability module for the news explainability engine.

Provides model-agnostic interpretability for binary classifiers:
- Explainer: immutable binding of model, data, target and predict function
- Permutation feature importance (global)
- Accumulated local effect profiles (global)
- LIME-style local surrogate explanations (local)

Classes:
    Explainer: Validated model/data binding with baseline loss and metrics.
    PermutationImportance: Loss increase after shuffling single features.
    ALEProfiler: Centered accumulated local effect curves.
    LocalSurrogate: Weighted local linear/tree approximation of one prediction.
    CancellationToken: Cooperative cancellation for long computations.

Example:
    >>> from newsxai.explainability import Explainer, PermutationImportance
    >>> explainer = Explainer(model, X_test, y_test, label='random_forest')
    >>> result = PermutationImportance(explainer, seed=42).compute(repeat_count=6)
    >>> result.to_frame().head()
"""

from newsxai.explainability.ale import ALEProfiler, ALEResult, summarize_profiles
from newsxai.explainability.explainer import Explainer, ModelPerformance, ResidualReport
from newsxai.explainability.local_surrogate import LocalExplanationResult, LocalSurrogate
from newsxai.explainability.losses import LOSS_FUNCTIONS, resolve_loss
from newsxai.explainability.parallel import CancellationToken, run_units
from newsxai.explainability.permutation import (
    FeatureImportance,
    ImportanceResult,
    PermutationImportance,
)

__all__ = [
    'ALEProfiler',
    'ALEResult',
    'CancellationToken',
    'Explainer',
    'FeatureImportance',
    'ImportanceResult',
    'LOSS_FUNCTIONS',
    'LocalExplanationResult',
    'LocalSurrogate',
    'ModelPerformance',
    'PermutationImportance',
    'ResidualReport',
    'resolve_loss',
    'run_units',
    'summarize_profiles',
]

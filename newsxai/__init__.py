"""
News Explainability Engine - Source Package

Model-agnostic explanations for binary text classifiers:
- features: Text-to-TF-IDF feature pipeline and explicit schemas
- models: Predict-function adapters for fitted classifiers
- explainability: Explainer, permutation importance, ALE, local surrogates
- data: Synthetic labelled corpus for demos and tests
- engine: Public operations
"""

__version__ = "0.1.0"

from newsxai.engine import (
    compute_ale,
    compute_importance,
    construct_explainer,
    explain_instance,
    fit_pipeline,
    performance,
    transform,
)

__all__ = [
    'compute_ale',
    'compute_importance',
    'construct_explainer',
    'explain_instance',
    'fit_pipeline',
    'performance',
    'transform',
]

"""
Models module for the news explainability engine.

Models are trained elsewhere; this module only adapts fitted classifiers
to the predict-function contract used by the explainers.
"""

from newsxai.models.predict import (
    PredictFunction,
    make_predict_function,
    positive_class_probability,
    resolve_predict_function,
)

__all__ = [
    'PredictFunction',
    'make_predict_function',
    'positive_class_probability',
    'resolve_predict_function',
]

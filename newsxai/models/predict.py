"""
Predict-function adapters.

The engine only talks to a model through a predict function with the
contract ``(model, rows) -> probabilities``: one positive-class probability
per row, in row order, in [0, 1]. These helpers build such functions for
scikit-learn style classifiers (anything exposing ``predict_proba``).
"""

import logging
from typing import Any, Callable, Optional

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

PredictFunction = Callable[[Any, pd.DataFrame], np.ndarray]


def _positive_column(model: Any, positive_class: Any) -> int:
    classes = getattr(model, 'classes_', None)
    if classes is None:
        # Without class metadata assume the usual [negative, positive] layout
        return 1

    classes = list(classes)
    if positive_class is None:
        if len(classes) != 2:
            raise ValueError(
                f"Expected a binary classifier, model has {len(classes)} classes: {classes}"
            )
        positive_class = 1 if 1 in classes else classes[1]

    if positive_class not in classes:
        raise ValueError(f"Positive class {positive_class!r} not in model classes {classes}")
    return classes.index(positive_class)


def positive_class_probability(model: Any, rows: pd.DataFrame) -> np.ndarray:
    """
    Default predict function: positive-class column of ``predict_proba``.

    Args:
        model: Fitted binary classifier with ``predict_proba``.
        rows: Feature rows in the column layout the model was trained on.

    Returns:
        1-D array of positive-class probabilities.
    """
    if not hasattr(model, 'predict_proba'):
        raise TypeError(f"{model.__class__.__name__} has no predict_proba method")

    proba = np.asarray(model.predict_proba(rows))
    if proba.ndim == 1:
        return proba
    return proba[:, _positive_column(model, None)]


def make_predict_function(model: Any, positive_class: Any = None) -> PredictFunction:
    """
    Build a predict function bound to a specific positive class.

    Args:
        model: Fitted binary classifier with ``predict_proba``.
        positive_class: Label of the positive class in ``model.classes_``.
                        Defaults to 1 (or the second class).

    Returns:
        Callable ``(model, rows) -> probabilities``.
    """
    column = _positive_column(model, positive_class)
    logger.debug(f"Predict function uses probability column {column} of {model.__class__.__name__}")

    def predict_function(fitted_model: Any, rows: pd.DataFrame) -> np.ndarray:
        proba = np.asarray(fitted_model.predict_proba(rows))
        return proba[:, column]

    return predict_function


def resolve_predict_function(predict_function: Optional[PredictFunction]) -> PredictFunction:
    """Return ``predict_function`` or the default adapter if it is None."""
    return predict_function if predict_function is not None else positive_class_probability

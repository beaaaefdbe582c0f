"""
Loss functions for binary classifiers.

Every loss takes ``(y_true, probabilities)`` and returns a float where lower
is better, so ``loss(permuted) - loss(baseline)`` grows with importance.
"""

from typing import Callable, Dict, Union

import numpy as np
from sklearn.metrics import accuracy_score, log_loss, roc_auc_score

LossFunction = Callable[[np.ndarray, np.ndarray], float]


def loss_one_minus_auc(y_true: np.ndarray, probabilities: np.ndarray) -> float:
    """1 - area under the ROC curve (default loss)."""
    return 1.0 - float(roc_auc_score(y_true, probabilities))


def loss_cross_entropy(y_true: np.ndarray, probabilities: np.ndarray) -> float:
    """Mean binary cross-entropy."""
    return float(log_loss(y_true, probabilities, labels=[0, 1]))


def loss_one_minus_accuracy(y_true: np.ndarray, probabilities: np.ndarray) -> float:
    """Misclassification rate at the 0.5 threshold."""
    return 1.0 - float(accuracy_score(y_true, (probabilities >= 0.5).astype(int)))


def loss_root_mean_square(y_true: np.ndarray, probabilities: np.ndarray) -> float:
    """Root mean squared difference between target and probability (Brier root)."""
    return float(np.sqrt(np.mean((y_true - probabilities) ** 2)))


LOSS_FUNCTIONS: Dict[str, LossFunction] = {
    'one_minus_auc': loss_one_minus_auc,
    'cross_entropy': loss_cross_entropy,
    'one_minus_accuracy': loss_one_minus_accuracy,
    'root_mean_square': loss_root_mean_square,
}


def resolve_loss(loss: Union[str, LossFunction, None]) -> LossFunction:
    """
    Look up a loss by name, pass callables through, default to 1 - AUC.

    Raises:
        ValueError: If ``loss`` is an unknown name.
    """
    if loss is None:
        return loss_one_minus_auc
    if callable(loss):
        return loss
    if loss not in LOSS_FUNCTIONS:
        raise ValueError(f"Unknown loss '{loss}'. Use one of {sorted(LOSS_FUNCTIONS)}")
    return LOSS_FUNCTIONS[loss]


def loss_name(loss: LossFunction) -> str:
    """Registered name of a loss, or its function name."""
    for name, func in LOSS_FUNCTIONS.items():
        if func is loss:
            return name
    return getattr(loss, '__name__', loss.__class__.__name__)

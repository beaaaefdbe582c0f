"""
Model Explainer.

Binds a fitted binary classifier, its feature matrix, the 0/1 target and a
predict function into one immutable object. Every explanation method
(permutation importance, ALE profiles, local surrogates) consumes an
Explainer and never modifies it.

The predict function is the only way the engine queries the model, and its
contract is enforced on every call: one finite probability in [0, 1] per
row, in row order. Anything else raises PredictionContractViolation.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from sklearn.metrics import (
    accuracy_score,
    f1_score,
    precision_score,
    recall_score,
    roc_auc_score,
)

from newsxai.errors import (
    FeatureNotFound,
    InvalidTarget,
    PredictionContractViolation,
    ShapeMismatch,
)
from newsxai.explainability.losses import LossFunction, loss_name, resolve_loss
from newsxai.features.schema import FeatureSchema
from newsxai.models.predict import (
    PredictFunction,
    make_predict_function,
    resolve_predict_function,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelPerformance:
    """
    Classification metrics derived from the cached baseline predictions.

    Attributes:
        recall: Recall of the positive class at ``threshold``.
        precision: Precision of the positive class at ``threshold``.
        f1: F1 score at ``threshold``.
        accuracy: Accuracy at ``threshold``.
        auc: Area under the ROC curve of the raw probabilities.
        threshold: Probability threshold used for class assignment.
        n_samples: Number of rows evaluated.
        warnings: Conditions that made a metric undefined.
    """

    recall: float
    precision: float
    f1: float
    accuracy: float
    auc: float
    threshold: float = 0.5
    n_samples: int = 0
    warnings: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, float]:
        return {
            'recall': self.recall,
            'precision': self.precision,
            'f1': self.f1,
            'accuracy': self.accuracy,
            'auc': self.auc,
        }


@dataclass(frozen=True)
class ResidualReport:
    """Residuals (target - probability) with explicit degeneracy warnings."""

    residuals: pd.Series = field(repr=False)
    mean_absolute: float
    root_mean_square: float
    warnings: Tuple[str, ...] = ()


def _convert_target(target: Any, positive_class: Any = None) -> np.ndarray:
    """
    Convert a target vector to 0/1 integers, failing loudly on ambiguity.

    Args:
        target: Target values (numeric 0/1, bool, or labels).
        positive_class: Label mapped to 1. Required for non-numeric targets.

    Returns:
        Integer array of 0/1 values.

    Raises:
        InvalidTarget: For missing values, non-binary values, string targets
                       without ``positive_class``, or a single-class target.
    """
    series = pd.Series(np.asarray(target).ravel())

    if series.isna().any():
        raise InvalidTarget(f"Target contains {int(series.isna().sum())} missing values")

    if positive_class is not None:
        if not (series == positive_class).any():
            raise InvalidTarget(f"Positive class {positive_class!r} does not occur in target")
        other = set(series[series != positive_class].unique())
        if len(other) > 1:
            raise InvalidTarget(
                f"Target has more than two classes: {sorted(map(str, other | {positive_class}))}"
            )
        converted = (series == positive_class).astype(int).to_numpy()
    elif pd.api.types.is_bool_dtype(series):
        converted = series.astype(int).to_numpy()
    elif pd.api.types.is_numeric_dtype(series):
        invalid = set(series.unique()) - {0, 1}
        if invalid:
            raise InvalidTarget(
                f"Numeric target must contain only 0 and 1, found {sorted(invalid)[:5]}"
            )
        converted = series.astype(int).to_numpy()
    else:
        raise InvalidTarget(
            f"Non-numeric target (values like {list(series.unique()[:3])}) "
            "requires an explicit positive_class"
        )

    if len(np.unique(converted)) < 2:
        raise InvalidTarget("Target contains a single class; both 0 and 1 are required")

    return converted


class Explainer:
    """
    Immutable binding of a model, its data and its predict function.

    Attributes:
        model: The fitted model (opaque, owned by the caller).
        label: Human-readable name used in results and logs.
        columns: Feature names in matrix column order.
        target: Read-only 0/1 target array.
        baseline_predictions: Read-only cached probabilities on the data.
        baseline_loss: Loss of the unperturbed data.
        loss_function: Loss used for baseline and permutation losses.

    Example:
        >>> explainer = Explainer(model, X_test, y_test, label='random_forest')
        >>> explainer.performance().accuracy
        0.82
        >>> explainer.baseline_loss
        0.11
    """

    def __init__(
        self,
        model: Any,
        data: Union[pd.DataFrame, np.ndarray],
        target: Union[pd.Series, np.ndarray, Sequence],
        predict_function: Optional[PredictFunction] = None,
        label: Optional[str] = None,
        loss_function: Union[str, LossFunction, None] = None,
        positive_class: Any = None
    ) -> None:
        """
        Construct and validate an explainer.

        Args:
            model: Fitted model passed through to ``predict_function``.
            data: Feature matrix (target excluded).
            target: Binary target, one value per row.
            predict_function: ``(model, rows) -> probabilities``. Defaults to
                              the positive-class column of ``predict_proba``.
            label: Name of the explained model. Defaults to the class name.
            loss_function: Loss name or callable; default ``1 - AUC``.
            positive_class: Target label mapped to 1 for non-numeric targets.
                            Without an explicit predict_function the
                            probability column of this class is used.

        Raises:
            ShapeMismatch: If row counts differ or the target is a feature.
            InvalidTarget: If the target cannot be converted to 0/1.
            PredictionContractViolation: If the predict function breaks
                                         its contract on the data.
        """
        frame = self._as_frame(data)
        target_length = len(target) if hasattr(target, '__len__') else len(np.asarray(target))

        if target_length != len(frame):
            raise ShapeMismatch(
                f"Target has {target_length} values but feature matrix has {len(frame)} rows"
            )

        target_name = getattr(target, 'name', None)
        if target_name is not None and target_name in frame.columns:
            raise ShapeMismatch(f"Target column '{target_name}' must not be part of the feature matrix")

        self._target = _convert_target(target, positive_class)
        self._target.setflags(write=False)

        self._model = model
        self._label = label or model.__class__.__name__
        if predict_function is None and positive_class is not None:
            # Probabilities must refer to the same class the target maps to 1
            predict_function = make_predict_function(model, positive_class)
        self._predict_function = resolve_predict_function(predict_function)
        self._loss_function = resolve_loss(loss_function)

        self._data = frame
        self._values = frame.to_numpy(dtype=float)
        self._values.setflags(write=False)

        # Baseline predictions are computed once and reused everywhere
        self._baseline_predictions = self.predict(frame)
        self._baseline_predictions.setflags(write=False)
        self._baseline_loss = float(self.loss_function(self._target, self._baseline_predictions))

        logger.info(
            f"Explainer '{self.label}' ready: {len(frame)} rows, {frame.shape[1]} features, "
            f"baseline {loss_name(self.loss_function)} = {self._baseline_loss:.4f}"
        )

    @classmethod
    def from_frame(
        cls,
        model: Any,
        frame: pd.DataFrame,
        schema: FeatureSchema,
        **kwargs
    ) -> 'Explainer':
        """
        Construct from a modelling frame and an explicit schema.

        Args:
            model: Fitted model.
            frame: DataFrame holding the feature columns and the target.
            schema: Names of the feature columns and of the target column.
            **kwargs: Forwarded to the constructor.
        """
        X, y = schema.split(frame)
        return cls(model, X, y, **kwargs)

    @staticmethod
    def _as_frame(data: Union[pd.DataFrame, np.ndarray]) -> pd.DataFrame:
        if isinstance(data, pd.DataFrame):
            frame = data.copy()
        else:
            values = np.asarray(data)
            if values.ndim != 2:
                raise ShapeMismatch(f"Feature matrix must be 2-dimensional, got {values.ndim} dimensions")
            frame = pd.DataFrame(values, columns=[f"feature_{i}" for i in range(values.shape[1])])

        if frame.columns.duplicated().any():
            duplicated = frame.columns[frame.columns.duplicated()].tolist()
            raise ValueError(f"Feature names must be unique, duplicated: {duplicated}")

        non_numeric = [col for col in frame.columns
                       if not pd.api.types.is_numeric_dtype(frame[col])]
        if non_numeric:
            raise TypeError(f"Feature matrix columns must be numeric, got: {non_numeric}")

        frame.columns = [str(col) for col in frame.columns]
        return frame

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def model(self) -> Any:
        return self._model

    @property
    def label(self) -> str:
        return self._label

    @property
    def predict_function(self) -> PredictFunction:
        return self._predict_function

    @property
    def loss_function(self) -> LossFunction:
        return self._loss_function

    @property
    def data(self) -> pd.DataFrame:
        """Copy of the feature matrix."""
        return self._data.copy()

    @property
    def values(self) -> np.ndarray:
        """Read-only float view of the feature matrix."""
        return self._values

    @property
    def index(self) -> pd.Index:
        return self._data.index

    @property
    def columns(self) -> list:
        return list(self._data.columns)

    @property
    def target(self) -> np.ndarray:
        return self._target

    @property
    def baseline_predictions(self) -> np.ndarray:
        return self._baseline_predictions

    @property
    def baseline_loss(self) -> float:
        return self._baseline_loss

    @property
    def loss_name(self) -> str:
        return loss_name(self.loss_function)

    @property
    def n_rows(self) -> int:
        return len(self._data)

    def column_position(self, feature: str) -> int:
        """
        Column index of a feature.

        Raises:
            FeatureNotFound: If the feature is not a column.
        """
        try:
            return self._data.columns.get_loc(feature)
        except KeyError:
            raise FeatureNotFound(feature)

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def predict(self, rows: Union[pd.DataFrame, np.ndarray]) -> np.ndarray:
        """
        Query the model through the predict function and enforce its contract.

        Args:
            rows: Rows in the explainer's column layout. Arrays are wrapped
                  in a DataFrame with the explainer's column names.

        Returns:
            Float array with one probability per row.

        Raises:
            PredictionContractViolation: On wrong length, type, shape,
                                         non-finite or out-of-range output.
        """
        if not isinstance(rows, pd.DataFrame):
            rows = pd.DataFrame(np.asarray(rows, dtype=float), columns=self._data.columns)

        output = self.predict_function(self.model, rows)
        return self._check_predictions(output, len(rows))

    def _check_predictions(self, output: Any, n_rows: int) -> np.ndarray:
        if output is None:
            raise PredictionContractViolation("predict_function returned None")

        predictions = np.asarray(output)

        if predictions.dtype == object or not (
            np.issubdtype(predictions.dtype, np.number) or predictions.dtype == bool
        ):
            raise PredictionContractViolation(
                f"predict_function must return numeric probabilities, got dtype {predictions.dtype}"
            )
        if predictions.ndim != 1:
            raise PredictionContractViolation(
                f"predict_function must return a 1-D vector, got shape {predictions.shape}; "
                "use newsxai.models.make_predict_function for predict_proba outputs"
            )
        if len(predictions) != n_rows:
            raise PredictionContractViolation(
                f"predict_function returned {len(predictions)} values for {n_rows} rows"
            )

        predictions = predictions.astype(float)
        if not np.all(np.isfinite(predictions)):
            raise PredictionContractViolation("predict_function returned NaN or infinite values")
        if predictions.min(initial=0.0) < 0.0 or predictions.max(initial=1.0) > 1.0:
            raise PredictionContractViolation(
                f"predict_function returned values outside [0, 1]: "
                f"min={predictions.min():.4f}, max={predictions.max():.4f}"
            )
        return predictions

    def loss(self, predictions: np.ndarray) -> float:
        """Loss of a prediction vector against the target."""
        return float(self.loss_function(self._target, predictions))

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def performance(self, threshold: float = 0.5) -> ModelPerformance:
        """
        Classification metrics from the cached baseline predictions.

        Args:
            threshold: Probabilities >= threshold are assigned to class 1.

        Returns:
            ModelPerformance with recall, precision, f1, accuracy and auc.
        """
        if not 0.0 < threshold < 1.0:
            raise ValueError(f"threshold must be in (0, 1), got {threshold}")

        y_true = self._target
        y_pred = (self._baseline_predictions >= threshold).astype(int)
        warnings = []

        if y_pred.sum() == 0:
            message = (
                f"No instance is predicted positive at threshold {threshold}; "
                "precision and f1 are undefined and reported as 0"
            )
            logger.warning(message)
            warnings.append(message)

        return ModelPerformance(
            recall=float(recall_score(y_true, y_pred, zero_division=0)),
            precision=float(precision_score(y_true, y_pred, zero_division=0)),
            f1=float(f1_score(y_true, y_pred, zero_division=0)),
            accuracy=float(accuracy_score(y_true, y_pred)),
            auc=float(roc_auc_score(y_true, self._baseline_predictions)),
            threshold=threshold,
            n_samples=len(y_true),
            warnings=tuple(warnings),
        )

    def residuals(self) -> ResidualReport:
        """
        Residuals of the baseline predictions.

        A residual vector that is exactly zero everywhere, or a baseline loss
        of exactly zero, is reported as a warning rather than passed on as a
        perfect fit.
        """
        residuals = pd.Series(
            self._target - self._baseline_predictions,
            index=self._data.index,
            name='residual',
        )
        warnings = []

        if np.all(residuals.to_numpy() == 0):
            warnings.append(
                "All residuals are exactly zero: the predict function reproduces the "
                "target verbatim, check for target leakage or a hard-label predict function"
            )
        if self._baseline_loss == 0:
            warnings.append(
                f"Baseline {self.loss_name} is exactly zero; loss differences cannot "
                "decrease and importances may be degenerate"
            )
        for message in warnings:
            logger.warning(message)

        return ResidualReport(
            residuals=residuals,
            mean_absolute=float(residuals.abs().mean()),
            root_mean_square=float(np.sqrt((residuals ** 2).mean())),
            warnings=tuple(warnings),
        )

    def get_model_info(self) -> Dict[str, Any]:
        """Summary of the bound model and data."""
        return {
            'label': self.label,
            'model_class': self.model.__class__.__name__,
            'n_rows': self.n_rows,
            'n_features': len(self.columns),
            'loss': self.loss_name,
            'baseline_loss': self._baseline_loss,
            'positive_rate': float(self._target.mean()),
        }

    def __repr__(self) -> str:
        return (
            f"Explainer(label='{self.label}', rows={self.n_rows}, "
            f"features={len(self.columns)}, baseline_loss={self._baseline_loss:.4f})"
        )

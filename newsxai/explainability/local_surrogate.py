"""
Local surrogate explanations (LIME-style).

Explains one prediction by fitting a simple, weighted model on perturbed
neighbours of the instance:
    1. Pick the candidate features the instance actually "uses" (values
       that differ from the column's reference value)
    2. Sample neighbours by toggling candidates on/off (binary) or by
       Gaussian noise in standardized space (continuous)
    3. Score every neighbour with the black-box predict function
    4. Weight neighbours with an exponential kernel on their distance
    5. Select at most K features and fit a weighted ridge (or shallow tree)
The surrogate's coefficients are the explanation, and its weighted R^2 tells
how faithfully it mimics the black box around the instance.
"""

import logging
from dataclasses import dataclass
from typing import Any, Hashable, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from sklearn.linear_model import Ridge, lars_path
from sklearn.tree import DecisionTreeRegressor

from newsxai.errors import (
    FeatureNotFound,
    InsufficientSamples,
    InvalidFeatureBudget,
)
from newsxai.explainability.explainer import Explainer
from newsxai.explainability.parallel import CancellationToken, run_units

logger = logging.getLogger(__name__)

Instance = Union[int, Hashable, pd.Series, pd.DataFrame, np.ndarray]


@dataclass(frozen=True)
class LocalExplanationResult:
    """
    Local explanation of a single instance.

    Attributes:
        instance_id: Row label of the instance (None for free-standing rows).
        label: Label of the explained model.
        contributions: (feature, coefficient, sign) for the selected
                       features, by descending absolute coefficient.
        score: Weighted R^2 of the surrogate on the neighbourhood
               (NaN when the black-box output is constant).
        seed: Seed the neighbourhood was generated from.
        intercept: Surrogate intercept.
        model_prediction: Black-box probability of the instance.
        local_prediction: Surrogate prediction for the instance.
        sample_count: Number of neighbours (including the instance).
        perturbation: 'binary' or 'continuous'.
        surrogate: 'linear' or 'tree'.
        warnings: Degenerate fit conditions.
    """

    instance_id: Any
    label: str
    contributions: Tuple[Tuple[str, float, str], ...]
    score: float
    seed: int
    intercept: float
    model_prediction: float
    local_prediction: float
    sample_count: int
    perturbation: str
    surrogate: str
    warnings: Tuple[str, ...] = ()

    @property
    def features(self) -> List[str]:
        return [feature for feature, _, _ in self.contributions]

    def as_dict(self) -> dict:
        """Feature -> coefficient mapping."""
        return {feature: coefficient for feature, coefficient, _ in self.contributions}

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(list(self.contributions), columns=['feature', 'coefficient', 'sign'])


def _sign(value: float) -> str:
    if value > 0:
        return '+'
    if value < 0:
        return '-'
    return '0'


def _weighted_correlations(Z: np.ndarray, y: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """Weighted Pearson correlation of every column of Z with y (0 for constant columns)."""
    z_centered = Z - np.average(Z, axis=0, weights=weights)
    y_centered = y - np.average(y, weights=weights)
    covariance = np.average(z_centered * y_centered[:, None], axis=0, weights=weights)
    z_var = np.average(z_centered ** 2, axis=0, weights=weights)
    y_var = np.average(y_centered ** 2, weights=weights)
    denominator = np.sqrt(z_var * y_var)
    return np.divide(covariance, denominator, out=np.zeros_like(covariance), where=denominator > 0)


class LocalSurrogate:
    """
    LIME-style local explainer bound to an Explainer.

    Attributes:
        explainer: Explainer providing data and the predict function.
        perturbation: 'binary' toggles candidates between the instance value
                      and the column reference; 'continuous' adds Gaussian
                      noise in standardized space.
        feature_selection: 'correlation', 'highest_weights' or 'lasso_path'.
        surrogate: 'linear' (weighted ridge) or 'tree' (weighted regression tree).
        kernel_width: Width of the exponential kernel. Defaults to 0.75 for
                      binary and 0.75 * sqrt(n_candidates) for continuous.
        alpha: Ridge regularization strength.
        max_candidates: Optional cap on candidate features per instance.

    Example:
        >>> surrogate = LocalSurrogate(explainer)
        >>> result = surrogate.explain(0, feature_budget=5, sample_count=2000, seed=7)
        >>> result.contributions[0]
        ('reuters', 0.21, '+')
    """

    PERTURBATIONS = ('binary', 'continuous')
    SELECTIONS = ('correlation', 'highest_weights', 'lasso_path')
    SURROGATES = ('linear', 'tree')

    def __init__(
        self,
        explainer: Explainer,
        perturbation: str = 'binary',
        feature_selection: str = 'correlation',
        surrogate: str = 'linear',
        kernel_width: Optional[float] = None,
        alpha: float = 1.0,
        max_candidates: Optional[int] = None,
        tree_depth: int = 3,
        n_jobs: int = 1,
        chunk_size: int = 1000
    ) -> None:
        if perturbation not in self.PERTURBATIONS:
            raise ValueError(f"perturbation must be one of {self.PERTURBATIONS}, got '{perturbation}'")
        if feature_selection not in self.SELECTIONS:
            raise ValueError(f"feature_selection must be one of {self.SELECTIONS}, got '{feature_selection}'")
        if surrogate not in self.SURROGATES:
            raise ValueError(f"surrogate must be one of {self.SURROGATES}, got '{surrogate}'")
        if kernel_width is not None and kernel_width <= 0:
            raise ValueError(f"kernel_width must be positive, got {kernel_width}")
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")

        self.explainer = explainer
        self.perturbation = perturbation
        self.feature_selection = feature_selection
        self.surrogate = surrogate
        self.kernel_width = kernel_width
        self.alpha = alpha
        self.max_candidates = max_candidates
        self.tree_depth = tree_depth
        self.n_jobs = n_jobs
        self.chunk_size = chunk_size

        values = explainer.values
        self.reference = np.median(values, axis=0)
        self.center = values.mean(axis=0)
        scale = values.std(axis=0)
        self.scale = np.where(scale > 0, scale, 1.0)

    # ------------------------------------------------------------------
    # Instance handling
    # ------------------------------------------------------------------

    def _resolve_instance(self, instance: Instance) -> Tuple[Any, np.ndarray]:
        explainer = self.explainer
        columns = explainer.columns

        if isinstance(instance, pd.DataFrame):
            if len(instance) != 1:
                raise ValueError(f"Expected a single-row DataFrame, got {len(instance)} rows")
            return instance.index[0], self._resolve_instance(instance.iloc[0])[1]

        if isinstance(instance, pd.Series):
            missing = [col for col in columns if col not in instance.index]
            if missing:
                raise FeatureNotFound(missing[0])
            return instance.name, instance[columns].to_numpy(dtype=float)

        if isinstance(instance, np.ndarray):
            row = instance.astype(float).ravel()
            if len(row) != len(columns):
                raise ValueError(f"Instance has {len(row)} values, expected {len(columns)}")
            return None, row

        if isinstance(instance, (int, np.integer)) and not isinstance(instance, bool):
            if not -explainer.n_rows <= instance < explainer.n_rows:
                raise IndexError(f"Row position {instance} out of bounds for {explainer.n_rows} rows")
            return explainer.index[instance], np.array(explainer.values[instance], dtype=float)

        if instance in explainer.index:
            position = explainer.index.get_loc(instance)
            if not isinstance(position, (int, np.integer)):
                raise ValueError(f"Row label {instance!r} is not unique")
            return instance, np.array(explainer.values[position], dtype=float)

        raise KeyError(f"Instance {instance!r} is neither a row position nor a row label")

    def candidate_features(self, row: np.ndarray) -> np.ndarray:
        """
        Column positions of features the instance uses, most prominent first.

        A feature is a candidate when the instance value differs from the
        column reference (median). Ranking is by standardized deviation,
        ties by feature name.
        """
        columns = self.explainer.columns
        deviation = np.abs(row - self.reference) / self.scale
        present = np.flatnonzero(row != self.reference)
        order = sorted(present, key=lambda j: (-deviation[j], columns[j]))
        if self.max_candidates is not None:
            order = order[:self.max_candidates]
        return np.array(order, dtype=int)

    # ------------------------------------------------------------------
    # Neighbourhood sampling
    # ------------------------------------------------------------------

    def _sample_chunk(
        self,
        row: np.ndarray,
        candidates: np.ndarray,
        seed: int,
        start: int,
        stop: int
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Generate neighbours start..stop-1 and score them with the black box."""
        n_candidates = len(candidates)
        interpretable = np.empty((stop - start, n_candidates))
        rows = np.tile(row, (stop - start, 1))
        x_std = (row[candidates] - self.center[candidates]) / self.scale[candidates]

        for offset, sample_index in enumerate(range(start, stop)):
            if self.perturbation == 'binary':
                if sample_index == 0:
                    z = np.ones(n_candidates)
                else:
                    rng = np.random.default_rng([seed, sample_index])
                    z = rng.integers(0, 2, size=n_candidates).astype(float)
                rows[offset, candidates] = np.where(z == 1, row[candidates], self.reference[candidates])
            else:
                if sample_index == 0:
                    z = x_std.copy()
                else:
                    rng = np.random.default_rng([seed, sample_index])
                    z = x_std + rng.standard_normal(n_candidates)
                rows[offset, candidates] = z * self.scale[candidates] + self.center[candidates]
            interpretable[offset] = z

        return interpretable, self.explainer.predict(rows)

    def _kernel(self, interpretable: np.ndarray, origin: np.ndarray) -> np.ndarray:
        n_candidates = interpretable.shape[1]
        if self.perturbation == 'binary':
            distances = np.mean(interpretable != origin, axis=1)
            width = self.kernel_width or 0.75
        else:
            distances = np.sqrt(np.sum((interpretable - origin) ** 2, axis=1))
            width = self.kernel_width or 0.75 * np.sqrt(n_candidates)
        return np.exp(-(distances ** 2) / (width ** 2))

    # ------------------------------------------------------------------
    # Feature selection
    # ------------------------------------------------------------------

    def _select_features(
        self,
        Z: np.ndarray,
        y: np.ndarray,
        weights: np.ndarray,
        budget: int,
        names: List[str]
    ) -> np.ndarray:
        correlations = _weighted_correlations(Z, y, weights)
        by_correlation = sorted(range(Z.shape[1]), key=lambda j: (-abs(correlations[j]), names[j]))

        if self.feature_selection == 'correlation':
            return np.array(by_correlation[:budget], dtype=int)

        if self.feature_selection == 'highest_weights':
            model = Ridge(alpha=0.01)
            model.fit(Z, y, sample_weight=weights)
            order = sorted(range(Z.shape[1]), key=lambda j: (-abs(model.coef_[j]), names[j]))
            return np.array(order[:budget], dtype=int)

        # lasso_path: largest lasso model with at most `budget` active features
        sqrt_w = np.sqrt(weights)
        weighted_Z = (Z - np.average(Z, axis=0, weights=weights)) * sqrt_w[:, None]
        weighted_y = (y - np.average(y, weights=weights)) * sqrt_w
        _, _, coefs = lars_path(weighted_Z, weighted_y, method='lasso')

        selected: List[int] = []
        for step in range(coefs.shape[1] - 1, -1, -1):
            active = list(np.flatnonzero(coefs[:, step]))
            if len(active) <= budget:
                selected = sorted(active, key=lambda j: (-abs(coefs[j, step]), names[j]))
                break

        # Pad with the strongest correlations when the path activates too few
        for j in by_correlation:
            if len(selected) >= budget:
                break
            if j not in selected:
                selected.append(j)
        return np.array(selected, dtype=int)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def explain(
        self,
        instance: Instance,
        feature_budget: int = 10,
        sample_count: int = 5000,
        seed: int = 42,
        cancel_token: Optional[CancellationToken] = None
    ) -> LocalExplanationResult:
        """
        Explain one prediction with a local surrogate.

        Args:
            instance: Row position (int), row label, Series or 1-row DataFrame.
            feature_budget: Maximum number of features in the explanation (K).
            sample_count: Number of neighbours, including the instance (N).
            seed: Seed of the neighbourhood; same seed, same coefficients.
            cancel_token: Optional cooperative cancellation token.

        Returns:
            LocalExplanationResult with the top-K contributions.

        Raises:
            InvalidFeatureBudget: If K < 1 or K exceeds the candidate features.
            InsufficientSamples: If N < K + 1.
            FeatureNotFound: If a Series instance lacks a feature column.
        """
        if seed < 0:
            raise ValueError(f"seed must be non-negative, got {seed}")

        instance_id, row = self._resolve_instance(instance)
        candidates = self.candidate_features(row)
        columns = self.explainer.columns
        names = [columns[j] for j in candidates]

        if feature_budget < 1 or feature_budget > len(candidates):
            raise InvalidFeatureBudget(
                f"feature_budget={feature_budget} but the instance has {len(candidates)} "
                "candidate features"
            )
        if sample_count < feature_budget + 1:
            raise InsufficientSamples(
                f"sample_count={sample_count} is below the minimum of {feature_budget + 1} "
                f"for feature_budget={feature_budget}"
            )

        logger.info(
            f"Local surrogate for instance {instance_id!r} of '{self.explainer.label}': "
            f"{len(candidates)} candidates, K={feature_budget}, N={sample_count}, seed={seed}"
        )

        units = []
        for start in range(0, sample_count, self.chunk_size):
            stop = min(start + self.chunk_size, sample_count)
            units.append((start, (row, candidates, seed, start, stop)))

        outputs = run_units(
            self._sample_chunk,
            units,
            n_jobs=self.n_jobs,
            cancel_token=cancel_token,
            description="local surrogate samples",
        )

        starts = [start for start, _ in units]
        Z = np.vstack([outputs[start][0] for start in starts])
        y = np.concatenate([outputs[start][1] for start in starts])
        weights = self._kernel(Z, Z[0])

        warnings = []
        constant_output = np.ptp(y) == 0
        if constant_output:
            warnings.append(
                f"Black-box output is constant ({y[0]:.4f}) over all {sample_count} "
                "neighbours; the surrogate cannot attribute anything and its score is undefined"
            )

        selected = self._select_features(Z, y, weights, feature_budget, names)
        Z_selected = Z[:, selected]
        selected_names = [names[j] for j in selected]

        z_var = np.average((Z_selected - np.average(Z_selected, axis=0, weights=weights)) ** 2,
                           axis=0, weights=weights)
        flat = [name for name, var in zip(selected_names, z_var) if var == 0]
        if flat:
            warnings.append(
                f"Selected feature(s) never varied across the neighbourhood: {flat}"
            )

        centered = (Z_selected - np.average(Z_selected, axis=0, weights=weights)) * np.sqrt(weights)[:, None]
        rank = np.linalg.matrix_rank(centered)
        if rank < len(selected):
            warnings.append(
                f"Weighted design is rank deficient (rank {rank} < {len(selected)} features); "
                "coefficients of collinear features are not identifiable"
            )

        coefficients, intercept, local_prediction, score = self._fit_surrogate(
            Z_selected, y, weights, seed
        )
        if constant_output:
            score = float('nan')

        for message in warnings:
            logger.warning(message)

        order = sorted(range(len(selected)),
                       key=lambda i: (-abs(coefficients[i]), selected_names[i]))
        contributions = tuple(
            (selected_names[i], float(coefficients[i]), _sign(coefficients[i])) for i in order
        )

        return LocalExplanationResult(
            instance_id=instance_id,
            label=self.explainer.label,
            contributions=contributions,
            score=score,
            seed=seed,
            intercept=intercept,
            model_prediction=float(y[0]),
            local_prediction=local_prediction,
            sample_count=sample_count,
            perturbation=self.perturbation,
            surrogate=self.surrogate,
            warnings=tuple(warnings),
        )

    def _fit_surrogate(
        self,
        Z: np.ndarray,
        y: np.ndarray,
        weights: np.ndarray,
        seed: int
    ) -> Tuple[np.ndarray, float, float, float]:
        """Fit the weighted surrogate; returns (coefficients, intercept, local prediction, score)."""
        if self.surrogate == 'linear':
            model = Ridge(alpha=self.alpha)
            model.fit(Z, y, sample_weight=weights)
            coefficients = np.asarray(model.coef_, dtype=float)
            intercept = float(model.intercept_)
        else:
            model = DecisionTreeRegressor(max_depth=self.tree_depth, random_state=seed)
            model.fit(Z, y, sample_weight=weights)
            # Tree importances are unsigned; take the direction from the correlation
            direction = np.sign(_weighted_correlations(Z, y, weights))
            coefficients = model.feature_importances_ * direction
            intercept = float(np.average(y, weights=weights))

        local_prediction = float(model.predict(Z[:1])[0])
        score = float(model.score(Z, y, sample_weight=weights))
        return coefficients, intercept, local_prediction, score

"""
Accumulated Local Effects (ALE) profiles.

ALE describes how the model's predicted probability changes, on average,
as one feature moves through its observed range. Unlike partial dependence
it only evaluates each instance inside the interval it actually lies in,
which keeps the profile meaningful for correlated features.

Algorithm for feature j with quantile edges z_0 < z_1 < ... < z_K:
    1. Assign every instance to its interval (z_{k-1}, z_k]
    2. Predict twice per instance: x_j clamped to z_{k-1} and to z_k
    3. Average the differences within each interval
    4. Accumulate the averages across intervals in value order
    5. Subtract the instance-weighted mean so the curve is centered

Total cost is 2 x N predictions, independent of the number of bins.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from newsxai.errors import InsufficientVariation
from newsxai.explainability.explainer import Explainer
from newsxai.explainability.parallel import CancellationToken, run_units

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ALEResult:
    """
    Centered ALE curve of one feature.

    Attributes:
        feature: Profiled feature.
        label: Label of the explained model.
        bins: (lower edge, upper edge, centered effect) per bin, in value order.
        counts: Instances per bin.
        warnings: Degenerate conditions detected during the computation.
    """

    feature: str
    label: str
    bins: Tuple[Tuple[float, float, float], ...]
    counts: Tuple[int, ...]
    warnings: Tuple[str, ...] = ()

    @property
    def effects(self) -> np.ndarray:
        return np.array([effect for _, _, effect in self.bins])

    @property
    def edges(self) -> np.ndarray:
        if not self.bins:
            return np.array([])
        return np.array([self.bins[0][0]] + [upper for _, upper, _ in self.bins])

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            'lower': [lower for lower, _, _ in self.bins],
            'upper': [upper for _, upper, _ in self.bins],
            'effect': [effect for _, _, effect in self.bins],
            'count': list(self.counts),
        })


class ALEProfiler:
    """
    ALE profile calculator bound to an Explainer.

    Example:
        >>> profiler = ALEProfiler(explainer)
        >>> curve = profiler.compute('trump', bin_count=10)
        >>> curve.to_frame()
    """

    def __init__(self, explainer: Explainer, n_jobs: int = 1, chunk_size: int = 5000) -> None:
        """
        Args:
            explainer: Explainer to profile.
            n_jobs: joblib workers for prediction chunks.
            chunk_size: Rows per prediction call.
        """
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.explainer = explainer
        self.n_jobs = n_jobs
        self.chunk_size = chunk_size

    @staticmethod
    def quantile_edges(values: np.ndarray, bin_count: int) -> np.ndarray:
        """
        Quantile-based bin edges; duplicated edges (ties) collapse.

        Edges are observed values, so every bin holds at least one instance.
        """
        probabilities = np.linspace(0.0, 1.0, bin_count + 1)
        edges = np.quantile(values, probabilities, method='inverted_cdf')
        edges[0] = values.min()
        edges[-1] = values.max()
        return np.unique(edges)

    @staticmethod
    def assign_bins(values: np.ndarray, edges: np.ndarray) -> np.ndarray:
        """Bin index of every value; bin k covers (edges[k], edges[k+1]], bin 0 includes the minimum."""
        indices = np.searchsorted(edges, values, side='left') - 1
        return np.clip(indices, 0, len(edges) - 2)

    def _predict_chunk(self, rows: np.ndarray) -> np.ndarray:
        return self.explainer.predict(rows)

    def compute(
        self,
        feature: str,
        bin_count: int = 10,
        cancel_token: Optional[CancellationToken] = None
    ) -> ALEResult:
        """
        Compute the centered ALE curve of ``feature``.

        Args:
            feature: Column to profile.
            bin_count: Requested number of quantile bins.
            cancel_token: Optional cooperative cancellation token.

        Returns:
            ALEResult with one (lower, upper, effect) triple per bin.

        Raises:
            FeatureNotFound: If the feature is not a column.
            InsufficientVariation: If the feature has fewer than 2 distinct values.
            ValueError: If bin_count < 1.
        """
        explainer = self.explainer
        position = explainer.column_position(feature)

        if bin_count < 1:
            raise ValueError(f"bin_count must be at least 1, got {bin_count}")

        values = explainer.values[:, position]
        n_distinct = len(np.unique(values))
        if n_distinct < 2:
            raise InsufficientVariation(
                f"Feature '{feature}' has {n_distinct} distinct value(s); ALE needs at least 2"
            )

        edges = self.quantile_edges(values, bin_count)
        bin_index = self.assign_bins(values, edges)
        n_bins = len(edges) - 1

        if n_bins < bin_count:
            logger.info(
                f"ALE for '{feature}': {bin_count} requested bins collapsed to {n_bins} due to ties"
            )

        lower_rows = explainer.values.copy()
        upper_rows = explainer.values.copy()
        lower_rows[:, position] = edges[bin_index]
        upper_rows[:, position] = edges[bin_index + 1]

        # Two evaluations per instance, split into chunks as independent units
        n_rows = explainer.n_rows
        units = []
        for start in range(0, n_rows, self.chunk_size):
            stop = min(start + self.chunk_size, n_rows)
            units.append((('lower', start), (lower_rows[start:stop],)))
            units.append((('upper', start), (upper_rows[start:stop],)))

        outputs = run_units(
            self._predict_chunk,
            units,
            n_jobs=self.n_jobs,
            cancel_token=cancel_token,
            description=f"ALE prediction chunks for '{feature}'",
        )

        starts = range(0, n_rows, self.chunk_size)
        lower_pred = np.concatenate([outputs[('lower', start)] for start in starts])
        upper_pred = np.concatenate([outputs[('upper', start)] for start in starts])
        differences = upper_pred - lower_pred

        counts = np.bincount(bin_index, minlength=n_bins)
        sums = np.bincount(bin_index, weights=differences, minlength=n_bins)
        local_effects = np.divide(sums, counts, out=np.zeros(n_bins), where=counts > 0)

        accumulated = np.cumsum(local_effects)
        centered = accumulated - np.average(accumulated, weights=counts)

        warnings = []
        if np.all(differences == 0):
            warnings.append(
                f"Predictions never changed across the bins of '{feature}'; "
                "the flat ALE curve means the model ignores this feature on this data"
            )
        for message in warnings:
            logger.warning(message)

        bins = tuple(
            (float(edges[k]), float(edges[k + 1]), float(centered[k])) for k in range(n_bins)
        )
        return ALEResult(
            feature=feature,
            label=explainer.label,
            bins=bins,
            counts=tuple(int(count) for count in counts),
            warnings=tuple(warnings),
        )

    def compute_many(
        self,
        features: Sequence[str],
        bin_count: int = 10,
        cancel_token: Optional[CancellationToken] = None
    ) -> Dict[str, ALEResult]:
        """ALE curves for several features, keyed by feature name."""
        results: Dict[str, ALEResult] = {}
        for feature in features:
            results[feature] = self.compute(feature, bin_count, cancel_token=cancel_token)
        return results


def summarize_profiles(results: List[ALEResult]) -> pd.DataFrame:
    """Range of every ALE curve (max - min effect), largest first."""
    rows = [{
        'feature': result.feature,
        'effect_range': float(result.effects.max() - result.effects.min()),
        'n_bins': len(result.bins),
    } for result in results]
    frame = pd.DataFrame(rows, columns=['feature', 'effect_range', 'n_bins'])
    return frame.sort_values(['effect_range', 'feature'], ascending=[False, True]).reset_index(drop=True)

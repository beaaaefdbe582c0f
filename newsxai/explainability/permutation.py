"""
Permutation Feature Importance.

Measures how much the explainer's loss grows when a single feature column
is shuffled across rows, breaking its relationship with the target while
leaving every other column untouched. Each (feature, repeat) pair is an
independent unit of work with its own seeded random generator, so results
are reproducible and identical for any number of workers.

Cost: repeat_count x n_features full-dataset predictions. This is the
dominant cost of the engine; use ``n_jobs`` to spread it across workers and
a CancellationToken to abort long requests.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from newsxai.errors import InvalidRepeatCount
from newsxai.explainability.explainer import Explainer
from newsxai.explainability.parallel import CancellationToken, run_units

logger = logging.getLogger(__name__)

BASELINE_KEY = '_baseline_'


@dataclass(frozen=True)
class FeatureImportance:
    """Per-repeat dropout losses of one feature and their summary."""

    feature: str
    dropout_losses: Tuple[float, ...]
    mean: float
    std: float


@dataclass(frozen=True, eq=False)
class ImportanceResult:
    """
    Permutation importance of a set of features.

    Attributes:
        label: Label of the explained model.
        loss_name: Name of the loss function.
        baseline_loss: Loss on unperturbed data.
        repeat_count: Number of permutations per feature.
        seed: Seed the per-unit generators were derived from.
        loss_type: 'difference', 'ratio' or 'raw'.
        importances: Feature name -> FeatureImportance.
        baseline_reference: Loss when all features are permuted jointly
                            (only when requested).
        warnings: Degenerate conditions detected during the computation.
    """

    label: str
    loss_name: str
    baseline_loss: float
    repeat_count: int
    seed: int
    loss_type: str
    importances: Dict[str, FeatureImportance]
    baseline_reference: Optional[FeatureImportance] = None
    warnings: Tuple[str, ...] = field(default=())

    def __getitem__(self, feature: str) -> FeatureImportance:
        return self.importances[feature]

    def __len__(self) -> int:
        return len(self.importances)

    def ranking(self) -> List[FeatureImportance]:
        """Features by descending mean dropout loss, ties by name ascending."""
        return sorted(self.importances.values(), key=lambda item: (-item.mean, item.feature))

    def top_features(self, n_features: int = 10) -> List[Tuple[str, float]]:
        return [(item.feature, item.mean) for item in self.ranking()[:n_features]]

    def to_frame(self) -> pd.DataFrame:
        """
        Ranked importance table.

        Returns:
            DataFrame with columns rank, feature, mean_dropout_loss, std and
            one column per repeat.
        """
        rows = []
        for rank, item in enumerate(self.ranking(), start=1):
            row = {
                'rank': rank,
                'feature': item.feature,
                'mean_dropout_loss': item.mean,
                'std': item.std,
            }
            for repeat, value in enumerate(item.dropout_losses):
                row[f'repeat_{repeat}'] = value
            rows.append(row)
        return pd.DataFrame(rows)


class PermutationImportance:
    """
    Permutation importance calculator bound to an Explainer.

    Attributes:
        explainer: Explainer providing data, target, loss and predictions.
        seed: Base seed; unit (feature position p, repeat r) uses the
              generator ``default_rng([seed, p, r])``.
        loss_type: How the permuted loss is compared with the baseline.
        n_jobs: joblib workers for the (feature, repeat) units.

    Example:
        >>> importance = PermutationImportance(explainer, seed=42)
        >>> result = importance.compute(repeat_count=6)
        >>> result.ranking()[0].feature
        'reuters'
    """

    LOSS_TYPES = ('difference', 'ratio', 'raw')

    def __init__(
        self,
        explainer: Explainer,
        seed: int = 42,
        loss_type: str = 'difference',
        n_jobs: int = 1
    ) -> None:
        if loss_type not in self.LOSS_TYPES:
            raise ValueError(f"loss_type must be one of {self.LOSS_TYPES}, got '{loss_type}'")
        if seed < 0:
            raise ValueError(f"seed must be non-negative, got {seed}")

        self.explainer = explainer
        self.seed = seed
        self.loss_type = loss_type
        self.n_jobs = n_jobs

    def _dropout(self, loss: float) -> float:
        baseline = self.explainer.baseline_loss
        if self.loss_type == 'difference':
            return loss - baseline
        if self.loss_type == 'ratio':
            return loss / baseline
        return loss

    def _permutation_unit(self, position: Optional[int], repeat: int) -> Tuple[float, bool]:
        """
        Shuffle one column (or every row when position is None) and score it.

        Returns:
            Tuple of (perturbed loss, whether any prediction changed).
        """
        values = self.explainer.values
        n_columns = values.shape[1]
        stream = n_columns if position is None else position
        rng = np.random.default_rng([self.seed, stream, repeat])
        order = rng.permutation(values.shape[0])

        if position is None:
            permuted = values[order]
        else:
            permuted = values.copy()
            permuted[:, position] = values[order, position]

        predictions = self.explainer.predict(permuted)
        changed = not np.array_equal(predictions, self.explainer.baseline_predictions)
        return self.explainer.loss(predictions), changed

    def compute(
        self,
        repeat_count: int = 10,
        feature_subset: Optional[Sequence[str]] = None,
        include_baseline: bool = False,
        cancel_token: Optional[CancellationToken] = None
    ) -> ImportanceResult:
        """
        Compute permutation importance.

        Args:
            repeat_count: Permutations per feature (B).
            feature_subset: Features to evaluate; defaults to every column.
                            Repeated names are evaluated once.
            include_baseline: Also permute all features jointly and store it
                              as ``baseline_reference``.
            cancel_token: Optional cooperative cancellation token.

        Returns:
            ImportanceResult with per-repeat and mean dropout losses.

        Raises:
            InvalidRepeatCount: If repeat_count is not a positive integer.
            FeatureNotFound: If a requested feature is not a column.
            ComputationCancelled: If cancelled before all units finished.
        """
        if isinstance(repeat_count, bool) or not isinstance(repeat_count, (int, np.integer)) \
                or repeat_count <= 0:
            raise InvalidRepeatCount(f"repeat_count must be a positive integer, got {repeat_count!r}")

        explainer = self.explainer
        features = list(explainer.columns) if feature_subset is None \
            else list(dict.fromkeys(feature_subset))
        positions = {feature: explainer.column_position(feature) for feature in features}

        if self.loss_type == 'ratio' and explainer.baseline_loss == 0:
            raise ValueError("loss_type='ratio' is undefined when the baseline loss is zero")

        units = [((feature, repeat), (positions[feature], repeat))
                 for feature in features for repeat in range(repeat_count)]
        if include_baseline:
            units += [((BASELINE_KEY, repeat), (None, repeat)) for repeat in range(repeat_count)]

        logger.info(
            f"Permutation importance for '{explainer.label}': {len(features)} features x "
            f"{repeat_count} repeats = {len(units)} predictions of {explainer.n_rows} rows"
        )

        outputs = run_units(
            self._permutation_unit,
            units,
            n_jobs=self.n_jobs,
            cancel_token=cancel_token,
            description="permutation units",
        )

        warnings = []
        if explainer.baseline_loss == 0:
            warnings.append(
                f"Baseline {explainer.loss_name} is exactly zero; dropout losses are "
                "bounded below by zero and may hide differences between features"
            )

        importances: Dict[str, FeatureImportance] = {}
        unchanged = []
        for feature in features:
            runs = [outputs[(feature, repeat)] for repeat in range(repeat_count)]
            importances[feature] = self._summarize(feature, [loss for loss, _ in runs])
            if not any(changed for _, changed in runs):
                unchanged.append(feature)

        if unchanged:
            preview = ', '.join(unchanged[:5]) + (' ...' if len(unchanged) > 5 else '')
            warnings.append(
                f"Permuting {len(unchanged)} feature(s) never changed any prediction "
                f"(e.g. {preview}); their zero importance reflects an unused or constant "
                "column, not a measured effect"
            )

        baseline_reference = None
        if include_baseline:
            losses = [outputs[(BASELINE_KEY, repeat)][0] for repeat in range(repeat_count)]
            baseline_reference = self._summarize(BASELINE_KEY, losses)

        for message in warnings:
            logger.warning(message)

        return ImportanceResult(
            label=explainer.label,
            loss_name=explainer.loss_name,
            baseline_loss=explainer.baseline_loss,
            repeat_count=repeat_count,
            seed=self.seed,
            loss_type=self.loss_type,
            importances=importances,
            baseline_reference=baseline_reference,
            warnings=tuple(warnings),
        )

    def _summarize(self, feature: str, losses: List[float]) -> FeatureImportance:
        dropout = tuple(float(self._dropout(loss)) for loss in losses)
        return FeatureImportance(
            feature=feature,
            dropout_losses=dropout,
            mean=float(np.mean(dropout)),
            std=float(np.std(dropout)),
        )

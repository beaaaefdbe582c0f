"""
Explanation summary report.

Collects model performance, the baseline loss and any computed explanations
into one JSON-serialisable dictionary, so a run can be archived or compared
with a later one. Rendering (plots, PDFs, dashboards) is left to callers.
"""

import json
import logging
import math
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

from newsxai.explainability.ale import ALEResult
from newsxai.explainability.explainer import Explainer
from newsxai.explainability.local_surrogate import LocalExplanationResult
from newsxai.explainability.permutation import ImportanceResult

logger = logging.getLogger(__name__)


def _finite_or_none(value: float) -> Optional[float]:
    # JSON has no NaN
    return None if value is None or math.isnan(value) else float(value)


def summarize(
    explainer: Explainer,
    importance: Optional[ImportanceResult] = None,
    profiles: Optional[Iterable[ALEResult]] = None,
    local_explanations: Optional[Iterable[LocalExplanationResult]] = None,
    top_n: int = 10,
    threshold: float = 0.5
) -> Dict[str, Any]:
    """
    Build a summary of an explainer and its explanations.

    Args:
        explainer: Explained model binding.
        importance: Optional permutation importance result.
        profiles: Optional ALE results.
        local_explanations: Optional local surrogate results.
        top_n: Number of top-ranked features reported.
        threshold: Classification threshold for the performance block.

    Returns:
        Dictionary with model, performance, importance, ale and local
        sections plus every warning raised along the way.
    """
    perf = explainer.performance(threshold=threshold)
    warnings = list(perf.warnings)

    summary: Dict[str, Any] = {
        'generated_at': datetime.now().isoformat(timespec='seconds'),
        'model': explainer.get_model_info(),
        'performance': perf.to_dict(),
        'baseline_loss': explainer.baseline_loss,
        'loss': explainer.loss_name,
    }

    if importance is not None:
        summary['importance'] = {
            'repeat_count': importance.repeat_count,
            'seed': importance.seed,
            'loss_type': importance.loss_type,
            'top_features': [
                {'feature': item.feature, 'mean_dropout_loss': item.mean, 'std': item.std}
                for item in importance.ranking()[:top_n]
            ],
        }
        if importance.baseline_reference is not None:
            summary['importance']['baseline_reference'] = importance.baseline_reference.mean
        warnings.extend(importance.warnings)

    if profiles is not None:
        summary['ale'] = {}
        for profile in profiles:
            summary['ale'][profile.feature] = [
                {'lower': lower, 'upper': upper, 'effect': effect, 'count': count}
                for (lower, upper, effect), count in zip(profile.bins, profile.counts)
            ]
            warnings.extend(profile.warnings)

    if local_explanations is not None:
        summary['local'] = []
        for local in local_explanations:
            summary['local'].append({
                'instance_id': str(local.instance_id),
                'model_prediction': local.model_prediction,
                'local_prediction': local.local_prediction,
                'score': _finite_or_none(local.score),
                'seed': local.seed,
                'contributions': [
                    {'feature': feature, 'coefficient': coefficient, 'sign': sign}
                    for feature, coefficient, sign in local.contributions
                ],
            })
            warnings.extend(local.warnings)

    summary['warnings'] = warnings
    return summary


def save_summary(summary: Dict[str, Any], path: Union[str, Path]) -> Path:
    """
    Write a summary to disk as JSON.

    Args:
        summary: Output of ``summarize``.
        path: Destination file.

    Returns:
        The written path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(summary, f, indent=2, default=str)
    logger.info(f"Explanation summary saved to {path}")
    return path


def print_summary(summary: Dict[str, Any]) -> None:
    """Print a human-readable version of a summary."""
    print("=" * 70)
    print(f"EXPLANATION SUMMARY: {summary['model']['label']}")
    print("=" * 70)

    print(f"\nRows: {summary['model']['n_rows']:,}   Features: {summary['model']['n_features']}")
    print(f"Baseline {summary['loss']}: {summary['baseline_loss']:.4f}")

    print("\nPerformance (threshold-based metrics at 0.5 unless configured):")
    for metric, value in summary['performance'].items():
        print(f"  {metric:<10s} {value:.4f}")

    if 'importance' in summary:
        print(f"\nTop features ({summary['importance']['repeat_count']} permutations each):")
        for rank, item in enumerate(summary['importance']['top_features'], start=1):
            print(f"  {rank:2d}. {item['feature']:25s} {item['mean_dropout_loss']:+.4f} "
                  f"(+/- {item['std']:.4f})")

    for local in summary.get('local', []):
        score = local['score']
        score_text = 'undefined' if score is None else f"{score:.3f}"
        print(f"\nInstance {local['instance_id']}: p={local['model_prediction']:.3f}, "
              f"local fit R^2={score_text}")
        for item in local['contributions']:
            print(f"     {item['feature']:25s} {item['coefficient']:+.4f}")

    if summary['warnings']:
        print("\nWarnings:")
        for message in summary['warnings']:
            print(f"  - {message}")

    print("\n" + "=" * 70)

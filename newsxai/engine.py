"""
Public operations of the explainability engine.

Thin functional layer over the pipeline and explainer classes. Parameters
left as None fall back to EngineSettings (environment / .env), so the same
call can be tuned per deployment without code changes.

Operations:
    fit_pipeline, transform, construct_explainer, performance,
    compute_importance, compute_ale, explain_instance
"""

import logging
import os
from typing import Any, Iterable, Optional, Sequence, Union

import pandas as pd

from newsxai.explainability.ale import ALEProfiler, ALEResult
from newsxai.explainability.explainer import Explainer, ModelPerformance
from newsxai.explainability.local_surrogate import Instance, LocalExplanationResult, LocalSurrogate
from newsxai.explainability.losses import LossFunction
from newsxai.explainability.parallel import CancellationToken
from newsxai.explainability.permutation import ImportanceResult, PermutationImportance
from newsxai.features.text_features import TextFeaturePipeline, Vocabulary
from newsxai.models.predict import PredictFunction
from newsxai.utils import EngineSettings, load_settings


def _settings(settings: Optional[EngineSettings]) -> EngineSettings:
    if settings is not None:
        return settings
    cfg = load_settings()
    # Only an explicit NEWSXAI_LOG_LEVEL overrides the caller's logging setup
    if os.getenv('NEWSXAI_LOG_LEVEL'):
        logging.getLogger("newsxai").setLevel(cfg.log_level)
    return cfg


def fit_pipeline(
    training_texts: Iterable[str],
    max_features: Optional[int] = None,
    extra_stop_words: Optional[Iterable[str]] = None,
    settings: Optional[EngineSettings] = None
) -> Vocabulary:
    """
    Fit the text feature pipeline on the training partition.

    Args:
        training_texts: Training documents.
        max_features: Vocabulary bound; defaults to settings.max_features.
        extra_stop_words: Additional stopwords.
        settings: Engine settings; loaded from the environment if None.

    Returns:
        Fitted, immutable Vocabulary.
    """
    cfg = _settings(settings)
    pipeline = TextFeaturePipeline(
        max_features=cfg.max_features if max_features is None else max_features,
        extra_stop_words=extra_stop_words,
    )
    return pipeline.fit(training_texts)


def transform(texts: Iterable[str], vocabulary: Vocabulary) -> pd.DataFrame:
    """Apply a fitted vocabulary to any partition; returns the FeatureMatrix."""
    pipeline = TextFeaturePipeline(max_features=vocabulary.max_features)
    return pipeline.transform(texts, vocabulary)


def construct_explainer(
    model: Any,
    feature_matrix: pd.DataFrame,
    target: Any,
    predict_function: Optional[PredictFunction] = None,
    label: Optional[str] = None,
    loss_function: Union[str, LossFunction, None] = None,
    positive_class: Any = None
) -> Explainer:
    """Build a validated Explainer (see Explainer for the contract)."""
    return Explainer(
        model,
        feature_matrix,
        target,
        predict_function=predict_function,
        label=label,
        loss_function=loss_function,
        positive_class=positive_class,
    )


def performance(explainer: Explainer, threshold: float = 0.5) -> ModelPerformance:
    """Recall, precision, f1, accuracy (at ``threshold``) and AUC."""
    return explainer.performance(threshold=threshold)


def compute_importance(
    explainer: Explainer,
    repeat_count: Optional[int] = None,
    feature_subset: Optional[Sequence[str]] = None,
    seed: Optional[int] = None,
    loss_type: str = 'difference',
    include_baseline: bool = False,
    n_jobs: Optional[int] = None,
    cancel_token: Optional[CancellationToken] = None,
    settings: Optional[EngineSettings] = None
) -> ImportanceResult:
    """
    Permutation importance of the explainer's features.

    Args:
        explainer: Explainer to analyse.
        repeat_count: Permutations per feature; defaults to settings.repeats.
        feature_subset: Features to evaluate (default: all columns).
        seed: Base seed; defaults to settings.seed.
        loss_type: 'difference', 'ratio' or 'raw'.
        include_baseline: Add the all-features-permuted reference.
        n_jobs: Parallel workers; defaults to settings.n_jobs.
        cancel_token: Optional cooperative cancellation token.
        settings: Engine settings; loaded from the environment if None.
    """
    cfg = _settings(settings)
    calculator = PermutationImportance(
        explainer,
        seed=cfg.seed if seed is None else seed,
        loss_type=loss_type,
        n_jobs=cfg.n_jobs if n_jobs is None else n_jobs,
    )
    return calculator.compute(
        repeat_count=cfg.repeats if repeat_count is None else repeat_count,
        feature_subset=feature_subset,
        include_baseline=include_baseline,
        cancel_token=cancel_token,
    )


def compute_ale(
    explainer: Explainer,
    feature: str,
    bin_count: Optional[int] = None,
    n_jobs: Optional[int] = None,
    cancel_token: Optional[CancellationToken] = None,
    settings: Optional[EngineSettings] = None
) -> ALEResult:
    """Centered ALE curve of one feature; bin_count defaults to settings.ale_bins."""
    cfg = _settings(settings)
    profiler = ALEProfiler(explainer, n_jobs=cfg.n_jobs if n_jobs is None else n_jobs)
    return profiler.compute(
        feature,
        bin_count=cfg.ale_bins if bin_count is None else bin_count,
        cancel_token=cancel_token,
    )


def explain_instance(
    explainer: Explainer,
    instance: Instance,
    feature_budget: Optional[int] = None,
    sample_count: Optional[int] = None,
    seed: Optional[int] = None,
    perturbation: str = 'binary',
    feature_selection: str = 'correlation',
    surrogate: str = 'linear',
    kernel_width: Optional[float] = None,
    n_jobs: Optional[int] = None,
    cancel_token: Optional[CancellationToken] = None,
    settings: Optional[EngineSettings] = None
) -> LocalExplanationResult:
    """
    Local surrogate explanation of one instance.

    Defaults: feature_budget = settings.lime_features, sample_count =
    settings.lime_samples, seed = settings.seed. ``kernel_width`` falls back
    to settings.kernel_width for binary perturbations and to the
    dimension-scaled default for continuous ones.
    """
    cfg = _settings(settings)
    if kernel_width is None and perturbation == 'binary':
        kernel_width = cfg.kernel_width

    local = LocalSurrogate(
        explainer,
        perturbation=perturbation,
        feature_selection=feature_selection,
        surrogate=surrogate,
        kernel_width=kernel_width,
        n_jobs=cfg.n_jobs if n_jobs is None else n_jobs,
    )
    return local.explain(
        instance,
        feature_budget=cfg.lime_features if feature_budget is None else feature_budget,
        sample_count=cfg.lime_samples if sample_count is None else sample_count,
        seed=cfg.seed if seed is None else seed,
        cancel_token=cancel_token,
    )


if __name__ == "__main__":
    from sklearn.ensemble import RandomForestClassifier
    from sklearn.model_selection import train_test_split

    from newsxai.data.news_generator import SyntheticNewsGenerator
    from newsxai.reporting import print_summary, save_summary, summarize
    from newsxai.utils import get_artifacts_dir

    print("=" * 70)
    print("NEWS EXPLAINABILITY ENGINE - DEMO")
    print("=" * 70)

    # Generate a labelled corpus
    print("\n1. Generating synthetic corpus...")
    corpus = SyntheticNewsGenerator(seed=42).generate_articles(n_articles=2401)
    train_df, test_df = train_test_split(
        corpus, test_size=0.3, random_state=42, stratify=corpus['label']
    )
    print(f"   Train: {len(train_df):,}   Test: {len(test_df):,}")

    # Fit the text pipeline on the training partition only
    print("\n2. Fitting text pipeline...")
    vocabulary = fit_pipeline(train_df['text'], max_features=200)
    X_train = transform(train_df['text'], vocabulary)
    X_test = transform(test_df['text'], vocabulary)
    print(f"   Vocabulary: {len(vocabulary)} tokens")

    # Model training happens outside the engine
    print("\n3. Training external random forest...")
    forest = RandomForestClassifier(n_estimators=100, random_state=42, n_jobs=-1)
    forest.fit(X_train, train_df['label'])

    print("\n4. Building explainer and explanations...")
    demo_explainer = construct_explainer(forest, X_test, test_df['label'], label='random_forest')
    demo_importance = compute_importance(demo_explainer, repeat_count=3, seed=42)
    top_feature = demo_importance.ranking()[0].feature
    demo_profile = compute_ale(demo_explainer, top_feature, bin_count=10)
    demo_local = explain_instance(demo_explainer, 0, feature_budget=3, sample_count=1000, seed=42)

    demo_summary = summarize(
        demo_explainer,
        importance=demo_importance,
        profiles=[demo_profile],
        local_explanations=[demo_local],
    )
    print_summary(demo_summary)

    vocabulary.save(get_artifacts_dir("vocabulary") / "demo_vocabulary.joblib")
    save_summary(demo_summary, get_artifacts_dir("reports") / "demo_summary.json")

"""
Tests for the public engine operations, settings and reporting.
"""

import json
import logging

import numpy as np
import pytest
from sklearn.ensemble import RandomForestClassifier
from sklearn.model_selection import train_test_split

import newsxai
from newsxai.data.news_generator import SyntheticNewsGenerator
from newsxai.engine import (
    compute_ale,
    compute_importance,
    construct_explainer,
    explain_instance,
    fit_pipeline,
    performance,
    transform,
)
from newsxai.reporting import save_summary, summarize
from newsxai.utils import EngineSettings, load_settings, setup_logging


class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in ['NEWSXAI_REPEATS', 'NEWSXAI_SEED', 'NEWSXAI_KERNEL_WIDTH', 'NEWSXAI_LOG_LEVEL']:
            monkeypatch.delenv(name, raising=False)
        settings = load_settings()
        assert settings.repeats == EngineSettings().repeats
        assert settings.seed == EngineSettings().seed

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv('NEWSXAI_REPEATS', '3')
        monkeypatch.setenv('NEWSXAI_KERNEL_WIDTH', '1.5')
        monkeypatch.setenv('NEWSXAI_LOG_LEVEL', 'debug')

        settings = load_settings()
        assert settings.repeats == 3
        assert settings.kernel_width == 1.5
        assert settings.log_level == 'DEBUG'

    @pytest.mark.parametrize("name, value", [
        ('NEWSXAI_REPEATS', 'many'),
        ('NEWSXAI_KERNEL_WIDTH', '-1'),
        ('NEWSXAI_LOG_LEVEL', 'LOUD'),
    ])
    def test_invalid_environment(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(ValueError):
            load_settings()

    def test_engine_reads_settings_from_environment(self, monkeypatch, numeric_explainer):
        monkeypatch.setenv('NEWSXAI_REPEATS', '2')
        result = compute_importance(numeric_explainer, feature_subset=['x_signal'])
        assert result.repeat_count == 2

    def test_caller_log_level_kept_without_environment(self, monkeypatch, numeric_explainer):
        monkeypatch.delenv('NEWSXAI_LOG_LEVEL', raising=False)
        setup_logging(level=logging.WARNING)
        try:
            compute_importance(numeric_explainer, feature_subset=['x_signal'], repeat_count=1)
            assert logging.getLogger('newsxai').level == logging.WARNING
        finally:
            setup_logging()

    def test_environment_log_level_applied(self, monkeypatch, numeric_explainer):
        monkeypatch.setenv('NEWSXAI_LOG_LEVEL', 'DEBUG')
        try:
            compute_importance(numeric_explainer, feature_subset=['x_signal'], repeat_count=1)
            assert logging.getLogger('newsxai').level == logging.DEBUG
        finally:
            setup_logging()


class TestEngineOperations:

    def test_package_exports(self):
        assert newsxai.compute_importance is compute_importance
        assert newsxai.__version__

    def test_pipeline_roundtrip(self, news_corpus, settings):
        train_df, test_df = news_corpus
        vocabulary = fit_pipeline(train_df['text'], settings=settings)
        X_test = transform(test_df['text'], vocabulary)

        assert len(vocabulary) <= settings.max_features
        assert list(X_test.columns) == vocabulary.columns
        assert len(X_test) == len(test_df)

    def test_text_model_explanations(self, news_corpus, news_explainer, settings):
        _, test_df = news_corpus
        explainer = construct_explainer(
            news_explainer.model, news_explainer.data, test_df['label'], label='forest'
        )
        perf = performance(explainer)
        assert perf.accuracy > 0.6
        assert perf.auc > 0.7

        first = compute_importance(explainer, settings=settings)
        second = compute_importance(explainer, settings=settings)
        top_feature = first.ranking()[0].feature

        assert top_feature == second.ranking()[0].feature
        assert top_feature in SyntheticNewsGenerator().indicator_words

        profile = compute_ale(explainer, top_feature, settings=settings)
        assert 1 <= len(profile.bins) <= settings.ale_bins

        local = explain_instance(explainer, 0, settings=settings)
        assert len(local.contributions) == settings.lime_features
        assert local.seed == settings.seed
        assert local.sample_count == settings.lime_samples

    def test_explicit_arguments_override_settings(self, numeric_explainer, settings):
        result = compute_importance(numeric_explainer, repeat_count=3, seed=1, settings=settings)
        assert result.repeat_count == 3
        assert result.seed == 1

        local = explain_instance(numeric_explainer, 0, feature_budget=1, sample_count=50,
                                 seed=2, settings=settings)
        assert len(local.contributions) == 1
        assert local.sample_count == 50

    @pytest.mark.slow
    def test_full_size_text_scenario(self):
        corpus = SyntheticNewsGenerator(seed=2401).generate_articles(n_articles=6000)
        train_df, test_df = train_test_split(corpus, test_size=2401, random_state=3,
                                             stratify=corpus['label'])
        vocabulary = fit_pipeline(train_df['text'], max_features=500)
        X_train = transform(train_df['text'], vocabulary)
        X_test = transform(test_df['text'], vocabulary)

        forest = RandomForestClassifier(n_estimators=100, random_state=3, n_jobs=-1)
        forest.fit(X_train, train_df['label'])
        explainer = construct_explainer(forest, X_test, test_df['label'], label='forest_500')

        assert explainer.n_rows == 2401
        assert len(explainer.columns) == len(vocabulary)
        # Flipped labels cap accuracy near 0.9 on this corpus
        assert 0.75 <= performance(explainer).accuracy <= 0.90

        first = compute_importance(explainer, repeat_count=6, seed=21, n_jobs=4)
        second = compute_importance(explainer, repeat_count=6, seed=21, n_jobs=4)
        top_feature = first.ranking()[0].feature

        assert top_feature == second.ranking()[0].feature
        assert top_feature in SyntheticNewsGenerator().indicator_words


class TestReporting:

    def test_summary_is_json_serializable(self, tmp_path, numeric_explainer, settings):
        importance = compute_importance(numeric_explainer, include_baseline=True, settings=settings)
        profile = compute_ale(numeric_explainer, 'x_signal', settings=settings)
        local = explain_instance(numeric_explainer, 0, feature_budget=2, settings=settings)

        summary = summarize(numeric_explainer, importance=importance, profiles=[profile],
                            local_explanations=[local], top_n=2)

        assert [item['feature'] for item in summary['importance']['top_features']][0] == 'x_signal'
        assert len(summary['importance']['top_features']) == 2
        assert 'baseline_reference' in summary['importance']
        assert len(summary['ale']['x_signal']) == len(profile.bins)

        path = save_summary(summary, tmp_path / "reports" / "summary.json")
        with open(path) as f:
            restored = json.load(f)
        assert restored['model']['label'] == 'logistic'
        assert restored['local'][0]['contributions'][0]['feature'] == local.features[0]

    def test_undefined_score_stored_as_null(self, tmp_path, numeric_data):
        X, y = numeric_data
        explainer = construct_explainer(None, X, y, label='constant',
                                        predict_function=lambda m, rows: np.full(len(rows), 0.6))
        local = explain_instance(explainer, 0, feature_budget=1, sample_count=30, seed=0,
                                 settings=EngineSettings())
        summary = summarize(explainer, local_explanations=[local])

        assert summary['local'][0]['score'] is None
        assert summary['warnings']
        json.dumps(summary)


class TestSyntheticNewsGenerator:

    def test_generated_corpus(self):
        corpus = SyntheticNewsGenerator(seed=1).generate_articles(n_articles=50)
        assert list(corpus.columns) == ['article_id', 'text', 'label']
        assert len(corpus) == 50
        assert set(corpus['label']) == {0, 1}
        assert corpus['article_id'].is_unique

    def test_reproducible(self):
        first = SyntheticNewsGenerator(seed=3).generate_articles(n_articles=20)
        second = SyntheticNewsGenerator(seed=3).generate_articles(n_articles=20)
        assert first.equals(second)

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            SyntheticNewsGenerator().generate_articles(n_articles=1)
        with pytest.raises(ValueError):
            SyntheticNewsGenerator().generate_articles(real_share=1.0)

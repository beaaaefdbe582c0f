"""
Tests for permutation feature importance.
"""

import numpy as np
import pytest

from newsxai.errors import ComputationCancelled, FeatureNotFound, InvalidRepeatCount
from newsxai.explainability.explainer import Explainer
from newsxai.explainability.parallel import CancellationToken, run_units
from newsxai.explainability.permutation import (
    BASELINE_KEY,
    FeatureImportance,
    ImportanceResult,
    PermutationImportance,
)


class TestPermutationImportance:

    def test_signal_feature_ranks_first(self, numeric_explainer):
        result = PermutationImportance(numeric_explainer, seed=3).compute(repeat_count=5)

        assert result.ranking()[0].feature == 'x_signal'
        assert result['x_signal'].mean > 0.1
        assert abs(result['x_noise'].mean) < 0.02

    def test_same_seed_same_result(self, numeric_explainer):
        first = PermutationImportance(numeric_explainer, seed=5).compute(repeat_count=3)
        second = PermutationImportance(numeric_explainer, seed=5).compute(repeat_count=3)

        for feature in numeric_explainer.columns:
            assert first[feature].dropout_losses == second[feature].dropout_losses

    def test_worker_count_does_not_change_result(self, numeric_explainer):
        serial = PermutationImportance(numeric_explainer, seed=9, n_jobs=1).compute(repeat_count=4)
        threaded = PermutationImportance(numeric_explainer, seed=9, n_jobs=2).compute(repeat_count=4)

        for feature in numeric_explainer.columns:
            assert serial[feature].dropout_losses == threaded[feature].dropout_losses

    def test_feature_subset(self, numeric_explainer):
        result = PermutationImportance(numeric_explainer).compute(
            repeat_count=2, feature_subset=['x_other']
        )
        assert list(result.importances) == ['x_other']
        assert len(result['x_other'].dropout_losses) == 2

    def test_repeated_subset_names_evaluated_once(self, numeric_explainer):
        result = PermutationImportance(numeric_explainer, seed=4).compute(
            repeat_count=2, feature_subset=['x_signal', 'x_noise', 'x_signal']
        )
        assert list(result.importances) == ['x_signal', 'x_noise']
        assert len(result['x_signal'].dropout_losses) == 2

    def test_unknown_feature(self, numeric_explainer):
        with pytest.raises(FeatureNotFound):
            PermutationImportance(numeric_explainer).compute(repeat_count=2, feature_subset=['x_missing'])

    @pytest.mark.parametrize("repeat_count", [0, -3, 2.5, True])
    def test_invalid_repeat_count(self, numeric_explainer, repeat_count):
        with pytest.raises(InvalidRepeatCount):
            PermutationImportance(numeric_explainer).compute(repeat_count=repeat_count)

    def test_invalid_loss_type(self, numeric_explainer):
        with pytest.raises(ValueError):
            PermutationImportance(numeric_explainer, loss_type='log')

    def test_ratio_and_raw_loss_types(self, numeric_explainer):
        difference = PermutationImportance(numeric_explainer, seed=1).compute(repeat_count=2)
        ratio = PermutationImportance(numeric_explainer, seed=1, loss_type='ratio').compute(repeat_count=2)
        raw = PermutationImportance(numeric_explainer, seed=1, loss_type='raw').compute(repeat_count=2)

        baseline = numeric_explainer.baseline_loss
        assert raw['x_signal'].mean == pytest.approx(difference['x_signal'].mean + baseline)
        assert ratio['x_signal'].mean == pytest.approx(raw['x_signal'].mean / baseline)

    def test_include_baseline(self, numeric_explainer):
        result = PermutationImportance(numeric_explainer, seed=2).compute(
            repeat_count=3, include_baseline=True
        )
        assert result.baseline_reference is not None
        assert result.baseline_reference.feature == BASELINE_KEY
        assert result.baseline_reference.mean > 0.1
        assert BASELINE_KEY not in result.importances

    def test_unused_feature_warns(self, numeric_data):
        X, y = numeric_data
        data = X.assign(x_constant=1.0)

        def signal_only(model, rows):
            return 1.0 / (1.0 + np.exp(-rows['x_signal'].to_numpy()))

        explainer = Explainer(None, data, y, predict_function=signal_only, label='signal_only')
        result = PermutationImportance(explainer).compute(repeat_count=2)

        assert result['x_constant'].mean == 0.0
        assert result['x_noise'].mean == 0.0
        assert any('never changed any prediction' in message for message in result.warnings)

    def test_to_frame_is_ranked(self, numeric_explainer):
        frame = PermutationImportance(numeric_explainer).compute(repeat_count=2).to_frame()
        assert list(frame.columns[:4]) == ['rank', 'feature', 'mean_dropout_loss', 'std']
        assert frame['mean_dropout_loss'].is_monotonic_decreasing
        assert list(frame['rank']) == [1, 2, 3]


class TestRanking:

    def test_ties_broken_by_name(self):
        importances = {
            name: FeatureImportance(feature=name, dropout_losses=(value,), mean=value, std=0.0)
            for name, value in [('zeta', 0.2), ('alpha', 0.2), ('mid', 0.5), ('low', 0.0)]
        }
        result = ImportanceResult(
            label='manual', loss_name='one_minus_auc', baseline_loss=0.1, repeat_count=1,
            seed=0, loss_type='difference', importances=importances,
        )
        assert [item.feature for item in result.ranking()] == ['mid', 'alpha', 'zeta', 'low']
        assert result.top_features(1) == [('mid', 0.5)]


class TestCancellation:

    def test_cancelled_before_start(self, numeric_explainer):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(ComputationCancelled) as exc_info:
            PermutationImportance(numeric_explainer).compute(repeat_count=2, cancel_token=token)

        assert exc_info.value.pending == 6
        assert exc_info.value.partial_results == {}

    def test_cancelled_midway_keeps_finished_units(self, numeric_data, logistic_model):
        X, y = numeric_data
        token = CancellationToken()
        calls = {'count': 0}

        def counting(model, rows):
            calls['count'] += 1
            # construction call + 2 permutation units, then cancel
            if calls['count'] == 3:
                token.cancel()
            return model.predict_proba(rows)[:, 1]

        explainer = Explainer(logistic_model, X, y, predict_function=counting)
        with pytest.raises(ComputationCancelled) as exc_info:
            PermutationImportance(explainer).compute(repeat_count=3, cancel_token=token)

        assert len(exc_info.value.partial_results) == 2
        assert exc_info.value.pending == 7


class TestRunUnits:

    def test_results_collected_by_key(self):
        units = [((name, repeat), (repeat,)) for name in ['a', 'b'] for repeat in range(3)]
        results = run_units(lambda value: value * 10, units, n_jobs=2, batch_size=2)
        assert results == {(name, repeat): repeat * 10 for name in ['a', 'b'] for repeat in range(3)}

    def test_duplicate_keys_rejected(self):
        calls = []
        units = [(('x_signal', 0), (1,)), (('x_signal', 0), (2,))]
        with pytest.raises(ValueError, match="unique"):
            run_units(calls.append, units)
        assert calls == []

    def test_zero_workers_rejected(self):
        with pytest.raises(ValueError):
            run_units(lambda value: value, [('a', (1,))], n_jobs=0)

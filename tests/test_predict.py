"""
Tests for predict-function adapters.
"""

import numpy as np
import pandas as pd
import pytest
from sklearn.linear_model import LogisticRegression

from newsxai.models.predict import (
    make_predict_function,
    positive_class_probability,
    resolve_predict_function,
)


@pytest.fixture
def string_model(numeric_data):
    X, y = numeric_data
    labels = np.where(y == 1, 'real', 'fake')
    return LogisticRegression().fit(X, labels), X


class TestPredictAdapters:

    def test_default_uses_class_one_column(self, logistic_model, numeric_data):
        X, _ = numeric_data
        expected = logistic_model.predict_proba(X)[:, 1]
        np.testing.assert_allclose(positive_class_probability(logistic_model, X), expected)

    def test_explicit_positive_class(self, string_model):
        model, X = string_model
        fake_column = list(model.classes_).index('fake')
        predict = make_predict_function(model, positive_class='fake')
        np.testing.assert_allclose(predict(model, X), model.predict_proba(X)[:, fake_column])

    def test_unknown_positive_class(self, string_model):
        model, _ = string_model
        with pytest.raises(ValueError):
            make_predict_function(model, positive_class='satire')

    def test_model_without_predict_proba(self):
        class HardLabels:
            def predict(self, rows):
                return np.zeros(len(rows))

        with pytest.raises(TypeError):
            positive_class_probability(HardLabels(), pd.DataFrame({'a': [1.0]}))

    def test_resolve_default(self):
        assert resolve_predict_function(None) is positive_class_probability

        def custom(model, rows):
            return np.zeros(len(rows))

        assert resolve_predict_function(custom) is custom

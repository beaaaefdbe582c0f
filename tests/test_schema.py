"""
Tests for explicit feature/target schemas.
"""

import pandas as pd
import pytest

from newsxai.errors import FeatureNotFound, ShapeMismatch
from newsxai.features.schema import FeatureSchema


@pytest.fixture
def frame():
    return pd.DataFrame({
        'said': [0.1, 0.2, 0.3],
        'hoax': [1.0, 0.0, 0.5],
        'label': [1, 0, 1],
    })


class TestFeatureSchema:

    def test_from_frame_excludes_target(self, frame):
        schema = FeatureSchema.from_frame(frame, target_column='label')
        assert schema.columns == ['said', 'hoax']

    def test_split(self, frame):
        schema = FeatureSchema.from_columns(['hoax', 'said'], 'label')
        X, y = schema.split(frame)
        assert list(X.columns) == ['hoax', 'said']
        assert y.name == 'label'
        assert len(X) == len(y) == 3

    def test_target_as_feature_rejected(self):
        with pytest.raises(ShapeMismatch):
            FeatureSchema.from_columns(['said', 'label'], 'label')

    def test_duplicate_features_rejected(self):
        with pytest.raises(ValueError):
            FeatureSchema.from_columns(['said', 'said'], 'label')

    def test_missing_column(self, frame):
        schema = FeatureSchema.from_columns(['said', 'reuters'], 'label')
        with pytest.raises(FeatureNotFound) as exc_info:
            schema.split(frame)
        assert exc_info.value.feature == 'reuters'

    def test_missing_target(self, frame):
        with pytest.raises(FeatureNotFound):
            FeatureSchema.from_frame(frame, target_column='class')

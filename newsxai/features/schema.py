"""
Explicit feature/target schema.

Names the feature columns and the target column of a modelling frame so the
target never has to be inferred from a model formula or column roles.
"""

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import pandas as pd

from newsxai.errors import FeatureNotFound, ShapeMismatch


@dataclass(frozen=True)
class FeatureSchema:
    """
    Feature columns and target column of a modelling frame.

    Attributes:
        feature_columns: Feature column names, in model input order.
        target_column: Name of the binary target column.

    Example:
        >>> schema = FeatureSchema.from_frame(df, target_column='label')
        >>> X, y = schema.split(df)
    """

    feature_columns: Tuple[str, ...]
    target_column: str

    def __post_init__(self) -> None:
        if not self.feature_columns:
            raise ValueError("FeatureSchema needs at least one feature column")
        if self.target_column in self.feature_columns:
            raise ShapeMismatch(
                f"Target column '{self.target_column}' must not be a feature column"
            )
        if len(set(self.feature_columns)) != len(self.feature_columns):
            raise ValueError("Feature column names must be unique")

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, target_column: str) -> 'FeatureSchema':
        """Use every column of ``frame`` except the target as a feature."""
        if target_column not in frame.columns:
            raise FeatureNotFound(target_column)
        features = tuple(str(col) for col in frame.columns if col != target_column)
        return cls(feature_columns=features, target_column=target_column)

    @classmethod
    def from_columns(cls, feature_columns: Sequence[str], target_column: str) -> 'FeatureSchema':
        return cls(feature_columns=tuple(feature_columns), target_column=target_column)

    def validate(self, frame: pd.DataFrame, require_target: bool = True) -> None:
        """
        Check that a frame carries every column the schema names.

        Raises:
            FeatureNotFound: If a feature (or the target) column is missing.
        """
        missing = [col for col in self.feature_columns if col not in frame.columns]
        if missing:
            raise FeatureNotFound(missing[0])
        if require_target and self.target_column not in frame.columns:
            raise FeatureNotFound(self.target_column)

    def features(self, frame: pd.DataFrame) -> pd.DataFrame:
        """Feature matrix in schema column order."""
        self.validate(frame, require_target=False)
        return frame.loc[:, list(self.feature_columns)]

    def split(self, frame: pd.DataFrame) -> Tuple[pd.DataFrame, pd.Series]:
        """
        Split a modelling frame into features and target.

        Returns:
            Tuple (X, y) where X holds the feature columns in schema order.
        """
        self.validate(frame)
        return self.features(frame), frame[self.target_column]

    @property
    def columns(self) -> List[str]:
        return list(self.feature_columns)

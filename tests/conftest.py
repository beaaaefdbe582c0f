"""
Pytest configuration file

Shared fixtures: a numeric toy problem with a known signal feature and a
synthetic news corpus with a random forest trained on TF-IDF features.
"""

import warnings

import numpy as np
import pandas as pd
import pytest
from sklearn.ensemble import RandomForestClassifier
from sklearn.linear_model import LogisticRegression
from sklearn.model_selection import train_test_split

from newsxai.data.news_generator import SyntheticNewsGenerator
from newsxai.explainability.explainer import Explainer
from newsxai.features.text_features import TextFeaturePipeline
from newsxai.utils import EngineSettings

warnings.filterwarnings("ignore", category=DeprecationWarning)
warnings.filterwarnings("ignore", category=FutureWarning)


def sigmoid_signal(model, rows):
    """Predict function that depends on x_signal only."""
    return 1.0 / (1.0 + np.exp(-3.0 * rows['x_signal'].to_numpy()))


@pytest.fixture(scope="session")
def numeric_data():
    """Numeric data: x_signal drives the label, x_noise and x_other do not."""
    rng = np.random.default_rng(42)
    n = 400
    X = pd.DataFrame({
        'x_signal': rng.normal(size=n),
        'x_noise': rng.normal(size=n),
        'x_other': rng.uniform(-1, 1, size=n),
    })
    logits = 2.5 * X['x_signal'] + rng.normal(scale=0.5, size=n)
    y = pd.Series((logits > 0).astype(int), name='label')
    return X, y


@pytest.fixture(scope="session")
def logistic_model(numeric_data):
    X, y = numeric_data
    return LogisticRegression().fit(X, y)


@pytest.fixture(scope="session")
def numeric_explainer(numeric_data, logistic_model):
    X, y = numeric_data
    return Explainer(logistic_model, X, y, label='logistic')


@pytest.fixture(scope="session")
def signal_explainer(numeric_data):
    """Explainer whose black box is an explicit function of x_signal."""
    X, y = numeric_data
    return Explainer(None, X, y, predict_function=sigmoid_signal, label='sigmoid')


@pytest.fixture(scope="session")
def news_corpus():
    corpus = SyntheticNewsGenerator(seed=7).generate_articles(n_articles=800)
    return train_test_split(corpus, test_size=0.3, random_state=7, stratify=corpus['label'])


@pytest.fixture(scope="session")
def news_features(news_corpus):
    train_df, test_df = news_corpus
    pipeline = TextFeaturePipeline(max_features=150)
    vocabulary = pipeline.fit(train_df['text'])
    X_train = pipeline.transform(train_df['text'], vocabulary)
    X_test = pipeline.transform(test_df['text'], vocabulary)
    return vocabulary, X_train, X_test


@pytest.fixture(scope="session")
def news_explainer(news_corpus, news_features):
    train_df, test_df = news_corpus
    _, X_train, X_test = news_features
    forest = RandomForestClassifier(n_estimators=60, random_state=7)
    forest.fit(X_train, train_df['label'])
    return Explainer(forest, X_test, test_df['label'], label='random_forest')


@pytest.fixture
def settings():
    """Small, explicit engine settings (no environment lookup)."""
    return EngineSettings(
        max_features=150,
        repeats=2,
        ale_bins=5,
        lime_samples=400,
        lime_features=3,
        kernel_width=0.75,
        n_jobs=1,
        seed=11,
    )

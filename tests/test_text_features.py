"""
Tests for the text feature pipeline.
"""

import dataclasses

import numpy as np
import pandas as pd
import pytest

from newsxai.errors import EmptyVocabulary
from newsxai.features.text_features import TextFeaturePipeline, Vocabulary, clean_text


class TestCleanText:

    def test_removes_markup_urls_and_punctuation(self):
        text = "<p>BREAKING: Read http://t.co/abc now!!!</p> Contact me@mail.com"
        assert clean_text(text) == "breaking read now contact"

    def test_collapses_whitespace(self):
        assert clean_text("  a   lot\n\nof\tspace ") == "a lot of space"

    def test_non_string_becomes_empty(self):
        assert clean_text(None) == ""
        assert clean_text(float('nan')) == ""


class TestFit:

    @pytest.fixture
    def small_corpus(self):
        return ["apple banana", "apple cherry", "apple banana", "The cherry"]

    def test_vocabulary_ranked_by_document_frequency(self, small_corpus):
        vocabulary = TextFeaturePipeline(max_features=2).fit(small_corpus)

        # apple (3 docs), banana and cherry tie at 2 docs -> banana wins by name
        assert vocabulary.tokens == ('apple', 'banana')
        assert list(vocabulary.document_frequency) == [3, 2]
        assert vocabulary.n_documents == 4

    def test_stopwords_removed(self, small_corpus):
        vocabulary = TextFeaturePipeline(max_features=10).fit(small_corpus)
        assert 'the' not in vocabulary.tokens

    def test_extra_stop_words(self, small_corpus):
        pipeline = TextFeaturePipeline(max_features=10, extra_stop_words=['Apple'])
        vocabulary = pipeline.fit(small_corpus)
        assert 'apple' not in vocabulary.tokens

    def test_vocabulary_bounded(self, news_features):
        vocabulary, _, _ = news_features
        assert 0 < len(vocabulary) <= 150

    def test_idf_formula(self, small_corpus):
        vocabulary = TextFeaturePipeline(max_features=3).fit(small_corpus)
        expected = np.log((1 + 4) / (1 + vocabulary.document_frequency)) + 1
        np.testing.assert_allclose(vocabulary.idf, expected)

    def test_zero_max_features_raises(self, small_corpus):
        with pytest.raises(EmptyVocabulary):
            TextFeaturePipeline(max_features=0).fit(small_corpus)

    def test_stopword_only_corpus_raises(self):
        with pytest.raises(EmptyVocabulary):
            TextFeaturePipeline(max_features=10).fit(["the and of", "is a to", "!!!"])

    def test_negative_max_features_rejected(self):
        with pytest.raises(ValueError):
            TextFeaturePipeline(max_features=-1)


class TestTransform:

    def test_columns_identical_across_partitions(self, news_features):
        vocabulary, X_train, X_test = news_features
        assert list(X_train.columns) == vocabulary.columns
        assert list(X_test.columns) == vocabulary.columns

    def test_training_columns_standardized(self, news_features):
        vocabulary, X_train, _ = news_features
        varying = np.asarray(vocabulary.stds) != 1.0
        np.testing.assert_allclose(X_train.mean().to_numpy(), 0.0, atol=1e-9)
        np.testing.assert_allclose(X_train.std(ddof=0).to_numpy()[varying], 1.0, atol=1e-9)

    def test_unknown_tokens_ignored(self):
        pipeline = TextFeaturePipeline(max_features=5)
        vocabulary = pipeline.fit(["apple banana", "banana cherry", "cherry apple apple"])

        with_unknown = pipeline.transform(["zzzunknown qqqword"], vocabulary)
        empty = pipeline.transform([""], vocabulary)
        pd.testing.assert_frame_equal(with_unknown, empty)

    def test_series_index_preserved(self, news_corpus, news_features):
        _, test_df = news_corpus
        _, _, X_test = news_features
        assert X_test.index.equals(test_df.index)

    def test_fit_transform_matches_fit_then_transform(self):
        texts = pd.Series(["apple banana", "banana cherry", "cherry apple apple"])
        pipeline = TextFeaturePipeline(max_features=5)
        vocabulary, frame = pipeline.fit_transform(texts)
        pd.testing.assert_frame_equal(frame, pipeline.transform(texts, vocabulary))


class TestVocabularyArtifact:

    def test_vocabulary_is_immutable(self, news_features):
        vocabulary, _, _ = news_features
        with pytest.raises(dataclasses.FrozenInstanceError):
            vocabulary.tokens = ('other',)
        with pytest.raises(ValueError):
            vocabulary.idf[0] = 0.0

    def test_save_and_load_reproduce_transform(self, tmp_path, news_corpus, news_features):
        _, test_df = news_corpus
        vocabulary, _, X_test = news_features
        path = tmp_path / "vocabulary.joblib"

        vocabulary.save(path)
        restored = Vocabulary.load(path)

        assert restored.tokens == vocabulary.tokens
        reloaded = TextFeaturePipeline(max_features=restored.max_features).transform(
            test_df['text'], restored
        )
        pd.testing.assert_frame_equal(reloaded, X_test)

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Vocabulary.load(tmp_path / "missing.joblib")

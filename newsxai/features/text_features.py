"""
Text Feature Pipeline Module.

Turns raw article text into a numeric TF-IDF feature matrix for
explainability work. The transform is fitted once on the training
partition and applied unchanged to every later partition:
- Text normalization (lowercase, markup/URL removal, punctuation, whitespace)
- Whitespace tokenization and stopword removal
- Vocabulary selection by document frequency (bounded size)
- TF-IDF weighting with fitted inverse-document-frequency weights
- Z-score normalization with training-partition statistics
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

import joblib
import numpy as np
import pandas as pd
from sklearn.feature_extraction.text import ENGLISH_STOP_WORDS, CountVectorizer

from newsxai.errors import EmptyVocabulary

logger = logging.getLogger(__name__)

_MARKUP_PATTERN = re.compile(r'<[^>]*>')
_URL_PATTERN = re.compile(r'http\S+|www\.\S+')
_EMAIL_PATTERN = re.compile(r'\S+@\S+')
_PUNCTUATION_PATTERN = re.compile(r'[^a-z0-9\s]')
_WHITESPACE_PATTERN = re.compile(r'\s+')


def clean_text(text: str) -> str:
    """
    Normalize a document before tokenization.

    Args:
        text: Raw document. Non-string values (e.g. NaN) become ''.

    Returns:
        Lowercased text without markup, URLs, e-mail addresses or
        punctuation, with whitespace collapsed to single spaces.
    """
    if not isinstance(text, str):
        return ""

    text = text.lower()
    text = _MARKUP_PATTERN.sub(' ', text)
    text = _URL_PATTERN.sub(' ', text)
    text = _EMAIL_PATTERN.sub(' ', text)
    text = _PUNCTUATION_PATTERN.sub(' ', text)
    return _WHITESPACE_PATTERN.sub(' ', text).strip()


@dataclass(frozen=True, eq=False)
class Vocabulary:
    """
    Fitted artifact of the text pipeline.

    Holds everything needed to reproduce a transform exactly: the retained
    tokens in column order, their IDF weights and the training mean/std of
    every TF-IDF column.

    Attributes:
        tokens: Retained tokens, in feature-matrix column order.
        idf: Inverse-document-frequency weight per token.
        means: Training-partition mean of each TF-IDF column.
        stds: Training-partition standard deviation of each TF-IDF column
              (zero deviations are stored as 1.0).
        document_frequency: Number of training documents containing each token.
        n_documents: Number of training documents.
        max_features: Bound the vocabulary was fitted with.
        stop_words: Stopwords removed during tokenization.
    """

    tokens: Tuple[str, ...]
    idf: np.ndarray
    means: np.ndarray
    stds: np.ndarray
    document_frequency: np.ndarray
    n_documents: int
    max_features: int
    stop_words: frozenset = field(default=frozenset(ENGLISH_STOP_WORDS))

    def __post_init__(self) -> None:
        for array in (self.idf, self.means, self.stds, self.document_frequency):
            array.setflags(write=False)

    def __len__(self) -> int:
        return len(self.tokens)

    @property
    def columns(self) -> List[str]:
        """Feature matrix column names."""
        return list(self.tokens)

    def save(self, path: Union[str, Path]) -> None:
        """
        Persist the vocabulary to disk.

        Args:
            path: File path (recommended: .joblib extension).
        """
        Path(path).parent.mkdir(parents=True, exist_ok=True)

        state = {
            'tokens': list(self.tokens),
            'idf': np.array(self.idf),
            'means': np.array(self.means),
            'stds': np.array(self.stds),
            'document_frequency': np.array(self.document_frequency),
            'n_documents': self.n_documents,
            'max_features': self.max_features,
            'stop_words': sorted(self.stop_words),
        }
        joblib.dump(state, path)
        logger.info(f"Vocabulary with {len(self)} tokens saved to {path}")

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'Vocabulary':
        """
        Load a vocabulary saved with ``save``.

        Args:
            path: Path to the saved vocabulary.

        Returns:
            Restored Vocabulary instance.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        if not Path(path).exists():
            raise FileNotFoundError(f"Vocabulary file not found: {path}")

        state = joblib.load(path)
        return cls(
            tokens=tuple(state['tokens']),
            idf=np.asarray(state['idf'], dtype=float),
            means=np.asarray(state['means'], dtype=float),
            stds=np.asarray(state['stds'], dtype=float),
            document_frequency=np.asarray(state['document_frequency'], dtype=int),
            n_documents=int(state['n_documents']),
            max_features=int(state['max_features']),
            stop_words=frozenset(state['stop_words']),
        )


class TextFeaturePipeline:
    """
    Deterministic text-to-numeric feature transform.

    Attributes:
        max_features: Maximum number of tokens retained in the vocabulary.
        stop_words: Tokens dropped before counting.

    Example:
        >>> pipeline = TextFeaturePipeline(max_features=500)
        >>> vocabulary = pipeline.fit(train_df['text'])
        >>> X_train = pipeline.transform(train_df['text'], vocabulary)
        >>> X_test = pipeline.transform(test_df['text'], vocabulary)
    """

    def __init__(
        self,
        max_features: int = 500,
        extra_stop_words: Optional[Iterable[str]] = None
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            max_features: Vocabulary bound (K). Must be non-negative; K=0
                          always fails at fit time with EmptyVocabulary.
            extra_stop_words: Tokens removed in addition to scikit-learn's
                              English stopword list.
        """
        if max_features < 0:
            raise ValueError(f"max_features must be non-negative, got {max_features}")

        self.max_features = max_features
        stop_words = set(ENGLISH_STOP_WORDS)
        if extra_stop_words is not None:
            stop_words.update(word.lower() for word in extra_stop_words)
        self.stop_words = frozenset(stop_words)

    def tokenize(self, text: str) -> List[str]:
        """Clean a document and split it into non-stopword tokens."""
        return [token for token in clean_text(text).split(' ')
                if token and token not in self.stop_words]

    def _documents(self, texts: Iterable[str], stop_words: frozenset) -> List[str]:
        # Documents are re-joined so CountVectorizer can split on whitespace
        documents = []
        for text in texts:
            tokens = [token for token in clean_text(text).split(' ')
                      if token and token not in stop_words]
            documents.append(' '.join(tokens))
        return documents

    @staticmethod
    def _vectorizer(vocabulary: Optional[List[str]] = None, binary: bool = False) -> CountVectorizer:
        return CountVectorizer(
            tokenizer=str.split,
            token_pattern=None,
            lowercase=False,
            vocabulary=vocabulary,
            binary=binary,
        )

    def fit(self, training_texts: Iterable[str]) -> Vocabulary:
        """
        Fit the vocabulary, IDF weights and normalization statistics.

        Args:
            training_texts: Documents of the training partition.

        Returns:
            Immutable fitted Vocabulary.

        Raises:
            EmptyVocabulary: If max_features is 0 or no token survives
                             cleaning and stopword removal.
        """
        documents = self._documents(training_texts, self.stop_words)
        n_documents = len(documents)

        if self.max_features == 0:
            raise EmptyVocabulary("max_features=0 leaves an empty vocabulary")
        if not any(documents):
            raise EmptyVocabulary(
                f"No tokens left in {n_documents} training documents after "
                "cleaning and stopword removal"
            )

        # Document frequency of every candidate token
        df_vectorizer = self._vectorizer(binary=True)
        presence = df_vectorizer.fit_transform(documents)
        candidates = df_vectorizer.get_feature_names_out()
        doc_freq = np.asarray(presence.sum(axis=0)).ravel()

        # Rank by document frequency (descending), ties by token (ascending)
        order = sorted(range(len(candidates)), key=lambda i: (-doc_freq[i], candidates[i]))
        order = np.array(order[:self.max_features], dtype=int)
        tokens = tuple(str(candidates[i]) for i in order)
        kept_freq = doc_freq[order].astype(int)

        idf = np.log((1.0 + n_documents) / (1.0 + kept_freq)) + 1.0

        tfidf = self._tfidf(documents, tokens, idf)
        means = tfidf.mean(axis=0)
        stds = tfidf.std(axis=0)
        constant = stds == 0
        if constant.any():
            logger.warning(
                f"{int(constant.sum())} vocabulary columns are constant on the "
                "training partition; their standard deviation is set to 1"
            )
            stds = np.where(constant, 1.0, stds)

        logger.info(
            f"Fitted vocabulary: {len(tokens)} tokens from {n_documents} documents "
            f"({len(candidates)} distinct candidates)"
        )

        return Vocabulary(
            tokens=tokens,
            idf=idf,
            means=means,
            stds=stds,
            document_frequency=kept_freq,
            n_documents=n_documents,
            max_features=self.max_features,
            stop_words=self.stop_words,
        )

    def _tfidf(self, documents: List[str], tokens: Tuple[str, ...], idf: np.ndarray) -> np.ndarray:
        counts = self._vectorizer(vocabulary=list(tokens)).transform(documents)
        doc_lengths = np.array([len(doc.split()) for doc in documents], dtype=float)

        # Empty documents have zero term frequency everywhere
        safe_lengths = np.where(doc_lengths > 0, doc_lengths, 1.0)
        term_freq = counts.toarray().astype(float) / safe_lengths[:, None]
        return term_freq * idf

    def transform(self, texts: Iterable[str], vocabulary: Vocabulary) -> pd.DataFrame:
        """
        Apply a fitted vocabulary to any partition.

        Tokens absent from the vocabulary are ignored; the column set and
        order always equal ``vocabulary.columns``.

        Args:
            texts: Documents to transform. A pandas Series keeps its index.
            vocabulary: Vocabulary returned by ``fit``.

        Returns:
            FeatureMatrix as a DataFrame (rows = documents).
        """
        index = texts.index if isinstance(texts, pd.Series) else None
        documents = self._documents(texts, vocabulary.stop_words)

        tfidf = self._tfidf(documents, vocabulary.tokens, np.asarray(vocabulary.idf))
        normalized = (tfidf - vocabulary.means) / vocabulary.stds

        return pd.DataFrame(normalized, columns=vocabulary.columns, index=index)

    def fit_transform(self, training_texts: Iterable[str]) -> Tuple[Vocabulary, pd.DataFrame]:
        """Fit on the training partition and return its feature matrix too."""
        texts = training_texts if isinstance(training_texts, pd.Series) else list(training_texts)
        vocabulary = self.fit(texts)
        return vocabulary, self.transform(texts, vocabulary)

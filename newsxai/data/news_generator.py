"""
Synthetic News Corpus Generator.

Generates labelled fake/real news-like articles with a known signal
structure. Designed for demos and tests of the explainability engine when
a real corpus is unavailable: a handful of tokens carry the label signal,
the rest of the vocabulary is noise, so importances and local explanations
can be checked against ground truth.
"""

from pathlib import Path
from typing import Dict, List

import numpy as np
import pandas as pd


class SyntheticNewsGenerator:
    """
    Generates synthetic news articles with controllable label signal.

    The generator creates documents that mimic real-world corpus structure:
    - Article length follows a clipped normal distribution
    - Filler words are shared by both classes (no signal)
    - Indicator words appear more often in one class than the other
    - Stopwords, markup and punctuation are mixed in to exercise cleaning
    - A share of labels is flipped so no model can be perfect
    """

    # Tokens over-represented in fabricated stories (label 0)
    FAKE_INDICATORS: Dict[str, float] = {
        'shocking': 0.45,
        'hillary': 0.40,
        'breaking': 0.35,
        'exposed': 0.30,
        'hoax': 0.25,
    }

    # Tokens over-represented in genuine reporting (label 1)
    REAL_INDICATORS: Dict[str, float] = {
        'reuters': 0.50,
        'said': 0.45,
        'minister': 0.30,
        'statement': 0.30,
        'percent': 0.25,
    }

    FILLER_WORDS: List[str] = [
        'government', 'people', 'president', 'election', 'campaign', 'state',
        'country', 'policy', 'week', 'report', 'public', 'law', 'vote', 'party',
        'senate', 'house', 'court', 'media', 'news', 'city', 'officials',
        'economy', 'security', 'support', 'leader', 'world', 'national',
        'white', 'republican', 'democrat', 'trump', 'former', 'office',
        'million', 'plan', 'tax', 'health', 'police', 'military', 'foreign',
    ]

    STOPWORD_NOISE: List[str] = ['the', 'and', 'of', 'to', 'a', 'in', 'is', 'that', 'was', 'for']

    MARKUP_NOISE: List[str] = ['<p>', '</p>', '<br/>', 'http://t.co/abc123', 'via @newsdesk', '!!!']

    def __init__(self, seed: int = 42):
        """
        Initialize the generator with a random seed for reproducibility.

        Args:
            seed: Random seed for numpy random number generation.
        """
        self.seed = seed
        self.rng = np.random.default_rng(seed)

    def generate_articles(
        self,
        n_articles: int = 1000,
        real_share: float = 0.5,
        label_noise: float = 0.1,
        mean_length: int = 60
    ) -> pd.DataFrame:
        """
        Generate a DataFrame of synthetic articles.

        Args:
            n_articles: Number of articles to generate.
            real_share: Probability that an article is genuine (label 1).
            label_noise: Share of labels flipped after generation.
            mean_length: Average number of filler tokens per article.

        Returns:
            DataFrame with columns article_id, text and label (0=fake, 1=real).
        """
        if n_articles < 2:
            raise ValueError(f"n_articles must be at least 2, got {n_articles}")
        if not 0.0 < real_share < 1.0:
            raise ValueError(f"real_share must be in (0, 1), got {real_share}")

        labels = (self.rng.random(n_articles) < real_share).astype(int)
        texts = [self._generate_text(label, mean_length) for label in labels]

        # Flip a share of labels so the signal is informative but imperfect
        flip = self.rng.random(n_articles) < label_noise
        labels = np.where(flip, 1 - labels, labels)

        # Guarantee both classes are present
        if labels.min() == labels.max():
            labels[0] = 1 - labels[0]

        return pd.DataFrame({
            'article_id': [f"ART_{i:05d}" for i in range(1, n_articles + 1)],
            'text': texts,
            'label': labels,
        })

    def _generate_text(self, label: int, mean_length: int) -> str:
        """
        Generate one article.

        Filler tokens are drawn uniformly; each indicator word of the
        article's class is inserted with its listed probability, indicator
        words of the other class with a fifth of it.
        """
        length = int(np.clip(self.rng.normal(mean_length, mean_length * 0.25), 10, mean_length * 3))
        tokens = list(self.rng.choice(self.FILLER_WORDS, size=length))

        own, other = (self.REAL_INDICATORS, self.FAKE_INDICATORS) if label == 1 \
            else (self.FAKE_INDICATORS, self.REAL_INDICATORS)

        for word, probability in own.items():
            if self.rng.random() < probability:
                tokens.extend([word] * int(self.rng.integers(1, 4)))
        for word, probability in other.items():
            if self.rng.random() < probability / 5:
                tokens.append(word)

        tokens.extend(self.rng.choice(self.STOPWORD_NOISE, size=length // 3))
        if self.rng.random() < 0.3:
            tokens.append(str(self.rng.choice(self.MARKUP_NOISE)))

        order = self.rng.permutation(len(tokens))
        text = ' '.join(str(tokens[i]) for i in order)

        # Sentence-style capitalisation and punctuation exercise the cleaner
        return text.capitalize() + '.'

    @property
    def indicator_words(self) -> List[str]:
        return sorted(set(self.FAKE_INDICATORS) | set(self.REAL_INDICATORS))


def print_corpus_stats(df: pd.DataFrame) -> None:
    """Print summary statistics for a generated corpus."""
    print("=" * 60)
    print("SYNTHETIC NEWS CORPUS SUMMARY")
    print("=" * 60)

    print(f"\nTotal articles generated: {len(df):,}")

    lengths = df['text'].str.split().str.len()
    print("\n--- Article Length (tokens) ---")
    print(f"  Min:    {lengths.min():.0f}")
    print(f"  Max:    {lengths.max():.0f}")
    print(f"  Mean:   {lengths.mean():.1f}")

    print("\n--- Label Distribution ---")
    for label, count in df['label'].value_counts().sort_index().items():
        name = 'real' if label == 1 else 'fake'
        print(f"  {label} ({name}): {count:5d} ({count / len(df) * 100:5.1f}%)")

    print("\n" + "=" * 60)


if __name__ == "__main__":
    generator = SyntheticNewsGenerator(seed=42)
    articles_df = generator.generate_articles(n_articles=2401)

    data_dir = Path(__file__).parent.parent.parent / "data"
    data_dir.mkdir(exist_ok=True)

    output_path = data_dir / "synthetic_news.csv"
    articles_df.to_csv(output_path, index=False)
    print(f"Saved {len(articles_df):,} articles to {output_path}")

    print_corpus_stats(articles_df)

"""
Data module for the news explainability engine.

Real corpora are loaded and cleaned outside the engine; this module only
ships a synthetic labelled corpus for demos and tests.
"""

from .news_generator import SyntheticNewsGenerator, print_corpus_stats

__all__ = ['SyntheticNewsGenerator', 'print_corpus_stats']

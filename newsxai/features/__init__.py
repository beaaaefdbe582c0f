"""
Features module for the news explainability engine.

Handles the text-to-feature pipeline:
- Text cleaning and tokenization
- Vocabulary fitting (document frequency, IDF weights)
- TF-IDF feature matrices with training-partition normalization
- Explicit feature/target schemas
"""

from .schema import FeatureSchema
from .text_features import TextFeaturePipeline, Vocabulary, clean_text

__all__ = ['FeatureSchema', 'TextFeaturePipeline', 'Vocabulary', 'clean_text']

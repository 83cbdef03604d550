"""
Feature vectors for SOM training

Public API:
    build_input_vector              - Concatenate feature values into one vector
    total_dimensions                - Sum of declared dimensions of a feature set
    input_vector_weights            - Per-dimension weights from feature settings
    DimensionMismatch               - Per-sample rejection reason
    DataNormalizer                  - Corpus-wide min-max scaling
    FeatureSource, JsonFeatureSource - Per-track feature retrieval
    FEATURE_DEFS, DEFAULT_TRAIN_FEATURE_SETTINGS - Feature registry
"""

from .defs import DEFAULT_TRAIN_FEATURE_SETTINGS, FEATURE_DEFS, get_feature_def, ordered_feature_names
from .normalizer import DataNormalizer
from .sources import FeatureSource, JsonFeatureSource
from .vector import DimensionMismatch, build_input_vector, input_vector_weights, total_dimensions

__all__ = [
    'build_input_vector',
    'total_dimensions',
    'input_vector_weights',
    'DimensionMismatch',
    'DataNormalizer',
    'FeatureSource',
    'JsonFeatureSource',
    'FEATURE_DEFS',
    'DEFAULT_TRAIN_FEATURE_SETTINGS',
    'get_feature_def',
    'ordered_feature_names',
]

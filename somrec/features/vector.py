"""
Feature Vector Builder: named, variable-dimension feature values to one
dense vector.

Usage:
    from somrec.features.vector import build_input_vector, DimensionMismatch

    names = ordered_feature_names(feature_settings_map)
    vector = build_input_vector(values_map, names)
    if isinstance(vector, DimensionMismatch):
        ...  # drop this sample
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import numpy as np

from ..types import FeatureDef, FeatureSettingsMap, FeatureValuesMap
from .defs import get_feature_def, ordered_feature_names

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DimensionMismatch:
    """A stored feature whose value count disagrees with its declared dimension."""

    feature_name: str
    expected: int
    actual: int


def total_dimensions(
    feature_names: Iterable[str],
    registry: dict[str, FeatureDef] | None = None,
) -> int:
    """Sum of declared dimensions over a feature set."""
    return sum(get_feature_def(name, registry).nb_dimensions for name in set(feature_names))


def build_input_vector(
    feature_values_map: FeatureValuesMap,
    feature_names: Sequence[str],
    registry: dict[str, FeatureDef] | None = None,
) -> np.ndarray | DimensionMismatch:
    """
    Concatenate feature values in the given order.

    Args:
        feature_values_map: Feature name -> values for one track
        feature_names: Concatenation order (see ordered_feature_names)
        registry: Optional feature definition table (defaults to FEATURE_DEFS)

    Returns:
        float64 vector of length total_dimensions(feature_names), or a
        DimensionMismatch describing the first offending feature
    """
    chunks = []
    for feature_name in feature_names:
        expected = get_feature_def(feature_name, registry).nb_dimensions
        values = feature_values_map.get(feature_name, ())
        if len(values) != expected:
            logger.warning(
                f"Dimension mismatch for feature '{feature_name}'. "
                f"Expected {expected}, got {len(values)}"
            )
            return DimensionMismatch(feature_name, expected, len(values))
        chunks.append(np.asarray(values, dtype=np.float64))

    if not chunks:
        return np.zeros(0, dtype=np.float64)
    return np.concatenate(chunks)


def input_vector_weights(
    feature_settings_map: FeatureSettingsMap,
    registry: dict[str, FeatureDef] | None = None,
) -> np.ndarray:
    """
    Per-dimension distance weights matching build_input_vector's layout.

    Each dimension of a feature gets weight / nb_dimensions, so a feature's
    total influence is its configured weight whatever its dimensionality.
    """
    weights = []
    for feature_name in ordered_feature_names(feature_settings_map):
        nb_dimensions = get_feature_def(feature_name, registry).nb_dimensions
        weight = feature_settings_map[feature_name].weight
        weights.extend([weight / nb_dimensions] * nb_dimensions)
    return np.asarray(weights, dtype=np.float64)

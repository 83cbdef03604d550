"""Tests for somrec.features.vector: vector building and weights."""

import numpy as np
import pytest

from somrec.features.defs import DEFAULT_TRAIN_FEATURE_SETTINGS, ordered_feature_names
from somrec.features.vector import (
    DimensionMismatch,
    build_input_vector,
    input_vector_weights,
    total_dimensions,
)
from somrec.types import FeatureSettings

pytestmark = pytest.mark.unit


class TestTotalDimensions:
    def test_sums_declared_dimensions(self, feature_defs):
        assert total_dimensions(["f.a", "f.vec"], feature_defs) == 4

    def test_duplicate_names_counted_once(self, feature_defs):
        assert total_dimensions(["f.a", "f.a", "f.b"], feature_defs) == 2

    def test_default_features(self):
        assert total_dimensions(DEFAULT_TRAIN_FEATURE_SETTINGS) == 61

    def test_unknown_feature_raises(self, feature_defs):
        with pytest.raises(ValueError, match="Unknown feature"):
            total_dimensions(["nope"], feature_defs)


class TestBuildInputVector:
    def test_concatenates_in_given_order(self, feature_defs):
        values = {"f.vec": [1.0, 2.0, 3.0], "f.a": [9.0]}
        names = ordered_feature_names(values)

        vector = build_input_vector(values, names, feature_defs)

        assert names == ["f.a", "f.vec"]
        np.testing.assert_array_equal(vector, [9.0, 1.0, 2.0, 3.0])
        assert vector.dtype == np.float64

    def test_wrong_value_count_is_reported_not_raised(self, feature_defs):
        values = {"f.a": [1.0], "f.vec": [1.0, 2.0]}

        result = build_input_vector(values, ["f.a", "f.vec"], feature_defs)

        assert result == DimensionMismatch("f.vec", expected=3, actual=2)

    def test_missing_feature_is_a_mismatch(self, feature_defs):
        result = build_input_vector({"f.a": [1.0]}, ["f.a", "f.b"], feature_defs)

        assert isinstance(result, DimensionMismatch)
        assert result.feature_name == "f.b"
        assert result.actual == 0

    def test_extra_features_are_ignored(self, feature_defs):
        values = {"f.a": [1.0], "f.b": [2.0], "f.vec": [0.0, 0.0, 0.0]}

        vector = build_input_vector(values, ["f.b"], feature_defs)

        np.testing.assert_array_equal(vector, [2.0])


class TestInputVectorWeights:
    def test_weight_spread_over_feature_dimensions(self, feature_defs):
        settings = {"f.vec": FeatureSettings(3.0), "f.a": FeatureSettings(2.0)}

        weights = input_vector_weights(settings, feature_defs)

        np.testing.assert_allclose(weights, [2.0, 1.0, 1.0, 1.0])

    def test_each_feature_totals_its_weight(self):
        weights = input_vector_weights(DEFAULT_TRAIN_FEATURE_SETTINGS)

        assert len(weights) == 61
        assert weights.sum() == pytest.approx(len(DEFAULT_TRAIN_FEATURE_SETTINGS))

"""Tests for somrec.features.normalizer.DataNormalizer."""

import numpy as np
import pytest

from somrec.features.normalizer import DataNormalizer

pytestmark = pytest.mark.unit


@pytest.fixture
def corpus():
    return [
        np.array([0.0, 10.0, 4.0]),
        np.array([5.0, 20.0, 4.0]),
        np.array([10.0, 30.0, 4.0]),
    ]


class TestDataNormalizer:
    def test_min_max_per_dimension(self, corpus):
        normalizer = DataNormalizer(3)
        normalizer.compute_normalization_factors(corpus)

        np.testing.assert_allclose(normalizer.normalize(corpus[1]), [0.5, 0.5, 0.0])
        np.testing.assert_allclose(normalizer.normalize(corpus[2]), [1.0, 1.0, 0.0])

    def test_normalize_all_matches_single(self, corpus):
        normalizer = DataNormalizer(3)
        normalizer.compute_normalization_factors(corpus)

        batch = normalizer.normalize_all(corpus)

        for row, sample in zip(batch, corpus):
            np.testing.assert_array_equal(row, normalizer.normalize(sample))

    def test_deterministic_given_same_factors(self, corpus):
        normalizer = DataNormalizer(3)
        normalizer.compute_normalization_factors(corpus)

        first = normalizer.normalize(np.array([2.5, 15.0, 4.0]))
        second = normalizer.normalize(np.array([2.5, 15.0, 4.0]))

        np.testing.assert_array_equal(first, second)

    def test_normalize_before_factors_raises(self):
        with pytest.raises(RuntimeError, match="not computed"):
            DataNormalizer(3).normalize(np.zeros(3))

    def test_dimension_mismatch_raises(self, corpus):
        normalizer = DataNormalizer(2)
        with pytest.raises(ValueError, match="dimension mismatch"):
            normalizer.compute_normalization_factors(corpus)

    def test_empty_corpus_raises(self):
        with pytest.raises(ValueError, match="non-empty"):
            DataNormalizer(3).compute_normalization_factors([])

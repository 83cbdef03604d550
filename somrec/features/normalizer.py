"""
Data Normalizer: per-dimension min-max scaling fitted on the whole corpus.

Factors are computed once from every training sample before any sample is
rescaled, so all samples share the same scale.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from sklearn.preprocessing import MinMaxScaler


class DataNormalizer:
    """Min-max rescaling of InputVectors into [0, 1] per dimension."""

    def __init__(self, nb_dimensions: int):
        self.nb_dimensions = nb_dimensions
        self._scaler: MinMaxScaler | None = None

    @property
    def is_fitted(self) -> bool:
        return self._scaler is not None

    def compute_normalization_factors(self, samples: Sequence[np.ndarray] | np.ndarray) -> None:
        """Fit per-dimension min/max over the entire sample corpus."""
        matrix = np.asarray(samples, dtype=np.float64)
        if matrix.ndim != 2 or matrix.shape[0] == 0:
            raise ValueError(f"Expected non-empty 2D samples, got shape {matrix.shape}")
        if matrix.shape[1] != self.nb_dimensions:
            raise ValueError(
                f"Sample dimension mismatch: expected {self.nb_dimensions}, got {matrix.shape[1]}"
            )

        self._scaler = MinMaxScaler(feature_range=(0.0, 1.0))
        self._scaler.fit(matrix)

    def normalize(self, sample: np.ndarray) -> np.ndarray:
        """Rescale one sample with the precomputed factors."""
        return self.normalize_all(np.asarray(sample, dtype=np.float64).reshape(1, -1))[0]

    def normalize_all(self, samples: Sequence[np.ndarray] | np.ndarray) -> np.ndarray:
        if self._scaler is None:
            raise RuntimeError("Normalization factors not computed. Call compute_normalization_factors() first.")
        matrix = np.asarray(samples, dtype=np.float64)
        if matrix.shape[-1] != self.nb_dimensions:
            raise ValueError(
                f"Sample dimension mismatch: expected {self.nb_dimensions}, got {matrix.shape[-1]}"
            )
        return self._scaler.transform(matrix)

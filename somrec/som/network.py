"""
Self-organizing map over weighted Euclidean distance.

The grid is ``width x height`` neurons, each owning a reference vector of
``dimensions`` floats. Reference vectors are stored row-major: the neuron at
Position(x, y) lives at flat index ``y * width + x``.

Usage:
    from somrec.som.network import Network

    network = Network(10, 10, dimensions=62, rng=42)
    network.set_data_weights(weights)
    state = network.train(samples, iteration_count=10)
    if state is NetworkState.TRAINED:
        position = network.closest_position(samples[0])
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from typing import Any

import numpy as np

from ..types import NetworkState, Position

logger = logging.getLogger(__name__)

IterationCallback = Callable[[int, int], None]
CancelPredicate = Callable[[], bool]


class CancellationToken:
    """One-way cooperative cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def __call__(self) -> bool:
        return self.is_cancelled()


class Network:
    """Trainable grid of reference vectors."""

    def __init__(
        self,
        width: int,
        height: int,
        dimensions: int,
        rng: np.random.Generator | int | None = None,
        initial_learning_rate: float = 0.5,
        final_radius: float = 0.5,
    ):
        """
        Create an untrained network with random reference vectors.

        Args:
            width: Grid width (>= 1)
            height: Grid height (>= 1)
            dimensions: Length of every reference vector (>= 1)
            rng: Generator or seed for initialization and sample shuffling
            initial_learning_rate: Learning rate on the first iteration
            final_radius: Neighborhood radius on the last iteration
        """
        if width < 1 or height < 1:
            raise ValueError(f"Invalid grid size {width}x{height}")
        if dimensions < 1:
            raise ValueError("dimensions must be at least 1")

        self._width = int(width)
        self._height = int(height)
        self._dimensions = int(dimensions)
        self._rng = np.random.default_rng(rng)
        self.initial_learning_rate = initial_learning_rate
        self.final_radius = final_radius

        # Training data is min-max normalized, so initialize in the same range
        self._ref_vectors = self._rng.random((self._width * self._height, self._dimensions))
        self._data_weights = np.ones(self._dimensions, dtype=np.float64)
        self._coords = np.array(
            [(x, y) for y in range(self._height) for x in range(self._width)],
            dtype=np.float64,
        )
        self._state = NetworkState.UNINITIALIZED

    @classmethod
    def from_arrays(
        cls,
        width: int,
        height: int,
        ref_vectors: np.ndarray,
        data_weights: np.ndarray,
    ) -> Network:
        """Rebuild a trained network from persisted arrays."""
        ref_vectors = np.asarray(ref_vectors, dtype=np.float64)
        if ref_vectors.ndim != 2 or ref_vectors.shape[0] != width * height:
            raise ValueError(
                f"ref_vectors shape {ref_vectors.shape} does not match a {width}x{height} grid"
            )

        network = cls(width, height, ref_vectors.shape[1])
        network.set_data_weights(data_weights)
        network._ref_vectors = ref_vectors.copy()
        network._state = NetworkState.TRAINED
        return network

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def state(self) -> NetworkState:
        return self._state

    @property
    def ref_vectors(self) -> np.ndarray:
        """Read-only view of all reference vectors, shape (width*height, dimensions)."""
        view = self._ref_vectors.view()
        view.flags.writeable = False
        return view

    @property
    def data_weights(self) -> np.ndarray:
        view = self._data_weights.view()
        view.flags.writeable = False
        return view

    def ref_vector(self, position: Position) -> np.ndarray:
        return self.ref_vectors[self._index(position)]

    def positions(self) -> list[Position]:
        """All grid positions in row-major order."""
        return [Position(x, y) for y in range(self._height) for x in range(self._width)]

    def _index(self, position: Position) -> int:
        x, y = position
        if not (0 <= x < self._width and 0 <= y < self._height):
            raise ValueError(f"Position {tuple(position)} outside {self._width}x{self._height} grid")
        return y * self._width + x

    def _position(self, index: int) -> Position:
        return Position(int(index % self._width), int(index // self._width))

    def neighbors(self, position: Position) -> list[Position]:
        """Grid-adjacent positions (4-neighborhood)."""
        x, y = position
        candidates = ((x, y - 1), (x - 1, y), (x + 1, y), (x, y + 1))
        return [
            Position(cx, cy)
            for cx, cy in candidates
            if 0 <= cx < self._width and 0 <= cy < self._height
        ]

    # =========================================================================
    # Distances
    # =========================================================================

    def set_data_weights(self, weights: np.ndarray) -> None:
        """Set the per-dimension multipliers used by every distance computation."""
        weights = np.asarray(weights, dtype=np.float64)
        if weights.shape != (self._dimensions,):
            raise ValueError(
                f"Weights dimension mismatch: expected {self._dimensions}, got {weights.shape}"
            )
        self._data_weights = weights.copy()

    def _weighted_distances(self, vector: np.ndarray) -> np.ndarray:
        diff = self._ref_vectors - vector
        return np.sqrt((diff * diff * self._data_weights).sum(axis=1))

    def _weighted_distance(self, a: np.ndarray, b: np.ndarray) -> float:
        diff = a - b
        return float(np.sqrt((diff * diff * self._data_weights).sum()))

    def _check_vector(self, vector: Any) -> np.ndarray:
        vector = np.asarray(vector, dtype=np.float64)
        if vector.shape != (self._dimensions,):
            raise ValueError(
                f"Vector dimension mismatch: expected {self._dimensions}, got {vector.shape}"
            )
        return vector

    def _require_trained(self) -> None:
        if self._state is not NetworkState.TRAINED:
            raise RuntimeError(f"Network is not trained (state: {self._state.value})")

    def _bmu_index(self, vector: np.ndarray) -> int:
        # argmin returns the first minimum: ties go to the lowest row-major index
        return int(np.argmin(self._weighted_distances(vector)))

    def closest_position(self, vector: np.ndarray) -> Position:
        """Best matching unit for an arbitrary vector."""
        self._require_trained()
        return self._position(self._bmu_index(self._check_vector(vector)))

    def ref_vector_distance(self, a: Position, b: Position) -> float:
        """Weighted distance between the reference vectors of two cells."""
        self._require_trained()
        return self._weighted_distance(
            self._ref_vectors[self._index(a)],
            self._ref_vectors[self._index(b)],
        )

    def median_neighbor_distance(self) -> float:
        """Median weighted distance over all pairs of grid-adjacent neurons."""
        grid = self._ref_vectors.reshape(self._height, self._width, self._dimensions)
        horizontal = (grid[:, 1:] - grid[:, :-1]).reshape(-1, self._dimensions)
        vertical = (grid[1:] - grid[:-1]).reshape(-1, self._dimensions)
        diffs = np.concatenate([horizontal, vertical])
        if diffs.shape[0] == 0:
            return 0.0
        distances = np.sqrt((diffs * diffs * self._data_weights).sum(axis=1))
        return float(np.median(distances))

    # =========================================================================
    # Training
    # =========================================================================

    def learning_rate(self, iteration: int, iteration_count: int) -> float:
        """Linearly decaying learning rate, strictly positive on every iteration."""
        return self.initial_learning_rate * (1.0 - iteration / iteration_count)

    def neighborhood_radius(self, iteration: int, iteration_count: int) -> float:
        """Exponential decay from half the larger grid side down to final_radius."""
        start = max(max(self._width, self._height) / 2.0, self.final_radius)
        if iteration_count <= 1:
            return start
        progress = iteration / (iteration_count - 1)
        return start * (self.final_radius / start) ** progress

    def _update_ref_vectors(self, sample: np.ndarray, learning_rate: float, radius: float) -> None:
        bmu = self._bmu_index(sample)
        grid_dist2 = ((self._coords - self._coords[bmu]) ** 2).sum(axis=1)
        influence = np.exp(-grid_dist2 / (2.0 * radius * radius))
        self._ref_vectors += (learning_rate * influence)[:, None] * (sample - self._ref_vectors)

    def train(
        self,
        samples: Iterable[np.ndarray] | np.ndarray,
        iteration_count: int,
        on_progress: IterationCallback | None = None,
        is_cancelled: CancelPredicate | None = None,
    ) -> NetworkState:
        """
        Train the map. Each iteration is one shuffled pass over every sample.

        Cancellation is polled at the start of each iteration; when it
        fires, the network becomes ABORTED with the reference vectors of
        the last completed iteration.

        Returns:
            NetworkState.TRAINED or NetworkState.ABORTED
        """
        if self._state is not NetworkState.UNINITIALIZED:
            raise RuntimeError(f"Cannot train a network in state {self._state.value}")
        if iteration_count <= 0:
            raise ValueError("iteration_count must be positive")

        data = np.asarray(samples, dtype=np.float64)
        if data.ndim != 2 or data.shape[0] == 0:
            raise ValueError(f"Expected non-empty 2D samples, got shape {data.shape}")
        if data.shape[1] != self._dimensions:
            raise ValueError(
                f"Sample dimension mismatch: expected {self._dimensions}, got {data.shape[1]}"
            )

        self._state = NetworkState.TRAINING

        for iteration in range(iteration_count):
            if is_cancelled is not None and is_cancelled():
                logger.debug(f"Training cancelled at iteration {iteration} / {iteration_count}")
                self._state = NetworkState.ABORTED
                return self._state

            if on_progress is not None:
                on_progress(iteration, iteration_count)

            learning_rate = self.learning_rate(iteration, iteration_count)
            radius = self.neighborhood_radius(iteration, iteration_count)
            for sample_idx in self._rng.permutation(data.shape[0]):
                self._update_ref_vectors(data[sample_idx], learning_rate, radius)

        self._state = NetworkState.TRAINED
        return self._state

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Network):
            return NotImplemented
        return (
            self._width == other._width
            and self._height == other._height
            and self._dimensions == other._dimensions
            and np.array_equal(self._ref_vectors, other._ref_vectors)
            and np.array_equal(self._data_weights, other._data_weights)
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"Network(width={self._width}, height={self._height}, "
            f"dimensions={self._dimensions}, state={self._state.value})"
        )

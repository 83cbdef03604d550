"""
Features engine: trains (or reloads) the SOM model and answers similarity
queries from grid proximity.

Usage:
    from somrec.engine import FeaturesEngine

    engine = FeaturesEngine(catalog, feature_source, cache=ModelCache(somrec_config.cache_dir))
    outcome = engine.load(force_reload=False)
    similar = engine.get_similar_tracks([track_id], max_count=10)

Training runs synchronously in the caller's thread; run load() off the
request-serving thread. Queries observe either the previous or the new
model, never a partially built one.
"""

from __future__ import annotations

import logging
import math
import random
import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import mlflow
import numpy as np

from .cache import ModelCache, TrainedModel
from .catalog import Catalog
from .config import SOMRecConfig, somrec_config
from .features.defs import DEFAULT_TRAIN_FEATURE_SETTINGS, ordered_feature_names
from .features.normalizer import DataNormalizer
from .features.sources import FeatureSource
from .features.vector import DimensionMismatch, build_input_vector, input_vector_weights, total_dimensions
from .index import PositionEntityIndex, find_similar
from .som.network import CancellationToken, Network
from .types import (
    FeatureDef,
    FeatureSettingsMap,
    LoadOutcome,
    NetworkState,
    Position,
    Progress,
    ProgressCallback,
    TrackArtistLinkType,
    TrainSettings,
)

logger = logging.getLogger(__name__)


def compute_grid_size(sample_count: int, sample_count_per_neuron: float) -> int:
    """Side of the square grid: floor(sqrt(samples / per-neuron)), at least 2."""
    return max(2, int(math.floor(math.sqrt(sample_count / sample_count_per_neuron))))


@dataclass(frozen=True)
class _LoadedModel:
    """A model and everything derived from it, published as one unit."""

    model: TrainedModel
    index: PositionEntityIndex
    median_neighbor_distance: float


class FeaturesEngine:
    """
    Similarity engine over a self-organizing map of audio features.

    Collaborators are injected: the catalog (relationships, existence
    checks, track lists), the per-track feature source and an optional
    model cache.
    """

    def __init__(
        self,
        catalog: Catalog,
        feature_source: FeatureSource,
        cache: ModelCache | None = None,
        config: SOMRecConfig | None = None,
        feature_defs: dict[str, FeatureDef] | None = None,
        default_feature_settings: FeatureSettingsMap | None = None,
    ):
        """
        Args:
            catalog: Catalog relationships and existence checks
            feature_source: Per-track analysis feature values
            cache: Model cache (None disables caching)
            config: Training/search settings (defaults to somrec_config)
            feature_defs: Feature registry override (defaults to FEATURE_DEFS)
            default_feature_settings: Features trained on by load()
        """
        self._catalog = catalog
        self._feature_source = feature_source
        self._cache = cache
        self.config = config or somrec_config
        self._feature_defs = feature_defs
        self._default_feature_settings = dict(default_feature_settings or DEFAULT_TRAIN_FEATURE_SETTINGS)

        self._cancel_token = CancellationToken()
        self._load_lock = threading.Lock()
        self._rng = np.random.default_rng(self.config.seed)
        self._random = random.Random(self.config.seed)
        self._loaded: _LoadedModel | None = None

    # =========================================================================
    # State
    # =========================================================================

    @property
    def is_loaded(self) -> bool:
        return self._loaded is not None

    @property
    def model(self) -> TrainedModel | None:
        loaded = self._loaded
        return loaded.model if loaded else None

    @property
    def index(self) -> PositionEntityIndex | None:
        loaded = self._loaded
        return loaded.index if loaded else None

    @property
    def median_neighbor_distance(self) -> float | None:
        loaded = self._loaded
        return loaded.median_neighbor_distance if loaded else None

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_token.is_cancelled()

    def request_cancel(self) -> None:
        """Ask any running or future load to stop. One-way and idempotent."""
        logger.debug("Requesting load cancellation")
        self._cancel_token.cancel()

    # =========================================================================
    # Loading
    # =========================================================================

    def load(self, force_reload: bool = False, progress_callback: ProgressCallback | None = None) -> LoadOutcome:
        """
        Adopt the cached model, or train a new one with the default features.

        Args:
            force_reload: Discard the cache and always train
            progress_callback: Called with a Progress once per training iteration

        Returns:
            LoadOutcome describing what happened; on CANCELLED and
            NO_TRAINABLE_DATA the previously published model (if any) is kept
        """
        with self._load_lock:
            if force_reload:
                if self._cache is not None:
                    self._cache.invalidate()
            elif self._cache is not None:
                cached = self._cache.read()
                if cached is not None:
                    return self._adopt(cached)

            train_settings = TrainSettings.from_config(self.config, self._default_feature_settings)
            outcome, model = self._train(train_settings, progress_callback)

            if outcome is LoadOutcome.TRAINED and self._cache is not None:
                try:
                    self._cache.write(model)
                except OSError as e:
                    logger.error(f"Failed to cache trained model: {e}")

            return outcome

    def load_from_training(
        self,
        train_settings: TrainSettings,
        progress_callback: ProgressCallback | None = None,
    ) -> LoadOutcome:
        """Train with explicit settings; never touches the cache."""
        with self._load_lock:
            outcome, _ = self._train(train_settings, progress_callback)
            return outcome

    def load_from_cache(self, model: TrainedModel) -> LoadOutcome:
        """Adopt an already trained model (e.g. one read from a cache)."""
        with self._load_lock:
            return self._adopt(model)

    def to_cache(self) -> TrainedModel | None:
        """Capture the published model, exactly as it would be persisted."""
        return self.model

    def _adopt(self, model: TrainedModel) -> LoadOutcome:
        logger.info("Constructing features classifier from cache...")
        if not self._publish(model):
            return LoadOutcome.CANCELLED
        return LoadOutcome.LOADED_FROM_CACHE

    def _publish(self, model: TrainedModel) -> bool:
        """Build the derived index off to the side, then swap it in at once."""
        network = model.network
        index = PositionEntityIndex.build(
            network.width,
            network.height,
            model.track_positions,
            self._catalog,
            is_cancelled=self._cancel_token.is_cancelled,
        )
        if index is None:
            return False

        median = network.median_neighbor_distance()
        logger.debug(f"Median distance between ref vectors = {median}")

        self._loaded = _LoadedModel(model=model, index=index, median_neighbor_distance=median)
        logger.info("Classifier successfully loaded!")
        return True

    def _collect_samples(self, feature_names: Sequence[str]) -> tuple[list[np.ndarray], list[int]] | None:
        track_ids = self._catalog.track_ids()
        logger.debug(f"Found {len(track_ids)} candidate tracks")

        samples: list[np.ndarray] = []
        sample_track_ids: list[int] = []

        logger.debug("Extracting features...")
        for track_id in track_ids:
            if self._cancel_token.is_cancelled():
                logger.info("Feature extraction cancelled")
                return None

            values_map = self._feature_source.fetch_features(track_id, feature_names)
            if not values_map:
                continue

            vector = build_input_vector(values_map, feature_names, self._feature_defs)
            if isinstance(vector, DimensionMismatch):
                continue

            samples.append(vector)
            sample_track_ids.append(track_id)
        logger.debug("Extracting features DONE")

        return samples, sample_track_ids

    def _train(
        self,
        train_settings: TrainSettings,
        progress_callback: ProgressCallback | None,
    ) -> tuple[LoadOutcome, TrainedModel | None]:
        logger.info("Constructing features classifier...")

        feature_names = ordered_feature_names(train_settings.feature_settings_map)
        nb_dimensions = total_dimensions(feature_names, self._feature_defs)
        logger.debug(f"Features dimension = {nb_dimensions}")

        collected = self._collect_samples(feature_names)
        if collected is None:
            return LoadOutcome.CANCELLED, None
        samples, sample_track_ids = collected

        if not samples:
            logger.info("Nothing to classify!")
            return LoadOutcome.NO_TRAINABLE_DATA, None

        logger.debug("Normalizing data...")
        normalizer = DataNormalizer(nb_dimensions)
        normalizer.compute_normalization_factors(samples)
        normalized = normalizer.normalize_all(samples)

        size = compute_grid_size(len(samples), train_settings.sample_count_per_neuron)
        if len(samples) < 4 * train_settings.sample_count_per_neuron:
            logger.warning(
                f"Very few tracks ({len(samples)}) are being used by the features engine, "
                "expect bad behaviors"
            )
        logger.info(f"Found {len(samples)} tracks, constructing a {size}*{size} network")

        network = Network(
            size,
            size,
            nb_dimensions,
            rng=self._rng,
            initial_learning_rate=self.config.initial_learning_rate,
            final_radius=self.config.final_radius,
        )
        network.set_data_weights(
            input_vector_weights(train_settings.feature_settings_map, self._feature_defs)
        )

        if mlflow.active_run():
            mlflow.log_params({
                'grid_size': size,
                'dimensions': nb_dimensions,
                'iteration_count': train_settings.iteration_count,
                'sample_count_per_neuron': train_settings.sample_count_per_neuron,
                'features': ','.join(feature_names),
            })

        def on_iteration(iteration: int, iteration_count: int) -> None:
            logger.debug(f"Current pass = {iteration} / {iteration_count}")
            if progress_callback is not None:
                progress_callback(Progress(iteration, iteration_count))

        logger.debug("Training network...")
        state = network.train(
            normalized,
            train_settings.iteration_count,
            on_progress=on_iteration,
            is_cancelled=self._cancel_token.is_cancelled,
        )
        if state is NetworkState.ABORTED:
            logger.info("Training cancelled, keeping previous model")
            return LoadOutcome.CANCELLED, None
        logger.debug("Training network DONE")

        logger.debug("Classifying tracks...")
        track_positions: dict[int, set[Position]] = {}
        for track_id, sample in zip(sample_track_ids, normalized):
            if self._cancel_token.is_cancelled():
                logger.info("Classification cancelled, keeping previous model")
                return LoadOutcome.CANCELLED, None
            track_positions.setdefault(track_id, set()).add(network.closest_position(sample))
        logger.debug("Classifying tracks DONE")

        model = TrainedModel(network, {k: frozenset(v) for k, v in track_positions.items()})
        if not self._publish(model):
            return LoadOutcome.CANCELLED, None

        if mlflow.active_run():
            mlflow.log_metrics({
                'sample_count': len(samples),
                'median_neighbor_distance': self._loaded.median_neighbor_distance,
            })

        return LoadOutcome.TRAINED, model

    # =========================================================================
    # Queries
    # =========================================================================

    def _max_distance(self, loaded: _LoadedModel) -> float | None:
        factor = self.config.search_distance_factor
        if factor is None:
            return None
        return factor * loaded.median_neighbor_distance

    def get_similar_tracks(self, track_ids: Iterable[int], max_count: int) -> list[int]:
        """Tracks near the given tracks on the map, excluding the tracks themselves."""
        loaded = self._loaded
        if loaded is None:
            return []

        # Tracks may have been removed long after training, report existing ones only
        return find_similar(
            track_ids,
            loaded.index.tracks,
            loaded.model.network,
            max_count,
            accept=self._catalog.track_exists,
            max_distance=self._max_distance(loaded),
        )

    def get_similar_tracks_from_track_list(self, track_list_id: int, max_count: int) -> list[int]:
        track_ids = self._catalog.track_list_track_ids(track_list_id)
        if not track_ids:
            return []
        return self.get_similar_tracks(track_ids, max_count)

    def get_similar_releases(self, release_id: int, max_count: int) -> list[int]:
        loaded = self._loaded
        if loaded is None:
            return []

        return find_similar(
            [release_id],
            loaded.index.releases,
            loaded.model.network,
            max_count,
            accept=self._catalog.release_exists,
            max_distance=self._max_distance(loaded),
        )

    def get_similar_artists(
        self,
        artist_id: int,
        link_types: Iterable[TrackArtistLinkType],
        max_count: int,
    ) -> list[int]:
        """
        Artists near the given artist, searched independently per link type.

        The union over link types is trimmed by uniform random eviction when
        it exceeds max_count; results are not ranked across link types.
        """
        loaded = self._loaded
        if loaded is None:
            return []

        similar: dict[int, None] = {}
        for link_type in sorted(set(link_types)):
            for similar_id in find_similar(
                [artist_id],
                loaded.index.artist_index(link_type),
                loaded.model.network,
                max_count,
                accept=self._catalog.artist_exists,
                max_distance=self._max_distance(loaded),
            ):
                similar[similar_id] = None

        res = list(similar)
        while len(res) > max_count:
            res.pop(self._random.randrange(len(res)))
        return res

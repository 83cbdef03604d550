"""Root test fixtures for somrec test suite."""

import numpy as np
import pytest

from somrec.catalog import CatalogTrack, InMemoryCatalog
from somrec.config import SOMRecConfig
from somrec.types import FeatureDef, FeatureSettings, TrackArtistLinkType

TEST_FEATURE_DEFS = {
    "f.a": FeatureDef(1),
    "f.b": FeatureDef(1),
    "f.vec": FeatureDef(3),
}

TWO_FEATURE_SETTINGS = {
    "f.a": FeatureSettings(1.0),
    "f.b": FeatureSettings(1.0),
}

# Four pairs of near-duplicates at the corners of the unit square
SCENARIO_VALUES = {
    1: {"f.a": [0.0], "f.b": [0.0]},
    2: {"f.a": [0.01], "f.b": [0.0]},
    3: {"f.a": [0.0], "f.b": [1.0]},
    4: {"f.a": [0.02], "f.b": [0.98]},
    5: {"f.a": [1.0], "f.b": [0.0]},
    6: {"f.a": [0.98], "f.b": [0.01]},
    7: {"f.a": [1.0], "f.b": [1.0]},
    8: {"f.a": [0.99], "f.b": [1.0]},
}


class FakeFeatureSource:
    """In-memory feature source recording every lookup."""

    def __init__(self, values):
        self.values = values
        self.calls = []

    def fetch_features(self, track_id, feature_names):
        self.calls.append(track_id)
        track_values = self.values.get(track_id)
        if track_values is None:
            return None
        wanted = set(feature_names)
        return {name: list(v) for name, v in track_values.items() if name in wanted} or None


def make_scenario_catalog():
    """8 tracks, one release per near-duplicate pair, performer + composer links."""
    performer = TrackArtistLinkType.PERFORMER
    composer = TrackArtistLinkType.COMPOSER
    tracks = []
    for track_id in range(1, 9):
        pair = (track_id - 1) // 2
        tracks.append(
            CatalogTrack(
                track_id=track_id,
                release_id=100 + pair,
                artist_links=[(200 + pair, performer), (300 + pair % 2, composer)],
            )
        )
    return InMemoryCatalog(tracks, track_lists={1: [1], 2: [1, 3]})


@pytest.fixture
def scenario_catalog():
    return make_scenario_catalog()


@pytest.fixture
def scenario_source():
    return FakeFeatureSource(SCENARIO_VALUES)


@pytest.fixture
def isolated_config(tmp_path):
    """SOMRecConfig with project_root pointed at tmp_path and a fixed seed."""
    config = SOMRecConfig()
    config.project_root = tmp_path
    config.SOM_CACHE_DIR = None
    config.SOM_SEED = 42
    config.SOM_ITERATION_COUNT = 50
    config.SOM_SAMPLE_COUNT_PER_NEURON = 4.0
    config.SOM_SEARCH_DISTANCE_FACTOR = None
    return config


@pytest.fixture
def grid_samples():
    """20 random 3-dimensional samples in [0, 1)."""
    rng = np.random.default_rng(42)
    return rng.random((20, 3))


@pytest.fixture
def make_source():
    """Factory for FakeFeatureSource instances."""
    return FakeFeatureSource


@pytest.fixture
def feature_defs():
    return dict(TEST_FEATURE_DEFS)


@pytest.fixture
def two_feature_settings():
    return dict(TWO_FEATURE_SETTINGS)


@pytest.fixture
def scenario_values():
    """Mutable copy of the scenario feature values."""
    return {track_id: dict(values) for track_id, values in SCENARIO_VALUES.items()}

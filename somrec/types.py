"""Value types shared across the feature, SOM, index and engine layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Callable, NamedTuple

import numpy as np

if TYPE_CHECKING:
    from .config import SOMRecConfig

FeatureName = str
FeatureValuesMap = dict[str, list[float]]
InputVector = np.ndarray

ProgressCallback = Callable[["Progress"], None]


class Position(NamedTuple):
    """Cell coordinates on the SOM grid."""

    x: int
    y: int


@dataclass(frozen=True)
class Progress:
    """Training status snapshot reported once per iteration."""

    current_iteration: int
    total_iterations: int


@dataclass(frozen=True)
class FeatureDef:
    nb_dimensions: int


@dataclass(frozen=True)
class FeatureSettings:
    weight: float = 1.0


FeatureSettingsMap = dict[str, FeatureSettings]


@dataclass(frozen=True)
class TrainSettings:
    """Which features to train on and how long to train."""

    feature_settings_map: FeatureSettingsMap = field(default_factory=dict)
    iteration_count: int = 10
    sample_count_per_neuron: float = 4.0

    def __post_init__(self) -> None:
        if self.iteration_count <= 0:
            raise ValueError("iteration_count must be positive")
        if self.sample_count_per_neuron <= 0:
            raise ValueError("sample_count_per_neuron must be positive")

    @classmethod
    def from_config(
        cls,
        config: SOMRecConfig,
        feature_settings_map: FeatureSettingsMap,
    ) -> TrainSettings:
        return cls(
            feature_settings_map=dict(feature_settings_map),
            iteration_count=config.iteration_count,
            sample_count_per_neuron=config.sample_count_per_neuron,
        )


class TrackArtistLinkType(IntEnum):
    """Role an artist plays on a track."""

    ARTIST = 0
    ARRANGER = 1
    COMPOSER = 2
    CONDUCTOR = 3
    LYRICIST = 4
    MIXER = 5
    PERFORMER = 6
    PRODUCER = 7
    RELEASE_ARTIST = 8
    REMIXER = 9
    WRITER = 10


class NetworkState(Enum):
    UNINITIALIZED = "uninitialized"
    TRAINING = "training"
    TRAINED = "trained"
    ABORTED = "aborted"


class LoadOutcome(Enum):
    """Result of FeaturesEngine.load()."""

    LOADED_FROM_CACHE = "loaded_from_cache"
    TRAINED = "trained"
    CANCELLED = "cancelled"
    NO_TRAINABLE_DATA = "no_trainable_data"

"""
somrec: self-organizing map similarity over audio features

Public API:
    FeaturesEngine      - Train/reload the map and answer similarity queries
    ModelCache          - Persist trained models
    TrainedModel        - Network + track positions
    Network             - Self-organizing map
    PositionEntityIndex - Grid position <-> entity mappings
    InMemoryCatalog     - Dictionary-backed catalog
    JsonFeatureSource   - Per-track analysis documents on disk
"""

from __future__ import annotations

import importlib
from typing import Any

__all__ = [
    "FeaturesEngine",
    "ModelCache",
    "TrainedModel",
    "Network",
    "PositionEntityIndex",
    "InMemoryCatalog",
    "JsonFeatureSource",
    "LoadOutcome",
    "Position",
    "Progress",
    "TrackArtistLinkType",
    "TrainSettings",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "FeaturesEngine": (".engine", "FeaturesEngine"),
    "ModelCache": (".cache", "ModelCache"),
    "TrainedModel": (".cache", "TrainedModel"),
    "Network": (".som.network", "Network"),
    "PositionEntityIndex": (".index", "PositionEntityIndex"),
    "InMemoryCatalog": (".catalog", "InMemoryCatalog"),
    "JsonFeatureSource": (".features.sources", "JsonFeatureSource"),
    "LoadOutcome": (".types", "LoadOutcome"),
    "Position": (".types", "Position"),
    "Progress": (".types", "Progress"),
    "TrackArtistLinkType": (".types", "TrackArtistLinkType"),
    "TrainSettings": (".types", "TrainSettings"),
}


def __getattr__(name: str) -> Any:
    if name not in _LAZY_IMPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module_name, attr_name = _LAZY_IMPORTS[name]
    module = importlib.import_module(module_name, __name__)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return sorted(list(globals().keys()) + __all__)

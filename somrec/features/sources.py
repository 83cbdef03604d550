"""Feature sources: where per-track analysis values come from."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

import numpy as np

from ..types import FeatureValuesMap

logger = logging.getLogger(__name__)


class FeatureSource(Protocol):
    """Protocol for per-track feature retrieval."""

    def fetch_features(self, track_id: int, feature_names: Iterable[str]) -> FeatureValuesMap | None:
        """Return values for the requested features, or None if the track has none."""
        ...


def _resolve_dotted(document: dict[str, Any], feature_name: str) -> Any:
    node: Any = document
    for key in feature_name.split("."):
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    return node


class JsonFeatureSource:
    """
    Read low-level analysis documents stored as ``<features_dir>/<track_id>.json``.

    Feature names are dotted paths into the document; scalar and nested list
    values are flattened into one list of floats.
    """

    def __init__(self, features_dir: str | Path):
        self.features_dir = Path(features_dir)

    def _document_path(self, track_id: int) -> Path:
        return self.features_dir / f"{track_id}.json"

    def track_ids(self) -> list[int]:
        """Track IDs that have an analysis document on disk."""
        ids = []
        for path in self.features_dir.glob("*.json"):
            if path.stem.isdigit():
                ids.append(int(path.stem))
        return sorted(ids)

    def _load_document(self, track_id: int) -> dict[str, Any] | None:
        path = self._document_path(track_id)
        document = None
        if path.exists():
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    document = json.load(f)
            # JSONDecodeError and UnicodeDecodeError are both ValueErrors
            except (OSError, ValueError) as e:
                logger.warning(f"Could not read features for track {track_id}: {e}")
        return document

    def fetch_features(self, track_id: int, feature_names: Iterable[str]) -> FeatureValuesMap | None:
        document = self._load_document(track_id)
        if document is None:
            return None

        values_map: FeatureValuesMap = {}
        for feature_name in feature_names:
            value = _resolve_dotted(document, feature_name)
            if value is None:
                continue
            try:
                values = np.ravel(np.asarray(value, dtype=np.float64))
            except (TypeError, ValueError):
                logger.warning(f"Non-numeric value for '{feature_name}' in track {track_id}")
                continue
            if not np.isfinite(values).all():
                logger.warning(f"Non-finite value for '{feature_name}' in track {track_id}")
                continue
            values_map[feature_name] = values.tolist()

        return values_map or None

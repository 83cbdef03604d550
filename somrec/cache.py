"""
Persistence of trained models.

A trained model is exactly ``{Network, TrackPositions}``; everything else
(release/artist indices) is rebuilt from it on load. Each write produces a
new version directory validated by checksums on read; a pointer file
swapped atomically selects the live version.

Usage:
    from somrec.cache import ModelCache

    cache = ModelCache("data/cache/som")
    model = cache.read()          # None when missing or corrupt
    cache.write(trained_model)
    cache.invalidate()
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import shutil
import tempfile
import uuid
import zipfile
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import numpy as np

from .som.network import Network
from .types import NetworkState, Position

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
MANIFEST_FILE = "manifest.json"
NETWORK_FILE = "network.npz"
TRACK_POSITIONS_FILE = "track_positions.json"
CHECKSUM_FILE = "checksums.json"
POINTER_FILE = "CURRENT"
VERSION_PREFIX = "model-"
REQUIRED_MANIFEST_FIELDS = {
    "schema_version",
    "width",
    "height",
    "dimensions",
    "track_count",
    "created_at_utc",
}


class CacheValidationError(ValueError):
    """Raised when a persisted model is malformed or fails integrity checks."""


@dataclass(frozen=True)
class TrainedModel:
    """Minimal state needed to rebuild every derived index."""

    network: Network
    track_positions: Mapping[int, frozenset[Position]]

    def __post_init__(self) -> None:
        if self.network.state is not NetworkState.TRAINED:
            raise ValueError(f"Cannot build a model from a {self.network.state.value} network")
        positions = {
            int(track_id): frozenset(Position(int(x), int(y)) for x, y in track_positions)
            for track_id, track_positions in self.track_positions.items()
        }
        object.__setattr__(self, "track_positions", MappingProxyType(positions))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TrainedModel):
            return NotImplemented
        return self.network == other.network and dict(self.track_positions) == dict(other.track_positions)


def _now_utc_iso() -> str:
    return datetime.now(UTC).replace(microsecond=0).isoformat()


def _sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        while True:
            chunk = f.read(1024 * 1024)
            if not chunk:
                break
            h.update(chunk)
    return h.hexdigest()


def _build_checksums(paths: list[Path]) -> dict[str, dict[str, Any]]:
    return {
        path.name: {"sha256": _sha256_file(path), "size": path.stat().st_size}
        for path in paths
    }


def _validate_checksums(root: Path, checksums: dict[str, dict[str, Any]]) -> None:
    for name in (MANIFEST_FILE, NETWORK_FILE, TRACK_POSITIONS_FILE):
        if name not in checksums:
            raise CacheValidationError(f"Checksums missing entry for {name}")

    for name, info in checksums.items():
        path = root / name
        if not path.exists():
            raise CacheValidationError(f"Missing file referenced by checksums: {name}")

        expected_size = int(info["size"])
        actual_size = path.stat().st_size
        if actual_size != expected_size:
            raise CacheValidationError(
                f"File size mismatch for {name}: expected {expected_size}, got {actual_size}"
            )

        expected_sha = str(info["sha256"])
        actual_sha = _sha256_file(path)
        if actual_sha != expected_sha:
            raise CacheValidationError(
                f"SHA256 mismatch for {name}: expected {expected_sha}, got {actual_sha}"
            )


def _validate_manifest(payload: dict[str, Any]) -> None:
    missing = sorted(REQUIRED_MANIFEST_FIELDS - set(payload))
    if missing:
        raise CacheValidationError(f"Manifest missing required fields: {', '.join(missing)}")

    if payload["schema_version"] != SCHEMA_VERSION:
        raise CacheValidationError(
            f"Unsupported schema_version={payload['schema_version']}. Expected {SCHEMA_VERSION}."
        )


def _serialize_track_positions(track_positions: Mapping[int, frozenset[Position]]) -> list[dict[str, Any]]:
    return [
        {
            "track_id": track_id,
            "positions": [[p.x, p.y] for p in sorted(track_positions[track_id])],
        }
        for track_id in sorted(track_positions)
    ]


def _deserialize_track_positions(rows: list[dict[str, Any]]) -> dict[int, frozenset[Position]]:
    track_positions: dict[int, frozenset[Position]] = {}
    for row in rows:
        track_positions[int(row["track_id"])] = frozenset(
            Position(int(x), int(y)) for x, y in row["positions"]
        )
    return track_positions


class ModelCache:
    """
    Read/write/invalidate one trained model at a fixed location.

    Every write lands in a fresh ``model-*`` version directory; the
    ``CURRENT`` pointer file names the live one and is swapped with
    ``os.replace``, so a reader sees either the previous model or the new
    one, never a missing or partial cache.
    """

    def __init__(self, cache_dir: str | Path):
        self.cache_dir = Path(cache_dir)

    @property
    def current_dir(self) -> Path | None:
        """Version directory the pointer file names, if any."""
        pointer = self.cache_dir / POINTER_FILE
        try:
            name = pointer.read_text(encoding='utf-8').strip()
        except OSError:
            return None
        if not name.startswith(VERSION_PREFIX) or Path(name).name != name:
            logger.warning(f"Ignoring malformed cache pointer {pointer}: {name!r}")
            return None
        return self.cache_dir / name

    def exists(self) -> bool:
        current = self.current_dir
        return current is not None and (current / MANIFEST_FILE).exists()

    def write(self, model: TrainedModel) -> Path:
        """
        Persist a trained model, replacing any previous one.

        Files are written to a temporary directory, renamed to a new
        version directory, and only then published through the pointer.

        Returns:
            Path to the new version directory
        """
        network = model.network
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        previous = self.current_dir
        tmp_dir = Path(tempfile.mkdtemp(prefix=".tmp-", dir=self.cache_dir))

        try:
            manifest = {
                "schema_version": SCHEMA_VERSION,
                "width": network.width,
                "height": network.height,
                "dimensions": network.dimensions,
                "track_count": len(model.track_positions),
                "created_at_utc": _now_utc_iso(),
            }
            manifest_path = tmp_dir / MANIFEST_FILE
            with open(manifest_path, 'w') as f:
                json.dump(manifest, f, indent=2)

            network_path = tmp_dir / NETWORK_FILE
            with open(network_path, 'wb') as f:
                np.savez(
                    f,
                    ref_vectors=np.asarray(network.ref_vectors, dtype=np.float64),
                    data_weights=np.asarray(network.data_weights, dtype=np.float64),
                )

            positions_path = tmp_dir / TRACK_POSITIONS_FILE
            with open(positions_path, 'w') as f:
                json.dump(_serialize_track_positions(model.track_positions), f)

            checksums = _build_checksums([manifest_path, network_path, positions_path])
            with open(tmp_dir / CHECKSUM_FILE, 'w') as f:
                json.dump(checksums, f, indent=2)

            version_dir = self.cache_dir / f"{VERSION_PREFIX}{uuid.uuid4().hex}"
            tmp_dir.rename(version_dir)
        except Exception:
            shutil.rmtree(tmp_dir, ignore_errors=True)
            raise

        self._point_to(version_dir.name)
        # The previous version stays for readers that resolved the old pointer
        self._prune(keep={version_dir.name, previous.name if previous else None})

        logger.info(f"Cached trained model ({network.width}x{network.height}) to {version_dir}")
        return version_dir

    def _point_to(self, version_name: str) -> None:
        with tempfile.NamedTemporaryFile(
            'w', dir=self.cache_dir, prefix=".pointer-", suffix=".tmp", delete=False
        ) as tmp:
            tmp.write(version_name)
            tmp_path = tmp.name
        try:
            os.replace(tmp_path, self.cache_dir / POINTER_FILE)
        except OSError:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def _prune(self, keep: set[str | None]) -> None:
        for child in self.cache_dir.iterdir():
            if child.is_dir() and child.name.startswith(VERSION_PREFIX) and child.name not in keep:
                shutil.rmtree(child, ignore_errors=True)
                logger.debug(f"Removed stale cache version {child.name}")

    def _load(self, root: Path) -> TrainedModel:
        checksum_path = root / CHECKSUM_FILE
        if not checksum_path.exists():
            raise CacheValidationError(f"Missing {CHECKSUM_FILE}")

        with open(checksum_path, 'r') as f:
            _validate_checksums(root, json.load(f))

        with open(root / MANIFEST_FILE, 'r') as f:
            manifest = json.load(f)
        _validate_manifest(manifest)

        width = int(manifest["width"])
        height = int(manifest["height"])
        dimensions = int(manifest["dimensions"])

        with np.load(root / NETWORK_FILE, allow_pickle=False) as arrays:
            ref_vectors = np.array(arrays["ref_vectors"], dtype=np.float64)
            data_weights = np.array(arrays["data_weights"], dtype=np.float64)

        if ref_vectors.shape != (width * height, dimensions):
            raise CacheValidationError(
                f"ref_vectors shape {ref_vectors.shape} does not match manifest "
                f"({width * height}, {dimensions})"
            )
        if data_weights.shape != (dimensions,):
            raise CacheValidationError(
                f"data_weights shape {data_weights.shape} does not match dimensions {dimensions}"
            )

        with open(root / TRACK_POSITIONS_FILE, 'r') as f:
            track_positions = _deserialize_track_positions(json.load(f))

        for track_id, positions in track_positions.items():
            for position in positions:
                if not (0 <= position.x < width and 0 <= position.y < height):
                    raise CacheValidationError(
                        f"Track {track_id} position {tuple(position)} outside {width}x{height} grid"
                    )

        network = Network.from_arrays(width, height, ref_vectors, data_weights)
        return TrainedModel(network, track_positions)

    def read(self) -> TrainedModel | None:
        """
        Load the cached model.

        Returns:
            The model, or None when the cache is missing or unusable
        """
        root = self.current_dir
        if root is None or not (root / MANIFEST_FILE).exists():
            logger.debug(f"No cached model in {self.cache_dir}")
            return None

        try:
            model = self._load(root)
        except (OSError, ValueError, KeyError, TypeError, zipfile.BadZipFile) as e:
            logger.warning(f"Ignoring unusable model cache in {self.cache_dir}: {e}")
            return None

        logger.info(f"Loaded cached model from {root}")
        return model

    def invalidate(self) -> None:
        """Delete the cached model, if any."""
        if self.cache_dir.exists():
            shutil.rmtree(self.cache_dir)
            logger.info(f"Invalidated model cache {self.cache_dir}")

    def get_cache_info(self) -> dict[str, Any]:
        """
        Get information about the cached model.

        Returns:
            Dictionary with cache statistics
        """
        info: dict[str, Any] = {
            "cache_dir": str(self.cache_dir),
            "exists": self.exists(),
        }
        if not info["exists"]:
            return info

        current = self.current_dir
        try:
            with open(current / MANIFEST_FILE, 'r') as f:
                manifest = json.load(f)
            info.update({
                "version": current.name,
                "width": manifest.get("width"),
                "height": manifest.get("height"),
                "dimensions": manifest.get("dimensions"),
                "track_count": manifest.get("track_count"),
                "created_at_utc": manifest.get("created_at_utc"),
                "size_kb": round(
                    sum(p.stat().st_size for p in current.iterdir() if p.is_file()) / 1024, 2
                ),
            })
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read cache manifest: {e}")

        return info

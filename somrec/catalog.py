"""Catalog interfaces consumed by the engine, plus an in-memory implementation."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from .types import TrackArtistLinkType

ArtistLink = tuple[int, TrackArtistLinkType]


class Catalog(Protocol):
    """Protocol for catalog relationships and existence checks."""

    def track_ids(self) -> list[int]:
        """Return every track ID that may be used for training."""
        ...

    def track_release(self, track_id: int) -> int | None:
        """Return the release of one track, if any."""
        ...

    def track_artist_links(self, track_id: int) -> Iterable[ArtistLink]:
        """Return (artist ID, link type) pairs for one track."""
        ...

    def track_list_track_ids(self, track_list_id: int) -> list[int] | None:
        """Return the tracks of one track list, or None if the list is unknown."""
        ...

    def track_exists(self, track_id: int) -> bool:
        ...

    def release_exists(self, release_id: int) -> bool:
        ...

    def artist_exists(self, artist_id: int) -> bool:
        ...


def parse_link_type(value: str | int | TrackArtistLinkType) -> TrackArtistLinkType:
    """Accept enum members, ordinals or names like 'performer' / 'RELEASE_ARTIST'."""
    if isinstance(value, TrackArtistLinkType):
        return value
    if isinstance(value, int):
        return TrackArtistLinkType(value)
    try:
        return TrackArtistLinkType[str(value).strip().upper().replace("-", "_")]
    except KeyError as exc:
        raise ValueError(f"Unknown artist link type: {value!r}") from exc


@dataclass
class CatalogTrack:
    track_id: int
    release_id: int | None = None
    artist_links: list[ArtistLink] = field(default_factory=list)


class InMemoryCatalog:
    """
    Dictionary-backed catalog.

    JSON layout accepted by from_dict/from_json:
        {
          "tracks": [
            {"id": 1, "release": 10, "artists": [{"id": 5, "link_type": "performer"}]}
          ],
          "releases": [10],
          "artists": [5],
          "track_lists": {"7": [1, 2]}
        }

    "releases" and "artists" are optional; when omitted, every release or
    artist referenced by a track exists.
    """

    def __init__(
        self,
        tracks: Iterable[CatalogTrack] = (),
        release_ids: Iterable[int] | None = None,
        artist_ids: Iterable[int] | None = None,
        track_lists: Mapping[int, list[int]] | None = None,
    ):
        self._tracks: dict[int, CatalogTrack] = {track.track_id: track for track in tracks}

        if release_ids is None:
            release_ids = {t.release_id for t in self._tracks.values() if t.release_id is not None}
        if artist_ids is None:
            artist_ids = {
                artist_id for t in self._tracks.values() for artist_id, _ in t.artist_links
            }

        self._release_ids: set[int] = set(release_ids)
        self._artist_ids: set[int] = set(artist_ids)
        self._track_lists: dict[int, list[int]] = {
            int(k): list(v) for k, v in (track_lists or {}).items()
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> InMemoryCatalog:
        tracks = []
        for row in payload.get("tracks", []):
            links = [
                (int(link["id"]), parse_link_type(link.get("link_type", "artist")))
                for link in row.get("artists", [])
            ]
            release = row.get("release")
            tracks.append(
                CatalogTrack(
                    track_id=int(row["id"]),
                    release_id=int(release) if release is not None else None,
                    artist_links=links,
                )
            )

        release_ids = payload.get("releases")
        artist_ids = payload.get("artists")
        return cls(
            tracks,
            release_ids=[int(r) for r in release_ids] if release_ids is not None else None,
            artist_ids=[int(a) for a in artist_ids] if artist_ids is not None else None,
            track_lists={int(k): [int(t) for t in v] for k, v in payload.get("track_lists", {}).items()},
        )

    @classmethod
    def from_json(cls, path: str | Path) -> InMemoryCatalog:
        with open(path, 'r') as f:
            return cls.from_dict(json.load(f))

    # =========================================================================
    # Catalog protocol
    # =========================================================================

    def track_ids(self) -> list[int]:
        return sorted(self._tracks)

    def track_release(self, track_id: int) -> int | None:
        track = self._tracks.get(track_id)
        return track.release_id if track else None

    def track_artist_links(self, track_id: int) -> list[ArtistLink]:
        track = self._tracks.get(track_id)
        return list(track.artist_links) if track else []

    def track_list_track_ids(self, track_list_id: int) -> list[int] | None:
        track_ids = self._track_lists.get(track_list_id)
        return list(track_ids) if track_ids is not None else None

    def track_exists(self, track_id: int) -> bool:
        return track_id in self._tracks

    def release_exists(self, release_id: int) -> bool:
        return release_id in self._release_ids

    def artist_exists(self, artist_id: int) -> bool:
        return artist_id in self._artist_ids

    # =========================================================================
    # Mutation
    # =========================================================================

    def add_track(self, track: CatalogTrack) -> None:
        self._tracks[track.track_id] = track
        if track.release_id is not None:
            self._release_ids.add(track.release_id)
        self._artist_ids.update(artist_id for artist_id, _ in track.artist_links)

    def remove_track(self, track_id: int) -> None:
        self._tracks.pop(track_id, None)

    def remove_release(self, release_id: int) -> None:
        self._release_ids.discard(release_id)

    def remove_artist(self, artist_id: int) -> None:
        self._artist_ids.discard(artist_id)

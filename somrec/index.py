"""
Position-Entity Index: grid positions <-> catalog entities.

Derived from a trained model's track positions plus catalog relationships.
The whole index is rebuilt from scratch on every model load; nothing is
updated incrementally.

Usage:
    from somrec.index import PositionEntityIndex, find_similar

    index = PositionEntityIndex.build(network.width, network.height, track_positions, catalog)
    similar = find_similar([track_id], index.tracks, network, max_count=10)
"""

from __future__ import annotations

import heapq
import logging
from collections.abc import Callable, Iterable, Mapping

from .catalog import Catalog
from .som.network import CancelPredicate, Network
from .types import Position, TrackArtistLinkType

logger = logging.getLogger(__name__)

TrackPositions = Mapping[int, frozenset[Position]]


class EntityIndex:
    """Entity -> positions map and its inverse position -> entities matrix."""

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self._positions: dict[int, set[Position]] = {}
        self._matrix: list[set[int]] = [set() for _ in range(width * height)]

    def add(self, entity_id: int, position: Position) -> None:
        """Record that an entity occupies a cell. Adding twice is a no-op."""
        self._positions.setdefault(entity_id, set()).add(position)
        self._matrix[position.y * self.width + position.x].add(entity_id)

    def positions_of(self, entity_id: int) -> frozenset[Position]:
        return frozenset(self._positions.get(entity_id, ()))

    def entities_at(self, position: Position) -> frozenset[int]:
        return frozenset(self._matrix[position.y * self.width + position.x])

    def entity_ids(self) -> list[int]:
        return sorted(self._positions)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._positions

    def __len__(self) -> int:
        return len(self._positions)


class PositionEntityIndex:
    """Track, release and per-link-type artist indices for one model."""

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self.tracks = EntityIndex(width, height)
        self.releases = EntityIndex(width, height)
        # One table per link type, addressed by the enum ordinal
        self.artists: tuple[EntityIndex, ...] = tuple(
            EntityIndex(width, height) for _ in TrackArtistLinkType
        )

    def artist_index(self, link_type: TrackArtistLinkType) -> EntityIndex:
        return self.artists[int(link_type)]

    @classmethod
    def build(
        cls,
        width: int,
        height: int,
        track_positions: TrackPositions,
        catalog: Catalog,
        is_cancelled: CancelPredicate | None = None,
    ) -> PositionEntityIndex | None:
        """
        Build every index from track positions and catalog relationships.

        Returns:
            The populated index, or None if cancellation was requested
        """
        index = cls(width, height)

        logger.debug("Constructing maps...")
        for track_id in sorted(track_positions):
            if is_cancelled is not None and is_cancelled():
                logger.debug("Index construction cancelled")
                return None

            positions = track_positions[track_id]
            release_id = catalog.track_release(track_id)
            artist_links = list(catalog.track_artist_links(track_id))

            for position in positions:
                index.tracks.add(track_id, position)
                if release_id is not None:
                    index.releases.add(release_id, position)
                for artist_id, link_type in artist_links:
                    index.artist_index(link_type).add(artist_id, position)

        logger.debug(
            f"Constructing maps DONE ({len(index.tracks)} tracks, "
            f"{len(index.releases)} releases)"
        )
        return index


def find_similar(
    query_ids: Iterable[int],
    entity_index: EntityIndex,
    network: Network,
    max_count: int,
    accept: Callable[[int], bool] | None = None,
    max_distance: float | None = None,
) -> list[int]:
    """
    Collect entities near the query entities on the grid.

    Starts from the cells the query entities occupy and expands one cell at
    a time: the next cell is the unsearched grid neighbor whose reference
    vector is closest to an already searched cell. Entities are returned in
    discovery order (sorted by ID within one cell), excluding the query
    entities and anything rejected by ``accept``.

    Args:
        query_ids: Entities to find neighbors for
        entity_index: Index of the matching entity kind
        network: Trained network the index was built from
        max_count: Maximum number of results
        accept: Optional filter (e.g. catalog existence check)
        max_distance: Stop expanding into cells farther than this

    Returns:
        Up to max_count entity IDs
    """
    query_ids = set(query_ids)
    if max_count <= 0:
        return []

    start: set[Position] = set()
    for entity_id in query_ids:
        start |= entity_index.positions_of(entity_id)
    if not start:
        return []

    results: list[int] = []
    seen: set[int] = set(query_ids)
    searched: set[Position] = set()
    frontier: list[tuple[float, int, int]] = []  # (distance, y, x) heap
    best: dict[Position, float] = {}

    def visit(position: Position) -> None:
        searched.add(position)
        for entity_id in sorted(entity_index.entities_at(position)):
            if len(results) >= max_count:
                return
            if entity_id in seen:
                continue
            seen.add(entity_id)
            if accept is None or accept(entity_id):
                results.append(entity_id)

    def extend_frontier(position: Position) -> None:
        for neighbor in network.neighbors(position):
            if neighbor in searched:
                continue
            distance = network.ref_vector_distance(position, neighbor)
            if distance < best.get(neighbor, float("inf")):
                best[neighbor] = distance
                heapq.heappush(frontier, (distance, neighbor.y, neighbor.x))

    for position in sorted(start, key=lambda p: (p.y, p.x)):
        visit(position)
    for position in start:
        extend_frontier(position)

    while len(results) < max_count and frontier:
        distance, y, x = heapq.heappop(frontier)
        position = Position(x, y)
        if position in searched or distance > best[position]:
            continue
        if max_distance is not None and distance > max_distance:
            break
        visit(position)
        extend_frontier(position)

    return results

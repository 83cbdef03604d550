"""Tests for somrec.catalog."""

import json

import pytest

from somrec.catalog import CatalogTrack, InMemoryCatalog, parse_link_type
from somrec.types import TrackArtistLinkType

pytestmark = pytest.mark.unit


class TestParseLinkType:
    @pytest.mark.parametrize("value,expected", [
        ("performer", TrackArtistLinkType.PERFORMER),
        ("Release-Artist", TrackArtistLinkType.RELEASE_ARTIST),
        (2, TrackArtistLinkType.COMPOSER),
        (TrackArtistLinkType.WRITER, TrackArtistLinkType.WRITER),
    ])
    def test_accepted_forms(self, value, expected):
        assert parse_link_type(value) is expected

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown artist link type"):
            parse_link_type("drummer")

    def test_ordinals_follow_declaration_order(self):
        assert [int(t) for t in TrackArtistLinkType] == list(range(11))


class TestInMemoryCatalog:
    def test_derives_existing_releases_and_artists(self, scenario_catalog):
        assert scenario_catalog.track_ids() == list(range(1, 9))
        assert scenario_catalog.release_exists(100)
        assert scenario_catalog.artist_exists(203)
        assert scenario_catalog.artist_exists(301)
        assert not scenario_catalog.release_exists(999)

    def test_relationships(self, scenario_catalog):
        assert scenario_catalog.track_release(3) == 101
        assert scenario_catalog.track_artist_links(3) == [
            (201, TrackArtistLinkType.PERFORMER),
            (301, TrackArtistLinkType.COMPOSER),
        ]
        assert scenario_catalog.track_release(42) is None
        assert scenario_catalog.track_artist_links(42) == []

    def test_track_lists(self, scenario_catalog):
        assert scenario_catalog.track_list_track_ids(2) == [1, 3]
        assert scenario_catalog.track_list_track_ids(9) is None

    def test_removal(self, scenario_catalog):
        scenario_catalog.remove_track(2)
        scenario_catalog.remove_release(101)
        scenario_catalog.remove_artist(200)

        assert not scenario_catalog.track_exists(2)
        assert not scenario_catalog.release_exists(101)
        assert not scenario_catalog.artist_exists(200)
        assert 2 not in scenario_catalog.track_ids()

    def test_add_track_registers_related_entities(self):
        catalog = InMemoryCatalog()
        catalog.add_track(CatalogTrack(1, release_id=10, artist_links=[(5, TrackArtistLinkType.MIXER)]))

        assert catalog.track_exists(1)
        assert catalog.release_exists(10)
        assert catalog.artist_exists(5)

    def test_explicit_entity_sets(self):
        catalog = InMemoryCatalog([CatalogTrack(1, release_id=10)], release_ids=[], artist_ids=[7])
        assert not catalog.release_exists(10)
        assert catalog.artist_exists(7)


class TestFromJson:
    def test_loads_document(self, tmp_path):
        payload = {
            "tracks": [
                {"id": 1, "release": 10, "artists": [{"id": 5, "link_type": "composer"}]},
                {"id": 2, "artists": [{"id": 6}]},
            ],
            "track_lists": {"3": [2, 1]},
        }
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps(payload), encoding="utf-8")

        catalog = InMemoryCatalog.from_json(path)

        assert catalog.track_ids() == [1, 2]
        assert catalog.track_release(1) == 10
        assert catalog.track_release(2) is None
        assert catalog.track_artist_links(1) == [(5, TrackArtistLinkType.COMPOSER)]
        assert catalog.track_artist_links(2) == [(6, TrackArtistLinkType.ARTIST)]
        assert catalog.track_list_track_ids(3) == [2, 1]
        assert catalog.artist_exists(6)

    def test_bad_link_type_rejected(self):
        payload = {"tracks": [{"id": 1, "artists": [{"id": 5, "link_type": "nope"}]}]}
        with pytest.raises(ValueError):
            InMemoryCatalog.from_dict(payload)

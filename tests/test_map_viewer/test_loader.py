"""Tests for map_viewer loader module."""

import json

import pytest

from src.map_viewer.loader import TrackData, load_track


class TestLoadTrackJson:
    """Tests for JSON track files."""

    def test_list_of_pairs(self, tmp_path):
        """[lat, lon] pairs become raw fixes."""
        path = tmp_path / "track.json"
        path.write_text(json.dumps([[48.1, 2.1], [48.2, 2.2]]))

        track = load_track(str(path))

        assert isinstance(track, TrackData)
        assert track.fixes == [
            {"latitude": 48.1, "longitude": 2.1},
            {"latitude": 48.2, "longitude": 2.2},
        ]
        assert track.skipped == 0

    def test_object_with_fixes_and_short_keys(self, tmp_path):
        """A {"fixes": [...]} wrapper with lat/lon keys is accepted."""
        path = tmp_path / "track.json"
        path.write_text(json.dumps({"fixes": [{"lat": 1.0, "lon": 2.0}, {"lat": 3.0, "lng": 4.0}]}))

        assert load_track(str(path)).fixes == [
            {"latitude": 1.0, "longitude": 2.0},
            {"latitude": 3.0, "longitude": 4.0},
        ]

    def test_unreadable_rows_skipped(self, tmp_path):
        """Rows without both coordinates are counted, not loaded."""
        path = tmp_path / "track.json"
        path.write_text(json.dumps([[1.0, 2.0], {"lat": 1.0}, "junk", [1, 2, 3]]))

        track = load_track(str(path))

        assert len(track.fixes) == 1
        assert track.skipped == 3

    def test_values_are_not_validated_here(self, tmp_path):
        """Out-of-range values pass through for the position source to reject."""
        path = tmp_path / "track.json"
        path.write_text(json.dumps([[500.0, 2.0]]))
        assert load_track(str(path)).fixes == [{"latitude": 500.0, "longitude": 2.0}]

    def test_invalid_json_raises(self, tmp_path):
        path = tmp_path / "track.json"
        path.write_text("{not json")
        with pytest.raises(ValueError):
            load_track(str(path))

    def test_wrong_top_level_type_raises(self, tmp_path):
        path = tmp_path / "track.json"
        path.write_text(json.dumps({"points": []}))
        with pytest.raises(ValueError):
            load_track(str(path))


class TestLoadTrackCsv:
    """Tests for CSV track files."""

    def test_header_columns_case_insensitive(self, tmp_path):
        """Numeric strings are converted, headers matched case-insensitively."""
        path = tmp_path / "track.csv"
        path.write_text("Timestamp,Latitude,Longitude\n1,48.5,2.5\n2,48.6,2.6\n")

        assert load_track(str(path)).fixes == [
            {"latitude": 48.5, "longitude": 2.5},
            {"latitude": 48.6, "longitude": 2.6},
        ]

    def test_unparseable_number_kept_as_text(self, tmp_path):
        """Garbage is left as-is so validation drops it later."""
        path = tmp_path / "track.csv"
        path.write_text("lat,lon\nnorth,2.5\n")
        assert load_track(str(path)).fixes == [{"latitude": "north", "longitude": 2.5}]

    def test_empty_file_raises(self, tmp_path):
        path = tmp_path / "track.csv"
        path.write_text("")
        with pytest.raises(ValueError):
            load_track(str(path))


class TestLoadTrackErrors:
    """Tests for file-level errors."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_track(str(tmp_path / "nope.json"))

    def test_unknown_extension(self, tmp_path):
        path = tmp_path / "track.gpx"
        path.write_text("<gpx/>")
        with pytest.raises(ValueError):
            load_track(str(path))

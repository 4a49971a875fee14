"""Tests for the location history and its display markers."""

from __future__ import annotations

import pytest

from floorprint.history import LocationHistory
from floorprint.models import MapAnchor, MarkerPoint

from .helpers import make_session


class TestMarkers:
    def test_nearby_tap_moves_marker_by_running_average(self) -> None:
        history = LocationHistory(same_location_threshold=18.0)
        history.add_marker(0, 100.0, 100.0)
        history.add_marker(0, 110.0, 100.0)
        marker = history.add_marker(0, 90.0, 103.0)

        assert marker.capture_count == 3
        assert marker.x == pytest.approx(100.0)
        assert marker.y == pytest.approx(101.0)
        assert history.markers_for_page(0) == [marker]

    def test_distant_tap_adds_marker(self) -> None:
        history = LocationHistory(same_location_threshold=18.0)
        history.add_marker(0, 0.0, 0.0)
        history.add_marker(0, 100.0, 0.0)
        assert len(history.markers_for_page(0)) == 2

    def test_marker_proximity_uses_meters_per_unit(self) -> None:
        history = LocationHistory(same_location_threshold=18.0, meters_per_unit=2.0)
        history.add_session(make_session(x=100.0, y=100.0))
        history.add_session(make_session(x=110.0, y=100.0))

        assert len(history.sessions) == 2
        assert len(history.markers_for_page(0)) == 2, (
            "10 map units at 2 m/unit is 20 m, beyond the 18 m threshold; "
            "markers must agree with session merging."
        )

    def test_markers_are_per_page(self) -> None:
        history = LocationHistory()
        history.add_marker(0, 10.0, 10.0)
        history.add_marker(1, 10.0, 10.0)
        assert len(history.markers_for_page(0)) == 1
        assert len(history.markers_for_page(1)) == 1
        assert history.markers_for_page(7) == []


class TestAddSession:
    def test_merges_and_tracks_last_capture(self) -> None:
        history = LocationHistory(same_location_threshold=18.0)
        history.add_session(make_session(x=100.0, y=100.0))
        merged = history.add_session(make_session(x=104.0, y=100.0))

        assert history.sessions == [merged]
        assert merged.averaged_from_count == 2
        assert history.last_captured_anchor == MapAnchor(0, 104.0, 100.0), (
            "The last captured anchor is where the user tapped, not the merged centroid."
        )
        assert history.markers_for_page(0)[0].capture_count == 2

    def test_count_captures_near(self) -> None:
        history = LocationHistory(same_location_threshold=18.0)
        history.add_session(make_session(x=0.0, y=0.0))
        history.add_session(make_session(x=100.0, y=0.0))
        assert history.count_captures_near(MapAnchor(0, 5.0, 0.0)) == 1
        assert history.count_captures_near(MapAnchor(0, 50.0, 0.0)) == 0
        assert history.count_captures_near(MapAnchor(1, 0.0, 0.0)) == 0


class TestClearing:
    def test_clear_page_keeps_other_pages(self) -> None:
        history = LocationHistory()
        history.add_session(make_session(page_index=0))
        history.add_session(make_session(page_index=1))

        history.clear_page(0)

        assert [s.anchor.page_index for s in history.sessions] == [1]
        assert history.markers_for_page(0) == []
        assert len(history.markers_for_page(1)) == 1

    def test_clear_all(self) -> None:
        history = LocationHistory()
        history.add_session(make_session())
        history.selected_anchor = MapAnchor(0, 1.0, 1.0)

        history.clear_all()

        assert history.sessions == []
        assert history.page_markers == {}
        assert history.selected_anchor is None
        assert history.last_captured_anchor is None


class TestHistorySerialisation:
    def test_round_trip(self) -> None:
        history = LocationHistory()
        history.add_session(make_session(x=10.0, y=20.0, page_index=2, lat=50.0))
        history.selected_anchor = MapAnchor(2, 11.0, 21.0)

        restored = LocationHistory.from_dict(history.to_dict())

        assert restored.sessions == history.sessions
        assert restored.page_markers == {2: [MarkerPoint(10.0, 20.0, 1)]}
        assert restored.selected_anchor == history.selected_anchor
        assert restored.last_captured_anchor == history.last_captured_anchor

    def test_corrupt_entries_are_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        good = make_session().to_dict()
        data = {
            "sessions": [good, {"session_id": "broken"}],
            "markers": {"0": [{"x": 1, "y": 2}], "not-a-page": [{"x": 1, "y": 2}]},
            "selected_anchor": {"x": 1},
            "last_captured_anchor": None,
        }

        with caplog.at_level("WARNING"):
            restored = LocationHistory.from_dict(data)

        assert len(restored.sessions) == 1
        assert list(restored.page_markers) == [0]
        assert restored.selected_anchor is None
        assert "Skipping corrupt capture session" in caplog.text

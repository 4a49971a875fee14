"""
Location history: captured sessions plus per-page display markers.

Markers are what a map view draws for captured spots. They are kept apart
from sessions because they follow a different averaging rule: each tap moves
the nearest marker by a running average weighted by how many captures it
already represents.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Self

from .aggregation import anchors_near, merge_into
from .const import DEFAULT_METERS_PER_UNIT, DEFAULT_SAME_LOCATION_THRESHOLD
from .models import CaptureSession, MapAnchor, MarkerPoint

_LOGGER = logging.getLogger(__name__)


class LocationHistory:
    """Owns every captured location and the markers shown for them."""

    def __init__(
        self,
        same_location_threshold: float = DEFAULT_SAME_LOCATION_THRESHOLD,
        meters_per_unit: float = DEFAULT_METERS_PER_UNIT,
    ) -> None:
        self.same_location_threshold = same_location_threshold
        self.meters_per_unit = meters_per_unit
        self.sessions: list[CaptureSession] = []
        self.page_markers: dict[int, list[MarkerPoint]] = {}
        self.selected_anchor: MapAnchor | None = None
        self.last_captured_anchor: MapAnchor | None = None

    def add_session(self, session: CaptureSession) -> CaptureSession:
        """
        Fold a finished capture into the history.

        Merges with nearby sessions, drops a marker at the tapped spot and
        records the spot as the last captured anchor. Returns the session
        that now represents the location.
        """
        tapped = session.anchor
        self.sessions, merged = merge_into(
            self.sessions,
            session,
            proximity_threshold=self.same_location_threshold,
            meters_per_unit=self.meters_per_unit,
        )
        self.add_marker(tapped.page_index, tapped.x, tapped.y)
        self.last_captured_anchor = tapped
        return merged

    def count_captures_near(self, anchor: MapAnchor) -> int:
        """Number of stored sessions that a capture at anchor would merge with."""
        return sum(
            1
            for s in self.sessions
            if anchors_near(s.anchor, anchor, self.same_location_threshold, self.meters_per_unit)
        )

    def add_marker(self, page_index: int, x: float, y: float, capture_count: int = 1) -> MarkerPoint:
        """Add a marker, or pull the first marker within threshold (scaled to metres) towards (x, y)."""
        markers = self.page_markers.setdefault(page_index, [])
        for idx, old in enumerate(markers):
            if math.hypot(old.x - x, old.y - y) * self.meters_per_unit <= self.same_location_threshold:
                n = old.capture_count
                markers[idx] = MarkerPoint(
                    x=(old.x * n + x) / (n + 1),
                    y=(old.y * n + y) / (n + 1),
                    capture_count=old.capture_count + capture_count,
                )
                return markers[idx]
        marker = MarkerPoint(x=x, y=y, capture_count=capture_count)
        markers.append(marker)
        return marker

    def markers_for_page(self, page_index: int) -> list[MarkerPoint]:
        return list(self.page_markers.get(page_index, []))

    def clear_page(self, page_index: int) -> None:
        """Remove the markers and the sessions of one page."""
        self.page_markers[page_index] = []
        before = len(self.sessions)
        self.sessions = [s for s in self.sessions if s.anchor.page_index != page_index]
        _LOGGER.info("Cleared page %d (%d sessions removed)", page_index, before - len(self.sessions))

    def clear_all(self) -> None:
        self.page_markers.clear()
        self.sessions = []
        self.selected_anchor = None
        self.last_captured_anchor = None
        _LOGGER.info("Cleared all captured locations")

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessions": [s.to_dict() for s in self.sessions],
            "markers": {
                str(page): [m.to_dict() for m in markers] for page, markers in self.page_markers.items()
            },
            "selected_anchor": self.selected_anchor.to_dict() if self.selected_anchor else None,
            "last_captured_anchor": self.last_captured_anchor.to_dict() if self.last_captured_anchor else None,
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        same_location_threshold: float = DEFAULT_SAME_LOCATION_THRESHOLD,
        meters_per_unit: float = DEFAULT_METERS_PER_UNIT,
    ) -> Self:
        """
        Restore from to_dict() output.

        Entries that fail to deserialise are skipped with a warning so that one
        corrupt record does not lose the whole history.
        """
        history = cls(same_location_threshold=same_location_threshold, meters_per_unit=meters_per_unit)

        for session_data in data.get("sessions", []):
            try:
                history.sessions.append(CaptureSession.from_dict(session_data))
            except (KeyError, TypeError, ValueError) as err:
                _LOGGER.warning("Skipping corrupt capture session: %s", err)

        for page_key, markers_data in data.get("markers", {}).items():
            try:
                page_index = int(page_key)
                history.page_markers[page_index] = [MarkerPoint.from_dict(m) for m in markers_data]
            except (KeyError, TypeError, ValueError) as err:
                _LOGGER.warning("Skipping corrupt markers for page %s: %s", page_key, err)

        for attr in ("selected_anchor", "last_captured_anchor"):
            anchor_data = data.get(attr)
            if anchor_data is None:
                continue
            try:
                setattr(history, attr, MapAnchor.from_dict(anchor_data))
            except (KeyError, TypeError, ValueError) as err:
                _LOGGER.warning("Skipping corrupt %s: %s", attr, err)

        return history

"""
Merge repeat captures of the same physical spot into one location record.

A new capture whose anchor lies within the proximity threshold of existing
captures on the same page replaces all of them with a single merged session.

Merged summaries are a summary-of-summaries: every continuous field is the
unweighted mean of the contributing summaries' non-null values. A visit
backed by many raw samples counts the same as a short one. This is an
accepted approximation: it keeps the merge cost independent of how much raw
history is retained (only the newest visit's raw samples are kept). Do not
replace it with a raw-sample weighted mean without revisiting storage.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from .const import DEFAULT_METERS_PER_UNIT, DEFAULT_SAME_LOCATION_THRESHOLD
from .models import CaptureSession, CaptureSummary, MapAnchor, new_session_id
from .util import mean

if TYPE_CHECKING:
    from collections.abc import Sequence

_LOGGER = logging.getLogger(__name__)

_CONTINUOUS_FIELDS = ("lat", "lon", "h_acc_m", "mag_norm_ut", "pressure_kpa", "rel_alt_m")
_COUNTER_FIELDS = ("ble_unique_devices", "ble_sample_count", "ble_ibeacon_sample_count", "sample_count")


def anchors_near(
    a: MapAnchor,
    b: MapAnchor,
    threshold: float = DEFAULT_SAME_LOCATION_THRESHOLD,
    meters_per_unit: float = DEFAULT_METERS_PER_UNIT,
) -> bool:
    """True if both anchors are on the same page and within threshold (inclusive)."""
    if a.page_index != b.page_index:
        return False
    return math.hypot(a.x - b.x, a.y - b.y) * meters_per_unit <= threshold


def find_neighbours(
    existing: Sequence[CaptureSession],
    anchor: MapAnchor,
    threshold: float = DEFAULT_SAME_LOCATION_THRESHOLD,
    meters_per_unit: float = DEFAULT_METERS_PER_UNIT,
) -> list[CaptureSession]:
    """Sessions whose anchors count as the same location as anchor."""
    return [s for s in existing if anchors_near(s.anchor, anchor, threshold, meters_per_unit)]


def average_summaries(summaries: Sequence[CaptureSummary]) -> CaptureSummary:
    """
    Combine per-visit summaries.

    Continuous fields: mean of the non-null values (None if all are null).
    Counters: summed.
    """
    if not summaries:
        return CaptureSummary()
    values: dict[str, float | int | None] = {
        name: mean(v for s in summaries if (v := getattr(s, name)) is not None) for name in _CONTINUOUS_FIELDS
    }
    for name in _COUNTER_FIELDS:
        values[name] = sum(getattr(s, name) for s in summaries)
    return CaptureSummary(**values)


def _centroid(sessions: Sequence[CaptureSession], page_index: int) -> MapAnchor:
    count = len(sessions)
    return MapAnchor(
        page_index=page_index,
        x=sum(s.anchor.x for s in sessions) / count,
        y=sum(s.anchor.y for s in sessions) / count,
    )


def merge_sessions(existing: Sequence[CaptureSession], new_session: CaptureSession) -> CaptureSession:
    """
    Fold new_session and its neighbours into one session.

    The anchor is the unweighted centroid of all contributing anchors, so
    repeated imprecise taps converge on the middle. BLE samples from every
    visit are kept, existing visits first. Raw samples and the timestamp come
    from the newest visit.
    """
    contributors = [*existing, new_session]
    return CaptureSession(
        session_id=new_session_id(),
        timestamp=new_session.timestamp,
        anchor=_centroid(contributors, new_session.anchor.page_index),
        summary=average_summaries([s.summary for s in contributors]),
        samples=list(new_session.samples),
        ble_samples=[b for s in contributors for b in s.ble_samples],
        averaged_from_count=sum(s.averaged_from_count for s in contributors),
    )


def merge_into(
    existing: Sequence[CaptureSession],
    new_session: CaptureSession,
    proximity_threshold: float = DEFAULT_SAME_LOCATION_THRESHOLD,
    meters_per_unit: float = DEFAULT_METERS_PER_UNIT,
) -> tuple[list[CaptureSession], CaptureSession]:
    """
    Insert new_session into the location set, merging with nearby captures.

    Returns the updated location list and the session that now represents
    the location (new_session itself when nothing was nearby). The input
    sequence is not modified.
    """
    neighbours = find_neighbours(existing, new_session.anchor, proximity_threshold, meters_per_unit)
    if not neighbours:
        _LOGGER.debug(
            "New location on page %d at (%.1f, %.1f)",
            new_session.anchor.page_index,
            new_session.anchor.x,
            new_session.anchor.y,
        )
        return [*existing, new_session], new_session

    merged = merge_sessions(neighbours, new_session)
    superseded = {id(s) for s in neighbours}
    locations = [s for s in existing if id(s) not in superseded]
    locations.append(merged)

    _LOGGER.debug(
        "Merged capture into %d existing session(s) on page %d, now averaged from %d visits",
        len(neighbours),
        merged.anchor.page_index,
        merged.averaged_from_count,
    )
    return locations, merged

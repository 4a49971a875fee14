"""
Live map position estimation.

Tiers, first hit wins:
    1. Wi-Fi snap     best calibration fingerprint with average RSSI difference below threshold
    2. IDW            >= 2 calibration points: inverse-distance-squared over the k nearest by GPS
    3. single         exactly 1 calibration point: its pixel, unconditionally
    4. linear         no calibration points, >= 2 reference anchors: per-axis ratio transform
    5. unknown        origin sentinel

Estimation is best effort and never raises; missing inputs just drop to a
lower tier.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import NamedTuple, Protocol

from .const import (
    _LOGGER_SPAM_LESS,
    ANCHOR_EPSILON,
    DEFAULT_WIFI_MATCH_THRESHOLD,
    IDW_NEIGHBOURS,
    IDW_SNAP_DISTANCE_M,
    POSITION_SOURCE_DEGENERATE,
    POSITION_SOURCE_IDW,
    POSITION_SOURCE_LINEAR,
    POSITION_SOURCE_NEAREST,
    POSITION_SOURCE_SINGLE,
    POSITION_SOURCE_UNKNOWN,
    POSITION_SOURCE_WIFI,
    WIFI_MISSING_AP_PENALTY,
    WIFI_NO_MATCH_SCORE,
)
from .util import haversine_m

_LOGGER = logging.getLogger(__name__)


class MapPosition(NamedTuple):
    """Estimated map coordinate and the tier that produced it."""

    x: float
    y: float
    source: str

    @property
    def is_known(self) -> bool:
        return self.source not in (POSITION_SOURCE_UNKNOWN, POSITION_SOURCE_DEGENERATE)


UNKNOWN_POSITION = MapPosition(0.0, 0.0, POSITION_SOURCE_UNKNOWN)


class AccessPoint(NamedTuple):
    """One row of a Wi-Fi scan result."""

    bssid: str
    ssid: str
    level: int


class GeoReferenced(Protocol):
    """Anything pairing a GPS coordinate with a map pixel."""

    @property
    def gps(self) -> tuple[float, float]: ...

    @property
    def pixel(self) -> tuple[float, float]: ...


class Fingerprinted(GeoReferenced, Protocol):
    @property
    def wifi_fingerprint(self) -> Mapping[str, int]: ...


def fingerprint_from_scan(access_points: Iterable[AccessPoint], target_ssid: str | None = None) -> dict[str, int]:
    """BSSID -> RSSI for a scan, optionally keeping only one network name."""
    return {ap.bssid: ap.level for ap in access_points if target_ssid is None or ap.ssid == target_ssid}


def wifi_difference(live: Mapping[str, int], reference: Mapping[str, int]) -> float:
    """
    Score how far a live scan is from a reference fingerprint. Lower is closer.

    Every access point in the live scan contributes: its absolute RSSI
    difference if the reference also saw it, or a fixed penalty if not. The
    total is divided by the number of shared access points, not by the size
    of the scan. With nothing shared the score is a large sentinel.
    """
    total = 0.0
    matches = 0
    for bssid, rssi in live.items():
        if bssid in reference:
            total += abs(rssi - reference[bssid])
            matches += 1
        else:
            total += WIFI_MISSING_AP_PENALTY
    if matches == 0:
        return WIFI_NO_MATCH_SCORE
    return total / matches


class PositionEstimator:
    """
    Best-effort GPS/Wi-Fi to map-pixel transform.

    pixel_scale divides the output of the linear anchor tier only, for maps
    whose reference anchors are expressed in a different pixel space than
    the display.
    """

    def __init__(
        self,
        wifi_match_threshold: float = DEFAULT_WIFI_MATCH_THRESHOLD,
        neighbours: int = IDW_NEIGHBOURS,
        snap_distance_m: float = IDW_SNAP_DISTANCE_M,
        anchor_epsilon: float = ANCHOR_EPSILON,
        pixel_scale: float = 1.0,
    ) -> None:
        self.wifi_match_threshold = wifi_match_threshold
        self.neighbours = neighbours
        self.snap_distance_m = snap_distance_m
        self.anchor_epsilon = anchor_epsilon
        self.pixel_scale = pixel_scale

    def estimate(
        self,
        current_gps: tuple[float, float] | None,
        calibration_points: Sequence[Fingerprinted],
        fallback_anchors: Sequence[GeoReferenced] = (),
        current_wifi_scan: Mapping[str, int] | None = None,
    ) -> MapPosition:
        """Return the best available map position for the live inputs."""
        if current_wifi_scan and calibration_points:
            snapped = self.wifi_snap(current_wifi_scan, calibration_points)
            if snapped is not None:
                return snapped

        if len(calibration_points) >= 2:
            if current_gps is None:
                return UNKNOWN_POSITION
            return self.interpolate(current_gps, calibration_points)

        if len(calibration_points) == 1:
            x, y = calibration_points[0].pixel
            return MapPosition(x, y, POSITION_SOURCE_SINGLE)

        if len(fallback_anchors) >= 2 and current_gps is not None:
            return self.linear(current_gps, fallback_anchors[0], fallback_anchors[1])

        return UNKNOWN_POSITION

    def wifi_snap(
        self, current_wifi_scan: Mapping[str, int], calibration_points: Sequence[Fingerprinted]
    ) -> MapPosition | None:
        """Pixel of the closest fingerprint strictly under the threshold, else None."""
        best: Fingerprinted | None = None
        best_score = self.wifi_match_threshold
        for point in calibration_points:
            if not point.wifi_fingerprint:
                continue
            score = wifi_difference(current_wifi_scan, point.wifi_fingerprint)
            if score < best_score:
                best_score = score
                best = point
        if best is None:
            return None
        if _LOGGER.isEnabledFor(logging.DEBUG):
            _LOGGER.debug("Wi-Fi snap to %s with score %.1f", best.pixel, best_score)
        x, y = best.pixel
        return MapPosition(x, y, POSITION_SOURCE_WIFI)

    def interpolate(self, current_gps: tuple[float, float], points: Sequence[GeoReferenced]) -> MapPosition:
        """Inverse-distance-squared weighting over the k nearest points."""
        lat, lon = current_gps
        ranked = sorted(
            ((haversine_m(lat, lon, p.gps[0], p.gps[1]), p) for p in points),
            key=lambda entry: entry[0],
        )
        nearest = ranked[: min(self.neighbours, len(ranked))]

        dist, closest = nearest[0]
        if dist < self.snap_distance_m:
            x, y = closest.pixel
            return MapPosition(x, y, POSITION_SOURCE_NEAREST)

        total_weight = 0.0
        weighted_x = 0.0
        weighted_y = 0.0
        for dist, point in nearest:
            weight = 1 / (dist * dist)
            total_weight += weight
            weighted_x += point.pixel[0] * weight
            weighted_y += point.pixel[1] * weight
        return MapPosition(weighted_x / total_weight, weighted_y / total_weight, POSITION_SOURCE_IDW)

    def linear(
        self, current_gps: tuple[float, float], first: GeoReferenced, second: GeoReferenced
    ) -> MapPosition:
        """
        Per-axis ratio transform between two reference anchors.

        Latitude maps to pixel x and longitude to pixel y. Anchors that are
        too close on either axis give the degenerate origin instead of a
        division by (nearly) zero.
        """
        d_lat = second.gps[0] - first.gps[0]
        d_lon = second.gps[1] - first.gps[1]
        if abs(d_lat) < self.anchor_epsilon or abs(d_lon) < self.anchor_epsilon:
            _LOGGER_SPAM_LESS.warning(
                "degenerate_anchors",
                "Reference anchors %s and %s are too close to transform GPS",
                first.gps,
                second.gps,
            )
            return MapPosition(0.0, 0.0, POSITION_SOURCE_DEGENERATE)

        lat_ratio = (current_gps[0] - first.gps[0]) / d_lat
        lon_ratio = (current_gps[1] - first.gps[1]) / d_lon
        return MapPosition(
            (first.pixel[0] + lat_ratio * (second.pixel[0] - first.pixel[0])) / self.pixel_scale,
            (first.pixel[1] + lon_ratio * (second.pixel[1] - first.pixel[1])) / self.pixel_scale,
            POSITION_SOURCE_LINEAR,
        )

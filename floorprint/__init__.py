"""
Floorprint: spatially anchored indoor sensor capture.

Buffers GPS, magnetometer, gyroscope, barometer and BLE/iBeacon readings,
reduces each capture to a per-location summary, merges repeat visits to the
same spot, and estimates a live map position from GPS and Wi-Fi fingerprints.
"""

from __future__ import annotations

from .aggregation import average_summaries, find_neighbours, merge_into
from .capture import CaptureController, CaptureInProgressError
from .const import VERSION
from .fingerprint_collector import Advertisement, CollectorState, FingerprintCollector
from .history import LocationHistory
from .models import BLESample, CalibrationPoint, CaptureSession, CaptureSummary, MapAnchor, MarkerPoint, Sample
from .positioning import UNKNOWN_POSITION, MapPosition, PositionEstimator, wifi_difference
from .sample_buffer import SampleBuffer
from .sensor_feed import SensorSampler
from .summarizer import summarize, with_ble_counts

__version__ = VERSION

__all__ = [
    "UNKNOWN_POSITION",
    "Advertisement",
    "BLESample",
    "CalibrationPoint",
    "CaptureController",
    "CaptureInProgressError",
    "CaptureSession",
    "CaptureSummary",
    "CollectorState",
    "FingerprintCollector",
    "LocationHistory",
    "MapAnchor",
    "MapPosition",
    "MarkerPoint",
    "PositionEstimator",
    "Sample",
    "SampleBuffer",
    "SensorSampler",
    "average_summaries",
    "find_neighbours",
    "merge_into",
    "summarize",
    "wifi_difference",
    "with_ble_counts",
]

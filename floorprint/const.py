"""Constants for Floorprint indoor capture."""

# Base component constants
from __future__ import annotations

import logging
from typing import Final

from .log_spam_less import FloorprintLogSpamLess

# The version in the repository should always be 0.0.0 to reflect
# that the package has been checked out from git, not pulled from
# an officially built release.
VERSION = "0.0.0"

LOGSPAM_INTERVAL = 22
# Some warnings, like adverts arriving with no active session, happen on every
# packet. This value in seconds is how long we wait between emitting a
# particular message when encountering it on a hot path.

# =============================================================================
# Sampling and capture timing
# =============================================================================

SAMPLE_RATE_HZ: Final = 20.0  # Fixed-rate sensor snapshot cadence into the rolling buffer
BUFFER_RETENTION_SECONDS: Final = 30.0
# Retention must exceed prewarm + capture so that a finished capture can still
# read its whole window back from the buffer.
PREWARM_SECONDS: Final = 3.0  # Lead time included before the nominal capture start
CAPTURE_SECONDS: Final = 6.0  # Nominal capture duration

WINDOW_COUNT: Final = 5  # Sub-intervals used for the median-of-window-means summary
MIN_WINDOW_SECONDS: Final = 0.001  # 1ms floor on window width for degenerate spans
MIN_SAMPLES_FOR_SUMMARY: Final = 2

# =============================================================================
# Location merging
# =============================================================================

SAME_LOCATION_THRESHOLD: Final = 18.0
# Two captures whose anchors lie within this distance (map units scaled by
# meters_per_unit) are treated as repeat visits to the same physical spot.
METERS_PER_UNIT: Final = 1.0

# =============================================================================
# Position estimation
# =============================================================================

WIFI_MISSING_AP_PENALTY: Final = 100.0  # Added per live AP absent from a calibration fingerprint
WIFI_NO_MATCH_SCORE: Final = 9999.0  # Score when no access point is shared at all
WIFI_MATCH_THRESHOLD: Final = 30.0  # Average RSSI difference must be strictly below this to snap
IDW_NEIGHBOURS: Final = 3  # k nearest calibration points used for interpolation
IDW_SNAP_DISTANCE_M: Final = 0.5  # Closer than this returns the calibration pixel directly
ANCHOR_EPSILON: Final = 0.00001  # Minimum GPS delta between the two fallback anchors (degrees)
EARTH_RADIUS_M: Final = 6_371_000.0

POSITION_SOURCE_WIFI: Final = "wifi"
POSITION_SOURCE_NEAREST: Final = "nearest"
POSITION_SOURCE_IDW: Final = "idw"
POSITION_SOURCE_SINGLE: Final = "single"
POSITION_SOURCE_LINEAR: Final = "linear"
POSITION_SOURCE_DEGENERATE: Final = "degenerate"
POSITION_SOURCE_UNKNOWN: Final = "unknown"

# =============================================================================
# BLE / iBeacon
# =============================================================================

COMPANY_ID_APPLE: Final = 0x004C
IBEACON_PREFIX: Final = b"\x4c\x00\x02\x15"  # Apple company id (little endian) + type 0x02 + length 0x15
IBEACON_MIN_LENGTH: Final = 25  # prefix(4) + uuid(16) + major(2) + minor(2) + tx power(1)

BLE_NOT_SEEN_RSSI: Final = -100  # Placeholder RSSI for devices absent at a location in pivoted exports
DEFAULT_TX_POWER: Final = -59  # Calibrated iBeacon RSSI at 1m when nothing better is known
DEFAULT_PATH_LOSS_EXPONENT: Final = 2.5  # Indoors usually 2.5-4.0
MIN_DISTANCE: Final = 0.1

SCAN_STATE_UNKNOWN: Final = "unknown"
SCAN_STATE_READY: Final = "poweredOn"
SCAN_STATE_UNAVAILABLE: Final = "unavailable"

# =============================================================================
# Configuration keys
# =============================================================================

DOCS = {}

CONF_PREWARM_SECONDS, DEFAULT_PREWARM_SECONDS = "prewarm_seconds", PREWARM_SECONDS
DOCS[CONF_PREWARM_SECONDS] = "Seconds of buffered sensor data included before the capture start."

CONF_CAPTURE_SECONDS, DEFAULT_CAPTURE_SECONDS = "capture_seconds", CAPTURE_SECONDS
DOCS[CONF_CAPTURE_SECONDS] = "Duration of each capture, in seconds."

CONF_SAMPLE_RATE, DEFAULT_SAMPLE_RATE = "sample_rate_hz", SAMPLE_RATE_HZ
DOCS[CONF_SAMPLE_RATE] = "How often the sensor snapshot is appended to the rolling buffer."

CONF_BUFFER_RETENTION, DEFAULT_BUFFER_RETENTION = "buffer_retention_seconds", BUFFER_RETENTION_SECONDS
DOCS[CONF_BUFFER_RETENTION] = (
    "How long samples stay in the rolling buffer. Must cover prewarm plus capture."
)

CONF_WINDOW_COUNT, DEFAULT_WINDOW_COUNT = "window_count", WINDOW_COUNT
DOCS[CONF_WINDOW_COUNT] = "Number of equal-width windows used when summarising a capture."

CONF_SAME_LOCATION_THRESHOLD, DEFAULT_SAME_LOCATION_THRESHOLD = (
    "same_location_threshold",
    SAME_LOCATION_THRESHOLD,
)
DOCS[CONF_SAME_LOCATION_THRESHOLD] = (
    "Captures closer than this on the same page are averaged into one location."
)

CONF_METERS_PER_UNIT, DEFAULT_METERS_PER_UNIT = "meters_per_unit", METERS_PER_UNIT
DOCS[CONF_METERS_PER_UNIT] = "Scale from map units to metres for the proximity test."

CONF_WIFI_MATCH_THRESHOLD, DEFAULT_WIFI_MATCH_THRESHOLD = "wifi_match_threshold", WIFI_MATCH_THRESHOLD
DOCS[CONF_WIFI_MATCH_THRESHOLD] = "Maximum average RSSI difference for a Wi-Fi fingerprint snap."

CONF_REF_POWER, DEFAULT_REF_POWER = "ref_power", DEFAULT_TX_POWER
DOCS[CONF_REF_POWER] = "iBeacon RSSI at 1m used for exported distance estimates."

CONF_ATTENUATION, DEFAULT_ATTENUATION = "attenuation", DEFAULT_PATH_LOSS_EXPONENT
DOCS[CONF_ATTENUATION] = "Path loss exponent used for exported distance estimates."

_LOGGER: logging.Logger = logging.getLogger(__package__)
_LOGGER_SPAM_LESS = FloorprintLogSpamLess(_LOGGER, LOGSPAM_INTERVAL)

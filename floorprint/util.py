"""General helper utilities for Floorprint."""

from __future__ import annotations

import hashlib
import math
import statistics
from collections.abc import Iterable, Sequence
from functools import lru_cache

from .const import EARTH_RADIUS_M, MIN_DISTANCE


@lru_cache(1024)
def device_key(identifier: str) -> str:
    """
    Return the pseudonymous key for a BLE endpoint identifier.

    The key is the lower-case SHA-256 hex digest of the identifier string. It
    is what every dataset row is keyed on; the raw identifier is only ever
    kept alongside it as a debug field.
    """
    return hashlib.sha256(identifier.encode("utf-8")).hexdigest()


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two WGS84 points, in metres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def mag_norm(x: float | None, y: float | None, z: float | None) -> float | None:
    """Euclidean norm of a 3-axis field, or None unless all three axes are present."""
    if x is None or y is None or z is None:
        return None
    return math.sqrt(x * x + y * y + z * z)


def mean(values: Iterable[float]) -> float | None:
    """Arithmetic mean, or None for an empty input."""
    values = list(values)
    if not values:
        return None
    return statistics.fmean(values)


def median(values: Sequence[float]) -> float | None:
    """
    Median of a sequence, averaging the two middle values for even lengths.

    Returns None for an empty sequence.
    """
    if not values:
        return None
    return statistics.median(values)


def upper_median(values: Sequence[float]) -> float | None:
    """
    Return the element at index n // 2 of the sorted values.

    Used for RSSI series in exported datasets, where the statistic must be an
    observed reading rather than an interpolated one.
    """
    if not values:
        return None
    return sorted(values)[len(values) // 2]


def sample_stdev(values: Sequence[float]) -> float | None:
    """Sample standard deviation (n - 1 denominator), None with fewer than 2 values."""
    if len(values) < 2:
        return None
    return statistics.stdev(values)


@lru_cache(1024)
def rssi_to_metres(rssi: float, ref_power: float | None = None, attenuation: float | None = None) -> float:
    """
    Convert instant rssi value to a distance in metres.

    Simple log-distance path loss model:

    attenuation:    a factor representing environmental attenuation
                    along the path. Will vary by humidity, terrain etc.
    ref_power:      db. measured rssi when at 1m distance from rx. The will
                    be affected by both receiver sensitivity and transmitter
                    calibration, antenna design and orientation etc.

    Returns a minimum of MIN_DISTANCE (0.1m) so that very strong signals do
    not collapse to "0m".
    """
    if ref_power is None:
        message = "ref_power must be provided to compute distance"
        raise ValueError(message)
    if attenuation is None:
        message = "attenuation must be provided to compute distance"
        raise ValueError(message)

    distance = 10 ** ((ref_power - rssi) / (10 * attenuation))
    return max(MIN_DISTANCE, distance)


@lru_cache(256)
def clean_charbuf(instring: str | None) -> str:
    """
    Some people writing C on bluetooth devices seem to
    get confused between char arrays, strings and such. This
    function takes a potentially dodgy charbuf from a bluetooth
    device and cleans it of leading/trailing cruft
    and returns what's left, up to the first null, if any.

    If given None it returns an empty string.
    Characters trimmed are space, tab, CR, LF, NUL.
    """
    if instring is not None:
        return instring.strip(" \t\r\n\x00").split("\0")[0]
    return ""

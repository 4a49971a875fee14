"""
CSV dataset export.

Each writer produces one dataset file from the merged location sessions.
Page numbers are written 1-based. Missing values are written as empty cells.
"""

from __future__ import annotations

import csv
import json
import logging
from collections import defaultdict
from datetime import UTC
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .const import BLE_NOT_SEEN_RSSI, DEFAULT_ATTENUATION, DEFAULT_REF_POWER
from .util import mean, rssi_to_metres, sample_stdev, upper_median

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from .models import BLESample, CalibrationPoint, CaptureSession

_LOGGER = logging.getLogger(__name__)

MASTER_DATASET = "master_dataset.csv"
BLE_FINGERPRINTING = "ble_fingerprinting.csv"
MAGNETIC_FINGERPRINTING = "magnetic_fingerprinting.csv"
FLOOR_DETECTION = "floor_detection.csv"
IBEACON_TRILATERATION = "ibeacon_trilateration.csv"
IBEACON_REGISTRY_TEMPLATE = "ibeacon_registry_template.csv"

DEVICE_COLUMN_PREFIX_LEN = 8

MASTER_FIELDS = [
    "location_id",
    "timestamp",
    "captures_averaged",
    "floor_page",
    "map_x",
    "map_y",
    "gps_lat",
    "gps_lon",
    "gps_accuracy_m",
    "magnetic_field_uT",
    "pressure_kPa",
    "relative_altitude_m",
    "ble_devices_count",
    "ble_readings_count",
    "ibeacon_readings_count",
    "sensor_samples",
]
LOCATION_FIELDS = ["location_id", "floor_page", "map_x", "map_y"]
MAGNETIC_FIELDS = [*LOCATION_FIELDS, "magnetic_field_uT"]
FLOOR_FIELDS = ["location_id", "floor_page", "pressure_kPa", "relative_altitude_m", "gps_lat", "gps_lon"]
IBEACON_FIELDS = [
    *LOCATION_FIELDS,
    "ibeacon_uuid",
    "ibeacon_major",
    "ibeacon_minor",
    "rssi_mean",
    "rssi_median",
    "rssi_std",
    "reading_count",
    "estimated_distance_m",
]
REGISTRY_FIELDS = [
    "ibeacon_uuid",
    "ibeacon_major",
    "ibeacon_minor",
    "beacon_gps_lat",
    "beacon_gps_lon",
    "beacon_floor_page",
    "beacon_map_x",
    "beacon_map_y",
    "tx_power_dBm",
    "notes",
]


def fmt(value: float | None, decimals: int) -> str:
    """Fixed-point format, or an empty cell for None."""
    if value is None:
        return ""
    return f"{value:.{decimals}f}"


def format_timestamp(ts: datetime) -> str:
    """ISO 8601 in UTC with millisecond precision and a Z suffix."""
    return ts.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _location_cols(session: CaptureSession) -> dict[str, Any]:
    return {
        "location_id": session.session_id,
        "floor_page": session.anchor.page_index + 1,
        "map_x": fmt(session.anchor.x, 1),
        "map_y": fmt(session.anchor.y, 1),
    }


def _write_rows(path: Path, fieldnames: list[str], rows: list[dict[str, Any]]) -> Path:
    with path.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=fieldnames, lineterminator="\n")
        w.writeheader()
        w.writerows(rows)
    _LOGGER.debug("Wrote %d rows to %s", len(rows), path)
    return path


def write_master_dataset(sessions: Sequence[CaptureSession], out_dir: Path) -> Path:
    """Every summary field of every location."""
    rows = []
    for s in sessions:
        summary = s.summary
        rows.append(
            {
                "location_id": s.session_id,
                "timestamp": format_timestamp(s.timestamp),
                "captures_averaged": s.averaged_from_count,
                "floor_page": s.anchor.page_index + 1,
                "map_x": fmt(s.anchor.x, 1),
                "map_y": fmt(s.anchor.y, 1),
                "gps_lat": fmt(summary.lat, 6),
                "gps_lon": fmt(summary.lon, 6),
                "gps_accuracy_m": fmt(summary.h_acc_m, 1),
                "magnetic_field_uT": fmt(summary.mag_norm_ut, 2),
                "pressure_kPa": fmt(summary.pressure_kpa, 3),
                "relative_altitude_m": fmt(summary.rel_alt_m, 3),
                "ble_devices_count": summary.ble_unique_devices,
                "ble_readings_count": summary.ble_sample_count,
                "ibeacon_readings_count": summary.ble_ibeacon_sample_count,
                "sensor_samples": summary.sample_count,
            }
        )
    return _write_rows(out_dir / MASTER_DATASET, MASTER_FIELDS, rows)


def device_column(device_key: str) -> str:
    return f"ble_{device_key[:DEVICE_COLUMN_PREFIX_LEN]}"


def write_ble_fingerprinting(sessions: Sequence[CaptureSession], out_dir: Path) -> Path:
    """
    One row per location, one column per BLE device.

    Cells hold the median RSSI of that device at that location, or -100 if
    the device was never seen there.
    """
    device_keys = sorted({b.device_key for s in sessions for b in s.ble_samples})

    path = out_dir / BLE_FINGERPRINTING
    with path.open("w", encoding="utf-8", newline="") as f:
        # Plain rows rather than DictWriter: key prefixes may collide as column names.
        w = csv.writer(f, lineterminator="\n")
        w.writerow([*LOCATION_FIELDS, *(device_column(k) for k in device_keys)])
        for s in sessions:
            device_rssi: dict[str, list[int]] = defaultdict(list)
            for b in s.ble_samples:
                device_rssi[b.device_key].append(b.rssi)
            location = _location_cols(s)
            w.writerow(
                [
                    *(location[name] for name in LOCATION_FIELDS),
                    *(upper_median(device_rssi[k]) if k in device_rssi else BLE_NOT_SEEN_RSSI for k in device_keys),
                ]
            )
    _LOGGER.debug("Wrote %d locations x %d devices to %s", len(sessions), len(device_keys), path)
    return path


def write_magnetic_fingerprinting(sessions: Sequence[CaptureSession], out_dir: Path) -> Path:
    """Magnetic field norm per location. Locations without a reading are left out."""
    rows = [
        {**_location_cols(s), "magnetic_field_uT": fmt(s.summary.mag_norm_ut, 2)}
        for s in sessions
        if s.summary.mag_norm_ut is not None
    ]
    return _write_rows(out_dir / MAGNETIC_FINGERPRINTING, MAGNETIC_FIELDS, rows)


def write_floor_detection(sessions: Sequence[CaptureSession], out_dir: Path) -> Path:
    rows = [
        {
            "location_id": s.session_id,
            "floor_page": s.anchor.page_index + 1,
            "pressure_kPa": fmt(s.summary.pressure_kpa, 4),
            "relative_altitude_m": fmt(s.summary.rel_alt_m, 3),
            "gps_lat": fmt(s.summary.lat, 6),
            "gps_lon": fmt(s.summary.lon, 6),
        }
        for s in sessions
    ]
    return _write_rows(out_dir / FLOOR_DETECTION, FLOOR_FIELDS, rows)


def _group_ibeacons(ble_samples: Sequence[BLESample]) -> dict[tuple[str, int, int], list[int]]:
    grouped: dict[tuple[str, int, int], list[int]] = defaultdict(list)
    for b in ble_samples:
        if not b.is_ibeacon or b.ibeacon_uuid is None or b.ibeacon_major is None or b.ibeacon_minor is None:
            continue
        grouped[(b.ibeacon_uuid, b.ibeacon_major, b.ibeacon_minor)].append(b.rssi)
    return grouped


def write_ibeacon_trilateration(
    sessions: Sequence[CaptureSession],
    out_dir: Path,
    ref_power: float = DEFAULT_REF_POWER,
    attenuation: float = DEFAULT_ATTENUATION,
) -> Path:
    """
    One row per iBeacon per location with RSSI statistics.

    The distance column is a plain log-distance estimate from the median
    RSSI; it is only as good as ref_power and attenuation.
    """
    rows = []
    for s in sessions:
        for (beacon_uuid, major, minor), rssis in sorted(_group_ibeacons(s.ble_samples).items()):
            median_rssi = upper_median(rssis)
            rows.append(
                {
                    **_location_cols(s),
                    "ibeacon_uuid": beacon_uuid,
                    "ibeacon_major": major,
                    "ibeacon_minor": minor,
                    "rssi_mean": fmt(mean(rssis), 1),
                    "rssi_median": fmt(median_rssi, 1),
                    "rssi_std": fmt(sample_stdev(rssis), 2),
                    "reading_count": len(rssis),
                    "estimated_distance_m": fmt(rssi_to_metres(median_rssi, ref_power, attenuation), 2),
                }
            )
    return _write_rows(out_dir / IBEACON_TRILATERATION, IBEACON_FIELDS, rows)


def write_ibeacon_registry_template(
    sessions: Sequence[CaptureSession], out_dir: Path, ref_power: float = DEFAULT_REF_POWER
) -> Path:
    """Every iBeacon seen, with blank position columns for the surveyor to fill in."""
    beacons = sorted({key for s in sessions for key in _group_ibeacons(s.ble_samples)})
    rows = [
        {
            "ibeacon_uuid": beacon_uuid,
            "ibeacon_major": major,
            "ibeacon_minor": minor,
            "beacon_gps_lat": "",
            "beacon_gps_lon": "",
            "beacon_floor_page": "",
            "beacon_map_x": "",
            "beacon_map_y": "",
            "tx_power_dBm": f"{ref_power:g}",
            "notes": "",
        }
        for beacon_uuid, major, minor in beacons
    ]
    return _write_rows(out_dir / IBEACON_REGISTRY_TEMPLATE, REGISTRY_FIELDS, rows)


def write_all(
    sessions: Sequence[CaptureSession],
    out_dir: str | Path,
    ref_power: float = DEFAULT_REF_POWER,
    attenuation: float = DEFAULT_ATTENUATION,
) -> list[Path]:
    """Write every dataset file into out_dir and return their paths. Errors propagate."""
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    paths = [
        write_master_dataset(sessions, out),
        write_ble_fingerprinting(sessions, out),
        write_magnetic_fingerprinting(sessions, out),
        write_floor_detection(sessions, out),
        write_ibeacon_trilateration(sessions, out, ref_power, attenuation),
        write_ibeacon_registry_template(sessions, out, ref_power),
    ]
    _LOGGER.info("Exported %d locations to %s", len(sessions), out)
    return paths


def calibration_to_json(points: Sequence[CalibrationPoint]) -> str:
    """Calibration points as a JSON list of {pixel, gps, wifi}."""
    return json.dumps([p.to_dict() for p in points])

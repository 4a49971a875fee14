"""
Data model for captured locations.

All records are slotted dataclasses with ``to_dict``/``from_dict`` pairs that
produce JSON-safe dictionaries. Floats are passed through untouched so a
save/load cycle is exact to double precision.

Hierarchy:
    CaptureSession
    ├── MapAnchor          where on the map the capture was taken
    ├── CaptureSummary     reduced sensor state for the location
    ├── list[Sample]       raw sensor snapshots of the newest visit
    └── list[BLESample]    every BLE advertisement from every visit
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields
from datetime import UTC, datetime
from typing import Any, Self


@dataclass(slots=True, frozen=True)
class Sample:
    """One instant's sensor snapshot. Every sensor field is independently optional."""

    t: float
    lat: float | None = None
    lon: float | None = None
    h_acc_m: float | None = None
    speed_mps: float | None = None
    course_deg: float | None = None
    mag_x: float | None = None
    mag_y: float | None = None
    mag_z: float | None = None
    gyro_x: float | None = None
    gyro_y: float | None = None
    gyro_z: float | None = None
    pressure_kpa: float | None = None
    rel_alt_m: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for storage, omitting absent sensor fields."""
        return {f.name: value for f in fields(self) if (value := getattr(self, f.name)) is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Deserialize from storage."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})


@dataclass(slots=True)
class CaptureSummary:
    """
    Reduced sensor state for one location.

    Continuous fields are None when no valid input existed. The four counters
    are always >= 0 and are summed, never averaged, when locations merge.
    """

    lat: float | None = None
    lon: float | None = None
    h_acc_m: float | None = None
    mag_norm_ut: float | None = None
    pressure_kpa: float | None = None
    rel_alt_m: float | None = None
    ble_unique_devices: int = 0
    ble_sample_count: int = 0
    ble_ibeacon_sample_count: int = 0
    sample_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "lat": self.lat,
            "lon": self.lon,
            "h_acc_m": self.h_acc_m,
            "mag_norm_ut": self.mag_norm_ut,
            "pressure_kpa": self.pressure_kpa,
            "rel_alt_m": self.rel_alt_m,
            "ble_unique_devices": self.ble_unique_devices,
            "ble_sample_count": self.ble_sample_count,
            "ble_ibeacon_sample_count": self.ble_ibeacon_sample_count,
            "sample_count": self.sample_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            lat=data.get("lat"),
            lon=data.get("lon"),
            h_acc_m=data.get("h_acc_m"),
            mag_norm_ut=data.get("mag_norm_ut"),
            pressure_kpa=data.get("pressure_kpa"),
            rel_alt_m=data.get("rel_alt_m"),
            ble_unique_devices=int(data.get("ble_unique_devices", 0)),
            ble_sample_count=int(data.get("ble_sample_count", 0)),
            ble_ibeacon_sample_count=int(data.get("ble_ibeacon_sample_count", 0)),
            sample_count=int(data.get("sample_count", 0)),
        )


@dataclass(slots=True, frozen=True)
class MapAnchor:
    """A point on a map surface: page index plus x/y in map units."""

    page_index: int
    x: float
    y: float

    def to_dict(self) -> dict[str, Any]:
        return {"page_index": self.page_index, "x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(page_index=int(data["page_index"]), x=float(data["x"]), y=float(data["y"]))


@dataclass(slots=True, frozen=True)
class BLESample:
    """
    One BLE advertisement observation.

    device_key is the SHA-256 of raw_id and is the only identity used by the
    dataset. raw_id is kept for debugging only.
    """

    session_id: str
    t_offset_ms: int
    device_key: str
    raw_id: str
    rssi: int
    local_name: str | None = None
    is_ibeacon: bool = False
    ibeacon_uuid: str | None = None
    ibeacon_major: int | None = None
    ibeacon_minor: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "t_offset_ms": self.t_offset_ms,
            "device_key": self.device_key,
            "raw_id": self.raw_id,
            "rssi": self.rssi,
            "local_name": self.local_name,
            "is_ibeacon": self.is_ibeacon,
            "ibeacon_uuid": self.ibeacon_uuid,
            "ibeacon_major": self.ibeacon_major,
            "ibeacon_minor": self.ibeacon_minor,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            session_id=data["session_id"],
            t_offset_ms=int(data["t_offset_ms"]),
            device_key=data["device_key"],
            raw_id=data["raw_id"],
            rssi=int(data["rssi"]),
            local_name=data.get("local_name"),
            is_ibeacon=bool(data.get("is_ibeacon", False)),
            ibeacon_uuid=data.get("ibeacon_uuid"),
            ibeacon_major=data.get("ibeacon_major"),
            ibeacon_minor=data.get("ibeacon_minor"),
        )

    @property
    def ibeacon_id(self) -> str | None:
        """uuid|major|minor grouping key, None for non-iBeacon samples."""
        if not self.is_ibeacon or self.ibeacon_uuid is None:
            return None
        return f"{self.ibeacon_uuid}|{self.ibeacon_major}|{self.ibeacon_minor}"


def new_session_id() -> str:
    """Return a fresh session identifier."""
    return str(uuid.uuid4())


@dataclass(slots=True)
class CaptureSession:
    """
    One persisted location record.

    After a merge only the newest visit's raw samples are kept, while BLE
    samples from every visit are concatenated.
    """

    anchor: MapAnchor
    summary: CaptureSummary
    samples: list[Sample] = field(default_factory=list)
    ble_samples: list[BLESample] = field(default_factory=list)
    averaged_from_count: int = 1
    session_id: str = field(default_factory=new_session_id)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "timestamp": self.timestamp.isoformat(),
            "anchor": self.anchor.to_dict(),
            "summary": self.summary.to_dict(),
            "samples": [s.to_dict() for s in self.samples],
            "ble_samples": [b.to_dict() for b in self.ble_samples],
            "averaged_from_count": self.averaged_from_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        timestamp = datetime.fromisoformat(data["timestamp"])
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)
        return cls(
            session_id=data["session_id"],
            timestamp=timestamp,
            anchor=MapAnchor.from_dict(data["anchor"]),
            summary=CaptureSummary.from_dict(data.get("summary", {})),
            samples=[Sample.from_dict(s) for s in data.get("samples", [])],
            ble_samples=[BLESample.from_dict(b) for b in data.get("ble_samples", [])],
            averaged_from_count=max(1, int(data.get("averaged_from_count", 1))),
        )


@dataclass(slots=True)
class CalibrationPoint:
    """A GPS to map-pixel pairing, optionally with the Wi-Fi fingerprint seen there."""

    gps: tuple[float, float]
    pixel: tuple[float, float]
    wifi_fingerprint: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "gps": list(self.gps),
            "pixel": list(self.pixel),
            "wifi": dict(self.wifi_fingerprint),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        lat, lon = data["gps"]
        x, y = data["pixel"]
        wifi = data.get("wifi") or {}
        return cls(
            gps=(float(lat), float(lon)),
            pixel=(float(x), float(y)),
            wifi_fingerprint={str(bssid): int(rssi) for bssid, rssi in wifi.items()},
        )


@dataclass(slots=True)
class MarkerPoint:
    """Display marker on a map page, the running average of nearby capture taps."""

    x: float
    y: float
    capture_count: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {"x": self.x, "y": self.y, "capture_count": self.capture_count}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            capture_count=int(data.get("capture_count", 1)),
        )

"""Shared test doubles and builders for Floorprint tests."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from floorprint.models import BLESample, CaptureSession, CaptureSummary, MapAnchor
from floorprint.util import device_key

IBEACON_UUID = "E2C56DB5-DFFB-48D2-B060-D0F5A71096E0"


def ibeacon_payload(beacon_uuid: str = IBEACON_UUID, major: int = 1, minor: int = 2, tx_power: int = -59) -> bytes:
    """Raw manufacturer payload (company id included) for an iBeacon frame."""
    return (
        b"\x4c\x00\x02\x15"
        + uuid.UUID(beacon_uuid).bytes
        + major.to_bytes(2, "big")
        + minor.to_bytes(2, "big")
        + tx_power.to_bytes(1, "big", signed=True)
    )


class FakeBackend:
    """Scan backend double that records start/stop calls."""

    def __init__(self, ready: bool = True) -> None:
        self.ready = ready
        self.scanning = False
        self.start_calls = 0
        self.stop_calls = 0

    @property
    def is_ready(self) -> bool:
        return self.ready

    @property
    def is_scanning(self) -> bool:
        return self.scanning

    def start_scan(self) -> None:
        self.start_calls += 1
        self.scanning = True

    def stop_scan(self) -> None:
        self.stop_calls += 1
        self.scanning = False


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_ble_sample(raw_id: str = "peripheral-1", rssi: int = -70, session_id: str = "s1", **kwargs: Any) -> BLESample:
    return BLESample(
        session_id=session_id,
        t_offset_ms=kwargs.pop("t_offset_ms", 0),
        device_key=device_key(raw_id),
        raw_id=raw_id,
        rssi=rssi,
        **kwargs,
    )


def make_session(
    x: float = 100.0,
    y: float = 100.0,
    page_index: int = 0,
    ble_samples: list[BLESample] | None = None,
    averaged_from_count: int = 1,
    timestamp: datetime | None = None,
    **summary_fields: Any,
) -> CaptureSession:
    return CaptureSession(
        anchor=MapAnchor(page_index=page_index, x=x, y=y),
        summary=CaptureSummary(**summary_fields),
        ble_samples=ble_samples or [],
        averaged_from_count=averaged_from_count,
        timestamp=timestamp or datetime(2025, 3, 1, 12, 0, 0, tzinfo=UTC),
    )


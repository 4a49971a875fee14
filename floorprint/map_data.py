"""
Map description: named nodes, fixed reference anchors and user calibration.

The JSON layout uses the camelCase keys of the map files produced by the map
editor (``wifiFingerprint``, ``userCalibration``).
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Self

from .models import CalibrationPoint


def _fingerprint_from_json(raw: dict[str, Any] | None) -> dict[str, int] | None:
    if raw is None:
        return None
    return {str(bssid): int(rssi) for bssid, rssi in raw.items()}


def _pair(raw: list[Any]) -> tuple[float, float]:
    return float(raw[0]), float(raw[1])


@dataclass(slots=True)
class MapNode:
    """A searchable, named point of interest on the map."""

    id: str
    name: str
    pixel: tuple[float, float]
    type: str
    wifi_fingerprint: dict[str, int] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "pixel": list(self.pixel),
            "type": self.type,
            "wifiFingerprint": self.wifi_fingerprint,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            id=data["id"],
            name=data["name"],
            pixel=_pair(data["pixel"]),
            type=data["type"],
            wifi_fingerprint=_fingerprint_from_json(data.get("wifiFingerprint")),
        )


@dataclass(slots=True)
class ReferenceAnchor:
    """A GPS to pixel pairing shipped with the map or saved from user calibration."""

    id: str
    gps: tuple[float, float]
    pixel: tuple[float, float]
    wifi_fingerprint: dict[str, int] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "gps": list(self.gps),
            "pixel": list(self.pixel),
            "wifiFingerprint": self.wifi_fingerprint,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            id=data["id"],
            gps=_pair(data["gps"]),
            pixel=_pair(data["pixel"]),
            wifi_fingerprint=_fingerprint_from_json(data.get("wifiFingerprint")),
        )

    def to_calibration_point(self) -> CalibrationPoint:
        return CalibrationPoint(gps=self.gps, pixel=self.pixel, wifi_fingerprint=dict(self.wifi_fingerprint or {}))


@dataclass(slots=True)
class MapData:
    nodes: list[MapNode] = field(default_factory=list)
    anchors: list[ReferenceAnchor] = field(default_factory=list)
    user_calibration: list[ReferenceAnchor] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "anchors": [a.to_dict() for a in self.anchors],
            "userCalibration": [a.to_dict() for a in self.user_calibration],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            nodes=[MapNode.from_dict(n) for n in data.get("nodes") or []],
            anchors=[ReferenceAnchor.from_dict(a) for a in data.get("anchors") or []],
            user_calibration=[ReferenceAnchor.from_dict(a) for a in data.get("userCalibration") or []],
        )

    def calibration_points(self) -> list[CalibrationPoint]:
        """User calibration as estimator training points."""
        return [a.to_calibration_point() for a in self.user_calibration]

    def with_calibration(self, points: list[CalibrationPoint]) -> MapData:
        """Copy of this map with user calibration replaced by points."""
        stamp = int(time.time() * 1000)
        return MapData(
            nodes=list(self.nodes),
            anchors=list(self.anchors),
            user_calibration=[
                ReferenceAnchor(
                    id=f"user_{stamp}_{idx}",
                    gps=p.gps,
                    pixel=p.pixel,
                    wifi_fingerprint=dict(p.wifi_fingerprint),
                )
                for idx, p in enumerate(points)
            ],
        )


def search_nodes(nodes: list[MapNode], query: str) -> list[MapNode]:
    """Nodes whose name or id contains query, case-insensitively. Empty query matches nothing."""
    if not query:
        return []
    needle = query.lower()
    return [n for n in nodes if needle in n.name.lower() or needle in n.id.lower()]

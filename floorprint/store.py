"""
JSON persistence for captured locations and map calibration.

Storage structure of the capture file:
- "version": storage format version
- "sessions": list of CaptureSession dicts
- "markers": {page_index: [MarkerPoint dict]}
- "selected_anchor" / "last_captured_anchor": MapAnchor dict or null

Loading is tolerant: a missing file gives an empty result and individual
corrupt records are skipped with a warning. Writing is not: any OSError is
raised to the caller so a failed save is never silent.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from .history import LocationHistory
from .map_data import MapData, MapNode, ReferenceAnchor

_LOGGER = logging.getLogger(__name__)

STORAGE_VERSION = 1


async def _async_read_json(path: Path) -> Any | None:
    if not path.exists():
        return None
    async with aiofiles.open(path) as f:
        content = await f.read()
    if not content.strip():
        return None
    try:
        return json.loads(content)
    except json.JSONDecodeError as err:
        _LOGGER.warning("Ignoring unreadable store %s: %s", path, err)
        return None


async def _async_write_json(path: Path, data: Any) -> None:
    """Write via a temporary file and an atomic rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.tmp")
    async with aiofiles.open(tmp_path, "w") as f:
        await f.write(json.dumps(data, indent=2))
    await aiofiles.os.replace(tmp_path, path)


class CaptureStore:
    """Persists a LocationHistory to a JSON file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    async def async_load(self, **history_kwargs: Any) -> LocationHistory:
        """
        Load the stored history.

        Args:
            history_kwargs: passed to LocationHistory (threshold, meters_per_unit).

        Returns:
            The restored history, empty on first run.

        """
        data = await _async_read_json(self.path)
        if not isinstance(data, dict):
            return LocationHistory(**history_kwargs)

        version = data.get("version", STORAGE_VERSION)
        if version != STORAGE_VERSION:
            _LOGGER.warning(
                "Capture store %s has version %s, expected %s; loading what can be read",
                self.path,
                version,
                STORAGE_VERSION,
            )

        history = LocationHistory.from_dict(data, **history_kwargs)
        _LOGGER.debug("Loaded %d sessions from %s", len(history.sessions), self.path)
        return history

    async def async_save(self, history: LocationHistory) -> None:
        await _async_write_json(self.path, {"version": STORAGE_VERSION, **history.to_dict()})


class CalibrationStore:
    """Persists MapData (nodes, reference anchors, user calibration) to a JSON file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    async def async_load(self) -> MapData:
        data = await _async_read_json(self.path)
        if not isinstance(data, dict):
            return MapData()

        map_data = MapData()
        for key, target, loader in (
            ("nodes", map_data.nodes, MapNode.from_dict),
            ("anchors", map_data.anchors, ReferenceAnchor.from_dict),
            ("userCalibration", map_data.user_calibration, ReferenceAnchor.from_dict),
        ):
            for entry in data.get(key) or []:
                try:
                    target.append(loader(entry))
                except (KeyError, TypeError, ValueError, IndexError) as err:
                    _LOGGER.warning("Skipping corrupt %s entry: %s", key, err)
        return map_data

    async def async_save(self, map_data: MapData) -> None:
        await _async_write_json(self.path, {"version": STORAGE_VERSION, **map_data.to_dict()})

"""
Session-scoped collector of BLE advertisements.

One collector records at most one session at a time. Every advertisement seen
while a session is recording becomes one BLESample; repeats from the same
device are all kept, since downstream consumers take medians over the full
series.

Start requests that arrive before the radio is ready are parked in the
PENDING_START state and applied exactly once when the backend signals
readiness. A later start replaces a pending one.

All state is guarded by one collector-owned lock, so advertisement delivery
from the backend and start/stop/snapshot calls from the capture task never
interleave mid-update.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from bluetooth_data_tools import monotonic_time_coarse

from .const import _LOGGER_SPAM_LESS, SCAN_STATE_READY, SCAN_STATE_UNKNOWN
from .ibeacon import parse_ibeacon
from .models import BLESample
from .util import clean_charbuf, device_key

if TYPE_CHECKING:
    from collections.abc import Callable

_LOGGER = logging.getLogger(__name__)


class CollectorState(Enum):
    """Lifecycle of the collector."""

    IDLE = "idle"
    PENDING_START = "pending_start"
    ACTIVE = "active"


@dataclass(slots=True, frozen=True)
class Advertisement:
    """
    One advertisement event as delivered by a scan backend.

    manufacturer_data is the raw payload including the little-endian company
    id, or None when the advert carried none.
    """

    identifier: str
    rssi: int
    local_name: str | None = None
    manufacturer_data: bytes | None = None


class ScanBackend(Protocol):
    """What the collector needs from the radio."""

    @property
    def is_ready(self) -> bool: ...

    @property
    def is_scanning(self) -> bool: ...

    def start_scan(self) -> None: ...

    def stop_scan(self) -> None: ...


class FingerprintCollector:
    """Accumulates BLESample records for the active capture session."""

    def __init__(self, backend: ScanBackend, clock: Callable[[], float] = monotonic_time_coarse) -> None:
        self._backend = backend
        self._clock = clock
        self._lock = threading.Lock()

        self._state = CollectorState.IDLE
        self._session_id: str | None = None
        self._start_time: float | None = None
        self._samples: list[BLESample] = []
        self._seen_count: dict[str, int] = {}
        self.state_description: str = SCAN_STATE_READY if backend.is_ready else SCAN_STATE_UNKNOWN

    @property
    def state(self) -> CollectorState:
        with self._lock:
            return self._state

    @property
    def session_id(self) -> str | None:
        with self._lock:
            return self._session_id

    def start(self, session_id: str) -> None:
        """
        Begin recording a new session.

        Any samples from a previous session are discarded. If the backend is
        not ready yet the request is parked until handle_ready() is called.
        """
        with self._lock:
            self._session_id = session_id
            self._start_time = self._clock()
            self._samples = []
            self._seen_count = {}

            if self._backend.is_ready:
                self._activate_locked()
            else:
                if self._state is CollectorState.PENDING_START:
                    _LOGGER.debug("Replacing pending BLE session start with %s", session_id)
                self._state = CollectorState.PENDING_START
                _LOGGER.debug(
                    "BLE backend not ready (%s), session %s will start on readiness",
                    self.state_description,
                    session_id,
                )

    def _activate_locked(self) -> None:
        if not self._backend.is_scanning:
            self._backend.start_scan()
        self._state = CollectorState.ACTIVE

    def handle_ready(self) -> None:
        """Backend reports the radio is powered on. Applies a pending start once."""
        with self._lock:
            self.state_description = SCAN_STATE_READY
            if self._state is CollectorState.PENDING_START:
                _LOGGER.debug("BLE backend ready, starting pending session %s", self._session_id)
                self._activate_locked()

    def handle_unavailable(self, reason: str) -> None:
        """Backend reports the radio is not usable. Recorded for diagnostics only."""
        with self._lock:
            self.state_description = reason
        _LOGGER_SPAM_LESS.warning("ble_unavailable", "BLE scanning unavailable: %s", reason)

    def handle_advertisement(self, advert: Advertisement) -> None:
        """Record one advertisement if a session is recording, otherwise drop it."""
        with self._lock:
            if self._session_id is None or self._start_time is None:
                _LOGGER_SPAM_LESS.debug("advert_idle", "Dropping advertisement received with no active session")
                return

            t_offset_ms = int((self._clock() - self._start_time) * 1000)
            key = device_key(advert.identifier)
            beacon = parse_ibeacon(advert.manufacturer_data)
            local_name = clean_charbuf(advert.local_name) or None

            self._samples.append(
                BLESample(
                    session_id=self._session_id,
                    t_offset_ms=t_offset_ms,
                    device_key=key,
                    raw_id=advert.identifier,
                    rssi=advert.rssi,
                    local_name=local_name,
                    is_ibeacon=beacon is not None,
                    ibeacon_uuid=beacon.uuid if beacon else None,
                    ibeacon_major=beacon.major if beacon else None,
                    ibeacon_minor=beacon.minor if beacon else None,
                )
            )
            self._seen_count[key] = self._seen_count.get(key, 0) + 1

    def stop(self) -> list[BLESample]:
        """
        End the session and hand back everything collected.

        Safe to call when idle or when the radio never started: scanning is
        only stopped if it is actually running.
        """
        with self._lock:
            if self._backend.is_scanning:
                self._backend.stop_scan()
            out = self._samples
            self._samples = []
            self._seen_count = {}
            self._start_time = None
            self._session_id = None
            self._state = CollectorState.IDLE

        _LOGGER.debug("BLE session stopped with %d samples", len(out))
        return out

    def snapshot_summary(self) -> tuple[int, int]:
        """Return (unique devices, total samples) for the session so far."""
        with self._lock:
            return len(self._seen_count), len(self._samples)

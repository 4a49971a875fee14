"""
Capture orchestration.

A capture is one asynchronous task:

1. record the start instant and start the BLE collector under a fresh id
2. sleep for the capture duration without blocking the loop
3. stop and drain the collector
4. read [start - prewarm, end] from the rolling sample buffer
5. summarise, fill in BLE counts, and fold the session into the history

Only one capture may run at a time. A second request while one is running is
rejected, not queued.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .const import DEFAULT_CAPTURE_SECONDS, DEFAULT_PREWARM_SECONDS, DEFAULT_WINDOW_COUNT
from .models import CaptureSession, new_session_id
from .summarizer import summarize, with_ble_counts

if TYPE_CHECKING:
    from collections.abc import Callable

    from .fingerprint_collector import FingerprintCollector
    from .history import LocationHistory
    from .models import MapAnchor
    from .sample_buffer import SampleBuffer

_LOGGER = logging.getLogger(__name__)


class CaptureInProgressError(RuntimeError):
    """Raised when a capture is requested while another is still running."""


class CaptureController:
    """Runs captures against a shared buffer, collector and history."""

    def __init__(
        self,
        buffer: SampleBuffer,
        collector: FingerprintCollector,
        history: LocationHistory,
        capture_seconds: float = DEFAULT_CAPTURE_SECONDS,
        prewarm_seconds: float = DEFAULT_PREWARM_SECONDS,
        window_count: int = DEFAULT_WINDOW_COUNT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.buffer = buffer
        self.collector = collector
        self.history = history
        self.capture_seconds = capture_seconds
        self.prewarm_seconds = prewarm_seconds
        self.window_count = window_count
        self._clock = clock
        self._is_capturing = False
        self.capture_ends_at: float | None = None

    @property
    def is_capturing(self) -> bool:
        return self._is_capturing

    async def async_capture(self, anchor: MapAnchor) -> CaptureSession:
        """
        Capture at anchor and return the session now representing that location.

        Raises CaptureInProgressError if a capture is already running. The
        capture is not meant to be cancelled; if the task is cancelled anyway
        the collector is drained, nothing is stored and the cancellation
        propagates.
        """
        if self._is_capturing:
            raise CaptureInProgressError("A capture is already in progress")
        self._is_capturing = True

        start = self._clock()
        end = start + self.capture_seconds
        self.capture_ends_at = end
        ble_session_id = new_session_id()
        try:
            _LOGGER.info(
                "Starting %.1fs capture on page %d at (%.1f, %.1f), %d previous captures nearby",
                self.capture_seconds,
                anchor.page_index,
                anchor.x,
                anchor.y,
                self.history.count_captures_near(anchor),
            )
            self.collector.start(ble_session_id)

            await asyncio.sleep(self.capture_seconds)

            ble_samples = self.collector.stop()
            used_samples = self.buffer.slice(start - self.prewarm_seconds, end)
            summary = with_ble_counts(summarize(used_samples, self.window_count), ble_samples)

            session = CaptureSession(
                timestamp=datetime.fromtimestamp(start, tz=UTC),
                anchor=anchor,
                summary=summary,
                samples=used_samples,
                ble_samples=ble_samples,
            )
            merged = self.history.add_session(session)

            _LOGGER.info(
                "Capture complete: %d samples, %d BLE readings from %d devices (%d iBeacon); "
                "location averaged from %d visits",
                summary.sample_count,
                summary.ble_sample_count,
                summary.ble_unique_devices,
                summary.ble_ibeacon_sample_count,
                merged.averaged_from_count,
            )
            return merged

        except asyncio.CancelledError:
            _LOGGER.info("Capture on page %d cancelled, result discarded", anchor.page_index)
            self.collector.stop()
            raise  # CancelledError must be re-raised per asyncio contract
        finally:
            self._is_capturing = False
            self.capture_ends_at = None

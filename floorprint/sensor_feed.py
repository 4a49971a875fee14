"""
Latest-value sensor holders and the fixed-rate sampler that snapshots them.

Sensor collaborators publish readings at whatever cadence they like by
calling ``holder.set(reading)``. The sampler never subscribes to individual
fields: on every tick it reads the current value of each holder and appends
one Sample to the rolling buffer.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

from .const import _LOGGER_SPAM_LESS, DEFAULT_SAMPLE_RATE
from .models import Sample

if TYPE_CHECKING:
    from collections.abc import Callable

    from .sample_buffer import SampleBuffer

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class LocationReading:
    lat: float
    lon: float
    h_acc_m: float | None = None
    speed_mps: float | None = None
    course_deg: float | None = None


@dataclass(slots=True, frozen=True)
class MotionReading:
    mag_x: float | None = None
    mag_y: float | None = None
    mag_z: float | None = None
    gyro_x: float | None = None
    gyro_y: float | None = None
    gyro_z: float | None = None


@dataclass(slots=True, frozen=True)
class BarometerReading:
    pressure_kpa: float | None = None
    rel_alt_m: float | None = None


class LatestValue(Generic[T]):
    """Single latest reading from one sensor. Reads and writes are serialised by the holder."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: T | None = None

    def set(self, value: T | None) -> None:
        with self._lock:
            self._value = value

    def get(self) -> T | None:
        with self._lock:
            return self._value


def _non_negative(value: float | None) -> float | None:
    """Platforms report unknown speed/course as a negative number."""
    if value is None or value < 0:
        return None
    return value


class SensorSampler:
    """
    Append a snapshot of every sensor holder to a SampleBuffer at a fixed rate.

    Runs independently of any capture; a capture only ever reads a slice of
    the buffer afterwards.
    """

    def __init__(
        self,
        buffer: SampleBuffer,
        rate_hz: float = DEFAULT_SAMPLE_RATE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.buffer = buffer
        self.rate_hz = rate_hz
        self._clock = clock
        self.location: LatestValue[LocationReading] = LatestValue()
        self.motion: LatestValue[MotionReading] = LatestValue()
        self.barometer: LatestValue[BarometerReading] = LatestValue()
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def snapshot(self) -> Sample:
        """Build one Sample from the current value of every holder."""
        loc = self.location.get()
        motion = self.motion.get()
        baro = self.barometer.get()
        return Sample(
            t=self._clock(),
            lat=loc.lat if loc else None,
            lon=loc.lon if loc else None,
            h_acc_m=loc.h_acc_m if loc else None,
            speed_mps=_non_negative(loc.speed_mps) if loc else None,
            course_deg=_non_negative(loc.course_deg) if loc else None,
            mag_x=motion.mag_x if motion else None,
            mag_y=motion.mag_y if motion else None,
            mag_z=motion.mag_z if motion else None,
            gyro_x=motion.gyro_x if motion else None,
            gyro_y=motion.gyro_y if motion else None,
            gyro_z=motion.gyro_z if motion else None,
            pressure_kpa=baro.pressure_kpa if baro else None,
            rel_alt_m=baro.rel_alt_m if baro else None,
        )

    def tick(self) -> Sample:
        sample = self.snapshot()
        self.buffer.append(sample)
        if sample.lat is None:
            _LOGGER_SPAM_LESS.debug("sampler_no_fix", "Sampling without a location fix")
        return sample

    async def async_run(self) -> None:
        """Sample until cancelled."""
        interval = 1.0 / self.rate_hz
        _LOGGER.debug("Sensor sampler running at %.1f Hz", self.rate_hz)
        try:
            while True:
                self.tick()
                await asyncio.sleep(interval)
        except asyncio.CancelledError:
            _LOGGER.debug("Sensor sampler stopped with %d buffered samples", len(self.buffer))
            raise

    def start(self) -> None:
        """Start the sampling task on the running loop. No-op if already running."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self.async_run())

    async def async_stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            # Only propagate if we ourselves are being cancelled, not the sampler task.
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise

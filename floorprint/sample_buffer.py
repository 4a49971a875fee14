"""Rolling buffer of sensor snapshots."""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

from .const import DEFAULT_BUFFER_RETENTION

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .models import Sample


class SampleBuffer:
    """
    Append-only store of samples pruned to a trailing time window.

    Order is append order. Sensor clocks are not guaranteed to be perfectly
    monotonic against each other, so eviction only ever walks from the head
    and stops at the first sample young enough to keep.
    """

    def __init__(self, retention_seconds: float = DEFAULT_BUFFER_RETENTION) -> None:
        self.retention_seconds = retention_seconds
        self._samples: deque[Sample] = deque()

    def append(self, sample: Sample, now: float | None = None) -> None:
        """Add a sample at the tail, then evict entries older than now - retention."""
        self._samples.append(sample)
        if now is None:
            now = sample.t
        cutoff = now - self.retention_seconds
        while self._samples and self._samples[0].t < cutoff:
            self._samples.popleft()

    def slice(self, start: float, end: float) -> list[Sample]:
        """Return every sample with start <= t <= end. Pure read."""
        return [s for s in self._samples if start <= s.t <= end]

    def clear(self) -> None:
        self._samples.clear()

    @property
    def latest(self) -> Sample | None:
        if self._samples:
            return self._samples[-1]
        return None

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[Sample]:
        return iter(list(self._samples))

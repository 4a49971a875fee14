"""
Reduce a slice of sensor samples to a single location summary.

Strategy: split the slice's time span into equal-width, half-open windows,
average each quantity within each window, then take the median of those
window means. The inner mean smooths brief glitches and the outer median
rejects a whole window that went bad, without a general outlier detector.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from .const import DEFAULT_WINDOW_COUNT, MIN_SAMPLES_FOR_SUMMARY, MIN_WINDOW_SECONDS
from .models import CaptureSummary
from .util import mag_norm, mean, median

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from .models import BLESample, Sample

_LOGGER = logging.getLogger(__name__)

# Per-sample extractors, one per summarised quantity. The magnetic norm is
# taken per sample so that a single reading's axes are never mixed with
# another reading's.
_EXTRACTORS: dict[str, Callable[[Sample], float | None]] = {
    "lat": lambda s: s.lat,
    "lon": lambda s: s.lon,
    "h_acc_m": lambda s: s.h_acc_m,
    "mag_norm_ut": lambda s: mag_norm(s.mag_x, s.mag_y, s.mag_z),
    "pressure_kpa": lambda s: s.pressure_kpa,
    "rel_alt_m": lambda s: s.rel_alt_m,
}


def _window_bounds(samples: Sequence[Sample], window_count: int) -> list[tuple[float, float]]:
    t0 = samples[0].t
    span = samples[-1].t - t0
    width = max(span / window_count, MIN_WINDOW_SECONDS)
    return [(t0 + i * width, t0 + (i + 1) * width) for i in range(window_count)]


def _window_median(
    samples: Sequence[Sample],
    windows: list[tuple[float, float]],
    extract: Callable[[Sample], float | None],
) -> float | None:
    """Median over windows of the mean valid value inside each window."""
    window_means: list[float] = []
    for start, end in windows:
        window_mean = mean(v for s in samples if start <= s.t < end and (v := extract(s)) is not None)
        if window_mean is not None:
            window_means.append(window_mean)
    return median(window_means)


def summarize(samples: Sequence[Sample], window_count: int = DEFAULT_WINDOW_COUNT) -> CaptureSummary:
    """
    Summarise a slice of samples with a median of window means.

    With fewer than two samples there is no span to window, so every
    continuous field is None and only sample_count is set.

    Windows are half-open [a, b), so the final sample, sitting exactly on the
    end of the span, falls outside the last window and does not contribute.

    BLE counters are left at zero; see with_ble_counts.
    """
    if len(samples) < MIN_SAMPLES_FOR_SUMMARY:
        return CaptureSummary(sample_count=len(samples))

    windows = _window_bounds(samples, max(1, window_count))
    values = {name: _window_median(samples, windows, extract) for name, extract in _EXTRACTORS.items()}

    if _LOGGER.isEnabledFor(logging.DEBUG):
        _LOGGER.debug(
            "Summarised %d samples over %.3fs in %d windows: %s",
            len(samples),
            samples[-1].t - samples[0].t,
            len(windows),
            values,
        )

    return CaptureSummary(sample_count=len(samples), **values)


def with_ble_counts(summary: CaptureSummary, ble_samples: Sequence[BLESample]) -> CaptureSummary:
    """Return a copy of summary with the BLE counters filled from a sample list."""
    return replace(
        summary,
        ble_unique_devices=len({b.device_key for b in ble_samples}),
        ble_sample_count=len(ble_samples),
        ble_ibeacon_sample_count=sum(1 for b in ble_samples if b.is_ibeacon),
    )

"""Scan backend for FingerprintCollector built on bleak."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from bleak import BleakScanner
from bleak.exc import BleakError

from .const import SCAN_STATE_UNAVAILABLE
from .fingerprint_collector import Advertisement
from .ibeacon import is_apple_company, with_company_id

if TYPE_CHECKING:
    from bleak.backends.device import BLEDevice
    from bleak.backends.scanner import AdvertisementData

    from .fingerprint_collector import FingerprintCollector

_LOGGER = logging.getLogger(__name__)


def advertisement_from_bleak(device: BLEDevice, adv: AdvertisementData) -> Advertisement:
    """
    Convert a bleak detection into the collector's Advertisement.

    bleak strips the company id from manufacturer data, so it is put back.
    When a device advertises for several companies, Apple's payload is used
    since that is the only one we decode.
    """
    payload: bytes | None = None
    if adv.manufacturer_data:
        company_code = next(
            (code for code in adv.manufacturer_data if is_apple_company(code)),
            next(iter(adv.manufacturer_data)),
        )
        payload = with_company_id(company_code, adv.manufacturer_data[company_code])

    return Advertisement(
        identifier=device.address,
        rssi=adv.rssi,
        local_name=adv.local_name or device.name,
        manufacturer_data=payload,
    )


class BleakScanBackend:
    """
    Drive a BleakScanner on behalf of a FingerprintCollector.

    The scanner is created in async_setup(), after which the backend reports
    ready to the attached collector. start_scan/stop_scan are called from
    inside the collector's lock, so they only schedule the actual bleak
    coroutines on the event loop.
    """

    def __init__(self, scanning_mode: str = "active", adapter: str | None = None) -> None:
        self._scanning_mode = scanning_mode
        self._adapter = adapter
        self._scanner: BleakScanner | None = None
        self._collector: FingerprintCollector | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._scanning = False
        self._tasks: set[asyncio.Task[None]] = set()

    def attach(self, collector: FingerprintCollector) -> None:
        self._collector = collector

    @property
    def is_ready(self) -> bool:
        return self._scanner is not None

    @property
    def is_scanning(self) -> bool:
        return self._scanning

    async def async_setup(self) -> bool:
        """Create the scanner and signal readiness. Returns False if no radio is usable."""
        self._loop = asyncio.get_running_loop()
        kwargs: dict[str, Any] = {
            "detection_callback": self._detection_callback,
            "scanning_mode": self._scanning_mode,
        }
        if self._adapter is not None:
            kwargs["adapter"] = self._adapter
        try:
            self._scanner = BleakScanner(**kwargs)
        except BleakError as err:
            _LOGGER.warning("Unable to create BLE scanner: %s", err)
            if self._collector is not None:
                self._collector.handle_unavailable(f"{SCAN_STATE_UNAVAILABLE}: {err}")
            return False

        if self._collector is not None:
            self._collector.handle_ready()
        return True

    def start_scan(self) -> None:
        if self._scanner is None or self._loop is None:
            return
        self._scanning = True
        self._schedule(self._async_start())

    def stop_scan(self) -> None:
        if self._scanner is None or self._loop is None:
            return
        self._scanning = False
        self._schedule(self._async_stop())

    def _schedule(self, coro: Any) -> None:
        assert self._loop is not None
        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _async_start(self) -> None:
        assert self._scanner is not None
        try:
            await self._scanner.start()
        except BleakError as err:
            self._scanning = False
            _LOGGER.warning("BLE scan failed to start: %s", err)
            if self._collector is not None:
                self._collector.handle_unavailable(f"{SCAN_STATE_UNAVAILABLE}: {err}")

    async def _async_stop(self) -> None:
        assert self._scanner is not None
        try:
            await self._scanner.stop()
        except BleakError as err:
            _LOGGER.warning("BLE scan failed to stop cleanly: %s", err)

    async def async_shutdown(self) -> None:
        """Stop scanning and wait for outstanding start/stop calls."""
        if self._scanning:
            self.stop_scan()
        if self._tasks:
            await asyncio.gather(*self._tasks)

    def _detection_callback(self, device: BLEDevice, adv: AdvertisementData) -> None:
        if self._collector is None:
            return
        self._collector.handle_advertisement(advertisement_from_bleak(device, adv))

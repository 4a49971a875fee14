"""iBeacon manufacturer-data decoding."""

from __future__ import annotations

import uuid
from typing import NamedTuple

from .const import _LOGGER_SPAM_LESS, COMPANY_ID_APPLE, IBEACON_MIN_LENGTH, IBEACON_PREFIX


class IBeaconFrame(NamedTuple):
    """Decoded iBeacon triple plus the calibrated 1m transmit power."""

    uuid: str
    major: int
    minor: int
    tx_power: int


def with_company_id(company_code: int, man_data: bytes) -> bytes:
    """
    Rebuild a full manufacturer-data payload from a parsed advertisement.

    BLE stacks hand manufacturer data over as {company_code: data} with the
    two company id bytes stripped. The iBeacon layout is defined over the raw
    payload, so put the little-endian company id back in front.
    """
    return company_code.to_bytes(2, byteorder="little") + bytes(man_data)


def parse_ibeacon(payload: bytes | None) -> IBeaconFrame | None:
    """
    Decode an iBeacon frame, or return None if the payload is not one.

    Layout of the raw manufacturer payload:
        0..1    company id 0x004C, little endian (4C 00)
        2       type 0x02
        3       length 0x15
        4..19   proximity UUID
        20..21  major, big endian
        22..23  minor, big endian
        24      measured power at 1m, signed

    Short or mismatched payloads are simply "not an iBeacon".
    """
    if not payload:
        return None
    if len(payload) < IBEACON_MIN_LENGTH:
        if payload[:4] == IBEACON_PREFIX:
            # Apple prefix but truncated. Some beacons really do send these.
            _LOGGER_SPAM_LESS.debug(
                "ibeacon_short",
                "Ignoring truncated iBeacon frame of %d bytes",
                len(payload),
            )
        return None
    if payload[:4] != IBEACON_PREFIX:
        return None

    beacon_uuid = str(uuid.UUID(bytes=bytes(payload[4:20]))).upper()
    return IBeaconFrame(
        uuid=beacon_uuid,
        major=int.from_bytes(payload[20:22], byteorder="big"),
        minor=int.from_bytes(payload[22:24], byteorder="big"),
        tx_power=int.from_bytes(payload[24:25], byteorder="big", signed=True),
    )


def is_apple_company(company_code: int) -> bool:
    return company_code == COMPANY_ID_APPLE

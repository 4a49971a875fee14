"""Options schema and YAML options loading."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import aiofiles
import voluptuous as vol
import yaml

from .const import (
    CONF_ATTENUATION,
    CONF_BUFFER_RETENTION,
    CONF_CAPTURE_SECONDS,
    CONF_METERS_PER_UNIT,
    CONF_PREWARM_SECONDS,
    CONF_REF_POWER,
    CONF_SAME_LOCATION_THRESHOLD,
    CONF_SAMPLE_RATE,
    CONF_WIFI_MATCH_THRESHOLD,
    CONF_WINDOW_COUNT,
    DEFAULT_ATTENUATION,
    DEFAULT_BUFFER_RETENTION,
    DEFAULT_CAPTURE_SECONDS,
    DEFAULT_METERS_PER_UNIT,
    DEFAULT_PREWARM_SECONDS,
    DEFAULT_REF_POWER,
    DEFAULT_SAME_LOCATION_THRESHOLD,
    DEFAULT_SAMPLE_RATE,
    DEFAULT_WIFI_MATCH_THRESHOLD,
    DEFAULT_WINDOW_COUNT,
    DOCS,
)

_LOGGER = logging.getLogger(__name__)

_POSITIVE_FLOAT = vol.All(vol.Coerce(float), vol.Range(min=0, min_included=False))


def _retention_covers_capture(options: dict[str, Any]) -> dict[str, Any]:
    """The buffer must still hold the prewarm window when a capture finishes."""
    needed = options[CONF_PREWARM_SECONDS] + options[CONF_CAPTURE_SECONDS]
    if options[CONF_BUFFER_RETENTION] < needed:
        msg = (
            f"{CONF_BUFFER_RETENTION} ({options[CONF_BUFFER_RETENTION]}) must be at least "
            f"{CONF_PREWARM_SECONDS} + {CONF_CAPTURE_SECONDS} ({needed})"
        )
        raise vol.Invalid(msg, path=[CONF_BUFFER_RETENTION])
    return options


def _option(key: str, default: Any) -> vol.Optional:
    return vol.Optional(key, default=default, description=DOCS[key])


OPTIONS_SCHEMA = vol.All(
    vol.Schema(
        {
            _option(CONF_PREWARM_SECONDS, DEFAULT_PREWARM_SECONDS): vol.All(vol.Coerce(float), vol.Range(min=0)),
            _option(CONF_CAPTURE_SECONDS, DEFAULT_CAPTURE_SECONDS): _POSITIVE_FLOAT,
            _option(CONF_SAMPLE_RATE, DEFAULT_SAMPLE_RATE): vol.All(vol.Coerce(float), vol.Range(min=0.1, max=200)),
            _option(CONF_BUFFER_RETENTION, DEFAULT_BUFFER_RETENTION): _POSITIVE_FLOAT,
            _option(CONF_WINDOW_COUNT, DEFAULT_WINDOW_COUNT): vol.All(vol.Coerce(int), vol.Range(min=1, max=100)),
            _option(CONF_SAME_LOCATION_THRESHOLD, DEFAULT_SAME_LOCATION_THRESHOLD): vol.All(
                vol.Coerce(float), vol.Range(min=0)
            ),
            _option(CONF_METERS_PER_UNIT, DEFAULT_METERS_PER_UNIT): _POSITIVE_FLOAT,
            _option(CONF_WIFI_MATCH_THRESHOLD, DEFAULT_WIFI_MATCH_THRESHOLD): _POSITIVE_FLOAT,
            _option(CONF_REF_POWER, DEFAULT_REF_POWER): vol.All(vol.Coerce(float), vol.Range(min=-127, max=0)),
            _option(CONF_ATTENUATION, DEFAULT_ATTENUATION): vol.All(vol.Coerce(float), vol.Range(min=1, max=10)),
        }
    ),
    _retention_covers_capture,
)


def validate_options(raw: dict[str, Any] | None) -> dict[str, Any]:
    """Validate raw options and fill in defaults. Raises vol.Invalid."""
    return OPTIONS_SCHEMA(dict(raw or {}))


async def async_load_options(path: str | Path) -> dict[str, Any]:
    """
    Load options from a YAML file.

    A missing file yields the defaults. An unreadable or invalid file raises
    (OSError, yaml.YAMLError or vol.Invalid).
    """
    file_path = Path(path)
    if not file_path.exists():
        _LOGGER.debug("No options file at %s, using defaults", file_path)
        return validate_options(None)

    async with aiofiles.open(file_path) as f:
        raw = yaml.safe_load(await f.read())

    if raw is not None and not isinstance(raw, dict):
        msg = f"Options file {file_path} must contain a mapping"
        raise vol.Invalid(msg)
    options = validate_options(raw)
    _LOGGER.debug("Loaded options from %s: %s", file_path, options)
    return options

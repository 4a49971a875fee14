"""Rate-limited logging for messages raised on hot paths."""

from __future__ import annotations

import logging
from typing import Any

from bluetooth_data_tools import monotonic_time_coarse


class FloorprintLogSpamLess:
    """
    Wrap a logger so that each message key is emitted at most once per interval.

    Advertisement callbacks and the sampler tick run many times a second. A
    condition such as "advert received while idle" would otherwise flood the
    log. Callers pass a stable key identifying the condition; the formatted
    message is only emitted if that key has been quiet for spam_interval seconds.
    """

    def __init__(self, logger: logging.Logger, spam_interval: float) -> None:
        self._logger = logger
        self._interval = spam_interval
        self._keycache: dict[str, float] = {}

    def _check_key(self, key: str) -> bool:
        """Return True if the key may be logged now, and record the stamp."""
        nowstamp = monotonic_time_coarse()
        last = self._keycache.get(key)
        if last is not None and last > nowstamp - self._interval:
            return False
        self._keycache[key] = nowstamp
        return True

    def reset(self, key: str | None = None) -> None:
        """Forget one key, or all keys when none is given."""
        if key is None:
            self._keycache.clear()
        else:
            self._keycache.pop(key, None)

    def debug(self, key: str, msg: str, *args: Any, **kwargs: Any) -> None:
        if self._check_key(key):
            self._logger.debug(msg, *args, **kwargs)

    def info(self, key: str, msg: str, *args: Any, **kwargs: Any) -> None:
        if self._check_key(key):
            self._logger.info(msg, *args, **kwargs)

    def warning(self, key: str, msg: str, *args: Any, **kwargs: Any) -> None:
        if self._check_key(key):
            self._logger.warning(msg, *args, **kwargs)

    def error(self, key: str, msg: str, *args: Any, **kwargs: Any) -> None:
        if self._check_key(key):
            self._logger.error(msg, *args, **kwargs)

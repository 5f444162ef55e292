"""Maintenance-window and retry timers for configuration syncs.

The maintenance timer picks a random second of the day inside the
firmware upgrade window. The supplementary sync runs at that second.
The retry timer tracks the earliest moment a failed document should be
fetched again. All "time of day" values are seconds since local
midnight. All timestamps are seconds since the epoch.
"""

from __future__ import annotations

import random
import time
from typing import Callable, Optional

from .types import log

MIN_MAINTENANCE_TIME = 3600  # 1 hour in seconds
MAX_MAINTENANCE_TIME = 14400  # 4 hours in seconds
MAX_RETRY_TIMEOUT = 900
SECONDS_PER_DAY = 86400
DEFAULT_RETRY_TIMER = 900


def print_time(timestamp: float) -> str:
    """Format an epoch timestamp as local time, e.g. ``Sat 240615 12:00:00``."""
    return time.strftime("%a %y%m%d %H:%M:%S", time.localtime(int(timestamp)))


def seconds_of_day(timestamp: float) -> int:
    """Seconds elapsed since local midnight at the given epoch timestamp."""
    tm = time.localtime(int(timestamp))
    return tm.tm_hour * 3600 + tm.tm_min * 60 + tm.tm_sec


def _atoi(text: str) -> int:
    """Parse a leading decimal integer the lenient way; junk gives 0."""
    text = text.lstrip()
    sign = 1
    if text[:1] in ("+", "-"):
        if text[0] == "-":
            sign = -1
        text = text[1:]
    digits = ""
    for ch in text:
        if not ch.isdigit():
            break
        digits += ch
    return sign * int(digits) if digits else 0


def _trunc_mod(a: int, b: int) -> int:
    """Remainder with truncating division; the result takes the sign of ``a``."""
    if b == 0:
        raise ValueError("maintenance window has zero length")
    return a - b * int(a / b)


def _default_random_id() -> int:
    return random.getrandbits(16)


class SyncTimer:
    """Holds the maintenance time and retry state of the sync task."""

    def __init__(
        self,
        clock: Optional[Callable[[], float]] = None,
        random_id: Optional[Callable[[], int]] = None,
        on_maintenance_due: Optional[Callable[[], None]] = None,
    ) -> None:
        self._clock = clock or time.time
        self._random_id = random_id or _default_random_id
        self._on_maintenance_due = on_maintenance_due or (lambda: None)
        self.maintenance_time = 0
        self.retry_timer = DEFAULT_RETRY_TIMER
        self.retry_timestamp = 0

    def _now(self) -> int:
        return int(self._clock())

    def init_maintenance_timer(
        self, start_time: Optional[str] = None, end_time: Optional[str] = None
    ) -> int:
        """Pick a random maintenance second inside the upgrade window.

        ``start_time`` and ``end_time`` are the window bounds as decimal
        strings of seconds since midnight. A missing bound takes its default.
        Returns the chosen maintenance time and also stores it.
        """
        if start_time is not None:
            log.debug("upgrade_start_time is %s", start_time)
            fw_start = _atoi(start_time)
        else:
            log.error("Unable to get fw_start_time, use default start time")
            fw_start = MIN_MAINTENANCE_TIME

        if end_time is not None:
            log.debug("upgrade_end_time is %s", end_time)
            fw_end = _atoi(end_time)
        else:
            log.error("Unable to get fw_end_time, use default end time")
            fw_end = MAX_MAINTENANCE_TIME

        if fw_start == fw_end:
            log.debug("start and end time values are equal")
            fw_start = MIN_MAINTENANCE_TIME
            fw_end = MAX_MAINTENANCE_TIME

        if fw_start > fw_end:
            log.debug("start time is greater than end time")
            fw_start -= SECONDS_PER_DAY  # to get a time within the day

        random_key = int(self._random_id()) & 0xFFFF
        time_val = _trunc_mod(random_key, fw_end - fw_start + 1) + fw_start

        log.info("Firmware Upgrade start time is %d", fw_start)
        log.info("Firmware Upgrade end time is %d", fw_end)

        if time_val <= 0:
            time_val += SECONDS_PER_DAY  # a time on the next day

        log.debug("The value of maintenance_time_val is %d", time_val)
        self.maintenance_time = time_val
        return time_val

    def check_maintenance_timer(self) -> bool:
        """True, after signalling a supplementary sync, once the maintenance time is reached."""
        now = self._now()
        cur = seconds_of_day(now)
        log.debug("The current time in checkMaintenanceTimer is %d at %s", now, print_time(now))
        log.debug("The random timer in checkMaintenanceTimer is %d", self.maintenance_time)
        if cur >= self.maintenance_time:
            self._on_maintenance_due()
            log.info("Maintenance time is equal to current time")
            return True
        return False

    def maintenance_sync_seconds(self, maintenance_count: int) -> int:
        """Seconds to wait until the next maintenance sync.

        When today's slot has passed, or a sync already ran
        (``maintenance_count == 1``), the wait runs to tomorrow's slot.
        """
        now = self._now()
        cur = seconds_of_day(now)
        secs = self.maintenance_time - cur
        log.debug("The current time in maintenanceSyncSeconds is %d at %s", now, print_time(now))
        if secs < 0 or maintenance_count == 1:
            secs = (SECONDS_PER_DAY - cur) + self.maintenance_time
        log.debug("The maintenance Seconds is %d", secs)
        return secs

    def retry_sync_seconds(self) -> int:
        """Seconds until the retry time of day, never less than zero."""
        now = self._now()
        secs = self.retry_timestamp - seconds_of_day(now)
        log.debug("The current time in retrySyncSeconds is %d at %s", now, print_time(now))
        secs = max(secs, 0)
        log.debug("The retry Seconds is %d", secs)
        return secs

    def update_retry_time_diff(self, expiry_time: int) -> int:
        """Record a document's retry expiry, keeping the earliest one.

        Returns the seconds from now until ``expiry_time``.
        """
        now = self._now()
        diff = int(expiry_time) - now
        if self.retry_timer > diff:
            self.retry_timer = diff
            self.retry_timestamp = seconds_of_day(expiry_time)
            log.debug("The retry_timer is %d after set", self.retry_timer)
        if self.retry_timestamp == 0:
            self.retry_timestamp = seconds_of_day(now + MAX_RETRY_TIMEOUT)
        return diff

    def retry_expiry_timeout(self) -> int:
        """Epoch timestamp of the default retry expiry, 15 minutes from now."""
        return self._now() + MAX_RETRY_TIMEOUT

    def check_retry_timer(self, timestamp: int) -> bool:
        """True once the current time has reached ``timestamp``."""
        now = self._now()
        log.debug("The current time in device is %d at %s", now, print_time(now))
        log.debug("The Retry timestamp is %d at %s", timestamp, print_time(timestamp))
        if now >= timestamp:
            log.debug("Retry timestamp is equal to current time")
            return True
        return False
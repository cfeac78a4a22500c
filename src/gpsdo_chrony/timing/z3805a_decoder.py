#!/usr/bin/env python3
"""
HP Z3805A Time-of-Day Telegram Decoder

The Z3805A GPSDO emits a fixed 16-byte Time-of-Day telegram on its serial
port every two seconds. Each byte carries ONE decimal digit as its numeric
value (0x00-0x09), and the telegram ends with a carriage return.

Telegram Layout:
----------------
    Offset │ Field              │ Digits
    ───────┼────────────────────┼───────
    0-1    │ Year (minus 2000)  │ 2
    2-4    │ Day of year        │ 3
    5-6    │ Hour               │ 2
    7-8    │ Minute             │ 2
    9-10   │ Second             │ 2
    11-12  │ Leap seconds       │ 2
    13-14  │ Status code        │ 2
    15     │ Terminator         │ 0x0D

Status Codes:
-------------
    0   - GPS lock
    10  - Power-up
    100 - Holdover

GPS Week Rollover:
------------------
The receiver inside the Z3805A counts GPS weeks modulo 1024. Units that
predate the 2019 rollover report dates 1024 weeks (7168 days) in the past.
Any decoded year earlier than ROLLOVER_THRESHOLD_YEAR is shifted forward
by exactly 7168 days. The threshold will need to move before the next
rollover in 2038.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from ..interfaces.sample import DecodedSample, OscillatorStatus

logger = logging.getLogger(__name__)

# Telegram framing
TELEGRAM_LENGTH = 16
TELEGRAM_TERMINATOR = 0x0D  # ASCII carriage return

# Valid field ranges
YEAR_BASE = 2000
MIN_YEAR, MAX_YEAR = 2000, 2099
MIN_DAY_OF_YEAR, MAX_DAY_OF_YEAR = 1, 366
MAX_HOUR = 23
MAX_MINUTE = 59
MAX_SECOND = 59

# GPS week rollover (1024 weeks)
GPS_ROLLOVER_DAYS = 7168
ROLLOVER_THRESHOLD_YEAR = 2020

# Status code table
STATUS_CODES = {
    0: OscillatorStatus.LOCKED,
    10: OscillatorStatus.POWER_UP,
    100: OscillatorStatus.HOLDOVER,
}


def classify_status(code: int) -> OscillatorStatus:
    """
    Map a Z3805A status code to an OscillatorStatus.

    Any code not in the table is UNKNOWN.
    """
    return STATUS_CODES.get(code, OscillatorStatus.UNKNOWN)


def correct_week_rollover(
    timestamp: datetime,
    threshold_year: int = ROLLOVER_THRESHOLD_YEAR
) -> Tuple[datetime, bool]:
    """
    Undo a GPS week-number rollover.

    Args:
        timestamp: Decoded UTC timestamp
        threshold_year: Years before this are considered rolled over

    Returns:
        (timestamp, applied) - the corrected timestamp and whether the
        7168-day correction was applied
    """
    if timestamp.year < threshold_year:
        return timestamp + timedelta(days=GPS_ROLLOVER_DAYS), True
    return timestamp, False


class Z3805ADecoder:
    """
    Decoder for Z3805A Time-of-Day telegrams.

    Usage:
        decoder = Z3805ADecoder()
        sample = decoder.parse(buffer)
        if sample and sample.valid:
            ...
    """

    def __init__(self, rollover_threshold_year: int = ROLLOVER_THRESHOLD_YEAR):
        """
        Args:
            rollover_threshold_year: Decoded years below this get the
                1024-week rollover correction
        """
        self.rollover_threshold_year = rollover_threshold_year

    @staticmethod
    def _digits(data: bytes, start: int, count: int) -> int:
        """Combine `count` one-digit bytes starting at `start` into a number."""
        value = 0
        for b in data[start:start + count]:
            value = value * 10 + b
        return value

    def parse(self, data: bytes) -> Optional[DecodedSample]:
        """
        Decode one telegram.

        Args:
            data: Raw bytes read from the serial port

        Returns:
            DecodedSample, or None if the buffer is not a valid telegram
        """
        if len(data) != TELEGRAM_LENGTH or data[-1] != TELEGRAM_TERMINATOR:
            logger.debug(f"Not a telegram: {len(data)} bytes, data={bytes(data).hex()}")
            return None

        year = YEAR_BASE + self._digits(data, 0, 2)
        day_of_year = self._digits(data, 2, 3)
        hour = self._digits(data, 5, 2)
        minute = self._digits(data, 7, 2)
        second = self._digits(data, 9, 2)
        leap_seconds = self._digits(data, 11, 2)
        status_code = self._digits(data, 13, 2)

        if not (MIN_YEAR <= year <= MAX_YEAR and
                MIN_DAY_OF_YEAR <= day_of_year <= MAX_DAY_OF_YEAR and
                hour <= MAX_HOUR and minute <= MAX_MINUTE and second <= MAX_SECOND):
            logger.debug(
                f"Telegram values out of range: year={year}, day={day_of_year}, "
                f"time={hour}:{minute}:{second}"
            )
            return None

        status = classify_status(status_code)

        start_of_year = datetime(year, 1, 1, tzinfo=timezone.utc)
        timestamp = start_of_year + timedelta(
            days=day_of_year - 1, hours=hour, minutes=minute, seconds=second
        )

        timestamp, rollover_applied = correct_week_rollover(
            timestamp, self.rollover_threshold_year
        )
        if rollover_applied:
            year = timestamp.year
            day_of_year = timestamp.timetuple().tm_yday

        return DecodedSample(
            year=year,
            day_of_year=day_of_year,
            hour=hour,
            minute=minute,
            second=second,
            leap_seconds=leap_seconds,
            status=status,
            valid=status.is_usable,
            timestamp=timestamp,
            status_code=status_code,
            rollover_applied=rollover_applied,
        )


_default_decoder = Z3805ADecoder()


def parse_telegram(data: bytes) -> Optional[DecodedSample]:
    """Decode a telegram with the default rollover threshold."""
    return _default_decoder.parse(data)

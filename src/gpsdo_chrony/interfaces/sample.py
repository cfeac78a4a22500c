"""
Decoded Sample Data Models

These dataclasses define the contract between the Z3805A telegram decoder
and everything downstream of it (chrony SOCK output, status reporting,
health endpoint). A DecodedSample is built once per accepted telegram and
is never modified afterwards.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict


class OscillatorStatus(str, Enum):
    """Z3805A oscillator state, as reported in the Time-of-Day telegram."""
    POWER_UP = "POWER_UP"     # Warming up, no GPS reference yet
    HOLDOVER = "HOLDOVER"     # GPS lost, free-running from last good reference
    LOCKED = "LOCKED"         # Disciplined to GPS
    UNKNOWN = "UNKNOWN"       # Unrecognized status code

    @property
    def is_usable(self) -> bool:
        """True if samples in this state may be used for timekeeping."""
        return self in (OscillatorStatus.LOCKED, OscillatorStatus.HOLDOVER)


@dataclass(frozen=True)
class DecodedSample:
    """
    One decoded Time-of-Day telegram.

    Calendar fields reflect the corrected date when a GPS week rollover
    was applied; hour/minute/second are never touched by the correction.
    """
    year: int                      # 2000-2099
    day_of_year: int               # 1-366
    hour: int                      # 0-23
    minute: int                    # 0-59
    second: int                    # 0-59
    leap_seconds: int              # GPS-UTC leap second count
    status: OscillatorStatus
    valid: bool                    # status is LOCKED or HOLDOVER
    timestamp: datetime            # Absolute UTC time of the telegram
    status_code: int = 0           # Raw two-digit status code
    rollover_applied: bool = False
    parse_time: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
        compare=False,
    )

    def __str__(self):
        return (
            f"{self.year:04d}-{self.day_of_year:03d} "
            f"{self.hour:02d}:{self.minute:02d}:{self.second:02d} UTC, "
            f"Status={self.status.value}, Leap={self.leap_seconds}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "day_of_year": self.day_of_year,
            "hour": self.hour,
            "minute": self.minute,
            "second": self.second,
            "leap_seconds": self.leap_seconds,
            "status": self.status.value,
            "status_code": self.status_code,
            "valid": self.valid,
            "rollover_applied": self.rollover_applied,
            "timestamp": self.timestamp.isoformat(),
            "parse_time": self.parse_time.isoformat(),
        }

"""
Bridge run statistics.

The serial reader thread increments the counters; the status reporter and
the health server only ever see immutable snapshots.
"""

import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from ..interfaces.sample import DecodedSample
from ..output.chrony_sock import DeliveryResult


@dataclass(frozen=True)
class StatsSnapshot:
    """Point-in-time copy of the bridge counters."""
    telegrams_total: int
    telegrams_valid: int
    samples_sent: int
    samples_failed: int
    start_time: float
    last_update: Optional[datetime] = None
    last_sample: Optional[DecodedSample] = None

    @property
    def uptime_seconds(self) -> float:
        return time.time() - self.start_time if self.start_time else 0.0

    @property
    def last_sample_age(self) -> Optional[float]:
        """Seconds since the last decoded telegram, or None."""
        if self.last_update is None:
            return None
        return (datetime.now(timezone.utc) - self.last_update).total_seconds()

    def to_dict(self) -> dict:
        return {
            'telegrams_total': self.telegrams_total,
            'telegrams_valid': self.telegrams_valid,
            'samples_sent': self.samples_sent,
            'samples_failed': self.samples_failed,
            'uptime_seconds': self.uptime_seconds,
            'last_update': self.last_update.isoformat() if self.last_update else None,
            'last_sample_age': self.last_sample_age,
            'last_sample': self.last_sample.to_dict() if self.last_sample else None,
        }


class BridgeStats:
    """Counters for telegrams seen, decoded, and samples delivered."""

    def __init__(self):
        self._lock = threading.Lock()
        self._telegrams_total = 0
        self._telegrams_valid = 0
        self._samples_sent = 0
        self._samples_failed = 0
        self._start_time = 0.0
        self._last_update: Optional[datetime] = None
        self._last_sample: Optional[DecodedSample] = None

    def mark_started(self):
        with self._lock:
            self._start_time = time.time()

    def record_telegram(self):
        """Count a full-length buffer read from the serial port."""
        with self._lock:
            self._telegrams_total += 1

    def record_decoded(self, sample: DecodedSample):
        """Count a telegram that decoded successfully, usable or not."""
        with self._lock:
            self._telegrams_valid += 1
            self._last_update = datetime.now(timezone.utc)
            self._last_sample = sample

    def record_delivery(self, result: DeliveryResult):
        with self._lock:
            if result.delivered:
                self._samples_sent += 1
            else:
                self._samples_failed += 1

    def snapshot(self) -> StatsSnapshot:
        with self._lock:
            return StatsSnapshot(
                telegrams_total=self._telegrams_total,
                telegrams_valid=self._telegrams_valid,
                samples_sent=self._samples_sent,
                samples_failed=self._samples_failed,
                start_time=self._start_time,
                last_update=self._last_update,
                last_sample=self._last_sample,
            )

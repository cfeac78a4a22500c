"""
Pytest configuration and fixtures for gpsdo-chrony tests.
"""

import pytest
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))


def _digits(value: int, count: int) -> list:
    """Split a number into `count` one-digit bytes, most significant first."""
    return [int(c) for c in f"{value:0{count}d}"]


@pytest.fixture
def make_telegram():
    """Build a Z3805A Time-of-Day telegram from field values."""
    def _make(
        year=2025, day_of_year=43, hour=12, minute=15, second=30,
        leap=0, status=0, terminator=0x0D
    ) -> bytes:
        return bytes(
            _digits(year - 2000, 2)
            + _digits(day_of_year, 3)
            + _digits(hour, 2)
            + _digits(minute, 2)
            + _digits(second, 2)
            + _digits(leap, 2)
            + _digits(status, 2)
            + [terminator]
        )
    return _make


@pytest.fixture
def locked_telegram():
    """2025 day 43 12:15:30, leap 0, GPS locked."""
    return bytes([2, 5, 0, 4, 3, 1, 2, 1, 5, 3, 0, 0, 0, 0, 0, 0x0D])


@pytest.fixture
def sock_path(tmp_path):
    """Socket path short enough for AF_UNIX."""
    return str(tmp_path / 'gpsdo.sock')

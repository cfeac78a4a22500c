"""
gpsdo-chrony: HP Z3805A GPSDO to chronyd bridge

This package reads the Time-of-Day telegram an HP Z3805A GPS-disciplined
oscillator sends on its serial port every two seconds and feeds each
usable sample to chronyd through the SOCK refclock driver.

Architecture:
    Z3805A (serial) → gpsdo-chrony → chronyd (SOCK refclock)

Only LOCKED and HOLDOVER samples are forwarded. Dates from receivers hit
by the 2019 GPS week rollover are corrected before they reach chronyd.

Version: 1.0.0
"""

__version__ = "1.0.0"

from .interfaces.sample import (
    DecodedSample,
    OscillatorStatus,
)
from .timing.z3805a_decoder import (
    Z3805ADecoder,
    parse_telegram,
)
from .output.chrony_sock import (
    ChronySock,
    DeliveryResult,
    encode_sample,
)

__all__ = [
    "DecodedSample",
    "OscillatorStatus",
    "Z3805ADecoder",
    "parse_telegram",
    "ChronySock",
    "DeliveryResult",
    "encode_sample",
    "__version__",
]

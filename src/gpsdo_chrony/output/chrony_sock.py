"""
Chrony SOCK Refclock Driver

This module implements the sample format used by chronyd's SOCK refclock
driver. Each valid GPSDO telegram becomes one fixed-size datagram written
to a Unix domain socket that chronyd listens on.

Chronyd Configuration:
----------------------
Add to /etc/chrony/chrony.conf:

    refclock SOCK /var/run/chrony/gpsdo.sock refid GPS

chronyd creates the socket itself when it starts; this driver only
connects and writes.

SOCK Protocol:
--------------
The datagram is chrony's struct sock_sample (64-bit Linux layout):

    struct sock_sample {
        struct timeval tv;     // tv_sec (8), tv_usec (8)
        double offset;         // Offset of the reference from system time
        int pulse;             // 1 for PPS samples, 0 otherwise
        int leap;              // 0 = normal, 1 = insert, 2 = delete
        int _pad;
        int magic;             // 0x534f434b ("SOCK")
    };

Fields are written little-endian; chronyd identifies the record by its
size and magic value. There is no length prefix or checksum.

Reference:
- https://chrony-project.org/doc/4.5/chrony.conf.html#refclock
"""

import logging
import socket
import struct
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from ..interfaces.sample import DecodedSample

logger = logging.getLogger(__name__)


# struct sock_sample
SOCK_SAMPLE_FORMAT = '<qqdiiii'
SOCK_SAMPLE_SIZE = struct.calcsize(SOCK_SAMPLE_FORMAT)  # 40 bytes
SOCK_MAGIC = 0x534f434b  # "SOCK"

DEFAULT_SOCK_PATH = "/var/run/chrony/gpsdo.sock"
DEFAULT_WRITE_TIMEOUT = 2.0  # seconds

UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class DeliveryResult(str, Enum):
    """Outcome of one attempt to hand a sample to chronyd."""
    DELIVERED = "DELIVERED"
    TIMED_OUT = "TIMED_OUT"       # Write deadline expired
    UNREACHABLE = "UNREACHABLE"   # Socket missing, refused, or unwritable

    @property
    def delivered(self) -> bool:
        return self is DeliveryResult.DELIVERED


@dataclass(frozen=True)
class ChronySockSample:
    """One chrony SOCK refclock sample."""
    sec: int
    usec: int
    offset: float = 0.0
    pulse: int = 0
    leap: int = 0
    pad: int = 0
    magic: int = SOCK_MAGIC

    def pack(self) -> bytes:
        return struct.pack(
            SOCK_SAMPLE_FORMAT,
            self.sec,
            self.usec,
            self.offset,
            self.pulse,
            self.leap,
            self.pad,
            self.magic,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "ChronySockSample":
        """Parse a packed sample. Raises struct.error on a wrong size."""
        return cls(*struct.unpack(SOCK_SAMPLE_FORMAT, data))


def sample_from_decoded(sample: DecodedSample) -> ChronySockSample:
    """
    Build the SOCK sample for a decoded telegram.

    The GPSDO gives no independent offset measurement, so offset, pulse
    and leap are always zero.

    Raises:
        ValueError: If the sample is not valid for timekeeping
    """
    if not sample.valid:
        raise ValueError(f"Refusing to encode unusable sample: {sample.status.value}")

    delta = sample.timestamp - UNIX_EPOCH
    sec = delta // timedelta(seconds=1)
    usec = (delta % timedelta(seconds=1)) // timedelta(microseconds=1)

    return ChronySockSample(sec=sec, usec=usec)


def encode_sample(sample: DecodedSample) -> bytes:
    """Encode a valid DecodedSample as a SOCK_SAMPLE_SIZE-byte record."""
    return sample_from_decoded(sample).pack()


class ChronySock:
    """
    Chrony SOCK refclock writer.

    Every send opens a fresh datagram socket, writes one record and closes
    the socket. Nothing is kept between samples and nothing is retried.

    Usage:
        sock = ChronySock('/var/run/chrony/gpsdo.sock')
        result = sock.send_sample(decoded_sample)
        if not result.delivered:
            ...
    """

    def __init__(
        self,
        sock_path: str = DEFAULT_SOCK_PATH,
        timeout: float = DEFAULT_WRITE_TIMEOUT
    ):
        """
        Initialize Chrony SOCK driver.

        Args:
            sock_path: Path of the socket chronyd created for this refclock
            timeout: Write deadline in seconds
        """
        self.sock_path = sock_path
        self.timeout = timeout
        self.count = 0

        logger.info(f"ChronySock initialized: path={sock_path}, timeout={timeout}s")

    def send(self, record: bytes) -> DeliveryResult:
        """
        Write one encoded record to chronyd.

        Args:
            record: Packed sock_sample

        Returns:
            DeliveryResult for this attempt
        """
        try:
            with socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM) as sock:
                sock.settimeout(self.timeout)
                sock.connect(self.sock_path)
                sock.send(record)
        except socket.timeout:
            logger.warning(f"Timed out writing to chrony socket {self.sock_path}")
            return DeliveryResult.TIMED_OUT
        except OSError as e:
            logger.warning(f"Failed to write to chrony socket {self.sock_path}: {e}")
            return DeliveryResult.UNREACHABLE

        self.count += 1
        return DeliveryResult.DELIVERED

    def send_sample(self, sample: DecodedSample) -> DeliveryResult:
        """Encode and send a valid DecodedSample."""
        return self.send(encode_sample(sample))


def install_chrony_config(sock_path: str = DEFAULT_SOCK_PATH) -> str:
    """
    Generate chrony.conf snippet for the GPSDO refclock.

    Args:
        sock_path: Socket path passed to the bridge

    Returns:
        Configuration snippet to add to /etc/chrony/chrony.conf
    """
    return f"""
# =============================================================================
# HP Z3805A GPSDO via gpsdo-chrony
# =============================================================================
# Time-of-Day telegrams arrive every 2 seconds. Without a PPS line the
# serial timing is only good to a few milliseconds, so combine this source
# with a PPS refclock or NTP servers for sub-millisecond accuracy.

refclock SOCK {sock_path} refid GPS

# Explanation:
#   SOCK {sock_path}
#                  - chronyd creates this socket; gpsdo-chrony writes to it
#   refid GPS      - Reference ID shown in 'chronyc sources'

# To verify: run 'chronyc sources -v' and look for 'GPS' reference
# =============================================================================
"""

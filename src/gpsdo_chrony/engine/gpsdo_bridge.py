#!/usr/bin/env python3
"""
GPSDO to Chrony Bridge

Reads Time-of-Day telegrams from an HP Z3805A on a serial port and feeds
each usable sample to chronyd through its SOCK refclock.

Architecture:
    ┌──────────┐    ┌───────────────┐    ┌────────────┐    ┌─────────┐
    │  Z3805A  │───▶│ Z3805ADecoder │───▶│ ChronySock │───▶│ chronyd │
    │ (serial) │    │  (16 bytes)   │    │ (AF_UNIX)  │    │         │
    └──────────┘    └───────────────┘    └────────────┘    └─────────┘

Threads:
    READER:   blocking serial read → decode → encode → send, per telegram
    REPORTER: logs a statistics snapshot every status_interval seconds
"""

import logging
import signal
import threading
from typing import Optional

import serial

from ..interfaces.sample import DecodedSample
from ..output.chrony_sock import ChronySock, DEFAULT_SOCK_PATH, DEFAULT_WRITE_TIMEOUT
from ..timing.z3805a_decoder import (
    Z3805ADecoder,
    ROLLOVER_THRESHOLD_YEAR,
    TELEGRAM_LENGTH,
)
from .bridge_stats import BridgeStats, StatsSnapshot

logger = logging.getLogger('gpsdo-chrony.bridge')

DEFAULT_BAUDRATE = 9600
DEFAULT_READ_TIMEOUT = 1.0      # Z3805A sends every 2 seconds
DEFAULT_STATUS_INTERVAL = 30.0


class GPSDOChronyBridge:
    """
    Serial-to-chrony bridge for the HP Z3805A.

    Usage:
        bridge = GPSDOChronyBridge('/dev/ttyAMA0', '/var/run/chrony/gpsdo.sock')
        bridge.run()   # blocks until SIGINT/SIGTERM
    """

    def __init__(
        self,
        serial_port: str,
        sock_path: str = DEFAULT_SOCK_PATH,
        baudrate: int = DEFAULT_BAUDRATE,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT,
        status_interval: float = DEFAULT_STATUS_INTERVAL,
        rollover_threshold_year: int = ROLLOVER_THRESHOLD_YEAR,
        transmitter: Optional[ChronySock] = None
    ):
        """
        Initialize the bridge.

        Args:
            serial_port: Serial device the Z3805A is attached to
            sock_path: chronyd SOCK refclock socket path
            baudrate: Serial speed (the Z3805A uses 9600 8N1)
            read_timeout: Serial read timeout in seconds
            write_timeout: Chrony socket write deadline in seconds
            status_interval: Seconds between status reports (0 disables)
            rollover_threshold_year: See Z3805ADecoder
            transmitter: Pre-built ChronySock (for testing)
        """
        self.serial_port = serial_port
        self.sock_path = sock_path
        self.baudrate = baudrate
        self.read_timeout = read_timeout
        self.status_interval = status_interval

        self.decoder = Z3805ADecoder(rollover_threshold_year=rollover_threshold_year)
        self.transmitter = transmitter or ChronySock(sock_path, timeout=write_timeout)
        self.stats = BridgeStats()

        self.running = False
        self.port: Optional[serial.Serial] = None
        self.reporter_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._stop_event.set()

    def process_telegram(self, data: bytes) -> Optional[DecodedSample]:
        """
        Run one buffer through decode → encode → send.

        Args:
            data: Bytes read from the serial port

        Returns:
            The decoded sample, or None if the buffer was not a telegram
        """
        self.stats.record_telegram()

        sample = self.decoder.parse(data)
        if sample is None:
            return None

        self.stats.record_decoded(sample)
        logger.info(f"GPSDO: {sample}")

        if not sample.valid:
            logger.debug(f"Not sending {sample.status.value} sample to chrony")
            return sample

        result = self.transmitter.send_sample(sample)
        self.stats.record_delivery(result)

        if result.delivered:
            logger.info(f"Chrony sample sent: GPS={sample}")
        else:
            logger.warning(f"Chrony sample dropped ({result.value}): GPS={sample}")

        return sample

    def snapshot(self) -> StatsSnapshot:
        return self.stats.snapshot()

    def log_status(self):
        """Log a human-readable statistics summary."""
        snap = self.snapshot()
        logger.info("=== GPSDO Status ===")
        logger.info(f"Telegrams: Total={snap.telegrams_total}, Valid={snap.telegrams_valid}")
        logger.info(f"Chrony: Samples={snap.samples_sent}, Failed={snap.samples_failed}")
        if snap.last_sample is not None:
            logger.info(
                f"Current: {snap.last_sample.timestamp:%H:%M:%S} UTC, "
                f"Status={snap.last_sample.status.value}, Age={int(snap.last_sample_age)}s"
            )
        logger.info("==================")

    def _status_loop(self):
        """Reporter thread."""
        while not self._stop_event.wait(self.status_interval):
            self.log_status()

    def _open_serial(self) -> serial.Serial:
        return serial.Serial(
            port=self.serial_port,
            baudrate=self.baudrate,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            timeout=self.read_timeout,
        )

    def start(self):
        """Open the serial port and start the reporter thread."""
        if self.running:
            logger.warning("Bridge already running")
            return

        logger.info("Starting GPSDO-Chrony SOCK bridge")
        logger.info(f"  Serial: {self.serial_port} @ {self.baudrate}")
        logger.info(f"  Socket: {self.sock_path}")

        self.port = self._open_serial()
        logger.info("Serial port opened successfully")

        self.stats.mark_started()
        self._stop_event.clear()
        self.running = True

        if self.status_interval > 0:
            self.reporter_thread = threading.Thread(
                target=self._status_loop,
                name="StatusReporter",
                daemon=True
            )
            self.reporter_thread.start()

    def stop(self):
        """Stop reading and report final totals."""
        if self._stop_event.is_set():
            return
        logger.info("Stopping GPSDO-Chrony bridge...")
        self.running = False
        self._stop_event.set()

        if self.reporter_thread:
            self.reporter_thread.join(timeout=2)
            self.reporter_thread = None

        snap = self.snapshot()
        logger.info("GPSDO-Chrony bridge stopped")
        logger.info(f"  Uptime: {snap.uptime_seconds:.1f}s")
        logger.info(f"  Telegrams: {snap.telegrams_total} ({snap.telegrams_valid} valid)")
        logger.info(f"  Chrony samples: {snap.samples_sent} sent, {snap.samples_failed} failed")

    def _close_serial(self):
        if self.port is not None:
            self.port.close()
            self.port = None

    def read_loop(self):
        """Read telegrams until stopped. Serial errors propagate."""
        while self.running:
            data = self.port.read(TELEGRAM_LENGTH)
            if len(data) != TELEGRAM_LENGTH:
                continue  # Timeout or partial telegram
            self.process_telegram(data)

    def run(self):
        """Run the bridge (blocking)."""
        def handle_signal(signum, frame):
            logger.info(f"Received signal {signum}, shutting down...")
            self.running = False

        signal.signal(signal.SIGTERM, handle_signal)
        signal.signal(signal.SIGINT, handle_signal)

        self.start()
        try:
            self.read_loop()
        except serial.SerialException as e:
            logger.exception(f"Serial error on {self.serial_port}: {e}")
            raise
        finally:
            self.stop()
            self._close_serial()

"""
Unit tests for the GPSDO-Chrony bridge.

Tests the per-telegram pipeline, statistics snapshots and the serial
read loop without real hardware.
"""

import pytest
import threading
from unittest.mock import MagicMock, patch


@pytest.fixture
def transmitter():
    """ChronySock stand-in that always delivers."""
    from gpsdo_chrony.output.chrony_sock import DeliveryResult

    mock = MagicMock()
    mock.send_sample.return_value = DeliveryResult.DELIVERED
    return mock


@pytest.fixture
def bridge(transmitter):
    from gpsdo_chrony.engine.gpsdo_bridge import GPSDOChronyBridge

    return GPSDOChronyBridge(
        serial_port='/dev/ttyTEST0',
        sock_path='/tmp/gpsdo-test.sock',
        status_interval=0,
        transmitter=transmitter,
    )


class TestProcessTelegram:
    """Test decode → encode → send for a single buffer."""

    def test_locked_telegram_sent(self, bridge, transmitter, locked_telegram):
        """Verify a LOCKED telegram is transmitted and counted."""
        sample = bridge.process_telegram(locked_telegram)

        assert sample is not None and sample.valid
        transmitter.send_sample.assert_called_once_with(sample)

        snap = bridge.snapshot()
        assert snap.telegrams_total == 1
        assert snap.telegrams_valid == 1
        assert snap.samples_sent == 1
        assert snap.samples_failed == 0
        assert snap.last_sample == sample
        assert snap.last_update is not None

    def test_power_up_not_sent(self, bridge, transmitter, make_telegram):
        """Verify POWER_UP samples are decoded but never transmitted."""
        sample = bridge.process_telegram(make_telegram(status=10))

        assert sample is not None
        assert not sample.valid
        transmitter.send_sample.assert_not_called()

        snap = bridge.snapshot()
        assert snap.telegrams_valid == 1
        assert snap.samples_sent == 0

    def test_unknown_status_not_sent(self, bridge, transmitter, make_telegram):
        """Verify UNKNOWN samples are decoded but never transmitted."""
        sample = bridge.process_telegram(make_telegram(status=55))

        assert sample.status.value == "UNKNOWN"
        transmitter.send_sample.assert_not_called()

    def test_malformed_telegram_dropped(self, bridge, transmitter, make_telegram):
        """Verify a bad terminator counts as seen but not valid."""
        assert bridge.process_telegram(make_telegram(terminator=0x0A)) is None

        transmitter.send_sample.assert_not_called()
        snap = bridge.snapshot()
        assert snap.telegrams_total == 1
        assert snap.telegrams_valid == 0
        assert snap.last_sample is None

    @pytest.mark.parametrize("result", ["TIMED_OUT", "UNREACHABLE"])
    def test_delivery_failure_counted(self, bridge, transmitter, locked_telegram, result):
        """Verify failed deliveries are counted and not retried."""
        from gpsdo_chrony.output.chrony_sock import DeliveryResult

        transmitter.send_sample.return_value = DeliveryResult(result)

        sample = bridge.process_telegram(locked_telegram)

        assert sample is not None
        assert transmitter.send_sample.call_count == 1
        snap = bridge.snapshot()
        assert snap.samples_sent == 0
        assert snap.samples_failed == 1

    def test_failure_does_not_affect_next_telegram(self, bridge, transmitter, locked_telegram):
        """Verify a lost sample leaves the next one untouched."""
        from gpsdo_chrony.output.chrony_sock import DeliveryResult

        transmitter.send_sample.side_effect = [
            DeliveryResult.UNREACHABLE,
            DeliveryResult.DELIVERED,
        ]

        bridge.process_telegram(locked_telegram)
        bridge.process_telegram(locked_telegram)

        snap = bridge.snapshot()
        assert snap.telegrams_total == 2
        assert snap.samples_failed == 1
        assert snap.samples_sent == 1

    def test_rollover_threshold_passed_to_decoder(self, transmitter, make_telegram):
        """Verify the bridge honours a configured threshold year."""
        from gpsdo_chrony.engine.gpsdo_bridge import GPSDOChronyBridge

        bridge = GPSDOChronyBridge(
            '/dev/ttyTEST0', status_interval=0,
            rollover_threshold_year=2000, transmitter=transmitter,
        )
        sample = bridge.process_telegram(make_telegram(year=2019))
        assert sample.year == 2019
        assert not sample.rollover_applied


class TestBridgeStats:
    """Test statistics snapshots."""

    def test_snapshot_is_immutable_copy(self):
        """Verify later updates do not change an earlier snapshot."""
        from gpsdo_chrony.engine.bridge_stats import BridgeStats

        stats = BridgeStats()
        stats.record_telegram()
        before = stats.snapshot()
        stats.record_telegram()

        assert before.telegrams_total == 1
        assert stats.snapshot().telegrams_total == 2
        with pytest.raises(Exception):
            before.telegrams_total = 5

    def test_concurrent_increments(self):
        """Verify counts are exact under concurrent updates."""
        from gpsdo_chrony.engine.bridge_stats import BridgeStats

        stats = BridgeStats()

        def worker():
            for _ in range(1000):
                stats.record_telegram()

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert stats.snapshot().telegrams_total == 4000

    def test_to_dict(self, bridge, locked_telegram):
        """Verify the snapshot serializes with the last sample."""
        bridge.process_telegram(locked_telegram)
        data = bridge.snapshot().to_dict()

        assert data['telegrams_total'] == 1
        assert data['samples_sent'] == 1
        assert data['last_sample']['status'] == 'LOCKED'
        assert data['last_sample']['timestamp'].startswith('2025-02-12T12:15:30')

    def test_uptime_zero_before_start(self):
        """Verify uptime is 0 until the bridge starts."""
        from gpsdo_chrony.engine.bridge_stats import BridgeStats

        assert BridgeStats().snapshot().uptime_seconds == 0.0


class TestSerialLoop:
    """Test the serial reader loop with a fake port."""

    def test_read_loop_processes_full_reads(self, bridge, transmitter, locked_telegram):
        """Verify short reads are skipped and full reads processed."""
        port = MagicMock()
        reads = [b'', locked_telegram[:7], locked_telegram]

        def fake_read(size):
            assert size == 16
            if reads:
                return reads.pop(0)
            bridge.running = False
            return b''

        port.read.side_effect = fake_read
        bridge.port = port
        bridge.running = True

        bridge.read_loop()

        snap = bridge.snapshot()
        assert snap.telegrams_total == 1
        assert snap.samples_sent == 1

    def test_start_opens_serial_8n1(self, bridge):
        """Verify the port is opened with the Z3805A line settings."""
        import serial

        with patch('gpsdo_chrony.engine.gpsdo_bridge.serial.Serial') as serial_cls:
            bridge.start()
            try:
                kwargs = serial_cls.call_args.kwargs
                assert kwargs['port'] == '/dev/ttyTEST0'
                assert kwargs['baudrate'] == 9600
                assert kwargs['bytesize'] == serial.EIGHTBITS
                assert kwargs['parity'] == serial.PARITY_NONE
                assert kwargs['stopbits'] == serial.STOPBITS_ONE
                assert bridge.running
            finally:
                bridge.stop()

        assert not bridge.running

    def test_serial_error_propagates(self, bridge):
        """Verify a serial failure is fatal and the port is closed."""
        import serial

        port = MagicMock()
        port.read.side_effect = serial.SerialException("device disconnected")

        with patch('gpsdo_chrony.engine.gpsdo_bridge.serial.Serial', return_value=port), \
                patch('gpsdo_chrony.engine.gpsdo_bridge.signal.signal'):
            with pytest.raises(serial.SerialException):
                bridge.run()

        port.close.assert_called_once()
        assert bridge.port is None
        assert not bridge.running

    def test_log_status(self, bridge, locked_telegram, caplog):
        """Verify the periodic report includes counters and last state."""
        import logging

        bridge.process_telegram(locked_telegram)
        with caplog.at_level(logging.INFO, logger='gpsdo-chrony.bridge'):
            bridge.log_status()

        assert 'Telegrams: Total=1, Valid=1' in caplog.text
        assert 'Chrony: Samples=1, Failed=0' in caplog.text
        assert 'Status=LOCKED' in caplog.text

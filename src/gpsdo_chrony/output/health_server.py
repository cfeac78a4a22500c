"""
Health Monitoring HTTP Server for gpsdo-chrony.

Provides a simple HTTP endpoint for monitoring the bridge: telegram
counters, chrony delivery counts and the last decoded GPSDO state.

Endpoints:
    GET /health     - Basic health check (200 OK if running)
    GET /status     - JSON statistics snapshot
    GET /metrics    - Prometheus-compatible metrics

Usage:
    from gpsdo_chrony.output.health_server import HealthServer

    server = HealthServer(port=8080)
    server.set_bridge(bridge)
    server.start()
"""

import json
import logging
import threading
import time
from http.server import HTTPServer, BaseHTTPRequestHandler
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

# Gauge encoding of OscillatorStatus values
OSCILLATOR_STATE_MAP = {'POWER_UP': 1, 'HOLDOVER': 2, 'LOCKED': 3}


class HealthRequestHandler(BaseHTTPRequestHandler):
    """HTTP request handler for health endpoints."""

    # Class-level reference to status callback
    get_status: Optional[Callable[[], Dict[str, Any]]] = None

    def log_message(self, format, *args):
        """Suppress default HTTP logging."""
        pass

    def do_GET(self):
        if self.path == '/health':
            self._handle_health()
        elif self.path == '/status':
            self._handle_status()
        elif self.path == '/metrics':
            self._handle_metrics()
        else:
            self.send_error(404, "Not Found")

    def _handle_health(self):
        self.send_response(200)
        self.send_header('Content-Type', 'text/plain')
        self.end_headers()
        self.wfile.write(b'OK\n')

    def _handle_status(self):
        if self.get_status:
            try:
                status = self.get_status()
                self._send(200, 'application/json', json.dumps(status, indent=2))
            except Exception as e:
                logger.error(f"Status request failed: {e}")
                self._send(500, 'application/json', json.dumps({'error': str(e)}))
        else:
            self._send(503, 'application/json', json.dumps({'error': 'No bridge connected'}))

    def _handle_metrics(self):
        if self.get_status:
            try:
                metrics = self._format_prometheus_metrics(self.get_status())
                self._send(200, 'text/plain; version=0.0.4', metrics)
            except Exception as e:
                logger.error(f"Metrics request failed: {e}")
                self._send(500, 'text/plain', f'# Error: {e}\n')
        else:
            self._send(503, 'text/plain', '# No bridge connected\n')

    def _send(self, code: int, content_type: str, body: str):
        self.send_response(code)
        self.send_header('Content-Type', content_type)
        self.end_headers()
        self.wfile.write(body.encode())

    def _format_prometheus_metrics(self, status: Dict[str, Any]) -> str:
        """Format status as Prometheus metrics."""
        lines = [
            '# HELP gpsdo_chrony_telegrams_total Full-length buffers read from the serial port',
            '# TYPE gpsdo_chrony_telegrams_total counter',
            f'gpsdo_chrony_telegrams_total {status.get("telegrams_total", 0)}',
            '',
            '# HELP gpsdo_chrony_telegrams_valid_total Telegrams that decoded successfully',
            '# TYPE gpsdo_chrony_telegrams_valid_total counter',
            f'gpsdo_chrony_telegrams_valid_total {status.get("telegrams_valid", 0)}',
            '',
            '# HELP gpsdo_chrony_samples_sent_total Samples delivered to chronyd',
            '# TYPE gpsdo_chrony_samples_sent_total counter',
            f'gpsdo_chrony_samples_sent_total {status.get("samples_sent", 0)}',
            '',
            '# HELP gpsdo_chrony_samples_failed_total Samples chronyd did not accept',
            '# TYPE gpsdo_chrony_samples_failed_total counter',
            f'gpsdo_chrony_samples_failed_total {status.get("samples_failed", 0)}',
            '',
            '# HELP gpsdo_chrony_uptime_seconds Bridge uptime in seconds',
            '# TYPE gpsdo_chrony_uptime_seconds gauge',
            f'gpsdo_chrony_uptime_seconds {status.get("uptime_seconds", 0):.1f}',
            '',
            '# HELP gpsdo_chrony_oscillator_status GPSDO state (0=UNKNOWN, 1=POWER_UP, 2=HOLDOVER, 3=LOCKED)',
            '# TYPE gpsdo_chrony_oscillator_status gauge',
        ]

        last_sample = status.get('last_sample') or {}
        state_value = OSCILLATOR_STATE_MAP.get(last_sample.get('status'), 0)
        lines.append(f'gpsdo_chrony_oscillator_status {state_value}')

        if last_sample:
            lines.extend([
                '',
                '# HELP gpsdo_chrony_leap_seconds GPS-UTC leap seconds reported by the GPSDO',
                '# TYPE gpsdo_chrony_leap_seconds gauge',
                f'gpsdo_chrony_leap_seconds {last_sample.get("leap_seconds", 0)}',
            ])

        lines.append('')
        return '\n'.join(lines)


class HealthServer:
    """
    HTTP server for health monitoring.

    Runs in a background thread and reads only statistics snapshots,
    never the bridge's live counters.
    """

    def __init__(self, port: int = 8080, bind_address: str = '0.0.0.0'):
        """
        Args:
            port: HTTP port to listen on
            bind_address: Address to bind to (default: all interfaces)
        """
        self.port = port
        self.bind_address = bind_address
        self.server: Optional[HTTPServer] = None
        self.thread: Optional[threading.Thread] = None
        self.bridge = None
        self._running = False

    def set_bridge(self, bridge):
        """
        Connect to a GPSDOChronyBridge for status reporting.

        Args:
            bridge: Any object with a snapshot() returning a StatsSnapshot
        """
        self.bridge = bridge
        HealthRequestHandler.get_status = self._get_status

    def _get_status(self) -> Dict[str, Any]:
        if not self.bridge:
            return {'error': 'No bridge connected'}

        status = self.bridge.snapshot().to_dict()
        status['timestamp'] = time.time()
        status['serial_port'] = getattr(self.bridge, 'serial_port', None)
        status['sock_path'] = getattr(self.bridge, 'sock_path', None)
        return status

    def start(self):
        """Start the health server in a background thread."""
        if self._running:
            logger.warning("Health server already running")
            return

        try:
            self.server = HTTPServer(
                (self.bind_address, self.port),
                HealthRequestHandler
            )
            # Set timeout so handle_request doesn't block forever
            self.server.timeout = 1.0
            self._running = True

            self.thread = threading.Thread(
                target=self._serve,
                name="HealthServer",
                daemon=True
            )
            self.thread.start()

            logger.info(f"Health server started on http://{self.bind_address}:{self.port}")

        except OSError as e:
            logger.error(f"Failed to start health server: {e}")
            self._running = False

    def _serve(self):
        """Server loop (runs in background thread)."""
        while self._running:
            try:
                self.server.handle_request()
            except OSError:
                if self._running:
                    logger.debug("Health server request failed", exc_info=True)

    def stop(self):
        """Stop the health server."""
        self._running = False
        if self.thread:
            self.thread.join(timeout=2.0)
            self.thread = None
        if self.server:
            self.server.server_close()
            self.server = None
        logger.info("Health server stopped")

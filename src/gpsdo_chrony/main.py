#!/usr/bin/env python3
"""
gpsdo-chrony: HP Z3805A GPSDO to chronyd bridge

Main entry point for the bridge daemon. This service:
1. Reads 16-byte Time-of-Day telegrams from the Z3805A serial port
2. Decodes and validates them, correcting GPS week rollover
3. Sends LOCKED/HOLDOVER samples to chronyd's SOCK refclock
4. Logs a status summary every 30 seconds

Usage:
    # Start with serial port and default socket
    gpsdo-chrony /dev/ttyAMA0

    # Explicit socket path
    gpsdo-chrony /dev/ttyAMA0 /var/run/chrony/gpsdo.sock

    # Everything from a config file
    gpsdo-chrony --config /etc/gpsdo-chrony/config.toml
"""

import argparse
import copy
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import serial
import toml

# Set up logging before imports that use it
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger('gpsdo-chrony')

from .engine.gpsdo_bridge import GPSDOChronyBridge
from .output.chrony_sock import install_chrony_config
from .output.health_server import HealthServer


DEFAULT_CONFIG: Dict[str, Any] = {
    'serial': {
        'port': '',
        'baudrate': 9600,
        'timeout': 1.0,
    },
    'chrony': {
        'sock_path': '/var/run/chrony/gpsdo.sock',
        'write_timeout': 2.0,
    },
    'decoder': {
        'rollover_threshold_year': 2020,
    },
    'output': {
        'status_interval': 30.0,
        'health_port': 0,
    },
}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from TOML file.

    Values from the file override the defaults key by key within each
    section. A missing file yields the defaults.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path and Path(config_path).exists():
        with open(config_path, 'r') as f:
            file_config = toml.load(f)
        for section, values in file_config.items():
            if isinstance(values, dict):
                config.setdefault(section, {}).update(values)
            else:
                config[section] = values
    elif config_path:
        logger.warning(f"Config file {config_path} not found, using defaults")

    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='gpsdo-chrony: HP Z3805A GPSDO to chronyd SOCK bridge',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    gpsdo-chrony /dev/ttyAMA0
    gpsdo-chrony /dev/ttyAMA0 /var/run/chrony/gpsdo.sock
    gpsdo-chrony --config /etc/gpsdo-chrony/config.toml --health-port 8080
    gpsdo-chrony --print-chrony-config
        """
    )

    parser.add_argument(
        'serial_port',
        nargs='?',
        help='Serial device the Z3805A is attached to (e.g. /dev/ttyAMA0)'
    )
    parser.add_argument(
        'sock_path',
        nargs='?',
        help='chronyd SOCK refclock path (default: /var/run/chrony/gpsdo.sock)'
    )
    parser.add_argument(
        '--config', '-c',
        help='Path to TOML configuration file'
    )
    parser.add_argument(
        '--baudrate',
        type=int,
        help='Serial baud rate (default: 9600)'
    )
    parser.add_argument(
        '--status-interval',
        type=float,
        help='Seconds between status reports (default: 30, 0 to disable)'
    )
    parser.add_argument(
        '--health-port',
        type=int,
        help='HTTP port for health monitoring endpoint (default: 0 = disabled)'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    parser.add_argument(
        '--print-chrony-config',
        action='store_true',
        help='Print the chrony.conf refclock snippet and exit'
    )
    return parser


def apply_overrides(config: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    """Apply command-line overrides to a loaded config."""
    if args.serial_port:
        config['serial']['port'] = args.serial_port
    if args.sock_path:
        config['chrony']['sock_path'] = args.sock_path
    if args.baudrate is not None:
        config['serial']['baudrate'] = args.baudrate
    if args.status_interval is not None:
        config['output']['status_interval'] = args.status_interval
    if args.health_port is not None:
        config['output']['health_port'] = args.health_port
    return config


def main(argv=None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    config = apply_overrides(load_config(args.config), args)

    if args.print_chrony_config:
        print(install_chrony_config(config['chrony']['sock_path']))
        return 0

    serial_port = config['serial']['port']
    if not serial_port:
        parser.print_usage()
        logger.error("No serial port given on the command line or in the config file")
        return 1

    if not Path(serial_port).exists():
        logger.error(f"Serial port {serial_port} does not exist")
        return 1

    bridge = GPSDOChronyBridge(
        serial_port=serial_port,
        sock_path=config['chrony']['sock_path'],
        baudrate=config['serial']['baudrate'],
        read_timeout=config['serial']['timeout'],
        write_timeout=config['chrony']['write_timeout'],
        status_interval=config['output']['status_interval'],
        rollover_threshold_year=config['decoder']['rollover_threshold_year'],
    )

    health_server = None
    health_port = config['output']['health_port']
    if health_port > 0:
        health_server = HealthServer(port=health_port)
        health_server.set_bridge(bridge)
        health_server.start()

    try:
        bridge.run()
    except serial.SerialException as e:
        logger.error(f"Bridge error: {e}")
        return 1
    finally:
        if health_server:
            health_server.stop()

    return 0


if __name__ == '__main__':
    sys.exit(main())

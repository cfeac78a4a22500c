"""Bridge engine - serial reader loop and run statistics."""

from .gpsdo_bridge import GPSDOChronyBridge
from .bridge_stats import BridgeStats, StatsSnapshot

__all__ = ['GPSDOChronyBridge', 'BridgeStats', 'StatsSnapshot']

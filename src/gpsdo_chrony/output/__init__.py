"""Output adapters - chronyd SOCK refclock, health monitoring."""

from .chrony_sock import (
    ChronySock,
    ChronySockSample,
    DeliveryResult,
    encode_sample,
    SOCK_MAGIC,
    SOCK_SAMPLE_SIZE,
)
from .health_server import HealthServer

__all__ = [
    'ChronySock',
    'ChronySockSample',
    'DeliveryResult',
    'encode_sample',
    'SOCK_MAGIC',
    'SOCK_SAMPLE_SIZE',
    'HealthServer',
]

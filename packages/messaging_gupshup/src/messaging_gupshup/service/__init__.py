"""
Gupshup Channel Service

Channel orchestration and health monitoring.
"""

from messaging_gupshup.service.channel import ChannelEvents, ChannelStatus, GupshupChannel
from messaging_gupshup.service.health import AccountHealth, HealthMonitor, HealthStatus, ProbeResult

__all__ = [
    "GupshupChannel",
    "ChannelEvents",
    "ChannelStatus",
    "HealthMonitor",
    "HealthStatus",
    "AccountHealth",
    "ProbeResult",
]

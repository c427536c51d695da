"""
Bridge Console Control Link

Desktop-side UDP link to a remote bridge-control unit: operator commands,
telemetry classification, liveness detection and heartbeat.
"""

__version__ = "1.0.0"

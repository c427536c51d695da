"""
Console Link Core Module

Shared state, gating and liveness components for the console control link.
The coordinator lives in bridge_console.core.bridge_coordinator.
"""

from .state_manager import LivenessState, ModeState, OperatingMode
from .mode_gate import ModeGate
from .liveness_monitor import LivenessMonitor
from .status_sink import (
    StatusSink, NoticeSink, NoticeChannel, CompositeStatusSink,
    QueuedStatusSink, LoggingStatusSink,
)

__all__ = [
    'LivenessState', 'ModeState', 'OperatingMode', 'ModeGate', 'LivenessMonitor',
    'StatusSink', 'NoticeSink', 'NoticeChannel', 'CompositeStatusSink',
    'QueuedStatusSink', 'LoggingStatusSink',
]

"""
Event Log Module

Bounded history of link activity for the operator console message log.
Thread-safe: written from the receive and liveness threads and from
whichever thread issues commands; read from the console.
"""

import threading
import time
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from common.events import (
    SEVERITY_ERROR, SEVERITY_INFO, SEVERITY_SUCCESS, SEVERITY_WARNING,
    describe_event,
)
from common.protocol import InboundMessage, MessageKind, StatusSnapshot
from .core.status_sink import StatusSink


@dataclass(frozen=True)
class LogEntry:
    """One line of the message log."""
    timestamp: float
    severity: str
    source: str
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class EventLog(StatusSink):
    """
    Fixed-size circular buffer of log entries.

    Records events, connectivity changes, fatal conditions and operator
    commands. STATUS updates are not logged line by line; only the latest snapshot
    and a count are kept, plus a line when the bridge/gate/sequence change.
    """

    def __init__(self, max_entries: int = 500):
        """
        Initialize event log.

        Args:
            max_entries: Maximum number of entries to keep
        """
        self.max_entries = max_entries
        self.lock = threading.Lock()

        self.entries = deque(maxlen=max_entries)
        self.latest_status: Optional[StatusSnapshot] = None
        self.status_count = 0
        self.entry_count = 0

    def add(self, severity: str, source: str, text: str) -> LogEntry:
        entry = LogEntry(time.time(), severity, source, text)
        with self.lock:
            self.entries.append(entry)
            self.entry_count += 1
        return entry

    def on_status(self, snapshot: StatusSnapshot):
        with self.lock:
            previous = self.latest_status
            self.latest_status = snapshot
            self.status_count += 1

        if previous is None or (previous.bridge, previous.gate, previous.sequence) != \
                (snapshot.bridge, snapshot.gate, snapshot.sequence):
            self.add(SEVERITY_INFO, "status",
                     f"STATUS: Bridge={snapshot.bridge}, Gate={snapshot.gate}, "
                     f"Road={snapshot.road_light}, Boat={snapshot.boat_light}, "
                     f"Seq={snapshot.sequence}")

    def on_event(self, kind: MessageKind, content: str):
        detail = describe_event(InboundMessage(kind, content, content))
        self.add(detail.severity, kind.value.lower(), detail.summary)

    def on_connectivity_changed(self, connected: bool):
        if connected:
            self.add(SEVERITY_SUCCESS, "link", "SYSTEM: Connected to remote unit")
        else:
            self.add(SEVERITY_ERROR, "link", "SYSTEM: Communication lost - no status received")

    def on_fatal(self, message: str):
        self.add(SEVERITY_ERROR, "link", f"ERROR: {message}")

    def get_recent(self, count: int = 50) -> List[LogEntry]:
        """
        Get the most recent entries.

        Args:
            count: Maximum number of entries to return

        Returns:
            List of entries, oldest first
        """
        with self.lock:
            if count <= 0:
                return []
            return list(self.entries)[-count:]

    def get_latest_status(self) -> Optional[StatusSnapshot]:
        with self.lock:
            return self.latest_status

    def get_stats(self) -> Dict[str, Any]:
        with self.lock:
            by_severity: Dict[str, int] = {}
            for entry in self.entries:
                by_severity[entry.severity] = by_severity.get(entry.severity, 0) + 1
            return {
                'entries': len(self.entries),
                'entries_total': self.entry_count,
                'status_count': self.status_count,
                'by_severity': by_severity,
            }

    def clear(self):
        """Clear all buffered entries."""
        with self.lock:
            self.entries.clear()
            self.latest_status = None
            self.status_count = 0
            self.entry_count = 0

"""
Bridge Coordinator for the console control link

Wires the link components together and exposes the operator command entry
point.

Execution contexts:
- telemetry-rx: blocking UDP receive loop (TelemetryListener)
- heartbeat: fixed-rate beacon (HeartbeatEmitter)
- liveness-monitor: 1s connectivity tick (LivenessMonitor)
- status-sink / notice-channel: deliver updates to sinks off the receive thread
- caller: issue_command() runs synchronously on whichever thread calls it

Failure policy: nothing here terminates the process. A telemetry bind
failure leaves the link running without telemetry; a failed send loses
that one command.
"""

import logging
import signal
import sys
import threading
import time
from enum import Enum
from typing import List, Optional

from bridge_console import config
from bridge_console.command_channel import CommandChannel, Endpoint
from bridge_console.event_log import EventLog
from bridge_console.heartbeat_emitter import HeartbeatEmitter
from bridge_console.status_websocket import StatusWebSocketServer, start_websocket_thread
from bridge_console.telemetry_listener import TelemetryListener

from common.constants import FAULT_GATE_REJECTED
from common.events import SEVERITY_ERROR, SEVERITY_SUCCESS, SEVERITY_WARNING
from common.logging_config import setup_logging
from common.protocol import StatusSnapshot

from .liveness_monitor import LivenessMonitor
from .mode_gate import ModeGate
from .state_manager import LivenessState, ModeState
from .status_sink import (
    CompositeStatusSink, LoggingStatusSink, NoticeChannel, QueuedStatusSink, StatusSink,
)

logger = logging.getLogger(__name__)


class CommandOutcome(Enum):
    """Result of an operator command."""
    SENT = "sent"
    REJECTED = "rejected"
    FAILED = "failed"


class ControlLink:
    """
    Desktop-side control link to the remote bridge unit.
    """

    def __init__(
        self,
        remote_host: str = config.REMOTE_HOST,
        remote_port: int = config.REMOTE_PORT,
        listen_port: int = config.LISTEN_PORT,
        listen_host: str = config.LISTEN_HOST,
        liveness_timeout: float = config.LIVENESS_TIMEOUT,
        heartbeat_interval: float = config.HEARTBEAT_INTERVAL,
        heartbeat_delay: float = config.HEARTBEAT_INITIAL_DELAY,
        heartbeat_enabled: bool = config.HEARTBEAT_ENABLED,
        status_ws_port: Optional[int] = None,
        status_ws_host: str = config.STATUS_WS_HOST,
        event_log_size: int = config.EVENT_LOG_SIZE,
        sinks: Optional[List[StatusSink]] = None,
        channel: Optional[CommandChannel] = None
    ):
        """
        Initialize all link components.

        Args:
            remote_host: Remote unit address
            remote_port: Remote unit command port
            listen_port: Local telemetry port
            listen_host: Local telemetry bind address
            liveness_timeout: Seconds without STATUS before the link counts as lost
            heartbeat_interval: Seconds between heartbeats
            heartbeat_delay: Seconds before the first heartbeat
            heartbeat_enabled: Send heartbeats at all
            status_ws_port: Port for the console WebSocket bridge, None to disable
            status_ws_host: Bind address for the WebSocket bridge
            event_log_size: Message log capacity
            sinks: Extra status sinks (e.g. a GUI adapter)
            channel: Pre-built command channel (mainly for tests)
        """
        # Shared state
        self.liveness = LivenessState(threshold_s=liveness_timeout)
        self.mode_state = ModeState()
        self.mode_gate = ModeGate(self.mode_state)

        # Sinks
        self.event_log = EventLog(max_entries=event_log_size)
        self.logging_sink = LoggingStatusSink()
        self.sinks = CompositeStatusSink([self.logging_sink, self.event_log] + list(sinks or []))

        self.notices = NoticeChannel(maxsize=config.NOTICE_QUEUE_SIZE)
        self.notices.subscribe(self.logging_sink)

        self.websocket_server: Optional[StatusWebSocketServer] = None
        self.websocket_thread: Optional[threading.Thread] = None
        if status_ws_port is not None:
            self.websocket_server = StatusWebSocketServer(
                port=status_ws_port,
                host=status_ws_host,
                command_handler=lambda command: self.issue_command(command).value
            )
            self.sinks.add(self.websocket_server)
            self.notices.subscribe(self.websocket_server)

        self.sink = QueuedStatusSink(self.sinks)

        # Components
        self.channel = channel or CommandChannel(Endpoint(remote_host, remote_port))

        self.listener = TelemetryListener(
            sink=self.sink,
            liveness=self.liveness,
            mode_state=self.mode_state,
            notices=self.notices,
            listen_port=listen_port,
            listen_host=listen_host
        )

        self.liveness_monitor = LivenessMonitor(
            liveness=self.liveness,
            sink=self.sink,
            notices=self.notices,
            mode_state=self.mode_state
        )

        self.heartbeat: Optional[HeartbeatEmitter] = None
        if heartbeat_enabled:
            self.heartbeat = HeartbeatEmitter(
                self.channel,
                interval_s=heartbeat_interval,
                initial_delay_s=heartbeat_delay
            )

        self.running = False
        self._stopped = threading.Event()

        logger.info(f"ControlLink initialized (remote={self.channel.endpoint}, listen_port={listen_port})")

    def issue_command(self, command: str) -> CommandOutcome:
        """
        Send an operator command through the mode gate.

        Args:
            command: Command token (e.g., 'open_bridge', 'override_mode')

        Returns:
            CommandOutcome
        """
        reason = self.mode_gate.check(command)
        if reason is not None:
            self.event_log.add(SEVERITY_WARNING, "command", f"REJECTED: {command} - {reason}")
            self.notices.post(reason)
            logger.debug(f"Command {command} not sent ({FAULT_GATE_REJECTED})")
            return CommandOutcome.REJECTED

        if self.channel.send(command):
            self.event_log.add(SEVERITY_SUCCESS, "command", f"SENT: {command}")
            return CommandOutcome.SENT

        self.event_log.add(SEVERITY_ERROR, "command", f"ERROR: Failed to send {command}")
        self.notices.post(f"Failed to send {command}")
        return CommandOutcome.FAILED

    def start(self) -> bool:
        """
        Start all components. Does not block.

        Returns:
            True if telemetry is being received, False if the link runs degraded
        """
        self.running = True
        self._stopped.clear()

        logger.info("Starting components...")

        self.sink.start()
        self.notices.start()

        if self.websocket_server:
            self.websocket_thread = start_websocket_thread(self.websocket_server)
            logger.info(f"Status WebSocket server starting on port {self.websocket_server.port}")

        telemetry_ok = self.listener.start()
        if not telemetry_ok:
            logger.error("Telemetry unavailable - continuing without live status")

        self.liveness_monitor.start()

        if self.heartbeat:
            self.heartbeat.start()

        logger.info("ControlLink started successfully")
        return telemetry_ok

    def stop(self):
        """Stop all components. Safe to call more than once."""
        if not self.running:
            return
        logger.info("Stopping ControlLink...")
        self.running = False

        if self.heartbeat:
            self.heartbeat.stop()
        self.liveness_monitor.stop()
        self.listener.stop()

        if self.websocket_server:
            self.websocket_server.shutdown()

        self.channel.close()
        self.notices.stop()
        self.sink.stop()

        self._stopped.set()
        logger.info("ControlLink stopped")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until stop() has run. Returns True if stopped."""
        return self._stopped.wait(timeout)

    def get_status(self) -> Optional[StatusSnapshot]:
        """Latest STATUS snapshot received, if any."""
        return self.listener.get_latest_snapshot()

    def get_health(self) -> dict:
        """Get health status for monitoring."""
        now = time.monotonic()
        last_status_at, connected = self.liveness.snapshot()
        mode, diagnostic = self.mode_state.snapshot()

        telemetry_listening = self.listener.is_listening()
        healthy = telemetry_listening and connected and last_status_at is not None

        return {
            'status': 'ok' if healthy else 'degraded',
            'telemetry_listening': telemetry_listening,
            'link_connected': connected,
            'last_status_age_s': (now - last_status_at) if last_status_at is not None else None,
            'mode': mode.value,
            'mode_confirmed': self.mode_state.is_confirmed(),
            'diagnostic': diagnostic,
            'gate_rejections': self.mode_gate.rejections,
            'channel': self.channel.get_stats(),
            'listener': self.listener.get_stats(),
            'heartbeat': self.heartbeat.get_stats() if self.heartbeat else None,
            'notices': self.notices.get_stats(),
        }


def signal_handler(sig, frame):
    """Handle shutdown signals."""
    logger.info("Shutdown signal received")
    if link:
        link.stop()


# Global link instance
link: Optional[ControlLink] = None


def main():
    """Main entry point."""
    global link

    setup_logging("console_link", config.LOG_LEVEL)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info("=" * 60)
    logger.info("BRIDGE CONSOLE CONTROL LINK STARTING")
    logger.info("=" * 60)

    link = ControlLink(
        status_ws_port=config.STATUS_WS_PORT if config.STATUS_WS_ENABLED else None
    )

    try:
        link.start()
        while not link.wait(timeout=1.0):
            pass
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        link.stop()
        sys.exit(1)


if __name__ == '__main__':
    main()

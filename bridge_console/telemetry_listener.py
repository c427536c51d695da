"""
Telemetry Listener - Receives status and event datagrams from the remote unit

Behaviour:
- Bind failure is reported once to the status sink and telemetry stays off;
  the rest of the link keeps running
- Each datagram is parsed and dispatched synchronously on the receive thread
- Transport read errors are logged and the loop moves on to the next packet
- Malformed text is never an error: it is forwarded as UNCLASSIFIED
- stop() closes the socket, which unblocks the receive loop
"""

import logging
import socket
import threading
import time
from typing import Callable, Optional, Union

from common.constants import (
    MAX_DATAGRAM_SIZE, RECEIVE_POLL_TIMEOUT_S, DEFAULT_LISTEN_PORT,
    FAULT_BIND_FAILURE, FAULT_READ_ERROR, FAULT_MALFORMED,
)
from common.events import notice_for
from common.protocol import InboundMessage, MessageKind, StatusSnapshot, parse_message
from .core.state_manager import LivenessState, ModeState
from .core.status_sink import NoticeChannel, StatusSink

logger = logging.getLogger(__name__)


class TelemetryListener:
    """Receives telemetry datagrams and dispatches them to the status sink"""

    def __init__(
        self,
        sink: StatusSink,
        liveness: LivenessState,
        mode_state: ModeState,
        notices: Optional[NoticeChannel] = None,
        listen_port: int = DEFAULT_LISTEN_PORT,
        listen_host: str = "0.0.0.0",
        clock: Callable[[], float] = time.monotonic
    ):
        self.sink = sink
        self.liveness = liveness
        self.mode_state = mode_state
        self.notices = notices
        self.listen_port = listen_port
        self.listen_host = listen_host
        self.clock = clock

        self.socket: Optional[socket.socket] = None
        self.running = False
        self.bind_failed = False
        self.receive_thread: Optional[threading.Thread] = None

        self._snapshot_lock = threading.Lock()
        self._latest_snapshot: Optional[StatusSnapshot] = None

        # Statistics
        self.datagrams_received = 0
        self.status_received = 0
        self.events_received = 0
        self.unclassified_received = 0
        self.read_errors = 0
        self.dispatch_errors = 0

        logger.info(f"TelemetryListener initialized on port {listen_port}")

    def start(self) -> bool:
        """
        Bind the telemetry socket and start the receive loop.

        Returns:
            True if listening, False if the socket could not be bound
        """
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            try:
                sock.bind((self.listen_host, self.listen_port))
            except OSError:
                sock.close()
                raise
            sock.settimeout(RECEIVE_POLL_TIMEOUT_S)
        except OSError as e:
            self.bind_failed = True
            message = (f"Failed to bind telemetry port {self.listen_port}: {e}. "
                       f"Port is likely in use; running without live telemetry")
            logger.critical(f"{message} ({FAULT_BIND_FAILURE})")
            self._call_sink("on_fatal", lambda: self.sink.on_fatal(message))
            return False

        self.socket = sock
        self.running = True
        logger.info(f"Listening for telemetry on {self.listen_host}:{self.bound_port}")

        self.receive_thread = threading.Thread(target=self._receive_loop, name="telemetry-rx", daemon=True)
        self.receive_thread.start()

        logger.info("TelemetryListener started")
        return True

    def stop(self):
        """Stop receiving telemetry"""
        self.running = False

        if self.socket:
            try:
                self.socket.close()
            except OSError as e:
                logger.debug(f"Error closing telemetry socket: {e}")

        if self.receive_thread and self.receive_thread is not threading.current_thread():
            self.receive_thread.join(timeout=2.0)

        self.socket = None
        logger.info(f"TelemetryListener stopped (received={self.datagrams_received}, "
                    f"status={self.status_received}, read_err={self.read_errors})")

    @property
    def bound_port(self) -> Optional[int]:
        """Port actually bound (differs from listen_port when 0 was requested)."""
        if self.socket is None:
            return None
        try:
            return self.socket.getsockname()[1]
        except OSError:
            return None

    def _receive_loop(self):
        """Main receive loop"""
        logger.info("Receive thread started - listening for remote unit messages...")
        sock = self.socket
        while self.running:
            try:
                data, addr = sock.recvfrom(MAX_DATAGRAM_SIZE)
            except socket.timeout:
                continue
            except OSError as e:
                if not self.running:
                    break
                self.read_errors += 1
                logger.error(f"Telemetry read error ({FAULT_READ_ERROR}): {e}")
                time.sleep(0.1)
                continue

            try:
                self.handle_datagram(data)
            except Exception as e:
                self.dispatch_errors += 1
                logger.error(f"Unexpected error handling datagram from {addr}: {e}")

        logger.info("Receive thread exiting")

    def handle_datagram(self, data: Union[bytes, str]) -> InboundMessage:
        """
        Parse and dispatch one datagram.

        Args:
            data: Raw datagram payload

        Returns:
            The classified message
        """
        self.datagrams_received += 1
        message = parse_message(data)
        logger.debug(f"Received from remote unit: {message.raw}")
        self.dispatch(message)
        return message

    def dispatch(self, message: InboundMessage):
        """Route a classified message to state, sink and notice channel."""
        if message.kind is MessageKind.STATUS:
            self._dispatch_status(message.snapshot)
            return

        if message.kind is MessageKind.UNCLASSIFIED:
            self.unclassified_received += 1
            logger.debug(f"Unclassified message ({FAULT_MALFORMED}): {message.raw!r}")
        else:
            self.events_received += 1

        self._call_sink("on_event", lambda: self.sink.on_event(message.kind, message.content))
        self._post_notice(message)

    def _dispatch_status(self, snapshot: StatusSnapshot):
        self.status_received += 1
        self.mode_state.update_from_status(snapshot.mode, snapshot.sequence)
        self.liveness.record_status(self.clock())

        with self._snapshot_lock:
            self._latest_snapshot = snapshot

        self._call_sink("on_status", lambda: self.sink.on_status(snapshot))

    def _post_notice(self, message: InboundMessage):
        if not self.notices:
            return
        try:
            text = notice_for(message)
            if text:
                self.notices.post(text)
        except Exception as e:
            logger.debug(f"Notice for {message.kind.value} not posted: {e}")

    def _call_sink(self, name: str, call: Callable[[], None]):
        try:
            call()
        except Exception as e:
            self.dispatch_errors += 1
            logger.error(f"Status sink {name} callback error: {e}")

    def get_latest_snapshot(self) -> Optional[StatusSnapshot]:
        with self._snapshot_lock:
            return self._latest_snapshot

    def is_listening(self) -> bool:
        return self.running and self.socket is not None

    def get_stats(self) -> dict:
        """Get listener statistics"""
        return {
            'datagrams_received': self.datagrams_received,
            'status_received': self.status_received,
            'events_received': self.events_received,
            'unclassified_received': self.unclassified_received,
            'read_errors': self.read_errors,
            'dispatch_errors': self.dispatch_errors,
            'bind_failed': self.bind_failed,
        }

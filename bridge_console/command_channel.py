"""
Command Channel - Sends operator commands to the remote bridge unit

Each command is a bare token sent as one UDP datagram (no tag, no framing).

UDP semantics:
- No acknowledgement: a dropped command is simply lost
- Transmit errors are logged and counted, never retried
- send() never blocks waiting for the remote unit
"""

import logging
import socket
import threading
from dataclasses import dataclass
from typing import Optional

from common.constants import KNOWN_COMMANDS, TEXT_ENCODING, FAULT_TRANSMIT_ERROR

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Endpoint:
    """Address of the remote unit's command port."""
    host: str
    port: int

    def as_tuple(self):
        return (self.host, self.port)

    def __str__(self):
        return f"{self.host}:{self.port}"


class CommandChannel:
    """Sends command tokens to the remote unit over UDP"""

    def __init__(self, endpoint: Endpoint, sock: Optional[socket.socket] = None):
        self.endpoint = endpoint
        self.socket: Optional[socket.socket] = sock or socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.lock = threading.Lock()

        # Track send statistics
        self.commands_sent = 0
        self.commands_failed = 0
        self.last_error: Optional[str] = None

        logger.info(f"CommandChannel initialized for {endpoint}")

    def send(self, command: str) -> bool:
        """
        Send one command token.

        Args:
            command: Command token (e.g., 'open_bridge', 'heartbeat')

        Returns:
            True if the datagram was handed to the network, False otherwise
        """
        token = command.strip() if isinstance(command, str) else ""
        if not token:
            logger.warning(f"Refusing to send empty command: {command!r}")
            self.commands_failed += 1
            return False

        if token not in KNOWN_COMMANDS:
            logger.debug(f"Sending command outside known vocabulary: {token}")

        try:
            payload = token.encode(TEXT_ENCODING)
            with self.lock:
                if self.socket is None:
                    logger.warning(f"Channel closed, cannot send command: {token}")
                    self.commands_failed += 1
                    return False
                self.socket.sendto(payload, self.endpoint.as_tuple())
                self.commands_sent += 1
            logger.debug(f"Sent command: {token}")
            return True

        except OSError as e:
            with self.lock:
                self.commands_failed += 1
                self.last_error = str(e)
            logger.error(f"Failed to send command {token} to {self.endpoint} ({FAULT_TRANSMIT_ERROR}): {e}")
            return False

    def close(self):
        """Close the socket. Later sends fail without raising."""
        with self.lock:
            if self.socket:
                try:
                    self.socket.close()
                except OSError as e:
                    logger.debug(f"Error closing command socket: {e}")
                self.socket = None
        logger.info(f"CommandChannel closed (sent={self.commands_sent}, failed={self.commands_failed})")

    def is_open(self) -> bool:
        return self.socket is not None

    def get_stats(self) -> dict:
        """Get command statistics"""
        return {
            'commands_sent': self.commands_sent,
            'commands_failed': self.commands_failed,
            'last_error': self.last_error,
        }

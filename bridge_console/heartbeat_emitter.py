"""
Heartbeat Emitter - Periodic liveness beacon to the remote unit

Sends the 'heartbeat' token so the remote unit can detect loss of the
operator console. Runs on its own thread, independent of telemetry and of
operator commands.

Schedule: first beacon after initial_delay_s, then every interval_s at a
fixed rate. Beats missed while the thread was stalled are skipped, not
sent in a burst.
"""

import logging
import threading
import time
from typing import Callable, Optional

from common.constants import CMD_HEARTBEAT, HEARTBEAT_INITIAL_DELAY_S, HEARTBEAT_INTERVAL_S
from .command_channel import CommandChannel

logger = logging.getLogger(__name__)


class HeartbeatEmitter:
    """Fixed-rate heartbeat sender"""

    def __init__(
        self,
        channel: CommandChannel,
        interval_s: float = HEARTBEAT_INTERVAL_S,
        initial_delay_s: float = HEARTBEAT_INITIAL_DELAY_S,
        clock: Callable[[], float] = time.monotonic
    ):
        self.channel = channel
        self.interval_s = interval_s
        self.initial_delay_s = initial_delay_s
        self.clock = clock

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.beats_sent = 0
        self.beats_failed = 0
        self.beats_skipped = 0

        logger.info(f"HeartbeatEmitter initialized (interval={interval_s}s, delay={initial_delay_s}s)")

    def _wait(self, timeout: float, stop_event: threading.Event) -> bool:
        """Wait up to timeout seconds. Returns True if stop was requested."""
        return stop_event.wait(timeout)

    def _beat(self):
        try:
            if self.channel.send(CMD_HEARTBEAT):
                self.beats_sent += 1
            else:
                self.beats_failed += 1
        except Exception as e:
            self.beats_failed += 1
            logger.error(f"Heartbeat error: {e}")

    def _run(self, stop_event: Optional[threading.Event] = None):
        # Wait on this run's event; start() replaces self._stop_event
        stop_event = stop_event or self._stop_event
        next_at = self.clock() + self.initial_delay_s
        while not self._wait(max(0.0, next_at - self.clock()), stop_event):
            self._beat()
            next_at += self.interval_s

            now = self.clock()
            while next_at <= now:
                next_at += self.interval_s
                self.beats_skipped += 1

    def start(self):
        """Start sending heartbeats on a background thread."""
        if self._thread and self._thread.is_alive() and not self._stop_event.is_set():
            return
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(self._stop_event,),
                                        name="heartbeat", daemon=True)
        self._thread.start()
        logger.info("HeartbeatEmitter started")

    def stop(self):
        """
        Stop sending heartbeats.

        Idempotent. Does not wait for an in-flight send to finish.
        """
        if self._stop_event.is_set():
            return
        self._stop_event.set()
        logger.info(f"HeartbeatEmitter stopped (sent={self.beats_sent}, failed={self.beats_failed})")

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def get_stats(self) -> dict:
        return {
            'beats_sent': self.beats_sent,
            'beats_failed': self.beats_failed,
            'beats_skipped': self.beats_skipped,
        }

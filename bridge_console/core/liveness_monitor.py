"""
Liveness Monitor for the console link

Detects loss of telemetry from the remote unit.

Behaviour:
- Ticks every LIVENESS_CHECK_INTERVAL_S (1s) on its own thread
- Connection LOST once no STATUS has arrived for more than LIVENESS_TIMEOUT_S (5s)
- Connection RESTORED on the first tick after STATUS is fresh again
- Never fires before the first STATUS: silence before first contact is not a loss
- Logs a JSON status line every status_interval seconds
"""

import json
import logging
import threading
import time
from typing import Callable, Optional

from common.constants import LIVENESS_CHECK_INTERVAL_S, STATUS_LOG_INTERVAL_S
from .state_manager import LivenessState, ModeState
from .status_sink import NoticeChannel, StatusSink

logger = logging.getLogger(__name__)

NOTICE_CONNECTION_LOST = "Communication lost - no status received for {timeout:.0f} seconds"
NOTICE_CONNECTION_RESTORED = "Connected to remote unit"


class LivenessMonitor:
    """
    Edge-triggered CONNECTED/LOST state machine over LivenessState.
    """

    def __init__(
        self,
        liveness: LivenessState,
        sink: StatusSink,
        notices: Optional[NoticeChannel] = None,
        mode_state: Optional[ModeState] = None,
        tick_s: float = LIVENESS_CHECK_INTERVAL_S,
        status_interval: float = STATUS_LOG_INTERVAL_S,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize liveness monitor.

        Args:
            liveness: Shared liveness state
            sink: Receives on_connectivity_changed transitions
            notices: Optional notice side channel
            mode_state: Optional mode state, included in the periodic status line
            tick_s: Check period in seconds
            status_interval: Status logging interval in seconds
            clock: Monotonic time source, same one the listener stamps STATUS with
        """
        self.liveness = liveness
        self.sink = sink
        self.notices = notices
        self.mode_state = mode_state
        self.tick_s = tick_s
        self.status_interval = status_interval
        self.clock = clock

        self.transitions = 0
        self.last_status_log = clock()

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        logger.info(f"LivenessMonitor initialized (timeout={liveness.threshold_s}s, tick={tick_s}s)")

    def check(self, now: Optional[float] = None) -> Optional[bool]:
        """
        Run one liveness tick.

        Args:
            now: Current time; defaults to the monitor clock

        Returns:
            New connectivity value if a transition fired, None otherwise
        """
        if now is None:
            now = self.clock()

        changed = self.liveness.evaluate(now)
        if changed is None:
            return None

        self.transitions += 1
        if changed:
            logger.info("Telemetry resumed, connection restored")
            notice = NOTICE_CONNECTION_RESTORED
        else:
            age = self.liveness.get_status_age(now)
            logger.warning(f"Telemetry timeout ({age:.1f}s), connection lost")
            notice = NOTICE_CONNECTION_LOST.format(timeout=self.liveness.threshold_s)

        try:
            self.sink.on_connectivity_changed(changed)
        except Exception as e:
            logger.error(f"Connectivity callback error: {e}")

        if self.notices:
            self.notices.post(notice)

        return changed

    def log_status(self, now: Optional[float] = None):
        """Log a JSON status line if status_interval has elapsed."""
        if now is None:
            now = self.clock()
        if now - self.last_status_log < self.status_interval:
            return

        last_status_at, connected = self.liveness.snapshot()
        status = {
            "event": "status",
            "link": "connected" if connected else "lost",
            "status_age_s": round(now - last_status_at, 1) if last_status_at is not None else None,
            "status_received": self.liveness.get_status_count(),
        }
        if self.mode_state:
            mode, diagnostic = self.mode_state.snapshot()
            status["mode"] = mode.value
            status["diagnostic"] = diagnostic
        logger.info(json.dumps(status))
        self.last_status_log = now

    def _run(self, stop_event: threading.Event):
        while not stop_event.wait(self.tick_s):
            try:
                self.check()
                self.log_status()
            except Exception as e:
                logger.error(f"Error in liveness loop: {e}")

    def start(self):
        """Start ticking on a background thread."""
        if self._thread and self._thread.is_alive() and not self._stop_event.is_set():
            return
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(self._stop_event,),
                                        name="liveness-monitor", daemon=True)
        self._thread.start()
        logger.info("LivenessMonitor started")

    def stop(self):
        """Cancel the tick loop. Safe to call more than once."""
        self._stop_event.set()
        logger.info(f"LivenessMonitor stopped (transitions={self.transitions})")

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

"""
State Manager for the console link

Process-wide state shared between the receive loop, the liveness monitor
and the operator context:
- LivenessState: when STATUS last arrived and whether the link is up
- ModeState: operating mode confirmed by remote telemetry

Every read-modify-write happens under the owning object's lock, so a
liveness tick and an in-flight STATUS update never interleave.
"""

import logging
import threading
from enum import Enum
from typing import Optional, Tuple

from common.constants import (
    MODE_AUTOMATIC, MODE_OVERRIDE, VALUE_UNKNOWN, SEQUENCE_DIAGNOSTIC,
    LIVENESS_TIMEOUT_S,
)

logger = logging.getLogger(__name__)


class OperatingMode(Enum):
    """Remote unit operating modes."""
    AUTOMATIC = MODE_AUTOMATIC
    OVERRIDE = MODE_OVERRIDE


class LivenessState:
    """
    Recency of STATUS telemetry.

    connected starts True: absence of telemetry before first contact is not
    a loss. It only changes through evaluate().
    """

    def __init__(self, threshold_s: float = LIVENESS_TIMEOUT_S):
        self.threshold_s = threshold_s
        self._lock = threading.Lock()
        self._last_status_at: Optional[float] = None
        self._connected = True
        self._status_count = 0

    def record_status(self, now: float):
        """Record that a STATUS message was parsed at `now`."""
        with self._lock:
            self._last_status_at = now
            self._status_count += 1

    def evaluate(self, now: float) -> Optional[bool]:
        """
        Recompute connectivity at `now`.

        Returns:
            The new connected value if it changed, None otherwise
        """
        with self._lock:
            if self._last_status_at is None:
                return None

            elapsed = now - self._last_status_at
            if self._connected and elapsed > self.threshold_s:
                self._connected = False
                return False
            if not self._connected and elapsed <= self.threshold_s:
                self._connected = True
                return True
            return None

    def snapshot(self) -> Tuple[Optional[float], bool]:
        """Consistent (last_status_at, connected) pair."""
        with self._lock:
            return self._last_status_at, self._connected

    def is_connected(self) -> bool:
        with self._lock:
            return self._connected

    def get_last_status_time(self) -> Optional[float]:
        with self._lock:
            return self._last_status_at

    def get_status_age(self, now: float) -> Optional[float]:
        """Seconds since the last STATUS, or None if none has arrived."""
        with self._lock:
            if self._last_status_at is None:
                return None
            return now - self._last_status_at

    def get_status_count(self) -> int:
        with self._lock:
            return self._status_count


class ModeState:
    """
    Operating mode as last confirmed by telemetry.

    Never updated from local commands: a mode switch only counts once the
    remote unit reports it in STATUS.
    """

    def __init__(self, initial: OperatingMode = OperatingMode.AUTOMATIC):
        self._lock = threading.Lock()
        self._mode = initial
        self._diagnostic = False
        self._confirmed = False

    def update_from_status(self, mode: str, sequence: str = VALUE_UNKNOWN) -> bool:
        """
        Apply MODE and SEQUENCE values from a STATUS snapshot.

        Unknown or unrecognised mode strings leave the mode unchanged.

        Args:
            mode: STATUS MODE value
            sequence: STATUS SEQUENCE value

        Returns:
            True if the operating mode changed
        """
        try:
            new_mode = OperatingMode(mode) if mode != VALUE_UNKNOWN else None
        except ValueError:
            logger.warning(f"Ignoring unrecognised mode from telemetry: {mode!r}")
            new_mode = None

        with self._lock:
            if sequence != VALUE_UNKNOWN:
                self._diagnostic = sequence == SEQUENCE_DIAGNOSTIC

            if new_mode is None:
                return False

            self._confirmed = True
            changed = new_mode is not self._mode
            if changed:
                logger.info(f"Operating mode changed: {self._mode.value} -> {new_mode.value}")
                self._mode = new_mode
            return changed

    def get_mode(self) -> OperatingMode:
        with self._lock:
            return self._mode

    def is_override(self) -> bool:
        with self._lock:
            return self._mode is OperatingMode.OVERRIDE

    def is_diagnostic(self) -> bool:
        with self._lock:
            return self._diagnostic

    def is_confirmed(self) -> bool:
        """True once any STATUS has reported a mode."""
        with self._lock:
            return self._confirmed

    def snapshot(self) -> Tuple[OperatingMode, bool]:
        """Consistent (mode, diagnostic) pair."""
        with self._lock:
            return self._mode, self._diagnostic

"""
Mode gate for operator commands.

Local, advisory check run before a command reaches the wire. The remote
unit stays the final authority; the gate only keeps commands it is known
to refuse off the link.
"""

import logging
from typing import Optional

from common.constants import ALWAYS_PERMITTED_COMMANDS, DIAGNOSTIC_COMMANDS
from .state_manager import ModeState, OperatingMode

logger = logging.getLogger(__name__)

NOTICE_OVERRIDE_REQUIRED = "Switch to override mode first"
NOTICE_DIAGNOSTIC_LOCKOUT = "Only restart and diagnostics are available during diagnostics"


class ModeGate:
    """Decides whether an operator command may be transmitted."""

    def __init__(self, mode_state: ModeState):
        self.mode_state = mode_state
        self.rejections = 0

    def rejection_reason(self, command: str) -> Optional[str]:
        """
        Explain why `command` may not be sent.

        Returns:
            Operator-facing notice, or None if the command is permitted
        """
        if command in ALWAYS_PERMITTED_COMMANDS:
            return None

        mode, diagnostic = self.mode_state.snapshot()
        if mode is not OperatingMode.OVERRIDE:
            return NOTICE_OVERRIDE_REQUIRED
        if diagnostic and command not in DIAGNOSTIC_COMMANDS:
            return NOTICE_DIAGNOSTIC_LOCKOUT
        return None

    def check(self, command: str) -> Optional[str]:
        """Like rejection_reason(), but counts and logs rejections."""
        reason = self.rejection_reason(command)
        if reason is not None:
            self.rejections += 1
            logger.info(f"Command {command!r} rejected locally: {reason}")
        return reason

    def may_send(self, command: str) -> bool:
        """True if `command` is permitted in the current mode."""
        return self.check(command) is None

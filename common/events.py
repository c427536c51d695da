"""
Event vocabulary for non-STATUS messages.

The remote unit reports events as a leading code optionally followed by
embedded KEY:value fields, e.g.:

  WARNING:command_queue_full|SIZE:5
  INFO:sequence_started|PHASE:BOATS_PASSING
  EMERGENCY_STOP:activated

describe_event() turns a classified message into an EventDetail with a
short operator-facing summary. Codes outside the vocabulary pass through
unchanged so new firmware messages stay visible.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Optional

from .protocol import FIELD_DELIMITER, InboundMessage, MessageKind, parse_fields

# Log severities, matching how the operator console colours its message log
SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"
SEVERITY_SUCCESS = "success"
SEVERITY_INFO = "info"

EMERGENCY_ACTIVATED_TOKEN = "activated"

# Content tokens are separated by field delimiters, key separators and whitespace
_TOKEN_SPLIT = re.compile(r"[|:\s]+")

MODE_CHANGE_NOTICES = {
    "override_mode_active": "Override mode active",
    "automatic_mode_active": "Automatic mode active",
    "mode_change_completed": "Mode change completed",
}

INFO_NOTICES = {
    "sequence_started": "Sequence started: {PHASE}",
    "sequence_completed": "Sequence completed: {PHASE}",
    "phase_change": "Sequence phase: {PHASE}",
    "command_queued": "Command queued ({SIZE} pending)",
    "diagnostics_started": "Diagnostics started",
    "diagnostics_completed": "Diagnostics completed",
    "test_started": "Full system test started",
    "test_completed": "Full system test completed",
}

WARNING_NOTICES = {
    "command_queue_full": "Command queue full ({SIZE} pending)",
    "command_rejected": "Command rejected: {REASON}",
    "obstacle_detected": "Obstacle detected: {REASON}",
    "sensor_degraded": "Sensor degraded: {REASON}",
    "heartbeat_lost": "Remote unit lost console heartbeat",
}

ERROR_NOTICES = {
    "command_failed": "Command failed: {REASON}",
    "sensor_failure": "Sensor failure: {REASON}",
    "motor_fault": "Bridge motor fault: {REASON}",
    "invalid_command": "Remote unit rejected unknown command: {REASON}",
}

SYSTEM_UPDATE_NOTICES = {
    "diagnostic_mode_entered": "Diagnostic mode entered",
    "diagnostic_mode_exited": "Diagnostic mode exited",
    "restarting": "Remote unit restarting",
    "queue_cleared": "Command queue cleared",
    "sequence_phase": "Sequence phase: {PHASE}",
    "manual_bridge_lights": "Manual bridge lights: {STATE}",
}

_VOCABULARIES = {
    MessageKind.MODE_CHANGE: MODE_CHANGE_NOTICES,
    MessageKind.INFO: INFO_NOTICES,
    MessageKind.WARNING: WARNING_NOTICES,
    MessageKind.ERROR: ERROR_NOTICES,
    MessageKind.SYSTEM_UPDATE: SYSTEM_UPDATE_NOTICES,
}

# Kinds whose summary is also pushed to the notice side channel
NOTIFY_KINDS = frozenset({
    MessageKind.EMERGENCY_STOP,
    MessageKind.MODE_CHANGE,
    MessageKind.WARNING,
    MessageKind.ERROR,
    MessageKind.SYSTEM_UPDATE,
    MessageKind.INFO,
    MessageKind.COMMAND_EXECUTION,
})

_SEVERITIES = {
    MessageKind.EMERGENCY_STOP: SEVERITY_ERROR,
    MessageKind.ERROR: SEVERITY_ERROR,
    MessageKind.WARNING: SEVERITY_WARNING,
    MessageKind.MODE_CHANGE: SEVERITY_SUCCESS,
    MessageKind.COMMAND_EXECUTION: SEVERITY_SUCCESS,
}


class _Fields(dict):
    """Template fields; placeholders the firmware left out render as 'unknown'."""

    def __missing__(self, key):
        return "unknown"


@dataclass(frozen=True)
class EventDetail:
    """
    Interpretation of one event message.

    Attributes:
        kind: Message classification
        code: Leading token of the content (e.g. 'command_queue_full')
        fields: Embedded KEY:value fields
        summary: Operator-facing one-line text
        severity: One of the SEVERITY_* constants
        recognized: True if code is part of the known vocabulary
        emergency_confirmed: True for EMERGENCY_STOP content containing 'activated'
    """
    kind: MessageKind
    code: str
    summary: str
    severity: str
    fields: Dict[str, str] = field(default_factory=dict)
    recognized: bool = False
    emergency_confirmed: bool = False


def event_code(content: str) -> str:
    """Leading token of event content, up to the first '|'."""
    head = content.split(FIELD_DELIMITER, 1)[0].strip()
    # "REASON:x" with no leading code has no code
    if ":" in head:
        return ""
    return head


def severity_for(kind: MessageKind) -> str:
    return _SEVERITIES.get(kind, SEVERITY_INFO)


def describe_event(message: InboundMessage) -> EventDetail:
    """
    Interpret a classified non-STATUS message.

    Args:
        message: Result of parse_message()

    Returns:
        EventDetail with summary text and extracted fields
    """
    kind = message.kind
    content = message.content
    fields_ = parse_fields(content)
    code = event_code(content)
    severity = severity_for(kind)

    if kind is MessageKind.EMERGENCY_STOP:
        confirmed = EMERGENCY_ACTIVATED_TOKEN in _TOKEN_SPLIT.split(content.lower())
        summary = "EMERGENCY STOP ACTIVATED" if confirmed else f"Emergency stop: {content}"
        return EventDetail(kind, code, summary, severity, fields_,
                           recognized=confirmed, emergency_confirmed=confirmed)

    if kind is MessageKind.COMMAND_EXECUTION:
        return EventDetail(kind, code, f"Executed: {content}", severity, fields_,
                           recognized=bool(content))

    if kind is MessageKind.WEIGHT_CHECK:
        return EventDetail(kind, code, f"Weight check: {content}", severity, fields_)

    if kind is MessageKind.UNCLASSIFIED:
        return EventDetail(kind, code, f"Unrecognised message: {message.raw}", severity)

    vocabulary = _VOCABULARIES.get(kind, {})
    template = vocabulary.get(code)
    if template is None:
        summary = f"{kind.value}: {content}" if content else kind.value
        return EventDetail(kind, code, summary, severity, fields_)

    return EventDetail(kind, code, template.format_map(_Fields(fields_)), severity,
                       fields_, recognized=True)


def notice_for(message: InboundMessage) -> Optional[str]:
    """Notice text for the side channel, or None if this kind is not announced."""
    if message.kind not in NOTIFY_KINDS:
        return None
    return describe_event(message).summary

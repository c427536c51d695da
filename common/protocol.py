"""
Text wire protocol spoken by the remote bridge unit.

Datagram format (UDP payload, UTF-8 text):
  <TAG>:<content>      or      <TAG> :<content>

STATUS content is a '|'-delimited list of KEY:VALUE fields:
  STATUS:MODE:OVERRIDE|BRIDGE:OPEN|GATE:CLOSED|ROAD_DISTANCE:120|...

Parsing properties:
- Total: parse_message() never raises, whatever bytes arrive
- Forward compatible: unknown STATUS keys are dropped
- Backward compatible: missing STATUS keys keep their defaults
- A STATUS datagram without a MODE field is malformed (UNCLASSIFIED)
"""

import logging
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Dict, Optional, Union

from .constants import (
    TEXT_ENCODING, VALUE_UNKNOWN,
    TAG_STATUS, TAG_WEIGHT_CHECK, TAG_EMERGENCY_STOP, TAG_MODE_CHANGE,
    TAG_INFO, TAG_WARNING, TAG_ERROR, TAG_COMMAND_EXECUTION, TAG_SYSTEM_UPDATE,
)

logger = logging.getLogger(__name__)

FIELD_DELIMITER = "|"
KEY_SEPARATOR = ":"

# Firmware before the tag separator change sent "STATUS|MODE:...|..."
LEGACY_STATUS_PREFIX = TAG_STATUS + FIELD_DELIMITER


class MessageKind(Enum):
    """Classification of an inbound datagram, keyed by its wire tag."""
    STATUS = TAG_STATUS
    WEIGHT_CHECK = TAG_WEIGHT_CHECK
    EMERGENCY_STOP = TAG_EMERGENCY_STOP
    MODE_CHANGE = TAG_MODE_CHANGE
    INFO = TAG_INFO
    WARNING = TAG_WARNING
    ERROR = TAG_ERROR
    COMMAND_EXECUTION = TAG_COMMAND_EXECUTION
    SYSTEM_UPDATE = TAG_SYSTEM_UPDATE
    UNCLASSIFIED = "UNCLASSIFIED"


_KINDS_BY_TAG = {
    kind.value: kind for kind in MessageKind if kind is not MessageKind.UNCLASSIFIED
}


@dataclass(frozen=True)
class StatusSnapshot:
    """
    One STATUS report from the remote unit.

    Values are kept as the strings the firmware sent. Keys missing from the
    datagram keep the defaults below.
    """
    mode: str = VALUE_UNKNOWN
    bridge: str = VALUE_UNKNOWN
    gate: str = VALUE_UNKNOWN
    road_distance: str = "0"
    boat_distance: str = "0"
    bridge_movement_distance: str = "0"
    boat_clearance_distance: str = "0"
    road_light: str = VALUE_UNKNOWN
    boat_light: str = VALUE_UNKNOWN
    bridge_light: str = VALUE_UNKNOWN
    manual_bridge_lights: str = VALUE_UNKNOWN
    sequence: str = VALUE_UNKNOWN
    movement_state: str = VALUE_UNKNOWN
    queue: str = ""
    executing: str = ""

    def get(self, key: str) -> Optional[str]:
        """Look up a value by its wire key (e.g. 'ROAD_DISTANCE')."""
        attr = STATUS_KEYS.get(key)
        if attr is None:
            return None
        return getattr(self, attr)

    def as_dict(self) -> Dict[str, str]:
        """Wire key -> value mapping, in wire order."""
        return {key: getattr(self, attr) for key, attr in STATUS_KEYS.items()}


# Wire key -> StatusSnapshot attribute, in the order the firmware emits them
STATUS_KEYS: Dict[str, str] = {f.name.upper(): f.name for f in fields(StatusSnapshot)}


@dataclass(frozen=True)
class InboundMessage:
    """
    A classified datagram.

    Attributes:
        kind: Message classification
        content: Trimmed text after the tag separator (whole text if UNCLASSIFIED)
        raw: Decoded, trimmed datagram text
        snapshot: Parsed STATUS fields, only set for MessageKind.STATUS
    """
    kind: MessageKind
    content: str
    raw: str
    snapshot: Optional[StatusSnapshot] = None

    @property
    def is_status(self) -> bool:
        return self.kind is MessageKind.STATUS


def parse_fields(content: str) -> Dict[str, str]:
    """
    Split '|'-delimited KEY:VALUE segments into a dict.

    Segments without ':' are skipped. Keys and values are stripped. A value
    runs to the next '|' or end of string, so it may itself contain ':'.
    Later duplicates win.
    """
    result: Dict[str, str] = {}
    for segment in content.split(FIELD_DELIMITER):
        key, sep, value = segment.partition(KEY_SEPARATOR)
        if not sep:
            continue
        key = key.strip()
        if key:
            result[key] = value.strip()
    return result


def extract_field(content: str, key: str) -> Optional[str]:
    """Return the value of one embedded KEY:value field, or None if absent."""
    return parse_fields(content).get(key)


def parse_status(content: str) -> Optional[StatusSnapshot]:
    """
    Build a StatusSnapshot from STATUS content.

    Returns:
        Snapshot, or None when the content carries no MODE field
    """
    values = parse_fields(content)
    if "MODE" not in values:
        return None

    overrides = {}
    for key, value in values.items():
        attr = STATUS_KEYS.get(key)
        if attr is None:
            # Newer firmware fields are ignored
            continue
        if value:
            overrides[attr] = value
    return replace(StatusSnapshot(), **overrides)


def format_status(snapshot: StatusSnapshot) -> str:
    """
    Encode a snapshot in the STATUS wire format.

    Values must re-parse unchanged: no '|', no surrounding whitespace, and
    empty only for fields whose default is empty.

    Raises:
        ValueError: If a value cannot be represented on the wire
    """
    defaults = StatusSnapshot()
    for key, attr in STATUS_KEYS.items():
        value = getattr(snapshot, attr)
        if FIELD_DELIMITER in value or value != value.strip():
            raise ValueError(f"STATUS {key} value not encodable: {value!r}")
        if not value and getattr(defaults, attr):
            raise ValueError(f"STATUS {key} may not be empty")

    body = FIELD_DELIMITER.join(
        f"{key}{KEY_SEPARATOR}{value}" for key, value in snapshot.as_dict().items()
    )
    return f"{TAG_STATUS}{KEY_SEPARATOR}{body}"


def decode_datagram(data: Union[bytes, bytearray, str]) -> str:
    """Decode datagram bytes to trimmed text. Undecodable bytes are replaced."""
    if isinstance(data, (bytes, bytearray)):
        text = bytes(data).decode(TEXT_ENCODING, errors="replace")
    else:
        text = data
    return text.strip()


def parse_message(raw: Union[bytes, bytearray, str]) -> InboundMessage:
    """
    Classify one datagram.

    Never raises: anything that cannot be classified comes back as
    MessageKind.UNCLASSIFIED carrying the raw text.

    Args:
        raw: Datagram payload as bytes or already-decoded text

    Returns:
        InboundMessage
    """
    try:
        text = decode_datagram(raw)
    except Exception as e:
        logger.debug(f"Undecodable datagram: {e}")
        return InboundMessage(MessageKind.UNCLASSIFIED, "", "")

    unclassified = InboundMessage(MessageKind.UNCLASSIFIED, text, text)

    if text.startswith(LEGACY_STATUS_PREFIX):
        tag, content = TAG_STATUS, text[len(LEGACY_STATUS_PREFIX):].strip()
    else:
        tag, sep, content = text.partition(KEY_SEPARATOR)
        if not sep:
            return unclassified
        tag = tag.strip()
        content = content.strip()

    kind = _KINDS_BY_TAG.get(tag)
    if kind is None:
        return unclassified

    if kind is MessageKind.STATUS:
        snapshot = parse_status(content)
        if snapshot is None:
            logger.debug(f"STATUS without MODE field treated as malformed: {text!r}")
            return unclassified
        return InboundMessage(kind, content, text, snapshot)

    return InboundMessage(kind, content, text)

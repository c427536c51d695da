"""
Protocol and timing constants for the bridge console control link.
These values match the remote bridge unit firmware and are not configurable.
"""

# Datagram limits
MAX_DATAGRAM_SIZE = 1024        # Receive buffer for one telemetry datagram
TEXT_ENCODING = "utf-8"

# Timing constants
LIVENESS_TIMEOUT_S = 5.0        # Connection lost if no STATUS for this long
LIVENESS_CHECK_INTERVAL_S = 1.0 # Liveness monitor tick
HEARTBEAT_INTERVAL_S = 2.0      # Beacon period
HEARTBEAT_INITIAL_DELAY_S = 1.0 # Delay before the first beacon
RECEIVE_POLL_TIMEOUT_S = 0.5    # Socket timeout so the receive loop can observe stop()
STATUS_LOG_INTERVAL_S = 10.0    # Periodic JSON status line

# Inbound message tags
TAG_STATUS = "STATUS"
TAG_WEIGHT_CHECK = "WEIGHT_CHECK"
TAG_EMERGENCY_STOP = "EMERGENCY_STOP"
TAG_MODE_CHANGE = "MODE_CHANGE"
TAG_INFO = "INFO"
TAG_WARNING = "WARNING"
TAG_ERROR = "ERROR"
TAG_COMMAND_EXECUTION = "COMMAND_EXECUTION"
TAG_SYSTEM_UPDATE = "SYSTEM_UPDATE"

# Operating modes reported in STATUS:MODE
MODE_AUTOMATIC = "AUTOMATIC"
MODE_OVERRIDE = "OVERRIDE"
VALUE_UNKNOWN = "UNKNOWN"

# Sequence reported while the remote unit runs diagnostics
SEQUENCE_DIAGNOSTIC = "DIAGNOSTIC"

# Outbound command tokens
CMD_AUTOMATIC_MODE = "automatic_mode"
CMD_OVERRIDE_MODE = "override_mode"
CMD_EMERGENCY_STOP = "emergency_stop"
CMD_HEARTBEAT = "heartbeat"
CMD_ALLOW_BOAT_TRAFFIC = "allow_boat_traffic"
CMD_ALLOW_ROAD_TRAFFIC = "allow_road_traffic"
CMD_RUN_FULL_TEST = "run_full_test"
CMD_PERFORM_DIAGNOSTICS = "perform_diagnostics"
CMD_RESTART = "restart"
CMD_ROAD_LIGHTS_RED = "road_lights_red"
CMD_ROAD_LIGHTS_YELLOW = "road_lights_yellow"
CMD_ROAD_LIGHTS_GREEN = "road_lights_green"
CMD_BOAT_LIGHTS_RED = "boat_lights_red"
CMD_BOAT_LIGHTS_GREEN = "boat_lights_green"
CMD_MANUAL_BRIDGE_LIGHTS_TRUE = "manual_bridge_lights_true"
CMD_MANUAL_BRIDGE_LIGHTS_FALSE = "manual_bridge_lights_false"
CMD_MANUAL_BRIDGE_LIGHTS_ON = "manual_bridge_lights_on"
CMD_MANUAL_BRIDGE_LIGHTS_OFF = "manual_bridge_lights_off"

# Commands the console may send regardless of operating mode
ALWAYS_PERMITTED_COMMANDS = frozenset({
    CMD_AUTOMATIC_MODE,
    CMD_OVERRIDE_MODE,
    CMD_EMERGENCY_STOP,
})

# Commands still available while the remote unit is in diagnostics
DIAGNOSTIC_COMMANDS = frozenset({
    CMD_RESTART,
    CMD_PERFORM_DIAGNOSTICS,
})

KNOWN_COMMANDS = ALWAYS_PERMITTED_COMMANDS | DIAGNOSTIC_COMMANDS | frozenset({
    CMD_HEARTBEAT,
    CMD_ALLOW_BOAT_TRAFFIC,
    CMD_ALLOW_ROAD_TRAFFIC,
    CMD_RUN_FULL_TEST,
    CMD_ROAD_LIGHTS_RED,
    CMD_ROAD_LIGHTS_YELLOW,
    CMD_ROAD_LIGHTS_GREEN,
    CMD_BOAT_LIGHTS_RED,
    CMD_BOAT_LIGHTS_GREEN,
    CMD_MANUAL_BRIDGE_LIGHTS_TRUE,
    CMD_MANUAL_BRIDGE_LIGHTS_FALSE,
    CMD_MANUAL_BRIDGE_LIGHTS_ON,
    CMD_MANUAL_BRIDGE_LIGHTS_OFF,
})

# Link fault reasons (for logging/audit)
FAULT_BIND_FAILURE = "bind_failure"
FAULT_READ_ERROR = "transport_read_error"
FAULT_TRANSMIT_ERROR = "transmit_error"
FAULT_MALFORMED = "malformed_message"
FAULT_GATE_REJECTED = "gate_rejected"

# Ports (default)
DEFAULT_REMOTE_HOST = "127.0.0.1"
DEFAULT_REMOTE_PORT = 3031      # Remote unit listens for commands here
DEFAULT_LISTEN_PORT = 3032      # Console listens for telemetry here
DEFAULT_STATUS_WS_PORT = 3035

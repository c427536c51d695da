"""
Configuration for the bridge console control link

Protocol timing (liveness threshold, heartbeat schedule) comes from
common/constants.py and matches the remote unit firmware; only deployment
settings are read from environment variables.
"""
import os

from common.constants import (
    LIVENESS_TIMEOUT_S, HEARTBEAT_INTERVAL_S, HEARTBEAT_INITIAL_DELAY_S,
    DEFAULT_REMOTE_HOST, DEFAULT_REMOTE_PORT, DEFAULT_LISTEN_PORT, DEFAULT_STATUS_WS_PORT,
)

# ============================================================================
# NETWORK CONFIGURATION - VERIFY FOR YOUR DEPLOYMENT
# ============================================================================
# REMOTE_HOST is the bridge unit (127.0.0.1 when running against the simulator)
# ============================================================================
REMOTE_HOST = os.getenv('REMOTE_HOST', DEFAULT_REMOTE_HOST)
REMOTE_PORT = int(os.getenv('REMOTE_PORT', str(DEFAULT_REMOTE_PORT)))
LISTEN_HOST = os.getenv('LISTEN_HOST', '0.0.0.0')
LISTEN_PORT = int(os.getenv('LISTEN_PORT', str(DEFAULT_LISTEN_PORT)))

# Link timing
LIVENESS_TIMEOUT = LIVENESS_TIMEOUT_S
HEARTBEAT_INTERVAL = HEARTBEAT_INTERVAL_S
HEARTBEAT_INITIAL_DELAY = HEARTBEAT_INITIAL_DELAY_S
HEARTBEAT_ENABLED = os.getenv('HEARTBEAT_ENABLED', 'true').lower() == 'true'

# Logging Configuration
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

# Console WebSocket bridge
STATUS_WS_ENABLED = os.getenv('STATUS_WS_ENABLED', 'true').lower() == 'true'
STATUS_WS_HOST = os.getenv('STATUS_WS_HOST', '127.0.0.1')
STATUS_WS_PORT = int(os.getenv('STATUS_WS_PORT', str(DEFAULT_STATUS_WS_PORT)))

# Message log
EVENT_LOG_SIZE = int(os.getenv('EVENT_LOG_SIZE', '500'))
NOTICE_QUEUE_SIZE = int(os.getenv('NOTICE_QUEUE_SIZE', '100'))

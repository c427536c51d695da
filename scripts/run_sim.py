#!/usr/bin/env python3
"""
Run a simulated remote bridge unit on localhost.

Listens for console commands and sends STATUS telemetry once a second, so
the console link can be exercised without hardware.

Usage:
    python scripts/run_sim.py                     # Simulate against default ports
    python scripts/run_sim.py --drop-after 20     # Stop sending STATUS after 20s
    python scripts/run_sim.py --console-port 3032 --command-port 3031

Behaviour:
- override_mode / automatic_mode switch the simulated mode and reply MODE_CHANGE
- emergency_stop replies EMERGENCY_STOP:activated and enters DIAGNOSTIC
- restart leaves DIAGNOSTIC
- other commands are acknowledged with COMMAND_EXECUTION
- heartbeats are counted; a WARNING is sent if they stop for 6s

Press Ctrl+C to stop.
"""

import argparse
import logging
import os
import signal
import socket
import sys
import threading
import time
from dataclasses import replace
from pathlib import Path

# Ensure project root is importable when run as a script
PROJECT_ROOT = Path(__file__).parent.parent.absolute()
sys.path.insert(0, str(PROJECT_ROOT))

from common.constants import (
    CMD_AUTOMATIC_MODE, CMD_OVERRIDE_MODE, CMD_EMERGENCY_STOP, CMD_HEARTBEAT, CMD_RESTART,
    CMD_ALLOW_BOAT_TRAFFIC, CMD_ALLOW_ROAD_TRAFFIC,
    DEFAULT_LISTEN_PORT, DEFAULT_REMOTE_PORT, MAX_DATAGRAM_SIZE,
    MODE_AUTOMATIC, MODE_OVERRIDE, SEQUENCE_DIAGNOSTIC, TEXT_ENCODING,
)
from common.logging_config import setup_logging
from common.protocol import StatusSnapshot, format_status

logger = logging.getLogger("bridge_sim")

HEARTBEAT_LOSS_S = 6.0


class BridgeSimulator:
    """Simulated remote bridge unit"""

    def __init__(self, console_host: str, console_port: int, command_port: int,
                 drop_after: float = 0.0):
        self.console_addr = (console_host, console_port)
        self.command_port = command_port
        self.drop_after = drop_after

        self.state = StatusSnapshot(
            mode=MODE_AUTOMATIC, bridge="CLOSED", gate="OPEN",
            road_light="GREEN", boat_light="RED", bridge_light="OFF",
            manual_bridge_lights="NO", sequence="IDLE", movement_state="STOPPED",
            queue="0", executing="NO",
        )
        self.lock = threading.Lock()
        self.running = True
        self.started_at = time.time()
        self.last_heartbeat = 0.0
        self.heartbeats = 0
        self.heartbeat_warned = False

        self.tx = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.rx = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.rx.bind(("127.0.0.1", command_port))
        self.rx.settimeout(0.5)

        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, sig, frame):
        print("\nShutdown signal received...")
        self.running = False

    def send(self, text: str):
        try:
            self.tx.sendto(text.encode(TEXT_ENCODING), self.console_addr)
            logger.debug(f"-> {text}")
        except OSError as e:
            logger.error(f"Send failed: {e}")

    def update(self, **changes):
        with self.lock:
            self.state = replace(self.state, **changes)

    def handle_command(self, command: str):
        if command == CMD_HEARTBEAT:
            self.heartbeats += 1
            self.last_heartbeat = time.time()
            self.heartbeat_warned = False
            return

        logger.info(f"Command received: {command}")
        mode = self.state.mode

        if command == CMD_OVERRIDE_MODE:
            self.update(mode=MODE_OVERRIDE)
            self.send("MODE_CHANGE:override_mode_active")
        elif command == CMD_AUTOMATIC_MODE:
            self.update(mode=MODE_AUTOMATIC, sequence="IDLE")
            self.send("MODE_CHANGE:automatic_mode_active")
        elif command == CMD_EMERGENCY_STOP:
            self.update(mode=MODE_OVERRIDE, sequence=SEQUENCE_DIAGNOSTIC, road_light="RED",
                        boat_light="RED", bridge_light="ON")
            self.send("EMERGENCY_STOP:activated")
            self.send("SYSTEM_UPDATE:diagnostic_mode_entered")
        elif mode != MODE_OVERRIDE:
            self.send(f"WARNING:command_rejected|REASON:{command} requires override mode")
        elif command == CMD_RESTART:
            self.update(sequence="IDLE", road_light="GREEN", boat_light="RED", bridge_light="OFF")
            self.send("SYSTEM_UPDATE:diagnostic_mode_exited")
            self.send(f"COMMAND_EXECUTION:{command}")
        elif command == CMD_ALLOW_BOAT_TRAFFIC:
            self.update(bridge="OPEN", gate="CLOSED", road_light="RED", boat_light="GREEN",
                        sequence="BOATS_PASSING")
            self.send("INFO:sequence_started|PHASE:BOATS_PASSING")
            self.send(f"COMMAND_EXECUTION:{command}")
        elif command == CMD_ALLOW_ROAD_TRAFFIC:
            self.update(bridge="CLOSED", gate="OPEN", road_light="GREEN", boat_light="RED",
                        sequence="CARS_PASSING")
            self.send("INFO:sequence_started|PHASE:CARS_PASSING")
            self.send(f"COMMAND_EXECUTION:{command}")
        else:
            self.send(f"COMMAND_EXECUTION:{command}")

    def _command_loop(self):
        while self.running:
            try:
                data, addr = self.rx.recvfrom(MAX_DATAGRAM_SIZE)
            except socket.timeout:
                continue
            except OSError as e:
                if self.running:
                    logger.error(f"Receive error: {e}")
                continue
            self.handle_command(data.decode(TEXT_ENCODING, errors="replace").strip())

    def run(self):
        logger.info(f"Simulated bridge unit: commands on {self.command_port}, "
                    f"telemetry to {self.console_addr[0]}:{self.console_addr[1]}")
        threading.Thread(target=self._command_loop, daemon=True).start()

        while self.running:
            elapsed = time.time() - self.started_at
            if self.drop_after and elapsed > self.drop_after:
                logger.debug("Telemetry dropped (simulated link loss)")
            else:
                with self.lock:
                    snapshot = self.state
                self.send(format_status(snapshot))

            if (self.last_heartbeat and not self.heartbeat_warned
                    and time.time() - self.last_heartbeat > HEARTBEAT_LOSS_S):
                self.send("WARNING:heartbeat_lost")
                self.heartbeat_warned = True

            time.sleep(1.0)

        self.rx.close()
        self.tx.close()
        print(f"Simulator stopped (heartbeats received={self.heartbeats})")


def main():
    parser = argparse.ArgumentParser(description="Simulated remote bridge unit")
    parser.add_argument('--console-host', default='127.0.0.1')
    parser.add_argument('--console-port', type=int, default=DEFAULT_LISTEN_PORT,
                        help='Port the console listens on for telemetry')
    parser.add_argument('--command-port', type=int, default=DEFAULT_REMOTE_PORT,
                        help='Port to receive console commands on')
    parser.add_argument('--drop-after', type=float, default=0.0,
                        help='Stop sending STATUS after this many seconds (0 = never)')
    args = parser.parse_args()

    setup_logging("bridge_sim", os.getenv('LOG_LEVEL', 'INFO'))

    sim = BridgeSimulator(args.console_host, args.console_port, args.command_port, args.drop_after)
    sim.run()


if __name__ == '__main__':
    main()

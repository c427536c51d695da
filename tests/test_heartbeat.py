"""
Tests for the heartbeat emitter.

Uses a simulated clock so the schedule can be checked without sleeping.
"""

import os
import sys
import threading
import time
import unittest

# Add parent to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from common.constants import CMD_HEARTBEAT, HEARTBEAT_INTERVAL_S, HEARTBEAT_INITIAL_DELAY_S
from bridge_console.heartbeat_emitter import HeartbeatEmitter


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class RecordingChannel:
    """Stands in for CommandChannel, records (time, token)"""

    def __init__(self, clock, fail=False, stall_on=None, stall_s=0.0):
        self.clock = clock
        self.fail = fail
        self.stall_on = stall_on
        self.stall_s = stall_s
        self.sent = []

    def send(self, command):
        self.sent.append((self.clock.now, command))
        if self.stall_on is not None and len(self.sent) == self.stall_on:
            self.clock.now += self.stall_s
        return not self.fail


class SimulatedHeartbeat(HeartbeatEmitter):
    """Runs the schedule in simulated time up to `window` seconds"""

    def __init__(self, channel, clock, window, **kwargs):
        super().__init__(channel, clock=clock, **kwargs)
        self.sim_clock = clock
        self.window = window

    def _wait(self, timeout, stop_event=None):
        self.sim_clock.now += timeout
        return self.sim_clock.now > self.window


class TestHeartbeatSchedule(unittest.TestCase):
    """Test fixed-rate schedule"""

    def test_default_timing(self):
        self.assertEqual(HEARTBEAT_INITIAL_DELAY_S, 1.0)
        self.assertEqual(HEARTBEAT_INTERVAL_S, 2.0)

    def test_beats_in_ten_second_window(self):
        """Sends at t = 1, 3, 5, 7, 9"""
        clock = FakeClock()
        channel = RecordingChannel(clock)
        emitter = SimulatedHeartbeat(channel, clock, window=10.0)

        emitter._run()

        self.assertEqual([t for t, _ in channel.sent], [1.0, 3.0, 5.0, 7.0, 9.0])
        self.assertTrue(all(token == CMD_HEARTBEAT for _, token in channel.sent))
        self.assertEqual(emitter.beats_sent, 5)

    def test_failures_do_not_stop_schedule(self):
        clock = FakeClock()
        channel = RecordingChannel(clock, fail=True)
        emitter = SimulatedHeartbeat(channel, clock, window=10.0)

        emitter._run()

        self.assertEqual(len(channel.sent), 5)
        self.assertEqual(emitter.beats_failed, 5)
        self.assertEqual(emitter.beats_sent, 0)

    def test_channel_exception_counted(self):
        class RaisingChannel:
            def send(self, command):
                raise RuntimeError("socket gone")

        clock = FakeClock()
        emitter = SimulatedHeartbeat(RaisingChannel(), clock, window=10.0)
        emitter._run()
        self.assertEqual(emitter.beats_failed, 5)

    def test_missed_beats_skipped(self):
        """A stall longer than the interval does not cause a burst"""
        clock = FakeClock()
        channel = RecordingChannel(clock, stall_on=2, stall_s=5.0)
        emitter = SimulatedHeartbeat(channel, clock, window=10.0)

        emitter._run()

        self.assertEqual([t for t, _ in channel.sent], [1.0, 3.0, 9.0])
        self.assertEqual(emitter.beats_skipped, 2)

    def test_custom_interval(self):
        clock = FakeClock()
        channel = RecordingChannel(clock)
        emitter = SimulatedHeartbeat(channel, clock, window=2.0, interval_s=0.5, initial_delay_s=0.0)

        emitter._run()

        self.assertEqual([t for t, _ in channel.sent], [0.0, 0.5, 1.0, 1.5, 2.0])


class TestHeartbeatThread(unittest.TestCase):
    """Test start/stop on a real thread"""

    def test_sends_and_stops(self):
        clock = FakeClock()
        channel = RecordingChannel(clock)
        emitter = HeartbeatEmitter(channel, interval_s=0.05, initial_delay_s=0.0)

        emitter.start()
        deadline = time.monotonic() + 2.0
        while len(channel.sent) < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
        emitter.stop()
        emitter._thread.join(timeout=1.0)

        self.assertGreaterEqual(len(channel.sent), 2)
        self.assertFalse(emitter.is_running())

        count = len(channel.sent)
        time.sleep(0.15)
        self.assertEqual(len(channel.sent), count)

    def test_stop_idempotent(self):
        emitter = HeartbeatEmitter(RecordingChannel(FakeClock()), interval_s=10.0, initial_delay_s=10.0)
        emitter.stop()
        emitter.start()
        emitter.stop()
        emitter.stop()
        self.assertFalse(emitter.is_running())

    def test_restart_while_send_in_flight(self):
        """start() after stop() runs even if the old thread is still inside send"""

        class BlockingChannel:
            def __init__(self):
                self.entered = threading.Event()
                self.release = threading.Event()
                self.sent = 0

            def send(self, command):
                self.sent += 1
                if self.sent == 1:
                    self.entered.set()
                    self.release.wait(2.0)
                return True

        channel = BlockingChannel()
        emitter = HeartbeatEmitter(channel, interval_s=0.05, initial_delay_s=0.0)

        emitter.start()
        self.assertTrue(channel.entered.wait(2.0))
        old_thread = emitter._thread

        emitter.stop()
        emitter.start()
        try:
            self.assertTrue(emitter.is_running())
            self.assertIsNot(emitter._thread, old_thread)

            channel.release.set()
            old_thread.join(timeout=1.0)
            self.assertFalse(old_thread.is_alive())

            sent = channel.sent
            deadline = time.monotonic() + 2.0
            while channel.sent <= sent + 1 and time.monotonic() < deadline:
                time.sleep(0.01)
            self.assertGreater(channel.sent, sent + 1)
        finally:
            channel.release.set()
            emitter.stop()


if __name__ == '__main__':
    unittest.main()

"""
Tests for liveness detection.

Tests that:
- No transition fires before the first STATUS
- Connection LOST fires exactly once after the timeout
- Connection RESTORED fires once STATUS is fresh again
- Transitions reach the status sink and the notice channel
"""

import os
import sys
import threading
import time
import unittest

# Add parent to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from common.constants import LIVENESS_TIMEOUT_S
from bridge_console.core.liveness_monitor import (
    LivenessMonitor, NOTICE_CONNECTION_LOST, NOTICE_CONNECTION_RESTORED,
)
from bridge_console.core.state_manager import LivenessState, ModeState
from bridge_console.core.status_sink import NoticeChannel, NoticeSink, StatusSink


class RecordingSink(StatusSink, NoticeSink):
    """Collects callbacks for inspection"""

    def __init__(self):
        self.connectivity = []
        self.notices = []

    def on_connectivity_changed(self, connected):
        self.connectivity.append(connected)

    def on_notice(self, text):
        self.notices.append(text)


class TestLivenessState(unittest.TestCase):
    """Test the LivenessState transition rules"""

    def test_initially_connected(self):
        state = LivenessState()
        self.assertTrue(state.is_connected())
        self.assertIsNone(state.get_last_status_time())
        self.assertIsNone(state.get_status_age(100.0))

    def test_no_transition_before_first_status(self):
        state = LivenessState(threshold_s=5.0)
        for now in (0.0, 10.0, 1000.0):
            self.assertIsNone(state.evaluate(now))
        self.assertTrue(state.is_connected())

    def test_boundary_is_not_lost(self):
        """Exactly the threshold still counts as connected"""
        state = LivenessState(threshold_s=5.0)
        state.record_status(100.0)
        self.assertIsNone(state.evaluate(105.0))
        self.assertFalse(state.evaluate(105.001))

    def test_lost_once(self):
        state = LivenessState(threshold_s=5.0)
        state.record_status(0.0)
        self.assertFalse(state.evaluate(5.001))
        self.assertIsNone(state.evaluate(6.0))
        self.assertIsNone(state.evaluate(60.0))
        self.assertFalse(state.is_connected())

    def test_restored(self):
        state = LivenessState(threshold_s=5.0)
        state.record_status(0.0)
        state.evaluate(5.001)
        state.record_status(5.5)
        self.assertTrue(state.evaluate(6.0))
        self.assertIsNone(state.evaluate(6.5))
        self.assertTrue(state.is_connected())

    def test_status_count(self):
        state = LivenessState()
        state.record_status(1.0)
        state.record_status(2.0)
        self.assertEqual(state.get_status_count(), 2)
        self.assertEqual(state.get_last_status_time(), 2.0)


class TestLivenessMonitor(unittest.TestCase):
    """Test LivenessMonitor with a controlled clock"""

    def setUp(self):
        self.now = 1000.0
        self.liveness = LivenessState(threshold_s=LIVENESS_TIMEOUT_S)
        self.sink = RecordingSink()
        self.notices = NoticeChannel(maxsize=10)
        self.notices.subscribe(self.sink)
        self.monitor = LivenessMonitor(
            self.liveness, self.sink, notices=self.notices,
            mode_state=ModeState(), clock=lambda: self.now
        )

    def test_silent_before_first_status(self):
        self.now += 60.0
        self.assertIsNone(self.monitor.check())
        self.assertEqual(self.sink.connectivity, [])
        self.assertEqual(self.notices.drain(), 0)

    def test_lost_then_restored(self):
        t0 = self.now
        self.liveness.record_status(t0)

        self.assertIsNone(self.monitor.check(t0 + 4.0))
        self.assertFalse(self.monitor.check(t0 + 5.001))
        self.assertIsNone(self.monitor.check(t0 + 6.0))

        self.liveness.record_status(t0 + 5.5)
        self.assertTrue(self.monitor.check(t0 + 6.0))

        self.assertEqual(self.sink.connectivity, [False, True])
        self.assertEqual(self.monitor.transitions, 2)

        self.notices.drain()
        self.assertEqual(self.sink.notices, [
            NOTICE_CONNECTION_LOST.format(timeout=LIVENESS_TIMEOUT_S),
            NOTICE_CONNECTION_RESTORED,
        ])
        self.assertIn("5 seconds", self.sink.notices[0])

    def test_sink_error_does_not_stop_monitor(self):
        class BrokenSink(StatusSink):
            def on_connectivity_changed(self, connected):
                raise RuntimeError("consumer failure")

        monitor = LivenessMonitor(self.liveness, BrokenSink(), notices=self.notices,
                                  clock=lambda: self.now)
        self.liveness.record_status(self.now)
        self.assertFalse(monitor.check(self.now + 10.0))
        self.assertEqual(self.notices.drain(), 1)

    def test_log_status_interval(self):
        self.monitor.status_interval = 10.0
        self.monitor.last_status_log = self.now
        self.monitor.log_status(self.now + 5.0)
        self.assertEqual(self.monitor.last_status_log, self.now)
        self.monitor.log_status(self.now + 10.0)
        self.assertEqual(self.monitor.last_status_log, self.now + 10.0)


class TestLivenessThread(unittest.TestCase):
    """Test the background tick loop"""

    def test_detects_loss_on_thread(self):
        liveness = LivenessState(threshold_s=0.1)
        sink = RecordingSink()
        monitor = LivenessMonitor(liveness, sink, tick_s=0.05)
        liveness.record_status(time.monotonic())

        monitor.start()
        try:
            deadline = time.monotonic() + 2.0
            while not sink.connectivity and time.monotonic() < deadline:
                time.sleep(0.02)
        finally:
            monitor.stop()

        self.assertEqual(sink.connectivity[:1], [False])

    def test_stop_idempotent(self):
        monitor = LivenessMonitor(LivenessState(), RecordingSink(), tick_s=0.05)
        monitor.start()
        self.assertTrue(monitor.is_running())
        monitor.stop()
        monitor.stop()
        self.assertFalse(monitor.is_running())

    def test_restart_after_stop(self):
        monitor = LivenessMonitor(LivenessState(), RecordingSink(), tick_s=0.05)
        monitor.start()
        monitor.stop()
        monitor._thread.join(timeout=1.0)
        monitor.start()
        self.assertTrue(monitor.is_running())
        monitor.stop()

    def test_restart_while_tick_in_flight(self):
        """start() after stop() runs even if the old thread is still inside a tick"""

        class BlockingSink(StatusSink):
            def __init__(self):
                self.entered = threading.Event()
                self.release = threading.Event()

            def on_connectivity_changed(self, connected):
                self.entered.set()
                self.release.wait(2.0)

        sink = BlockingSink()
        liveness = LivenessState(threshold_s=0.1)
        liveness.record_status(time.monotonic() - 10.0)
        monitor = LivenessMonitor(liveness, sink, tick_s=0.05)

        monitor.start()
        self.assertTrue(sink.entered.wait(2.0))
        old_thread = monitor._thread

        monitor.stop()
        monitor.start()
        try:
            self.assertTrue(monitor.is_running())
            self.assertIsNot(monitor._thread, old_thread)
            sink.release.set()
            old_thread.join(timeout=1.0)
            self.assertFalse(old_thread.is_alive())
            self.assertTrue(monitor.is_running())
        finally:
            sink.release.set()
            monitor.stop()


if __name__ == '__main__':
    unittest.main()

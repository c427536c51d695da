"""
Tests for event sub-dispatch.

Tests the fixed vocabularies, embedded field extraction and notice policy.
"""

import os
import sys
import unittest

# Add parent to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from common.events import (
    SEVERITY_ERROR, SEVERITY_INFO, SEVERITY_SUCCESS, SEVERITY_WARNING,
    describe_event, event_code, notice_for,
)
from common.protocol import MessageKind, parse_message


class TestEventVocabulary(unittest.TestCase):
    """Test describe_event"""

    def test_warning_queue_full_size(self):
        """WARNING:command_queue_full|SIZE:5 -> Warning with SIZE=5"""
        message = parse_message("WARNING:command_queue_full|SIZE:5")
        self.assertIs(message.kind, MessageKind.WARNING)

        detail = describe_event(message)
        self.assertEqual(detail.code, "command_queue_full")
        self.assertEqual(detail.fields["SIZE"], "5")
        self.assertTrue(detail.recognized)
        self.assertEqual(detail.summary, "Command queue full (5 pending)")
        self.assertEqual(detail.severity, SEVERITY_WARNING)

    def test_emergency_activated(self):
        detail = describe_event(parse_message("EMERGENCY_STOP:activated"))
        self.assertTrue(detail.emergency_confirmed)
        self.assertEqual(detail.summary, "EMERGENCY STOP ACTIVATED")
        self.assertEqual(detail.severity, SEVERITY_ERROR)

    def test_emergency_other_content(self):
        detail = describe_event(parse_message("EMERGENCY_STOP:cleared"))
        self.assertFalse(detail.emergency_confirmed)
        self.assertEqual(detail.summary, "Emergency stop: cleared")

    def test_emergency_deactivated_not_confirmed(self):
        """'activated' must be a whole token, not a substring"""
        for content in ("deactivated", "not_activated", "reactivated|REASON:test"):
            detail = describe_event(parse_message(f"EMERGENCY_STOP:{content}"))
            self.assertFalse(detail.emergency_confirmed, content)
            self.assertEqual(detail.summary, f"Emergency stop: {content}")

    def test_emergency_activated_with_fields(self):
        for content in ("activated|REASON:operator", "ACTIVATED", "system activated"):
            detail = describe_event(parse_message(f"EMERGENCY_STOP:{content}"))
            self.assertTrue(detail.emergency_confirmed, content)

    def test_mode_change_vocabulary(self):
        cases = {
            "override_mode_active": "Override mode active",
            "automatic_mode_active": "Automatic mode active",
            "mode_change_completed": "Mode change completed",
        }
        for code, summary in cases.items():
            detail = describe_event(parse_message(f"MODE_CHANGE:{code}"))
            self.assertEqual(detail.summary, summary)
            self.assertEqual(detail.severity, SEVERITY_SUCCESS)
            self.assertTrue(detail.recognized)

    def test_mode_change_pass_through(self):
        detail = describe_event(parse_message("MODE_CHANGE:something_new"))
        self.assertFalse(detail.recognized)
        self.assertEqual(detail.summary, "MODE_CHANGE: something_new")

    def test_info_phase_field(self):
        detail = describe_event(parse_message("INFO:sequence_started|PHASE:BOATS_PASSING"))
        self.assertEqual(detail.fields["PHASE"], "BOATS_PASSING")
        self.assertEqual(detail.summary, "Sequence started: BOATS_PASSING")
        self.assertEqual(detail.severity, SEVERITY_INFO)

    def test_error_reason_field(self):
        detail = describe_event(parse_message("ERROR:command_failed|REASON:gate jammed"))
        self.assertEqual(detail.summary, "Command failed: gate jammed")
        self.assertEqual(detail.severity, SEVERITY_ERROR)

    def test_missing_placeholder_field(self):
        detail = describe_event(parse_message("ERROR:command_failed"))
        self.assertEqual(detail.summary, "Command failed: unknown")

    def test_system_update(self):
        detail = describe_event(parse_message("SYSTEM_UPDATE:diagnostic_mode_entered"))
        self.assertEqual(detail.summary, "Diagnostic mode entered")

    def test_command_execution(self):
        detail = describe_event(parse_message("COMMAND_EXECUTION:open_bridge"))
        self.assertEqual(detail.summary, "Executed: open_bridge")
        self.assertEqual(detail.severity, SEVERITY_SUCCESS)

    def test_unclassified(self):
        detail = describe_event(parse_message("garbage"))
        self.assertIs(detail.kind, MessageKind.UNCLASSIFIED)
        self.assertIn("garbage", detail.summary)

    def test_event_code(self):
        self.assertEqual(event_code("command_queue_full|SIZE:5"), "command_queue_full")
        self.assertEqual(event_code("REASON:x"), "")
        self.assertEqual(event_code(""), "")


class TestNoticePolicy(unittest.TestCase):
    """Test which kinds produce notices"""

    def test_notified_kinds(self):
        for text in ("EMERGENCY_STOP:activated", "MODE_CHANGE:override_mode_active",
                     "WARNING:x", "ERROR:x", "SYSTEM_UPDATE:restarting", "INFO:x",
                     "COMMAND_EXECUTION:restart"):
            self.assertIsNotNone(notice_for(parse_message(text)), text)

    def test_silent_kinds(self):
        self.assertIsNone(notice_for(parse_message("WEIGHT_CHECK:ok")))
        self.assertIsNone(notice_for(parse_message("nonsense")))
        self.assertIsNone(notice_for(parse_message("STATUS:MODE:AUTOMATIC")))


if __name__ == '__main__':
    unittest.main()

"""
Tests for the alert decision (evaluate_subscription_for_notification)
"""
import unittest
from datetime import datetime, timezone

from svitlo.clock import MS_PER_MINUTE, local_now
from svitlo.records import Subscription
from svitlo.schedule import PowerState, normalize_block
from svitlo.tasks import evaluate_subscription_for_notification


def utc_ms(*args) -> int:
    return int(datetime(*args, tzinfo=timezone.utc).timestamp() * 1000)


# 10:00 local (+120) on 2025-11-19
EVENT_UTC_MS = utc_ms(2025, 11, 19, 8, 0)


class TestAlertDecision(unittest.TestCase):
    def setUp(self):
        self.record = Subscription(
            token="111:TEST",
            chat_id=555,
            url="https://bezsvitla.com.ua/dnipro/cherha-1-1",
            city_name="Дніпро",
            queue_name="Черга 1.1",
            minutes_before=20,
        )
        # Power is off until 10:00, then on
        self.blocks = [
            normalize_block("06:00", "10:00", PowerState.OFF),
            normalize_block("10:00", "14:00", PowerState.ON),
        ]

    def clock_at(self, hour, minute, second=0):
        return local_now(120, utc_ms(2025, 11, 19, hour - 2, minute, second))

    def test_sends_inside_window(self):
        decision = evaluate_subscription_for_notification(self.record, self.clock_at(9, 42), self.blocks)
        self.assertTrue(decision.should_send)
        self.assertEqual(decision.event_utc_ms, EVENT_UTC_MS)
        self.assertEqual(decision.updated_record.last_notified_event_utc_ms, EVENT_UTC_MS)
        self.assertEqual(
            decision.message,
            "🔔 АЛЕРТ: через 20 хв\n\n📍 Дніпро\n🔌 Черга 1.1\n\n⏰ увімкнення о 10:00",
        )

    def test_input_record_is_not_mutated(self):
        evaluate_subscription_for_notification(self.record, self.clock_at(9, 42), self.blocks)
        self.assertEqual(self.record.last_notified_event_utc_ms, 0)

    def test_window_opens_exactly_at_alert_time(self):
        decision = evaluate_subscription_for_notification(self.record, self.clock_at(9, 40), self.blocks)
        self.assertTrue(decision.should_send)

    def test_window_is_half_open(self):
        # alert at 09:40, window 6 minutes -> closed at 09:46:00
        last_inside = local_now(120, utc_ms(2025, 11, 19, 7, 40) + 6 * MS_PER_MINUTE - 1)
        self.assertTrue(evaluate_subscription_for_notification(self.record, last_inside, self.blocks).should_send)
        closed = self.clock_at(9, 46)
        self.assertFalse(evaluate_subscription_for_notification(self.record, closed, self.blocks).should_send)

    def test_too_early(self):
        decision = evaluate_subscription_for_notification(self.record, self.clock_at(9, 39), self.blocks)
        self.assertFalse(decision.should_send)
        self.assertIs(decision.updated_record, self.record)

    def test_already_notified_for_event(self):
        record = self.record.model_copy(update={"last_notified_event_utc_ms": EVENT_UTC_MS})
        decision = evaluate_subscription_for_notification(record, self.clock_at(9, 42), self.blocks)
        self.assertFalse(decision.should_send)
        self.assertEqual(decision.updated_record.last_notified_event_utc_ms, EVENT_UTC_MS)

    def test_older_watermark_does_not_block(self):
        record = self.record.model_copy(update={"last_notified_event_utc_ms": EVENT_UTC_MS - 4 * 60 * MS_PER_MINUTE})
        decision = evaluate_subscription_for_notification(record, self.clock_at(9, 42), self.blocks)
        self.assertTrue(decision.should_send)

    def test_second_tick_after_send_is_suppressed(self):
        first = evaluate_subscription_for_notification(self.record, self.clock_at(9, 41), self.blocks)
        self.assertTrue(first.should_send)
        second = evaluate_subscription_for_notification(first.updated_record, self.clock_at(9, 44), self.blocks)
        self.assertFalse(second.should_send)

    def test_no_blocks(self):
        decision = evaluate_subscription_for_notification(self.record, self.clock_at(9, 42), [])
        self.assertFalse(decision.should_send)
        self.assertIs(decision.updated_record, self.record)

    def test_disabled_record(self):
        record = self.record.model_copy(update={"enabled": False})
        decision = evaluate_subscription_for_notification(record, self.clock_at(9, 42), self.blocks)
        self.assertFalse(decision.should_send)

    def test_no_future_change(self):
        decision = evaluate_subscription_for_notification(self.record, self.clock_at(15, 0), self.blocks)
        self.assertFalse(decision.should_send)
        self.assertIsNone(decision.event_utc_ms)

    def test_gap_alert_names_next_block_state(self):
        blocks = [normalize_block("14:00", "18:00", PowerState.OFF)]
        decision = evaluate_subscription_for_notification(self.record, self.clock_at(13, 45), blocks)
        self.assertTrue(decision.should_send)
        self.assertIn("⏰ вимкнення о 14:00", decision.message)

    def test_unknown_change_type(self):
        blocks = [normalize_block("06:00", "10:00")]
        decision = evaluate_subscription_for_notification(self.record, self.clock_at(9, 42), blocks)
        self.assertIn("⏰ зміна о 10:00", decision.message)

    def test_after_local_midnight_late_block_belongs_to_new_day(self):
        blocks = [normalize_block("22:00", "00:30", PowerState.OFF)]
        clock = local_now(120, utc_ms(2025, 11, 19, 22, 12))  # 00:12 local on 2025-11-20
        decision = evaluate_subscription_for_notification(self.record, clock, blocks)
        self.assertFalse(decision.should_send)
        self.assertEqual(decision.event_utc_ms, utc_ms(2025, 11, 20, 20, 0))

    def test_event_across_midnight_same_local_day(self):
        blocks = [normalize_block("22:00", "00:30", PowerState.OFF)]
        clock = local_now(120, utc_ms(2025, 11, 19, 22, 12) - 30 * MS_PER_MINUTE)  # 23:42 local
        decision = evaluate_subscription_for_notification(
            self.record.model_copy(update={"minutes_before": 50}), clock, blocks,
        )
        self.assertTrue(decision.should_send)
        self.assertEqual(decision.event_utc_ms, utc_ms(2025, 11, 19, 22, 30))
        self.assertIn("⏰ увімкнення о 00:30", decision.message)

    def test_custom_window(self):
        decision = evaluate_subscription_for_notification(
            self.record, self.clock_at(9, 49), self.blocks, window_minutes=10,
        )
        self.assertTrue(decision.should_send)

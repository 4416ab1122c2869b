import unittest
from datetime import datetime, timedelta, timezone

from raffle.lottery import (
    DRAW_REQUESTED,
    ENTERED,
    EventBus,
    MalformedRandomness,
    Notification,
    upkeep_status,
    winner_index,
)
from raffle.models import RafflePhase

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class TestWinnerIndex(unittest.TestCase):
    def test_first_word_modulo_count(self):
        self.assertEqual(winner_index([7], 1), 0)
        self.assertEqual(winner_index([6], 4), 2)
        self.assertEqual(winner_index([2**256 - 1, 0], 10), (2**256 - 1) % 10)

    def test_only_first_word_is_used(self):
        self.assertEqual(winner_index([5, 1, 2], 3), 2)

    def test_rejects_missing_or_invalid_words(self):
        for words in ([], [-1], ["7"], [True], [1.5]):
            with self.subTest(words=words):
                with self.assertRaises(MalformedRandomness):
                    winner_index(words, 3)

    def test_requires_participants(self):
        with self.assertRaises(ValueError):
            winner_index([7], 0)


class TestUpkeepStatus(unittest.TestCase):
    def setUp(self):
        self.ready = dict(
            phase=RafflePhase.OPEN,
            pool_started_at=T0,
            now=T0 + timedelta(seconds=31),
            interval_seconds=30,
            participant_count=2,
            balance=500,
        )

    def test_ready_when_every_condition_holds(self):
        status = upkeep_status(**self.ready)
        self.assertTrue(status.ready)
        self.assertEqual(status.elapsed_seconds, 31)

    def test_each_condition_blocks_the_draw(self):
        blockers = [
            {"now": T0 + timedelta(seconds=30)},
            {"participant_count": 0},
            {"balance": 0},
            {"phase": RafflePhase.DRAWING},
        ]
        for change in blockers:
            with self.subTest(change=change):
                self.assertFalse(upkeep_status(**{**self.ready, **change}).ready)

    def test_naive_start_is_read_as_utc(self):
        status = upkeep_status(**{**self.ready, "pool_started_at": T0.replace(tzinfo=None)})
        self.assertTrue(status.interval_passed)


class TestEventBus(unittest.TestCase):
    def setUp(self):
        self.bus = EventBus()

    def test_subscribe_and_unsubscribe(self):
        received = []
        unsubscribe = self.bus.subscribe(ENTERED, received.append)
        first = Notification(ENTERED, 1, {"participant": "alice"})
        self.bus.publish([first, Notification(DRAW_REQUESTED, 1, {"request_id": "1"})])
        self.assertEqual(received, [first])

        unsubscribe()
        self.bus.publish([first])
        self.assertEqual(received, [first])

    def test_unknown_event_name(self):
        with self.assertRaises(ValueError):
            self.bus.subscribe("Refunded", print)

    def test_once_fires_a_single_time(self):
        received = []
        self.bus.once(ENTERED, received.append)
        notification = Notification(ENTERED, 1, {"participant": "alice"})
        self.bus.publish([notification, notification])
        self.assertEqual(received, [notification])

    def test_failing_listener_does_not_block_others(self):
        received = []

        def broken(_notification):
            raise RuntimeError("listener failure")

        self.bus.subscribe(ENTERED, broken)
        self.bus.subscribe(ENTERED, received.append)
        with self.assertLogs("raffle.lottery.events", level="ERROR"):
            self.bus.publish([Notification(ENTERED, 1, {"participant": "bob"})])
        self.assertEqual(len(received), 1)


if __name__ == "__main__":
    unittest.main()

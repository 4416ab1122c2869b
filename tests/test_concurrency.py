import tempfile
import threading
import time
import unittest
from pathlib import Path

from support import FEE, INTERVAL, FakeClock, make_settings

from raffle.db.engine import get_sessionmaker, make_engine
from raffle.ledger import AccountLedger
from raffle.lottery import (
    DRAW_REQUESTED,
    WINNER_PICKED,
    RoundNotOpen,
    UnknownOrStaleRequest,
)
from raffle.models import Base, RafflePhase
from raffle.workflows import deploy_raffle, load_raffle


class SlowLedger(AccountLedger):
    """Keeps the settlement transaction open long enough for rivals to arrive."""

    def transfer(self, session, recipient, amount):
        paid = super().transfer(session, recipient, amount)
        time.sleep(0.3)
        return paid


class SlowCoordinator:
    def __init__(self):
        self.calls = 0
        self.called = threading.Event()
        self._lock = threading.Lock()

    def request_random_words(self, **kwargs):
        with self._lock:
            self.calls += 1
            request_id = f"req-{self.calls}"
        self.called.set()
        time.sleep(0.3)
        return request_id


class SharedRoundTestCase(unittest.TestCase):
    """Two engines bound to one round in one file-backed SQLite database.

    Each engine has its own lock, so only the database orders their writes,
    as it would for separate processes.
    """

    def setUp(self):
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.engine = make_engine(f"sqlite:///{Path(tmpdir.name) / 'raffle.db'}")
        self.addCleanup(self.engine.dispose)
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)

        self.clock = FakeClock()
        self.coordinator = SlowCoordinator()
        self.ledger = SlowLedger()
        self.first = deploy_raffle(
            self.Session,
            make_settings(network="sepolia"),
            self.coordinator,
            self.ledger,
            clock=self.clock,
        )
        self.second = load_raffle(
            self.Session, "raffle", self.coordinator, self.ledger, clock=self.clock
        )

    def _race(self, *calls):
        barrier = threading.Barrier(len(calls))
        outcomes = []
        outcomes_lock = threading.Lock()

        def run(call):
            barrier.wait()
            try:
                outcome = ("ok", call())
            except (RoundNotOpen, UnknownOrStaleRequest) as exc:
                outcome = ("rejected", type(exc))
            with outcomes_lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=run, args=(call,)) for call in calls]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return outcomes

    def _balance(self, address):
        with self.Session() as session:
            return self.ledger.balance_of(session, address)

    def test_only_one_engine_starts_the_draw(self):
        self.first.enter("alice", FEE)
        self.clock.advance(INTERVAL + 1)

        outcomes = self._race(self.first.start_draw, self.second.start_draw)

        self.assertEqual(sorted(o[0] for o in outcomes), ["ok", "rejected"])
        self.assertIn(("rejected", RoundNotOpen), outcomes)
        self.assertEqual(self.coordinator.calls, 1)
        self.assertEqual(self.first.get_pending_request_id(), "req-1")
        self.assertEqual(len(self.first.get_events(DRAW_REQUESTED)), 1)

    def test_pool_is_paid_out_once(self):
        self.first.enter("alice", FEE)
        self.clock.advance(INTERVAL + 1)
        request_id = self.first.start_draw()

        outcomes = self._race(
            lambda: self.first.fulfill_random_words(request_id, [0]),
            lambda: self.second.fulfill_random_words(request_id, [0]),
        )

        self.assertIn(("ok", "alice"), outcomes)
        self.assertIn(("rejected", UnknownOrStaleRequest), outcomes)
        self.assertEqual(self._balance("alice"), FEE)
        self.assertEqual(len(self.second.get_events(WINNER_PICKED)), 1)
        self.assertEqual(self.second.get_phase(), RafflePhase.OPEN)
        self.assertEqual(self.second.get_round_number(), 2)

    def test_entry_waits_for_draw_in_flight(self):
        self.first.enter("alice", FEE)
        self.clock.advance(INTERVAL + 1)

        def late_entry():
            # Arrives while the first engine is still submitting its request.
            self.coordinator.called.wait(timeout=5)
            return self.second.enter("bob", FEE)

        outcomes = self._race(self.first.start_draw, late_entry)

        self.assertIn(("ok", "req-1"), outcomes)
        self.assertIn(("rejected", RoundNotOpen), outcomes)
        self.assertEqual(self.second.get_participant_count(), 1)
        self.assertEqual(self.second.get_pool_balance(), FEE)
        self.assertEqual(self.second.get_phase(), RafflePhase.DRAWING)


if __name__ == "__main__":
    unittest.main()

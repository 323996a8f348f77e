import unittest
from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from rentlotto.errors import (
    HandleConsumed,
    HandleReissued,
    InvalidInputError,
    InvalidRandomness,
    LotteryError,
    RequestOutstanding,
    UnauthorizedCoordinator,
    UnknownHandle,
    WordCountMismatch,
)
from rentlotto.models import Base, LotteryRound, RandomnessRequest
from rentlotto.randomness import RandomnessGateway
from rentlotto.randomness.gateway import MAX_RANDOM_VALUE

from fakes import COORDINATOR, FakeCoordinator

NOW = datetime(2024, 1, 8, tzinfo=timezone.utc)
STRANGER = "0x" + "99" * 20


class StuckCoordinator(FakeCoordinator):
    """Hands out the same handle for every request."""

    def request_random_words(self, num_words):
        super().request_random_words(num_words)
        return "stuck"


class TestRandomnessGateway(unittest.TestCase):
    def setUp(self):
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine, future=True, expire_on_commit=False)
        self.session = self.Session()
        self.round = LotteryRound(opened_at=NOW)
        self.session.add(self.round)
        self.session.flush()
        self.coordinator = FakeCoordinator()
        self.gateway = RandomnessGateway(self.session, self.coordinator, COORDINATOR)

    def tearDown(self):
        self.session.close()
        self.engine.dispose()

    def test_request_stores_pending_handle(self):
        handle = self.gateway.request(self.round.id, 3, now=NOW)
        self.assertEqual(handle, "req-1")
        self.assertEqual(self.coordinator.requests, [3])
        self.assertEqual(self.gateway.outstanding(self.round.id), "req-1")
        stored = self.session.get(RandomnessRequest, "req-1")
        self.assertEqual(stored.status, "pending")
        self.assertEqual(stored.num_words, 3)

    def test_only_one_outstanding_request_per_round(self):
        self.gateway.request(self.round.id, 1, now=NOW)
        with self.assertRaises(RequestOutstanding):
            self.gateway.request(self.round.id, 1, now=NOW)
        self.assertEqual(self.coordinator.requests, [1])

    def test_deliver_marks_fulfilled(self):
        handle = self.gateway.request(self.round.id, 2, now=NOW)
        big = 2**255 + 7
        request = self.gateway.deliver(COORDINATOR, handle, [big, 4], now=NOW)
        self.assertEqual(request.status, "fulfilled")
        self.assertEqual(request.values, [big, 4])
        self.assertEqual(request.round_id, self.round.id)
        self.assertIsNone(self.gateway.outstanding(self.round.id))

    def test_deliver_rejects_foreign_sender(self):
        handle = self.gateway.request(self.round.id, 1, now=NOW)
        with self.assertRaises(UnauthorizedCoordinator):
            self.gateway.deliver(STRANGER, handle, [1], now=NOW)
        self.assertEqual(self.gateway.outstanding(self.round.id), handle)

    def test_deliver_rejects_unknown_and_consumed_handles(self):
        with self.assertRaises(UnknownHandle):
            self.gateway.deliver(COORDINATOR, "never-issued", [1], now=NOW)
        handle = self.gateway.request(self.round.id, 1, now=NOW)
        self.gateway.deliver(COORDINATOR, handle, [1], now=NOW)
        with self.assertRaises(HandleConsumed):
            self.gateway.deliver(COORDINATOR, handle, [1], now=NOW)

    def test_deliver_rejects_wrong_word_count(self):
        handle = self.gateway.request(self.round.id, 2, now=NOW)
        with self.assertRaises(WordCountMismatch):
            self.gateway.deliver(COORDINATOR, handle, [1], now=NOW)
        with self.assertRaises(WordCountMismatch):
            self.gateway.deliver(COORDINATOR, handle, [1, 2, 3], now=NOW)

    def test_deliver_rejects_malformed_values(self):
        handle = self.gateway.request(self.round.id, 1, now=NOW)
        for bad in (-1, "abc", None, True, MAX_RANDOM_VALUE + 1):
            with self.subTest(value=bad):
                with self.assertRaises(InvalidRandomness) as ctx:
                    self.gateway.deliver(COORDINATOR, handle, [bad], now=NOW)
                self.assertIsInstance(ctx.exception, LotteryError)
        self.assertEqual(self.gateway.outstanding(self.round.id), handle)
        request = self.gateway.deliver(COORDINATOR, handle, ["42"], now=NOW)
        self.assertEqual(request.values, [42])

    def test_request_rejects_bad_count(self):
        for bad in (0, -3, "2", 1.5):
            with self.subTest(count=bad):
                with self.assertRaises(InvalidInputError):
                    self.gateway.request(self.round.id, bad, now=NOW)
        self.assertEqual(self.coordinator.requests, [])

    def test_reissued_handle_is_rejected(self):
        gateway = RandomnessGateway(self.session, StuckCoordinator(), COORDINATOR)
        gateway.request(self.round.id, 1, now=NOW)
        gateway.cancel(self.round.id)
        with self.assertRaises(HandleReissued):
            gateway.request(self.round.id, 1, now=NOW)

    def test_cancel_allows_reissue_and_rejects_late_delivery(self):
        first = self.gateway.request(self.round.id, 1, now=NOW)
        self.assertEqual(self.gateway.cancel(self.round.id), first)
        self.assertIsNone(self.gateway.cancel(self.round.id))
        second = self.gateway.request(self.round.id, 1, now=NOW)
        self.assertNotEqual(first, second)
        with self.assertRaises(UnknownHandle):
            self.gateway.deliver(COORDINATOR, first, [1], now=NOW)
        self.gateway.deliver(COORDINATOR, second, [1], now=NOW)


if __name__ == "__main__":
    unittest.main()

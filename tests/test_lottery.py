import unittest

from sqlalchemy import func, select

from rentlotto.errors import (
    AuthorizationError,
    InvalidAddress,
    InvalidInputError,
    ReentrantCall,
    TransferError,
)
from rentlotto.lottery import ConfigView, Lottery
from rentlotto.models import ValueTransfer
from rentlotto.settings import Settings

from fakes import (
    ADMIN,
    ALICE,
    BOB,
    COORDINATOR,
    WEEK,
    FakeCoordinator,
    RecordingTransfer,
    make_lottery,
    make_session_factory,
)


class ReentrantTransfer(RecordingTransfer):
    """Tries to withdraw again from inside a transfer."""

    def __init__(self):
        super().__init__()
        self.lottery = None
        self.reenter = True

    def send(self, recipient, amount):
        if self.reenter:
            self.lottery.withdraw(recipient)
        super().send(recipient, amount)


class ObservingTransfer(RecordingTransfer):
    """Reads lottery state from inside a transfer."""

    def __init__(self):
        super().__init__()
        self.lottery = None
        self.observed = []

    def send(self, recipient, amount):
        round = self.lottery.current_round()
        self.observed.append((self.lottery.balance_of(recipient), round.paid_out))
        super().send(recipient, amount)


class LotteryTestCase(unittest.TestCase):
    def setUp(self):
        self.engine, self.Session = make_session_factory()
        self.lottery, self.clock, self.coordinator, self.transfer = make_lottery(
            self.Session, transfer=self.make_transfer()
        )

    def tearDown(self):
        self.engine.dispose()

    def make_transfer(self):
        return RecordingTransfer()

    def transfer_rows(self):
        with self.Session() as session:
            return session.scalar(select(func.count(ValueTransfer.id)))

    def resolve_single_winner(self):
        """ALICE deposits 10 and wins the whole pot."""
        self.lottery.start_round(ADMIN)
        self.lottery.deposit(ALICE, 10)
        self.clock.advance(WEEK)
        handle = self.lottery.request_break(ADMIN)
        self.lottery.deliver_randomness(COORDINATOR, handle, [0])


class TestAdminConfig(LotteryTestCase):
    def test_defaults(self):
        self.assertEqual(
            self.lottery.config(),
            ConfigView(winner_count=1, protocol_fee_bps=0, rent_fee_bps=0, rent_amount=0),
        )

    def test_setters(self):
        self.lottery.set_winner_count(ADMIN, 4)
        self.lottery.set_protocol_fee(ADMIN, 250)
        self.lottery.set_rent_fee(ADMIN, 10_000)
        view = self.lottery.set_rent_amount(ADMIN, 3)
        self.assertEqual(view, ConfigView(4, 250, 10_000, 3))
        self.assertEqual(self.lottery.config(), view)

    def test_invalid_values(self):
        bad_calls = [
            (self.lottery.set_winner_count, 0),
            (self.lottery.set_winner_count, 1.5),
            (self.lottery.set_protocol_fee, 10_001),
            (self.lottery.set_protocol_fee, -1),
            (self.lottery.set_rent_fee, True),
            (self.lottery.set_rent_amount, -5),
        ]
        for setter, value in bad_calls:
            with self.subTest(setter=setter.__name__, value=value):
                with self.assertRaises(InvalidInputError):
                    setter(ADMIN, value)
        self.assertEqual(self.lottery.config().winner_count, 1)

    def test_admin_only(self):
        for setter in (
            self.lottery.set_winner_count,
            self.lottery.set_protocol_fee,
            self.lottery.set_rent_fee,
            self.lottery.set_rent_amount,
        ):
            with self.subTest(setter=setter.__name__):
                with self.assertRaises(AuthorizationError):
                    setter(BOB, 1)

    def test_admin_address_case_insensitive(self):
        lower = "0x" + "ab" * 20
        settings = Settings(admin_address=lower, coordinator_address=COORDINATOR)
        lottery = Lottery(self.Session, settings, coordinator=FakeCoordinator())
        lottery.set_rent_amount("0x" + "AB" * 20, 2)
        self.assertEqual(lottery.config().rent_amount, 2)

    def test_invalid_configured_address(self):
        settings = Settings(admin_address="admin", coordinator_address=COORDINATOR)
        with self.assertRaises(InvalidAddress):
            Lottery(self.Session, settings, coordinator=FakeCoordinator())


class TestTransferFailure(LotteryTestCase):
    def test_failed_claim_rolls_back(self):
        self.resolve_single_winner()
        self.transfer.fail = True
        with self.assertRaises(TransferError):
            self.lottery.claim(ALICE)
        self.assertEqual(self.transfer_rows(), 0)
        self.assertEqual(self.lottery.current_round().paid_out, 0)

        self.transfer.fail = False
        self.assertEqual(self.lottery.claim(ALICE), 10)
        self.assertEqual(self.transfer.sent, [(ALICE, 10)])
        self.assertEqual(self.transfer_rows(), 1)

    def test_failed_rent_rolls_back(self):
        self.resolve_single_winner()
        self.clock.advance(WEEK)
        self.lottery.finalize_close(ADMIN)
        self.lottery.set_rent_amount(ADMIN, 2)
        self.lottery.start_round(ADMIN)

        self.transfer.fail = True
        with self.assertRaises(TransferError):
            self.lottery.rent(BOB, 1, 2)
        self.assertIsNone(self.lottery.ticket_detail(1).renter)

        self.transfer.fail = False
        self.assertEqual(self.lottery.rent(BOB, 1, 2).renter, BOB)

    def test_failed_withdraw_keeps_balance(self):
        self.resolve_single_winner()
        self.clock.advance(WEEK)
        self.lottery.finalize_close(ADMIN)
        self.assertEqual(self.lottery.balance_of(ALICE), 10)

        self.transfer.fail = True
        with self.assertRaises(TransferError):
            self.lottery.withdraw(ALICE)
        self.assertEqual(self.lottery.balance_of(ALICE), 10)


class TestReentrancy(LotteryTestCase):
    def make_transfer(self):
        return ReentrantTransfer()

    def test_nested_call_is_rejected(self):
        self.transfer.lottery = self.lottery
        self.resolve_single_winner()
        with self.assertRaises(ReentrantCall):
            self.lottery.claim(ALICE)
        self.assertEqual(self.transfer_rows(), 0)

        self.transfer.reenter = False
        self.assertEqual(self.lottery.claim(ALICE), 10)


class TestReadsDuringTransfer(LotteryTestCase):
    def make_transfer(self):
        return ObservingTransfer()

    def test_nested_read_sees_updated_state(self):
        self.transfer.lottery = self.lottery
        self.resolve_single_winner()
        self.transfer.observed.clear()

        self.assertEqual(self.lottery.claim(ALICE), 10)
        self.assertEqual(self.transfer.observed, [(0, 10)])
        self.assertEqual(self.transfer.sent, [(ALICE, 10)])
        self.assertEqual(self.transfer_rows(), 1)
        self.assertEqual(self.lottery.current_round().paid_out, 10)


class TestReads(LotteryTestCase):
    def test_views_are_detached(self):
        self.assertIsNone(self.lottery.current_round())
        self.assertEqual(self.lottery.depositor_relation(ALICE), [])
        self.resolve_single_winner()
        view = self.lottery.current_round()
        self.assertEqual(view.deposit_count, 1)
        self.assertEqual(view.total_deposited, 10)
        self.assertEqual(view.winner_count, 1)
        with self.assertRaises(AttributeError):
            view.state = None
        entries = self.lottery.depositor_relation(ALICE, view.id)
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].depositor, ALICE)

    def test_round_entries_in_deposit_order(self):
        opened = self.lottery.start_round(ADMIN)
        self.lottery.deposit(BOB, 6)
        self.lottery.deposit(ALICE, 4)
        entries = self.lottery.round_entries(opened.id)
        self.assertEqual([e.depositor for e in entries], [BOB, ALICE])
        self.assertEqual([e.position for e in entries], [0, 1])
        self.assertEqual([e.value for e in entries], [6, 4])
        self.assertEqual(self.lottery.round_entries(opened.id + 1), [])


if __name__ == "__main__":
    unittest.main()

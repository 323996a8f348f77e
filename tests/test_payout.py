import unittest

from rentlotto.errors import (
    AlreadyClaimed,
    BorrowerNotWinner,
    BorrowerWindowElapsed,
    NotClaimable,
    NothingToWithdraw,
    NotWinner,
    OwnerMustWaitForBorrower,
)
from rentlotto.payout import split_borrower_share

from fakes import (
    ADMIN,
    ALICE,
    BOB,
    CAROL,
    COORDINATOR,
    DAVE,
    WEEK,
    make_lottery,
    make_session_factory,
)

UNIT = 10**9


class TestSplitBorrowerShare(unittest.TestCase):
    def test_split(self):
        self.assertEqual(
            split_borrower_share(3_750_000_000, 1000), (3_375_000_000, 375_000_000)
        )
        self.assertEqual(split_borrower_share(7, 0), (7, 0))
        self.assertEqual(split_borrower_share(7, 10_000), (0, 7))
        self.assertEqual(split_borrower_share(10, 3333), (6, 4))
        self.assertEqual(split_borrower_share(0, 1000), (0, 0))


class PayoutTestCase(unittest.TestCase):
    """Round 2 has three 5-unit entries: BOB on ALICE's rented ticket, CAROL, DAVE.

    Protocol fee 50%, rent fee 10%, two draws: the pot of 15 units leaves
    3.75 units per draw.
    """

    def setUp(self):
        self.engine, self.Session = make_session_factory()
        self.lottery, self.clock, self.coordinator, self.transfer = make_lottery(self.Session)

        # Round 1 only gives ALICE a ticket.
        self.lottery.start_round(ADMIN)
        self.alice_ticket = self.lottery.deposit(ALICE, 1).ticket_id
        self.clock.advance(WEEK)
        handle = self.lottery.request_break(ADMIN)
        self.lottery.deliver_randomness(COORDINATOR, handle, [0])
        self.lottery.claim(ALICE)
        self.clock.advance(WEEK)
        self.lottery.finalize_close(ADMIN)

        self.lottery.set_protocol_fee(ADMIN, 5000)
        self.lottery.set_rent_fee(ADMIN, 1000)
        self.lottery.set_rent_amount(ADMIN, 1)
        self.lottery.set_winner_count(ADMIN, 2)

        self.round = self.lottery.start_round(ADMIN)
        self.lottery.rent(BOB, self.alice_ticket, 1)
        self.lottery.deposit(BOB, 5 * UNIT)
        self.carol_ticket = self.lottery.deposit(CAROL, 5 * UNIT).ticket_id
        self.lottery.deposit(DAVE, 5 * UNIT)
        self.transfer.sent.clear()

    def tearDown(self):
        self.engine.dispose()

    def resolve(self, values):
        self.clock.advance(WEEK)
        handle = self.lottery.request_break(ADMIN)
        return self.lottery.deliver_randomness(COORDINATOR, handle, values)

    def close(self):
        self.clock.advance(WEEK)
        return self.lottery.finalize_close(ADMIN)

    def assertConserved(self, view):
        self.assertEqual(
            view.total_deposited, view.paid_out + view.credited + view.protocol_fee
        )


class TestClaimDuringBreak(PayoutTestCase):
    def test_not_claimable_before_resolution(self):
        with self.assertRaises(NotClaimable):
            self.lottery.claim(CAROL)
        self.clock.advance(WEEK)
        self.lottery.request_break(ADMIN)
        with self.assertRaises(NotClaimable):
            self.lottery.claim(CAROL)

    def test_pot_split(self):
        view = self.resolve([0, 4])
        self.assertEqual(view.total_deposited, 15 * UNIT)
        self.assertEqual(view.protocol_fee, 7_500_000_000)
        self.assertEqual(self.lottery.winning_tickets(view.id), [self.alice_ticket, self.carol_ticket])
        self.assertEqual(self.lottery.get_winner_addresses(view.id), [BOB, CAROL])

    def test_claim_matrix(self):
        self.resolve([0, 4])

        with self.assertRaises(OwnerMustWaitForBorrower):
            self.lottery.claim(ALICE)
        with self.assertRaises(NotWinner):
            self.lottery.claim(DAVE)

        self.assertEqual(self.lottery.claim(BOB), 3_375_000_000)
        self.assertEqual(self.lottery.balance_of(ALICE), 375_000_000)
        with self.assertRaises(AlreadyClaimed):
            self.lottery.claim(BOB)

        self.assertEqual(self.lottery.claim(ALICE), 375_000_000)
        self.assertEqual(self.lottery.balance_of(ALICE), 0)
        with self.assertRaises(NotWinner):
            self.lottery.claim(ALICE)

        self.assertEqual(self.lottery.claim(CAROL), 3_750_000_000)
        with self.assertRaises(AlreadyClaimed):
            self.lottery.claim(CAROL)

        self.assertEqual(
            self.transfer.sent,
            [(BOB, 3_375_000_000), (ALICE, 375_000_000), (CAROL, 3_750_000_000)],
        )
        self.assertConserved(self.close())

    def test_borrower_of_losing_ticket(self):
        self.resolve([1, 2])
        with self.assertRaises(BorrowerNotWinner):
            self.lottery.claim(BOB)
        with self.assertRaises(NotWinner):
            self.lottery.claim(ALICE)

    def test_ticket_drawn_twice_gets_two_shares(self):
        view = self.resolve([1, 4])
        self.assertEqual(self.lottery.winning_tickets(view.id), [self.carol_ticket] * 2)
        self.assertEqual(self.lottery.claim(CAROL), 7_500_000_000)
        with self.assertRaises(NotWinner):
            self.lottery.claim(DAVE)
        self.assertConserved(self.close())


class TestClaimAfterClose(PayoutTestCase):
    def test_unclaimed_borrower_share_reverts_to_owner(self):
        self.resolve([0, 4])
        self.lottery.claim(CAROL)
        closed = self.close()
        self.assertEqual(closed.credited, 3_750_000_000)
        self.assertConserved(closed)

        with self.assertRaises(BorrowerWindowElapsed):
            self.lottery.claim(BOB)
        self.assertEqual(self.lottery.balance_of(ALICE), 3_750_000_000)
        self.assertEqual(self.lottery.claim(ALICE), 3_750_000_000)
        with self.assertRaises(NotWinner):
            self.lottery.claim(ALICE)
        with self.assertRaises(AlreadyClaimed):
            self.lottery.claim(CAROL)

    def test_unclaimed_owner_share_becomes_withdrawable(self):
        self.resolve([1, 2])
        closed = self.close()
        self.assertEqual(closed.paid_out, 0)
        self.assertEqual(closed.credited, 7_500_000_000)
        self.assertConserved(closed)

        self.lottery.start_round(ADMIN)
        self.assertEqual(self.lottery.withdraw(CAROL), 3_750_000_000)
        with self.assertRaises(NothingToWithdraw):
            self.lottery.withdraw(CAROL)
        self.assertEqual(self.lottery.withdraw(DAVE), 3_750_000_000)
        self.assertEqual(
            self.transfer.sent, [(CAROL, 3_750_000_000), (DAVE, 3_750_000_000)]
        )

    def test_nothing_to_withdraw(self):
        with self.assertRaises(NothingToWithdraw):
            self.lottery.withdraw(BOB)


class TestOwnerWhoAlsoBorrows(unittest.TestCase):
    """ALICE lends her ticket to CAROL and rents BOB's; both tickets win.

    Rent fee 10%, no protocol fee, two draws over two 5-unit entries.
    """

    def setUp(self):
        self.engine, self.Session = make_session_factory()
        self.lottery, self.clock, self.coordinator, self.transfer = make_lottery(self.Session)

        self.lottery.start_round(ADMIN)
        self.alice_ticket = self.lottery.deposit(ALICE, 1).ticket_id
        self.bob_ticket = self.lottery.deposit(BOB, 1).ticket_id
        self.clock.advance(WEEK)
        handle = self.lottery.request_break(ADMIN)
        self.lottery.deliver_randomness(COORDINATOR, handle, [0])
        self.lottery.claim(ALICE)
        self.clock.advance(WEEK)
        self.lottery.finalize_close(ADMIN)

        self.lottery.set_rent_fee(ADMIN, 1000)
        self.lottery.set_winner_count(ADMIN, 2)
        self.lottery.start_round(ADMIN)
        self.lottery.rent(CAROL, self.alice_ticket, 0)
        self.lottery.rent(ALICE, self.bob_ticket, 0)
        self.lottery.deposit(CAROL, 5 * UNIT)
        self.lottery.deposit(ALICE, 5 * UNIT)
        self.clock.advance(WEEK)
        handle = self.lottery.request_break(ADMIN)
        self.view = self.lottery.deliver_randomness(COORDINATOR, handle, [0, 1])
        self.transfer.sent.clear()

    def tearDown(self):
        self.engine.dispose()

    def test_borrower_winnings_are_not_held_back(self):
        self.assertEqual(
            self.lottery.winning_tickets(self.view.id), [self.alice_ticket, self.bob_ticket]
        )
        self.assertEqual(self.lottery.claim(ALICE), 4_500_000_000)
        self.assertEqual(self.lottery.balance_of(BOB), 500_000_000)

        with self.assertRaises(OwnerMustWaitForBorrower):
            self.lottery.claim(ALICE)

        self.clock.advance(WEEK)
        closed = self.lottery.finalize_close(ADMIN)
        self.assertEqual(closed.paid_out, 4_500_000_000)
        self.assertEqual(
            closed.total_deposited, closed.paid_out + closed.credited + closed.protocol_fee
        )
        self.assertEqual(self.lottery.balance_of(ALICE), 5 * UNIT)
        self.assertEqual(self.lottery.balance_of(BOB), 500_000_000)
        self.assertEqual(self.transfer.sent, [(ALICE, 4_500_000_000)])


class TestIntegerDust(unittest.TestCase):
    def setUp(self):
        self.engine, self.Session = make_session_factory()
        self.lottery, self.clock, self.coordinator, self.transfer = make_lottery(self.Session)

    def tearDown(self):
        self.engine.dispose()

    def test_dust_goes_to_protocol_fee(self):
        self.lottery.set_winner_count(ADMIN, 2)
        self.lottery.set_protocol_fee(ADMIN, 333)
        self.lottery.start_round(ADMIN)
        for address in (ALICE, BOB, CAROL):
            self.lottery.deposit(address, 7)
        self.clock.advance(WEEK)
        handle = self.lottery.request_break(ADMIN)
        view = self.lottery.deliver_randomness(COORDINATOR, handle, [0, 2])
        # net = 21 * 9667 // 10000 = 20, so each draw is worth 10.
        self.assertEqual(view.protocol_fee, 1)
        self.assertEqual(self.lottery.claim(ALICE), 10)
        self.assertEqual(self.lottery.claim(CAROL), 10)
        self.clock.advance(WEEK)
        closed = self.lottery.finalize_close(ADMIN)
        self.assertEqual(closed.paid_out, 20)
        self.assertEqual(
            closed.total_deposited, closed.paid_out + closed.credited + closed.protocol_fee
        )


if __name__ == "__main__":
    unittest.main()

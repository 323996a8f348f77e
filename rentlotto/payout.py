"""Pot shares, claim eligibility and withdrawable balances."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from .admin import MAX_BPS
from .errors import (
    AlreadyClaimed,
    BorrowerNotWinner,
    BorrowerWindowElapsed,
    EligibilityError,
    InvalidOrTooLate,
    NotClaimable,
    NothingToWithdraw,
    NotWinner,
    OwnerMustWaitForBorrower,
)
from .ledger import TicketLedger
from .models import (
    DepositorRelation,
    LotteryRound,
    RoundState,
    TicketDeposit,
    WithdrawableBalance,
)

logger = logging.getLogger(__name__)


def split_borrower_share(share: int, rent_fee_bps: int) -> tuple[int, int]:
    """Return ``(borrower_cut, owner_cut)`` for a borrower's winning share."""
    borrower_cut = share * (MAX_BPS - rent_fee_bps) // MAX_BPS
    return borrower_cut, share - borrower_cut


class PayoutAccount:
    """Computes entitlements and releases them on claim."""

    def __init__(self, session: Session, ledger: TicketLedger) -> None:
        self._session = session
        self._ledger = ledger

    # -------- allocation --------
    def allocate(self, round: LotteryRound, winners: Sequence[TicketDeposit]) -> None:
        """Assign pot shares to the deposits selected by the draws.

        Each draw is worth one per-draw share, so a deposit selected twice
        receives two. The protocol fee absorbs the integer-division dust.

        Parameters
        ----------
        round : LotteryRound
            Round being resolved; its fee and winner-count snapshots are used.
        winners : Sequence[TicketDeposit]
            Deposit selected by each draw, in draw order (duplicates allowed).
        """
        total = round.total_deposited
        if not winners:
            round.protocol_fee = total
            self._session.flush()
            return

        protocol_fee_bps = round.protocol_fee_bps or 0
        net = total * (MAX_BPS - protocol_fee_bps) // MAX_BPS
        per_draw = net // len(winners)

        counts = Counter(deposit.id for deposit in winners)
        for deposit in round.deposits:
            hits = counts.get(deposit.id, 0)
            deposit.win_count = hits
            deposit.share = per_draw * hits

        round.protocol_fee = total - per_draw * len(winners)
        self._session.flush()
        logger.info(
            "Round %d pot %d: %d per draw, protocol fee %d",
            round.id,
            total,
            per_draw,
            round.protocol_fee,
        )

    # -------- claims --------
    def claim(self, round: Optional[LotteryRound], caller: str, *, now: datetime) -> int:
        """Release everything ``caller`` is owed for ``round`` and return the amount.

        The returned amount has already been debited from the ledger; the
        caller is responsible for transferring it out.

        Raises
        ------
        NotClaimable
            If winners have not been resolved yet.
        OwnerMustWaitForBorrower
            If nothing else is payable and the caller's rented-out ticket
            won but its borrower has not claimed during the break.
        BorrowerWindowElapsed
            If a borrower claims after the round closed.
        EligibilityError
            If nothing is payable (``NotWinner``, ``BorrowerNotWinner`` or
            ``AlreadyClaimed``).
        """
        if round is None or round.state in (RoundState.OPEN, RoundState.AWAITING_RANDOMNESS):
            raise NotClaimable("winners have not been resolved for the current round")

        deposits = self._ledger.deposits_of(round.id, caller)
        if round.state == RoundState.BREAK:
            payable = self._claim_break(round, deposits, now)
        else:
            payable = 0

        payable += self._drain_balance(caller)
        if payable > 0:
            logger.info("Round %d: %s claimed %d", round.id, caller, payable)
            return payable

        if round.state == RoundState.CLOSED:
            if any(d.relation == DepositorRelation.BORROWER for d in deposits):
                raise BorrowerWindowElapsed(
                    "borrowers can only claim during the break period"
                )
            if any(d.is_winner for d in deposits):
                raise AlreadyClaimed(f"{caller} has already been paid for round {round.id}")
            raise NotWinner(f"{caller} has nothing to claim for round {round.id}")

        lent = self._pending_lent_deposit(round, caller)
        if lent is not None:
            raise OwnerMustWaitForBorrower(
                f"ticket {lent.ticket_id} won and its borrower has not claimed yet"
            )
        raise self._ineligible_reason(round, caller, deposits)

    def _claim_break(
        self,
        round: LotteryRound,
        deposits: Sequence[TicketDeposit],
        now: datetime,
    ) -> int:
        payable = 0
        for deposit in deposits:
            if not deposit.is_winner or deposit.is_claimed:
                continue
            if deposit.relation == DepositorRelation.BORROWER:
                borrower_cut, owner_cut = split_borrower_share(
                    deposit.share, round.rent_fee_bps or 0
                )
                self._credit(deposit.ticket.owner_address, owner_cut)
                round.credited += owner_cut
                round.paid_out += borrower_cut
                payable += borrower_cut
            else:
                round.paid_out += deposit.share
                payable += deposit.share
            deposit.claimed_at = now

        self._session.flush()
        return payable

    def _pending_lent_deposit(
        self, round: LotteryRound, caller: str
    ) -> Optional[TicketDeposit]:
        """The winning, unclaimed deposit a borrower made on ``caller``'s ticket."""
        own = self._ledger.ticket_of(caller)
        if own is None or own.renter_for(round.id) is None:
            return None
        lent = self._ledger.deposit_for_ticket(round.id, own.id)
        if lent is not None and lent.is_winner and not lent.is_claimed:
            return lent
        return None

    def _ineligible_reason(
        self,
        round: LotteryRound,
        caller: str,
        deposits: Sequence[TicketDeposit],
    ) -> EligibilityError:
        for deposit in deposits:
            if deposit.is_winner and deposit.is_claimed:
                return AlreadyClaimed(
                    f"ticket {deposit.ticket_id} has already been paid for round {round.id}"
                )
        for deposit in deposits:
            if deposit.relation == DepositorRelation.BORROWER and not deposit.is_winner:
                return BorrowerNotWinner(f"rented ticket {deposit.ticket_id} did not win")
        return NotWinner(f"{caller} has nothing to claim for round {round.id}")

    def close(self, round: LotteryRound, *, now: datetime) -> None:
        """Credit every entitlement still pending at close to a withdrawable balance.

        A borrower who never claimed forfeits the whole share to the ticket
        owner, not just the rent-fee remainder.
        """
        for deposit in round.deposits:
            if not deposit.is_winner or deposit.is_claimed or deposit.share == 0:
                continue
            if deposit.relation == DepositorRelation.BORROWER:
                beneficiary = deposit.ticket.owner_address
            else:
                beneficiary = deposit.depositor_address
            self._credit(beneficiary, deposit.share)
            round.credited += deposit.share
            deposit.claimed_at = now
            logger.info(
                "Round %d: credited %d to %s at close (ticket %d)",
                round.id,
                deposit.share,
                beneficiary,
                deposit.ticket_id,
            )
        self._session.flush()

    # -------- balances --------
    def withdraw(self, caller: str) -> int:
        amount = self._drain_balance(caller)
        if amount == 0:
            raise NothingToWithdraw(f"{caller} has no withdrawable balance")
        logger.info("%s withdrew %d", caller, amount)
        return amount

    def balance_of(self, address: str) -> int:
        return WithdrawableBalance.amount_of(self._session, address)

    def _credit(self, address: str, amount: int) -> None:
        if amount <= 0:
            return
        row = WithdrawableBalance.for_update(self._session, address)
        row.amount += amount

    def _drain_balance(self, address: str) -> int:
        row = self._session.get(WithdrawableBalance, address)
        if row is None or row.amount == 0:
            return 0
        amount = row.amount
        row.amount = 0
        self._session.flush()
        return amount

    # -------- winners --------
    def winning_tickets(self, round: Optional[LotteryRound]) -> list[int]:
        """Ticket id selected by each draw; only readable during the break."""
        return [draw.deposit.ticket_id for draw in self._resolved_draws(round)]

    def winner_addresses(self, round: Optional[LotteryRound]) -> list[str]:
        """Depositor address behind each draw; only readable during the break."""
        return [draw.deposit.depositor_address for draw in self._resolved_draws(round)]

    def _resolved_draws(self, round: Optional[LotteryRound]):
        if round is None or round.state != RoundState.BREAK:
            raise InvalidOrTooLate(
                "invalid round, or winners are not readable outside the break period"
            )
        return list(round.draws)


__all__ = ["PayoutAccount", "split_borrower_share"]

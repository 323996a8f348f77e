"""Ticket identity, ownership, rentals and per-round deposits."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .errors import (
    AlreadyRented,
    AlreadyRenting,
    DepositedAlready,
    InvalidAmount,
    InvalidTicket,
    NotOpen,
    RentedToOther,
    SelfRental,
)
from .models import DepositorRelation, LotteryRound, RoundState, Ticket, TicketDeposit
from .whitelist import WhitelistVerifier

logger = logging.getLogger(__name__)


def _check_value(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount("value must be an integer amount of base units")
    if value < 0:
        raise InvalidAmount("value must not be negative")
    return value


def _require_open(round: Optional[LotteryRound]) -> LotteryRound:
    if round is None or round.state != RoundState.OPEN:
        raise NotOpen("no round is open for deposits")
    return round


class TicketLedger:
    """Owns tickets and records who entered each round under which relation."""

    def __init__(self, session: Session, whitelist: WhitelistVerifier) -> None:
        self._session = session
        self._whitelist = whitelist

    # -------- mutations --------
    def deposit(
        self,
        round: Optional[LotteryRound],
        caller: str,
        value: int,
        *,
        now: datetime,
    ) -> TicketDeposit:
        """Enter ``caller`` into the open round.

        The depositor relation is decided in this order:

        1. whitelisted caller depositing ``0``: the caller's own ticket
           (allocated on first use), relation ``whitelisted``;
        2. the caller's own idle ticket: relation ``owner``;
        3. a ticket the caller rents this round: relation ``borrower``;
        4. a caller without a ticket: new ticket, relation ``new_depositor``.

        Raises
        ------
        NotOpen
            If the round is not accepting deposits.
        RentedToOther
            If the caller's ticket is rented out this round.
        DepositedAlready
            If every ticket available to the caller already entered.
        InvalidAmount
            If ``value`` is zero for a non-whitelisted caller or negative.
        """
        round = _require_open(round)
        value = _check_value(value)

        own = Ticket.get_by_owner(self._session, caller)
        rented = Ticket.rented_by(self._session, caller, round.id)

        if value == 0:
            if not self._whitelist.is_whitelisted(caller):
                raise InvalidAmount("deposit value must be positive")
            if own is None:
                own = self._allocate(caller, now)
            elif own.renter_for(round.id) is not None:
                raise RentedToOther(f"ticket {own.id} is rented to another address")
            elif own.is_deposited_in(round.id):
                raise DepositedAlready(f"ticket {own.id} already entered round {round.id}")
            return self._record(round, own, caller, DepositorRelation.WHITELISTED, 0, now)

        if own is not None and own.renter_for(round.id) is None and not own.is_deposited_in(round.id):
            return self._record(round, own, caller, DepositorRelation.OWNER, value, now)
        if rented is not None and not rented.is_deposited_in(round.id):
            return self._record(round, rented, caller, DepositorRelation.BORROWER, value, now)
        if own is not None and own.renter_for(round.id) is not None:
            raise RentedToOther(f"ticket {own.id} is rented to another address")
        if own is None and rented is None:
            ticket = self._allocate(caller, now)
            return self._record(round, ticket, caller, DepositorRelation.NEW_DEPOSITOR, value, now)
        raise DepositedAlready(f"{caller} already entered round {round.id}")

    def rent(
        self,
        round: Optional[LotteryRound],
        caller: str,
        ticket_id: int,
        value: int,
        *,
        rent_amount: int,
    ) -> Ticket:
        """Register ``caller`` as the renter of ``ticket_id`` for the open round.

        The rent payment itself is forwarded to the owner by the caller of
        this method; the ledger never holds it.
        """
        round = _require_open(round)
        ticket = self._session.get(Ticket, ticket_id) if isinstance(ticket_id, int) else None
        if ticket is None:
            raise InvalidTicket(f"ticket {ticket_id!r} does not exist")
        if ticket.is_deposited_in(round.id):
            raise DepositedAlready(f"ticket {ticket.id} already entered round {round.id}")
        if ticket.renter_for(round.id) is not None:
            raise AlreadyRented(f"ticket {ticket.id} is already rented this round")
        if _check_value(value) != rent_amount:
            raise InvalidAmount(f"rent must be exactly {rent_amount}")
        if ticket.owner_address == caller:
            raise SelfRental("owners cannot rent their own ticket")
        if Ticket.rented_by(self._session, caller, round.id) is not None:
            raise AlreadyRenting(f"{caller} already rents a ticket this round")

        ticket.renter_address = caller
        ticket.rented_round_id = round.id
        self._session.flush()
        logger.debug("Ticket %d rented by %s for round %d", ticket.id, caller, round.id)
        return ticket

    # -------- reads --------
    def ticket(self, ticket_id: int) -> Ticket:
        ticket = self._session.get(Ticket, ticket_id)
        if ticket is None:
            raise InvalidTicket(f"ticket {ticket_id!r} does not exist")
        return ticket

    def ticket_of(self, address: str) -> Optional[Ticket]:
        return Ticket.get_by_owner(self._session, address)

    def ticket_count(self) -> int:
        return self._session.scalar(select(func.count(Ticket.id))) or 0

    def deposits_of(self, round_id: int, address: str) -> list[TicketDeposit]:
        """Deposits ``address`` made in ``round_id``, in deposit order."""
        stmt = (
            select(TicketDeposit)
            .where(
                TicketDeposit.round_id == round_id,
                TicketDeposit.depositor_address == address,
            )
            .order_by(TicketDeposit.position.asc())
        )
        return list(self._session.scalars(stmt).all())

    def deposits_for_round(self, round_id: int) -> list[TicketDeposit]:
        stmt = (
            select(TicketDeposit)
            .where(TicketDeposit.round_id == round_id)
            .order_by(TicketDeposit.position.asc())
        )
        return list(self._session.scalars(stmt).all())

    def relation_of(self, round_id: int, address: str) -> list[DepositorRelation]:
        """Relations under which ``address`` entered ``round_id``, in deposit order."""
        return [d.relation for d in self.deposits_of(round_id, address)]

    def deposit_for_ticket(self, round_id: int, ticket_id: int) -> Optional[TicketDeposit]:
        return self._session.scalar(
            select(TicketDeposit).where(
                TicketDeposit.round_id == round_id,
                TicketDeposit.ticket_id == ticket_id,
            )
        )

    # -------- helpers --------
    def _allocate(self, owner: str, now: datetime) -> Ticket:
        ticket = Ticket(owner_address=owner, created_at=now)
        self._session.add(ticket)
        self._session.flush()
        logger.info("Allocated ticket %d for %s", ticket.id, owner)
        return ticket

    def _record(
        self,
        round: LotteryRound,
        ticket: Ticket,
        depositor: str,
        relation: DepositorRelation,
        value: int,
        now: datetime,
    ) -> TicketDeposit:
        deposit = TicketDeposit(
            round=round,
            ticket=ticket,
            depositor_address=depositor,
            relation=relation,
            value=value,
            position=round.deposit_count,
            created_at=now,
        )
        self._session.add(deposit)
        ticket.deposited_round_id = round.id
        ticket.deposit_value = value
        round.total_deposited += value
        self._session.flush()
        logger.debug(
            "Round %d: %s deposited %d on ticket %d as %s",
            round.id,
            depositor,
            value,
            ticket.id,
            relation.value,
        )
        return deposit


__all__ = ["TicketLedger"]

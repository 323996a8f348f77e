"""Transactional facade over the lottery components.

Each public method runs in its own database transaction. Ledger changes are
flushed first, outgoing transfers are issued next and the transaction
commits last; any exception along the way rolls the whole call back.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional, Sequence

from sqlalchemy.orm import Session, sessionmaker

from .addresses import normalize_address
from .admin import AdminSettings, require_admin
from .db.engine import get_sessionmaker, make_engine
from .db.utils import as_utc
from .errors import InvalidInputError, ReentrantCall
from .ledger import TicketLedger
from .models import AdminConfig, DepositorRelation, LotteryRound, RoundState, Ticket, TicketDeposit
from .payout import PayoutAccount
from .randomness.gateway import RandomnessCoordinator, RandomnessGateway
from .rounds import RoundManager
from .settings import Settings
from .transfers import LoggingTransfer, TransferCollaborator, issue_transfer
from .whitelist import ProofElement, WhitelistVerifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoundView:
    """Detached snapshot of a :class:`LotteryRound`."""

    id: int
    state: RoundState
    opened_at: datetime
    break_requested_at: Optional[datetime]
    broken_at: Optional[datetime]
    closed_at: Optional[datetime]
    winner_count: Optional[int]
    protocol_fee_bps: Optional[int]
    rent_fee_bps: Optional[int]
    deposit_count: int
    total_deposited: int
    protocol_fee: int
    paid_out: int
    credited: int

    @classmethod
    def from_model(cls, round: LotteryRound) -> "RoundView":
        return cls(
            id=round.id,
            state=round.state,
            opened_at=as_utc(round.opened_at),
            break_requested_at=as_utc(round.break_requested_at),
            broken_at=as_utc(round.broken_at),
            closed_at=as_utc(round.closed_at),
            winner_count=round.winner_count,
            protocol_fee_bps=round.protocol_fee_bps,
            rent_fee_bps=round.rent_fee_bps,
            deposit_count=round.deposit_count,
            total_deposited=round.total_deposited,
            protocol_fee=round.protocol_fee,
            paid_out=round.paid_out,
            credited=round.credited,
        )


@dataclass(frozen=True)
class TicketView:
    """A ticket as seen from the latest round."""

    id: int
    owner: str
    renter: Optional[str]
    deposited: bool
    deposit_value: int

    @classmethod
    def from_model(cls, ticket: Ticket, round_id: Optional[int]) -> "TicketView":
        deposited = round_id is not None and ticket.is_deposited_in(round_id)
        return cls(
            id=ticket.id,
            owner=ticket.owner_address,
            renter=ticket.renter_for(round_id) if round_id is not None else None,
            deposited=deposited,
            deposit_value=ticket.deposit_value if deposited else 0,
        )


@dataclass(frozen=True)
class EntryView:
    """One deposit into a round and the relation it was made under."""

    round_id: int
    ticket_id: int
    depositor: str
    relation: DepositorRelation
    value: int
    position: int

    @classmethod
    def from_model(cls, deposit: TicketDeposit) -> "EntryView":
        return cls(
            round_id=deposit.round_id,
            ticket_id=deposit.ticket_id,
            depositor=deposit.depositor_address,
            relation=deposit.relation,
            value=deposit.value,
            position=deposit.position,
        )


@dataclass(frozen=True)
class ConfigView:
    winner_count: int
    protocol_fee_bps: int
    rent_fee_bps: int
    rent_amount: int

    @classmethod
    def from_model(cls, config: AdminConfig) -> "ConfigView":
        return cls(
            winner_count=config.winner_count,
            protocol_fee_bps=config.protocol_fee_bps,
            rent_fee_bps=config.rent_fee_bps,
            rent_amount=config.rent_amount,
        )


@dataclass
class _Components:
    session: Session
    whitelist: WhitelistVerifier
    ledger: TicketLedger
    payout: PayoutAccount
    admin: AdminSettings
    gateway: RandomnessGateway
    rounds: RoundManager


class Lottery:
    """Single-writer entry point for admins, participants and the coordinator."""

    def __init__(
        self,
        session_factory: sessionmaker,
        settings: Settings,
        *,
        coordinator: RandomnessCoordinator,
        transfer: Optional[TransferCollaborator] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Create a lottery bound to a session factory and its collaborators.

        Parameters
        ----------
        session_factory : sessionmaker
            Factory producing sessions on the lottery database. Use
            :func:`rentlotto.db.engine.get_sessionmaker`.
        settings : Settings
            Admin and coordinator identities, whitelist root and windows.
        coordinator : RandomnessCoordinator
            External randomness service used when a break is requested.
        transfer : Optional[TransferCollaborator], default: None
            Collaborator that moves value out. Defaults to
            :class:`~rentlotto.transfers.LoggingTransfer`.
        clock : Optional[Callable[[], datetime]], default: None
            Source of the current time; defaults to ``datetime.now(timezone.utc)``.
        """
        self._session_factory = session_factory
        self._settings = settings
        self._admin_address = normalize_address(settings.admin_address)
        self._coordinator_address = normalize_address(settings.coordinator_address)
        self._coordinator = coordinator
        self._transfer = transfer or LoggingTransfer()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()
        self._active_thread: Optional[int] = None
        self._active: Optional[_Components] = None

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        *,
        coordinator: Optional[RandomnessCoordinator] = None,
        transfer: Optional[TransferCollaborator] = None,
    ) -> "Lottery":
        """Build a lottery from environment configuration.

        The schema is expected to exist already (see ``scripts/init_db.py``).
        """
        from .randomness.client import HttpRandomnessCoordinator

        settings = settings or Settings.from_env()
        engine = make_engine(settings.database_url)
        return cls(
            get_sessionmaker(engine),
            settings,
            coordinator=coordinator or HttpRandomnessCoordinator(),
            transfer=transfer,
        )

    # -------- plumbing --------
    def _now(self) -> datetime:
        return as_utc(self._clock())

    @contextmanager
    def _call(self) -> Iterator[_Components]:
        if self._active_thread == threading.get_ident():
            raise ReentrantCall("mutating lottery calls cannot be nested inside another call")
        with self._lock:
            self._active_thread = threading.get_ident()
            try:
                with self._session_factory.begin() as session:
                    self._active = self._components(session)
                    yield self._active
            finally:
                self._active = None
                self._active_thread = None

    @contextmanager
    def _read(self) -> Iterator[_Components]:
        """Like :meth:`_call`, but a nested read joins the active transaction."""
        if self._active_thread == threading.get_ident() and self._active is not None:
            yield self._active
            return
        with self._call() as c:
            yield c

    def _components(self, session: Session) -> _Components:
        whitelist = WhitelistVerifier(session, self._settings.whitelist_root)
        ledger = TicketLedger(session, whitelist)
        payout = PayoutAccount(session, ledger)
        admin = AdminSettings(session)
        gateway = RandomnessGateway(session, self._coordinator, self._coordinator_address)
        rounds = RoundManager(
            session,
            gateway=gateway,
            payout=payout,
            admin=admin,
            deposit_window=self._settings.deposit_window,
            break_window=self._settings.break_window,
            randomness_timeout=self._settings.randomness_timeout,
        )
        return _Components(session, whitelist, ledger, payout, admin, gateway, rounds)

    def _admin_call(self, caller: str) -> None:
        require_admin(normalize_address(caller), self._admin_address)

    # -------- admin operations --------
    def start_round(self, caller: str) -> RoundView:
        self._admin_call(caller)
        with self._call() as c:
            return RoundView.from_model(c.rounds.start_round(now=self._now()))

    def request_break(self, caller: str) -> str:
        """Close the deposit window and return the randomness handle."""
        self._admin_call(caller)
        with self._call() as c:
            return c.rounds.request_break(now=self._now())

    def finalize_close(self, caller: str) -> RoundView:
        self._admin_call(caller)
        with self._call() as c:
            return RoundView.from_model(c.rounds.finalize_close(now=self._now()))

    def recover_stalled_round(self, caller: str) -> str:
        self._admin_call(caller)
        with self._call() as c:
            return c.rounds.recover_stalled_round(now=self._now())

    def set_winner_count(self, caller: str, count: int) -> ConfigView:
        self._admin_call(caller)
        with self._call() as c:
            return ConfigView.from_model(c.admin.set_winner_count(count))

    def set_protocol_fee(self, caller: str, bps: int) -> ConfigView:
        self._admin_call(caller)
        with self._call() as c:
            return ConfigView.from_model(c.admin.set_protocol_fee(bps))

    def set_rent_fee(self, caller: str, bps: int) -> ConfigView:
        self._admin_call(caller)
        with self._call() as c:
            return ConfigView.from_model(c.admin.set_rent_fee(bps))

    def set_rent_amount(self, caller: str, amount: int) -> ConfigView:
        self._admin_call(caller)
        with self._call() as c:
            return ConfigView.from_model(c.admin.set_rent_amount(amount))

    def verify_whitelist(
        self, caller: str, proof: Sequence[ProofElement], address: str
    ) -> bool:
        self._admin_call(caller)
        with self._call() as c:
            return c.whitelist.verify(proof, address)

    # -------- participant operations --------
    def deposit(self, caller: str, value: int) -> EntryView:
        caller = normalize_address(caller)
        with self._call() as c:
            entry = c.ledger.deposit(c.rounds.current(), caller, value, now=self._now())
            return EntryView.from_model(entry)

    def rent(self, caller: str, ticket_id: int, value: int) -> TicketView:
        """Rent ``ticket_id`` for the open round; ``value`` goes straight to its owner."""
        caller = normalize_address(caller)
        with self._call() as c:
            round = c.rounds.current()
            config = c.admin.load()
            ticket = c.ledger.rent(round, caller, ticket_id, value, rent_amount=config.rent_amount)
            if value > 0:
                issue_transfer(
                    c.session,
                    self._transfer,
                    recipient=ticket.owner_address,
                    amount=value,
                    kind="rent",
                    round_id=round.id,
                )
            return TicketView.from_model(ticket, round.id)

    def claim(self, caller: str) -> int:
        """Pay out everything ``caller`` is owed for the latest round."""
        caller = normalize_address(caller)
        with self._call() as c:
            round = c.rounds.current()
            amount = c.payout.claim(round, caller, now=self._now())
            issue_transfer(
                c.session,
                self._transfer,
                recipient=caller,
                amount=amount,
                kind="claim",
                round_id=round.id,
            )
            return amount

    def withdraw(self, caller: str) -> int:
        """Pay out the caller's withdrawable balance regardless of round state."""
        caller = normalize_address(caller)
        with self._call() as c:
            amount = c.payout.withdraw(caller)
            issue_transfer(
                c.session, self._transfer, recipient=caller, amount=amount, kind="withdraw"
            )
            return amount

    # -------- coordinator callback --------
    def deliver_randomness(
        self, sender: str, handle: str, values: Sequence[int]
    ) -> RoundView:
        sender = normalize_address(sender)
        with self._call() as c:
            now = self._now()
            request = c.gateway.deliver(sender, handle, values, now=now)
            round = c.rounds.resolve(request.round_id, request.values, now=now)
            return RoundView.from_model(round)

    # -------- reads --------
    def current_round(self) -> Optional[RoundView]:
        with self._read() as c:
            round = c.rounds.current()
            return RoundView.from_model(round) if round is not None else None

    def round_detail(self, round_id: int) -> RoundView:
        with self._read() as c:
            round = c.rounds.get(round_id)
            if round is None:
                raise InvalidInputError(f"round {round_id!r} does not exist")
            return RoundView.from_model(round)

    def ticket_detail(self, ticket_id: int) -> TicketView:
        with self._read() as c:
            ticket = c.ledger.ticket(ticket_id)
            round = c.rounds.current()
            return TicketView.from_model(ticket, round.id if round is not None else None)

    def ticket_count(self) -> int:
        with self._read() as c:
            return c.ledger.ticket_count()

    def depositor_relation(
        self, address: str, round_id: Optional[int] = None
    ) -> list[EntryView]:
        """Entries ``address`` made in ``round_id`` (default: latest round)."""
        address = normalize_address(address)
        with self._read() as c:
            if round_id is None:
                round_id = c.rounds.latest_id()
                if round_id is None:
                    return []
            return [EntryView.from_model(d) for d in c.ledger.deposits_of(round_id, address)]

    def round_entries(self, round_id: int) -> list[EntryView]:
        """Every deposit of ``round_id`` in deposit (snapshot) order."""
        with self._read() as c:
            return [EntryView.from_model(d) for d in c.ledger.deposits_for_round(round_id)]

    def whitelist_length(self) -> int:
        with self._read() as c:
            return c.whitelist.length()

    def whitelist_member(self, index: int) -> str:
        with self._read() as c:
            return c.whitelist.member(index)

    def balance_of(self, address: str) -> int:
        address = normalize_address(address)
        with self._read() as c:
            return c.payout.balance_of(address)

    def winning_tickets(self, round_id: int) -> list[int]:
        with self._read() as c:
            return c.payout.winning_tickets(c.rounds.get(round_id))

    def get_winner_addresses(self, round_id: int) -> list[str]:
        with self._read() as c:
            return c.payout.winner_addresses(c.rounds.get(round_id))

    def outstanding_request(self, round_id: int) -> Optional[str]:
        with self._read() as c:
            return c.gateway.outstanding(round_id)

    def config(self) -> ConfigView:
        with self._read() as c:
            return ConfigView.from_model(c.admin.load())


__all__ = [
    "ConfigView",
    "EntryView",
    "Lottery",
    "RoundView",
    "TicketView",
]

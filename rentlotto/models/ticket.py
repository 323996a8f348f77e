"""Persistent tickets and their per-round deposits."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    BigInteger,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import ID_TYPE, Base

if TYPE_CHECKING:
    from .round import LotteryRound


class DepositorRelation(str, enum.Enum):
    """How the depositor of a round entry relates to the ticket."""

    OWNER = "owner"
    BORROWER = "borrower"
    WHITELISTED = "whitelisted"
    NEW_DEPOSITOR = "new_depositor"


class Ticket(Base):
    """A persistent entry slot owned by a single address.

    Ticket ids are never reused and survive across rounds. The rental and
    deposit columns are scoped to a round id, so they reset implicitly when
    the next round opens.
    """

    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    owner_address: Mapped[str] = mapped_column(String(42), nullable=False, unique=True)

    renter_address: Mapped[Optional[str]] = mapped_column(String(42), nullable=True)
    rented_round_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("lottery_rounds.id", ondelete="SET NULL"), nullable=True
    )
    deposited_round_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("lottery_rounds.id", ondelete="SET NULL"), nullable=True
    )
    deposit_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    """Value deposited into :attr:`deposited_round_id`."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    deposits: Mapped[list["TicketDeposit"]] = relationship(back_populates="ticket")

    __table_args__ = (Index("ix_tickets_renter_round", "renter_address", "rented_round_id"),)

    def __init__(
        self,
        *,
        owner_address: str,
        created_at: Optional[datetime] = None,
    ) -> None:
        self.owner_address = owner_address
        self.deposit_value = 0
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<Ticket(id={id}, owner={owner}, renter={renter})>".format(
            id=self.id, owner=self.owner_address, renter=self.renter_address
        )

    def renter_for(self, round_id: int) -> Optional[str]:
        """Return the renter registered for ``round_id``, if any."""
        if self.rented_round_id == round_id:
            return self.renter_address
        return None

    def is_deposited_in(self, round_id: int) -> bool:
        return self.deposited_round_id == round_id

    @classmethod
    def get_by_owner(cls, session: Session, address: str) -> Optional["Ticket"]:
        """Return the ticket owned by ``address`` if one was ever allocated."""

        return session.scalar(select(cls).where(cls.owner_address == address))

    @classmethod
    def rented_by(
        cls, session: Session, address: str, round_id: int
    ) -> Optional["Ticket"]:
        """Return the ticket ``address`` rents during ``round_id``."""

        return session.scalar(
            select(cls).where(
                cls.renter_address == address, cls.rented_round_id == round_id
            )
        )


class TicketDeposit(Base):
    """A ticket's entry into one round, tagged with the depositor relation.

    The row doubles as the winner entitlement: ``win_count`` and ``share``
    are filled when randomness resolves, ``claimed_at`` when it is paid or
    credited.
    """

    __tablename__ = "ticket_deposits"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    round_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("lottery_rounds.id", ondelete="CASCADE"), nullable=False
    )
    ticket_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
    )
    depositor_address: Mapped[str] = mapped_column(String(42), nullable=False)
    relation: Mapped[DepositorRelation] = mapped_column(
        Enum(
            DepositorRelation,
            name="depositor_relation",
            native_enum=False,
            create_constraint=True,
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
    )
    value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    """0-based deposit order inside the round; the index random values select."""

    win_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    share: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    claimed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    round: Mapped["LotteryRound"] = relationship(back_populates="deposits")
    ticket: Mapped["Ticket"] = relationship(back_populates="deposits")

    __table_args__ = (
        UniqueConstraint("round_id", "ticket_id", name="uq_ticket_deposits_round_ticket"),
        UniqueConstraint("round_id", "position", name="uq_ticket_deposits_round_position"),
        Index("ix_ticket_deposits_depositor", "round_id", "depositor_address"),
    )

    def __init__(
        self,
        *,
        round: "LotteryRound",
        ticket: Ticket,
        depositor_address: str,
        relation: DepositorRelation,
        value: int,
        position: int,
        created_at: Optional[datetime] = None,
    ) -> None:
        self.round = round
        self.ticket = ticket
        self.depositor_address = depositor_address
        self.relation = relation
        self.value = value
        self.position = position
        self.win_count = 0
        self.share = 0
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<TicketDeposit(round_id={r}, ticket_id={t}, relation={rel}, value={v})>".format(
            r=self.round_id,
            t=self.ticket_id,
            rel=self.relation.value if self.relation else None,
            v=self.value,
        )

    @property
    def is_winner(self) -> bool:
        return self.win_count > 0

    @property
    def is_claimed(self) -> bool:
        return self.claimed_at is not None


__all__ = ["DepositorRelation", "Ticket", "TicketDeposit"]

"""Database models for lottery rounds and their resolved draws."""

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
    from .ticket import TicketDeposit


class RoundState(str, enum.Enum):
    """Lifecycle of a round. Transitions only ever move forward."""

    OPEN = "open"
    AWAITING_RANDOMNESS = "awaiting_randomness"
    BREAK = "break"
    CLOSED = "closed"


class LotteryRound(Base):
    """One full cycle: deposit window, randomness resolution, break, close."""

    __tablename__ = "lottery_rounds"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Strictly increasing round id."""

    state: Mapped[RoundState] = mapped_column(
        Enum(
            RoundState,
            name="round_state",
            native_enum=False,
            create_constraint=True,
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
        default=RoundState.OPEN,
    )

    opened_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    break_requested_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    broken_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    """When randomness was delivered and the break window started."""

    closed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Configuration snapshot taken when the break is requested.
    winner_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    protocol_fee_bps: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rent_fee_bps: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Accounting used for the value-conservation check.
    total_deposited: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    protocol_fee: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    paid_out: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    credited: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    deposits: Mapped[list["TicketDeposit"]] = relationship(
        back_populates="round",
        order_by="TicketDeposit.position",
        cascade="all, delete-orphan",
    )
    draws: Mapped[list["RoundDraw"]] = relationship(
        back_populates="round",
        order_by="RoundDraw.draw_index",
        cascade="all, delete-orphan",
    )

    __table_args__ = (Index("ix_lottery_rounds_state", "state"),)

    def __init__(
        self,
        *,
        opened_at: Optional[datetime] = None,
        state: RoundState = RoundState.OPEN,
    ) -> None:
        self.state = state
        if opened_at is not None:
            self.opened_at = opened_at
        self.total_deposited = 0
        self.protocol_fee = 0
        self.paid_out = 0
        self.credited = 0

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<LotteryRound(id={id}, state={state}, deposits={count})>".format(
            id=self.id,
            state=self.state.value if self.state else None,
            count=len(self.deposits),
        )

    @property
    def deposit_count(self) -> int:
        return len(self.deposits)

    @property
    def unclaimed(self) -> int:
        """Value still owed to winners and not yet paid or credited."""
        return self.total_deposited - self.paid_out - self.credited - self.protocol_fee

    @classmethod
    def latest(cls, session: Session) -> Optional["LotteryRound"]:
        """Return the most recently opened round, if any."""

        return session.scalars(select(cls).order_by(cls.id.desc()).limit(1)).first()


class RoundDraw(Base):
    """A single delivered random value and the deposit it selected."""

    __tablename__ = "round_draws"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    round_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("lottery_rounds.id", ondelete="CASCADE"), nullable=False
    )
    draw_index: Mapped[int] = mapped_column(Integer, nullable=False)
    random_value: Mapped[str] = mapped_column(String(80), nullable=False)
    """Decimal string; random words are 256-bit and overflow integer columns."""

    deposit_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("ticket_deposits.id", ondelete="CASCADE"), nullable=False
    )

    round: Mapped["LotteryRound"] = relationship(back_populates="draws")
    deposit: Mapped["TicketDeposit"] = relationship()

    __table_args__ = (
        UniqueConstraint("round_id", "draw_index", name="uq_round_draws_round_index"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<RoundDraw(round_id={r}, draw_index={i}, deposit_id={d})>".format(
            r=self.round_id, i=self.draw_index, d=self.deposit_id
        )


__all__ = ["RoundState", "LotteryRound", "RoundDraw"]

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import ID_TYPE, Base


class ValueTransfer(Base):
    """Outgoing value movement issued by the lottery.

    Rows are written in the same transaction as the ledger change that
    caused them, so a rolled-back call leaves no trace here either.
    """

    __tablename__ = "value_transfers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    recipient: Mapped[str] = mapped_column(String(42), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    round_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("lottery_rounds.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint("kind IN ('rent','claim','withdraw')", name="kind_enum"),
        CheckConstraint("amount > 0", name="amount_positive"),
        Index("ix_value_transfers_recipient", "recipient"),
    )

    def __repr__(self) -> str:
        return (
            f"<ValueTransfer(id={self.id}, recipient={self.recipient}, "
            f"amount={self.amount}, kind='{self.kind}', round_id={self.round_id})>"
        )

from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, String, CheckConstraint
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import Base


class WithdrawableBalance(Base):
    """Value credited to an address that must be claimed explicitly."""

    __tablename__ = "withdrawable_balances"

    address: Mapped[str] = mapped_column(String(42), primary_key=True)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (CheckConstraint("amount >= 0", name="amount_non_negative"),)

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<WithdrawableBalance(address='{self.address}', amount={self.amount})>"

    @classmethod
    def for_update(cls, session: Session, address: str) -> "WithdrawableBalance":
        """Return the balance row for ``address``, creating an empty one if needed."""
        row = session.get(cls, address)
        if row is None:
            row = cls(address=address, amount=0)
            session.add(row)
            session.flush()
        return row

    @classmethod
    def amount_of(cls, session: Session, address: str) -> int:
        row = session.get(cls, address)
        return row.amount if row is not None else 0

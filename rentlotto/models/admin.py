from datetime import datetime, timezone

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Integer
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import Base

CONFIG_ROW_ID = 1


class AdminConfig(Base):
    """Process-wide tunables. A single row, mutated only by the admin."""

    __tablename__ = "admin_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=CONFIG_ROW_ID)
    winner_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    protocol_fee_bps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rent_fee_bps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rent_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint("winner_count >= 1", name="winner_count_positive"),
        CheckConstraint(
            "protocol_fee_bps >= 0 AND protocol_fee_bps <= 10000", name="protocol_fee_range"
        ),
        CheckConstraint("rent_fee_bps >= 0 AND rent_fee_bps <= 10000", name="rent_fee_range"),
        CheckConstraint("rent_amount >= 0", name="rent_amount_non_negative"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<AdminConfig(winner_count={self.winner_count}, "
            f"protocol_fee_bps={self.protocol_fee_bps}, rent_fee_bps={self.rent_fee_bps}, "
            f"rent_amount={self.rent_amount})>"
        )

    @classmethod
    def load(cls, session: Session) -> "AdminConfig":
        """Return the configuration row, inserting the defaults on first use."""
        config = session.get(cls, CONFIG_ROW_ID)
        if config is None:
            config = cls(
                id=CONFIG_ROW_ID,
                winner_count=1,
                protocol_fee_bps=0,
                rent_fee_bps=0,
                rent_amount=0,
            )
            session.add(config)
            session.flush()
        return config

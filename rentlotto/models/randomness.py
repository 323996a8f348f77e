"""Persistence for outstanding and fulfilled randomness requests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import ID_TYPE, Base

REQUEST_PENDING = "pending"
REQUEST_FULFILLED = "fulfilled"
REQUEST_CANCELLED = "cancelled"


class RandomnessRequest(Base):
    """A batch of random values requested from the external coordinator.

    ``handle`` is the identifier issued by the coordinator and is the only
    key deliveries are correlated by.
    """

    __tablename__ = "randomness_requests"

    handle: Mapped[str] = mapped_column(String(100), primary_key=True)
    round_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("lottery_rounds.id", ondelete="CASCADE"), nullable=False
    )
    num_words: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=REQUEST_PENDING)
    random_values: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    """Delivered values as decimal strings."""

    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    fulfilled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','fulfilled','cancelled')", name="status_enum"
        ),
        Index("ix_randomness_requests_round_status", "round_id", "status"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<RandomnessRequest(handle='{self.handle}', round_id={self.round_id}, "
            f"num_words={self.num_words}, status='{self.status}')>"
        )

    @property
    def values(self) -> list[int]:
        return [int(v) for v in (self.random_values or [])]

    @classmethod
    def pending_for_round(
        cls, session: Session, round_id: int
    ) -> Optional["RandomnessRequest"]:
        """Return the outstanding request for ``round_id``, if any."""

        return session.scalar(
            select(cls).where(cls.round_id == round_id, cls.status == REQUEST_PENDING)
        )

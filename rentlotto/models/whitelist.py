from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Integer, String, func, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import ID_TYPE, Base


class WhitelistEntry(Base):
    """An address admitted to fee-free entry by a verified Merkle proof.

    The table is append-only; ``position`` is the 0-based insertion index.
    """

    __tablename__ = "whitelist_entries"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    address: Mapped[str] = mapped_column(String(42), nullable=False, unique=True, index=True)
    verified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<WhitelistEntry(position={self.position}, address='{self.address}')>"

    @classmethod
    def count(cls, session: Session) -> int:
        return session.scalar(select(func.count(cls.id))) or 0

    @classmethod
    def get_by_address(cls, session: Session, address: str) -> Optional["WhitelistEntry"]:
        return session.scalar(select(cls).where(cls.address == address))

    @classmethod
    def get_by_position(cls, session: Session, position: int) -> Optional["WhitelistEntry"]:
        return session.scalar(select(cls).where(cls.position == position))

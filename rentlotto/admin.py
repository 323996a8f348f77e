"""Admin-tunable parameters and the single-admin authorization predicate."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from .errors import AuthorizationError, InvalidInputError
from .models import AdminConfig

logger = logging.getLogger(__name__)

MAX_BPS = 10_000


def require_admin(caller: str, admin_address: str) -> None:
    """Raise :class:`AuthorizationError` unless ``caller`` is the admin."""
    if caller != admin_address:
        raise AuthorizationError(f"{caller} is not the lottery admin")


def _check_bps(name: str, bps: int) -> int:
    if isinstance(bps, bool) or not isinstance(bps, int):
        raise InvalidInputError(f"{name} must be an integer number of basis points")
    if not 0 <= bps <= MAX_BPS:
        raise InvalidInputError(f"{name} must be between 0 and {MAX_BPS}")
    return bps


class AdminSettings:
    """Reads and updates the persisted :class:`AdminConfig` row.

    Rounds copy the values they need when the break is requested, so an
    update never alters shares that were already computed.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def load(self) -> AdminConfig:
        return AdminConfig.load(self._session)

    def set_winner_count(self, count: int) -> AdminConfig:
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise InvalidInputError("winner count must be a positive integer")
        config = self.load()
        config.winner_count = count
        self._session.flush()
        logger.info("Winner count set to %d", count)
        return config

    def set_protocol_fee(self, bps: int) -> AdminConfig:
        config = self.load()
        config.protocol_fee_bps = _check_bps("protocol fee", bps)
        self._session.flush()
        logger.info("Protocol fee set to %d bps", bps)
        return config

    def set_rent_fee(self, bps: int) -> AdminConfig:
        config = self.load()
        config.rent_fee_bps = _check_bps("rent fee", bps)
        self._session.flush()
        logger.info("Rent fee set to %d bps", bps)
        return config

    def set_rent_amount(self, amount: int) -> AdminConfig:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise InvalidInputError("rent amount must be a non-negative integer")
        config = self.load()
        config.rent_amount = amount
        self._session.flush()
        logger.info("Rent amount set to %d", amount)
        return config


__all__ = ["AdminSettings", "MAX_BPS", "require_admin"]

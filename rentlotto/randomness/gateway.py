"""Correlates randomness requests with their asynchronous deliveries."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Protocol, Sequence

from sqlalchemy.orm import Session

from ..errors import (
    HandleConsumed,
    HandleReissued,
    InvalidInputError,
    InvalidRandomness,
    RequestOutstanding,
    UnauthorizedCoordinator,
    UnknownHandle,
    WordCountMismatch,
)
from ..models import RandomnessRequest
from ..models.randomness import REQUEST_CANCELLED, REQUEST_FULFILLED, REQUEST_PENDING

logger = logging.getLogger(__name__)

# Coordinators deliver uint256 words.
MAX_RANDOM_VALUE = 2**256 - 1


class RandomnessCoordinator(Protocol):
    """External verifiable-randomness service."""

    def request_random_words(self, num_words: int) -> str:
        """Submit a request for ``num_words`` values and return its handle."""
        ...


class RandomnessGateway:
    """Issues at most one outstanding request per round and authenticates deliveries."""

    def __init__(
        self,
        session: Session,
        coordinator: RandomnessCoordinator,
        coordinator_address: str,
    ) -> None:
        self._session = session
        self._coordinator = coordinator
        self._coordinator_address = coordinator_address

    def request(self, round_id: int, count: int, *, now: datetime) -> str:
        """Request ``count`` random values for ``round_id``.

        Raises
        ------
        InvalidInputError
            If ``count`` is not a positive integer.
        RequestOutstanding
            If a request for the round is still pending.
        HandleReissued
            If the coordinator returns a handle that is already recorded.
        """
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise InvalidInputError(f"count must be a positive integer, got {count!r}")
        if RandomnessRequest.pending_for_round(self._session, round_id) is not None:
            raise RequestOutstanding(
                f"round {round_id} already has an outstanding randomness request"
            )

        handle = str(self._coordinator.request_random_words(count))
        if self._session.get(RandomnessRequest, handle) is not None:
            raise HandleReissued(f"coordinator reissued handle {handle!r}")

        self._session.add(
            RandomnessRequest(
                handle=handle,
                round_id=round_id,
                num_words=count,
                status=REQUEST_PENDING,
                requested_at=now,
            )
        )
        self._session.flush()
        logger.info("Requested %d random values for round %d (handle %s)", count, round_id, handle)
        return handle

    def deliver(
        self,
        sender: str,
        handle: str,
        values: Sequence[int],
        *,
        now: datetime,
    ) -> RandomnessRequest:
        """Accept a delivery from the coordinator and mark the handle consumed.

        The caller forwards :attr:`RandomnessRequest.values` to the round
        manager within the same transaction.
        """
        if sender != self._coordinator_address:
            raise UnauthorizedCoordinator(
                f"{sender} is not the configured randomness coordinator"
            )

        request = self._session.get(RandomnessRequest, str(handle))
        if request is None or request.status == REQUEST_CANCELLED:
            raise UnknownHandle(f"unknown randomness handle {handle!r}")
        if request.status == REQUEST_FULFILLED:
            raise HandleConsumed(f"randomness handle {handle!r} already fulfilled")
        if len(values) != request.num_words:
            raise WordCountMismatch(
                f"expected {request.num_words} random values, got {len(values)}"
            )

        normalized = [str(_check_random_value(value)) for value in values]

        request.random_values = normalized
        request.status = REQUEST_FULFILLED
        request.fulfilled_at = now
        self._session.flush()
        logger.info("Randomness delivered for round %d (handle %s)", request.round_id, handle)
        return request

    def outstanding(self, round_id: int) -> Optional[str]:
        """Return the pending handle for ``round_id``, if any."""
        request = RandomnessRequest.pending_for_round(self._session, round_id)
        return request.handle if request is not None else None

    def cancel(self, round_id: int) -> Optional[str]:
        """Cancel the pending request for ``round_id`` so a fresh one can be issued.

        A late delivery for a cancelled handle is rejected as unknown.
        """
        request = RandomnessRequest.pending_for_round(self._session, round_id)
        if request is None:
            return None
        request.status = REQUEST_CANCELLED
        self._session.flush()
        logger.warning("Cancelled stalled randomness request %s for round %d", request.handle, round_id)
        return request.handle



def _check_random_value(value) -> int:
    if isinstance(value, bool):
        raise InvalidRandomness(f"random value {value!r} is not an integer")
    try:
        as_int = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidRandomness(f"random value {value!r} is not an integer") from exc
    if not 0 <= as_int <= MAX_RANDOM_VALUE:
        raise InvalidRandomness(f"random value {as_int} is outside the 256-bit word range")
    return as_int

__all__ = ["MAX_RANDOM_VALUE", "RandomnessCoordinator", "RandomnessGateway"]

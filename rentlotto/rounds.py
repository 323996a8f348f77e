"""Round lifecycle: open, await randomness, break, close."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from .admin import AdminSettings
from .db.utils import as_utc
from .errors import StateTransitionError
from .models import LotteryRound, RoundDraw, RoundState
from .payout import PayoutAccount
from .randomness.gateway import RandomnessGateway

logger = logging.getLogger(__name__)


class RoundManager:
    """Owns round state and the time-gated transitions between states.

    States only move forward: ``open`` -> ``awaiting_randomness`` ->
    ``break`` -> ``closed``, after which a new round may be opened.
    """

    def __init__(
        self,
        session: Session,
        *,
        gateway: RandomnessGateway,
        payout: PayoutAccount,
        admin: AdminSettings,
        deposit_window: timedelta,
        break_window: timedelta,
        randomness_timeout: timedelta,
    ) -> None:
        self._session = session
        self._gateway = gateway
        self._payout = payout
        self._admin = admin
        self._deposit_window = deposit_window
        self._break_window = break_window
        self._randomness_timeout = randomness_timeout

    # -------- reads --------
    def current(self) -> Optional[LotteryRound]:
        """Return the most recent round (closed or not)."""
        return LotteryRound.latest(self._session)

    def get(self, round_id: int) -> Optional[LotteryRound]:
        return self._session.get(LotteryRound, round_id)

    def latest_id(self) -> Optional[int]:
        round = self.current()
        return round.id if round is not None else None

    # -------- transitions --------
    def start_round(self, *, now: datetime) -> LotteryRound:
        latest = self.current()
        if latest is not None and latest.state != RoundState.CLOSED:
            raise StateTransitionError(
                f"cannot start a round while round {latest.id} is {latest.state.value}"
            )
        round = LotteryRound(opened_at=now)
        self._session.add(round)
        self._session.flush()
        logger.info("Opened round %d", round.id)
        return round

    def request_break(self, *, now: datetime) -> str:
        """End the deposit window and request randomness for the winners.

        The winner count and fees are copied onto the round here; later
        admin changes do not affect it.
        """
        round = self.current()
        if round is None or round.state != RoundState.OPEN:
            raise StateTransitionError("cannot break: no open round")
        deadline = as_utc(round.opened_at) + self._deposit_window
        if now < deadline:
            raise StateTransitionError(
                f"cannot break round {round.id} before {deadline.isoformat()}"
            )

        config = self._admin.load()
        round.winner_count = config.winner_count
        round.protocol_fee_bps = config.protocol_fee_bps
        round.rent_fee_bps = config.rent_fee_bps
        round.break_requested_at = now

        handle = self._gateway.request(round.id, config.winner_count, now=now)
        round.state = RoundState.AWAITING_RANDOMNESS
        self._session.flush()
        logger.info(
            "Round %d awaiting randomness (%d deposits, pot %d)",
            round.id,
            round.deposit_count,
            round.total_deposited,
        )
        return handle

    def resolve(self, round_id: int, values: Sequence[int], *, now: datetime) -> LotteryRound:
        """Map delivered random values onto the round's deposit snapshot.

        Draw ``i`` selects the deposit at position ``values[i] % deposit_count``.
        """
        round = self.get(round_id)
        if round is None or round.state != RoundState.AWAITING_RANDOMNESS:
            raise StateTransitionError(f"round {round_id} is not awaiting randomness")

        snapshot = list(round.deposits)
        winners = []
        if snapshot:
            for index, value in enumerate(values):
                winner = snapshot[int(value) % len(snapshot)]
                self._session.add(
                    RoundDraw(
                        round=round,
                        draw_index=index,
                        random_value=str(value),
                        deposit=winner,
                    )
                )
                winners.append(winner)

        self._payout.allocate(round, winners)
        round.state = RoundState.BREAK
        round.broken_at = now
        self._session.flush()
        logger.info(
            "Round %d in break; winning tickets %s",
            round.id,
            [w.ticket_id for w in winners],
        )
        return round

    def finalize_close(self, *, now: datetime) -> LotteryRound:
        round = self.current()
        if round is None or round.state != RoundState.BREAK:
            raise StateTransitionError("cannot close: no round in break")
        deadline = as_utc(round.broken_at) + self._break_window
        if now < deadline:
            raise StateTransitionError(
                f"cannot close round {round.id} before {deadline.isoformat()}"
            )
        self._payout.close(round, now=now)
        round.state = RoundState.CLOSED
        round.closed_at = now
        self._session.flush()
        logger.info("Closed round %d", round.id)
        return round

    def recover_stalled_round(self, *, now: datetime) -> str:
        """Reissue the randomness request of a round stuck awaiting delivery."""
        round = self.current()
        if round is None or round.state != RoundState.AWAITING_RANDOMNESS:
            raise StateTransitionError("no round is awaiting randomness")
        deadline = as_utc(round.break_requested_at) + self._randomness_timeout
        if now < deadline:
            raise StateTransitionError(
                f"round {round.id} randomness is not overdue until {deadline.isoformat()}"
            )
        self._gateway.cancel(round.id)
        handle = self._gateway.request(round.id, round.winner_count, now=now)
        round.break_requested_at = now
        self._session.flush()
        logger.warning("Round %d randomness re-requested (handle %s)", round.id, handle)
        return handle


__all__ = ["RoundManager"]

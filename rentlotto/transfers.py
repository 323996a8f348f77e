"""Outgoing value transfers.

Moving value on the host platform is not this package's concern; a
collaborator does it. The lottery only decides who is owed what, records
the transfer and aborts the whole call if the collaborator fails.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from .errors import LotteryError, TransferError
from .models import ValueTransfer

logger = logging.getLogger(__name__)

TRANSFER_KINDS = ("rent", "claim", "withdraw")


class TransferCollaborator(Protocol):
    def send(self, recipient: str, amount: int) -> None:
        """Move ``amount`` to ``recipient``; raise on failure."""
        ...


class LoggingTransfer:
    """Default collaborator for deployments that settle from the transfer table."""

    def send(self, recipient: str, amount: int) -> None:
        logger.info("Transfer of %d to %s queued for settlement", amount, recipient)


def issue_transfer(
    session: Session,
    collaborator: TransferCollaborator,
    *,
    recipient: str,
    amount: int,
    kind: str,
    round_id: Optional[int] = None,
) -> ValueTransfer:
    """Record and send one outgoing transfer.

    Must be called after the ledger change it pays for has been flushed.
    Any non-lottery exception from the collaborator is re-raised as
    :class:`TransferError`; lottery errors such as :class:`ReentrantCall`
    propagate unchanged. Either way the surrounding transaction rolls back.
    """
    if kind not in TRANSFER_KINDS:
        raise ValueError(f"unknown transfer kind {kind!r}")
    if amount <= 0:
        raise ValueError("transfer amount must be positive")

    row = ValueTransfer(recipient=recipient, amount=amount, kind=kind, round_id=round_id)
    session.add(row)
    session.flush()

    try:
        collaborator.send(recipient, amount)
    except LotteryError:
        raise
    except Exception as exc:
        logger.error("Transfer of %d to %s failed: %s", amount, recipient, exc)
        raise TransferError(f"transfer of {amount} to {recipient} failed") from exc
    return row


__all__ = ["LoggingTransfer", "TransferCollaborator", "issue_transfer"]

"""Exception taxonomy raised by the lottery components.

Every error is raised synchronously and leaves the database untouched: the
facade rolls back the surrounding transaction before the exception reaches
the caller.
"""

from __future__ import annotations


class LotteryError(Exception):
    """Base class for all lottery errors."""


class AuthorizationError(LotteryError):
    """Caller is not allowed to perform the operation."""


class UnauthorizedCoordinator(AuthorizationError):
    """Randomness was delivered by someone other than the configured coordinator."""


class StateTransitionError(LotteryError):
    """Operation is not valid in the current round or ticket state."""


class NotOpen(StateTransitionError):
    """The current round is not accepting deposits or rentals."""


class NotClaimable(StateTransitionError):
    """Winners have not been resolved for the current round yet."""


class InvalidOrTooLate(StateTransitionError):
    """Winners are only readable while a round is in its break phase."""


class RequestOutstanding(StateTransitionError):
    """A randomness request is already pending for the round."""


class ReentrantCall(StateTransitionError):
    """A mutating call was issued while another one was still in progress."""


class RentedToOther(StateTransitionError):
    """The caller's ticket is rented to another address this round."""


class DepositedAlready(StateTransitionError):
    """The ticket already holds a deposit for this round."""


class AlreadyRented(StateTransitionError):
    """The ticket already has a renter for this round."""


class AlreadyRenting(StateTransitionError):
    """The caller already rents a ticket this round."""


class InvalidInputError(LotteryError, ValueError):
    """Malformed or out-of-range input."""


class InvalidTicket(InvalidInputError):
    """The ticket id has never been allocated."""


class InvalidAmount(InvalidInputError):
    """The supplied value does not match what the operation requires."""


class InvalidAddress(InvalidInputError):
    """The supplied address is not a valid account address."""


class MalformedProof(InvalidInputError):
    """A whitelist proof element is not a 32-byte hash."""


class SelfRental(InvalidInputError):
    """Owners cannot rent their own ticket."""


class UnknownHandle(InvalidInputError):
    """The randomness handle was never issued or has been cancelled."""


class HandleConsumed(InvalidInputError):
    """The randomness handle has already been fulfilled."""


class WordCountMismatch(InvalidInputError):
    """The number of delivered random values differs from the request."""


class InvalidRandomness(InvalidInputError):
    """A delivered random value is not an integer in the 256-bit word range."""


class HandleReissued(StateTransitionError):
    """The coordinator returned a handle that was already recorded."""


class EligibilityError(LotteryError):
    """The caller has no valid, unconsumed entitlement."""


class NotWinner(EligibilityError):
    """None of the caller's tickets won this round."""


class AlreadyClaimed(EligibilityError):
    """The entitlement has already been paid."""


class BorrowerNotWinner(EligibilityError):
    """The rented ticket did not win."""


class OwnerMustWaitForBorrower(EligibilityError):
    """The borrower of a winning rented ticket has not claimed yet."""


class BorrowerWindowElapsed(EligibilityError):
    """Borrowers can only claim while the round is in its break phase."""


class NothingToWithdraw(EligibilityError):
    """The caller has no withdrawable balance."""


class TransferError(LotteryError, RuntimeError):
    """An outgoing value transfer failed; the whole call was rolled back."""


__all__ = [
    "LotteryError",
    "AuthorizationError",
    "UnauthorizedCoordinator",
    "StateTransitionError",
    "NotOpen",
    "NotClaimable",
    "InvalidOrTooLate",
    "RequestOutstanding",
    "ReentrantCall",
    "RentedToOther",
    "DepositedAlready",
    "AlreadyRented",
    "AlreadyRenting",
    "InvalidInputError",
    "InvalidTicket",
    "InvalidAmount",
    "InvalidAddress",
    "MalformedProof",
    "SelfRental",
    "UnknownHandle",
    "HandleConsumed",
    "WordCountMismatch",
    "InvalidRandomness",
    "HandleReissued",
    "EligibilityError",
    "NotWinner",
    "AlreadyClaimed",
    "BorrowerNotWinner",
    "OwnerMustWaitForBorrower",
    "BorrowerWindowElapsed",
    "NothingToWithdraw",
    "TransferError",
]

from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .admin import AdminConfig  # noqa: F401
from .round import LotteryRound, RoundDraw, RoundState  # noqa: F401
from .ticket import DepositorRelation, Ticket, TicketDeposit  # noqa: F401
from .whitelist import WhitelistEntry  # noqa: F401
from .balance import WithdrawableBalance  # noqa: F401
from .randomness import RandomnessRequest  # noqa: F401
from .transfer import ValueTransfer  # noqa: F401

__all__ = [
    "Base",
    "AdminConfig",
    "LotteryRound",
    "RoundDraw",
    "RoundState",
    "DepositorRelation",
    "Ticket",
    "TicketDeposit",
    "WhitelistEntry",
    "WithdrawableBalance",
    "RandomnessRequest",
    "ValueTransfer",
]

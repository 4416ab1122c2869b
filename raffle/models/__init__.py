from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .round import RafflePhase, RaffleRound  # noqa: F401
from .entry import RaffleEntry  # noqa: F401
from .event import RaffleEvent  # noqa: F401
from .account import Account  # noqa: F401

__all__ = [
    "Base",
    "RafflePhase",
    "RaffleRound",
    "RaffleEntry",
    "RaffleEvent",
    "Account",
]
